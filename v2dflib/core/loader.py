#!/usr/bin/env python3

import os
from dataclasses import dataclass
from fractions import Fraction
import yaml
from v2dflib.core import utils
from v2dflib.core.errors import ConfigError
from v2dflib.core.layout import LAYOUT_KINDS
from v2dflib.core.normalize import NormalizeSettings

#============================================

CONFIG_HEADER_KEY = "v2df"
CONFIG_HEADER_VALUE = 1
CONFIG_FILE_NAME = "v2df_config.yaml"
MAX_CONFIG_BYTES = 10 ** 7

#============================================

@dataclass(frozen=True)
class ProjectSpec():
	namespace: str = "namespace"
	enabled: bool = True
	border_width: int = 32
	border_color: int = 1
	invert_colors: bool = False
	threshold: int = 128
	levels: int = 2
	gradient: bool = False
	frame_start: int = 0
	frame_count: int = None
	layout: str = "row"
	spacing: int = 1
	out_of_bounds: int = 256
	make_frames: bool = True
	frame_dfs_dir: str = "./frames"
	make_grid: bool = True
	grid_df_dir: str = "./"
	link_frames: bool = False
	make_tp: bool = True
	tp_height: int = 220
	tp_dir: str = "./frame_tp"
	test_frame: int = None

	#============================
	def normalize_settings(self) -> NormalizeSettings:
		return NormalizeSettings(
			threshold=self.threshold,
			invert_colors=self.invert_colors,
			levels=self.levels,
			gradient=self.gradient,
			border_width=self.border_width,
			border_value=self.border_color,
		)

	#============================
	def frame_end(self, source_frame_count: int = None):
		"""
		Exclusive end of the frame range, or None when it runs to the end.
		"""
		if self.frame_count is not None:
			return self.frame_start + self.frame_count
		return source_frame_count

	#============================
	def as_dict(self) -> dict:
		return dict(self.__dict__)

#============================================

@dataclass(frozen=True)
class V2dfConfig():
	config_file: str
	base_dir: str
	video_file: str
	frames_dir: str
	source_fps: Fraction
	pixel_format: str
	output_root_dir: str
	tick_rate: int
	drift_tolerance: Fraction
	workers: int
	projects: tuple

	#============================
	def enabled_projects(self) -> list:
		return [project for project in self.projects if project.enabled]

#============================================

def coerce_bool(value, config_path: str, key_path: str) -> bool:
	if isinstance(value, bool):
		return value
	if isinstance(value, int):
		return bool(value)
	if isinstance(value, str):
		normalized = value.strip().lower()
		if normalized in ("true", "yes", "1", "on"):
			return True
		if normalized in ("false", "no", "0", "off"):
			return False
	raise ConfigError(f"config {config_path}: {key_path} must be a boolean")

#============================================

def coerce_int(value, config_path: str, key_path: str, minimum: int = None) -> int:
	"""
	Coerce a value to int, rejecting fractional numbers.

	Args:
		value: Raw value.
		config_path: Config file path.
		key_path: Key path string.
		minimum: Optional inclusive lower bound.

	Returns:
		int: Coerced int.
	"""
	result = None
	if isinstance(value, bool):
		result = None
	elif isinstance(value, int):
		result = value
	elif isinstance(value, float) and value.is_integer():
		result = int(value)
	elif isinstance(value, str):
		try:
			result = int(value.strip())
		except ValueError:
			result = None
	if result is None:
		raise ConfigError(f"config {config_path}: {key_path} must be an integer")
	if minimum is not None and result < minimum:
		raise ConfigError(f"config {config_path}: {key_path} must be >= {minimum}")
	return result

#============================================

def coerce_optional_int(value, config_path: str, key_path: str, minimum: int = None):
	if value is None:
		return None
	return coerce_int(value, config_path, key_path, minimum=minimum)

#============================================

def coerce_str(value, config_path: str, key_path: str) -> str:
	if isinstance(value, str) and value.strip() != "":
		return value
	raise ConfigError(f"config {config_path}: {key_path} must be a non-empty string")

#============================================

def coerce_fraction(value, config_path: str, key_path: str) -> Fraction:
	try:
		return utils.parse_fraction(value, key_path)
	except RuntimeError as error:
		raise ConfigError(f"config {config_path}: {error}") from error

#============================================

def default_config() -> dict:
	"""
	Build the default config dictionary.

	Returns:
		dict: Default config.
	"""
	return {
		CONFIG_HEADER_KEY: CONFIG_HEADER_VALUE,
		'video_file': "input.mp4",
		'output_root_dir': "./output",
		'source': {
			'fps': None,
			'frames_dir': None,
			'pixel_format': "gray",
		},
		'engine': {
			'tick_rate': 20,
			'drift_tolerance': "1/2",
		},
		'workers': 4,
		'projects': [
			{
				'namespace': "namespace",
				'enabled': True,
				'border_width': 32,
				'border_color': 1,
				'invert_colors': False,
				'threshold': 128,
				'levels': 2,
				'gradient': False,
				'frame_start': 0,
				'frame_count': None,
				'layout': "row",
				'spacing': 1,
				'out_of_bounds': 256,
				'make_frames': True,
				'frame_dfs_dir': "./frames",
				'make_grid': True,
				'grid_df_dir': "./",
				'link_frames': False,
				'make_tp': True,
				'tp_height': 220,
				'tp_dir': "./frame_tp",
				'test_frame': 0,
			},
		],
	}

#============================================

def _yaml_scalar(value) -> str:
	if value is None:
		return "null"
	if isinstance(value, bool):
		return "true" if value else "false"
	if isinstance(value, (int, float)):
		return str(value)
	return f"\"{value}\""

#============================================

def build_config_text(config: dict) -> str:
	"""
	Build YAML text for the config file.

	Args:
		config: Config dictionary.

	Returns:
		str: YAML content.
	"""
	source = config.get('source', {})
	engine = config.get('engine', {})
	lines = []
	lines.append(f"{CONFIG_HEADER_KEY}: {CONFIG_HEADER_VALUE}")
	lines.append(f"video_file: {_yaml_scalar(config.get('video_file'))}")
	lines.append(f"output_root_dir: {_yaml_scalar(config.get('output_root_dir'))}")
	lines.append("source:")
	lines.append("  # required for frames_dir; overrides the probed rate for video files")
	lines.append(f"  fps: {_yaml_scalar(source.get('fps'))}")
	lines.append(f"  frames_dir: {_yaml_scalar(source.get('frames_dir'))}")
	lines.append(f"  pixel_format: {_yaml_scalar(source.get('pixel_format', 'gray'))}")
	lines.append("engine:")
	lines.append(f"  tick_rate: {_yaml_scalar(engine.get('tick_rate', 20))}")
	lines.append(f"  drift_tolerance: {_yaml_scalar(engine.get('drift_tolerance', '1/2'))}")
	lines.append(f"workers: {_yaml_scalar(config.get('workers', 4))}")
	lines.append("projects:")
	for project in config.get('projects', []):
		first = True
		for key, value in project.items():
			prefix = "  - " if first else "    "
			lines.append(f"{prefix}{key}: {_yaml_scalar(value)}")
			first = False
	lines.append("")
	return "\n".join(lines)

#============================================

def write_config_file(config_path: str, config: dict) -> None:
	text = build_config_text(config)
	os.makedirs(os.path.dirname(config_path) or ".", exist_ok=True)
	with open(config_path, "w", encoding="utf-8") as handle:
		handle.write(text)
	return

#============================================

class ConfigLoader():
	def __init__(self, config_file: str):
		self.config_file = config_file

	#============================
	def load(self) -> V2dfConfig:
		data = self._load_yaml()
		path = self.config_file
		base_dir = os.path.dirname(os.path.abspath(path))
		defaults = default_config()
		source = data.get('source') or {}
		engine = data.get('engine') or {}
		if not isinstance(source, dict):
			raise ConfigError(f"config {path}: source must be a mapping")
		if not isinstance(engine, dict):
			raise ConfigError(f"config {path}: engine must be a mapping")
		frames_dir = source.get('frames_dir')
		video_file = data.get('video_file')
		if frames_dir is None and video_file is None:
			raise ConfigError(f"config {path}: video_file or source.frames_dir is required")
		if frames_dir is not None:
			frames_dir = self._resolve(coerce_str(frames_dir, path, "source.frames_dir"),
				base_dir)
		if video_file is not None:
			video_file = self._resolve(coerce_str(video_file, path, "video_file"), base_dir)
		source_fps = None
		if source.get('fps') is not None:
			source_fps = coerce_fraction(source.get('fps'), path, "source.fps")
			if source_fps <= 0:
				raise ConfigError(f"config {path}: source.fps must be positive")
		pixel_format = source.get('pixel_format', defaults['source']['pixel_format'])
		if pixel_format not in ('gray', 'rgb24'):
			raise ConfigError(f"config {path}: source.pixel_format must be gray or rgb24")
		output_root_dir = self._resolve(coerce_str(
			data.get('output_root_dir', defaults['output_root_dir']), path,
			"output_root_dir"), base_dir)
		tick_rate = coerce_int(engine.get('tick_rate', defaults['engine']['tick_rate']),
			path, "engine.tick_rate", minimum=1)
		drift_tolerance = coerce_fraction(
			engine.get('drift_tolerance', defaults['engine']['drift_tolerance']),
			path, "engine.drift_tolerance")
		if drift_tolerance < 0:
			raise ConfigError(f"config {path}: engine.drift_tolerance must be non-negative")
		workers = coerce_int(data.get('workers', defaults['workers']), path, "workers",
			minimum=1)
		raw_projects = data.get('projects')
		if not isinstance(raw_projects, list) or len(raw_projects) == 0:
			raise ConfigError(f"config {path}: projects must be a non-empty list")
		projects = []
		for index, raw_project in enumerate(raw_projects):
			projects.append(self._parse_project(raw_project, index))
		namespaces = [(project.namespace, project.frame_dfs_dir) for project in projects]
		if len(set(namespaces)) != len(namespaces):
			raise ConfigError(f"config {path}: projects must not share namespace and frame_dfs_dir")
		return V2dfConfig(
			config_file=path,
			base_dir=base_dir,
			video_file=video_file,
			frames_dir=frames_dir,
			source_fps=source_fps,
			pixel_format=pixel_format,
			output_root_dir=output_root_dir,
			tick_rate=tick_rate,
			drift_tolerance=drift_tolerance,
			workers=workers,
			projects=tuple(projects),
		)

	#============================
	def _load_yaml(self) -> dict:
		if not os.path.isfile(self.config_file):
			raise ConfigError(f"config file not found: {self.config_file}")
		if os.path.getsize(self.config_file) > MAX_CONFIG_BYTES:
			raise ConfigError("config file is larger than 10MB")
		try:
			with open(self.config_file, 'r', encoding='utf-8') as data_file:
				data = yaml.safe_load(data_file)
		except yaml.YAMLError as error:
			raise ConfigError(f"config {self.config_file}: invalid yaml: {error}") from error
		except OSError as error:
			raise ConfigError(f"config {self.config_file}: {error}") from error
		if not isinstance(data, dict):
			raise ConfigError(f"config {self.config_file} must be a mapping at the top level")
		if data.get(CONFIG_HEADER_KEY) != CONFIG_HEADER_VALUE:
			raise ConfigError(
				f"config {self.config_file} must set {CONFIG_HEADER_KEY}: {CONFIG_HEADER_VALUE}")
		return data

	#============================
	def _resolve(self, value: str, base_dir: str) -> str:
		if os.path.isabs(value):
			return value
		return os.path.normpath(os.path.join(base_dir, value))

	#============================
	def _parse_project(self, raw: dict, index: int) -> ProjectSpec:
		path = self.config_file
		prefix = f"projects[{index}]"
		if not isinstance(raw, dict):
			raise ConfigError(f"config {path}: {prefix} must be a mapping")
		defaults = ProjectSpec()
		known = set(defaults.as_dict().keys())
		unknown = sorted(set(raw.keys()) - known)
		if len(unknown) > 0:
			raise ConfigError(f"config {path}: {prefix} has unknown keys: {', '.join(unknown)}")

		def value_of(key: str):
			return raw.get(key, getattr(defaults, key))

		layout = value_of('layout')
		if layout not in LAYOUT_KINDS:
			raise ConfigError(
				f"config {path}: {prefix}.layout must be one of {', '.join(LAYOUT_KINDS)}")
		spec = ProjectSpec(
			namespace=coerce_str(value_of('namespace'), path, f"{prefix}.namespace"),
			enabled=coerce_bool(value_of('enabled'), path, f"{prefix}.enabled"),
			border_width=coerce_int(value_of('border_width'), path,
				f"{prefix}.border_width", minimum=0),
			border_color=coerce_int(value_of('border_color'), path,
				f"{prefix}.border_color", minimum=0),
			invert_colors=coerce_bool(value_of('invert_colors'), path,
				f"{prefix}.invert_colors"),
			threshold=coerce_int(value_of('threshold'), path, f"{prefix}.threshold",
				minimum=0),
			levels=coerce_int(value_of('levels'), path, f"{prefix}.levels", minimum=2),
			gradient=coerce_bool(value_of('gradient'), path, f"{prefix}.gradient"),
			frame_start=coerce_int(value_of('frame_start'), path, f"{prefix}.frame_start",
				minimum=0),
			frame_count=coerce_optional_int(value_of('frame_count'), path,
				f"{prefix}.frame_count", minimum=1),
			layout=layout,
			spacing=coerce_int(value_of('spacing'), path, f"{prefix}.spacing", minimum=0),
			out_of_bounds=coerce_int(value_of('out_of_bounds'), path,
				f"{prefix}.out_of_bounds"),
			make_frames=coerce_bool(value_of('make_frames'), path, f"{prefix}.make_frames"),
			frame_dfs_dir=coerce_str(value_of('frame_dfs_dir'), path,
				f"{prefix}.frame_dfs_dir"),
			make_grid=coerce_bool(value_of('make_grid'), path, f"{prefix}.make_grid"),
			grid_df_dir=coerce_str(value_of('grid_df_dir'), path, f"{prefix}.grid_df_dir"),
			link_frames=coerce_bool(value_of('link_frames'), path, f"{prefix}.link_frames"),
			make_tp=coerce_bool(value_of('make_tp'), path, f"{prefix}.make_tp"),
			tp_height=coerce_int(value_of('tp_height'), path, f"{prefix}.tp_height"),
			tp_dir=coerce_str(value_of('tp_dir'), path, f"{prefix}.tp_dir"),
			test_frame=coerce_optional_int(value_of('test_frame'), path,
				f"{prefix}.test_frame", minimum=0),
		)
		if spec.link_frames and not spec.make_frames:
			raise ConfigError(f"config {path}: {prefix}.link_frames requires make_frames")
		try:
			spec.normalize_settings()
		except RuntimeError as error:
			raise ConfigError(f"config {path}: {prefix}: {error}") from error
		return spec
