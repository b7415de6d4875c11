#!/usr/bin/env python3

from v2dflib.core import utils
from v2dflib.core.errors import ProjectRenderError
from v2dflib.core.errors import V2dfError
from v2dflib.core.loader import ConfigLoader
from v2dflib.core.renderer import ProjectRenderer
from v2dflib.media.ffmpeg_decode import open_source

#============================================

class V2dfProject():
	def __init__(self, config_file: str, workers: int = None, source=None):
		loader = ConfigLoader(config_file)
		self.config = loader.load()
		self.config_file = config_file
		self.workers = workers if workers is not None else self.config.workers
		self._source = source

	#============================
	@property
	def source(self):
		if self._source is None:
			self._source = open_source(self.config.video_file, self.config.frames_dir,
				fps=self.config.source_fps, pixel_format=self.config.pixel_format)
		return self._source

	#============================
	def _renderers(self) -> list:
		projects = self.config.enabled_projects()
		if len(projects) == 0:
			raise V2dfError(f"config {self.config_file}: no enabled projects")
		return [ProjectRenderer(self.config, project, self.source, workers=self.workers)
			for project in projects]

	#============================
	def _run_each(self, action) -> list:
		"""
		Run action on every enabled project; one failure does not stop the rest.
		"""
		summaries = []
		failures = {}
		for renderer in self._renderers():
			namespace = renderer.project.namespace
			try:
				summaries.append(action(renderer))
			except V2dfError as error:
				if not utils.is_quiet_mode():
					print(f"{namespace}: failed: {error}")
				failures[namespace] = error
		if len(failures) > 0:
			raise ProjectRenderError(failures)
		return summaries

	#============================
	def run(self) -> list:
		return self._run_each(lambda renderer: renderer.render())

	#============================
	def test(self, frame_index: int = None) -> list:
		return self._run_each(lambda renderer: renderer.render_test(frame_index))

	#============================
	def plan(self) -> dict:
		"""
		Resolved configuration, as plain data for dumping.
		"""
		return {
			'config_file': self.config.config_file,
			'video_file': self.config.video_file,
			'frames_dir': self.config.frames_dir,
			'source_fps': None if self.config.source_fps is None
				else str(self.config.source_fps),
			'pixel_format': self.config.pixel_format,
			'output_root_dir': self.config.output_root_dir,
			'tick_rate': self.config.tick_rate,
			'drift_tolerance': str(self.config.drift_tolerance),
			'workers': self.workers,
			'projects': [project.as_dict() for project in self.config.projects],
		}
