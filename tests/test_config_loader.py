#!/usr/bin/env python3

import os
import sys
import tempfile
import unittest
from fractions import Fraction

import yaml

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if REPO_ROOT not in sys.path:
	sys.path.insert(0, REPO_ROOT)

from v2dflib.core.errors import ConfigError
from v2dflib.core.loader import ConfigLoader
from v2dflib.core.loader import build_config_text
from v2dflib.core.loader import default_config
from v2dflib.core.loader import write_config_file

#============================================

def _write_lines(path: str, lines: list) -> None:
	with open(path, "w") as yaml_file:
		yaml_file.write("\n".join(lines))
		yaml_file.write("\n")

#============================================

def _base_lines() -> list:
	lines = []
	lines.append("v2df: 1")
	lines.append("video_file: clip.mp4")
	lines.append("output_root_dir: ./out")
	lines.append("source: {fps: 30000/1001}")
	lines.append("engine: {tick_rate: 20, drift_tolerance: 0.5}")
	lines.append("workers: 2")
	lines.append("projects:")
	lines.append("  - namespace: demo")
	lines.append("    border_width: 4")
	lines.append("    frame_start: 3")
	lines.append("    frame_count: 10")
	lines.append("    layout: spiral")
	return lines

#============================================

class ConfigLoaderTest(unittest.TestCase):
	#============================================
	def test_default_config_round_trip(self) -> None:
		"""The init template parses back to the default config."""
		text = build_config_text(default_config())
		self.assertEqual(yaml.safe_load(text), default_config())
		with tempfile.TemporaryDirectory() as temp_dir:
			path = os.path.join(temp_dir, "v2df_config.yaml")
			write_config_file(path, default_config())
			config = ConfigLoader(path).load()
			self.assertEqual(config.video_file, os.path.join(temp_dir, "input.mp4"))
			self.assertEqual(config.tick_rate, 20)
			self.assertEqual(config.drift_tolerance, Fraction(1, 2))
			project = config.projects[0]
			self.assertEqual(project.border_width, 32)
			self.assertEqual(project.tp_dir, "./frame_tp")
			self.assertIsNone(project.frame_count)
			self.assertIsNone(project.frame_end())
			self.assertEqual(project.frame_end(40), 40)

	#============================================
	def test_values_and_paths(self) -> None:
		with tempfile.TemporaryDirectory() as temp_dir:
			path = os.path.join(temp_dir, "v2df_config.yaml")
			_write_lines(path, _base_lines())
			config = ConfigLoader(path).load()
			self.assertEqual(config.output_root_dir, os.path.join(temp_dir, "out"))
			self.assertEqual(config.source_fps, Fraction(30000, 1001))
			self.assertEqual(config.workers, 2)
			project = config.enabled_projects()[0]
			self.assertEqual(project.namespace, "demo")
			self.assertEqual(project.layout, "spiral")
			self.assertEqual(project.frame_end(), 13)
			self.assertEqual(project.frame_end(100), 13)
			settings = project.normalize_settings()
			self.assertEqual(settings.border_width, 4)
			self.assertEqual(settings.border_value, 1)

	#============================================
	def test_missing_header(self) -> None:
		with tempfile.TemporaryDirectory() as temp_dir:
			path = os.path.join(temp_dir, "v2df_config.yaml")
			_write_lines(path, _base_lines()[1:])
			with self.assertRaises(ConfigError):
				ConfigLoader(path).load()

	#============================================
	def test_bad_values(self) -> None:
		bad_lines = [
			"    levels: 1",
			"    layout: diagonal",
			"    frame_count: 0",
			"    border_color: 5",
			"    threshold: 1.5",
			"    enabled: maybe",
			"    colour: red",
			"    link_frames: true\n    make_frames: false",
		]
		with tempfile.TemporaryDirectory() as temp_dir:
			path = os.path.join(temp_dir, "v2df_config.yaml")
			for line in bad_lines:
				_write_lines(path, _base_lines() + [line])
				with self.assertRaises(ConfigError, msg=line):
					ConfigLoader(path).load()

	#============================================
	def test_needs_a_source(self) -> None:
		with tempfile.TemporaryDirectory() as temp_dir:
			path = os.path.join(temp_dir, "v2df_config.yaml")
			lines = [line for line in _base_lines() if not line.startswith("video_file")]
			_write_lines(path, lines)
			with self.assertRaises(ConfigError):
				ConfigLoader(path).load()

	#============================================
	def test_missing_file(self) -> None:
		with self.assertRaises(ConfigError):
			ConfigLoader("/nonexistent/v2df_config.yaml").load()

#============================================

def main() -> None:
	"""Run the unit tests."""
	unittest.main()

#============================================

if __name__ == "__main__":
	main()
