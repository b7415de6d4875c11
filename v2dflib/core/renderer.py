#!/usr/bin/env python3

import os
import time
import concurrent.futures
from tqdm import tqdm
from v2dflib.core import utils
from v2dflib.core.assembler import GridAssembler
from v2dflib.core.compressor import FrameCompressor
from v2dflib.core.errors import FrameOutOfRange
from v2dflib.core.errors import FrameRenderError
from v2dflib.core.layout import FrameLayout
from v2dflib.core.normalize import normalize_frame
from v2dflib.core.traversal import TraversalGenerator
from v2dflib.exporters import mcfunction
from v2dflib.exporters import preview
from v2dflib.exporters.document import DocumentWriter
from v2dflib.exporters.document import grid_document
from v2dflib.exporters.document import traversal_document
from v2dflib.exporters.document import tree_document

#============================================

GRID_FILE_NAME = "all_frames.json"
TRAVERSAL_FILE_NAME = "traversal.json"

#============================================

class ProjectRenderer():
	"""
	Runs one configured project against a frame source.
	"""
	def __init__(self, config, project, source, workers: int = None):
		self.config = config
		self.project = project
		self.source = source
		self.workers = workers if workers is not None else config.workers
		if self.workers < 1:
			raise RuntimeError("workers must be at least 1")
		self.settings = project.normalize_settings()
		self.compressor = FrameCompressor()
		self.writer = DocumentWriter()
		root_dir = config.output_root_dir
		self.frame_dir = os.path.join(root_dir, project.frame_dfs_dir)
		self.grid_dir = os.path.join(root_dir, project.grid_df_dir)
		self.tp_dir = os.path.join(root_dir, project.tp_dir)

	#============================
	def frame_range(self) -> tuple:
		"""
		Resolve (frame_start, frame_count) against the source.

		frame_count is None when the project runs to the end of a source
		whose length is not known up front.
		"""
		start = self.project.frame_start
		total = self.source.frame_count
		end = self.project.frame_end(total)
		if total is not None:
			if start >= total:
				raise FrameOutOfRange(start, 0, total)
			if end > total:
				raise FrameOutOfRange(end - 1, 0, total)
		if end is None:
			return (start, None)
		return (start, end - start)

	#============================
	def frame_layout(self, grid_width: int, grid_height: int) -> FrameLayout:
		return FrameLayout(grid_width, grid_height, kind=self.project.layout,
			spacing=self.project.spacing)

	#============================
	def provenance(self, frame_start: int, frame_count: int, **extra) -> dict:
		frame_end = None
		if frame_count is not None:
			frame_end = frame_start + frame_count
		data = {
			'namespace': self.project.namespace,
			'frame_range': [frame_start, frame_end],
			'source': self.source.describe(),
			'settings': {
				'threshold': self.settings.threshold,
				'invert_colors': self.settings.invert_colors,
				'levels': self.settings.levels,
				'gradient': self.settings.gradient,
				'border_width': self.settings.border_width,
				'border_value': self.settings.border_value,
			},
		}
		data.update(extra)
		return data

	#============================
	def _normalize(self, frame_index: int, raw):
		try:
			return normalize_frame(raw, self.settings, frame_index=frame_index,
				expected_size=(self.source.width, self.source.height),
				expected_channels=self.source.channels)
		except Exception as error:
			raise FrameRenderError(frame_index, 'normalize', error) from error

	#============================
	def _compress(self, frame_index: int, grid):
		try:
			return self.compressor.compress(grid)
		except Exception as error:
			raise FrameRenderError(frame_index, 'compress', error) from error

	#============================
	def _compress_frame(self, frame_index: int, raw):
		return self._compress(frame_index, self._normalize(frame_index, raw))

	#============================
	def _write_frame(self, frame_index: int, tree, frame_start: int,
		frame_count: int) -> str:
		artifact = GridAssembler(frame_start).frame_artifact(frame_index, tree)
		document = tree_document(artifact.tree, self.provenance(frame_start, frame_count,
			frame_index=frame_index))
		path = os.path.join(self.frame_dir, f"{artifact.name}.json")
		try:
			return self.writer.write(document, path)
		except Exception as error:
			raise FrameRenderError(frame_index, 'write', error) from error

	#============================
	def _iter_decoded(self, frame_start: int, frame_count: int):
		frames = self.source.iter_range(frame_start, frame_count)
		expected = frame_start
		try:
			while True:
				try:
					item = next(frames)
				except StopIteration:
					return
				except Exception as error:
					raise FrameRenderError(expected, 'decode', error) from error
				expected += 1
				yield item
		finally:
			frames.close()

	#============================
	def compress_frames(self, frame_start: int, frame_count: int) -> dict:
		"""
		Normalize and compress every frame in the range on the worker pool.

		Per-frame documents are written as each frame finishes when
		make_frames is set. The first failure cancels the frames still
		queued and is raised as FrameRenderError.

		Args:
			frame_start: First source frame.
			frame_count: Number of frames, or None to run to the end.

		Returns:
			dict: frame index -> ExpressionTree in temporal order.
		"""
		trees = {}
		max_pending = self.workers * 2
		progress = None
		if not utils.is_quiet_mode():
			progress = tqdm(total=frame_count, desc=self.project.namespace,
				unit="frame")
		executor = concurrent.futures.ThreadPoolExecutor(max_workers=self.workers)
		pending = {}
		decoded = 0
		decoded_frames = self._iter_decoded(frame_start, frame_count)
		try:
			for (frame_index, raw) in decoded_frames:
				future = executor.submit(self._compress_frame, frame_index, raw)
				pending[future] = frame_index
				decoded += 1
				if len(pending) >= max_pending:
					self._drain(pending, trees, progress, frame_start, frame_count,
						concurrent.futures.FIRST_COMPLETED)
			self._drain(pending, trees, progress, frame_start, frame_count,
				concurrent.futures.ALL_COMPLETED)
		except BaseException:
			executor.shutdown(wait=True, cancel_futures=True)
			raise
		finally:
			decoded_frames.close()
			if progress is not None:
				progress.close()
		executor.shutdown(wait=True)
		if decoded == 0:
			raise FrameOutOfRange(frame_start, frame_start, 0)
		if frame_count is not None and decoded < frame_count:
			# source ended early; the declared range is not available
			raise FrameOutOfRange(frame_start + decoded, frame_start, decoded)
		return {index: trees[index] for index in sorted(trees)}

	#============================
	def _drain(self, pending: dict, trees: dict, progress, frame_start: int,
		frame_count: int, return_when: str) -> None:
		(done, _) = concurrent.futures.wait(list(pending.keys()),
			return_when=return_when)
		for future in sorted(done, key=lambda item: pending[item]):
			frame_index = pending.pop(future)
			tree = future.result()
			trees[frame_index] = tree
			if self.project.make_frames:
				self._write_frame(frame_index, tree, frame_start, frame_count)
			if progress is not None:
				progress.update(1)

	#============================
	def write_grid(self, trees: dict, frame_start: int) -> str:
		first = next(iter(trees.values()))
		layout = self.frame_layout(first.width, first.height)
		assembler = GridAssembler(frame_start, layout=layout,
			out_of_bounds=self.project.out_of_bounds)
		grid = assembler.assemble(trees)
		frame_names = None
		if self.project.link_frames:
			frame_names = {}
			for frame_index in grid.frame_indices():
				frame_names[frame_index] = utils.resource_id(self.project.namespace,
					self.project.frame_dfs_dir, frame_index)
		document = grid_document(grid, self.provenance(frame_start, grid.frame_count),
			frame_names=frame_names)
		path = os.path.join(self.grid_dir, GRID_FILE_NAME)
		self.writer.write(document, path)
		if not utils.is_quiet_mode():
			print(f"{self.project.namespace}: grid of {grid.frame_count} frames, "
				f"{grid.node_count()} nodes -> {path}")
		return path

	#============================
	def cell_size(self) -> tuple:
		"""
		(width, height) of one bordered frame cell for this source.
		"""
		border = 2 * self.settings.border_width
		return (self.source.width + border, self.source.height + border)

	#============================
	def build_traversal(self, frame_start: int, frame_count: int):
		"""
		Map the frame range onto ticks. Raises UnsupportedFrameRate before
		anything is written when the schedule drifts past the tolerance.
		"""
		(grid_width, grid_height) = self.cell_size()
		layout = self.frame_layout(grid_width, grid_height)
		generator = TraversalGenerator(self.source.fps, tick_rate=self.config.tick_rate,
			drift_tolerance=self.config.drift_tolerance, layout=layout,
			tp_height=self.project.tp_height)
		return generator.generate(frame_start, frame_count)

	#============================
	def write_traversal(self, script, frame_start: int, frame_count: int) -> list:
		document = traversal_document(script, self.provenance(frame_start, frame_count))
		written = [self.writer.write(document,
			os.path.join(self.tp_dir, TRAVERSAL_FILE_NAME))]
		written += mcfunction.write_mcfunction_files(script, self.project.namespace,
			self.project.tp_dir, self.tp_dir)
		if not utils.is_quiet_mode():
			print(f"{self.project.namespace}: traversal of {len(script)} moves over "
				f"{script.duration_ticks()} ticks, max drift {script.max_drift} ticks")
		return written

	#============================
	def render(self) -> dict:
		"""
		Render the whole frame range and write every enabled artifact.
		"""
		start_time = time.time()
		(frame_start, frame_count) = self.frame_range()
		script = None
		if self.project.make_tp and frame_count is not None:
			script = self.build_traversal(frame_start, frame_count)
		trees = self.compress_frames(frame_start, frame_count)
		frame_count = len(trees)
		if self.project.make_tp and script is None:
			# source length was unknown until decoding finished
			script = self.build_traversal(frame_start, frame_count)
		summary = {
			'namespace': self.project.namespace,
			'frame_start': frame_start,
			'frame_count': frame_count,
			'grid_file': None,
			'traversal_files': [],
		}
		if self.project.make_grid:
			summary['grid_file'] = self.write_grid(trees, frame_start)
		if self.project.make_tp:
			summary['traversal_files'] = self.write_traversal(script, frame_start,
				frame_count)
		if not utils.is_quiet_mode():
			elapsed = utils.format_duration(time.time() - start_time)
			clip_seconds = utils.seconds_from_frames(frame_count, self.source.fps)
			print(f"{self.project.namespace}: rendered {frame_count} frames "
				f"({utils.format_duration(clip_seconds)} of video) in {elapsed}")
		return summary

	#============================
	def render_test(self, frame_index: int = None) -> dict:
		"""
		Render a single frame with PNG previews to check project settings.
		"""
		if frame_index is None:
			frame_index = self.project.test_frame
		if frame_index is None:
			frame_index = self.project.frame_start
		total = self.source.frame_count
		if total is not None and frame_index >= total:
			raise FrameOutOfRange(frame_index, 0, total)
		try:
			raw = self.source.read_frame(frame_index)
		except Exception as error:
			raise FrameRenderError(frame_index, 'decode', error) from error
		if raw is None:
			raise FrameOutOfRange(frame_index, 0, frame_index)
		script = None
		if self.project.make_tp:
			script = self.build_traversal(frame_index, 1)
		grid = self._normalize(frame_index, raw)
		tree = self._compress(frame_index, grid)
		assembler = GridAssembler(frame_index)
		tree = assembler.extract_test_frame({frame_index: tree}, frame_index)
		summary = {
			'namespace': self.project.namespace,
			'frame_index': frame_index,
			'node_count': tree.node_count(),
			'depth': tree.depth(),
			'expanded_size': tree.arena.expanded_size(tree.root),
			'previews': preview.write_test_previews(raw, grid, self.settings.levels,
				self.config.output_root_dir, frame_index),
			'frame_file': None,
			'grid_file': None,
			'traversal_files': [],
		}
		if self.project.make_frames:
			summary['frame_file'] = self._write_frame(frame_index, tree, frame_index, 1)
		if self.project.make_grid:
			summary['grid_file'] = self.write_grid({frame_index: tree}, frame_index)
		if self.project.make_tp:
			summary['traversal_files'] = self.write_traversal(script, frame_index, 1)
		if not utils.is_quiet_mode():
			print(f"{self.project.namespace}: test frame {frame_index}, "
				f"{summary['node_count']} nodes ({summary['expanded_size']} unshared), "
				f"depth {summary['depth']}")
		return summary
