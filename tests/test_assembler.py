#!/usr/bin/env python3

import os
import sys
import unittest

import numpy

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if REPO_ROOT not in sys.path:
	sys.path.insert(0, REPO_ROOT)

from v2dflib.core.assembler import GridAssembler
from v2dflib.core.compressor import compress_grid
from v2dflib.core.errors import FrameOutOfRange
from v2dflib.core.errors import NonContiguousFrameRange
from v2dflib.core.errors import V2dfError
from v2dflib.core.layout import FrameLayout
from v2dflib.core.normalize import PixelGrid

#============================================

def _grids(count: int, shape: tuple = (6, 5), seed: int = 3) -> list:
	rng = numpy.random.default_rng(seed)
	return [PixelGrid(rng.integers(0, 2, size=shape)) for _ in range(count)]

#============================================

class GridAssemblerTest(unittest.TestCase):
	#============================================
	def setUp(self) -> None:
		self.grids = _grids(3)
		self.trees = {5 + offset: compress_grid(grid)
			for offset, grid in enumerate(self.grids)}
		self.layout = FrameLayout(5, 6, kind='row', spacing=1)
		self.assembler = GridAssembler(5, layout=self.layout, out_of_bounds=256)
		self.grid = self.assembler.assemble(self.trees)

	#============================================
	def test_frame_addressing(self) -> None:
		"""Each frame index reaches exactly its own frame's values."""
		self.assertEqual(list(self.grid.frame_indices()), [5, 6, 7])
		for offset, source in enumerate(self.grids):
			frame_index = 5 + offset
			for z in range(source.height):
				for x in range(source.width):
					self.assertEqual(self.grid.evaluate(frame_index, x, z),
						source.value_at(x, z))
		self.grid.validate()

	#============================================
	def test_out_of_range(self) -> None:
		self.assertEqual(self.grid.evaluate(4, 0, 0), 256)
		self.assertEqual(self.grid.evaluate(8, 0, 0), 256)
		with self.assertRaises(FrameOutOfRange):
			self.grid.resolve(4)
		with self.assertRaises(FrameOutOfRange):
			self.grid.resolve(8)

	#============================================
	def test_gap_is_rejected(self) -> None:
		trees = [(5, self.trees[5]), (6, self.trees[6]), (8, self.trees[7])]
		with self.assertRaises(NonContiguousFrameRange) as context:
			self.assembler.assemble(trees)
		self.assertEqual(context.exception.gap, 7)

	#============================================
	def test_out_of_order_is_rejected(self) -> None:
		trees = {6: self.trees[6], 5: self.trees[5]}
		with self.assertRaises(NonContiguousFrameRange):
			self.assembler.assemble(trees)

	#============================================
	def test_mismatched_sizes(self) -> None:
		other = compress_grid(PixelGrid(numpy.zeros((4, 4), dtype=numpy.int32)))
		with self.assertRaises(V2dfError):
			self.assembler.assemble({5: self.trees[5], 6: other})

	#============================================
	def test_extraction_matches_standalone(self) -> None:
		extracted = self.assembler.extract(self.grid, 6)
		self.assertEqual(extracted, self.trees[6])
		self.assertEqual(self.assembler.extract_test_frame(self.trees, 6), extracted)
		self.assertEqual(extracted.frame_index, 6)
		with self.assertRaises(FrameOutOfRange):
			self.assembler.extract_test_frame(self.trees, 9)

	#============================================
	def test_test_frame_from_pairs(self) -> None:
		pairs = ((index, tree) for (index, tree) in self.trees.items())
		extracted = self.assembler.extract_test_frame(pairs, 7)
		self.assertEqual(extracted, self.trees[7])
		missing = ((index, tree) for (index, tree) in self.trees.items())
		with self.assertRaises(FrameOutOfRange):
			self.assembler.extract_test_frame(missing, 4)

	#============================================
	def test_equal_frames_share_nodes(self) -> None:
		tree = self.trees[5]
		grid = self.assembler.assemble({5: tree, 6: tree, 7: tree})
		self.assertEqual(grid.resolve(5), grid.resolve(7))
		# identical frames collapse the frame search down to the range guards
		self.assertLessEqual(grid.node_count(), tree.node_count() + 5)

	#============================================
	def test_world_coordinates(self) -> None:
		stride = self.layout.stride_x
		self.assertEqual(self.grid.evaluate_world(stride + 1, 2),
			self.grids[1].value_at(1, 2))
		# the empty spacing between cells
		self.assertEqual(self.grid.evaluate_world(5, 0), 256)

	#============================================
	def test_frame_trees_in_order(self) -> None:
		for frame_index in self.grid.frame_indices():
			tree = self.grid.frame_tree(frame_index)
			self.assertEqual(tree.frame_index, frame_index)
			self.assertEqual(tree, self.trees[frame_index])

	#============================================
	def test_frame_artifacts(self) -> None:
		names = [artifact.name for artifact in
			self.assembler.iter_frame_artifacts(self.trees)]
		self.assertEqual(names, ["5", "6", "7"])

#============================================

def main() -> None:
	"""Run the unit tests."""
	unittest.main()

#============================================

if __name__ == "__main__":
	main()
