#!/usr/bin/env python3

"""
Pytest coverage for the frame compressor.
"""

# Standard Library
import os
import sys

# PIP3 modules
import numpy
import pytest

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if REPO_ROOT not in sys.path:
	sys.path.insert(0, REPO_ROOT)

# local repo modules
from v2dflib.core.compressor import FrameCompressor
from v2dflib.core.compressor import choose_split
from v2dflib.core.compressor import compress_grid
from v2dflib.core.expression import Conditional
from v2dflib.core.normalize import PixelGrid

#============================================

def _random_grid(seed: int, shape: tuple, levels: int = 2) -> PixelGrid:
	rng = numpy.random.default_rng(seed)
	return PixelGrid(rng.integers(0, levels, size=shape))

#============================================

def _assert_round_trip(grid: PixelGrid, tree) -> None:
	for z in range(grid.height):
		for x in range(grid.width):
			assert tree.evaluate(x, z) == grid.value_at(x, z), (x, z)

#============================================

@pytest.mark.parametrize("seed,shape,levels", [
	(1, (13, 17), 2),
	(2, (1, 9), 2),
	(3, (9, 1), 3),
	(4, (16, 16), 4),
])
def test_round_trip_fidelity(seed, shape, levels):
	grid = _random_grid(seed, shape, levels)
	tree = compress_grid(grid)
	_assert_round_trip(grid, tree)
	# every conditional splits its region into two non-empty halves
	tree.validate()

#============================================

def test_uniform_grid_is_one_constant():
	grid = PixelGrid(numpy.full((5, 7), 1))
	tree = compress_grid(grid)
	assert tree.node_count() == 1
	assert tree.depth() == 0
	assert tree.evaluate(6, 4) == 1

#============================================

def test_half_split_uses_one_test():
	values = numpy.zeros((4, 8), dtype=numpy.int32)
	values[:, 4:] = 1
	tree = compress_grid(PixelGrid(values))
	root = tree.arena.node(tree.root)
	assert isinstance(root, Conditional)
	assert (root.axis, root.threshold) == ('x', 4)
	assert tree.node_count() == 3

#============================================

def test_deterministic_and_idempotent():
	grid = _random_grid(11, (12, 10))
	first = FrameCompressor().compress(grid)
	second = FrameCompressor().compress(grid)
	assert first == second
	rebuilt = numpy.zeros((grid.height, grid.width), dtype=numpy.int32)
	for z in range(grid.height):
		for x in range(grid.width):
			rebuilt[z, x] = first.evaluate(x, z)
	assert compress_grid(PixelGrid(rebuilt)) == first

#============================================

def test_thin_stripes_do_not_recurse():
	values = (numpy.arange(1500) % 2).reshape(1, 1500)
	grid = PixelGrid(values)
	tree = compress_grid(grid)
	_assert_round_trip(grid, tree)
	# at most one conditional per stripe boundary plus two constants
	assert tree.node_count() < 2 * grid.width

#============================================

def test_choose_split_bisects_longer_side():
	checker = numpy.indices((4, 6)).sum(axis=0) % 2
	assert choose_split(checker) == ('x', 3)
	assert choose_split(checker.T) == ('z', 3)
