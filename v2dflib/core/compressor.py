#!/usr/bin/env python3

"""
Compile a normalized PixelGrid into a conditional expression tree.

Regions are split until uniform. Each split prefers peeling off the largest
uniform strip along an edge of the region (a run-length style merge), which
keeps trees for high-contrast footage small; regions without any uniform edge
strip are bisected at the middle of their longer side.
"""

import numpy
from v2dflib.core.expression import ExpressionArena
from v2dflib.core.expression import ExpressionTree
from v2dflib.core.normalize import PixelGrid

#============================================

AXIS_RANK = {'x': 0, 'z': 1}

#============================================

def _leading_run(flags: numpy.ndarray) -> int:
	if flags.all():
		return int(flags.size)
	return int(numpy.argmin(flags))

#============================================

def choose_split(region: numpy.ndarray) -> tuple:
	"""
	Pick the split for a non-uniform region.

	Args:
		region: 2D array indexed [z][x], not uniform.

	Returns:
		tuple: (axis, local_threshold) with 0 < local_threshold < extent.
	"""
	(height, width) = region.shape
	col_top = region[0, :]
	col_uniform = (region == col_top).all(axis=0)
	row_left = region[:, 0]
	row_uniform = (region == row_left[:, None]).all(axis=1)
	lead_x = _leading_run(col_uniform & (col_top == col_top[0]))
	trail_x = _leading_run((col_uniform & (col_top == col_top[-1]))[::-1])
	lead_z = _leading_run(row_uniform & (row_left == row_left[0]))
	trail_z = _leading_run((row_uniform & (row_left == row_left[-1]))[::-1])
	candidates = []
	if 0 < lead_x < width:
		candidates.append((lead_x * height, 'x', lead_x, 0, width))
	if 0 < trail_x < width:
		candidates.append((trail_x * height, 'x', width - trail_x, 1, width))
	if 0 < lead_z < height:
		candidates.append((lead_z * width, 'z', lead_z, 0, height))
	if 0 < trail_z < height:
		candidates.append((trail_z * width, 'z', height - trail_z, 1, height))
	if len(candidates) == 0:
		if height > width:
			return ('z', height // 2)
		return ('x', width // 2)
	# largest uniform side, then nearest the midpoint, then x before z,
	# then leading before trailing
	best = min(candidates, key=lambda item: (
		-item[0], abs(2 * item[2] - item[4]), AXIS_RANK[item[1]], item[3]))
	return (best[1], best[2])

#============================================

class FrameCompressor():
	def compress(self, grid: PixelGrid) -> ExpressionTree:
		values = grid.values
		(height, width) = values.shape
		# plan[slot] is ('constant', value) or ('split', axis, threshold,
		# then_slot, else_slot); children always get larger slots than parents
		plan = [None]
		stack = [(0, 0, width, 0, height)]
		while stack:
			(slot, x0, x1, z0, z1) = stack.pop()
			region = values[z0:z1, x0:x1]
			first = region[0, 0]
			if (region == first).all():
				plan[slot] = ('constant', int(first))
				continue
			(axis, local_threshold) = choose_split(region)
			then_slot = len(plan)
			else_slot = then_slot + 1
			plan.append(None)
			plan.append(None)
			if axis == 'x':
				threshold = x0 + local_threshold
				stack.append((then_slot, x0, threshold, z0, z1))
				stack.append((else_slot, threshold, x1, z0, z1))
			else:
				threshold = z0 + local_threshold
				stack.append((then_slot, x0, x1, z0, threshold))
				stack.append((else_slot, x0, x1, threshold, z1))
			plan[slot] = ('split', axis, threshold, then_slot, else_slot)
		arena = ExpressionArena()
		refs = [None] * len(plan)
		for slot in range(len(plan) - 1, -1, -1):
			entry = plan[slot]
			if entry[0] == 'constant':
				refs[slot] = arena.constant(entry[1])
			else:
				(_, axis, threshold, then_slot, else_slot) = entry
				refs[slot] = arena.conditional(axis, threshold, refs[then_slot],
					refs[else_slot])
		return ExpressionTree(arena, refs[0], width=width, height=height,
			frame_index=grid.frame_index)

#============================================

def compress_grid(grid: PixelGrid) -> ExpressionTree:
	return FrameCompressor().compress(grid)
