#!/usr/bin/env python3

import math

#============================================

LAYOUT_KINDS = ('row', 'spiral')

#============================================

def spiral_coords(n: int) -> tuple:
	"""
	Cell of the n-th entry on a square spiral that starts at (0, 0).

	Ring L holds entries (2L-1)^2 .. (2L+1)^2 - 1, walked up the right side,
	left along the top, down the left side and right along the bottom.
	"""
	if n < 0:
		raise RuntimeError("spiral index must be non-negative")
	if n == 0:
		return (0, 0)
	layer = (math.isqrt(n) - 1) // 2 + 1
	position = n - (2 * layer - 1) ** 2
	side = 2 * layer
	if position < side:
		return (layer, -layer + 1 + position)
	if position < 2 * side:
		return (layer - 1 - (position - side), layer)
	if position < 3 * side:
		return (-layer, layer - 1 - (position - 2 * side))
	return (-layer + 1 + (position - 3 * side), -layer)

#============================================

def spiral_index(cell_x: int, cell_z: int) -> int:
	layer = max(abs(cell_x), abs(cell_z))
	if layer == 0:
		return 0
	start = (2 * layer - 1) ** 2
	side = 2 * layer
	if cell_x == layer and cell_z > -layer:
		return start + (cell_z + layer - 1)
	if cell_z == layer:
		return start + side + (layer - 1 - cell_x)
	if cell_x == -layer:
		return start + 2 * side + (layer - 1 - cell_z)
	return start + 3 * side + (cell_x + layer - 1)

#============================================

class FrameLayout():
	"""
	Places frame offsets (FrameIndex - frame_start) in world x/z.

	Each frame occupies a width x height cell; neighbouring cells are
	separated by spacing frame-widths of empty terrain.
	"""
	def __init__(self, frame_width: int, frame_height: int, kind: str = 'row',
		spacing: int = 1):
		if kind not in LAYOUT_KINDS:
			raise RuntimeError(f"layout must be one of {', '.join(LAYOUT_KINDS)}")
		if frame_width <= 0 or frame_height <= 0:
			raise RuntimeError("frame size must be positive")
		if spacing < 0:
			raise RuntimeError("spacing must be non-negative")
		self.frame_width = frame_width
		self.frame_height = frame_height
		self.kind = kind
		self.spacing = spacing
		self.stride_x = frame_width * (1 + spacing)
		self.stride_z = frame_height * (1 + spacing)

	#============================
	def cell(self, offset: int) -> tuple:
		if offset < 0:
			raise RuntimeError("frame offset must be non-negative")
		if self.kind == 'row':
			return (offset, 0)
		return spiral_coords(offset)

	#============================
	def origin(self, offset: int) -> tuple:
		(cell_x, cell_z) = self.cell(offset)
		return (cell_x * self.stride_x, cell_z * self.stride_z)

	#============================
	def center(self, offset: int) -> tuple:
		(origin_x, origin_z) = self.origin(offset)
		return (origin_x + self.frame_width // 2, origin_z + self.frame_height // 2)

	#============================
	def locate(self, x: int, z: int):
		"""
		Map a world position to (offset, local_x, local_z), or None in a gap.
		"""
		cell_x = x // self.stride_x
		cell_z = z // self.stride_z
		local_x = x - cell_x * self.stride_x
		local_z = z - cell_z * self.stride_z
		if local_x >= self.frame_width or local_z >= self.frame_height:
			return None
		if self.kind == 'row':
			if cell_z != 0 or cell_x < 0:
				return None
			return (cell_x, local_x, local_z)
		return (spiral_index(cell_x, cell_z), local_x, local_z)

	#============================
	def describe(self) -> dict:
		return {
			'kind': self.kind,
			'frame_width': self.frame_width,
			'frame_height': self.frame_height,
			'spacing': self.spacing,
			'stride_x': self.stride_x,
			'stride_z': self.stride_z,
		}
