#!/usr/bin/env python3

import math
from dataclasses import dataclass
from v2dflib.core.errors import FrameOutOfRange
from v2dflib.core.errors import NonContiguousFrameRange
from v2dflib.core.errors import V2dfError
from v2dflib.core.expression import Conditional
from v2dflib.core.expression import ExpressionArena
from v2dflib.core.expression import ExpressionTree
from v2dflib.core.layout import FrameLayout

#============================================

DEFAULT_OUT_OF_BOUNDS = 256

#============================================

@dataclass(frozen=True)
class FrameArtifact():
	frame_index: int
	name: str
	tree: ExpressionTree

#============================================

class GridExpression():
	"""
	All frames of a project behind one root.

	The top of the tree is a balanced binary search on the frame axis, guarded
	by out-of-bounds constants below frame_start and past the last frame.
	"""
	def __init__(self, arena: ExpressionArena, root, frame_start: int,
		frame_refs: list, width: int, height: int, layout: FrameLayout = None,
		out_of_bounds: int = DEFAULT_OUT_OF_BOUNDS):
		self.arena = arena
		self.root = root
		self.frame_start = frame_start
		self.frame_refs = list(frame_refs)
		self.width = width
		self.height = height
		self.layout = layout
		self.out_of_bounds = out_of_bounds

	#============================
	@property
	def frame_count(self) -> int:
		return len(self.frame_refs)

	#============================
	@property
	def frame_end(self) -> int:
		return self.frame_start + self.frame_count

	#============================
	def frame_indices(self) -> range:
		return range(self.frame_start, self.frame_end)

	#============================
	def resolve(self, frame_index: int):
		"""
		Follow the frame search down to the frame's own root.
		"""
		if frame_index < self.frame_start or frame_index >= self.frame_end:
			raise FrameOutOfRange(frame_index, self.frame_start, self.frame_count)
		ref = self.root
		node = self.arena.node(ref)
		while isinstance(node, Conditional) and node.axis == 'frame':
			if frame_index < node.threshold:
				ref = node.then_branch
			else:
				ref = node.else_branch
			node = self.arena.node(ref)
		return ref

	#============================
	def frame_tree(self, frame_index: int) -> ExpressionTree:
		return ExpressionTree(self.arena, self.resolve(frame_index), width=self.width,
			height=self.height, frame_index=frame_index)

	#============================
	def evaluate(self, frame_index: int, x: int, z: int) -> int:
		return self.arena.evaluate(self.root, {'frame': frame_index, 'x': x, 'z': z})

	#============================
	def evaluate_world(self, x: int, z: int) -> int:
		if self.layout is None:
			raise RuntimeError("grid has no layout for world coordinates")
		located = self.layout.locate(x, z)
		if located is None:
			return self.out_of_bounds
		(offset, local_x, local_z) = located
		return self.evaluate(self.frame_start + offset, local_x, local_z)

	#============================
	def extents(self) -> dict:
		return {
			'frame': (-math.inf, math.inf),
			'x': (0, self.width),
			'z': (0, self.height),
		}

	#============================
	def validate(self) -> None:
		self.arena.validate(self.root, self.extents())

	#============================
	def node_count(self) -> int:
		return self.arena.node_count(self.root)

#============================================

class GridAssembler():
	def __init__(self, frame_start: int, layout: FrameLayout = None,
		out_of_bounds: int = DEFAULT_OUT_OF_BOUNDS):
		if frame_start < 0:
			raise RuntimeError("frame_start must be non-negative")
		self.frame_start = frame_start
		self.layout = layout
		self.out_of_bounds = out_of_bounds

	#============================
	def check_contiguous(self, indices) -> list:
		indices = list(indices)
		if len(indices) == 0:
			raise NonContiguousFrameRange(indices, self.frame_start)
		for position, index in enumerate(indices):
			if index != self.frame_start + position:
				raise NonContiguousFrameRange(indices, self.frame_start)
		return indices

	#============================
	def _ordered(self, frames) -> list:
		if isinstance(frames, dict):
			items = list(frames.items())
		else:
			items = list(frames)
		# insertion order is temporal order; a dict keyed out of order is a gap
		indices = self.check_contiguous(index for (index, _) in items)
		trees = [tree for (_, tree) in items]
		(width, height) = (trees[0].width, trees[0].height)
		for index, tree in zip(indices, trees):
			if (tree.width, tree.height) != (width, height):
				raise V2dfError(
					f"frame {index} is {tree.width}x{tree.height}, "
					f"expected {width}x{height}; border must match across frames"
				)
		return list(zip(indices, trees))

	#============================
	def _build_search(self, arena: ExpressionArena, refs: list, low: int, high: int):
		if high - low == 1:
			return refs[low]
		middle = (low + high) // 2
		then_ref = self._build_search(arena, refs, low, middle)
		else_ref = self._build_search(arena, refs, middle, high)
		return arena.conditional('frame', self.frame_start + middle, then_ref, else_ref)

	#============================
	def assemble(self, frames) -> GridExpression:
		"""
		Combine per-frame trees into one frame-addressed GridExpression.

		Args:
			frames: dict or (index, ExpressionTree) pairs, in temporal order.

		Returns:
			GridExpression: Combined structure sharing equal branches across frames.
		"""
		ordered = self._ordered(frames)
		arena = ExpressionArena()
		refs = []
		for (_, tree) in ordered:
			refs.append(arena.import_tree(tree.arena, tree.root))
		frame_count = len(refs)
		search = self._build_search(arena, refs, 0, frame_count)
		out_of_bounds = arena.constant(self.out_of_bounds)
		upper = arena.conditional('frame', self.frame_start + frame_count, search,
			out_of_bounds)
		root = arena.conditional('frame', self.frame_start, out_of_bounds, upper)
		first_tree = ordered[0][1]
		return GridExpression(arena, root, self.frame_start, refs, first_tree.width,
			first_tree.height, layout=self.layout, out_of_bounds=self.out_of_bounds)

	#============================
	def frame_artifact(self, frame_index: int, tree: ExpressionTree) -> FrameArtifact:
		if frame_index < self.frame_start:
			raise FrameOutOfRange(frame_index, self.frame_start, 0)
		return FrameArtifact(frame_index, f"{frame_index}", tree)

	#============================
	def iter_frame_artifacts(self, frames):
		"""
		Directory-per-frame emission: one standalone artifact per frame.
		"""
		for (index, tree) in self._ordered(frames):
			yield self.frame_artifact(index, tree)

	#============================
	def extract(self, grid: GridExpression, frame_index: int) -> ExpressionTree:
		arena = ExpressionArena()
		root = arena.import_tree(grid.arena, grid.resolve(frame_index))
		return ExpressionTree(arena, root, width=grid.width, height=grid.height,
			frame_index=frame_index)

	#============================
	def extract_test_frame(self, frames, frame_index: int) -> ExpressionTree:
		"""
		Pull one frame out on its own, without building the combined grid.
		"""
		if not isinstance(frames, dict):
			frames = dict(frames)
		tree = frames.get(frame_index)
		if tree is None:
			raise FrameOutOfRange(frame_index, self.frame_start, len(frames))
		arena = ExpressionArena()
		root = arena.import_tree(tree.arena, tree.root)
		return ExpressionTree(arena, root, width=tree.width, height=tree.height,
			frame_index=frame_index)
