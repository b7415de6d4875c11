#!/usr/bin/env python3

"""
Expression nodes for density-function trees.

Nodes are stored in an ExpressionArena and addressed by Reference. The arena
hash-conses every node, so equal sub-branches are stored exactly once and a
tree is really a DAG. A node can only reference nodes created before it,
which keeps the graph acyclic and makes ascending id order a valid
children-first order for every bottom-up pass below.
"""

from dataclasses import dataclass

#============================================

AXES = ('frame', 'x', 'y', 'z')

#============================================

@dataclass(frozen=True)
class Reference():
	id: int

#============================================

@dataclass(frozen=True)
class Constant():
	value: int

#============================================

@dataclass(frozen=True)
class Conditional():
	"""
	coord[axis] < threshold selects then_branch, everything else else_branch.
	"""
	axis: str
	threshold: int
	then_branch: Reference
	else_branch: Reference

#============================================

class ExpressionArena():
	def __init__(self):
		self.nodes = []
		self._index = {}

	#============================
	def __len__(self) -> int:
		return len(self.nodes)

	#============================
	def _intern(self, key: tuple, node) -> Reference:
		node_id = self._index.get(key)
		if node_id is None:
			node_id = len(self.nodes)
			self.nodes.append(node)
			self._index[key] = node_id
		return Reference(node_id)

	#============================
	def constant(self, value: int) -> Reference:
		value = int(value)
		return self._intern(('constant', value), Constant(value))

	#============================
	def conditional(self, axis: str, threshold: int, then_branch: Reference,
		else_branch: Reference) -> Reference:
		if axis not in AXES:
			raise RuntimeError(f"unknown axis: {axis}")
		self.node(then_branch)
		self.node(else_branch)
		# both sides agree, the test is redundant
		if then_branch == else_branch:
			return then_branch
		threshold = int(threshold)
		key = ('conditional', axis, threshold, then_branch.id, else_branch.id)
		return self._intern(key,
			Conditional(axis, threshold, then_branch, else_branch))

	#============================
	def node(self, ref: Reference):
		if not isinstance(ref, Reference):
			raise RuntimeError(f"expected Reference, got {type(ref).__name__}")
		if ref.id < 0 or ref.id >= len(self.nodes):
			raise RuntimeError(f"dangling reference: {ref.id}")
		return self.nodes[ref.id]

	#============================
	def evaluate(self, ref: Reference, coords: dict) -> int:
		node = self.node(ref)
		while isinstance(node, Conditional):
			if coords[node.axis] < node.threshold:
				node = self.nodes[node.then_branch.id]
			else:
				node = self.nodes[node.else_branch.id]
		return node.value

	#============================
	def reachable(self, ref: Reference) -> list:
		"""
		Ids reachable from ref, ascending (children before parents).
		"""
		self.node(ref)
		seen = set()
		stack = [ref.id]
		while stack:
			node_id = stack.pop()
			if node_id in seen:
				continue
			seen.add(node_id)
			node = self.nodes[node_id]
			if isinstance(node, Conditional):
				stack.append(node.then_branch.id)
				stack.append(node.else_branch.id)
		return sorted(seen)

	#============================
	def node_count(self, ref: Reference) -> int:
		return len(self.reachable(ref))

	#============================
	def depth(self, ref: Reference) -> int:
		depths = {}
		for node_id in self.reachable(ref):
			node = self.nodes[node_id]
			if isinstance(node, Conditional):
				depths[node_id] = 1 + max(depths[node.then_branch.id],
					depths[node.else_branch.id])
			else:
				depths[node_id] = 0
		return depths[ref.id]

	#============================
	def expanded_size(self, ref: Reference) -> int:
		"""
		Node count if every shared branch were written out inline.
		"""
		sizes = {}
		for node_id in self.reachable(ref):
			node = self.nodes[node_id]
			if isinstance(node, Conditional):
				sizes[node_id] = 1 + sizes[node.then_branch.id] + sizes[node.else_branch.id]
			else:
				sizes[node_id] = 1
		return sizes[ref.id]

	#============================
	def parent_counts(self, ref: Reference) -> dict:
		counts = {}
		for node_id in self.reachable(ref):
			node = self.nodes[node_id]
			if isinstance(node, Conditional):
				for child in (node.then_branch.id, node.else_branch.id):
					counts[child] = counts.get(child, 0) + 1
		return counts

	#============================
	def canonical_form(self, ref: Reference) -> tuple:
		"""
		Arena-independent description of the DAG rooted at ref.

		Nodes are numbered in preorder (then before else) on first visit, so
		two arenas holding the same shape produce equal tuples.
		"""
		order = []
		local = {}
		stack = [ref.id]
		while stack:
			node_id = stack.pop()
			if node_id in local:
				continue
			local[node_id] = len(order)
			order.append(node_id)
			node = self.nodes[node_id]
			if isinstance(node, Conditional):
				stack.append(node.else_branch.id)
				stack.append(node.then_branch.id)
		form = []
		for node_id in order:
			node = self.nodes[node_id]
			if isinstance(node, Conditional):
				form.append(('conditional', node.axis, node.threshold,
					local[node.then_branch.id], local[node.else_branch.id]))
			else:
				form.append(('constant', node.value))
		return tuple(form)

	#============================
	def import_tree(self, source, ref: Reference) -> Reference:
		"""
		Copy the DAG rooted at ref from another arena, sharing existing nodes.
		"""
		mapping = {}
		for node_id in source.reachable(ref):
			node = source.nodes[node_id]
			if isinstance(node, Conditional):
				new_ref = self.conditional(node.axis, node.threshold,
					mapping[node.then_branch.id], mapping[node.else_branch.id])
			else:
				new_ref = self.constant(node.value)
			mapping[node_id] = new_ref
		return mapping[ref.id]

	#============================
	def validate(self, ref: Reference, extents: dict) -> None:
		"""
		Check that every conditional splits its region into two non-empty parts.

		Args:
			ref: Root to check.
			extents: axis -> (low, high) half-open legal range.
		"""
		stack = [(ref.id, dict(extents))]
		while stack:
			(node_id, bounds) = stack.pop()
			node = self.nodes[node_id]
			if isinstance(node, Constant):
				continue
			if not isinstance(node, Conditional):
				raise RuntimeError(f"node {node_id} is not a valid expression node")
			if node.axis not in bounds:
				raise RuntimeError(f"node {node_id} tests axis {node.axis} with no extent")
			(low, high) = bounds[node.axis]
			if not (low < node.threshold < high):
				raise RuntimeError(
					f"node {node_id} threshold {node.threshold} on {node.axis} "
					f"does not split [{low}, {high})"
				)
			then_bounds = dict(bounds)
			then_bounds[node.axis] = (low, node.threshold)
			else_bounds = dict(bounds)
			else_bounds[node.axis] = (node.threshold, high)
			stack.append((node.then_branch.id, then_bounds))
			stack.append((node.else_branch.id, else_bounds))

#============================================

class ExpressionTree():
	"""
	An arena and a root: one frame's tree, or a standalone extracted frame.
	"""
	def __init__(self, arena: ExpressionArena, root: Reference, width: int = None,
		height: int = None, frame_index: int = None):
		self.arena = arena
		self.root = root
		self.width = width
		self.height = height
		self.frame_index = frame_index

	#============================
	def evaluate(self, x: int, z: int) -> int:
		return self.arena.evaluate(self.root, {'x': x, 'z': z})

	#============================
	def node_count(self) -> int:
		return self.arena.node_count(self.root)

	#============================
	def depth(self) -> int:
		return self.arena.depth(self.root)

	#============================
	def canonical_form(self) -> tuple:
		return self.arena.canonical_form(self.root)

	#============================
	def extents(self) -> dict:
		return {'x': (0, self.width), 'z': (0, self.height)}

	#============================
	def validate(self) -> None:
		self.arena.validate(self.root, self.extents())

	#============================
	def __eq__(self, other) -> bool:
		if not isinstance(other, ExpressionTree):
			return NotImplemented
		return self.canonical_form() == other.canonical_form()

	#============================
	def __repr__(self) -> str:
		return (f"ExpressionTree(frame={self.frame_index}, "
			f"{self.width}x{self.height}, nodes={self.node_count()})")
