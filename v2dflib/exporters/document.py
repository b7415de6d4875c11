#!/usr/bin/env python3

"""
JSON documents for expression trees, grids and traversal scripts.

Node encoding:
	{"type": "constant", "value": 1}
	{"type": "conditional", "axis": "x", "threshold": 12, "then": {...}, "else": {...}}
	{"type": "reference", "id": 3}              entry 3 of the document's "nodes" list
	{"type": "reference", "id": "ns:frames/7"}  another emitted artifact

Conditionals with more than one parent, and conditionals nested deeper than
max_inline_depth, are written once into "nodes" and referenced by position,
so the JSON nesting stays bounded no matter how deep the tree is.
"""

import json
import os
import tempfile
from v2dflib.core.errors import V2dfError
from v2dflib.core.errors import WriteError
from v2dflib.core.expression import Conditional
from v2dflib.core.expression import ExpressionArena
from v2dflib.core.expression import ExpressionTree

#============================================

FORMAT_VERSION = 1
EXPRESSION_FORMAT = "v2df-expression"
GRID_FORMAT = "v2df-grid"
TRAVERSAL_FORMAT = "v2df-traversal"
DEFAULT_INLINE_DEPTH = 64

#============================================

class TreeEncoder():
	def __init__(self, arena: ExpressionArena, max_inline_depth: int = DEFAULT_INLINE_DEPTH,
		external: dict = None):
		if max_inline_depth < 1:
			raise RuntimeError("max_inline_depth must be at least 1")
		self.arena = arena
		self.max_inline_depth = max_inline_depth
		# node id -> artifact name written elsewhere
		self.external = external or {}

	#============================
	def encode(self, root) -> tuple:
		"""
		Returns:
			tuple: (root node json, list of shared node json).
		"""
		counts = self.arena.parent_counts(root)
		self._shared = {node_id for node_id, count in counts.items() if count > 1}
		self._table_ids = {}
		self._queue = []
		self._table = []
		root_json = self._emit(root.id, 0)
		position = 0
		while position < len(self._queue):
			node_id = self._queue[position]
			self._table.append(self._emit(node_id, 0))
			position += 1
		return (root_json, self._table)

	#============================
	def _reference(self, node_id: int) -> dict:
		table_id = self._table_ids.get(node_id)
		if table_id is None:
			table_id = len(self._queue)
			self._table_ids[node_id] = table_id
			self._queue.append(node_id)
		return {'type': 'reference', 'id': table_id}

	#============================
	def _emit(self, node_id: int, depth: int) -> dict:
		node = self.arena.nodes[node_id]
		if not isinstance(node, Conditional):
			return {'type': 'constant', 'value': node.value}
		if depth > 0:
			if node_id in self.external:
				return {'type': 'reference', 'id': self.external[node_id]}
			if node_id in self._shared or depth >= self.max_inline_depth:
				return self._reference(node_id)
		return {
			'type': 'conditional',
			'axis': node.axis,
			'threshold': node.threshold,
			'then': self._emit(node.then_branch.id, depth + 1),
			'else': self._emit(node.else_branch.id, depth + 1),
		}

#============================================

class TreeDecoder():
	"""
	Rebuild an arena from a document written by TreeEncoder.
	"""
	def __init__(self, resolve_external=None):
		# name -> ExpressionTree for references to other artifacts
		self.resolve_external = resolve_external

	#============================
	def decode(self, document: dict, arena: ExpressionArena = None) -> tuple:
		if arena is None:
			arena = ExpressionArena()
		self._arena = arena
		self._table = document.get('nodes', [])
		self._resolved = {}
		self._external = {}
		for table_id in range(len(self._table)):
			self._resolve_table_entry(table_id)
		root = self._build(document['root'])
		return (arena, root)

	#============================
	def _references(self, node_json: dict, found: list) -> list:
		kind = node_json.get('type')
		if kind == 'reference' and isinstance(node_json.get('id'), int):
			found.append(node_json['id'])
		elif kind == 'conditional':
			self._references(node_json['then'], found)
			self._references(node_json['else'], found)
		return found

	#============================
	def _resolve_table_entry(self, table_id: int) -> None:
		# post-order over table entries without recursing through references
		stack = [(table_id, False)]
		active = set()
		while stack:
			(current, expanded) = stack.pop()
			if current in self._resolved:
				continue
			if current < 0 or current >= len(self._table):
				raise V2dfError(f"reference to missing node entry {current}")
			if expanded:
				self._resolved[current] = self._build(self._table[current])
				active.discard(current)
				continue
			if current in active:
				raise V2dfError(f"node entry {current} references itself")
			active.add(current)
			stack.append((current, True))
			for child in self._references(self._table[current], []):
				if child not in self._resolved:
					stack.append((child, False))

	#============================
	def _build(self, node_json: dict):
		kind = node_json.get('type')
		if kind == 'constant':
			return self._arena.constant(node_json['value'])
		if kind == 'conditional':
			then_ref = self._build(node_json['then'])
			else_ref = self._build(node_json['else'])
			return self._arena.conditional(node_json['axis'], node_json['threshold'],
				then_ref, else_ref)
		if kind == 'reference':
			target = node_json['id']
			if isinstance(target, int):
				return self._resolved[target]
			return self._build_external(target)
		raise V2dfError(f"unknown node type: {kind}")

	#============================
	def _build_external(self, name: str):
		if name in self._external:
			return self._external[name]
		if self.resolve_external is None:
			raise V2dfError(f"no resolver for external reference {name}")
		tree = self.resolve_external(name)
		ref = self._arena.import_tree(tree.arena, tree.root)
		self._external[name] = ref
		return ref

#============================================

def tree_document(tree: ExpressionTree, provenance: dict,
	max_inline_depth: int = DEFAULT_INLINE_DEPTH) -> dict:
	(root_json, table) = TreeEncoder(tree.arena, max_inline_depth).encode(tree.root)
	return {
		'format': EXPRESSION_FORMAT,
		'version': FORMAT_VERSION,
		'provenance': provenance,
		'extent': {'x': [0, tree.width], 'z': [0, tree.height]},
		'root': root_json,
		'nodes': table,
	}

#============================================

def grid_document(grid, provenance: dict, frame_names: dict = None,
	max_inline_depth: int = DEFAULT_INLINE_DEPTH) -> dict:
	"""
	Document for a GridExpression.

	Args:
		grid: GridExpression to write.
		provenance: Project and source description.
		frame_names: Optional frame index -> artifact name; those frames are
			written as references to their own documents instead of inline.
		max_inline_depth: Nesting bound before hoisting into "nodes".
	"""
	external = {}
	if frame_names:
		for frame_index, name in frame_names.items():
			ref = grid.resolve(frame_index)
			if isinstance(grid.arena.node(ref), Conditional):
				external[ref.id] = name
	encoder = TreeEncoder(grid.arena, max_inline_depth, external=external)
	(root_json, table) = encoder.encode(grid.root)
	document = {
		'format': GRID_FORMAT,
		'version': FORMAT_VERSION,
		'provenance': provenance,
		'frame_range': [grid.frame_start, grid.frame_end],
		'extent': {'x': [0, grid.width], 'z': [0, grid.height]},
		'out_of_bounds': grid.out_of_bounds,
		'root': root_json,
		'nodes': table,
	}
	if grid.layout is not None:
		document['layout'] = grid.layout.describe()
	return document

#============================================

def traversal_document(script, provenance: dict) -> dict:
	commands = []
	for command in script:
		commands.append({
			'frame': command.frame_index,
			'x': command.x,
			'y': command.y,
			'z': command.z,
			'tick': command.tick,
			'delay': command.delay,
		})
	return {
		'format': TRAVERSAL_FORMAT,
		'version': FORMAT_VERSION,
		'provenance': provenance,
		'frame_range': [script.frame_start, script.frame_start + script.frame_count],
		'fps': str(script.fps),
		'tick_rate': script.tick_rate,
		'ticks_per_frame': str(script.ticks_per_frame),
		'max_drift_ticks': str(script.max_drift),
		'commands': commands,
	}

#============================================

def tree_from_document(document: dict, resolve_external=None) -> ExpressionTree:
	if document.get('format') not in (EXPRESSION_FORMAT, GRID_FORMAT):
		raise V2dfError(f"not an expression document: {document.get('format')}")
	(arena, root) = TreeDecoder(resolve_external).decode(document)
	extent = document.get('extent', {})
	width = extent.get('x', [0, None])[1]
	height = extent.get('z', [0, None])[1]
	frame_index = document.get('provenance', {}).get('frame_index')
	return ExpressionTree(arena, root, width=width, height=height,
		frame_index=frame_index)

#============================================

class DocumentWriter():
	def __init__(self, indent: int = 2):
		self.indent = indent

	#============================
	def dumps(self, document: dict) -> str:
		return json.dumps(document, indent=self.indent)

	#============================
	def write(self, document: dict, path: str) -> str:
		"""
		Write a document atomically: a reader sees the old file or the new one.
		"""
		try:
			text = self.dumps(document)
		except (TypeError, ValueError, RecursionError) as error:
			raise WriteError(path, f"cannot encode document: {error}") from error
		write_text_atomic(path, text + "\n")
		return path

#============================================

def write_text_atomic(path: str, text: str) -> None:
	directory = os.path.dirname(os.path.abspath(path))
	temp_path = None
	try:
		os.makedirs(directory, exist_ok=True)
		(handle, temp_path) = tempfile.mkstemp(prefix=".v2df-", suffix=".tmp",
			dir=directory)
		with os.fdopen(handle, 'w', encoding='utf-8') as temp_file:
			temp_file.write(text)
		os.replace(temp_path, path)
		temp_path = None
	except OSError as error:
		raise WriteError(path, str(error)) from error
	finally:
		if temp_path is not None and os.path.exists(temp_path):
			os.remove(temp_path)
	return

#============================================

def read_document(path: str) -> dict:
	with open(path, 'r', encoding='utf-8') as handle:
		data = json.load(handle)
	if not isinstance(data, dict):
		raise V2dfError(f"{path} is not a v2df document")
	return data
