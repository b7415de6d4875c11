#!/usr/bin/env python3

import os
from v2dflib.core import utils
from v2dflib.exporters.document import write_text_atomic

#============================================

# observer looks straight down onto the frame plane
TP_ROTATION = "180 90"
START_FUNCTION = "play"

#============================================

def build_mcfunction_files(script, namespace: str, function_dir: str) -> dict:
	"""
	One function per frame that teleports the observer and queues the next.

	Args:
		script: TraversalScript.
		namespace: Datapack namespace.
		function_dir: Function directory relative to the namespace root.

	Returns:
		dict: file name -> function text.
	"""
	files = {}
	commands = list(script)
	for position, command in enumerate(commands):
		lines = [f"tp @a {command.x} {command.y} {command.z} {TP_ROTATION}"]
		if position + 1 < len(commands):
			next_index = commands[position + 1].frame_index
			next_id = utils.resource_id(namespace, function_dir, next_index)
			if command.delay > 0:
				lines.append(f"schedule function {next_id} {command.delay}t")
			else:
				# several source frames land on one tick; skip straight on
				lines.append(f"function {next_id}")
		files[f"{command.frame_index}.mcfunction"] = "\n".join(lines) + "\n"
	if len(commands) > 0:
		first_id = utils.resource_id(namespace, function_dir, commands[0].frame_index)
		files[f"{START_FUNCTION}.mcfunction"] = f"function {first_id}\n"
	return files

#============================================

def write_mcfunction_files(script, namespace: str, function_dir: str,
	output_dir: str) -> list:
	written = []
	files = build_mcfunction_files(script, namespace, function_dir)
	for name, text in files.items():
		path = os.path.join(output_dir, name)
		write_text_atomic(path, text)
		written.append(path)
	return written
