#!/usr/bin/env python3

import os
import numpy
import PIL.Image
from v2dflib.core.errors import WriteError
from v2dflib.core.normalize import PixelGrid

#============================================

def raw_frame_image(raw: numpy.ndarray) -> PIL.Image.Image:
	if raw.ndim == 3 and raw.shape[2] == 1:
		return PIL.Image.fromarray(raw[:, :, 0])
	return PIL.Image.fromarray(raw)

#============================================

def grid_image(grid: PixelGrid, levels: int) -> PIL.Image.Image:
	"""
	Stretch normalized values 0..levels-1 back over 0..255 for viewing.
	"""
	scaled = (grid.values.astype(numpy.int64) * 255) // max(levels - 1, 1)
	array = numpy.clip(scaled, 0, 255).astype(numpy.uint8)
	return PIL.Image.fromarray(array)

#============================================

def save_image(image: PIL.Image.Image, path: str) -> str:
	try:
		os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
		image.save(path, "PNG")
	except OSError as error:
		raise WriteError(path, str(error)) from error
	return path

#============================================

def write_test_previews(raw: numpy.ndarray, grid: PixelGrid, levels: int,
	output_dir: str, frame_index: int) -> list:
	raw_path = os.path.join(output_dir, f"test_frame_{frame_index}.png")
	grid_path = os.path.join(output_dir, f"normalized_test_frame_{frame_index}.png")
	save_image(raw_frame_image(raw), raw_path)
	save_image(grid_image(grid, levels), grid_path)
	return [raw_path, grid_path]
