#!/usr/bin/env python3

"""
Pixel normalization: raw decoder frames to the small integer domain the
terrain engine understands, plus the uniform border applied to every frame.
"""

from dataclasses import dataclass
import numpy
import scipy.ndimage
from v2dflib.core.errors import InvalidPixelFormat

#============================================

SUPPORTED_CHANNELS = (1, 3, 4)
# ITU-R BT.601 luma weights, scaled to integers
LUMA_WEIGHTS = (299, 587, 114)
GRADIENT_MIDPOINT = 128

#============================================

@dataclass(frozen=True)
class NormalizeSettings():
	threshold: int = 128
	invert_colors: bool = False
	levels: int = 2
	gradient: bool = False
	border_width: int = 0
	border_value: int = 1

	#============================
	def __post_init__(self):
		if self.levels < 2 or self.levels > 256:
			raise RuntimeError("levels must be between 2 and 256")
		if self.threshold < 0 or self.threshold > 255:
			raise RuntimeError("threshold must be between 0 and 255")
		if self.border_width < 0:
			raise RuntimeError("border_width must be non-negative")
		if self.border_value < 0 or self.border_value >= self.levels:
			raise RuntimeError(
				f"border_color must be in the value domain [0, {self.levels - 1}]"
			)

#============================================

class PixelGrid():
	"""
	Read-only 2D grid of normalized values, indexed [z][x].
	"""
	def __init__(self, values, frame_index: int = None):
		array = numpy.array(values, dtype=numpy.int32, copy=True)
		if array.ndim != 2 or array.shape[0] == 0 or array.shape[1] == 0:
			raise InvalidPixelFormat("pixel grid must be a non-empty 2D array",
				frame_index=frame_index)
		array.flags.writeable = False
		self.values = array
		self.frame_index = frame_index

	#============================
	@property
	def width(self) -> int:
		return int(self.values.shape[1])

	#============================
	@property
	def height(self) -> int:
		return int(self.values.shape[0])

	#============================
	def value_at(self, x: int, z: int) -> int:
		return int(self.values[z, x])

	#============================
	def __eq__(self, other) -> bool:
		if not isinstance(other, PixelGrid):
			return NotImplemented
		return numpy.array_equal(self.values, other.values)

	#============================
	def __repr__(self) -> str:
		return f"PixelGrid({self.width}x{self.height}, frame={self.frame_index})"

#============================================

def _luma_from_frame(raw, frame_index: int = None) -> numpy.ndarray:
	if not isinstance(raw, numpy.ndarray):
		raise InvalidPixelFormat("frame must be a numpy array", frame_index=frame_index)
	if raw.dtype != numpy.uint8:
		raise InvalidPixelFormat(f"frame dtype must be uint8, got {raw.dtype}",
			frame_index=frame_index)
	if raw.ndim == 2:
		return raw.astype(numpy.int32)
	if raw.ndim != 3:
		raise InvalidPixelFormat(f"frame must be 2D or 3D, got {raw.ndim}D",
			frame_index=frame_index)
	channels = raw.shape[2]
	if channels not in SUPPORTED_CHANNELS:
		raise InvalidPixelFormat(f"unsupported channel count {channels}",
			frame_index=frame_index)
	if channels == 1:
		return raw[:, :, 0].astype(numpy.int32)
	rgb = raw[:, :, :3].astype(numpy.int32)
	luma = (rgb[:, :, 0] * LUMA_WEIGHTS[0] + rgb[:, :, 1] * LUMA_WEIGHTS[1]
		+ rgb[:, :, 2] * LUMA_WEIGHTS[2] + 500) // 1000
	return luma

#============================================

def _sample_luma(sample) -> int:
	if isinstance(sample, (int, numpy.integer)) and not isinstance(sample, bool):
		channels = (int(sample),)
	else:
		try:
			channels = tuple(int(value) for value in sample)
		except TypeError as error:
			raise InvalidPixelFormat(f"unsupported pixel sample {sample!r}") from error
	if len(channels) not in SUPPORTED_CHANNELS:
		raise InvalidPixelFormat(f"unsupported channel count {len(channels)}")
	for value in channels:
		if value < 0 or value > 255:
			raise InvalidPixelFormat(f"channel value {value} is outside 0..255")
	if len(channels) == 1:
		return channels[0]
	red, green, blue = channels[:3]
	return (red * LUMA_WEIGHTS[0] + green * LUMA_WEIGHTS[1]
		+ blue * LUMA_WEIGHTS[2] + 500) // 1000

#============================================

def quantize(luma, settings: NormalizeSettings, threshold: int = None):
	"""
	Map luma (0..255) to 0..levels-1. Works on ints and numpy arrays.
	"""
	if threshold is None:
		threshold = settings.threshold
	if settings.levels == 2:
		return (luma >= threshold) * 1
	return (luma * settings.levels) // 256

#============================================

def normalize_pixel(sample, settings: NormalizeSettings) -> int:
	"""
	Normalize one raw pixel sample.

	Gradient mode needs neighbouring pixels, so single samples are always
	quantized directly.

	Args:
		sample: int luminance or a tuple of 1, 3 or 4 channel values.
		settings: Normalization settings.

	Returns:
		int: Value in 0..levels-1.
	"""
	luma = _sample_luma(sample)
	if settings.invert_colors:
		luma = 255 - luma
	return int(quantize(luma, settings))

#============================================

def gradient_luma(mask: numpy.ndarray) -> numpy.ndarray:
	"""
	Signed chessboard distance field of a binary mask, scaled to 0..255.

	Cells outside the mask ramp 0..127 toward the nearest mask cell and cells
	inside ramp 128..255 toward the mask interior.
	"""
	if mask.all():
		return numpy.full(mask.shape, 255, dtype=numpy.int32)
	if not mask.any():
		return numpy.zeros(mask.shape, dtype=numpy.int32)
	# distance from each cell to the nearest mask cell
	outside = scipy.ndimage.distance_transform_cdt(~mask, metric='chessboard')
	# distance from each cell to the nearest non-mask cell
	inside = scipy.ndimage.distance_transform_cdt(mask, metric='chessboard')
	outside_max = max(int(outside.max()), 1)
	inside_max = max(int(inside.max()), 1)
	outside_values = numpy.round((1.0 - outside / outside_max) * 127.0)
	inside_values = 128 + numpy.round(inside / inside_max * 127.0)
	result = numpy.where(mask, inside_values, numpy.clip(outside_values, 0, 127))
	return result.astype(numpy.int32)

#============================================

def apply_border(grid: PixelGrid, width: int, value: int) -> PixelGrid:
	if width < 0:
		raise RuntimeError("border width must be non-negative")
	if width == 0:
		return grid
	padded = numpy.pad(grid.values, width, mode='constant', constant_values=value)
	return PixelGrid(padded, frame_index=grid.frame_index)

#============================================

def normalize_frame(raw, settings: NormalizeSettings, frame_index: int = None,
	expected_size: tuple = None, expected_channels: int = None) -> PixelGrid:
	"""
	Normalize a decoded frame and surround it with the configured border.

	Args:
		raw: uint8 array shaped (H, W) or (H, W, C).
		settings: Normalization settings.
		frame_index: Frame provenance for error messages.
		expected_size: Optional (width, height) declared by the decoder.
		expected_channels: Optional channel count declared by the decoder.

	Returns:
		PixelGrid: Bordered normalized grid.
	"""
	luma = _luma_from_frame(raw, frame_index=frame_index)
	if expected_size is not None:
		(width, height) = expected_size
		if luma.shape != (height, width):
			raise InvalidPixelFormat(
				f"frame size {luma.shape[1]}x{luma.shape[0]} does not match "
				f"declared {width}x{height}", frame_index=frame_index)
	if expected_channels is not None:
		channels = 1 if raw.ndim == 2 else raw.shape[2]
		if channels != expected_channels:
			raise InvalidPixelFormat(
				f"frame has {channels} channel(s), decoder declared {expected_channels}",
				frame_index=frame_index)
	if settings.invert_colors:
		luma = 255 - luma
	if settings.gradient:
		mask = luma >= settings.threshold
		values = quantize(gradient_luma(mask), settings, threshold=GRADIENT_MIDPOINT)
	else:
		values = quantize(luma, settings)
	grid = PixelGrid(values, frame_index=frame_index)
	return apply_border(grid, settings.border_width, settings.border_value)
