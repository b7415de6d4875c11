#!/usr/bin/env python3

"""
Frame sources: ordered, restartable sequences of uint8 pixel frames with a
declared size, channel count and frame rate.
"""

import json
import os
import shlex
import subprocess
from fractions import Fraction
import numpy
import PIL.Image
from v2dflib.core import utils
from v2dflib.core.errors import InvalidPixelFormat

#============================================

PIXEL_FORMATS = {
	'gray': 1,
	'rgb24': 3,
}
IMAGE_EXTENSIONS = ('.png', '.bmp', '.jpg', '.jpeg', '.gif', '.tif', '.tiff')

#============================================

class FrameSource():
	width = 0
	height = 0
	channels = 1
	fps = Fraction(30, 1)
	frame_count = None

	#============================
	def __iter__(self):
		raise NotImplementedError

	#============================
	def iter_range(self, start: int, count: int = None):
		"""
		Yield (frame_index, frame) for frames start .. start+count-1.
		"""
		if start < 0:
			raise RuntimeError("start frame must be non-negative")
		end = None if count is None else start + count
		frames = iter(self)
		try:
			for index, frame in enumerate(frames):
				if end is not None and index >= end:
					break
				if index >= start:
					yield (index, frame)
		finally:
			close = getattr(frames, 'close', None)
			if close is not None:
				close()

	#============================
	def read_frame(self, frame_index: int) -> numpy.ndarray:
		for (_, frame) in self.iter_range(frame_index, 1):
			return frame
		return None

	#============================
	def describe(self) -> dict:
		return {
			'width': self.width,
			'height': self.height,
			'channels': self.channels,
			'fps': str(self.fps),
			'frame_count': self.frame_count,
		}

#============================================

class MemorySource(FrameSource):
	def __init__(self, frames: list, fps=30):
		if len(frames) == 0:
			raise RuntimeError("memory source needs at least one frame")
		self.frames = list(frames)
		first = self.frames[0]
		self.height = int(first.shape[0])
		self.width = int(first.shape[1])
		self.channels = 1 if first.ndim == 2 else int(first.shape[2])
		self.fps = utils.parse_fps(fps)
		self.frame_count = len(self.frames)

	#============================
	def __iter__(self):
		return iter(self.frames)

#============================================

class ImageSequenceSource(FrameSource):
	def __init__(self, frames_dir: str, fps, color: bool = False):
		if not os.path.isdir(frames_dir):
			raise RuntimeError(f"frames directory not found: {frames_dir}")
		names = sorted(name for name in os.listdir(frames_dir)
			if name.lower().endswith(IMAGE_EXTENSIONS))
		if len(names) == 0:
			raise RuntimeError(f"no image frames found in {frames_dir}")
		self.paths = [os.path.join(frames_dir, name) for name in names]
		self.mode = 'RGB' if color else 'L'
		self.channels = 3 if color else 1
		self.fps = utils.parse_fps(fps)
		self.frame_count = len(self.paths)
		with PIL.Image.open(self.paths[0]) as image:
			(self.width, self.height) = image.size

	#============================
	def __iter__(self):
		for path in self.paths:
			with PIL.Image.open(path) as image:
				yield numpy.asarray(image.convert(self.mode), dtype=numpy.uint8)

#============================================

def probe_video_stream(input_file: str) -> dict:
	"""
	Probe video stream metadata using ffprobe.

	Args:
		input_file: Media file path.

	Returns:
		dict: width, height, fps (Fraction) and nb_frames when known.
	"""
	cmd = [
		"ffprobe", "-v", "error",
		"-select_streams", "v:0",
		"-show_entries", "stream=width,height,r_frame_rate,avg_frame_rate,nb_frames",
		"-of", "json",
		input_file,
	]
	proc = utils.run_process(cmd, capture_output=True)
	data = json.loads(proc.stdout)
	streams = data.get("streams", [])
	if len(streams) == 0:
		raise RuntimeError(f"no video stream found in {input_file}")
	stream = streams[0]
	width = int(stream.get("width", 0))
	height = int(stream.get("height", 0))
	if width <= 0 or height <= 0:
		raise RuntimeError("invalid video resolution from ffprobe")
	fps_value = stream.get("r_frame_rate")
	if fps_value is None or fps_value == "0/0":
		fps_value = stream.get("avg_frame_rate")
	if fps_value is None or fps_value == "0/0":
		raise RuntimeError("invalid frame rate from ffprobe")
	frame_count = None
	nb_frames = stream.get("nb_frames")
	if nb_frames is not None and str(nb_frames).isdigit():
		frame_count = int(nb_frames)
	return {
		"width": width,
		"height": height,
		"fps": utils.parse_fps(fps_value),
		"frame_count": frame_count,
	}

#============================================

class FfmpegVideoSource(FrameSource):
	def __init__(self, video_file: str, pixel_format: str = 'gray', fps=None):
		utils.ensure_file_exists(video_file)
		if pixel_format not in PIXEL_FORMATS:
			raise InvalidPixelFormat(
				f"pixel format must be one of {', '.join(PIXEL_FORMATS)}")
		utils.check_dependency("ffmpeg")
		utils.check_dependency("ffprobe")
		info = probe_video_stream(video_file)
		self.video_file = video_file
		self.pixel_format = pixel_format
		self.channels = PIXEL_FORMATS[pixel_format]
		self.width = info['width']
		self.height = info['height']
		self.fps = info['fps'] if fps is None else utils.parse_fps(fps)
		self.frame_count = info['frame_count']

	#============================
	def _command(self) -> list:
		return [
			"ffmpeg", "-v", "error", "-nostdin",
			"-i", self.video_file,
			"-an", "-sn",
			"-f", "rawvideo",
			"-pix_fmt", self.pixel_format,
			"-",
		]

	#============================
	def __iter__(self):
		cmd = self._command()
		utils.log(f"CMD: '{shlex.join(cmd)}'")
		frame_bytes = self.width * self.height * self.channels
		shape = (self.height, self.width)
		if self.channels > 1:
			shape = (self.height, self.width, self.channels)
		proc = subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
		finished = False
		try:
			while True:
				data = proc.stdout.read(frame_bytes)
				if not data:
					break
				if len(data) != frame_bytes:
					raise InvalidPixelFormat(
						f"decoder returned a truncated frame ({len(data)} of {frame_bytes} bytes)")
				yield numpy.frombuffer(data, dtype=numpy.uint8).reshape(shape)
			finished = True
		finally:
			if finished:
				stderr_text = proc.stderr.read().decode('utf-8', errors='replace')
				returncode = proc.wait()
				proc.stdout.close()
				proc.stderr.close()
				if returncode != 0:
					raise RuntimeError(f"ffmpeg decode failed: {stderr_text.strip()}")
			else:
				proc.kill()
				proc.wait()
				proc.stdout.close()
				proc.stderr.close()

#============================================

def open_source(video_file: str = None, frames_dir: str = None, fps=None,
	pixel_format: str = 'gray') -> FrameSource:
	if frames_dir is not None:
		if fps is None:
			raise RuntimeError("source.fps is required for an image sequence")
		return ImageSequenceSource(frames_dir, fps, color=(pixel_format == 'rgb24'))
	if video_file is None:
		raise RuntimeError("video_file or source.frames_dir is required")
	return FfmpegVideoSource(video_file, pixel_format=pixel_format, fps=fps)
