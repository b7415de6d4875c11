#!/usr/bin/env python3

"""
Pytest coverage for frame sources (memory, image sequence, ffmpeg pipe).
"""

# Standard Library
import os
import shutil
import subprocess
import sys
import tempfile
from fractions import Fraction

# PIP3 modules
import numpy
import PIL.Image
import pytest

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if REPO_ROOT not in sys.path:
	sys.path.insert(0, REPO_ROOT)

# local repo modules
from v2dflib.core.errors import InvalidPixelFormat
from v2dflib.media.ffmpeg_decode import FfmpegVideoSource
from v2dflib.media.ffmpeg_decode import ImageSequenceSource
from v2dflib.media.ffmpeg_decode import MemorySource
from v2dflib.media.ffmpeg_decode import open_source

#============================================

REQUIRED_TOOLS = ("ffmpeg", "ffprobe")
MISSING_TOOLS = [tool for tool in REQUIRED_TOOLS if shutil.which(tool) is None]
HAVE_TOOLS = len(MISSING_TOOLS) == 0
SKIP_TOOLS_REASON = f"missing tools: {', '.join(MISSING_TOOLS)}"

#============================================

@pytest.fixture(autouse=True)
def _quiet(monkeypatch):
	monkeypatch.setenv("V2DF_QUIET", "1")

#============================================

def test_memory_source_range():
	frames = [numpy.full((2, 3), index, dtype=numpy.uint8) for index in range(5)]
	source = MemorySource(frames, fps="24000/1001")
	assert (source.width, source.height, source.channels) == (3, 2, 1)
	assert source.fps == Fraction(24000, 1001)
	assert [index for (index, _) in source.iter_range(1, 3)] == [1, 2, 3]
	assert [index for (index, _) in source.iter_range(3)] == [3, 4]
	assert int(source.read_frame(4)[0, 0]) == 4
	assert source.read_frame(9) is None
	assert source.describe()['fps'] == "24000/1001"

#============================================

def test_image_sequence_source():
	with tempfile.TemporaryDirectory() as temp_dir:
		for index in range(3):
			image = PIL.Image.new("RGB", (4, 2), (index * 100, 0, 0))
			image.save(os.path.join(temp_dir, f"frame_{index:02d}.png"))
		with open(os.path.join(temp_dir, "notes.txt"), "w") as handle:
			handle.write("not a frame")
		gray = ImageSequenceSource(temp_dir, fps=12)
		assert (gray.width, gray.height, gray.frame_count) == (4, 2, 3)
		frames = [frame for (_, frame) in gray.iter_range(0)]
		assert frames[0].shape == (2, 4)
		color = open_source(frames_dir=temp_dir, fps=12, pixel_format='rgb24')
		assert color.read_frame(2).shape == (2, 4, 3)
		assert int(color.read_frame(2)[0, 0, 0]) == 200

#============================================

def test_open_source_errors():
	with pytest.raises(RuntimeError):
		open_source(frames_dir="/tmp", fps=None)
	with pytest.raises(RuntimeError):
		open_source()
	with tempfile.TemporaryDirectory() as temp_dir:
		with pytest.raises(RuntimeError):
			ImageSequenceSource(temp_dir, fps=10)

#============================================

@pytest.mark.skipif(not HAVE_TOOLS, reason=SKIP_TOOLS_REASON)
def test_ffmpeg_video_source():
	with tempfile.TemporaryDirectory() as temp_dir:
		clip_path = os.path.join(temp_dir, "white.mkv")
		subprocess.run([
			"ffmpeg", "-y", "-hide_banner", "-loglevel", "error",
			"-f", "lavfi", "-i", "color=c=white:size=16x8:rate=10",
			"-t", "0.5", "-c:v", "ffv1", clip_path,
		], check=True)
		source = FfmpegVideoSource(clip_path)
		assert (source.width, source.height) == (16, 8)
		assert source.fps == Fraction(10, 1)
		frames = [frame for (_, frame) in source.iter_range(0)]
		assert len(frames) == 5
		assert frames[0].shape == (8, 16)
		assert frames[0].min() > 200
		# stopping early must not leave the decoder running
		partial = [index for (index, _) in source.iter_range(1, 2)]
		assert partial == [1, 2]
		with pytest.raises(InvalidPixelFormat):
			FfmpegVideoSource(clip_path, pixel_format='yuv420p')
