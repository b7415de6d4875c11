#!/usr/bin/env python3

#============================================

class V2dfError(RuntimeError):
	pass

#============================================

class ConfigError(V2dfError):
	pass

#============================================

class InvalidPixelFormat(V2dfError):
	def __init__(self, message: str, frame_index: int = None, coordinate: tuple = None):
		self.frame_index = frame_index
		self.coordinate = coordinate
		text = message
		if frame_index is not None:
			text = f"frame {frame_index}: {text}"
		if coordinate is not None:
			text = f"{text} at {coordinate}"
		super().__init__(text)

#============================================

class NonContiguousFrameRange(V2dfError):
	def __init__(self, indices: list, frame_start: int):
		self.indices = list(indices)
		self.frame_start = frame_start
		expected = frame_start
		gap = None
		for index in self.indices:
			if index != expected:
				gap = expected
				break
			expected += 1
		self.gap = gap
		super().__init__(
			f"frame indices must be contiguous from {frame_start}; "
			f"expected {gap}, got {self.indices}"
		)

#============================================

class FrameOutOfRange(V2dfError):
	def __init__(self, frame_index: int, frame_start: int, frame_count: int):
		self.frame_index = frame_index
		self.frame_start = frame_start
		self.frame_count = frame_count
		super().__init__(
			f"frame {frame_index} is outside "
			f"[{frame_start}, {frame_start + frame_count})"
		)

#============================================

class UnsupportedFrameRate(V2dfError):
	def __init__(self, message: str, fps=None, tick_rate=None, drift=None):
		self.fps = fps
		self.tick_rate = tick_rate
		self.drift = drift
		super().__init__(message)

#============================================

class WriteError(V2dfError):
	def __init__(self, path: str, reason: str):
		self.path = path
		self.reason = reason
		super().__init__(f"failed to write {path}: {reason}")

#============================================

class FrameRenderError(V2dfError):
	"""
	A single frame failed; carries where it failed so the run can be reproduced.
	"""
	def __init__(self, frame_index: int, stage: str, cause: Exception):
		self.frame_index = frame_index
		self.stage = stage
		self.cause = cause
		super().__init__(f"frame {frame_index} failed during {stage}: {cause}")

#============================================

class ProjectRenderError(V2dfError):
	def __init__(self, failures: dict):
		self.failures = dict(failures)
		lines = [f"{len(self.failures)} project(s) failed"]
		for namespace, error in self.failures.items():
			lines.append(f"  {namespace}: {error}")
		super().__init__("\n".join(lines))
