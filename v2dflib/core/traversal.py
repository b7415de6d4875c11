#!/usr/bin/env python3

"""
Time-to-space mapping: move an observer one frame cell per source frame,
scheduled on the host engine's tick clock.
"""

from dataclasses import dataclass
from fractions import Fraction
from v2dflib.core import utils
from v2dflib.core.errors import UnsupportedFrameRate
from v2dflib.core.layout import FrameLayout

#============================================

DEFAULT_TICK_RATE = 20
DEFAULT_DRIFT_TOLERANCE = Fraction(1, 2)

#============================================

@dataclass(frozen=True)
class MoveCommand():
	frame_index: int
	x: int
	y: int
	z: int
	tick: int
	# ticks until the next command, None on the last one
	delay: int = None

#============================================

class TraversalScript():
	def __init__(self, commands: list, fps: Fraction, tick_rate: int,
		max_drift: Fraction, frame_start: int):
		self.commands = list(commands)
		self.fps = fps
		self.tick_rate = tick_rate
		self.max_drift = max_drift
		self.frame_start = frame_start

	#============================
	def __iter__(self):
		return iter(self.commands)

	#============================
	def __len__(self) -> int:
		return len(self.commands)

	#============================
	@property
	def frame_count(self) -> int:
		return len(self.commands)

	#============================
	@property
	def ticks_per_frame(self) -> Fraction:
		return Fraction(self.tick_rate) / self.fps

	#============================
	def ideal_tick(self, frame_index: int) -> Fraction:
		return (frame_index - self.frame_start) * self.ticks_per_frame

	#============================
	def duration_ticks(self) -> int:
		if len(self.commands) == 0:
			return 0
		return self.commands[-1].tick

#============================================

class TraversalGenerator():
	def __init__(self, fps, tick_rate: int = DEFAULT_TICK_RATE,
		drift_tolerance=DEFAULT_DRIFT_TOLERANCE, layout: FrameLayout = None,
		tp_height: int = 220):
		try:
			fps = utils.parse_fraction(fps, "fps")
			drift_tolerance = utils.parse_fraction(drift_tolerance, "drift_tolerance")
		except RuntimeError as error:
			raise UnsupportedFrameRate(str(error), fps=fps, tick_rate=tick_rate) from error
		if fps <= 0:
			raise UnsupportedFrameRate(f"source frame rate must be positive, got {fps}",
				fps=fps, tick_rate=tick_rate)
		if int(tick_rate) != tick_rate or tick_rate <= 0:
			raise UnsupportedFrameRate(
				f"host tick rate must be a positive integer, got {tick_rate}",
				fps=fps, tick_rate=tick_rate)
		if drift_tolerance < 0:
			raise UnsupportedFrameRate("drift tolerance must be non-negative",
				fps=fps, tick_rate=tick_rate)
		self.fps = fps
		self.tick_rate = int(tick_rate)
		self.drift_tolerance = drift_tolerance
		self.layout = layout
		self.tp_height = tp_height

	#============================
	@property
	def ticks_per_frame(self) -> Fraction:
		return Fraction(self.tick_rate) / self.fps

	#============================
	def schedule(self, frame_count: int) -> tuple:
		"""
		Tick of every frame, carrying the fractional remainder forward.

		Args:
			frame_count: Number of frames.

		Returns:
			tuple: (ticks list, max absolute drift in ticks as a Fraction).
		"""
		if frame_count <= 0:
			return ([], Fraction(0))
		step_size = self.ticks_per_frame
		ticks = [0]
		carry = Fraction(0)
		max_drift = Fraction(0)
		for _ in range(1, frame_count):
			carry += step_size
			step = utils.round_half_up_fraction(carry)
			carry -= step
			ticks.append(ticks[-1] + step)
			# carry is now ideal - emitted for this frame
			max_drift = max(max_drift, abs(carry))
		return (ticks, max_drift)

	#============================
	def generate(self, frame_start: int, frame_count: int) -> TraversalScript:
		if self.layout is None:
			raise RuntimeError("traversal needs a frame layout")
		(ticks, max_drift) = self.schedule(frame_count)
		if max_drift > self.drift_tolerance:
			raise UnsupportedFrameRate(
				f"{self.fps} fps at {self.tick_rate} ticks/s drifts {max_drift} ticks, "
				f"over the {self.drift_tolerance} tick tolerance; resample the source "
				f"or raise drift_tolerance",
				fps=self.fps, tick_rate=self.tick_rate, drift=max_drift)
		commands = []
		for offset, tick in enumerate(ticks):
			(x, z) = self.layout.center(offset)
			delay = None
			if offset + 1 < len(ticks):
				delay = ticks[offset + 1] - tick
			commands.append(MoveCommand(frame_start + offset, x, self.tp_height, z,
				tick, delay))
		return TraversalScript(commands, self.fps, self.tick_rate, max_drift,
			frame_start)
