#!/usr/bin/env python3

"""
Pytest coverage for frame-rate synchronised traversal scheduling.
"""

# Standard Library
import os
import sys
from fractions import Fraction

# PIP3 modules
import pytest

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if REPO_ROOT not in sys.path:
	sys.path.insert(0, REPO_ROOT)

# local repo modules
from v2dflib.core.errors import UnsupportedFrameRate
from v2dflib.core.layout import FrameLayout
from v2dflib.core.traversal import TraversalGenerator

#============================================

def _generator(fps, tick_rate: int = 20, drift_tolerance="1/2") -> TraversalGenerator:
	layout = FrameLayout(10, 6, kind='row', spacing=1)
	return TraversalGenerator(fps, tick_rate=tick_rate,
		drift_tolerance=drift_tolerance, layout=layout, tp_height=220)

#============================================

def test_thirty_fps_on_twenty_ticks():
	generator = _generator(30)
	(ticks, max_drift) = generator.schedule(301)
	assert ticks[:7] == [0, 1, 1, 2, 3, 3, 4]
	assert max_drift == Fraction(1, 3)
	# drift never accumulates: every frame is within half a tick of ideal
	for offset, tick in enumerate(ticks):
		assert abs(tick - offset * Fraction(2, 3)) <= Fraction(1, 2)
	assert ticks[-1] == 200

#============================================

def test_ntsc_rate_stays_in_tolerance():
	generator = _generator("30000/1001")
	script = generator.generate(0, 2000)
	assert script.max_drift <= Fraction(1, 2)
	for command in script:
		assert abs(command.tick - script.ideal_tick(command.frame_index)) <= Fraction(1, 2)

#============================================

def test_zero_tolerance_rejects_fractional_rate():
	with pytest.raises(UnsupportedFrameRate) as excinfo:
		_generator(30, drift_tolerance=0).generate(0, 10)
	assert excinfo.value.drift == Fraction(1, 3)
	# an exact divisor of the tick rate never drifts
	script = _generator(10, drift_tolerance=0).generate(0, 10)
	assert [command.delay for command in script][:-1] == [2] * 9

#============================================

@pytest.mark.parametrize("fps,tick_rate", [(0, 20), (-24, 20), (30, 0), (30, 2.5)])
def test_invalid_rates(fps, tick_rate):
	with pytest.raises(UnsupportedFrameRate):
		_generator(fps, tick_rate=tick_rate)

#============================================

def test_commands_follow_layout():
	script = _generator(20).generate(7, 4)
	commands = list(script)
	assert [command.frame_index for command in commands] == [7, 8, 9, 10]
	assert [(command.x, command.y, command.z) for command in commands] == [
		(5, 220, 3), (25, 220, 3), (45, 220, 3), (65, 220, 3)]
	assert [command.tick for command in commands] == [0, 1, 2, 3]
	assert commands[-1].delay is None
	assert script.duration_ticks() == 3

#============================================

def test_single_frame():
	(ticks, max_drift) = _generator(24).schedule(1)
	assert ticks == [0]
	assert max_drift == 0
