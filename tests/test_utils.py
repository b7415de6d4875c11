#!/usr/bin/env python3

"""
Pytest coverage for shared helpers.
"""

# Standard Library
import os
import sys
from decimal import Decimal
from fractions import Fraction

# PIP3 modules
import pytest

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if REPO_ROOT not in sys.path:
	sys.path.insert(0, REPO_ROOT)

# local repo modules
from v2dflib.core import utils

#============================================

@pytest.mark.parametrize("raw,expected", [
	(30, Fraction(30)),
	(29.97, Fraction(2997, 100)),
	("30000/1001", Fraction(30000, 1001)),
	(Decimal("0.5"), Fraction(1, 2)),
	(" 1/2 ", Fraction(1, 2)),
])
def test_parse_fraction(raw, expected):
	assert utils.parse_fraction(raw, "value") == expected

#============================================

@pytest.mark.parametrize("raw", [None, True, "1/0", "a/b", "1/2/3", [30]])
def test_parse_fraction_rejects(raw):
	with pytest.raises(RuntimeError):
		utils.parse_fraction(raw, "value")

#============================================

def test_parse_fps_must_be_positive():
	with pytest.raises(RuntimeError):
		utils.parse_fps(0)

#============================================

def test_round_half_up():
	assert utils.round_half_up_fraction(Fraction(1, 2)) == 1
	assert utils.round_half_up_fraction(Fraction(1, 3)) == 0
	assert utils.round_half_up_fraction(Fraction(5, 3)) == 2
	assert utils.round_half_up_fraction(Fraction(-1, 2)) == 0

#============================================

def test_format_duration():
	assert utils.format_duration(0.25) == "250.00ms"
	assert utils.format_duration(12.5) == "12.50s"
	assert utils.format_duration(75.0) == "1m 15.0s"
	assert utils.format_duration(3725.0) == "1h 02m 05.0s"

#============================================

def test_quiet_mode(monkeypatch):
	monkeypatch.delenv(utils.QUIET_ENV_KEY, raising=False)
	assert not utils.is_quiet_mode()
	monkeypatch.setenv(utils.QUIET_ENV_KEY, "yes")
	assert utils.is_quiet_mode()

#============================================

def test_relative_dir_name():
	assert utils.relative_dir_name("./frames/") == "frames"
	assert utils.relative_dir_name("./") == ""
	assert utils.relative_dir_name(".") == ""
