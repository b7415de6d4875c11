#!/usr/bin/env python3

import os
import shlex
import shutil
import subprocess
from decimal import Decimal
from fractions import Fraction

#============================================

QUIET_ENV_KEY = "V2DF_QUIET"

#============================================

def is_quiet_mode() -> bool:
	value = os.environ.get(QUIET_ENV_KEY, "")
	return value.strip().lower() in ("1", "true", "yes", "on")

#============================================

def set_quiet_mode(quiet: bool) -> None:
	if quiet:
		os.environ[QUIET_ENV_KEY] = "1"
	else:
		os.environ.pop(QUIET_ENV_KEY, None)
	return

#============================================

def log(message: str) -> None:
	if not is_quiet_mode():
		print(message)
	return

#============================================

def run_process(cmd: list, capture_output: bool = True) -> subprocess.CompletedProcess:
	"""
	Run a subprocess command.

	Args:
		cmd: Command list to execute.
		capture_output: Capture stdout and stderr when True.

	Returns:
		subprocess.CompletedProcess: Completed process.
	"""
	showcmd = shlex.join(cmd)
	log(f"CMD: '{showcmd}'")
	proc = subprocess.run(cmd, capture_output=capture_output, text=True)
	if proc.returncode != 0:
		stderr_text = (proc.stderr or "").strip()
		raise RuntimeError(f"command failed: {showcmd}\n{stderr_text}")
	return proc

#============================================

def check_dependency(cmd_name: str) -> None:
	if shutil.which(cmd_name) is None:
		raise RuntimeError(f"missing dependency: {cmd_name}")
	return

#============================================

def parse_fraction(raw_value, field_name: str) -> Fraction:
	if raw_value is None:
		raise RuntimeError(f"{field_name} is required")
	if isinstance(raw_value, bool):
		raise RuntimeError(f"{field_name} must be int, float, or fraction string")
	if isinstance(raw_value, Fraction):
		return raw_value
	if isinstance(raw_value, int):
		return Fraction(raw_value, 1)
	if isinstance(raw_value, float):
		return Fraction(str(raw_value))
	if isinstance(raw_value, Decimal):
		return Fraction(str(raw_value))
	if isinstance(raw_value, str):
		text = raw_value.strip()
		try:
			if '/' in text:
				parts = text.split('/')
				if len(parts) != 2:
					raise ValueError(text)
				return Fraction(int(parts[0]), int(parts[1]))
			return Fraction(text)
		except (ValueError, ZeroDivisionError) as error:
			raise RuntimeError(f"{field_name} is not a valid number: {raw_value}") from error
	raise RuntimeError(f"{field_name} must be int, float, or fraction string")

#============================================

def parse_fps(raw_fps) -> Fraction:
	fps = parse_fraction(raw_fps, "fps")
	if fps <= 0:
		raise RuntimeError("fps must be positive")
	return fps

#============================================

def round_half_up_fraction(value: Fraction) -> int:
	numerator = value.numerator
	denominator = value.denominator
	whole = numerator // denominator
	remainder = numerator - (whole * denominator)
	if remainder * 2 >= denominator:
		return whole + 1
	return whole

#============================================

def seconds_from_frames(frames: int, fps: Fraction) -> float:
	seconds_fraction = Fraction(frames, 1) / fps
	return float(seconds_fraction)

#============================================

def format_duration(seconds: float) -> str:
	if seconds < 1.0:
		return f"{seconds * 1000.0:.2f}ms"
	if seconds < 60.0:
		return f"{seconds:.2f}s"
	minutes = int(seconds // 60)
	remain = seconds - (minutes * 60)
	if minutes < 60:
		return f"{minutes}m {remain:04.1f}s"
	hours = minutes // 60
	minutes = minutes % 60
	return f"{hours}h {minutes:02d}m {remain:04.1f}s"

#============================================

def ensure_file_exists(filepath: str) -> None:
	if not os.path.isfile(filepath):
		raise RuntimeError(f"file not found: {filepath}")
	return

#============================================

def relative_dir_name(path: str) -> str:
	"""
	Strip a leading './' and trailing slashes from a configured directory.
	"""
	text = str(path).replace(os.sep, "/")
	while text.startswith("./"):
		text = text[2:]
	text = text.strip("/")
	if text == ".":
		return ""
	return text

#============================================

def resource_id(namespace: str, directory: str, name) -> str:
	"""
	Namespaced id such as 'ns:frames/7' for a file under a datapack directory.
	"""
	relative = relative_dir_name(directory)
	if relative == "":
		return f"{namespace}:{name}"
	return f"{namespace}:{relative}/{name}"
