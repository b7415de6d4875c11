#!/usr/bin/env python3

import argparse
import os
import sys
import yaml
from v2dflib.core import utils
from v2dflib.core.errors import V2dfError
from v2dflib.core.loader import CONFIG_FILE_NAME
from v2dflib.core.loader import default_config
from v2dflib.core.loader import write_config_file
from v2dflib.core.project import V2dfProject

#============================================

def parse_args(argv: list = None) -> argparse.Namespace:
	"""
	Parse command-line arguments.

	Returns:
		argparse.Namespace: Parsed CLI args.
	"""
	common = argparse.ArgumentParser(add_help=False)
	common.add_argument('-d', '--dir', dest='project_dir', default='.',
		help='project directory holding the config file')
	common.add_argument('-c', '--config', dest='config_file', default=None,
		help=f'config file path (default: <dir>/{CONFIG_FILE_NAME})')
	common.add_argument('-q', '--quiet', dest='quiet', action='store_true',
		help='suppress progress output')
	parser = argparse.ArgumentParser(
		description="Compile a video into terrain density functions")
	subparsers = parser.add_subparsers(dest='command', required=True)
	init_parser = subparsers.add_parser('init', parents=[common],
		help='write a default config file')
	init_parser.add_argument('-f', '--force', dest='force', action='store_true',
		help='overwrite an existing config file')
	for name, help_text in (
		('run', 'render every enabled project'),
		('test', 'render one test frame per project with PNG previews'),
	):
		sub = subparsers.add_parser(name, parents=[common], help=help_text)
		sub.add_argument('-w', '--workers', dest='workers', type=int, default=None,
			help='frame worker threads (overrides the config)')
	test_parser = subparsers.choices['test']
	test_parser.add_argument('-t', '--frame', dest='test_frame', type=int, default=None,
		help='frame index to test (overrides each project test_frame)')
	subparsers.add_parser('plan', parents=[common],
		help='print the resolved configuration as YAML')
	args = parser.parse_args(argv)
	return args

#============================================

def config_path(args: argparse.Namespace) -> str:
	if args.config_file is not None:
		return args.config_file
	return os.path.join(args.project_dir, CONFIG_FILE_NAME)

#============================================

def run_command(args: argparse.Namespace) -> None:
	path = config_path(args)
	if args.command == 'init':
		if os.path.exists(path) and not args.force:
			raise V2dfError(f"config already exists: {path} (use --force to overwrite)")
		write_config_file(path, default_config())
		if not utils.is_quiet_mode():
			print(f"wrote {path}")
		return
	if args.command == 'plan':
		project = V2dfProject(path)
		print(yaml.safe_dump(project.plan(), sort_keys=False))
		return
	project = V2dfProject(path, workers=args.workers)
	if args.command == 'run':
		project.run()
		return
	if args.command == 'test':
		project.test(args.test_frame)
		return
	raise V2dfError(f"unknown command: {args.command}")

#============================================

def main(argv: list = None) -> int:
	args = parse_args(argv)
	if args.quiet:
		utils.set_quiet_mode(True)
	try:
		run_command(args)
	except RuntimeError as error:
		print(f"v2df: {error}", file=sys.stderr)
		return 1
	return 0


if __name__ == '__main__':
	sys.exit(main())
