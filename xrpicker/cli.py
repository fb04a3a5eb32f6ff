#!/usr/bin/env python3
"""
xrpicker: list OpenXR runtimes and switch the active one.

Usage:
    xrpicker                              # Same as "xrpicker list"
    xrpicker list                         # Runtimes, errors, active manifest(s)
    xrpicker activate <manifest>          # Make the runtime owning <manifest> active
    xrpicker add-path <manifest> [...]    # Remember extra manifests, then list
"""

import argparse
import sys
from pathlib import Path
from typing import Callable, Hashable, List, Optional

from . import make_platform
from .app_state import AppState
from .config import LOG_LEVEL, default_state_file
from .errors import EnumerationError, PersistenceError, SetActiveError
from .persistence import PersistentAppState
from .platform import Platform, PlatformRuntime
from .utils.logger import setup_logger
from .windows import path_key
from .__version__ import __version__


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="xrpicker",
        description="OpenXR runtime picker",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  xrpicker list
  xrpicker activate ~/.local/share/openxr/1/monado.json
  xrpicker add-path ./build/openxr_monado-dev.json
""",
    )
    parser.add_argument('--version', action='version', version=f"%(prog)s {__version__}")
    parser.add_argument(
        '--log-level',
        default=LOG_LEVEL,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging verbosity (default: %(default)s)',
    )
    parser.add_argument(
        '--state-file',
        type=Path,
        default=None,
        help=f'Persisted state file (default: {default_state_file()})',
    )

    subparsers = parser.add_subparsers(dest='command')
    subparsers.add_parser('list', help='List runtimes (default)')

    activate = subparsers.add_parser('activate', help='Make a runtime active')
    activate.add_argument('manifest', type=Path, help='A manifest path of the runtime to activate')

    add_path = subparsers.add_parser('add-path', help='Remember extra manifest paths')
    add_path.add_argument('paths', nargs='+', type=Path, help='Manifest path(s) to add')

    args = parser.parse_args(argv)
    if args.command is None:
        args.command = 'list'
    return args


def print_state(platform: Platform, state: AppState) -> None:
    print("\nRuntimes:")
    for runtime in state.runtimes:
        active = state.get_active_state(platform, runtime)
        label = f" [{active}]" if str(active) else ""
        print(f"- {runtime.get_runtime_name()}{label}")
        for line in runtime.describe().splitlines():
            print(f"    {line.strip()}")

    if state.nonfatal_errors:
        print("\nNon-fatal errors:")
        for error in state.nonfatal_errors:
            print(f"- Manifest: {error.path} - Error: {error.error}")

    print("\nActive runtime manifest path(s):")
    for path in platform.get_active_runtime_manifests():
        print(f"- {path}")


def find_runtime_by_manifest(
    runtimes: List[PlatformRuntime],
    manifest: Path,
    windows_paths: Optional[bool] = None,
) -> Optional[PlatformRuntime]:
    """
    The runtime owning a manifest, matched by path or by resolved path.

    With windows_paths (default: on Windows hosts) paths match regardless
    of case and separator style.
    """
    if windows_paths is None:
        windows_paths = sys.platform == "win32"
    key: Callable[[Path], Hashable] = path_key if windows_paths else Path

    wanted = {manifest, manifest.absolute()}
    try:
        wanted.add(manifest.resolve(strict=True))
    except (OSError, RuntimeError):
        pass
    wanted_keys = {key(p) for p in wanted}

    for runtime in runtimes:
        candidates = list(runtime.get_manifests())
        # Linux runtimes may have been found through a symlink
        orig_path = getattr(runtime, "orig_path", None)
        if orig_path is not None:
            candidates.append(orig_path)
        if wanted_keys.intersection(key(p) for p in candidates):
            return runtime
    return None


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logger = setup_logger(log_level=args.log_level)

    try:
        persistent_state = PersistentAppState.load(args.state_file)
    except PersistenceError as e:
        logger.error(str(e))
        return 1

    if args.command == 'add-path':
        added = persistent_state.append_new_extra_paths(p.absolute() for p in args.paths)
        try:
            persistent_state.save(args.state_file)
        except PersistenceError as e:
            logger.error(str(e))
            return 1
        logger.info(f"Added {len(added)} new extra path(s)")

    platform = make_platform()
    try:
        state = AppState.new(platform, persistent_state)
    except EnumerationError as e:
        logger.error(str(e))
        return 1

    if args.command == 'activate':
        runtime = find_runtime_by_manifest(state.runtimes, args.manifest)
        if runtime is None:
            logger.error(f"No runtime found with manifest {args.manifest}")
            return 1
        try:
            runtime.make_active()
        except SetActiveError as e:
            logger.error(str(e))
            return 1
        # Active data is a snapshot, re-read it after changing it
        try:
            state = state.refresh(platform, persistent_state)
        except EnumerationError as e:
            logger.error(str(e))
            return 1

    print_state(platform, state)
    return 0


if __name__ == "__main__":
    sys.exit(main())
