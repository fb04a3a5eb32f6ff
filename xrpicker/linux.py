"""
Linux Platform
==============

Finds runtime manifests the way the OpenXR loader does on Linux (and other
non-Windows hosts), and switches the active runtime by replacing the
active_runtime.json symlink in the user's config directory.

DISCOVERY ORDER:
---------------
1. XDG config directories (XDG_CONFIG_HOME, then XDG_CONFIG_DIRS) joined
   with openxr/<major>/, skipping active_runtime.json itself
2. /etc/openxr/<major>/, same exclusion
3. The currently active manifest, so it shows up even when installed
   somewhere else
4. Caller-supplied extra paths

A symlink and its target are the same runtime: each candidate is
canonicalized, and a candidate whose original or canonical path was
already claimed is skipped.

ACTIVATION:
----------
Not atomic. Whatever sits at the active runtime location is first renamed
to old_active_runtime<timestamp>.json (removed again if it was only a
symlink), then a new symlink is created. An interruption between those
steps leaves no active runtime, or a stray backup file.
"""

import logging
import os
import time
from itertools import chain
from pathlib import Path
from typing import Iterable, Iterator, List, NamedTuple, Optional, Set, Tuple, Union

from platformdirs.unix import Unix

from .config import (
    ACTIVE_RUNTIME_FILENAME,
    BACKUP_FILENAME_TEMPLATE,
    OPENXR,
    OPENXR_MAJOR_VERSION,
    SYSCONFDIR,
    versioned_suffix,
)
from .errors import ActiveState, ManifestError, SetActiveError, XrPickerError
from .runtime import BaseRuntime

logger = logging.getLogger("xrpicker")


# =============================================================================
# Config Locations
# =============================================================================


class ConfigLocations:
    """
    The versioned OpenXR config directories, highest priority first.

    Environment variables are re-read on every call, so a long-lived
    instance follows changes to XDG_CONFIG_HOME / XDG_CONFIG_DIRS.
    """

    def __init__(self, sysconfdir: Union[str, Path] = SYSCONFDIR):
        self.suffix = versioned_suffix()
        self.sysconfdir = Path(sysconfdir) / self.suffix

    def _xdg(self) -> Unix:
        return Unix(appname=OPENXR, version=str(OPENXR_MAJOR_VERSION), multipath=True)

    @property
    def config_home(self) -> Path:
        return Path(self._xdg().user_config_dir)

    def xdg_search_dirs(self) -> List[Path]:
        """XDG_CONFIG_HOME then each XDG_CONFIG_DIRS entry, deduplicated."""
        xdg = self._xdg()
        dirs = [Path(xdg.user_config_dir)]
        dirs.extend(Path(p) for p in xdg.site_config_dir.split(os.pathsep) if p)
        unique: List[Path] = []
        for d in dirs:
            if d.is_absolute() and d not in unique:
                unique.append(d)
        return unique

    def place_config_file(self, filename: str) -> Path:
        """Path of a file in the highest priority config directory, creating the directory."""
        home = self.config_home
        home.mkdir(parents=True, exist_ok=True)
        return home / filename


def _is_file_or_symlink(path: Path) -> bool:
    return path.is_file() or path.is_symlink()


def _list_manifest_candidates(directory: Path) -> List[Path]:
    """Files and symlinks in a directory, excluding the active runtime marker."""
    try:
        entries = sorted(directory.iterdir())
    except OSError:
        # Absent or unreadable directory: zero candidates from this source
        return []
    return [
        p for p in entries
        if _is_file_or_symlink(p) and p.name != ACTIVE_RUNTIME_FILENAME
    ]


def _backup_filename(directory: Path) -> str:
    """A not-yet-used old_active_runtime<timestamp>.json name in directory."""
    timestamp = str(int(time.time()))
    name = BACKUP_FILENAME_TEMPLATE.format(timestamp=timestamp)
    counter = 1
    while os.path.lexists(directory / name):
        name = BACKUP_FILENAME_TEMPLATE.format(timestamp=f"{timestamp}_{counter}")
        counter += 1
    return name


def _canonicalize(path: Path) -> Optional[Path]:
    try:
        return path.resolve(strict=True)
    except (OSError, RuntimeError):
        return None


# =============================================================================
# Runtime
# =============================================================================


class LinuxRuntime:
    """
    A runtime found on Linux.

    Keeps the path it was discovered at (possibly a symlink) apart from the
    canonical manifest path that was actually parsed.
    """

    def __init__(
        self,
        orig_path: Union[str, Path],
        canonical_path: Union[str, Path],
        locations: Optional[ConfigLocations] = None,
    ):
        self.base = BaseRuntime.new(canonical_path)
        self.orig_path = Path(orig_path)
        self._locations = locations or ConfigLocations()

    @property
    def manifest_path(self) -> Path:
        return self.base.manifest_path

    def make_active(self) -> None:
        try:
            dest = self._locations.place_config_file(ACTIVE_RUNTIME_FILENAME)
            backup = self._locations.place_config_file(_backup_filename(dest.parent))
        except OSError as e:
            raise SetActiveError(f"Could not create config directory: {e}") from e

        # Move the old file out of the way, if any
        try:
            os.rename(dest, backup)
        except FileNotFoundError:
            logger.debug(f"No existing active runtime at {dest}")
        except OSError as e:
            # Assume there was nothing worth preserving
            logger.warning(f"Got an error trying to rename {dest} to {backup}: {e}")
        else:
            # Symlinks carry no unique data, only keep real files
            if backup.is_symlink():
                try:
                    backup.unlink()
                except OSError as e:
                    logger.warning(f"Got an error trying to remove an apparently-symlink {backup}: {e}")

        try:
            os.symlink(self.base.manifest_path, dest)
        except OSError as e:
            raise SetActiveError(f"Could not create symlink {dest}: {e}") from e
        logger.info(f"Active runtime is now {self.get_runtime_name()} ({self.base.manifest_path})")

    def get_runtime_name(self) -> str:
        return self.base.get_runtime_name()

    def get_manifests(self) -> List[Path]:
        return [self.base.manifest_path]

    def get_libraries(self) -> List[Path]:
        return [self.base.resolve_library_path()]

    def describe(self) -> str:
        description = self.base.describe_manifest()
        if self.orig_path != self.base.manifest_path:
            return f"{self.orig_path} -> {description}"
        return description

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LinuxRuntime):
            return NotImplemented
        return self.base == other.base and self.orig_path == other.orig_path

    def __hash__(self) -> int:
        return hash((self.base, self.orig_path))

    def __repr__(self) -> str:
        return f"LinuxRuntime(orig_path={str(self.orig_path)!r}, base={self.base!r})"


# =============================================================================
# Active Runtime Data
# =============================================================================


class LinuxActiveRuntimeData(NamedTuple):
    """Canonical path of the manifest the loader would use, if any."""
    active_manifest: Optional[Path]

    def check_runtime(self, runtime: LinuxRuntime) -> ActiveState:
        if self.active_manifest is not None and self.active_manifest == runtime.manifest_path:
            return ActiveState.ACTIVE_INDEPENDENT_RUNTIME
        return ActiveState.NOT_ACTIVE


# =============================================================================
# Platform
# =============================================================================


class LinuxPlatform:
    """Platform implementation for Linux and other XDG-style hosts."""

    def __init__(self, sysconfdir: Union[str, Path] = SYSCONFDIR):
        self.locations = ConfigLocations(sysconfdir)

    def _find_potential_manifests_xdg(self) -> Iterator[Path]:
        for directory in self.locations.xdg_search_dirs():
            yield from _list_manifest_candidates(directory)

    def _find_potential_manifests_sysconfdir(self) -> Iterator[Path]:
        yield from _list_manifest_candidates(self.locations.sysconfdir)

    def possible_active_runtimes(self) -> Iterator[Path]:
        """
        Canonical paths of existing active runtime markers, highest priority first.

        The loader uses the first one.
        """
        markers = [d / ACTIVE_RUNTIME_FILENAME for d in self.locations.xdg_search_dirs()]
        markers.append(self.locations.sysconfdir / ACTIVE_RUNTIME_FILENAME)
        for marker in markers:
            if not _is_file_or_symlink(marker):
                continue
            canonical = _canonicalize(marker)
            if canonical is not None:
                yield canonical

    def find_available_runtimes(
        self,
        extra_paths: Optional[Iterable[Union[str, Path]]] = None,
    ) -> Tuple[List[LinuxRuntime], List[ManifestError]]:
        candidates = chain(
            self._find_potential_manifests_xdg(),
            self._find_potential_manifests_sysconfdir(),
            # Almost last, so these only add a runtime not found above
            self.possible_active_runtimes(),
            (Path(p) for p in (extra_paths or ())),
        )

        known_manifests: Set[Path] = set()
        runtimes: List[LinuxRuntime] = []
        nonfatal_errors: List[ManifestError] = []

        for orig_path in candidates:
            canonical = _canonicalize(orig_path)
            if canonical is None:
                logger.debug(f"Skipping manifest candidate that cannot be resolved: {orig_path}")
                continue
            if orig_path in known_manifests or canonical in known_manifests:
                continue
            # Claimed whether or not it loads: one error per broken manifest
            known_manifests.add(orig_path)
            known_manifests.add(canonical)
            try:
                runtime = LinuxRuntime(orig_path, canonical, self.locations)
            except XrPickerError as e:
                logger.warning(f"Error when trying to load {orig_path} -> {canonical}: {e}")
                nonfatal_errors.append(ManifestError(orig_path, e))
                continue
            runtimes.append(runtime)

        logger.debug(f"Found {len(runtimes)} runtime(s), {len(nonfatal_errors)} manifest error(s)")
        return runtimes, nonfatal_errors

    def get_active_runtime_manifests(self) -> List[Path]:
        active = self.get_active_data().active_manifest
        return [active] if active is not None else []

    def get_active_data(self) -> LinuxActiveRuntimeData:
        return LinuxActiveRuntimeData(next(self.possible_active_runtimes(), None))

    def get_runtime_active_state(
        self,
        runtime: LinuxRuntime,
        active_data: LinuxActiveRuntimeData,
    ) -> ActiveState:
        return active_data.check_runtime(runtime)
