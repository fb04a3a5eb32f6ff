"""
Windows Platform
================

Finds runtime manifests registered under HKEY_LOCAL_MACHINE and switches
the active runtime by writing the ActiveRuntime registry value.

WIDTHS:
------
- Native: the registry view matching this process's bitness
- Narrow: the 32-bit (WOW64) view, only meaningful for 64-bit builds

Each width has its own AvailableRuntimes key (value name = manifest path,
DWORD data = 0 if enabled) and its own ActiveRuntime value. A logical
runtime owns at most one manifest per width. A native and a narrow manifest
are treated as the same runtime when they live in the same directory
(co-installed build outputs). This heuristic can pair unrelated runtimes
that happen to share a directory.

WELL-KNOWN MANIFESTS:
--------------------
Some runtimes install manifests without registering them. These are
probed directly: the mixed reality runtime under %SystemRoot% (both
widths) and Varjo under Program Files (64-bit builds only).

REGISTRY ACCESS:
---------------
All winreg usage is in WindowsRegistry, imported lazily, so this module
imports (and its logic can be tested) on any host.
"""

import logging
import ntpath
import os
from enum import Enum
from pathlib import Path, PureWindowsPath
from typing import Dict, Iterable, Iterator, List, Mapping, NamedTuple, Optional, Set, Tuple, Union

from .arch_abi import is_64bit_process
from .arch_detect import RuntimeBitness, get_runtime_bitness
from .config import (
    REGISTRY_ACTIVE_RUNTIME_VALUE,
    REGISTRY_AVAILABLE_RUNTIMES_KEY,
    REGISTRY_OPENXR_KEY,
    WELL_KNOWN_NARROW,
    WELL_KNOWN_NATIVE,
    WELL_KNOWN_NATIVE_64BIT_ONLY,
    WellKnownManifest,
)
from .errors import ActiveState, EnumerationError, ManifestError, SetActiveError, XrPickerError
from .runtime import BaseRuntime

logger = logging.getLogger("xrpicker")

PathLike = Union[str, Path]


class Width(Enum):
    NATIVE = "native"
    NARROW = "narrow"


def path_key(path: PathLike) -> str:
    """
    Normalized form of a Windows path, for identity comparisons.

    Case-insensitive and separator-insensitive. On Windows hosts symlinks
    and junctions are resolved first.
    """
    path = str(path)
    if os.name == "nt":
        path = os.path.realpath(path)
    return ntpath.normcase(ntpath.normpath(path))


def parent_key(path: PathLike) -> str:
    return ntpath.dirname(path_key(path))


def canonical_path(path: PathLike) -> str:
    """
    Absolute spelling of a manifest path with "." and ".." segments and
    symlinks resolved. On Windows hosts this also picks up the on-disk case.
    """
    return os.path.realpath(str(path))


# =============================================================================
# Registry Access
# =============================================================================


class WindowsRegistry:
    """
    OpenXR registry keys under HKEY_LOCAL_MACHINE, per width.

    Raises OSError (from winreg) for anything other than a missing key or
    value; callers decide whether that is fatal.
    """

    def __init__(self, is_64bit: Optional[bool] = None):
        self.is_64bit = is_64bit_process() if is_64bit is None else is_64bit

    def _view_flag(self, width: Width) -> int:
        import winreg

        if width is Width.NARROW or not self.is_64bit:
            return winreg.KEY_WOW64_32KEY
        return winreg.KEY_WOW64_64KEY

    def list_available_runtimes(self, width: Width) -> List[str]:
        """
        Manifest paths listed under AvailableRuntimes whose DWORD flag is 0.

        A missing key means no runtimes.
        """
        import winreg

        try:
            key = winreg.OpenKey(
                winreg.HKEY_LOCAL_MACHINE,
                REGISTRY_AVAILABLE_RUNTIMES_KEY,
                0,
                winreg.KEY_READ | self._view_flag(width),
            )
        except FileNotFoundError:
            return []

        paths = []
        with key:
            _, num_values, _ = winreg.QueryInfoKey(key)
            for index in range(num_values):
                name, data, value_type = winreg.EnumValue(key, index)
                if value_type == winreg.REG_DWORD and data == 0:
                    paths.append(name)
                else:
                    logger.debug(f"Skipping disabled runtime ({width.value}): {name}")
        return paths

    def get_active_runtime(self, width: Width) -> Optional[str]:
        """The ActiveRuntime value for a width, or None if missing."""
        import winreg

        try:
            with winreg.OpenKey(
                winreg.HKEY_LOCAL_MACHINE,
                REGISTRY_OPENXR_KEY,
                0,
                winreg.KEY_READ | self._view_flag(width),
            ) as key:
                value, value_type = winreg.QueryValueEx(key, REGISTRY_ACTIVE_RUNTIME_VALUE)
        except FileNotFoundError:
            return None

        if value_type not in (winreg.REG_SZ, winreg.REG_EXPAND_SZ) or not value:
            return None
        if value_type == winreg.REG_EXPAND_SZ:
            value = winreg.ExpandEnvironmentStrings(value)
        return value

    def set_active_runtime(self, width: Width, manifest_path: PathLike) -> None:
        import winreg

        with winreg.CreateKeyEx(
            winreg.HKEY_LOCAL_MACHINE,
            REGISTRY_OPENXR_KEY,
            0,
            winreg.KEY_WRITE | self._view_flag(width),
        ) as key:
            winreg.SetValueEx(key, REGISTRY_ACTIVE_RUNTIME_VALUE, 0, winreg.REG_SZ, str(manifest_path))


# =============================================================================
# Runtime
# =============================================================================


class WindowsRuntime:
    """A logical runtime: up to one manifest per width, at least one present."""

    def __init__(
        self,
        native: Optional[BaseRuntime],
        narrow: Optional[BaseRuntime],
        registry: WindowsRegistry,
    ):
        if native is None and narrow is None:
            raise ValueError("WindowsRuntime needs at least one of native/narrow")
        self.native = native
        self.narrow = narrow
        self._registry = registry

    def widths(self) -> Iterator[Tuple[Width, BaseRuntime]]:
        """(width, runtime) pairs for the widths this runtime provides, native first."""
        if self.native is not None:
            yield Width.NATIVE, self.native
        if self.narrow is not None:
            yield Width.NARROW, self.narrow

    def make_active(self) -> None:
        # A width this runtime doesn't provide is left alone, never cleared
        for width, base in self.widths():
            try:
                self._registry.set_active_runtime(width, base.manifest_path)
            except OSError as e:
                raise SetActiveError(
                    f"Could not write {width.value} {REGISTRY_ACTIVE_RUNTIME_VALUE}: {e}"
                ) from e
        logger.info(f"Active runtime is now {self.get_runtime_name()}")

    def get_runtime_name(self) -> str:
        _, base = next(self.widths())
        return base.get_runtime_name()

    def get_manifests(self) -> List[Path]:
        return [base.manifest_path for _, base in self.widths()]

    def get_libraries(self) -> List[Path]:
        return [base.resolve_library_path() for _, base in self.widths()]

    def describe(self) -> str:
        if self.native is not None and self.narrow is not None:
            return (
                f"Native: {self.native.describe_manifest()}\n"
                f"Narrow (32-bit): {self.narrow.describe_manifest()}"
            )
        _, base = next(self.widths())
        return base.describe_manifest()

    def __repr__(self) -> str:
        return f"WindowsRuntime(native={self.native!r}, narrow={self.narrow!r})"


# =============================================================================
# Collection
# =============================================================================


def pair_by_parent_directory(
    native_paths: Iterable[str],
    narrow_paths: Iterable[str],
) -> List[Tuple[Optional[str], Optional[str]]]:
    """
    Pair native and narrow manifest paths that share a parent directory.

    Each narrow path is used at most once. Unmatched paths come back alone,
    natives first (in order), then leftover narrows (in order).
    """
    remaining_narrow = list(narrow_paths)
    pairs: List[Tuple[Optional[str], Optional[str]]] = []
    for native in native_paths:
        match = next(
            (n for n in remaining_narrow if parent_key(n) == parent_key(native)),
            None,
        )
        if match is not None:
            remaining_narrow.remove(match)
        pairs.append((native, match))
    pairs.extend((None, narrow) for narrow in remaining_narrow)
    return pairs


class RuntimeCollection:
    """
    Accumulates logical runtimes and the manifest paths they claim.

    Each physical manifest (by path_key) belongs to at most one logical
    runtime. A manifest that fails to load is still claimed, so it is
    reported once. Loaded runtimes carry the canonical manifest path, so
    the same file keeps one identity across enumerations whichever
    spelling found it.
    """

    def __init__(self, registry: WindowsRegistry):
        self._registry = registry
        self._claimed: Set[str] = set()
        self.runtimes: List[WindowsRuntime] = []
        self.nonfatal_errors: List[ManifestError] = []

    def is_claimed(self, path: PathLike) -> bool:
        return path_key(path) in self._claimed

    def claim(self, path: PathLike) -> None:
        self._claimed.add(path_key(path))

    def _load(self, path: Optional[PathLike]) -> Optional[BaseRuntime]:
        if path is None:
            return None
        canonical = canonical_path(path)
        if self.is_claimed(path) or self.is_claimed(canonical):
            return None
        self.claim(path)
        self.claim(canonical)
        try:
            return BaseRuntime.new(canonical)
        except XrPickerError as e:
            logger.warning(f"Error when trying to load {path}: {e}")
            self.nonfatal_errors.append(ManifestError(Path(path), e))
            return None

    def add(self, native_path: Optional[PathLike], narrow_path: Optional[PathLike]) -> Optional[WindowsRuntime]:
        """
        Add a runtime from up to one manifest per width.

        Already-claimed paths are dropped. Returns the new runtime, or None
        if nothing usable was left.
        """
        native = self._load(native_path)
        narrow = self._load(narrow_path)
        if native is None and narrow is None:
            return None
        runtime = WindowsRuntime(native, narrow, self._registry)
        self.runtimes.append(runtime)
        return runtime


# =============================================================================
# Active Runtime Data
# =============================================================================


class WindowsActiveRuntimeData(NamedTuple):
    """The ActiveRuntime value for each width, as read from the registry."""
    native: Optional[str]
    narrow: Optional[str]

    def matches(self, width: Width, base: Optional[BaseRuntime]) -> bool:
        active = self.native if width is Width.NATIVE else self.narrow
        if active is None or base is None:
            return False
        return path_key(active) == path_key(base.manifest_path)


# =============================================================================
# Platform
# =============================================================================


class WindowsPlatform:
    """Platform implementation for Windows."""

    def __init__(
        self,
        registry: Optional[WindowsRegistry] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.registry = registry or WindowsRegistry()
        self.environ = os.environ if environ is None else environ

    @property
    def is_64bit(self) -> bool:
        return self.registry.is_64bit

    @property
    def widths(self) -> Tuple[Width, ...]:
        if self.is_64bit:
            return (Width.NATIVE, Width.NARROW)
        return (Width.NATIVE,)

    def _list_registered(self) -> Dict[Width, List[str]]:
        registered: Dict[Width, List[str]] = {}
        try:
            registered[Width.NATIVE] = self.registry.list_available_runtimes(Width.NATIVE)
        except OSError as e:
            raise EnumerationError(f"Could not read {REGISTRY_AVAILABLE_RUNTIMES_KEY}: {e}") from e

        registered[Width.NARROW] = []
        if Width.NARROW in self.widths:
            try:
                registered[Width.NARROW] = self.registry.list_available_runtimes(Width.NARROW)
            except OSError as e:
                logger.warning(f"Could not read 32-bit {REGISTRY_AVAILABLE_RUNTIMES_KEY}, skipping: {e}")
        return registered

    def _well_known_path(self, manifest: WellKnownManifest) -> Optional[str]:
        base = self.environ.get(manifest.base)
        if not base:
            return None
        path = os.path.join(base, *PureWindowsPath(manifest.relative_path).parts)
        try:
            if Path(path).is_file():
                return path
        except OSError as e:
            logger.debug(f"Could not probe {manifest.description} manifest {path}: {e}")
        return None

    def _add_well_known(self, collection: RuntimeCollection) -> None:
        natives = list(WELL_KNOWN_NATIVE)
        if self.is_64bit:
            natives.extend(WELL_KNOWN_NATIVE_64BIT_ONLY)
        narrows = list(WELL_KNOWN_NARROW) if self.is_64bit else []

        native_found = [p for p in map(self._well_known_path, natives) if p is not None]
        narrow_found = [p for p in map(self._well_known_path, narrows) if p is not None]
        # The mixed reality manifests live in different directories, pair them explicitly
        pairs: List[Tuple[Optional[str], Optional[str]]] = []
        for native in native_found:
            narrow = next(
                (n for n in narrow_found if ntpath.basename(n).lower() == ntpath.basename(native).lower()),
                None,
            )
            if narrow is not None:
                narrow_found.remove(narrow)
            pairs.append((native, narrow))
        pairs.extend((None, n) for n in narrow_found)

        for native, narrow in pairs:
            collection.add(
                None if native is None or collection.is_claimed(native) else native,
                None if narrow is None or collection.is_claimed(narrow) else narrow,
            )

    def _add_extra(self, collection: RuntimeCollection, path: PathLike) -> None:
        if collection.is_claimed(path) or collection.is_claimed(canonical_path(path)):
            return
        try:
            bitness = get_runtime_bitness(path)
        except XrPickerError as e:
            logger.warning(f"Could not determine bitness of {path}: {e}")
            collection.claim(path)
            collection.nonfatal_errors.append(ManifestError(Path(path), e))
            return

        if bitness is RuntimeBitness.BIT_WIDTH_32 and self.is_64bit:
            collection.add(None, path)
        else:
            collection.add(path, None)

    def find_available_runtimes(
        self,
        extra_paths: Optional[Iterable[PathLike]] = None,
    ) -> Tuple[List[WindowsRuntime], List[ManifestError]]:
        registered = self._list_registered()
        collection = RuntimeCollection(self.registry)

        for native, narrow in pair_by_parent_directory(registered[Width.NATIVE], registered[Width.NARROW]):
            collection.add(native, narrow)

        self._add_well_known(collection)

        for path in extra_paths or ():
            self._add_extra(collection, path)

        logger.debug(
            f"Found {len(collection.runtimes)} runtime(s), "
            f"{len(collection.nonfatal_errors)} manifest error(s)"
        )
        return collection.runtimes, collection.nonfatal_errors

    def _read_active(self, width: Width) -> Optional[str]:
        if width not in self.widths:
            return None
        try:
            return self.registry.get_active_runtime(width)
        except OSError as e:
            logger.warning(f"Could not read {width.value} {REGISTRY_ACTIVE_RUNTIME_VALUE}: {e}")
            return None

    def get_active_data(self) -> WindowsActiveRuntimeData:
        return WindowsActiveRuntimeData(
            native=self._read_active(Width.NATIVE),
            narrow=self._read_active(Width.NARROW),
        )

    def get_active_runtime_manifests(self) -> List[Path]:
        return [Path(p) for p in self.get_active_data() if p is not None]

    def get_runtime_active_state(
        self,
        runtime: WindowsRuntime,
        active_data: WindowsActiveRuntimeData,
    ) -> ActiveState:
        native = active_data.matches(Width.NATIVE, runtime.native)
        narrow = active_data.matches(Width.NARROW, runtime.narrow)
        if not self.is_64bit:
            # Only one width exists, so there is no partial state
            return ActiveState.ACTIVE_INDEPENDENT_RUNTIME if native else ActiveState.NOT_ACTIVE
        return ActiveState.from_native_and_narrow(native, narrow)
