"""
BaseRuntime: one parsed runtime manifest plus the path it was read from.

Used inside the platform-specific runtime types (LinuxRuntime,
WindowsRuntime), which add identity and activation on top.
"""

import logging
from pathlib import Path
from typing import Optional, Tuple, Union

from .errors import ManifestVersionMismatch
from .manifest import LibraryPathKind, RuntimeManifest
from .path_simplifier import PathSimplifier

logger = logging.getLogger("xrpicker")


# Ordered (library path fragment, display name) pairs for manifests that
# do not declare a name. First match wins.
RUNTIME_NAME_HEURISTICS: Tuple[Tuple[str, str], ...] = (
    ("MixedRealityRuntime", "Windows Mixed Reality"),
    ("monado", "Monado"),
    ("VarjoOpenXR", "Varjo"),
)


class BaseRuntime:
    """
    The path and parsed data of a runtime manifest.

    Immutable once constructed. Construction only checks that the JSON can
    be loaded and matches the schema with a supported file_format_version;
    it does not check that the library exists or is a valid runtime.
    """

    __slots__ = ("_manifest_path", "_manifest")

    def __init__(self, manifest_path: Union[str, Path], manifest: RuntimeManifest):
        self._manifest_path = Path(manifest_path)
        self._manifest = manifest

    @classmethod
    def new(cls, manifest_path: Union[str, Path]) -> "BaseRuntime":
        """
        Load a runtime from a manifest path.

        Raises:
            ManifestIoError: If the file cannot be read
            ManifestJsonError: If the file is not a valid manifest
            ManifestVersionMismatch: If file_format_version is not supported
        """
        manifest = RuntimeManifest.parse(manifest_path)
        if not manifest.is_file_format_version_ok():
            raise ManifestVersionMismatch(manifest.file_format_version)
        return cls(manifest_path, manifest)

    @property
    def manifest_path(self) -> Path:
        return self._manifest_path

    @property
    def manifest(self) -> RuntimeManifest:
        return self._manifest

    @property
    def library_path(self) -> str:
        return self._manifest.library_path

    def get_runtime_name(self) -> str:
        """
        Get a name for the runtime, preferably the self-declared one.

        Not promised to be unique!
        """
        declared: Optional[str] = self._manifest.runtime.name
        if declared:
            return declared

        for fragment, name in RUNTIME_NAME_HEURISTICS:
            if fragment in self.library_path:
                return name

        return str(self._manifest_path) or self.library_path

    def resolve_library_path(self) -> Path:
        """
        Get the fully resolved path to this runtime's library, if possible.

        A bare library name (search path) is returned unchanged, and so is
        not absolute. Otherwise the library path is joined to the manifest's
        directory (an absolute library path replaces it) and canonicalized,
        falling back to the plain join when the target does not exist on
        this host.
        """
        if self._manifest.classify_library_path() is LibraryPathKind.DYNAMIC_LIBRARY_SEARCH_PATH:
            return Path(self.library_path)

        joined = self._manifest_path.parent / self.library_path
        try:
            return joined.resolve(strict=True)
        except (OSError, RuntimeError):
            return joined

    def describe_manifest(self, simplifier: Optional[PathSimplifier] = None) -> str:
        return self._manifest.describe_manifest(self._manifest_path, simplifier)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BaseRuntime):
            return NotImplemented
        return self._manifest_path == other._manifest_path and self._manifest == other._manifest

    def __hash__(self) -> int:
        return hash((self._manifest_path, self._manifest))

    def __repr__(self) -> str:
        return f"BaseRuntime(manifest_path={str(self._manifest_path)!r}, library_path={self.library_path!r})"
