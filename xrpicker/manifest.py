"""
Runtime Manifest Model
======================

Schema and pure helpers for OpenXR runtime manifests: the JSON files that
name a runtime's shared library.

Example manifest:

    {
        "file_format_version": "1.0.0",
        "runtime": {
            "name": "Monado",
            "library_path": "../../../lib/libopenxr_monado.so",
            "functions": {
                "xrNegotiateLoaderRuntimeInterface": "xrNegotiateLoaderRuntimeInterface"
            }
        }
    }

Unknown fields are ignored. Only file_format_version "1.0.0" is usable, but
that is checked separately (see is_file_format_version_ok) so a parsed
manifest with another version can still be inspected.
"""

from enum import Enum, auto
from pathlib import Path, PurePath
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .config import SUPPORTED_FILE_FORMAT_VERSION
from .errors import ManifestIoError, ManifestJsonError
from .path_simplifier import PathSimplifier


# String placed between two paths to show that one points to the other,
# for multiline-capable display fields.
FILE_INDIRECTION_ARROW = "\n    ⮩ "


# =============================================================================
# Enums
# =============================================================================


class LibraryPathKind(Enum):
    """How the loader locates the library named by a manifest."""
    DYNAMIC_LIBRARY_SEARCH_PATH = auto()
    RELATIVE_TO_MANIFEST = auto()
    ABSOLUTE = auto()


# =============================================================================
# Schema
# =============================================================================


class RuntimeFunctions(BaseModel):
    """Optional table of renamed function symbols."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    negotiate_fn_name: Optional[str] = Field(
        default=None,
        alias="xrNegotiateLoaderRuntimeInterface",
        description="Symbol to use instead of xrNegotiateLoaderRuntimeInterface",
    )


class RuntimeSection(BaseModel):
    """The "runtime" object of a manifest."""

    model_config = ConfigDict(frozen=True)

    library_path: str = Field(
        description="Shared library: bare name, relative to the manifest, or absolute",
    )
    name: Optional[str] = Field(
        default=None,
        description="Self-declared runtime name",
    )
    functions: Optional[RuntimeFunctions] = None


class RuntimeManifest(BaseModel):
    """Top level structure of a runtime manifest."""

    model_config = ConfigDict(frozen=True)

    file_format_version: str
    runtime: RuntimeSection

    @classmethod
    def parse(cls, path: Union[str, Path]) -> "RuntimeManifest":
        """
        Read and decode a manifest file.

        Does not check file_format_version.

        Raises:
            ManifestIoError: If the file cannot be read
            ManifestJsonError: If the contents are not valid JSON or miss
                required fields
        """
        try:
            contents = Path(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ManifestIoError(f"Could not read manifest {path}: {e}") from e
        return cls.parse_text(contents)

    @classmethod
    def parse_text(cls, contents: str) -> "RuntimeManifest":
        try:
            return cls.model_validate_json(contents)
        except ValidationError as e:
            raise ManifestJsonError(f"JSON parsing error: {e}") from e

    @property
    def library_path(self) -> str:
        """The library path exactly as stored in the manifest."""
        return self.runtime.library_path

    def is_file_format_version_ok(self) -> bool:
        return self.file_format_version == SUPPORTED_FILE_FORMAT_VERSION

    def uses_search_path(self) -> bool:
        """Does the library path rely on the system shared library search path?"""
        return uses_search_path(self.library_path)

    def classify_library_path(self) -> LibraryPathKind:
        return classify_library_path(self.library_path)

    def describe_manifest(
        self,
        manifest_path: Union[str, PurePath],
        simplifier: Optional[PathSimplifier] = None,
    ) -> str:
        return describe_manifest(self.library_path, manifest_path, simplifier)


# =============================================================================
# Library Path Classification
# =============================================================================


def uses_search_path(library_path: str) -> bool:
    return "/" not in library_path and "\\" not in library_path


def library_relative_to_manifest(library_path: str) -> bool:
    """Should the library be searched for relative to the manifest?"""
    return (
        not uses_search_path(library_path)
        and not library_path.startswith("/")
        and not library_path.startswith("\\")
        and library_path[1:2] != ":"
    )


def classify_library_path(library_path: str) -> LibraryPathKind:
    """
    Classify a raw library path string.

    Examples:
        >>> classify_library_path("libfoo.so")
        <LibraryPathKind.DYNAMIC_LIBRARY_SEARCH_PATH: 1>
        >>> classify_library_path("./lib/foo.so")
        <LibraryPathKind.RELATIVE_TO_MANIFEST: 2>
        >>> classify_library_path("/usr/lib/foo.so")
        <LibraryPathKind.ABSOLUTE: 3>
    """
    if uses_search_path(library_path):
        return LibraryPathKind.DYNAMIC_LIBRARY_SEARCH_PATH
    if library_relative_to_manifest(library_path):
        return LibraryPathKind.RELATIVE_TO_MANIFEST
    return LibraryPathKind.ABSOLUTE


def describe_manifest(
    library_path: str,
    manifest_path: Union[str, PurePath],
    simplifier: Optional[PathSimplifier] = None,
) -> str:
    """Describe a manifest by its (simplified) path and the library it points to."""
    if simplifier is None:
        simplifier = PathSimplifier()
    manifest = simplifier.simplify(manifest_path)
    kind = classify_library_path(library_path)

    if kind is LibraryPathKind.DYNAMIC_LIBRARY_SEARCH_PATH:
        target = f"{library_path} in the dynamic library search path"
    elif kind is LibraryPathKind.RELATIVE_TO_MANIFEST:
        target = f"{library_path} relative to the manifest"
    else:
        target = str(simplifier.simplify(library_path))

    return f"{manifest}{FILE_INDIRECTION_ARROW}{target}"
