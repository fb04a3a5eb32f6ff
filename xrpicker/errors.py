"""
Exceptions and shared result types for xrpicker.

Two levels of failure exist:
- Fatal to a whole call: EnumerationError (discovery mechanism unusable)
  and SetActiveError (one activation attempt failed).
- Per manifest: everything else. These are caught at the enumeration
  boundary and returned as ManifestError pairs instead of being raised.
"""

from enum import Enum
from pathlib import Path
from typing import NamedTuple


class XrPickerError(Exception):
    """Base exception for all xrpicker errors."""
    pass


class EnumerationError(XrPickerError):
    """Raised when available runtimes cannot be enumerated at all."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Failure while attempting to enumerate available runtimes: {reason}")


class ManifestIoError(XrPickerError):
    """Raised when a manifest file cannot be read."""
    pass


class ManifestJsonError(XrPickerError):
    """Raised when a manifest is not valid JSON or does not match the schema."""
    pass


class ManifestVersionMismatch(XrPickerError):
    """Raised when a manifest declares an unsupported file_format_version."""

    def __init__(self, found: str):
        self.found = found
        super().__init__(f"Manifest file format version mismatch (got: {found!r})")


class RuntimeBinaryLoadError(XrPickerError):
    """Raised when a runtime's shared library cannot be read or parsed."""

    def __init__(self, library_path: str):
        self.library_path = library_path
        super().__init__(f"Could not load runtime binary: {library_path}")


class SetActiveError(XrPickerError):
    """Raised when making a runtime active fails."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Error when trying to set active runtime: {reason}")


class PersistenceError(XrPickerError):
    """Raised when saving/loading persisted state fails."""
    pass


class ManifestError(NamedTuple):
    """
    A non-fatal, per-manifest failure collected during enumeration.

    FIELDS:
    - path: The manifest (or library) path that failed
    - error: The exception describing why
    """
    path: Path
    error: XrPickerError

    def __str__(self) -> str:
        return f"{self.path}: {self.error}"


class ActiveState(Enum):
    """
    Whether a runtime is marked active.

    Windows has separate native and narrow (WOW64) settings, so a runtime
    can be active for only one of its widths.
    """
    NOT_ACTIVE = "not_active"
    ACTIVE_INDEPENDENT_RUNTIME = "active_independent_runtime"
    ACTIVE_NATIVE_ONLY = "active_native_only"
    ACTIVE_NARROW_ONLY = "active_narrow_only"
    ACTIVE_BOTH = "active_both"

    @classmethod
    def from_native_and_narrow(cls, native: bool, narrow: bool) -> "ActiveState":
        """Combine the per-width match flags into one state."""
        if native and narrow:
            return cls.ACTIVE_BOTH
        if native:
            return cls.ACTIVE_NATIVE_ONLY
        if narrow:
            return cls.ACTIVE_NARROW_ONLY
        return cls.NOT_ACTIVE

    def should_provide_make_active_button(self) -> bool:
        """Is this state at least partly inactive, so activation is worth offering?"""
        return self in (
            ActiveState.NOT_ACTIVE,
            ActiveState.ACTIVE_NATIVE_ONLY,
            ActiveState.ACTIVE_NARROW_ONLY,
        )

    def __str__(self) -> str:
        return _ACTIVE_STATE_LABELS[self]


_ACTIVE_STATE_LABELS = {
    ActiveState.NOT_ACTIVE: "",
    ActiveState.ACTIVE_INDEPENDENT_RUNTIME: "Active",
    ActiveState.ACTIVE_NATIVE_ONLY: "Active - 64-bit only",
    ActiveState.ACTIVE_NARROW_ONLY: "Active - 32-bit only",
    ActiveState.ACTIVE_BOTH: "Active",
}
