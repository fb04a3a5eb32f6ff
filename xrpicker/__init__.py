"""xrpicker - enumerate OpenXR runtimes, identify the active one, and switch it."""

import sys

from xrpicker.__version__ import __version__, __version_info__

from xrpicker.app_state import AppState, merge_runtimes
from xrpicker.config import ACTIVE_RUNTIME_FILENAME, OPENXR, OPENXR_MAJOR_VERSION
from xrpicker.errors import (
    ActiveState,
    EnumerationError,
    ManifestError,
    ManifestIoError,
    ManifestJsonError,
    ManifestVersionMismatch,
    PersistenceError,
    RuntimeBinaryLoadError,
    SetActiveError,
    XrPickerError,
)
from xrpicker.persistence import PersistentAppState
from xrpicker.platform import Platform, PlatformRuntime


def make_platform() -> Platform:
    """Create the Platform implementation for the host OS."""
    if sys.platform == "win32":
        from xrpicker.windows import WindowsPlatform
        return WindowsPlatform()

    from xrpicker.linux import LinuxPlatform
    return LinuxPlatform()


__all__ = [
    "ACTIVE_RUNTIME_FILENAME",
    "OPENXR",
    "OPENXR_MAJOR_VERSION",
    "ActiveState",
    "AppState",
    "EnumerationError",
    "ManifestError",
    "ManifestIoError",
    "ManifestJsonError",
    "ManifestVersionMismatch",
    "PersistenceError",
    "PersistentAppState",
    "Platform",
    "PlatformRuntime",
    "RuntimeBinaryLoadError",
    "SetActiveError",
    "XrPickerError",
    "make_platform",
    "merge_runtimes",
]
