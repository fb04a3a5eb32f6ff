"""
Configuration Constants
=======================

This module centralizes the well-known names and locations used to find
OpenXR runtime manifests and to mark one of them as active.

None of these values are mutated at runtime. The log level override is
read once at import time, the persisted state location on every call.

MODIFICATION RULES:
------------------
1. Paths here follow the OpenXR loader's own lookup rules. Changing one
   means the picker no longer agrees with the loader about which runtime
   is active.
2. Registry key paths are relative to HKEY_LOCAL_MACHINE.
"""

import os
from pathlib import Path
from typing import NamedTuple, Tuple

from platformdirs import user_config_path


# =============================================================================
# OpenXR Loader Conventions
# =============================================================================

# Directory component used in constructing config paths: <config dir>/openxr/<major>/
OPENXR = "openxr"

OPENXR_MAJOR_VERSION = 1

# Well-known file name the loader consults inside the versioned config directory.
ACTIVE_RUNTIME_FILENAME = "active_runtime.json"

# The only runtime manifest file_format_version we accept.
SUPPORTED_FILE_FORMAT_VERSION = "1.0.0"


# =============================================================================
# Linux Locations
# =============================================================================

SYSCONFDIR = "/etc"

# Name given to whatever previously sat at the active runtime location when
# a new runtime is activated. {timestamp} is seconds since the epoch.
BACKUP_FILENAME_TEMPLATE = "old_active_runtime{timestamp}.json"


def versioned_suffix() -> Path:
    """Relative path of the versioned config directory, e.g. openxr/1."""
    return Path(OPENXR) / str(OPENXR_MAJOR_VERSION)


# =============================================================================
# Windows Registry Locations
# =============================================================================

REGISTRY_OPENXR_KEY = rf"SOFTWARE\Khronos\OpenXR\{OPENXR_MAJOR_VERSION}"
REGISTRY_AVAILABLE_RUNTIMES_KEY = REGISTRY_OPENXR_KEY + r"\AvailableRuntimes"
REGISTRY_ACTIVE_RUNTIME_VALUE = "ActiveRuntime"


class WellKnownManifest(NamedTuple):
    """
    A runtime manifest installed at a fixed location that its vendor does
    not (yet) register under AvailableRuntimes.

    FIELDS:
    - base: Environment variable naming the base directory
    - relative_path: Manifest path relative to that directory
    - description: Human-readable explanation, used in log messages
    """
    base: str
    relative_path: str
    description: str


# Mixed reality runtime ships with the OS, one manifest per width.
MIXED_REALITY_NATIVE = WellKnownManifest(
    base="SystemRoot",
    relative_path=r"System32\MixedRealityRuntime.json",
    description="Windows Mixed Reality (native)",
)
MIXED_REALITY_NARROW = WellKnownManifest(
    base="SystemRoot",
    relative_path=r"SysWOW64\MixedRealityRuntime.json",
    description="Windows Mixed Reality (WOW64)",
)

# 64-bit only, so only probed from 64-bit builds.
VARJO_NATIVE = WellKnownManifest(
    base="ProgramW6432",
    relative_path=r"Varjo\varjo-openxr\VarjoOpenXR.json",
    description="Varjo",
)

WELL_KNOWN_NATIVE: Tuple[WellKnownManifest, ...] = (MIXED_REALITY_NATIVE,)
WELL_KNOWN_NATIVE_64BIT_ONLY: Tuple[WellKnownManifest, ...] = (VARJO_NATIVE,)
WELL_KNOWN_NARROW: Tuple[WellKnownManifest, ...] = (MIXED_REALITY_NARROW,)


# =============================================================================
# Application Settings (environment overrides)
# =============================================================================

APP_NAME = "xrpicker"

LOG_LEVEL = os.environ.get("XRPICKER_LOG_LEVEL", "INFO")


def default_state_file() -> Path:
    """
    Location of the persisted application state (extra manifest paths).

    XRPICKER_STATE_FILE overrides the platform's user config directory.
    """
    override = os.environ.get("XRPICKER_STATE_FILE")
    if override:
        return Path(override).expanduser()
    return user_config_path(APP_NAME, appauthor=False) / "state.json"
