#!/usr/bin/env python3
"""Version information for xrpicker."""

# PEP 440 compliant version for pip/wheel
__version__ = "2.2.1"

# Human-readable version for display
__version_display__ = "2.2.1"

# Version metadata
__version_info__ = {
    "major": 2,
    "minor": 2,
    "patch": 1,
    "release": "",
}
