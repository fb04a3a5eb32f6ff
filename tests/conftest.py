"""
Pytest configuration for xrpicker tests.

Registers custom markers and shared fixtures for writing manifests and
pointing XDG lookups at a temporary directory.
"""

import json
import sys
from pathlib import Path

import pytest


def pytest_configure(config):
    """Register custom pytest markers."""
    config.addinivalue_line(
        "markers", "posix_only: needs symlinks and XDG lookups (skipped on Windows)"
    )


def pytest_collection_modifyitems(config, items):
    if sys.platform != "win32":
        return
    skip = pytest.mark.skip(reason="needs POSIX symlinks/XDG")
    for item in items:
        if "posix_only" in item.keywords:
            item.add_marker(skip)


def write_manifest(path, library_path="libopenxr_monado.so", name=None, version="1.0.0", **extra):
    """Write a runtime manifest JSON file, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    runtime = {"library_path": library_path}
    if name is not None:
        runtime["name"] = name
    runtime.update(extra)
    path.write_text(
        json.dumps({"file_format_version": version, "runtime": runtime}, indent=4),
        encoding="utf-8",
    )
    return path


@pytest.fixture
def manifest_writer():
    return write_manifest


@pytest.fixture
def xdg_env(tmp_path, monkeypatch):
    """
    Isolated XDG + sysconfdir layout.

    Returns a dict of versioned (openxr/1) directories:
    - home: $XDG_CONFIG_HOME/openxr/1
    - dirs: first $XDG_CONFIG_DIRS entry/openxr/1
    - etc: <sysconfdir>/openxr/1
    - sysconfdir: the sysconfdir root to hand to LinuxPlatform
    """
    root = tmp_path.resolve()
    config_home = root / "home" / ".config"
    config_dirs = root / "xdg"
    sysconfdir = root / "etc"
    for d in (config_home, config_dirs, sysconfdir):
        d.mkdir(parents=True)

    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_home))
    monkeypatch.setenv("XDG_CONFIG_DIRS", str(config_dirs))

    return {
        "home": config_home / "openxr" / "1",
        "dirs": config_dirs / "openxr" / "1",
        "etc": sysconfdir / "openxr" / "1",
        "sysconfdir": sysconfdir,
    }
