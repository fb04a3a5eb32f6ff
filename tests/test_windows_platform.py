#!/usr/bin/env python3
"""
Windows Platform Tests
======================

The registry is replaced by an in-memory fake, so these run on any host.
Manifest files are real files under tmp_path.
"""

import os
from pathlib import Path

import pytest

from xrpicker.app_state import AppState
from xrpicker.arch_detect import RuntimeBitness
from xrpicker.errors import (
    ActiveState,
    EnumerationError,
    ManifestVersionMismatch,
    RuntimeBinaryLoadError,
    SetActiveError,
)
from xrpicker.persistence import PersistentAppState
from xrpicker.windows import (
    WindowsActiveRuntimeData,
    WindowsPlatform,
    Width,
    pair_by_parent_directory,
    path_key,
)


class FakeRegistry:
    """Stands in for WindowsRegistry; records writes."""

    def __init__(self, is_64bit=True, available=None, active=None, fail=None):
        self.is_64bit = is_64bit
        self.available = {Width.NATIVE: [], Width.NARROW: []}
        self.available.update(available or {})
        self.active = {Width.NATIVE: None, Width.NARROW: None}
        self.active.update(active or {})
        self.fail = set(fail or ())
        self.writes = []

    def list_available_runtimes(self, width):
        if ("list", width) in self.fail:
            raise PermissionError(5, "Access is denied")
        return [str(p) for p in self.available[width]]

    def get_active_runtime(self, width):
        value = self.active[width]
        return None if value is None else str(value)

    def set_active_runtime(self, width, manifest_path):
        if ("set", width) in self.fail:
            raise PermissionError(5, "Access is denied")
        self.writes.append((width, str(manifest_path)))
        self.active[width] = str(manifest_path)


def _platform(registry, environ=None):
    return WindowsPlatform(registry=registry, environ=environ or {})


@pytest.fixture
def tmp_path(tmp_path):
    """Canonical tmp_path, matching the manifest paths runtimes report."""
    return Path(os.path.realpath(tmp_path))


class TestPathKey:

    def test_case_and_separators(self):
        assert path_key(r"C:\Foo\Bar.json") == path_key("c:/foo/bar.json")

    def test_dot_segments(self):
        assert path_key(r"C:\Foo\.\Bar.json") == path_key(r"C:\Foo\Bar.json")


class TestPairByParentDirectory:

    def test_same_directory_pairs(self):
        pairs = pair_by_parent_directory([r"C:\A\rt.json"], [r"c:\a\rt32.json"])
        assert pairs == [(r"C:\A\rt.json", r"c:\a\rt32.json")]

    def test_unmatched_order(self):
        pairs = pair_by_parent_directory(
            [r"C:\A\rt.json", r"C:\B\rt.json"],
            [r"C:\C\rt32.json", r"C:\B\rt32.json", r"C:\D\rt32.json"],
        )
        assert pairs == [
            (r"C:\A\rt.json", None),
            (r"C:\B\rt.json", r"C:\B\rt32.json"),
            (None, r"C:\C\rt32.json"),
            (None, r"C:\D\rt32.json"),
        ]

    def test_each_narrow_used_once(self):
        pairs = pair_by_parent_directory([r"C:\A\one.json", r"C:\A\two.json"], [r"C:\A\rt32.json"])
        assert pairs == [(r"C:\A\one.json", r"C:\A\rt32.json"), (r"C:\A\two.json", None)]


class TestDiscovery:

    def test_pairs_co_installed_widths(self, tmp_path, manifest_writer):
        native = manifest_writer(tmp_path / "steamvr" / "steamxr_win64.json", name="SteamVR")
        narrow = manifest_writer(tmp_path / "steamvr" / "steamxr_win32.json", name="SteamVR")
        other = manifest_writer(tmp_path / "oculus" / "oculus_openxr_64.json", name="Oculus")
        registry = FakeRegistry(available={Width.NATIVE: [native, other], Width.NARROW: [narrow]})

        runtimes, errors = _platform(registry).find_available_runtimes()

        assert errors == []
        assert len(runtimes) == 2
        assert runtimes[0].get_manifests() == [native, narrow]
        assert runtimes[1].get_manifests() == [other]
        assert runtimes[1].narrow is None

    def test_narrow_only_runtime(self, tmp_path, manifest_writer):
        narrow = manifest_writer(tmp_path / "legacy" / "rt32.json", name="Legacy")
        registry = FakeRegistry(available={Width.NARROW: [narrow]})

        runtimes, _ = _platform(registry).find_available_runtimes()

        assert len(runtimes) == 1
        assert runtimes[0].native is None
        assert runtimes[0].get_runtime_name() == "Legacy"

    def test_same_manifest_listed_twice(self, tmp_path, manifest_writer):
        native = manifest_writer(tmp_path / "rt" / "rt.json")
        variant = os.path.join(str(tmp_path), "rt", ".", "rt.json")
        registry = FakeRegistry(available={Width.NATIVE: [native, variant]})

        runtimes, errors = _platform(registry).find_available_runtimes()

        assert len(runtimes) == 1
        assert errors == []

    def test_broken_manifest_is_nonfatal(self, tmp_path, manifest_writer):
        good = manifest_writer(tmp_path / "good" / "rt.json")
        bad = manifest_writer(tmp_path / "bad" / "rt.json", version="0.9.0")
        registry = FakeRegistry(available={Width.NATIVE: [bad, good]})

        runtimes, errors = _platform(registry).find_available_runtimes(extra_paths=[bad])

        assert [r.get_manifests() for r in runtimes] == [[good]]
        assert len(errors) == 1
        assert isinstance(errors[0].error, ManifestVersionMismatch)

    def test_native_enumeration_failure_is_fatal(self):
        registry = FakeRegistry(fail=[("list", Width.NATIVE)])

        with pytest.raises(EnumerationError):
            _platform(registry).find_available_runtimes()

    def test_narrow_enumeration_failure_is_ignored(self, tmp_path, manifest_writer):
        native = manifest_writer(tmp_path / "rt" / "rt.json")
        registry = FakeRegistry(available={Width.NATIVE: [native]}, fail=[("list", Width.NARROW)])

        runtimes, errors = _platform(registry).find_available_runtimes()

        assert len(runtimes) == 1
        assert errors == []

    def test_32bit_build_ignores_narrow(self, tmp_path, manifest_writer):
        native = manifest_writer(tmp_path / "rt" / "rt.json")
        narrow = manifest_writer(tmp_path / "rt" / "rt32.json")
        registry = FakeRegistry(
            is_64bit=False,
            available={Width.NATIVE: [native], Width.NARROW: [narrow]},
        )

        runtimes, _ = _platform(registry).find_available_runtimes()

        assert [r.get_manifests() for r in runtimes] == [[native]]


class TestWellKnownManifests:

    @pytest.fixture
    def system_root(self, tmp_path, manifest_writer):
        root = tmp_path / "Windows"
        manifest_writer(root / "System32" / "MixedRealityRuntime.json", library_path="MixedRealityRuntime.dll")
        manifest_writer(root / "SysWOW64" / "MixedRealityRuntime.json", library_path="MixedRealityRuntime.dll")
        return root

    def test_mixed_reality_pairs_across_directories(self, system_root):
        platform = _platform(FakeRegistry(), environ={"SystemRoot": str(system_root)})

        runtimes, errors = platform.find_available_runtimes()

        assert errors == []
        assert len(runtimes) == 1
        assert runtimes[0].get_runtime_name() == "Windows Mixed Reality"
        assert runtimes[0].native is not None and runtimes[0].narrow is not None

    def test_registered_manifest_not_duplicated(self, system_root):
        native = system_root / "System32" / "MixedRealityRuntime.json"
        registry = FakeRegistry(available={Width.NATIVE: [native]})
        platform = _platform(registry, environ={"SystemRoot": str(system_root)})

        runtimes, _ = platform.find_available_runtimes()

        manifests = [path_key(m) for r in runtimes for m in r.get_manifests()]
        assert len(manifests) == len(set(manifests))
        assert manifests.count(path_key(native)) == 1

    def test_varjo_only_on_64bit(self, tmp_path, manifest_writer):
        program_files = tmp_path / "Program Files"
        manifest_writer(program_files / "Varjo" / "varjo-openxr" / "VarjoOpenXR.json", library_path="VarjoOpenXR.dll")
        environ = {"ProgramW6432": str(program_files)}

        runtimes64, _ = _platform(FakeRegistry(), environ).find_available_runtimes()
        runtimes32, _ = _platform(FakeRegistry(is_64bit=False), environ).find_available_runtimes()

        assert [r.get_runtime_name() for r in runtimes64] == ["Varjo"]
        assert runtimes32 == []

    def test_missing_environment(self):
        runtimes, errors = _platform(FakeRegistry()).find_available_runtimes()
        assert runtimes == []
        assert errors == []


class TestExtraPaths:

    def test_32bit_extra_goes_to_narrow(self, tmp_path, manifest_writer, monkeypatch):
        path = manifest_writer(tmp_path / "x86" / "rt.json")
        monkeypatch.setattr("xrpicker.windows.get_runtime_bitness", lambda p: RuntimeBitness.BIT_WIDTH_32)

        runtimes, _ = _platform(FakeRegistry()).find_available_runtimes(extra_paths=[path])

        assert runtimes[0].native is None
        assert runtimes[0].narrow.manifest_path == path

    @pytest.mark.parametrize("bitness", [RuntimeBitness.BIT_WIDTH_64, RuntimeBitness.UNIVERSAL])
    def test_other_extras_go_to_native(self, tmp_path, manifest_writer, monkeypatch, bitness):
        path = manifest_writer(tmp_path / "x64" / "rt.json")
        monkeypatch.setattr("xrpicker.windows.get_runtime_bitness", lambda p: bitness)

        runtimes, _ = _platform(FakeRegistry()).find_available_runtimes(extra_paths=[path])

        assert runtimes[0].native.manifest_path == path

    def test_symlinked_extra_matches_registered(self, tmp_path, manifest_writer, monkeypatch):
        path = manifest_writer(tmp_path / "rt" / "rt.json")
        link = tmp_path / "link.json"
        try:
            os.symlink(path, link)
        except (OSError, NotImplementedError):
            pytest.skip("symlinks not available")
        monkeypatch.setattr("xrpicker.windows.get_runtime_bitness", lambda p: RuntimeBitness.BIT_WIDTH_64)

        runtimes, _ = _platform(
            FakeRegistry(available={Width.NATIVE: [path]})
        ).find_available_runtimes(extra_paths=[link])

        assert [r.get_manifests() for r in runtimes] == [[path]]


class TestRefresh:
    """One physical manifest keeps one entry across refreshes."""

    def test_registered_later_under_other_spelling(self, tmp_path, manifest_writer, monkeypatch):
        path = manifest_writer(tmp_path / "Foo" / "rt.json", name="Dev Build")
        (tmp_path / "Bar").mkdir()
        other = manifest_writer(tmp_path / "Other" / "rt.json", name="Other")
        monkeypatch.setattr("xrpicker.windows.get_runtime_bitness", lambda p: RuntimeBitness.BIT_WIDTH_64)
        registry = FakeRegistry()
        platform = _platform(registry)
        persistent = PersistentAppState(extra_paths=[path])

        state = AppState.new(platform, persistent)
        first = state.runtimes[0]

        registry.available[Width.NATIVE] = [
            os.path.join(str(tmp_path), "Bar", "..", "Foo", "rt.json"),
            other,
        ]
        refreshed = state.refresh(platform, persistent)

        assert [r.get_runtime_name() for r in refreshed.runtimes] == ["Dev Build", "Other"]
        assert refreshed.runtimes[0] is first
        assert refreshed.runtimes[0].get_manifests() == [path]

    def test_refresh_is_idempotent(self, tmp_path, manifest_writer):
        native = manifest_writer(tmp_path / "a" / "rt64.json")
        narrow = manifest_writer(tmp_path / "a" / "rt32.json")
        registry = FakeRegistry(available={Width.NATIVE: [native], Width.NARROW: [narrow]})
        platform = _platform(registry)

        state = AppState.new(platform)
        refreshed = state.refresh(platform).refresh(platform)

        assert refreshed.runtimes == state.runtimes
        assert runtimes[0].narrow is None

    def test_unreadable_library_is_nonfatal(self, tmp_path, manifest_writer):
        path = manifest_writer(tmp_path / "rt.json", library_path="./missing.dll")

        runtimes, errors = _platform(FakeRegistry()).find_available_runtimes(extra_paths=[path])

        assert runtimes == []
        assert len(errors) == 1
        assert isinstance(errors[0].error, RuntimeBinaryLoadError)

    def test_registered_extra_ignored(self, tmp_path, manifest_writer, monkeypatch):
        path = manifest_writer(tmp_path / "rt.json")
        monkeypatch.setattr("xrpicker.windows.get_runtime_bitness", lambda p: pytest.fail("bitness checked for a registered manifest"))

        runtimes, _ = _platform(
            FakeRegistry(available={Width.NATIVE: [path]})
        ).find_available_runtimes(extra_paths=[path])

        assert len(runtimes) == 1


class TestActivation:

    def _pair(self, tmp_path, manifest_writer):
        native = manifest_writer(tmp_path / "a" / "rt64.json", name="A")
        narrow = manifest_writer(tmp_path / "a" / "rt32.json", name="A")
        solo = manifest_writer(tmp_path / "b" / "rt64.json", name="B")
        return native, narrow, solo

    def test_make_active_both_widths(self, tmp_path, manifest_writer):
        native, narrow, solo = self._pair(tmp_path, manifest_writer)
        registry = FakeRegistry(available={Width.NATIVE: [native, solo], Width.NARROW: [narrow]})
        platform = _platform(registry)
        runtimes, _ = platform.find_available_runtimes()

        runtimes[0].make_active()

        assert registry.writes == [(Width.NATIVE, str(native)), (Width.NARROW, str(narrow))]
        active = platform.get_active_data()
        assert platform.get_runtime_active_state(runtimes[0], active) is ActiveState.ACTIVE_BOTH
        assert platform.get_runtime_active_state(runtimes[1], active) is ActiveState.NOT_ACTIVE

    def test_missing_width_left_untouched(self, tmp_path, manifest_writer):
        native, narrow, solo = self._pair(tmp_path, manifest_writer)
        registry = FakeRegistry(available={Width.NATIVE: [native, solo], Width.NARROW: [narrow]})
        platform = _platform(registry)
        runtimes, _ = platform.find_available_runtimes()
        runtimes[0].make_active()

        runtimes[1].make_active()

        assert registry.active[Width.NARROW] == str(narrow)
        active = platform.get_active_data()
        assert platform.get_runtime_active_state(runtimes[0], active) is ActiveState.ACTIVE_NARROW_ONLY
        assert platform.get_runtime_active_state(runtimes[1], active) is ActiveState.ACTIVE_NATIVE_ONLY
        assert platform.get_active_runtime_manifests() == [solo, narrow]

    def test_write_failure(self, tmp_path, manifest_writer):
        native = manifest_writer(tmp_path / "rt.json")
        registry = FakeRegistry(available={Width.NATIVE: [native]}, fail=[("set", Width.NATIVE)])
        runtimes, _ = _platform(registry).find_available_runtimes()

        with pytest.raises(SetActiveError):
            runtimes[0].make_active()

    def test_32bit_build_has_no_partial_state(self, tmp_path, manifest_writer):
        native = manifest_writer(tmp_path / "rt.json")
        registry = FakeRegistry(is_64bit=False, available={Width.NATIVE: [native]}, active={Width.NATIVE: native})
        platform = _platform(registry)
        runtimes, _ = platform.find_available_runtimes()

        state = platform.get_runtime_active_state(runtimes[0], platform.get_active_data())

        assert state is ActiveState.ACTIVE_INDEPENDENT_RUNTIME

    def test_active_match_is_case_insensitive(self, tmp_path, manifest_writer):
        native = manifest_writer(tmp_path / "rt.json")
        registry = FakeRegistry(available={Width.NATIVE: [native]})
        runtimes, _ = _platform(registry).find_available_runtimes()

        data = WindowsActiveRuntimeData(native=str(native).upper(), narrow=None)

        assert data.matches(Width.NATIVE, runtimes[0].native)
        assert not data.matches(Width.NARROW, runtimes[0].narrow)

    def test_describe_both_widths(self, tmp_path, manifest_writer):
        native, narrow, _ = self._pair(tmp_path, manifest_writer)
        registry = FakeRegistry(available={Width.NATIVE: [native], Width.NARROW: [narrow]})
        runtimes, _ = _platform(registry).find_available_runtimes()

        lines = runtimes[0].describe().splitlines()

        assert lines[0].startswith("Native: ")
        assert any(line.startswith("Narrow (32-bit): ") for line in lines)
