"""
Capability interfaces implemented once per operating system.

Only one Platform implementation is used in any given process: see
xrpicker.make_platform(). Front ends (GUIs, CLIs) only ever talk to these
two protocols.

Design Contract:
- Every call is synchronous and may block on filesystem or registry I/O.
- find_available_runtimes() only raises for failures of the discovery
  mechanism itself; per-manifest failures are returned, not raised.
- Active data is a snapshot. Fetch a new one after make_active().
"""

from pathlib import Path
from typing import Any, Iterable, List, Optional, Protocol, Sequence, Tuple, runtime_checkable

from .errors import ActiveState, ManifestError


@runtime_checkable
class PlatformRuntime(Protocol):
    """Platform-specific handle for one logical runtime."""

    def make_active(self) -> None:
        """
        Attempt to make this runtime active.

        Raises:
            SetActiveError: If the active runtime marker could not be written
        """
        ...

    def get_runtime_name(self) -> str:
        """Preferably the self-declared name. Not promised to be unique."""
        ...

    def get_manifests(self) -> List[Path]:
        ...

    def get_libraries(self) -> List[Path]:
        ...

    def describe(self) -> str:
        """Describe this specific instance, usually via its manifest(s) and library."""
        ...


@runtime_checkable
class Platform(Protocol):
    """Discovery and active-runtime queries for the host OS."""

    def find_available_runtimes(
        self,
        extra_paths: Optional[Iterable[Path]] = None,
    ) -> Tuple[List[Any], List[ManifestError]]:
        """
        Enumerate all available runtimes we might be aware of.

        Args:
            extra_paths: Additional manifest paths (e.g. user-supplied)

        Returns:
            (runtimes, nonfatal_errors)

        Raises:
            EnumerationError: If the discovery mechanism itself is unusable
        """
        ...

    def get_active_runtime_manifests(self) -> List[Path]:
        """Paths of all active runtime manifests (there may be one per width)."""
        ...

    def get_active_data(self) -> Any:
        """Opaque snapshot of the active runtime(s), for get_runtime_active_state()."""
        ...

    def get_runtime_active_state(self, runtime: Any, active_data: Any) -> ActiveState:
        ...


def manifest_identity(runtime: PlatformRuntime) -> Tuple[str, ...]:
    """
    Identity key of a logical runtime: the sorted manifest paths it owns.

    Used to deduplicate and keep display order stable across refreshes.
    """
    manifests: Sequence[Path] = runtime.get_manifests()
    return tuple(sorted(str(p) for p in manifests))
