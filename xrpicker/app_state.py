"""
AppState: the runtime list a front end displays, plus everything needed to
render it (non-fatal errors, active state snapshot).

Refresh keeps runtimes that were already shown in their existing
positions and appends newly discovered ones at the end.
"""

import logging
from typing import Any, Dict, Generic, Iterable, List, Optional, Tuple, TypeVar

from .errors import ActiveState, ManifestError
from .persistence import PersistentAppState
from .platform import Platform, PlatformRuntime, manifest_identity

logger = logging.getLogger("xrpicker")

RuntimeT = TypeVar("RuntimeT", bound=PlatformRuntime)


def merge_runtimes(existing: Iterable[RuntimeT], new: Iterable[RuntimeT]) -> List[RuntimeT]:
    """
    Stable merge: existing ++ new, keeping the first runtime per identity.

    Identity is the sorted list of manifest paths a runtime owns.
    """
    seen: Dict[Tuple[str, ...], None] = {}
    merged: List[RuntimeT] = []
    for runtime in list(existing) + list(new):
        key = manifest_identity(runtime)
        if key in seen:
            continue
        seen[key] = None
        merged.append(runtime)
    return merged


class AppState(Generic[RuntimeT]):
    """Validated runtime list, collected non-fatal errors and active data."""

    def __init__(
        self,
        runtimes: List[RuntimeT],
        nonfatal_errors: List[ManifestError],
        active_data: Any,
    ):
        self.runtimes = runtimes
        self.nonfatal_errors = nonfatal_errors
        self.active_data = active_data

    @staticmethod
    def _enumerate(
        platform: Platform,
        persistent_state: Optional[PersistentAppState],
    ) -> Tuple[List[RuntimeT], List[ManifestError], Any]:
        extra_paths = list(persistent_state.extra_paths) if persistent_state is not None else []
        runtimes, nonfatal_errors = platform.find_available_runtimes(extra_paths)
        active_data = platform.get_active_data()
        return runtimes, nonfatal_errors, active_data

    @classmethod
    def new(
        cls,
        platform: Platform,
        persistent_state: Optional[PersistentAppState] = None,
    ) -> "AppState[RuntimeT]":
        """
        Enumerate runtimes from scratch.

        Raises:
            EnumerationError: If the platform cannot enumerate at all
        """
        runtimes, nonfatal_errors, active_data = cls._enumerate(platform, persistent_state)
        return cls(runtimes, nonfatal_errors, active_data)

    def refresh(
        self,
        platform: Platform,
        persistent_state: Optional[PersistentAppState] = None,
    ) -> "AppState[RuntimeT]":
        """
        Re-enumerate, preserving the order of runtimes already listed.

        Errors and active data are replaced wholesale.

        Raises:
            EnumerationError: If the platform cannot enumerate at all
        """
        new_runtimes, nonfatal_errors, active_data = self._enumerate(platform, persistent_state)
        runtimes = merge_runtimes(self.runtimes, new_runtimes)
        logger.debug(f"Refreshed: {len(runtimes)} runtime(s), {len(nonfatal_errors)} error(s)")
        return type(self)(runtimes, nonfatal_errors, active_data)

    def get_active_state(self, platform: Platform, runtime: RuntimeT) -> ActiveState:
        """Active state of one listed runtime, from this state's snapshot."""
        return platform.get_runtime_active_state(runtime, self.active_data)
