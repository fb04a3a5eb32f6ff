"""
Persisted application state.

Currently only the user-supplied extra manifest paths (added by browsing
or drag and drop in a front end) are persisted across sessions.
"""

import json
import logging
from pathlib import Path
from typing import Iterable, List, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from .config import default_state_file
from .errors import PersistenceError

logger = logging.getLogger("xrpicker")


class PersistentAppState(BaseModel):
    """State that survives between sessions."""

    extra_paths: List[Path] = Field(
        default_factory=list,
        description="User-supplied manifest paths, deduplicated, in the order added",
    )

    def append_new_extra_paths(self, paths: Iterable[Union[str, Path]]) -> List[Path]:
        """
        Append paths not already present, keeping order.

        Returns:
            The paths that were actually added
        """
        added = []
        for path in paths:
            path = Path(path)
            if path not in self.extra_paths:
                self.extra_paths.append(path)
                added.append(path)
        return added

    @classmethod
    def load(cls, state_file: Optional[Union[str, Path]] = None) -> "PersistentAppState":
        """
        Load persisted state.

        Args:
            state_file: Optional custom location (defaults to the user config dir)

        Returns:
            The loaded state, or a default one if the file doesn't exist

        Raises:
            PersistenceError: If the file exists but can't be read or parsed
        """
        file_path = Path(state_file) if state_file is not None else default_state_file()
        if not file_path.exists():
            return cls()

        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            state = cls.model_validate(data)
        except (OSError, ValueError, ValidationError) as e:
            raise PersistenceError(f"Could not load state from {file_path}: {e}") from e

        # Files may have been edited by hand
        deduplicated = cls()
        deduplicated.append_new_extra_paths(state.extra_paths)
        return deduplicated

    def save(self, state_file: Optional[Union[str, Path]] = None) -> Path:
        """
        Save state to disk, creating the directory if needed.

        Returns:
            Path to the saved file
        """
        file_path = Path(state_file) if state_file is not None else default_state_file()
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(file_path, 'w', encoding='utf-8') as f:
                json.dump(self.model_dump(mode="json"), f, indent=2, ensure_ascii=False)
        except OSError as e:
            raise PersistenceError(f"Could not save state to {file_path}: {e}") from e
        logger.debug(f"Saved state to {file_path}")
        return file_path
