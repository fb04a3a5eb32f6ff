"""Shorten paths for display by replacing the home directory with ~."""

from pathlib import Path, PurePath
from typing import Optional, Union


class PathSimplifier:
    """Replace the literal home directory prefix of a path with ~."""

    def __init__(self, home_dir: Optional[Path] = None):
        if home_dir is None:
            try:
                home_dir = Path.home()
            except RuntimeError:
                # No resolvable home (e.g. stripped-down service account)
                home_dir = None
        self.home_dir = home_dir

    def simplify(self, path: Union[str, PurePath]) -> PurePath:
        path = PurePath(path)
        if self.home_dir is None:
            return path
        try:
            rest = path.relative_to(self.home_dir)
        except ValueError:
            return path
        return PurePath("~", rest)
