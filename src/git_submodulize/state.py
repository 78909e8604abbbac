"""Persistence of the last used start directory."""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class LastPathStore:
    """Remembers a single path string between runs."""

    def load(self) -> str | None:
        raise NotImplementedError

    def save(self, path: str) -> None:
        raise NotImplementedError


class MemoryLastPathStore(LastPathStore):
    """Keeps the last path for the lifetime of the process only."""

    def __init__(self, path: str | None = None):
        self.path = path

    def load(self) -> str | None:
        return self.path

    def save(self, path: str) -> None:
        self.path = path


class FileLastPathStore(LastPathStore):
    """
    Stores the last path as a single line in a text file.

    A missing or unreadable file loads as None. Write failures are logged,
    not raised.

    """

    def __init__(self, state_file: Path):
        self.state_file = state_file

    def load(self) -> str | None:
        try:
            value = self.state_file.read_text().strip()
        except OSError:
            return None
        return value or None

    def save(self, path: str) -> None:
        try:
            self.state_file.parent.mkdir(parents=True, exist_ok=True)
            self.state_file.write_text(f"{path}\n")
        except OSError as e:
            logger.warning("Could not remember %s in %s: %s", path, self.state_file, e)
