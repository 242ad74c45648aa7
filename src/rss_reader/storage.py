"""JSON file persistence for the settings blob."""

import json
import logging
import os
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """Raised when the settings file cannot be read or written."""


class SettingsStorage:
    """Reads and writes the settings blob as a JSON file."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self) -> dict:
        """Load the blob. A missing file yields an empty dict.

        Raises:
            PersistenceError: If the file cannot be read or is not a JSON object.
        """
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                blob = json.load(f)
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Could not read settings from {self.path}: {e}") from e

        if not isinstance(blob, dict):
            raise PersistenceError(f"Settings file {self.path} does not contain a JSON object")
        return blob

    def save(self, blob: dict) -> None:
        """Save atomically (write to temp, then rename).

        The previous file stays untouched if anything fails.

        Raises:
            PersistenceError: If the blob cannot be serialized or written.
        """
        directory = self.path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(dir=directory, suffix=".json")
        except OSError as e:
            raise PersistenceError(f"Could not write settings to {self.path}: {e}") from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(blob, f, indent=2, ensure_ascii=False)
            # Atomic rename
            os.replace(temp_path, self.path)
        except (OSError, TypeError, ValueError) as e:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise PersistenceError(f"Could not write settings to {self.path}: {e}") from e

        logger.debug("Settings saved to %s", self.path)
