# infrastructure/file_storage.py
import os
import json
import logging
import tempfile
from pathlib import Path
from typing import Any, Union

from config import settings
from core.exceptions import FormatError

logger = logging.getLogger(settings.LOGGER_NAME)

_MISSING = object()

class JsonFileStorage:
    """
    One JSON document on local disk.

    Writes go to a temp file in the same directory and are renamed over the
    target, so readers never observe a half-written file.
    """

    MISSING = _MISSING

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        # Create the directory if it doesn't exist
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Could not create data directory at {self.path.parent}: {e}")
            raise

    def exists(self) -> bool:
        return self.path.exists()

    def read_text(self) -> Any:
        """Raw file text, or ``MISSING`` when there is no file."""
        if not self.path.exists():
            return _MISSING
        try:
            return self.path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise FormatError(f"{self.path.name} is not valid UTF-8: {e}")

    def read(self) -> Any:
        """Parsed document, or ``MISSING`` when there is no file."""
        text = self.read_text()
        if text is _MISSING:
            return _MISSING
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise FormatError(f"{self.path.name} is not valid JSON: {e}")

    def write_text(self, text: str) -> None:
        """Atomically replace the file with ``text`` (caller validates it)."""
        fd, tmp_path = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as buffer:
                buffer.write(text)
            os.replace(tmp_path, self.path)
            logger.debug(f"Wrote {len(text)} bytes to {self.path}")
        except OSError as e:
            logger.error(f"Failed to write {self.path}: {e}")
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def write(self, payload: Any) -> None:
        self.write_text(json.dumps(payload, indent=2))
