"""
A small file-backed key-value store scoped to the shared app-group directory.
Each key maps to one opaque blob on disk.
"""

import logging
import os
import tempfile
from pathlib import Path

from pathvalidate import sanitize_filename

log = logging.getLogger(__name__)


class AppGroupStore:
    """Stores whole blobs under fixed keys. Writes replace the old blob atomically."""

    def __init__(self, root_dir: Path):
        self.root_dir = root_dir

    def _get_path(self, key: str) -> Path:
        safe_key = sanitize_filename(key)
        if not safe_key:
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.root_dir / f"{safe_key}.json"

    def get_data(self, key: str) -> bytes | None:
        """Returns the blob stored under `key`, or None if there is none."""
        path = self._get_path(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None

    def set_data(self, key: str, data: bytes) -> None:
        """
        Replaces the blob stored under `key`. The data is written to a sibling
        temporary file first, then renamed over the old blob.
        """
        path = self._get_path(key)
        self.root_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.stem}.", dir=self.root_dir)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def remove(self, key: str) -> None:
        self._get_path(key).unlink(missing_ok=True)
