"""
Lists and removes packages that were downloaded into the documents folder.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from lcpkg.utils.path import PACKAGE_EXTENSION, create_dir

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class DownloadedPackage:
    path: Path
    size_bytes: int
    downloaded_at: datetime

    @property
    def file_name(self) -> str:
        return self.path.name


class PackageLibrary:
    """The `DownloadedIPAs` folder, newest packages first."""

    def __init__(self, downloads_dir: Path):
        self.downloads_dir = downloads_dir

    def list_packages(self) -> list[DownloadedPackage]:
        create_dir(self.downloads_dir)
        packages = []
        for path in self.downloads_dir.iterdir():
            if not path.is_file() or path.suffix.lower() != PACKAGE_EXTENSION:
                continue
            try:
                st = path.stat()
            except OSError as e:
                log.debug(f"Skipping unreadable package '{path.name}': {e}")
                continue
            created = getattr(st, "st_birthtime", st.st_mtime)
            packages.append(
                DownloadedPackage(
                    path=path,
                    size_bytes=st.st_size,
                    downloaded_at=datetime.fromtimestamp(created, tz=timezone.utc),
                )
            )
        return sorted(packages, key=lambda p: p.downloaded_at, reverse=True)

    def find(self, file_name: str) -> DownloadedPackage | None:
        return next(
            (p for p in self.list_packages() if p.file_name == file_name), None
        )

    def delete(self, packages: list[DownloadedPackage]) -> int:
        """Deletes the given packages and returns how many were removed."""
        removed = 0
        for package in packages:
            try:
                package.path.unlink()
                removed += 1
            except FileNotFoundError:
                continue
            except OSError as e:
                log.warning(f"Could not delete '{package.file_name}': {e}")
        return removed

    def delete_all(self) -> int:
        return self.delete(self.list_packages())
