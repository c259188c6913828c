"""
Downloads the package behind a saved link into the DownloadedIPAs folder.
"""

import asyncio
import logging
import os
import shutil
import tempfile
from pathlib import Path

import aiofiles
import aiohttp
from yarl import URL

from lcpkg.exceptions import (
    DestinationError,
    DownloadError,
    InvalidURLError,
    MoveError,
)
from lcpkg.models.link import LinkRecord
from lcpkg.models.progress import ProgressCallback, ProgressReporter
from lcpkg.network.session import HttpSessionPool
from lcpkg.utils.path import create_dir, package_file_name, parse_package_url

log = logging.getLogger(__name__)


class DownloadEngine:
    """Streams a remote package to a transient file, then moves it into place."""

    CHUNK_SIZE = 131072  # 128 KB

    def __init__(
        self,
        session_pool: HttpSessionPool,
        downloads_dir: Path,
        temp_dir: Path | None = None,
    ):
        self.session_pool = session_pool
        self.downloads_dir = downloads_dir
        self.temp_dir = temp_dir

    async def download(
        self, record: LinkRecord, on_progress: ProgressCallback | None = None
    ) -> Path:
        """
        Downloads `record.url` and returns the final file location.

        Progress is reported as `transfer` events; 1.0 marks the end of the
        transfer, not of the whole operation.

        Raises:
            InvalidURLError: The link does not hold a usable URL. Nothing is requested.
            DownloadError: The transfer failed or the server answered with an error.
            DestinationError: The downloads folder could not be created.
            MoveError: The transferred file could not be moved into place.
        """
        url = parse_package_url(record.url)
        if url is None:
            raise InvalidURLError(f"Invalid URL: {record.url!r}")

        reporter = ProgressReporter(on_progress)
        if self.temp_dir:
            await asyncio.to_thread(create_dir, self.temp_dir)
        fd, tmp_name = tempfile.mkstemp(suffix=".download", dir=self.temp_dir)
        os.close(fd)
        transient_path = Path(tmp_name)

        try:
            try:
                size = await self._transfer(url, transient_path, reporter)
            except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
                log.debug(f"Transfer of {record.short_id} failed: {e!r}")
                raise DownloadError(f"Download failed: {e}") from e
            finally:
                reporter.detach()

            destination = await asyncio.to_thread(
                self._move_into_place, transient_path, record.display_name
            )
        finally:
            transient_path.unlink(missing_ok=True)

        log.info(
            f"[green]✓ Downloaded '{destination.name}' ({size} bytes).[/green]"
        )
        return destination

    async def _transfer(
        self, url: URL, destination_path: Path, reporter: ProgressReporter
    ) -> int:
        """Writes the response body to `destination_path` and returns its size."""
        session = await self.session_pool.get()
        async with session.get(url, allow_redirects=True) as response:
            response.raise_for_status()
            total_size = response.content_length
            bytes_downloaded = 0
            reporter.report("transfer", 0.0)

            async with aiofiles.open(destination_path, "wb") as f:
                async for chunk in response.content.iter_chunked(self.CHUNK_SIZE):
                    await f.write(chunk)
                    bytes_downloaded += len(chunk)
                    if total_size:
                        reporter.report("transfer", bytes_downloaded / total_size)

        reporter.report("transfer", 1.0)
        return bytes_downloaded

    def _move_into_place(self, transient_path: Path, display_name: str) -> Path:
        try:
            create_dir(self.downloads_dir)
        except OSError as e:
            raise DestinationError(
                f"Could not create '{self.downloads_dir}': {e}"
            ) from e

        destination = self.downloads_dir / package_file_name(display_name)
        try:
            if destination.exists():
                destination.unlink()
            shutil.move(transient_path, destination)
        except OSError as e:
            raise MoveError(f"Could not move download to '{destination}': {e}") from e
        return destination
