"""
Exports an installed app, optionally with container data, as a single .ipa archive.

The export is staged in a temporary workspace laid out as the archive root:

    Payload/<App>.app/
    ContainerData/{Documents,Library,Caches}/
    LCExportMetadata.json

The workspace is removed before `export()` returns, whatever the outcome.
"""

import asyncio
import logging
import os
import shutil
import stat
import tempfile
import time
import zipfile
from pathlib import Path

from lcpkg.exceptions import (
    ArchiveCreationError,
    BundleCopyError,
    ContainerCopyError,
    ExportError,
)
from lcpkg.models.export import DESCRIPTOR_FILENAME, ExportDescriptor
from lcpkg.models.progress import ProgressCallback, ProgressReporter
from lcpkg.utils.path import create_dir, package_file_name

from .containers import ApplicationDescriptor

log = logging.getLogger(__name__)

PAYLOAD_DIR = "Payload"
CONTAINER_DATA_DIR = "ContainerData"
WORKSPACE_PREFIX = "lcpkg-export-"
ARCHIVE_TMP_PREFIX = ".lcpkg-archive-"

# (flag name, source relative to the container, destination name, progress after)
CONTAINER_CATEGORIES = (
    ("documents", "Documents", "Documents", 0.5),
    ("library", "Library", "Library", 0.65),
    ("caches", "Library/Caches", "Caches", None),
)


class ExportStager:
    """
    Runs one export at a time and exposes its state for observers. Overlapping
    calls to `export()` queue behind the one in progress.
    """

    def __init__(
        self,
        export_dir: Path,
        exporter_name: str = "LiveContainer",
        temp_dir: Path | None = None,
    ):
        self.export_dir = export_dir
        self.exporter_name = exporter_name
        self.temp_dir = temp_dir

        self.is_exporting = False
        self.progress = 0.0
        self.last_error: str | None = None
        self._lock = asyncio.Lock()

    async def export(
        self,
        app: ApplicationDescriptor,
        container_path: Path | None = None,
        include_documents: bool = True,
        include_library: bool = True,
        include_caches: bool = False,
        on_progress: ProgressCallback | None = None,
    ) -> Path:
        """
        Stages and compresses an export and returns the archive location.

        Raises:
            BundleCopyError: The app bundle could not be copied.
            ContainerCopyError: A present container folder could not be copied.
            ArchiveCreationError: The archive could not be written.
            ExportError: The workspace or the metadata could not be written.
        """
        categories = {
            "documents": include_documents,
            "library": include_library,
            "caches": include_caches,
        }
        if self._lock.locked():
            log.debug(f"Export of '{app.display_name}' waits for a running export")

        async with self._lock:
            self.is_exporting = True
            self.progress = 0.0
            self.last_error = None
            reporter = ProgressReporter(on_progress)

            def advance(phase: str, fraction: float) -> None:
                self.progress = fraction
                reporter.report(phase, fraction)

            try:
                archive_path = await self._perform_export(
                    app, container_path, categories, advance
                )
            except ExportError as e:
                self.last_error = str(e)
                log.error(f"[red]Export of '{app.display_name}' failed: {e}[/red]")
                raise
            finally:
                reporter.detach()
                self.is_exporting = False

        log.info(f"[green]✓ Exported '{app.display_name}' to {archive_path}[/green]")
        return archive_path

    async def _perform_export(
        self,
        app: ApplicationDescriptor,
        container_path: Path | None,
        categories: dict[str, bool],
        advance,
    ) -> Path:
        try:
            if self.temp_dir:
                await asyncio.to_thread(create_dir, self.temp_dir)
            workspace = Path(
                await asyncio.to_thread(
                    tempfile.mkdtemp, prefix=WORKSPACE_PREFIX, dir=self.temp_dir
                )
            )
        except OSError as e:
            raise ExportError(f"Could not create export workspace: {e}") from e
        log.debug(f"Staging export of '{app.display_name}' in {workspace}")

        try:
            advance("bundle", 0.0)
            await asyncio.to_thread(self._stage_bundle, app, workspace)
            advance("bundle", 0.3)

            if container_path is not None:
                container_dir = workspace / CONTAINER_DATA_DIR
                try:
                    await asyncio.to_thread(container_dir.mkdir)
                except OSError as e:
                    raise ContainerCopyError(
                        f"Could not create container data folder: {e}"
                    ) from e
                for flag, source, dest, checkpoint in CONTAINER_CATEGORIES:
                    if categories[flag]:
                        await asyncio.to_thread(
                            self._stage_category,
                            container_path / source,
                            container_dir / dest,
                        )
                    if checkpoint is not None:
                        advance("container", checkpoint)

            descriptor = ExportDescriptor(
                exported_by=self.exporter_name,
                bundle_identifier=app.bundle_identifier,
                app_name=app.display_name,
                app_version=app.version,
                container_included=container_path is not None,
                documents_included=categories["documents"],
                library_included=categories["library"],
                caches_included=categories["caches"],
            )
            await asyncio.to_thread(self._write_descriptor, descriptor, workspace)
            advance("descriptor", 0.8)

            output_path = self.export_dir / self._archive_name(app)
            await asyncio.to_thread(self._compress, workspace, output_path)
            advance("compress", 1.0)
            return output_path
        finally:
            await asyncio.to_thread(shutil.rmtree, workspace, ignore_errors=True)
            log.debug(f"Removed export workspace {workspace}")

    @staticmethod
    def _archive_name(app: ApplicationDescriptor) -> str:
        return package_file_name(
            app.display_name, fallback="App", suffix=f"_{int(time.time())}"
        )

    @staticmethod
    def _write_descriptor(descriptor: ExportDescriptor, workspace: Path) -> None:
        try:
            (workspace / DESCRIPTOR_FILENAME).write_text(
                descriptor.to_json(), encoding="utf-8"
            )
        except OSError as e:
            raise ExportError(f"Could not write export metadata: {e}") from e

    @staticmethod
    def _stage_bundle(app: ApplicationDescriptor, workspace: Path) -> None:
        payload_dir = workspace / PAYLOAD_DIR
        try:
            payload_dir.mkdir()
            shutil.copytree(
                app.bundle_path, payload_dir / app.bundle_name, symlinks=True
            )
        except (OSError, shutil.Error) as e:
            raise BundleCopyError(
                f"Could not copy app bundle '{app.bundle_path}': {e}"
            ) from e

    @staticmethod
    def _stage_category(source: Path, destination: Path) -> None:
        """Copies one container folder. A missing source is skipped."""
        if not source.is_dir():
            log.debug(f"Skipping missing container folder '{source}'")
            return
        try:
            shutil.copytree(source, destination, symlinks=True)
        except (OSError, shutil.Error) as e:
            raise ContainerCopyError(
                f"Could not copy container folder '{source.name}': {e}"
            ) from e

    @staticmethod
    def _compress(workspace: Path, output_path: Path) -> None:
        """
        Zips the workspace contents into `output_path`. The archive is built in
        a sibling temporary file and renamed into place only when complete.
        """
        try:
            create_dir(output_path.parent)
            if output_path.exists():
                output_path.unlink()
            fd, tmp_name = tempfile.mkstemp(
                prefix=ARCHIVE_TMP_PREFIX, dir=output_path.parent
            )
            os.close(fd)
        except OSError as e:
            raise ArchiveCreationError(f"Failed to create ZIP archive: {e}") from e

        tmp_path = Path(tmp_name)
        try:
            entries = 0
            with zipfile.ZipFile(tmp_path, "w", zipfile.ZIP_DEFLATED) as zf:
                for root, dirs, files in os.walk(workspace):
                    dirs.sort()
                    root_path = Path(root)
                    for name in dirs + sorted(files):
                        path = root_path / name
                        arcname = path.relative_to(workspace).as_posix()
                        if path.is_symlink():
                            _write_symlink(zf, path, arcname)
                        elif path.is_dir():
                            zf.write(path, arcname + "/")
                        else:
                            zf.write(path, arcname)
                        entries += 1
            if entries == 0:
                raise ArchiveCreationError("Failed to create ZIP archive: no data")
            os.replace(tmp_path, output_path)
        except (OSError, ValueError, zipfile.LargeZipFile) as e:
            raise ArchiveCreationError(f"Failed to create ZIP archive: {e}") from e
        finally:
            tmp_path.unlink(missing_ok=True)


def _write_symlink(zf: zipfile.ZipFile, path: Path, arcname: str) -> None:
    """Stores a symlink as a link entry holding its target, without following it."""
    st = path.lstat()
    info = zipfile.ZipInfo(arcname, date_time=time.localtime(st.st_mtime)[:6])
    info.create_system = 3  # Unix
    info.external_attr = (stat.S_IFLNK | 0o777) << 16
    zf.writestr(info, os.readlink(path))
