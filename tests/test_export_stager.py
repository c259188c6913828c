"""
Tests for ExportStager staging, archive layout, progress and cleanup.
"""

import asyncio
import json
import os
import plistlib
import stat
import zipfile
from pathlib import Path

import pytest

from lcpkg.core import export_stager
from lcpkg.core.containers import ApplicationDescriptor
from lcpkg.core.export_stager import ExportStager
from lcpkg.exceptions import ArchiveCreationError, BundleCopyError, ExportError


def make_bundle(root: Path, name: str = "AppX") -> Path:
    bundle = root / "Applications" / f"{name}.app"
    bundle.mkdir(parents=True)
    with open(bundle / "Info.plist", "wb") as f:
        plistlib.dump(
            {
                "CFBundleIdentifier": "com.example.appx",
                "CFBundleDisplayName": name,
                "CFBundleShortVersionString": "1.2.3",
            },
            f,
        )
    (bundle / name).write_bytes(b"\xcf\xfa\xed\xfe binary")
    return bundle


@pytest.fixture
def stager(app_config):
    return ExportStager(
        app_config.export_dir,
        exporter_name="TestExporter",
        temp_dir=app_config.temp_dir,
    )


@pytest.fixture
def app(tmp_path):
    return ApplicationDescriptor.from_bundle(make_bundle(tmp_path))


@pytest.fixture
def container(tmp_path):
    path = tmp_path / "Data" / "Application" / "UUID-1"
    (path / "Documents").mkdir(parents=True)
    (path / "Documents" / "save.dat").write_bytes(b"progress")
    return path


def read_archive(path: Path) -> tuple[set[str], dict]:
    with zipfile.ZipFile(path) as zf:
        names = set(zf.namelist())
        descriptor = json.loads(zf.read("LCExportMetadata.json"))
    return names, descriptor


def leftover_workspaces(temp_dir: Path) -> list[Path]:
    if not temp_dir.exists():
        return []
    return list(temp_dir.glob("lcpkg-export-*"))


class TestExport:
    @pytest.mark.asyncio
    async def test_exports_bundle_with_present_container_folders(
        self, stager, app, container, app_config
    ):
        events = []

        archive = await stager.export(
            app,
            container_path=container,
            include_documents=True,
            include_library=True,
            include_caches=False,
            on_progress=events.append,
        )

        assert archive.parent == app_config.export_dir
        assert archive.suffix == ".ipa"
        assert archive.name.startswith("AppX_")
        names, descriptor = read_archive(archive)
        assert "Payload/AppX.app/Info.plist" in names
        assert "Payload/AppX.app/AppX" in names
        assert "ContainerData/Documents/save.dat" in names
        assert not any(n.startswith("ContainerData/Library") for n in names)
        assert not any(n.startswith("ContainerData/Caches") for n in names)

        assert descriptor["bundleIdentifier"] == "com.example.appx"
        assert descriptor["appName"] == "AppX"
        assert descriptor["appVersion"] == "1.2.3"
        assert descriptor["exportedBy"] == "TestExporter"
        assert descriptor["containerIncluded"] is True
        assert descriptor["documentsIncluded"] is True
        assert descriptor["libraryIncluded"] is True
        assert descriptor["cachesIncluded"] is False
        assert "exportDate" in descriptor

        assert [e.fraction for e in events] == [0.0, 0.3, 0.5, 0.65, 0.8, 1.0]
        assert leftover_workspaces(app_config.temp_dir) == []
        assert stager.is_exporting is False
        assert stager.progress == 1.0
        assert stager.last_error is None

    @pytest.mark.asyncio
    async def test_bundle_only_export(self, stager, app, app_config):
        events = []

        archive = await stager.export(app, on_progress=events.append)

        names, descriptor = read_archive(archive)
        assert not any(n.startswith("ContainerData") for n in names)
        assert descriptor["containerIncluded"] is False
        assert [e.fraction for e in events] == [0.0, 0.3, 0.8, 1.0]
        assert [e.phase for e in events] == [
            "bundle",
            "bundle",
            "descriptor",
            "compress",
        ]

    @pytest.mark.asyncio
    async def test_caches_are_lifted_out_of_library(self, stager, app, container):
        caches = container / "Library" / "Caches"
        caches.mkdir(parents=True)
        (caches / "blob.bin").write_bytes(b"cache")
        (container / "Library" / "prefs.plist").write_bytes(b"prefs")

        archive = await stager.export(
            app,
            container_path=container,
            include_documents=False,
            include_library=False,
            include_caches=True,
        )

        names, descriptor = read_archive(archive)
        assert "ContainerData/Caches/blob.bin" in names
        assert not any(n.startswith("ContainerData/Library") for n in names)
        assert not any(n.startswith("ContainerData/Documents") for n in names)
        assert descriptor["documentsIncluded"] is False
        assert descriptor["cachesIncluded"] is True

    @pytest.mark.asyncio
    async def test_existing_archive_is_replaced(
        self, stager, app, app_config, monkeypatch
    ):
        monkeypatch.setattr(export_stager.time, "time", lambda: 1700000000.7)
        app_config.export_dir.mkdir(parents=True)
        stale = app_config.export_dir / "AppX_1700000000.ipa"
        stale.write_bytes(b"stale archive")

        archive = await stager.export(app)

        assert archive == stale
        assert zipfile.is_zipfile(archive)

    @pytest.mark.asyncio
    async def test_long_display_name_keeps_timestamp(
        self, stager, app, monkeypatch
    ):
        monkeypatch.setattr(export_stager.time, "time", lambda: 1700000000.0)
        long_named = ApplicationDescriptor(
            bundle_path=app.bundle_path, display_name="B" * 300
        )

        archive = await stager.export(long_named)

        assert archive.name.startswith("BBBB")
        assert archive.name.endswith("_1700000000.ipa")
        assert len(archive.name) <= 255
        assert zipfile.is_zipfile(archive)

    @pytest.mark.asyncio
    async def test_symlinks_are_archived_as_links(
        self, stager, app, container, tmp_path
    ):
        frameworks = app.bundle_path / "RealFrameworks"
        frameworks.mkdir()
        (frameworks / "lib.dylib").write_bytes(b"dylib")
        os.symlink("RealFrameworks", app.bundle_path / "Frameworks")
        dangling_target = tmp_path / "nowhere"
        os.symlink(dangling_target, container / "Documents" / "stale-link")

        archive = await stager.export(app, container_path=container)

        with zipfile.ZipFile(archive) as zf:
            names = set(zf.namelist())
            framework_link = zf.getinfo("Payload/AppX.app/Frameworks")
            stale_link = zf.getinfo("ContainerData/Documents/stale-link")
            assert stat.S_ISLNK(framework_link.external_attr >> 16)
            assert zf.read(framework_link) == b"RealFrameworks"
            assert stat.S_ISLNK(stale_link.external_attr >> 16)
            assert zf.read(stale_link) == str(dangling_target).encode()
        assert "Payload/AppX.app/RealFrameworks/lib.dylib" in names
        assert "ContainerData/Documents/save.dat" in names


class TestConcurrentExports:
    @pytest.mark.asyncio
    async def test_overlapping_exports_run_one_after_another(
        self, stager, app, tmp_path
    ):
        other = ApplicationDescriptor.from_bundle(make_bundle(tmp_path, "AppY"))
        timeline = []

        def recorder(tag):
            return lambda event: timeline.append((tag, event.fraction))

        first, second = await asyncio.gather(
            stager.export(app, on_progress=recorder("x")),
            stager.export(other, on_progress=recorder("y")),
        )

        tags = [tag for tag, _ in timeline]
        assert tags in (["x"] * 4 + ["y"] * 4, ["y"] * 4 + ["x"] * 4)
        assert first.name.startswith("AppX_")
        assert second.name.startswith("AppY_")
        assert stager.is_exporting is False
        assert stager.progress == 1.0


class TestExportFailures:
    @pytest.mark.asyncio
    async def test_workspace_failure_is_an_export_error(self, app, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_bytes(b"file")
        stager = ExportStager(tmp_path / "Exports", temp_dir=blocker / "tmp")
        events = []

        with pytest.raises(ExportError, match="workspace"):
            await stager.export(app, on_progress=events.append)

        assert events == []
        assert stager.is_exporting is False
        assert "workspace" in stager.last_error
        assert not (tmp_path / "Exports").exists()

    @pytest.mark.asyncio
    async def test_missing_bundle(self, stager, tmp_path, app_config):
        app = ApplicationDescriptor(
            bundle_path=tmp_path / "Gone.app", display_name="Gone"
        )
        events = []

        with pytest.raises(BundleCopyError):
            await stager.export(app, on_progress=events.append)

        assert [e.fraction for e in events] == [0.0]
        assert not app_config.export_dir.exists() or not any(
            app_config.export_dir.iterdir()
        )
        assert leftover_workspaces(app_config.temp_dir) == []
        assert stager.is_exporting is False
        assert stager.last_error

    @pytest.mark.asyncio
    async def test_compression_failure(self, stager, app, app_config, monkeypatch):
        def broken_write(self, *args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr(zipfile.ZipFile, "write", broken_write)
        events = []

        with pytest.raises(ArchiveCreationError):
            await stager.export(app, on_progress=events.append)

        assert events[-1].fraction == 0.8
        assert list(app_config.export_dir.iterdir()) == []
        assert leftover_workspaces(app_config.temp_dir) == []
        assert stager.is_exporting is False
        assert "ZIP" in stager.last_error
