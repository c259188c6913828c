"""
Shared fixtures: an isolated configuration under tmp_path and a local HTTP
server that plays the part of a package host.
"""

import asyncio
from pathlib import Path

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from lcpkg.models.config import AppConfig
from lcpkg.network.session import HttpSessionPool
from lcpkg.storage.kv_store import AppGroupStore

PACKAGE_SIZE = 1048576
PACKAGE_BODY = bytes(range(256)) * (PACKAGE_SIZE // 256)


async def _package(request: web.Request) -> web.Response:
    return web.Response(body=PACKAGE_BODY, content_type="application/octet-stream")


async def _small(request: web.Request) -> web.Response:
    return web.Response(
        body=b"small package", content_type="application/octet-stream"
    )


async def _no_length(request: web.Request) -> web.StreamResponse:
    response = web.StreamResponse()
    response.enable_chunked_encoding()
    await response.prepare(request)
    if request.method != "HEAD":
        await response.write(b"chunk-1/")
        await response.write(b"chunk-2")
    await response.write_eof()
    return response


async def _slow(request: web.Request) -> web.Response:
    await asyncio.sleep(float(request.match_info["delay"]))
    return web.Response(body=b"late", content_type="application/octet-stream")


async def _missing(request: web.Request) -> web.Response:
    return web.Response(status=404, text="not found")


async def _redirect(request: web.Request) -> web.Response:
    raise web.HTTPFound("/small.ipa")


def build_package_host() -> web.Application:
    app = web.Application()
    app.router.add_get("/app.ipa", _package)
    app.router.add_get("/small.ipa", _small)
    app.router.add_get("/chunked.ipa", _no_length)
    app.router.add_get("/slow/{delay}", _slow)
    app.router.add_get("/missing.ipa", _missing)
    app.router.add_get("/redirect.ipa", _redirect)
    return app


@pytest_asyncio.fixture
async def package_host():
    """A running package host; use `package_host.make_url(path)` for URLs."""
    async with TestServer(build_package_host()) as server:
        yield server


@pytest_asyncio.fixture
async def session_pool():
    pool = HttpSessionPool(max_connections=4)
    yield pool
    await pool.close()


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    return AppConfig(
        app_group_dir=tmp_path / "AppGroup",
        documents_dir=tmp_path / "Documents",
        private_data_dir=tmp_path / "Data" / "Application",
        shared_data_dir=tmp_path / "AppGroup" / "Data" / "Application",
        export_dir=tmp_path / "Exports",
        temp_dir=tmp_path / "tmp",
        probe_timeout=5,
        max_concurrent_probes=4,
    )


@pytest.fixture
def kv_store(app_config: AppConfig) -> AppGroupStore:
    return AppGroupStore(app_config.app_group_dir)
