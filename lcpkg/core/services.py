"""
Builds the long-lived service objects shared by every command.
"""

import logging
from dataclasses import dataclass

from lcpkg.models.config import AppConfig
from lcpkg.network.prober import LinkProber
from lcpkg.network.session import HttpSessionPool
from lcpkg.storage.kv_store import AppGroupStore
from lcpkg.storage.library import PackageLibrary
from lcpkg.storage.link_store import PackageFileStore

from .containers import ContainerPathResolver
from .download_engine import DownloadEngine
from .export_stager import ExportStager
from .refresh import RefreshCoordinator

log = logging.getLogger(__name__)


@dataclass
class Services:
    config: AppConfig
    session_pool: HttpSessionPool
    store: PackageFileStore
    prober: LinkProber
    coordinator: RefreshCoordinator
    download_engine: DownloadEngine
    export_stager: ExportStager
    library: PackageLibrary
    container_resolver: ContainerPathResolver

    async def close(self) -> None:
        """Waits for background probes, then releases network resources."""
        await self.store.wait_for_pending()
        await self.session_pool.close()


def create_services(config: AppConfig) -> Services:
    """Constructs and wires all services once at startup."""
    session_pool = HttpSessionPool(max_connections=config.max_concurrent_probes)
    store = PackageFileStore(AppGroupStore(config.app_group_dir))
    prober = LinkProber(session_pool, timeout=config.probe_timeout)
    coordinator = RefreshCoordinator(
        store, prober, max_concurrent=config.max_concurrent_probes
    )
    store.on_added = coordinator.refresh_one
    log.debug(f"Services created with {len(store)} saved links.")

    return Services(
        config=config,
        session_pool=session_pool,
        store=store,
        prober=prober,
        coordinator=coordinator,
        download_engine=DownloadEngine(
            session_pool, config.downloads_dir, temp_dir=config.temp_dir
        ),
        export_stager=ExportStager(
            config.export_dir,
            exporter_name=config.exporter_name,
            temp_dir=config.temp_dir,
        ),
        library=PackageLibrary(config.downloads_dir),
        container_resolver=ContainerPathResolver(
            config.private_data_dir, config.shared_data_dir
        ),
    )
