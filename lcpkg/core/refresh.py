"""
Fans link probes out concurrently and joins them before reporting completion.
"""

import asyncio
import logging
import time
from uuid import UUID

from lcpkg.models.link import LinkRecord, Reachability
from lcpkg.network.prober import LinkProber
from lcpkg.storage.link_store import PackageFileStore

log = logging.getLogger(__name__)


class RefreshCoordinator:
    """Refreshes the status of saved links, one at a time or all at once."""

    def __init__(
        self,
        store: PackageFileStore,
        prober: LinkProber,
        max_concurrent: int = 8,
    ):
        self.store = store
        self.prober = prober
        self.semaphore = asyncio.Semaphore(max_concurrent)
        self.is_refreshing = False

    async def refresh_one(self, link_id: UUID) -> LinkRecord | None:
        """
        Probes the stored link with `link_id` and saves the result.
        Returns the updated link, or None if no such link is stored.
        """
        record = self.store.get(link_id)
        if record is None:
            log.debug(f"Nothing to refresh for unknown link {link_id}")
            return None

        async with self.semaphore:
            probed = await self.prober.probe(record)
        await self.store.record_probe(probed)
        return self.store.get(link_id)

    async def refresh_all(self, records: list[LinkRecord] | None = None) -> None:
        """
        Probes every link concurrently and returns once all probes have ended.
        A failing probe is logged and does not stop the others.
        """
        targets = self.store.records if records is None else records
        self.is_refreshing = True
        start_time = time.monotonic()
        try:
            results = await asyncio.gather(
                *(self.refresh_one(r.id) for r in targets), return_exceptions=True
            )
        finally:
            self.is_refreshing = False

        for record, result in zip(targets, results):
            if isinstance(result, Exception):
                log.warning(f"Refreshing link {record.short_id} failed: {result}")

        online = sum(
            1 for r in self.store.records if r.reachability is Reachability.REACHABLE
        )
        log.info(
            f"Refreshed {len(targets)} links in "
            f"{time.monotonic() - start_time:.1f}s ({online} reachable)."
        )
