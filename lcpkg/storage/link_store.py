"""
Persists the ordered list of saved package links in the app-group store.

The whole list is re-encoded and written back after every change. All
read-modify-persist sequences go through a single lock so concurrent probe
results for different links cannot drop each other's updates.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from uuid import UUID

from pydantic import TypeAdapter, ValidationError

from lcpkg.exceptions import LinkNotFoundError
from lcpkg.models.link import LinkRecord

from .kv_store import AppGroupStore

log = logging.getLogger(__name__)

STORAGE_KEY = "LCSavedIPALinks"

ProbeHook = Callable[[UUID], Awaitable[None]]

_records_adapter = TypeAdapter(list[LinkRecord])


class PackageFileStore:
    """The durable, insertion-ordered collection of saved links."""

    def __init__(self, kv_store: AppGroupStore, on_added: ProbeHook | None = None):
        """
        Initializes the store and loads the persisted links.

        Args:
            kv_store: The app-group store holding the encoded list.
            on_added: Coroutine function scheduled with the id of every newly
                added link, normally the refresh coordinator's `refresh_one`.
        """
        self._kv_store = kv_store
        self.on_added = on_added
        self._lock = asyncio.Lock()
        self._pending_probes: set[asyncio.Task] = set()
        self._records: list[LinkRecord] = []
        self.load()

    @property
    def records(self) -> list[LinkRecord]:
        """A snapshot of the saved links in display order."""
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def get(self, link_id: UUID) -> LinkRecord | None:
        return next((r for r in self._records if r.id == link_id), None)

    def resolve(self, ref: str) -> LinkRecord:
        """
        Finds a link by 1-based list position, full id, or unique id prefix.

        Raises:
            LinkNotFoundError: If nothing, or more than one link, matches.
        """
        ref = ref.strip()
        if ref.isdigit() and 1 <= int(ref) <= len(self._records):
            return self._records[int(ref) - 1]
        matches = [r for r in self._records if str(r.id).startswith(ref.lower())]
        if len(matches) == 1 and ref:
            return matches[0]
        if len(matches) > 1 and ref:
            raise LinkNotFoundError(f"'{ref}' matches {len(matches)} links.")
        raise LinkNotFoundError(f"No saved link matches '{ref}'.")

    def _index_of(self, link_id: UUID) -> int | None:
        return next(
            (i for i, r in enumerate(self._records) if r.id == link_id), None
        )

    def load(self) -> list[LinkRecord]:
        """
        Reads the persisted links. A missing, unreadable or malformed blob
        yields an empty list instead of an error.
        """
        try:
            data = self._kv_store.get_data(STORAGE_KEY)
        except OSError as e:
            log.warning(f"Could not read saved links: {e}")
            data = None

        records: list[LinkRecord] = []
        if data:
            try:
                records = _records_adapter.validate_json(data)
            except ValidationError as e:
                log.warning(
                    f"Saved links are corrupt and were reset "
                    f"({e.error_count()} validation errors)."
                )
        self._records = records
        return list(records)

    async def _persist(self) -> bool:
        """Writes the complete list. Must be called with the lock held."""
        data = _records_adapter.dump_json(self._records)
        try:
            await asyncio.to_thread(self._kv_store.set_data, STORAGE_KEY, data)
            return True
        except OSError as e:
            log.error(f"Failed to save {len(self._records)} links: {e}")
            return False

    async def add(self, url: str, name: str) -> LinkRecord:
        """Saves a new link and schedules a probe of it without waiting."""
        record = LinkRecord(url=url, display_name=name)
        async with self._lock:
            self._records.append(record)
            await self._persist()
        log.debug(f"Added link {record.short_id} -> {record.url}")
        self._schedule_probe(record.id)
        return record

    async def update(self, record: LinkRecord) -> bool:
        """Replaces the stored link with the same id. Returns False if none matches."""
        async with self._lock:
            index = self._index_of(record.id)
            if index is None:
                return False
            self._records[index] = record
            return await self._persist()

    async def record_probe(self, probed: LinkRecord) -> bool:
        """
        Copies the probe fields of `probed` onto the stored link with the same
        id, leaving user edits made while the probe was in flight intact.
        """
        async with self._lock:
            index = self._index_of(probed.id)
            if index is None:
                log.debug(f"Link {probed.short_id} was removed before its probe ended.")
                return False
            self._records[index] = self._records[index].model_copy(
                update={
                    "reachability": probed.reachability,
                    "size_bytes": probed.size_bytes,
                    "last_probed_at": probed.last_probed_at,
                }
            )
            return await self._persist()

    async def delete(self, record: LinkRecord | UUID) -> bool:
        """Removes a link. Deleting an unknown id still rewrites the list."""
        link_id = record.id if isinstance(record, LinkRecord) else record
        async with self._lock:
            self._records = [r for r in self._records if r.id != link_id]
            return await self._persist()

    async def delete_at(self, indices: Iterable[int]) -> list[LinkRecord]:
        """Removes the links at the given positions and returns them."""
        offsets = set(indices)
        async with self._lock:
            removed = [r for i, r in enumerate(self._records) if i in offsets]
            self._records = [
                r for i, r in enumerate(self._records) if i not in offsets
            ]
            await self._persist()
        return removed

    def _schedule_probe(self, link_id: UUID) -> None:
        if self.on_added is None:
            return
        task = asyncio.create_task(self.on_added(link_id))
        self._pending_probes.add(task)
        task.add_done_callback(self._on_probe_done)

    def _on_probe_done(self, task: asyncio.Task) -> None:
        self._pending_probes.discard(task)
        if not task.cancelled() and (exc := task.exception()) is not None:
            log.warning(f"Background probe failed: {exc}")

    async def wait_for_pending(self) -> None:
        """Waits until every probe scheduled by `add` has finished."""
        while self._pending_probes:
            await asyncio.gather(*list(self._pending_probes), return_exceptions=True)
