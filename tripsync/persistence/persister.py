"""Debounced snapshot persistence.

Store changes are coalesced: every change restarts one timer, and when it
fires each dirty store is serialized once, as it is at that moment. Writes
are fire-and-forget; a failed write is logged and counted, never raised into
the caller that changed the store.
"""

import asyncio
import logging
from collections.abc import Callable

from tripsync.persistence.storage import SnapshotStorage
from tripsync.utils.logging import sync_logger
from tripsync.utils.metrics import sync_metrics

logger = logging.getLogger(__name__)

SnapshotDump = Callable[[], str]


class DebouncedPersister:
    """Coalesces rapid store changes into one write per store."""

    def __init__(self, storage: SnapshotStorage, delay_seconds: float = 3.0) -> None:
        """Initialize persister.

        Args:
            storage: Snapshot storage backend
            delay_seconds: Quiet period before pending snapshots are written
        """
        self._storage = storage
        self._delay = delay_seconds
        self._pending: dict[str, SnapshotDump] = {}
        self._handle: asyncio.TimerHandle | None = None

    @property
    def pending_keys(self) -> list[str]:
        return sorted(self._pending)

    @property
    def scheduled(self) -> bool:
        return self._handle is not None

    def schedule(self, key: str, dump: SnapshotDump) -> None:
        """Mark a store dirty and restart the debounce timer.

        Without a running event loop there is nothing to debounce against,
        so the snapshot is written immediately.
        """
        self._pending[key] = dump

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.flush()
            return

        if self._handle is not None:
            self._handle.cancel()
        self._handle = loop.call_later(self._delay, self.flush)

    def flush(self) -> int:
        """Cancel the timer and write every pending snapshot now.

        Returns:
            Number of snapshots written
        """
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

        pending, self._pending = self._pending, {}
        written = 0
        for key, dump in pending.items():
            store = key.rsplit(":", 1)[-1]
            try:
                self._storage.write(key, dump())
            except Exception as e:
                sync_metrics.inc_snapshot_write(store, "error")
                sync_logger.log_snapshot(store, "write_failed", str(e))
                continue
            sync_metrics.inc_snapshot_write(store, "ok")
            written += 1

        if written:
            logger.debug("Flushed %d snapshot(s)", written)
        return written

    def cancel(self) -> None:
        """Drop pending writes without persisting them."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._pending.clear()
