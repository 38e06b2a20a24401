"""
Change Notification Bus.

Observers are told *that* the dataset changed, never *what* changed; they
re-fetch their listings. One logical batch of mutations produces exactly
one notification.

The bus does not know about sockets. It is built with a broadcast callable
(the web layer passes one that emits to every connected client).
"""

import logging
import threading
from collections.abc import Callable

logger = logging.getLogger(__name__)

DATASET_CHANGED = "dataset-changed"
PROJECTS_CHANGED = "project-data-changed"

BroadcastFunc = Callable[[str, dict | None], None]


class NotificationBus:
    def __init__(self, broadcast: BroadcastFunc):
        self._broadcast = broadcast

    def notify_dataset_changed(self, project: str | None = None) -> None:
        logger.debug(f"Broadcasting {DATASET_CHANGED} (project={project})")
        self._broadcast(DATASET_CHANGED, None)

    def notify_projects_changed(self) -> None:
        logger.debug(f"Broadcasting {PROJECTS_CHANGED}")
        self._broadcast(PROJECTS_CHANGED, None)

    def publish(self, event: str, payload: dict | None) -> None:
        """Broadcast an arbitrary event (job progress and outcomes)."""
        self._broadcast(event, payload)


class BatchTracker:
    """
    Counts down declared batches and fires once per batch.

    A batch is identified by (owner, batch_id) where owner is the issuing
    client, so two clients reusing the same batch id never share a counter.
    Every item outcome counts: success, error and rejected alike.
    """

    def __init__(self, on_complete: Callable[[str | None], None]):
        self._on_complete = on_complete
        self._pending: dict[tuple[str, str], dict] = {}
        # Batches flushed early because their owner went away, mapped to
        # the number of items still expected
        self._flushed: dict[tuple[str, str], int] = {}
        self._lock = threading.Lock()

    def record(
        self, owner: str, batch_id: str, batch_size: int, project: str | None
    ) -> bool:
        """
        Records one finished item. Returns True if a notification was fired.
        """
        key = (owner, batch_id)
        with self._lock:
            if key in self._flushed:
                done = True
                self._flushed[key] -= 1
                if self._flushed[key] <= 0:
                    del self._flushed[key]
            else:
                entry = self._pending.setdefault(
                    key, {"remaining": batch_size, "size": batch_size}
                )
                if batch_size != entry["size"]:
                    logger.warning(
                        f"Batch {batch_id} re-declared with size {batch_size}, "
                        f"keeping {entry['size']}"
                    )
                entry["remaining"] -= 1
                done = entry["remaining"] <= 0
                if done:
                    del self._pending[key]

        if done:
            logger.debug(f"Batch {batch_id} of {owner} complete")
            self._on_complete(project)
        return done

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def flushed_count(self) -> int:
        with self._lock:
            return len(self._flushed)

    def flush_owner(self, owner: str) -> int:
        """
        Completes every unfinished batch of a disconnected client.

        Work already done still gets one notification; items of that batch
        still being processed notify individually when they finish.
        """
        with self._lock:
            stale = [key for key in self._pending if key[0] == owner]
            for key in stale:
                self._flushed[key] = self._pending.pop(key)["remaining"]
        if stale:
            logger.info(f"Flushed {len(stale)} unfinished batch(es) of {owner}")
            self._on_complete(None)
        return len(stale)
