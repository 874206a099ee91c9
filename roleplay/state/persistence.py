"""
Fire-and-forget session saving.

The session controller never waits on disk. It hands a snapshot to the
persister, which writes it on a background thread and logs any failure.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor

from .schema import SessionRecord
from .store import SessionStore

logger = logging.getLogger(__name__)


class SessionPersister:
    """
    Runs session saves off the caller's thread.

    Saves run one at a time, in submission order, so a later snapshot of
    the same session always lands after an earlier one.
    """

    def __init__(self, store: SessionStore, executor: ThreadPoolExecutor | None = None):
        self.store = store
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="session-save"
        )

    def persist(self, record: SessionRecord) -> Future:
        """
        Schedule a save of `record` and return immediately.

        The record is copied before queueing; later changes by the caller
        do not leak into the write. The returned future never raises.
        """
        snapshot = record.model_copy(deep=True)
        return self._executor.submit(self._save, snapshot)

    def _save(self, record: SessionRecord) -> bool:
        try:
            self.store.save(record)
        except Exception as e:
            # Best effort: a failed save must not reach the UI
            logger.warning("Failed to save session %s: %s", record.id, e)
            return False
        logger.debug(
            "Saved session %s (%d messages)", record.id, len(record.messages)
        )
        return True

    def shutdown(self, wait: bool = True) -> None:
        """Flush pending saves. Called once on application exit."""
        if self._owns_executor:
            self._executor.shutdown(wait=wait)
