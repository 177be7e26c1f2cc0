"""Single-slot hand-off of snapshots from the sampler to readers."""

import logging
import threading

from sysmon.models import Snapshot

logger = logging.getLogger(__name__)


class SnapshotStore:
    """
    Holds the latest published Snapshot.

    Snapshots are immutable, so publishing swaps a reference under a lock
    and reading returns it; readers never see fields from two publishes.
    Publishes that are not newer than the current snapshot are dropped,
    so readers only ever move forward.
    """

    def __init__(self) -> None:
        self._condition = threading.Condition(threading.Lock())
        self._snapshot = Snapshot.empty()

    def publish(self, snapshot: Snapshot) -> bool:
        """
        Make a snapshot visible to readers.

        Returns False if it was dropped for being older than the current one.
        """
        with self._condition:
            if snapshot.sequence <= self._snapshot.sequence:
                logger.warning(
                    "Dropping stale snapshot %d (current is %d)",
                    snapshot.sequence,
                    self._snapshot.sequence,
                )
                return False
            self._snapshot = snapshot
            self._condition.notify_all()
            return True

    def read(self) -> Snapshot:
        """Return the latest snapshot."""
        with self._condition:
            return self._snapshot

    @property
    def sequence(self) -> int:
        return self.read().sequence

    def wait_for(self, after_sequence: int, timeout: float | None = None) -> Snapshot | None:
        """
        Block until a snapshot newer than after_sequence is published.

        Returns None if the timeout expires first.
        """
        with self._condition:
            ready = self._condition.wait_for(
                lambda: self._snapshot.sequence > after_sequence, timeout=timeout
            )
            return self._snapshot if ready else None
