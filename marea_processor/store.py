"""
Position Store - latest position per vessel.

Newer-timestamp-wins upsert: a report replaces the stored one only if its
observed_at is strictly greater. Duplicates and out-of-order reports are
refused, which is what makes redelivery of a batch harmless.

The in-memory store stands in for the external database; the geofence
service only relies on upsert / get_latest / recent.
"""

import threading
import time
from typing import Dict, List, Optional

from marea_zone import VesselPosition


class StoreUnavailableError(RuntimeError):
    """The position store cannot be read or written."""


class InMemoryPositionStore:
    """
    Thread-safe latest-value store keyed by vessel id.

    Usage:
        store = InMemoryPositionStore()
        applied = store.upsert(position)   # False if not newer
        latest = store.get_latest("123456789")
    """

    def __init__(self):
        self._positions: Dict[str, VesselPosition] = {}
        self._lock = threading.Lock()
        self._closed = False

    def upsert(self, position: VesselPosition) -> bool:
        """
        Store position if newer than the stored one.

        Returns:
            True if stored, False if a newer or equal report is already held

        Raises:
            StoreUnavailableError: If the store is closed
        """
        with self._lock:
            self._check_open()
            current = self._positions.get(position.vessel_id)
            if current is not None and position.observed_at <= current.observed_at:
                return False
            self._positions[position.vessel_id] = position
            return True

    def get_latest(self, vessel_id: str) -> Optional[VesselPosition]:
        with self._lock:
            self._check_open()
            return self._positions.get(vessel_id)

    def recent(
        self,
        window_ms: int = 30 * 60 * 1000,
        now_ms: Optional[int] = None
    ) -> List[VesselPosition]:
        """
        Positions observed within the last window_ms, newest first.

        Args:
            window_ms: Recency window (default 30 minutes)
            now_ms: Reference time, defaults to the current time
        """
        now_ms = int(time.time() * 1000) if now_ms is None else now_ms
        cutoff = now_ms - window_ms
        with self._lock:
            self._check_open()
            fresh = [p for p in self._positions.values() if p.observed_at >= cutoff]
        return sorted(fresh, key=lambda p: p.observed_at, reverse=True)

    def close(self) -> None:
        with self._lock:
            self._closed = True

    def _check_open(self) -> None:
        if self._closed:
            raise StoreUnavailableError("Position store is closed")

    def __len__(self) -> int:
        with self._lock:
            return len(self._positions)
