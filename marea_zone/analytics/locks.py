"""
Per-vessel locks.

An entry lives only while some thread holds or waits on it, so the map
stays as small as the set of vessels being processed right now instead
of growing with every MMSI ever seen.
"""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


class VesselLocks:
    """
    Keyed mutual exclusion by vessel id.

    Usage:
        locks = VesselLocks()
        with locks.hold("224123450"):
            ...  # read-modify-write for that vessel
    """

    def __init__(self):
        self._entries: Dict[str, _Entry] = {}
        self._guard = threading.Lock()

    @contextmanager
    def hold(self, vessel_id: str) -> Iterator[None]:
        with self._guard:
            entry = self._entries.get(vessel_id)
            if entry is None:
                entry = self._entries[vessel_id] = _Entry()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._entries[vessel_id]

    def __contains__(self, vessel_id: str) -> bool:
        with self._guard:
            return vessel_id in self._entries

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)
