"""
RegistrationLedger

Tracks which service keys have been registered while the container is open.
"""

import threading
from typing import FrozenSet, Set

from .key import ServiceKey


class RegistrationLedger:
    """Synchronized set of registered service keys.

    Answers "is this registered?" before the container is built, without
    forcing a build. Mutation and queries take the same lock.
    """

    def __init__(self):
        self._keys: Set[ServiceKey] = set()
        self._lock = threading.Lock()

    def record(self, key: ServiceKey) -> bool:
        """Add a key. Returns False if it was already recorded."""
        with self._lock:
            if key in self._keys:
                return False
            self._keys.add(key)
            return True

    def contains(self, key: ServiceKey) -> bool:
        with self._lock:
            return key in self._keys

    def keys(self) -> FrozenSet[ServiceKey]:
        with self._lock:
            return frozenset(self._keys)

    def discard(self, key: ServiceKey) -> None:
        """Forget a key whose registration was reverted."""
        with self._lock:
            self._keys.discard(key)

    def clear(self) -> None:
        with self._lock:
            self._keys.clear()

    def __contains__(self, key: ServiceKey) -> bool:
        return self.contains(key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._keys)
