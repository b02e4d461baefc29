"""Per-key lock registry for fine-grained write serialization."""
import threading
from contextlib import contextmanager
from typing import Iterator


class KeyedLock:
    """Hands out one re-entrant lock per key.

    Writers to the same key are serialized; writers to different keys never
    contend. Locks are created lazily and outlive a deleted key, so a writer
    already waiting on a key always shares the lock of the next writer.
    """

    def __init__(self) -> None:
        self._registry_lock = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    def _get(self, key: str) -> threading.RLock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        """Hold the lock for key for the duration of the with-block."""
        lock = self._get(key)
        with lock:
            yield

    def retain(self, keys) -> None:
        """Forget the locks of every key not in keys.

        Only safe when no writer can be waiting on a dropped key, e.g. while
        the owning table is being replaced wholesale.
        """
        keep = set(keys)
        with self._registry_lock:
            for key in [k for k in self._locks if k not in keep]:
                del self._locks[key]

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._locks)
