# Small TTL cache, injected where a value is expensive or secret (e.g. the JWT signing key)
import time
from typing import Any, Callable, Dict, Optional, Tuple


class TTLCache:
    """Entries expire ttl_seconds after set. Oldest entry is evicted when max_entries is reached."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic, max_entries: int = 5000):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._max_entries = max_entries
        self._entries: Dict[Any, Tuple[Any, float]] = {}

    def get(self, key) -> Optional[Any]:
        hit = self._entries.get(key)
        if hit is None:
            return None
        value, expires = hit
        if self._clock() > expires:
            self._entries.pop(key, None)
            return None
        return value

    def set(self, key, value) -> None:
        if key not in self._entries and len(self._entries) >= self._max_entries:
            oldest = next(iter(self._entries))
            self._entries.pop(oldest, None)
        self._entries[key] = (value, self._clock() + self.ttl_seconds)

    def invalidate(self, key=None) -> None:
        """Drop one key, or everything when key is None."""
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    def get_or_load(self, key, loader: Callable[[], Any]) -> Any:
        value = self.get(key)
        if value is None:
            value = loader()
            if value is not None:
                self.set(key, value)
        return value

    def __len__(self) -> int:
        return len(self._entries)
