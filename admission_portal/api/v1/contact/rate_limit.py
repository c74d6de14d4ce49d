import math
import time
from typing import List, Optional

from cachetools import TTLCache


class SlidingWindowRateLimiter:
    """At most `limit` hits per key within `window` seconds. State is per process."""

    def __init__(self, limit: int, window: int, max_keys: int = 10000):
        self.limit = limit
        self.window = window
        self._hits: TTLCache[str, List[float]] = TTLCache(maxsize=max_keys, ttl=window)

    def hit(self, key: str) -> Optional[int]:
        """
        Record a hit for key.

        Returns None when allowed, otherwise the number of seconds until the
        oldest hit leaves the window (the hit is not recorded).
        """
        now = time.monotonic()
        hits = [t for t in self._hits.get(key, []) if now - t < self.window]
        if len(hits) >= self.limit:
            self._hits[key] = hits
            return max(1, math.ceil(hits[0] + self.window - now))
        hits.append(now)
        self._hits[key] = hits
        return None

    def reset(self) -> None:
        self._hits.clear()
