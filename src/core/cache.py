import logging
import threading
import time
from collections import OrderedDict
from typing import Any, Dict, Hashable, Optional

logger = logging.getLogger(__name__)


class SimpleCache:
    """
    带 TTL 的进程内缓存

    max_size 不为 None 时按最近访问顺序淘汰（LRU）。
    """

    def __init__(self, ttl: int = 3600, max_size: Optional[int] = None):
        self.ttl = ttl
        self.max_size = max_size
        self._cache: "OrderedDict[Hashable, Dict[str, Any]]" = OrderedDict()
        self._lock = threading.Lock()
        logger.debug(
            "SimpleCache initialized with TTL=%d seconds, max_size=%s", ttl, max_size
        )

    def set(self, key: Hashable, value: Any):
        expiry_time = time.time() + self.ttl
        with self._lock:
            self._cache[key] = {"value": value, "expiry": expiry_time}
            self._cache.move_to_end(key)
            if self.max_size is not None:
                while len(self._cache) > self.max_size:
                    evicted, _ = self._cache.popitem(last=False)
                    logger.debug("Cache evicted: key=%s", evicted)
        logger.debug("Cache set: key=%s, expires_at=%s", key, expiry_time)

    def get(self, key: Hashable) -> Optional[Any]:
        with self._lock:
            item = self._cache.get(key)
            if item is None:
                logger.debug("Cache miss: key=%s", key)
                return None

            current_time = time.time()
            if current_time > item["expiry"]:
                logger.debug(
                    "Cache expired: key=%s, expired_at=%s, current_time=%s",
                    key,
                    item["expiry"],
                    current_time,
                )
                del self._cache[key]
                return None

            self._cache.move_to_end(key)
        logger.debug("Cache hit: key=%s", key)
        return item["value"]

    def delete(self, key: Hashable):
        with self._lock:
            self._cache.pop(key, None)

    def __len__(self) -> int:
        return len(self._cache)

    def clear(self):
        with self._lock:
            cache_size = len(self._cache)
            self._cache.clear()
        logger.info("Cache cleared: removed %d entries", cache_size)
