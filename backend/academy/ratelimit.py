# backend/academy/ratelimit.py
from limits import parse
from limits.storage import MemoryStorage
from limits.strategies import MovingWindowRateLimiter


class IdentifierRateLimiter:
    """
    Moving-window limit keyed by (namespace, *identifiers), e.g. ("otp-request", "phone", "+919876543210").

    Storage is in-process memory whose entries expire with their window, so a
    multi-worker deployment gets one budget per worker.
    """

    def __init__(self, limit: str, namespace: str, storage=None):
        self.item = parse(limit)
        self.namespace = namespace
        self._storage = storage or MemoryStorage()
        self._limiter = MovingWindowRateLimiter(self._storage)

    def hit(self, *identifiers: str) -> bool:
        return self._limiter.hit(self.item, self.namespace, *identifiers)

    def remaining(self, *identifiers: str) -> int:
        return self._limiter.get_window_stats(self.item, self.namespace, *identifiers).remaining

    def clear(self, *identifiers: str) -> None:
        self._limiter.clear(self.item, self.namespace, *identifiers)

    def reset(self) -> None:
        self._storage.reset()
