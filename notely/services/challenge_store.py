"""In-memory CAPTCHA challenge registry guarded by a single lock."""
import threading
from contextlib import contextmanager

from notely.models.challenge import Challenge


class ChallengeStore:
    """
    Keyed registry of live challenges.

    Every operation takes the same reentrant lock, so callers that need to
    compose several operations atomically (lookup + delete in verification)
    can hold it across them via ``locked()``.
    """

    def __init__(self):
        self._lock = threading.RLock()
        # identifier → Challenge
        self._challenges: dict[str, Challenge] = {}

    @contextmanager
    def locked(self):
        with self._lock:
            yield self

    def put(self, challenge: Challenge) -> None:
        with self._lock:
            self._challenges[challenge.identifier] = challenge

    def get(self, identifier: str) -> Challenge | None:
        with self._lock:
            return self._challenges.get(identifier)

    def delete(self, identifier: str) -> None:
        with self._lock:
            self._challenges.pop(identifier, None)

    def sweep(self, now: float) -> int:
        """Remove every challenge whose expiry is before ``now``. Returns the count removed."""
        with self._lock:
            expired = [k for k, c in self._challenges.items() if c.is_expired(now)]
            for k in expired:
                del self._challenges[k]
            return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._challenges)
