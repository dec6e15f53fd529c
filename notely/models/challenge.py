"""Challenge record and verification outcome."""
from dataclasses import dataclass
from enum import Enum


class CaptchaOutcome(str, Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    MISMATCH = "mismatch"


@dataclass(frozen=True)
class Challenge:
    identifier: str
    answer: str
    image: str
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return self.expires_at < now
