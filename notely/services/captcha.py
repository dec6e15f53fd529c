"""CAPTCHA generation and one-shot verification over a ChallengeStore."""
import logging
import random
import secrets
import string
import time
from typing import Callable

from notely.models.challenge import CaptchaOutcome, Challenge
from notely.services.captcha_image import render_captcha
from notely.services.challenge_store import ChallengeStore

logger = logging.getLogger(__name__)

ALPHABET = string.ascii_uppercase + string.digits


def new_identifier() -> str:
    return secrets.token_urlsafe(16)


class CaptchaService:
    """
    Issues challenges into a store and verifies submitted answers.

    Clock, random source and identifier factory are injectable so expiry and
    rendering are deterministic under test.
    """

    def __init__(
        self,
        store: ChallengeStore,
        ttl_s: float = 300,
        length: int = 5,
        image_format: str = "svg",
        clock: Callable[[], float] = time.time,
        rng: random.Random | None = None,
        id_factory: Callable[[], str] = new_identifier,
    ):
        self.store = store
        self.ttl_s = ttl_s
        self.length = length
        self.image_format = image_format
        self._clock = clock
        self._rng = rng or random.SystemRandom()
        self._id_factory = id_factory

    def create(self) -> tuple[str, str]:
        """Generate and store a new challenge. Returns (identifier, image data URI)."""
        answer = "".join(self._rng.choice(ALPHABET) for _ in range(self.length))
        challenge = Challenge(
            identifier=self._id_factory(),
            answer=answer,
            image=render_captcha(answer, self._rng, self.image_format),
            expires_at=self._clock() + self.ttl_s,
        )
        self.store.put(challenge)
        return challenge.identifier, challenge.image

    def verify(self, identifier: str, submitted: str) -> bool:
        outcome = self.check(identifier, submitted)
        logger.debug("Captcha %s verification: %s", identifier, outcome.value)
        return outcome is CaptchaOutcome.OK

    def check(self, identifier: str, submitted: str) -> CaptchaOutcome:
        """
        Look up, expire and compare atomically.
        A correct answer consumes the challenge; a wrong one leaves it live
        for another attempt until it expires.
        """
        with self.store.locked() as store:
            challenge = store.get(identifier)
            if challenge is None:
                return CaptchaOutcome.NOT_FOUND

            if challenge.is_expired(self._clock()):
                store.delete(identifier)
                return CaptchaOutcome.EXPIRED

            if submitted.lower() != challenge.answer.lower():
                return CaptchaOutcome.MISMATCH

            store.delete(identifier)
            return CaptchaOutcome.OK
