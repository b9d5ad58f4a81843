"""Single source of randomness for coin flips, codes and the random AI level."""

from __future__ import annotations

import logging
import os
import random
from typing import Optional, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _default_rng() -> random.Random:
    try:
        os.urandom(1)
    except NotImplementedError:
        logger.warning("No OS entropy source available; using a seeded PRNG")
        return random.Random()
    return random.SystemRandom()


class RandomSource:
    """OS-entropy backed by default; ``seeded`` gives a reproducible source."""

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self._rng = rng if rng is not None else _default_rng()

    @classmethod
    def seeded(cls, seed: int) -> "RandomSource":
        return cls(random.Random(seed))

    def coin_flip(self) -> bool:
        return self._rng.getrandbits(1) == 1

    def choice(self, items: Sequence[T]) -> T:
        return items[self._rng.randrange(len(items))]

    def code(self, alphabet: str, length: int) -> str:
        return "".join(self.choice(alphabet) for _ in range(length))

    def token(self) -> str:
        return "%032x" % self._rng.getrandbits(128)
