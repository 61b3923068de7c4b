"""Random sources for the outcome engine."""
import hashlib
import random
import secrets
from abc import ABC, abstractmethod
from typing import Sequence, TypeVar


T = TypeVar("T")


class RNGBase(ABC):
    """
    Abstract random source.

    random() is the single capability the engine relies on; every
    probabilistic decision makes an independent call.
    """

    @abstractmethod
    def random(self) -> float:
        """Return random float in [0, 1)."""
        pass

    def choice(self, pool: Sequence[T]) -> T:
        """Pick uniformly from a non-empty sequence using one random() draw."""
        if not pool:
            raise IndexError("cannot choose from an empty pool")
        index = int(self.random() * len(pool))
        return pool[min(index, len(pool) - 1)]


class ProductionRNG(RNGBase):
    """Cryptographically secure source, no fixed seed."""

    def random(self) -> float:
        return secrets.randbelow(2**32) / (2**32)


class SeededRNG(RNGBase):
    """
    Deterministic source for tests and simulations.

    Fully controlled by seed.
    """

    def __init__(self, seed: int):
        self._rng = random.Random(seed)
        self.seed = seed

    def random(self) -> float:
        return self._rng.random()


def seed_to_int(seed_str: str) -> int:
    """Convert string seed to integer deterministically."""
    return int(hashlib.sha256(seed_str.encode()).hexdigest(), 16) % (2**31)
