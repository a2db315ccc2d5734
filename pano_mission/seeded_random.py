"""Deterministic random source used to make generated missions reproducible."""

from __future__ import annotations

import secrets
import time
from typing import Callable, List, Optional, Sequence, TypeVar

T = TypeVar("T")

_UINT32_MASK = 0xFFFFFFFF
_MULBERRY_INCREMENT = 0x6D2B79F5


def generate_seed() -> str:
    """Synthesize a fresh seed from the wall clock and OS entropy."""

    return f"{int(time.time() * 1000)}_{secrets.token_hex(4)[:7]}"


def string_to_seed(seed: str) -> int:
    """Hash a seed string to a non-negative 32-bit integer."""

    value = 0
    for char in seed:
        value = (value * 31 + ord(char)) & _UINT32_MASK
    if value >= 0x80000000:
        value -= 0x100000000
    return abs(value)


def _imul(a: int, b: int) -> int:
    return (a * b) & _UINT32_MASK


class SeededRandom:
    """
    Mulberry32 pseudo-random generator keyed by a string seed.

    Two instances built from the same seed produce identical draw
    sequences, so every consumer that draws in the same order gets the
    same results.
    """

    def __init__(
        self,
        seed: Optional[str] = None,
        seed_factory: Callable[[], str] = generate_seed,
    ) -> None:
        self.seed: str = seed or seed_factory()
        self._state = string_to_seed(self.seed)

    def random(self) -> float:
        """Uniform float in [0, 1)."""
        self._state = (self._state + _MULBERRY_INCREMENT) & _UINT32_MASK
        t = self._state
        t = _imul(t ^ (t >> 15), t | 1)
        t ^= (t + _imul(t ^ (t >> 7), t | 61)) & _UINT32_MASK
        return ((t ^ (t >> 14)) & _UINT32_MASK) / 4294967296.0

    def randint(self, low: int, high: int) -> int:
        """Integer in [low, high], both ends inclusive."""
        return int(self.random() * (high - low + 1)) + low

    def uniform(self, low: float, high: float) -> float:
        """Float in [low, high]."""
        return self.random() * (high - low) + low

    def choice(self, items: Sequence[T]) -> T:
        if not items:
            raise IndexError("Cannot choose from an empty sequence")
        return items[int(self.random() * len(items))]

    def shuffle(self, items: Sequence[T]) -> List[T]:
        """Return a shuffled copy (Fisher-Yates); the input is left untouched."""
        result = list(items)
        for i in range(len(result) - 1, 0, -1):
            j = int(self.random() * (i + 1))
            result[i], result[j] = result[j], result[i]
        return result

    def boolean(self, probability: float = 0.5) -> bool:
        return self.random() < probability

    def sample(self, items: Sequence[T], count: int) -> List[T]:
        """Pick ``count`` distinct elements; all of them when count exceeds len."""
        shuffled = self.shuffle(items)
        if count >= len(shuffled):
            return shuffled
        return shuffled[: max(0, count)]


__all__ = ["SeededRandom", "generate_seed", "string_to_seed"]
