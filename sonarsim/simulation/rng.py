"""
Seeded Random Number Stream

Mulberry32 generator shared by the patrol AI and the scenario factory.
Call order across consumers is part of the reproducibility contract, so
one instance is threaded explicitly through every consumer.
"""

from typing import Callable

_MASK32 = 0xFFFFFFFF

RandomFunc = Callable[[], float]
"""Zero-argument draw returning a float in [0, 1)."""


def _imul(a: int, b: int) -> int:
    """32-bit wrapping multiply."""
    return (a * b) & _MASK32


class Mulberry32:
    """
    Mulberry32 pseudo-random generator.

    Produces the same sequence as the reference 32-bit implementation
    for a given seed.

    Example:
        >>> rng = Mulberry32(12345)
        >>> a = rng.random()
        >>> Mulberry32(12345).random() == a
        True
    """

    def __init__(self, seed: int = 12345):
        self.state = int(seed) & _MASK32

    def random(self) -> float:
        """Next draw in [0, 1)."""
        self.state = (self.state + 0x6D2B79F5) & _MASK32
        t = self.state
        t = _imul(t ^ (t >> 15), t | 1)
        t ^= (t + _imul(t ^ (t >> 7), t | 61)) & _MASK32
        return ((t ^ (t >> 14)) & _MASK32) / 4294967296.0

    def __call__(self) -> float:
        return self.random()
