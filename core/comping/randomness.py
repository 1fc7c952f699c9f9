"""
core/comping/randomness.py — Injectable random sources.

GaussianSource wraps a random.Random and adds a Box–Muller normal draw.
Renderers and selectors receive one explicitly; two renders with sources
built from the same seed produce identical output. A source is not
thread-safe, so concurrent renders each need their own.
"""

from __future__ import annotations

import math
import random


class GaussianSource:
    """Uniform and normal draws from one seeded generator.

    Args:
        rng:  Underlying uniform generator. Built from ``seed`` when None.
        seed: Seed for a fresh random.Random. None = non-deterministic.

    Examples:
        >>> a, b = GaussianSource(seed=7), GaussianSource(seed=7)
        >>> a.gauss(0.0, 1.0) == b.gauss(0.0, 1.0)
        True
    """

    def __init__(self, rng: random.Random | None = None, *, seed: int | None = None) -> None:
        self._rng = rng if rng is not None else random.Random(seed)

    @property
    def rng(self) -> random.Random:
        return self._rng

    def random(self) -> float:
        """Uniform float in [0, 1)."""
        return self._rng.random()

    def gauss(self, mean: float = 0.0, std_dev: float = 1.0) -> float:
        """Normal draw via the Box–Muller transform.

        A zero standard deviation returns ``mean`` exactly without consuming
        randomness, so zero-jitter configs are bit-exact.
        """
        if std_dev == 0.0:
            return mean
        u1 = 1.0 - self._rng.random()  # (0, 1] keeps log() finite
        u2 = self._rng.random()
        z = math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)
        return mean + z * std_dev
