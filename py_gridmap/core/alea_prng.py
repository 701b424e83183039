"""
Alea pseudo-random number generator.

Based on Johannes Baagøe's Alea algorithm. It takes arbitrary string or
numeric seeds, so the same map seed typed by two users always yields the
same river sources, shoreline flips and building placements.
"""

import numpy as np


def _uint32(n):
    """Convert to unsigned 32-bit integer."""
    return int(n) & 0xFFFFFFFF


class AleaPRNG:
    """
    Seeded Alea generator used by every stochastic step of the engine.

    Besides the raw ``random()`` stream it offers the small helpers the
    generators need (integer ranges, probability checks, vector draws).
    """

    def __init__(self, seed):
        """Initialize with seed string or number."""
        self.seed = seed
        self.call_count = 0

        if hasattr(seed, "__iter__") and not isinstance(seed, str):
            args = list(seed)
        else:
            args = [seed]

        mash_n = 0xEFC8249D

        def mash(data):
            nonlocal mash_n
            for char in str(data):
                mash_n = mash_n + ord(char)
                h = 0.02519603282416938 * mash_n
                mash_n = _uint32(h)
                h -= mash_n
                h *= mash_n
                mash_n = _uint32(h)
                h -= mash_n
                mash_n += h * 0x100000000  # 2^32
            return _uint32(mash_n) * 2.3283064365386963e-10  # 2^-32

        self.s0 = mash(" ")
        self.s1 = mash(" ")
        self.s2 = mash(" ")
        self.c = 1

        for arg in args:
            self.s0 -= mash(arg)
            if self.s0 < 0:
                self.s0 += 1
            self.s1 -= mash(arg)
            if self.s1 < 0:
                self.s1 += 1
            self.s2 -= mash(arg)
            if self.s2 < 0:
                self.s2 += 1

    def random(self) -> float:
        """Generate next random number in [0, 1)."""
        self.call_count += 1
        t = 2091639 * self.s0 + self.c * 2.3283064365386963e-10  # 2^-32
        self.s0 = self.s1
        self.s1 = self.s2
        self.c = int(t)
        self.s2 = t - self.c
        return self.s2

    def randint(self, min_val: int, max_val: int) -> int:
        """Integer in [min_val, max_val] inclusive."""
        return int(self.random() * (max_val - min_val + 1)) + int(min_val)

    def chance(self, probability: float) -> bool:
        """True with the given probability."""
        if probability >= 1:
            return True
        if probability <= 0:
            return False
        return self.random() < probability

    def choice(self, seq):
        """Choose a random element from a non-empty sequence."""
        if not seq:
            raise IndexError("Cannot choose from an empty sequence")
        return seq[int(self.random() * len(seq))]

    def random_array(self, n: int) -> np.ndarray:
        """Draw ``n`` consecutive values from the stream as a float array."""
        values = np.empty(n, dtype=np.float64)
        for i in range(n):
            values[i] = self.random()
        return values
