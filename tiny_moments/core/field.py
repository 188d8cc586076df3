"""
Arithmetic modulo a Mersenne prime.

All universal hash families in TinyMoments work over the field of integers
modulo p = 2^89 - 1. Because p has the form 2^q - 1, the remainder of any
non-negative y can be found without division:

    y mod (2^q - 1) == ((y & p) + (y >> q)) mod (2^q - 1)

Folding the high bits onto the low bits shrinks y to roughly q bits per step.
For a product of two values below p (at most 2q bits) two folds and one
final comparison against p are enough.
"""

import random
from typing import Any, Optional

from tiny_moments.core.errors import InvalidParameter

MERSENNE_EXPONENT = 89
MERSENNE_PRIME = (1 << MERSENNE_EXPONENT) - 1


class ModularField:
    """
    The field Z/pZ for a Mersenne modulus p = 2^q - 1.

    Python integers have arbitrary precision, so intermediate products of
    two 89-bit values (up to ~178 bits) are exact before reduction.
    """

    __slots__ = ["q", "p"]

    def __init__(self, q: int = MERSENNE_EXPONENT):
        """
        Initialize the field.

        Args:
            q: Exponent of the modulus p = 2^q - 1. Must be at least 2.
               Only prime values of p give a field; 89 is the default.

        Raises:
            InvalidParameter: If q is less than 2.
        """
        if q < 2:
            raise InvalidParameter(f"Mersenne exponent must be at least 2, got {q}")

        self.q = q
        self.p = (1 << q) - 1

    def reduce(self, y: int) -> int:
        """
        Compute y mod p using the Mersenne fold.

        Args:
            y: A non-negative integer.

        Returns:
            The residue of y, always strictly less than p.

        Raises:
            InvalidParameter: If y is negative.
        """
        if y < 0:
            raise InvalidParameter("Mersenne reduction requires a non-negative value")

        q = self.q
        p = self.p
        while y >> q:
            y = (y & p) + (y >> q)
        # y <= p here; p itself is congruent to 0
        if y >= p:
            y -= p
        return y

    def add(self, a: int, b: int) -> int:
        """Return (a + b) mod p."""
        return self.reduce(a + b)

    def multiply(self, a: int, b: int) -> int:
        """Return (a * b) mod p."""
        return self.reduce(a * b)

    def contains(self, value: int) -> bool:
        """Check whether value is a canonical field element in [0, p)."""
        return 0 <= value < self.p

    def random_coefficient(self, rng: Optional[Any] = None) -> int:
        """
        Draw a coefficient uniformly from [0, p).

        Args:
            rng: Source of random bits with a ``getrandbits`` method.
                 Defaults to ``random.SystemRandom`` (operating system entropy).
                 A seeded ``random.Random`` makes draws reproducible, which is
                 fine for tests but is not a uniform source in the strict sense.

        Returns:
            A field element.
        """
        if rng is None:
            rng = random.SystemRandom()
        return rng.getrandbits(self.q) % self.p

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ModularField):
            return NotImplemented
        return self.q == other.q

    def __hash__(self) -> int:
        return hash(("ModularField", self.q))

    def __repr__(self) -> str:
        return f"ModularField(q={self.q})"


# Shared default field used by the hash families
FIELD = ModularField()
