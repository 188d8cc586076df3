"""
Universal hash families for TinyMoments.

This module provides the hash functions used by the exact and approximate
second-moment estimators. Every function is an immutable value object whose
random coefficients are fixed at construction time:

- MultiplyShift: Dietzfelbinger's 2-universal family over 64-bit keys,
  h(x) = ((a * x) mod 2^64) >> (64 - l) with a odd.
- MultiplyModP: 2-universal family over the field Z/pZ,
  h(x) = ((a * x + b) mod p) mod 2^l.
- Degree3Poly: 4-universal family, g(x) = a3*x^3 + a2*x^2 + a1*x + a0 mod p
  evaluated with Horner's rule.
- SketchPair: the bucket hash h(x) = g(x) mod 2^t and sign hash
  s(x) = +/-1 derived from one Degree3Poly, as needed by Count-Sketch.

These functions give the independence guarantees the estimators rely on when
their coefficients are drawn uniformly. They are not cryptographic hashes.

References:
    - Carter, J. L., & Wegman, M. N. (1979). Universal classes of hash functions.
      Journal of Computer and System Sciences, 18(2), 143-154.
    - Dietzfelbinger, M., Hagerup, T., Katajainen, J., & Penttonen, M. (1997).
      A reliable randomized algorithm for the closest-pair problem.
      Journal of Algorithms, 25(1), 19-51.
    - Thorup, M., & Zhang, Y. (2012). Tabulation-based 5-independent hashing
      with applications to linear probing and second moment estimation.
      SIAM Journal on Computing, 41(2), 293-331.
"""

import abc
import random
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, Optional, Tuple

from tiny_moments.core.errors import InvalidParameter
from tiny_moments.core.field import FIELD

KEY_BITS = 64
KEY_MASK = (1 << KEY_BITS) - 1


def _check_bits(value: int, name: str, upper: int, inclusive: bool = True) -> None:
    """
    Validate an output bit width.

    Args:
        value: The bit width to check.
        name: Parameter name used in the error message.
        upper: Largest allowed value (or first disallowed value if not inclusive).
        inclusive: Whether upper itself is allowed.

    Raises:
        InvalidParameter: If value falls outside (0, upper] or (0, upper).
    """
    in_range = 0 < value <= upper if inclusive else 0 < value < upper
    if not in_range:
        bracket = "]" if inclusive else ")"
        raise InvalidParameter(
            f"Parameter '{name}' must be in the range (0, {upper}{bracket}, got {value}"
        )


def _check_coefficient(value: int, name: str) -> None:
    if not FIELD.contains(value):
        raise InvalidParameter(
            f"Coefficient '{name}' must be in [0, p) for p = 2^{FIELD.q} - 1"
        )


class HashFunction(abc.ABC):
    """
    Abstract base class for a hash function from 64-bit keys to integers.

    Subclasses are frozen dataclasses, so two instances with the same
    coefficients compare equal and can be used as dictionary keys.
    """

    @property
    @abc.abstractmethod
    def output_bits(self) -> int:
        """Number of bits in the output; outputs are in [0, 2^output_bits)."""

    @abc.abstractmethod
    def evaluate(self, key: int) -> int:
        """
        Hash a key.

        Args:
            key: A 64-bit unsigned integer.

        Returns:
            The hash value.
        """

    @abc.abstractmethod
    def to_dict(self) -> Dict[str, Any]:
        """Convert the function parameters to a dictionary."""

    def __call__(self, key: int) -> int:
        return self.evaluate(key)


@dataclass(frozen=True)
class MultiplyShift(HashFunction):
    """
    Multiply-shift hashing of 64-bit keys to l bits.

    The multiplier is reduced to 64 bits and forced odd on construction.
    """

    a: int
    l: int

    def __post_init__(self) -> None:
        _check_bits(self.l, "l", KEY_BITS, inclusive=False)
        object.__setattr__(self, "a", (self.a & KEY_MASK) | 1)

    @property
    def output_bits(self) -> int:
        return self.l

    def evaluate(self, key: int) -> int:
        return ((self.a * key) & KEY_MASK) >> (KEY_BITS - self.l)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "MultiplyShift", "a": self.a, "l": self.l}


@dataclass(frozen=True)
class MultiplyModP(HashFunction):
    """Multiply-mod-prime hashing of keys to l bits."""

    a: int
    b: int
    l: int

    def __post_init__(self) -> None:
        _check_bits(self.l, "l", KEY_BITS)
        _check_coefficient(self.a, "a")
        _check_coefficient(self.b, "b")

    @property
    def output_bits(self) -> int:
        return self.l

    def evaluate(self, key: int) -> int:
        return FIELD.reduce(self.a * key + self.b) & ((1 << self.l) - 1)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "MultiplyModP", "a": self.a, "b": self.b, "l": self.l}


@dataclass(frozen=True)
class Degree3Poly(HashFunction):
    """
    Degree-3 polynomial over Z/pZ.

    With uniformly random coefficients the images of any four distinct keys
    are independent and uniform over [0, p), making the family 4-universal.
    """

    a0: int
    a1: int
    a2: int
    a3: int

    def __post_init__(self) -> None:
        for name in ("a0", "a1", "a2", "a3"):
            _check_coefficient(getattr(self, name), name)

    @property
    def output_bits(self) -> int:
        return FIELD.q

    def evaluate(self, key: int) -> int:
        # Horner's rule, reducing after every step so values stay below p
        g = FIELD.add(FIELD.multiply(self.a3, key), self.a2)
        g = FIELD.add(FIELD.multiply(g, key), self.a1)
        return FIELD.add(FIELD.multiply(g, key), self.a0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "Degree3Poly",
            "a0": self.a0,
            "a1": self.a1,
            "a2": self.a2,
            "a3": self.a3,
        }


@dataclass(frozen=True)
class SketchPair:
    """
    Bucket and sign hash functions derived from one 4-universal polynomial.

    The bucket hash keeps the low t bits of g(x). The sign hash reads bit
    q - 1 of g(x): +1 if it is clear, -1 if it is set.

    Unpacking yields the two functions, so ``h, s = make_sketch_pair(t)``
    works as well as calling ``pair.evaluate(x)`` to get both at once.
    """

    poly: Degree3Poly
    t: int

    def __post_init__(self) -> None:
        _check_bits(self.t, "t", KEY_BITS)

    @property
    def output_bits(self) -> int:
        return self.t

    def evaluate(self, key: int) -> Tuple[int, int]:
        """
        Compute bucket and sign for a key with a single polynomial evaluation.

        Returns:
            A tuple (bucket, sign) with bucket in [0, 2^t) and sign in {+1, -1}.
        """
        g = self.poly.evaluate(key)
        sign = -1 if (g >> (FIELD.q - 1)) & 1 else 1
        return g & ((1 << self.t) - 1), sign

    def bucket(self, key: int) -> int:
        """Bucket hash h(x) = g(x) mod 2^t."""
        return self.poly.evaluate(key) & ((1 << self.t) - 1)

    def sign(self, key: int) -> int:
        """Sign hash s(x) in {+1, -1}."""
        return -1 if (self.poly.evaluate(key) >> (FIELD.q - 1)) & 1 else 1

    def __iter__(self) -> Iterator[Callable[[int], int]]:
        return iter((self.bucket, self.sign))

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "SketchPair", "t": self.t, "poly": self.poly.to_dict()}


def multiply_shift(a: int, l: int) -> MultiplyShift:
    """
    Build a multiply-shift hash function.

    Args:
        a: Multiplier; reduced to 64 bits and forced odd.
        l: Output bits, 0 < l < 64.

    Raises:
        InvalidParameter: If l is outside (0, 64).
    """
    return MultiplyShift(a=a, l=l)


def multiply_mod_p(a: int, b: int, l: int) -> MultiplyModP:
    """
    Build a multiply-mod-p hash function.

    Args:
        a: Multiplier in [0, p).
        b: Offset in [0, p).
        l: Output bits, 0 < l <= 64.

    Raises:
        InvalidParameter: If l or the coefficients are out of range.
    """
    return MultiplyModP(a=a, b=b, l=l)


def degree3_poly(a0: int, a1: int, a2: int, a3: int) -> Degree3Poly:
    """Build the polynomial a3*x^3 + a2*x^2 + a1*x + a0 over Z/pZ."""
    return Degree3Poly(a0=a0, a1=a1, a2=a2, a3=a3)


def random_multiply_shift(l: int, rng: Optional[Any] = None) -> MultiplyShift:
    """Draw a multiply-shift function with a random odd 64-bit multiplier."""
    _check_bits(l, "l", KEY_BITS, inclusive=False)
    source = rng if rng is not None else random.SystemRandom()
    return MultiplyShift(a=source.getrandbits(KEY_BITS), l=l)


def random_multiply_mod_p(l: int, rng: Optional[Any] = None) -> MultiplyModP:
    """Draw a multiply-mod-p function with random coefficients a, b in [0, p)."""
    _check_bits(l, "l", KEY_BITS)
    source = rng if rng is not None else random.SystemRandom()
    return MultiplyModP(
        a=FIELD.random_coefficient(source), b=FIELD.random_coefficient(source), l=l
    )


def random_degree3_poly(rng: Optional[Any] = None) -> Degree3Poly:
    """Draw a degree-3 polynomial with four independent random coefficients."""
    source = rng if rng is not None else random.SystemRandom()
    a0, a1, a2, a3 = (FIELD.random_coefficient(source) for _ in range(4))
    return Degree3Poly(a0=a0, a1=a1, a2=a2, a3=a3)


def make_sketch_pair(t: int, rng: Optional[Any] = None) -> SketchPair:
    """
    Draw a fresh bucket/sign hash pair for a sketch with 2^t counters.

    Every call draws new coefficients, so pairs from separate calls are
    independent hash instances.

    Args:
        t: Bucket bits, 0 < t <= 64.
        rng: Optional random source; defaults to operating system entropy.

    Raises:
        InvalidParameter: If t is outside (0, 64].
    """
    _check_bits(t, "t", KEY_BITS)
    return SketchPair(poly=random_degree3_poly(rng), t=t)


def hash_function_from_dict(data: Dict[str, Any]) -> Any:
    """
    Rebuild a hash function or sketch pair from its dictionary form.

    Raises:
        ValueError: If the type tag is unknown.
    """
    kind = data.get("type")
    if kind == "MultiplyShift":
        return MultiplyShift(a=data["a"], l=data["l"])
    elif kind == "MultiplyModP":
        return MultiplyModP(a=data["a"], b=data["b"], l=data["l"])
    elif kind == "Degree3Poly":
        return Degree3Poly(a0=data["a0"], a1=data["a1"], a2=data["a2"], a3=data["a3"])
    elif kind == "SketchPair":
        return SketchPair(poly=hash_function_from_dict(data["poly"]), t=data["t"])
    else:
        raise ValueError(f"Unknown hash function type: {kind}")
