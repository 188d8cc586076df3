"""
Synthetic update streams for TinyMoments experiments.

The generator walks a 64-bit accumulator in steps of a random stride and
masks it into a window of l bits starting at bit 30, so keys are spread
roughly evenly over 2^l possible values. The stream is split in thirds:
the first and last thirds add +1, the middle third adds -1.
"""

import logging
import random
from typing import Iterator, List, Optional

from tiny_moments.core.base import Update
from tiny_moments.core.errors import InvalidParameter

log = logging.getLogger(__name__)

KEY_SHIFT = 30
MAX_KEY_BITS = 64 - KEY_SHIFT
_WORD_MASK = (1 << 64) - 1


def _check_stream_params(n: int, l: int) -> None:
    if n < 0:
        raise InvalidParameter(f"Stream length must be non-negative, got {n}")
    if not 0 < l <= MAX_KEY_BITS:
        raise InvalidParameter(
            f"Key bits 'l' must be in the range (0, {MAX_KEY_BITS}], got {l}"
        )


def iter_stream(n: int, l: int, seed: Optional[int] = None) -> Iterator[Update]:
    """
    Lazily generate a stream of n (key, delta) updates over 2^l key values.

    Args:
        n: Number of updates.
        l: Number of key bits; keys are multiples of 2^30 below 2^(l + 30).
        seed: Optional seed for a reproducible stream.

    Returns:
        An iterator of (key, delta) pairs with delta in {+1, -1}.

    Raises:
        InvalidParameter: If n is negative or l is outside (0, 34].
    """
    _check_stream_params(n, l)
    return _generate(n, l, random.Random(seed))


def _generate(n: int, l: int, rng: random.Random) -> Iterator[Update]:
    # Force 30 zero bits followed by a one at the bottom of the stride
    a = rng.getrandbits(64)
    a = (a | ((1 << 31) - 1)) ^ ((1 << 30) - 1)
    key_mask = ((1 << l) - 1) << KEY_SHIFT

    x = 0
    for count, delta in ((n // 3, 1), ((n + 1) // 3, -1), ((n + 2) // 3, 1)):
        for _ in range(count):
            x = (x + a) & _WORD_MASK
            yield x & key_mask, delta


def create_stream(n: int, l: int, seed: Optional[int] = None) -> List[Update]:
    """
    Generate a materialized, replayable stream of n updates.

    See iter_stream for the parameters.
    """
    stream = list(iter_stream(n, l, seed))
    log.debug("generated stream of %d updates over %d key bits", len(stream), l)
    return stream
