"""
Count-Sketch implementation for TinyMoments.

This module provides the Count-Sketch, a linear sketch that estimates the
second frequency moment F2 of a stream of signed updates in fixed space.

For every update (x, delta) the sketch adds s(x) * delta to counter C[h(x)],
where h is a bucket hash onto 2^t counters and s is a +/-1 sign hash. Then:

1. s(x) * C[h(x)] is an unbiased estimate of the frequency f(x).
2. sum_j C[j]^2 is an unbiased estimate of F2, with variance at most
   2 * F2^2 / 2^t when (h, s) come from a 4-universal family.

The variance bound needs 4-wise independence, so the bucket and sign hashes
are derived from a degree-3 polynomial over Z/pZ (see SketchPair) rather than
from the 2-universal multiply-shift family.

The Count-Sketch provides the following guarantees:
1. Space Complexity: O(2^t) counters
2. Update Time: O(1)
3. F2 Query Time: O(2^t)

References:
    - Charikar, M., Chen, K., & Farach-Colton, M. (2004). Finding frequent items
      in data streams. Theoretical Computer Science, 312(1), 3-15.
    - Thorup, M., & Zhang, Y. (2012). Tabulation-based 5-independent hashing
      with applications to linear probing and second moment estimation.
      SIAM Journal on Computing, 41(2), 293-331.
"""

import math
import sys
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from tiny_moments.core.base import MomentEstimator
from tiny_moments.core.errors import InvalidParameter, UninitializedEstimator
from tiny_moments.core.hash import SketchPair, hash_function_from_dict, make_sketch_pair

MAX_SKETCH_BITS = 64

# Above this many bucket bits counters are kept in a dict keyed by bucket
DENSE_MAX_BITS = 20


class CountSketchEstimator(MomentEstimator):
    """
    Count-Sketch estimator of the second frequency moment.

    Each instance owns one bucket/sign hash pair and one accumulator. To get
    independent estimates, build a new estimator per trial.

    Example:
        sketch = CountSketchEstimator(t=10)
        sketch.process([(1, 1), (2, 1), (1, 1)])
        sketch.estimate_square_sum()  # close to 2^2 + 1^2 = 5 on average
    """

    def __init__(
        self,
        t: int,
        hash_pair: Optional[SketchPair] = None,
        rng: Optional[Any] = None,
        defer_init: bool = False,
    ):
        """
        Initialize a new Count-Sketch with 2^t counters.

        Args:
            t: Number of bucket bits, 0 < t <= 64.
            hash_pair: Bucket/sign hash pair with range 2^t. If None, a fresh
                       pair is drawn from rng.
            rng: Optional random source used to draw hash pairs. Defaults to
                 operating system entropy.
            defer_init: If True, no hash pair or accumulator is set up until
                        initialize() is called. Estimates requested before
                        that raise UninitializedEstimator.

        Raises:
            InvalidParameter: If t is outside (0, 64] or the pair's range
                              does not match t.
        """
        super().__init__()

        if not 0 < t <= MAX_SKETCH_BITS:
            raise InvalidParameter(
                f"Parameter 't' must be in the range (0, {MAX_SKETCH_BITS}], got {t}"
            )

        self._t = t
        self._rng = rng
        self._pair: Optional[SketchPair] = None
        self._counters: Optional[Union[List[int], Dict[int, int]]] = None

        if not defer_init:
            self.initialize(hash_pair)
        elif hash_pair is not None:
            self._check_pair(hash_pair)
            self._pair = hash_pair

    def _check_pair(self, hash_pair: SketchPair) -> None:
        if hash_pair.t != self._t:
            raise InvalidParameter(
                f"Hash pair range 2^{hash_pair.t} does not match sketch size 2^{self._t}"
            )

    def _new_counters(self) -> Union[List[int], Dict[int, int]]:
        if self._t <= DENSE_MAX_BITS:
            # Python ints, so deltas and sums are unbounded
            return [0] * (1 << self._t)
        return {}

    def initialize(self, hash_pair: Optional[SketchPair] = None) -> None:
        """
        Install a hash pair and zero the accumulator.

        Args:
            hash_pair: Pair to use. If None, keeps the current pair, or
                       draws a fresh one if there is none yet.

        Raises:
            InvalidParameter: If the pair's range does not match t.
        """
        if hash_pair is None:
            hash_pair = self._pair
        if hash_pair is None:
            hash_pair = make_sketch_pair(self._t, self._rng)
        self._check_pair(hash_pair)

        self._pair = hash_pair
        self._counters = self._new_counters()
        self._items_processed = 0

    @property
    def initialized(self) -> bool:
        return self._counters is not None

    def _require_initialized(self) -> None:
        if self._counters is None:
            raise UninitializedEstimator(
                "Count-Sketch accumulator was never initialized; call initialize() first"
            )

    @property
    def t(self) -> int:
        return self._t

    @property
    def width(self) -> int:
        """Number of counters, 2^t."""
        return 1 << self._t

    @property
    def hash_pair(self) -> Optional[SketchPair]:
        return self._pair

    def update(self, key: int, delta: int = 1) -> None:
        """
        Add s(key) * delta to counter C[h(key)].

        Args:
            key: The 64-bit key of the update.
            delta: Signed change to the key's count.

        Raises:
            UninitializedEstimator: If the sketch was never initialized.
        """
        self._require_initialized()

        bucket, sign = self._pair.evaluate(key)
        counters = self._counters
        if isinstance(counters, dict):
            counters[bucket] = counters.get(bucket, 0) + sign * delta
        else:
            counters[bucket] += sign * delta
        super().update(key, delta)

    def _counter(self, bucket: int) -> int:
        counters = self._counters
        if isinstance(counters, dict):
            return counters.get(bucket, 0)
        return counters[bucket]

    def _counter_values(self) -> Iterator[int]:
        counters = self._counters
        if isinstance(counters, dict):
            return iter(counters.values())
        return iter(counters)

    def estimate_frequency(self, key: int) -> int:
        """
        Estimate the net frequency of a key as s(key) * C[h(key)].

        Raises:
            UninitializedEstimator: If the sketch was never initialized.
        """
        self._require_initialized()
        bucket, sign = self._pair.evaluate(key)
        return sign * self._counter(bucket)

    def estimate_square_sum(self) -> int:
        """
        Estimate F2 as the sum of squared counters.

        Returns 0 for a sketch that has not seen any updates.

        Raises:
            UninitializedEstimator: If the sketch was never initialized.
        """
        self._require_initialized()
        return sum(c * c for c in self._counter_values())

    def error_bounds(self) -> Dict[str, float]:
        """
        Theoretical error of the F2 estimate.

        Returns:
            A dictionary with:
            - relative_std_error: sqrt(2 / 2^t), the bound on std / F2
            - std_error: relative_std_error times the current estimate,
              a plug-in value for the absolute standard error
        """
        relative = math.sqrt(2.0 / self.width)
        bounds = {"relative_std_error": relative}
        if self.initialized:
            bounds["std_error"] = relative * self.estimate_square_sum()
        return bounds

    def merge(self, other: "CountSketchEstimator") -> "CountSketchEstimator":
        """
        Merge two sketches built on the same hash pair.

        The sketch is linear, so the merged counters describe the
        concatenation of both streams.

        Raises:
            TypeError: If other is not a CountSketchEstimator.
            ValueError: If the sketches differ in size or hash pair.
            UninitializedEstimator: If either sketch was never initialized.
        """
        self._check_same_type(other)
        self._require_initialized()
        other._require_initialized()

        if self._t != other._t or self._pair != other._pair:
            raise ValueError(
                "Cannot merge sketches with different sizes or hash pairs"
            )

        result = CountSketchEstimator(self._t, hash_pair=self._pair, rng=self._rng)
        for source in (self, other):
            for bucket, value in source._nonzero_counters():
                if isinstance(result._counters, dict):
                    result._counters[bucket] = result._counters.get(bucket, 0) + value
                else:
                    result._counters[bucket] += value
        result._items_processed = self._combine_items_processed(other)

        return result

    def _nonzero_counters(self) -> Iterator[Tuple[int, int]]:
        counters = self._counters
        pairs = counters.items() if isinstance(counters, dict) else enumerate(counters)
        for bucket, value in pairs:
            if value:
                yield bucket, value

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the sketch to a dictionary for serialization.

        Only non-zero counters are stored.
        """
        data = self._base_dict()
        data.update(
            {
                "t": self._t,
                "hash_pair": self._pair.to_dict() if self._pair is not None else None,
                "counters": (
                    [[bucket, value] for bucket, value in self._nonzero_counters()]
                    if self.initialized
                    else None
                ),
            }
        )
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CountSketchEstimator":
        """
        Create a sketch from a dictionary representation.

        Raises:
            ValueError: If counters are present without the hash pair that
                        produced them.
        """
        pair_data = data.get("hash_pair")
        pair = hash_function_from_dict(pair_data) if pair_data is not None else None

        sketch = cls(data["t"], hash_pair=pair, defer_init=True)
        if data.get("counters") is not None:
            if pair is None:
                raise ValueError("Cannot restore Count-Sketch counters without their hash pair")
            sketch.initialize(pair)
            for bucket, value in data["counters"]:
                sketch._counters[bucket] = value
            sketch._items_processed = data.get("items_processed", 0)

        return sketch

    def estimate_size(self) -> int:
        size = super().estimate_size()
        if self._counters is not None:
            size += sys.getsizeof(self._counters)
            if isinstance(self._counters, dict):
                size += len(self._counters) * 2 * sys.getsizeof(0)
        return size

    def clear(self) -> None:
        """Zero every counter, keeping the hash pair."""
        super().clear()
        if self._counters is not None:
            self._counters = self._new_counters()

    def get_stats(self) -> Dict[str, Any]:
        """
        Get statistics about the sketch.

        Returns:
            A dictionary with size parameters, counter occupancy and, once
            initialized, the current F2 estimate and error bounds.
        """
        if not self.initialized:
            return {
                "type": self.__class__.__name__,
                "t": self._t,
                "width": self.width,
                "initialized": False,
            }

        stats = super().get_stats()
        non_zero = sum(1 for _ in self._nonzero_counters())
        stats.update(
            {
                "t": self._t,
                "width": self.width,
                "initialized": True,
                "non_zero_counters": non_zero,
                "saturation": non_zero / self.width,
            }
        )
        return stats
