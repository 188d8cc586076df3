"""
Chained hash table implementation for TinyMoments.

This module provides a hash table with separate chaining, keyed by 64-bit
integers and bucketed by a caller-supplied hash function. It serves as a
general associative structure and as the exact accumulator for the second
frequency moment F2 = sum over keys of f(x)^2.

The table provides the following guarantees:
1. Space Complexity: O(number of distinct keys + number of used buckets)
2. get / set / increment: O(1) expected with a 2-universal hash function,
   O(chain length) in the worst case
3. Exactness: square_sum() is the true F2 of the processed stream

The table never resizes and never removes keys. The caller fixes the number
of buckets (2^l) at construction to match the output range of the hash.
"""

import sys
from typing import Any, Callable, Dict, Iterator, List, Tuple

from tiny_moments.core.base import MomentEstimator
from tiny_moments.core.errors import InvalidParameter
from tiny_moments.core.hash import HashFunction, hash_function_from_dict

MAX_TABLE_BITS = 64


class ChainedFrequencyTable(MomentEstimator):
    """
    Hash table with chaining that accumulates a signed value per key.

    Buckets are created the first time a key lands in them, so a table with
    a large l only pays for the buckets it actually uses.

    Example:
        table = ChainedFrequencyTable(random_multiply_shift(16), l=16)
        table.increment(42, 5)
        table.increment(42, 3)
        table.get(42)  # 8
        table.get(99)  # 0
    """

    def __init__(self, hash_function: Callable[[int], int], l: int):
        """
        Initialize an empty table with 2^l buckets.

        Args:
            hash_function: Maps a key to a bucket; its output is taken mod 2^l.
                           Any callable is accepted, but only HashFunction
                           instances can be serialized.
            l: Number of bucket bits, 0 < l <= 64.

        Raises:
            InvalidParameter: If l is outside (0, 64].
        """
        super().__init__()

        if not 0 < l <= MAX_TABLE_BITS:
            raise InvalidParameter(
                f"Parameter 'l' must be in the range (0, {MAX_TABLE_BITS}], got {l}"
            )

        self._hash = hash_function
        self._l = l
        self._mask = (1 << l) - 1
        self._buckets: Dict[int, List[List[int]]] = {}
        self._size = 0

    @property
    def l(self) -> int:
        return self._l

    @property
    def table_size(self) -> int:
        """Number of logical buckets, 2^l."""
        return 1 << self._l

    @property
    def hash_function(self) -> Callable[[int], int]:
        return self._hash

    def _index(self, key: int) -> int:
        return self._hash(key) & self._mask

    def _find(self, key: int) -> Tuple[int, List[int]]:
        """Return the bucket index and the entry for key (empty list if absent)."""
        index = self._index(key)
        for entry in self._buckets.get(index, ()):
            if entry[0] == key:
                return index, entry
        return index, []

    def get(self, key: int) -> int:
        """
        Get the value stored for a key.

        Returns:
            The accumulated value, or 0 if the key was never inserted.
        """
        _, entry = self._find(key)
        return entry[1] if entry else 0

    def set(self, key: int, value: int) -> None:
        """Replace the value of a key, inserting it if absent."""
        index, entry = self._find(key)
        if entry:
            entry[1] = value
        else:
            self._buckets.setdefault(index, []).append([key, value])
            self._size += 1

    def increment(self, key: int, delta: int) -> None:
        """Add delta to the value of a key, starting from 0 for a new key."""
        index, entry = self._find(key)
        if entry:
            entry[1] += delta
        else:
            self._buckets.setdefault(index, []).append([key, delta])
            self._size += 1

    def update(self, key: int, delta: int = 1) -> None:
        """
        Process one (key, delta) stream event.

        Args:
            key: The key to update.
            delta: Signed change to the key's count.
        """
        super().update(key, delta)
        self.increment(key, delta)

    def estimate_frequency(self, key: int) -> int:
        """Exact frequency of a key; the table makes no approximation."""
        return self.get(key)

    def square_sum(self) -> int:
        """Compute the exact F2, the sum of squared values over all keys."""
        return sum(value * value for _, value in self.items())

    def estimate_square_sum(self) -> int:
        return self.square_sum()

    def items(self) -> Iterator[Tuple[int, int]]:
        """Iterate over (key, value) pairs grouped by bucket, buckets in order of first use."""
        for bucket in self._buckets.values():
            for key, value in bucket:
                yield key, value

    def __len__(self) -> int:
        return self._size

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, int):
            return False
        _, entry = self._find(key)
        return bool(entry)

    def used_bucket_count(self) -> int:
        """Number of buckets holding at least one key."""
        return sum(1 for bucket in self._buckets.values() if bucket)

    def collision_count(self) -> int:
        """Sum over buckets of max(0, bucket length - 1)."""
        return sum(max(0, len(bucket) - 1) for bucket in self._buckets.values())

    def max_chain_length(self) -> int:
        """Length of the longest bucket chain."""
        return max((len(bucket) for bucket in self._buckets.values()), default=0)

    def load_factor(self) -> float:
        """Distinct keys per logical bucket."""
        return self._size / self.table_size

    def merge(self, other: "ChainedFrequencyTable") -> "ChainedFrequencyTable":
        """
        Merge this table with another table built on the same hash function.

        Values of keys present in both tables are added.

        Raises:
            TypeError: If other is not a ChainedFrequencyTable.
            ValueError: If the tables differ in l or hash function.
        """
        self._check_same_type(other)

        if self._l != other._l or self._hash != other._hash:
            raise ValueError(
                "Cannot merge tables with different bucket bits or hash functions"
            )

        result = ChainedFrequencyTable(self._hash, self._l)
        for key, value in self.items():
            result.increment(key, value)
        for key, value in other.items():
            result.increment(key, value)
        result._items_processed = self._combine_items_processed(other)

        return result

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the table to a dictionary for serialization.

        Raises:
            TypeError: If the hash function is a plain callable.
        """
        if not isinstance(self._hash, HashFunction):
            raise TypeError(
                "Only tables built on a HashFunction can be serialized, "
                f"got {type(self._hash).__name__}"
            )

        data = self._base_dict()
        data.update(
            {
                "l": self._l,
                "hash_function": self._hash.to_dict(),
                "entries": [[key, value] for key, value in self.items()],
            }
        )
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChainedFrequencyTable":
        """Create a table from a dictionary representation."""
        table = cls(hash_function_from_dict(data["hash_function"]), data["l"])
        for key, value in data["entries"]:
            table.set(key, value)
        table._items_processed = data.get("items_processed", 0)
        return table

    def estimate_size(self) -> int:
        size = super().estimate_size()
        size += sys.getsizeof(self._buckets)
        for bucket in self._buckets.values():
            size += sys.getsizeof(bucket)
            size += len(bucket) * (sys.getsizeof([0, 0]) + 2 * sys.getsizeof(0))
        return size

    def clear(self) -> None:
        """Remove every key, keeping the hash function and table size."""
        super().clear()
        self._buckets = {}
        self._size = 0

    def get_stats(self) -> Dict[str, Any]:
        """
        Get statistics about the table.

        Returns:
            Base statistics plus bucket occupancy and collision diagnostics.
        """
        stats = super().get_stats()
        stats.update(
            {
                "l": self._l,
                "table_size": self.table_size,
                "distinct_keys": self._size,
                "used_buckets": self.used_bucket_count(),
                "collisions": self.collision_count(),
                "max_chain_length": self.max_chain_length(),
                "load_factor": self.load_factor(),
            }
        )
        return stats
