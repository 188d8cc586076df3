"""
Base classes and interfaces for TinyMoments streaming summaries.

This module defines the abstract base classes shared by the exact and the
sketch-based frequency-moment estimators, so both can be fed the same stream
of (key, delta) updates and compared through the same interface.
"""

import abc
import json
import sys
from typing import Any, Dict, Generic, Iterable, Tuple, TypeVar, Union

R = TypeVar("R")  # Type for the result of queries

Update = Tuple[int, int]  # (key, delta)


class StreamSummary(Generic[R], abc.ABC):
    """
    Abstract base class for all streaming data structures.

    A summary consumes (key, delta) updates, answers queries about the keys it
    has seen, can be merged with a compatible summary and can be serialized.
    """

    def __init__(self) -> None:
        """Initialize a new stream summary."""
        self._items_processed = 0

    @abc.abstractmethod
    def update(self, key: int, delta: int = 1) -> None:
        """
        Update the summary with one (key, delta) event from the stream.

        Args:
            key: The 64-bit key the event refers to.
            delta: The signed change to the key's count.
        """
        self._items_processed += 1

    def process(self, stream: Iterable[Update]) -> None:
        """
        Feed every update of a stream into the summary.

        Args:
            stream: An iterable of (key, delta) pairs.
        """
        for key, delta in stream:
            self.update(key, delta)

    @abc.abstractmethod
    def query(self, *args: Any, **kwargs: Any) -> R:
        """
        Query the current state of the summary.

        The parameters and return value depend on the specific algorithm.
        """
        pass

    @abc.abstractmethod
    def merge(self, other: "StreamSummary[R]") -> "StreamSummary[R]":
        """
        Merge this summary with another of the same type.

        Args:
            other: Another stream summary of the same type.

        Returns:
            A new merged stream summary.

        Raises:
            TypeError: If other is not of the same type.
        """
        pass

    def _check_same_type(self, other: "StreamSummary[R]") -> None:
        """
        Helper method to check if another summary is of the same type.

        Raises:
            TypeError: If other is not of the same type.
        """
        if not isinstance(other, self.__class__):
            raise TypeError(f"Cannot merge with {other.__class__.__name__}")

    def _combine_items_processed(self, other: "StreamSummary[R]") -> int:
        return self._items_processed + other._items_processed

    @abc.abstractmethod
    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the summary to a dictionary for serialization.

        Returns:
            A dictionary representation of the summary.
        """
        pass

    def _base_dict(self) -> Dict[str, Any]:
        """
        Create a dictionary with base attributes common to all summaries.

        Returns:
            A dictionary with base attributes.
        """
        return {
            "type": self.__class__.__name__,
            "items_processed": self._items_processed,
        }

    @classmethod
    @abc.abstractmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StreamSummary[R]":
        """
        Create a summary from a dictionary representation.

        Args:
            data: The dictionary containing the summary state.

        Returns:
            A new stream summary initialized with the given state.
        """
        pass

    def serialize(self, format: str = "json") -> Union[str, bytes]:
        """
        Serialize the summary to a string or bytes.

        Args:
            format: The serialization format ('json' or 'binary').

        Returns:
            The serialized representation of the summary.

        Raises:
            ValueError: If the format is not supported.
        """
        if format == "json":
            return json.dumps(self.to_dict())
        elif format == "binary":
            return json.dumps(self.to_dict()).encode("utf-8")
        else:
            raise ValueError(f"Unsupported serialization format: {format}")

    @classmethod
    def deserialize(
        cls, data: Union[str, bytes], format: str = "json"
    ) -> "StreamSummary[R]":
        """
        Deserialize a summary from a string or bytes.

        Raises:
            ValueError: If the format is not supported.
        """
        if format == "json":
            if isinstance(data, bytes):
                data = data.decode("utf-8")
            return cls.from_dict(json.loads(data))
        elif format == "binary":
            if isinstance(data, str):
                data = data.encode("utf-8")
            return cls.from_dict(json.loads(data.decode("utf-8")))
        else:
            raise ValueError(f"Unsupported serialization format: {format}")

    def estimate_size(self) -> int:
        """
        Estimate the current memory usage of this summary in bytes.

        Derived classes should override this method to add the size of their
        own storage.

        Returns:
            Estimated memory usage in bytes.
        """
        size = sys.getsizeof(self)
        if hasattr(self, "__dict__"):
            size += sys.getsizeof(self.__dict__)
        return size

    def clear(self) -> None:
        """
        Reset the summary to its initial empty state.

        Derived classes must override this method to clear their own storage
        and call super().clear() to reset the base counters.
        """
        self._items_processed = 0

    def get_stats(self) -> Dict[str, Any]:
        """
        Get detailed statistics about the current state of the summary.

        Derived classes should override this method to include their specific
        statistics while calling super().get_stats() to include base metrics.

        Returns:
            A dictionary containing various statistics about the summary state.
        """
        stats = {
            "type": self.__class__.__name__,
            "items_processed": self._items_processed,
            "memory_bytes": self.estimate_size(),
        }

        error_bounds = self.error_bounds()
        if error_bounds:
            stats.update(error_bounds)

        return stats

    def error_bounds(self) -> Dict[str, float]:
        """
        Get the theoretical error bounds for this summary.

        The base implementation returns an empty dictionary.
        """
        return {}

    @property
    def items_processed(self) -> int:
        """Get the total number of updates processed by this summary."""
        return self._items_processed


class MomentEstimator(StreamSummary[int], abc.ABC):
    """
    Abstract base class for summaries that estimate frequencies and F2.

    The exact chained hash table and the Count-Sketch both implement this
    interface, so an experiment can treat them interchangeably.
    """

    @abc.abstractmethod
    def estimate_frequency(self, key: int) -> int:
        """
        Estimate the net frequency of a key.

        Args:
            key: The key to look up.

        Returns:
            The (estimated) accumulated signed count of the key.
        """
        pass

    @abc.abstractmethod
    def estimate_square_sum(self) -> int:
        """
        Estimate the second frequency moment F2 = sum of squared frequencies.

        Returns:
            The (estimated) F2 of the stream processed so far.
        """
        pass

    def query(self, key: int) -> int:
        """Convenience alias for estimate_frequency."""
        return self.estimate_frequency(key)

    def get_stats(self) -> Dict[str, Any]:
        stats = super().get_stats()
        stats["square_sum"] = self.estimate_square_sum()
        return stats
