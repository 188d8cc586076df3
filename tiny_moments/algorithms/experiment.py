"""
Repeated-trial evaluation of the Count-Sketch F2 estimator.

An experiment computes the exact F2 of a stream once with a chained hash
table, then replays the stream through k independent Count-Sketches, each
with a freshly drawn hash pair. From the k estimates it derives:

- the mean squared error against the exact value;
- group statistics: the estimates are split into g consecutive groups and
  each group is summarised by its median (or mean). Taking the median of
  independent group means raises the probability that the combined estimate
  is close to F2 from a constant to 1 - exp(-Omega(g)).

The number of groups and their size are experiment-design choices left to
the caller.
"""

import logging
import random
import statistics
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from tiny_moments.algorithms.countsketch import MAX_SKETCH_BITS, CountSketchEstimator
from tiny_moments.algorithms.hashtable import MAX_TABLE_BITS, ChainedFrequencyTable
from tiny_moments.core.base import Update
from tiny_moments.core.errors import InvalidParameter
from tiny_moments.core.hash import random_multiply_mod_p, random_multiply_shift

log = logging.getLogger(__name__)


def mean_squared_error(estimates: Sequence[float], exact: float) -> float:
    """
    Mean of (estimate - exact)^2 over all estimates.

    Raises:
        ValueError: If there are no estimates.
    """
    if not estimates:
        raise ValueError("Cannot compute the mean squared error of no estimates")
    return sum((e - exact) ** 2 for e in estimates) / len(estimates)


def partition(
    values: Sequence[float], groups: int, group_size: Optional[int] = None
) -> List[List[float]]:
    """
    Split values into consecutive groups of equal size.

    Args:
        values: The values to split, in order.
        groups: Number of groups.
        group_size: Values per group. Defaults to len(values) // groups.
                    Values beyond groups * group_size are left out.

    Returns:
        A list of groups lists.

    Raises:
        InvalidParameter: If groups or group_size is less than 1, or there
                          are fewer than groups * group_size values.
    """
    if groups < 1:
        raise InvalidParameter(f"Number of groups must be at least 1, got {groups}")
    if group_size is None:
        group_size = len(values) // groups
    if group_size < 1:
        raise InvalidParameter(
            f"Cannot split {len(values)} values into {groups} non-empty groups"
        )
    if groups * group_size > len(values):
        raise InvalidParameter(
            f"{groups} groups of {group_size} need {groups * group_size} values, "
            f"got {len(values)}"
        )

    return [list(values[i * group_size : (i + 1) * group_size]) for i in range(groups)]


def spread(values: Sequence[float]) -> float:
    """Difference between the largest and smallest value (0 for no values)."""
    if not values:
        return 0.0
    return max(values) - min(values)


def exact_square_sum(
    stream: Iterable[Update],
    l: int,
    hash_function: Optional[Callable[[int], int]] = None,
    rng: Optional[Any] = None,
) -> int:
    """
    Compute the exact F2 of a stream with a chained hash table.

    Args:
        stream: Iterable of (key, delta) updates.
        l: Bucket bits of the table, 0 < l <= 64.
        hash_function: Bucket hash. Defaults to a random multiply-shift
                       function, or multiply-mod-p when l is 64.
        rng: Optional random source for the default hash function.

    Returns:
        The sum of squared net frequencies.
    """
    if hash_function is None:
        if l == MAX_TABLE_BITS:
            hash_function = random_multiply_mod_p(l, rng)
        else:
            hash_function = random_multiply_shift(l, rng)

    table = ChainedFrequencyTable(hash_function, l)
    table.process(stream)
    log.debug(
        "exact table: %d distinct keys, %d collisions",
        len(table),
        table.collision_count(),
    )
    return table.square_sum()


@dataclass
class ExperimentConfig:
    """
    Parameters of a Count-Sketch accuracy experiment.

    Attributes:
        t: Sketch bits; each sketch has 2^t counters.
        trials: Number of independent sketches (k).
        groups: Number of groups (g) for the group statistics.
        group_size: Estimates per group; defaults to trials // groups.
        table_bits: Bucket bits of the exact hash table.
        seed: Seed for reproducible runs. None draws hash coefficients from
              operating system entropy; a seeded run is for testing only.
    """

    t: int
    trials: int = 100
    groups: int = 9
    group_size: Optional[int] = None
    table_bits: int = 16
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        if not 0 < self.t <= MAX_SKETCH_BITS:
            raise InvalidParameter(
                f"Parameter 't' must be in the range (0, {MAX_SKETCH_BITS}], got {self.t}"
            )
        if not 0 < self.table_bits <= MAX_TABLE_BITS:
            raise InvalidParameter(
                f"Parameter 'table_bits' must be in the range (0, {MAX_TABLE_BITS}], "
                f"got {self.table_bits}"
            )
        if self.trials < 1:
            raise InvalidParameter(f"Number of trials must be at least 1, got {self.trials}")
        if self.groups < 1:
            raise InvalidParameter(f"Number of groups must be at least 1, got {self.groups}")
        if self.group_size is not None and self.group_size < 1:
            raise InvalidParameter(f"Group size must be at least 1, got {self.group_size}")
        size = self.effective_group_size
        if size < 1 or self.groups * size > self.trials:
            raise InvalidParameter(
                f"{self.trials} trials cannot fill {self.groups} groups "
                f"of {size}"
            )

    @property
    def effective_group_size(self) -> int:
        if self.group_size is not None:
            return self.group_size
        return self.trials // self.groups


@dataclass
class TrialResults:
    """
    Estimates from one experiment run together with the exact value.

    Group statistics default to the grouping the run was configured with.
    """

    exact: int
    estimates: List[int] = field(default_factory=list)
    t: int = 0
    groups: int = 1
    group_size: Optional[int] = None
    elapsed_seconds: float = 0.0

    def mean(self) -> float:
        """Average estimate."""
        if not self.estimates:
            raise ValueError("No estimates recorded")
        return sum(self.estimates) / len(self.estimates)

    def mse(self) -> float:
        """Mean squared error of the estimates against the exact value."""
        return mean_squared_error(self.estimates, self.exact)

    def relative_error(self) -> float:
        """sqrt(MSE) / exact, the empirical counterpart of sqrt(2 / 2^t)."""
        if self.exact == 0:
            return 0.0 if self.mse() == 0 else float("inf")
        return self.mse() ** 0.5 / self.exact

    def _groups(self, groups: Optional[int], group_size: Optional[int]) -> List[List[float]]:
        if groups is None:
            groups = self.groups
            if group_size is None:
                group_size = self.group_size
        return partition(self.estimates, groups, group_size)

    def group_medians(
        self, groups: Optional[int] = None, group_size: Optional[int] = None
    ) -> List[float]:
        """
        Median of each consecutive group of estimates.

        Args:
            groups: Number of groups; defaults to the configured value.
            group_size: Estimates per group; defaults to len // groups.
        """
        return [statistics.median(g) for g in self._groups(groups, group_size)]

    def group_means(
        self, groups: Optional[int] = None, group_size: Optional[int] = None
    ) -> List[float]:
        """Mean of each consecutive group of estimates."""
        return [sum(g) / len(g) for g in self._groups(groups, group_size)]

    def median_of_means(
        self, groups: Optional[int] = None, group_size: Optional[int] = None
    ) -> float:
        """Median of the group means, the combined high-confidence estimate."""
        return statistics.median(self.group_means(groups, group_size))

    def sorted_estimates(self) -> List[int]:
        return sorted(self.estimates)

    def to_dict(self) -> Dict[str, Any]:
        """
        Summarise the run for reporting.

        Returns:
            A dictionary with the exact value, raw estimates and the derived
            error and group statistics.
        """
        data: Dict[str, Any] = {
            "t": self.t,
            "exact": self.exact,
            "trials": len(self.estimates),
            "estimates": list(self.estimates),
            "elapsed_seconds": self.elapsed_seconds,
        }
        if self.estimates:
            data.update(
                {
                    "mean": self.mean(),
                    "mse": self.mse(),
                    "relative_error": self.relative_error(),
                    "group_medians": self.group_medians(),
                    "median_of_means": self.median_of_means(),
                }
            )
        return data


class ExperimentRunner:
    """
    Runs independent Count-Sketch trials over one stream.

    Example:
        stream = create_stream(10000, l=10, seed=1)
        runner = ExperimentRunner(stream, ExperimentConfig(t=8, trials=100))
        results = runner.run()
        results.mse(), results.group_medians()
    """

    def __init__(self, stream: Iterable[Update], config: ExperimentConfig):
        """
        Initialize the runner.

        Args:
            stream: The updates. The stream is replayed once per trial, so
                    a one-shot iterator is materialized into a list.
            config: Experiment parameters.
        """
        if isinstance(stream, Sequence):
            self._stream: Sequence[Update] = stream
        else:
            self._stream = list(stream)

        self._config = config
        self._rng = (
            random.Random(config.seed) if config.seed is not None else random.SystemRandom()
        )
        self._exact: Optional[int] = None

    @property
    def config(self) -> ExperimentConfig:
        return self._config

    @property
    def stream(self) -> Sequence[Update]:
        return self._stream

    def exact_value(self) -> int:
        """Exact F2 of the stream, computed on first use and cached."""
        if self._exact is None:
            self._exact = exact_square_sum(
                self._stream, self._config.table_bits, rng=self._rng
            )
            log.info("exact F2 = %d over %d updates", self._exact, len(self._stream))
        return self._exact

    def new_estimator(self) -> CountSketchEstimator:
        """Build a sketch with a freshly drawn hash pair."""
        return CountSketchEstimator(self._config.t, rng=self._rng)

    def run_trial(self) -> int:
        """Replay the stream through a fresh sketch and return its F2 estimate."""
        sketch = self.new_estimator()
        sketch.process(self._stream)
        return sketch.estimate_square_sum()

    def run(self) -> TrialResults:
        """
        Run every configured trial.

        Returns:
            The exact F2 and the per-trial estimates, in trial order.
        """
        exact = self.exact_value()
        config = self._config

        start = time.perf_counter()
        estimates = []
        for trial in range(config.trials):
            estimate = self.run_trial()
            estimates.append(estimate)
            log.debug("trial %d/%d: estimate %d", trial + 1, config.trials, estimate)
        elapsed = time.perf_counter() - start

        results = TrialResults(
            exact=exact,
            estimates=estimates,
            t=config.t,
            groups=config.groups,
            group_size=config.effective_group_size,
            elapsed_seconds=elapsed,
        )
        log.info(
            "t=%d: %d trials in %.3fs, MSE %.1f",
            config.t,
            config.trials,
            elapsed,
            results.mse(),
        )
        return results
