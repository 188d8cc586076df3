"""
Algorithm implementations for TinyMoments.
"""

from tiny_moments.algorithms.countsketch import CountSketchEstimator
from tiny_moments.algorithms.experiment import (
    ExperimentConfig,
    ExperimentRunner,
    TrialResults,
    exact_square_sum,
    mean_squared_error,
    partition,
)
from tiny_moments.algorithms.hashtable import ChainedFrequencyTable

__all__ = [
    "ChainedFrequencyTable",
    "CountSketchEstimator",
    "ExperimentConfig",
    "ExperimentRunner",
    "TrialResults",
    "exact_square_sum",
    "mean_squared_error",
    "partition",
]
