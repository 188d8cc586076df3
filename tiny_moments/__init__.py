"""
tiny-moments - Second frequency moment estimation for data streams

tiny-moments is a Python library for estimating F2, the sum of squared key
frequencies of a stream of signed updates, both exactly with a chained hash
table and approximately with a Count-Sketch built on universal hashing.
"""

__version__ = "0.1.0"

# Import main classes to make them available at the top level
from tiny_moments.algorithms.countsketch import CountSketchEstimator
from tiny_moments.algorithms.experiment import (
    ExperimentConfig,
    ExperimentRunner,
    TrialResults,
    exact_square_sum,
)
from tiny_moments.algorithms.hashtable import ChainedFrequencyTable
from tiny_moments.core.base import MomentEstimator, StreamSummary
from tiny_moments.core.errors import (
    InvalidParameter,
    TinyMomentsError,
    UninitializedEstimator,
)
from tiny_moments.core.field import ModularField
from tiny_moments.core.hash import (
    make_sketch_pair,
    multiply_mod_p,
    multiply_shift,
)
from tiny_moments.core.stream import create_stream

__all__ = [
    # Core base classes
    "StreamSummary",
    "MomentEstimator",
    # Errors
    "TinyMomentsError",
    "InvalidParameter",
    "UninitializedEstimator",
    # Arithmetic and hashing
    "ModularField",
    "multiply_shift",
    "multiply_mod_p",
    "make_sketch_pair",
    # Streams
    "create_stream",
    # Algorithm implementations
    "ChainedFrequencyTable",
    "CountSketchEstimator",
    "ExperimentConfig",
    "ExperimentRunner",
    "TrialResults",
    "exact_square_sum",
]
