"""
Core functionality for TinyMoments.
"""

from tiny_moments.core.base import MomentEstimator, StreamSummary, Update
from tiny_moments.core.errors import (
    InvalidParameter,
    TinyMomentsError,
    UninitializedEstimator,
)
from tiny_moments.core.field import FIELD, MERSENNE_EXPONENT, MERSENNE_PRIME, ModularField
from tiny_moments.core.hash import (
    Degree3Poly,
    HashFunction,
    MultiplyModP,
    MultiplyShift,
    SketchPair,
    degree3_poly,
    hash_function_from_dict,
    make_sketch_pair,
    multiply_mod_p,
    multiply_shift,
    random_degree3_poly,
    random_multiply_mod_p,
    random_multiply_shift,
)
from tiny_moments.core.stream import create_stream, iter_stream

__all__ = [
    # Base classes
    "StreamSummary",
    "MomentEstimator",
    "Update",
    # Errors
    "TinyMomentsError",
    "InvalidParameter",
    "UninitializedEstimator",
    # Field arithmetic
    "ModularField",
    "FIELD",
    "MERSENNE_EXPONENT",
    "MERSENNE_PRIME",
    # Hash families
    "HashFunction",
    "MultiplyShift",
    "MultiplyModP",
    "Degree3Poly",
    "SketchPair",
    "multiply_shift",
    "multiply_mod_p",
    "degree3_poly",
    "make_sketch_pair",
    "random_multiply_shift",
    "random_multiply_mod_p",
    "random_degree3_poly",
    "hash_function_from_dict",
    # Streams
    "create_stream",
    "iter_stream",
]
