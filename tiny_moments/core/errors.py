"""
Exception types for TinyMoments.

Parameter errors subclass ValueError so callers that already guard against
bad arguments with ``except ValueError`` keep working.
"""


class TinyMomentsError(Exception):
    """Base class for all errors raised by TinyMoments."""


class InvalidParameter(TinyMomentsError, ValueError):
    """
    A construction parameter is outside its valid range.

    Raised synchronously when a hash function, table, sketch or experiment
    is built, never while a stream is being processed.
    """


class UninitializedEstimator(TinyMomentsError, RuntimeError):
    """An estimate was requested from a sketch whose accumulator was never set up."""
