"""Exception types raised by curve_lib.

All errors derive from CurveCompareError so callers can catch everything the
package raises with a single except clause. InvalidInputError is also a
ValueError, which keeps it compatible with code that already guards against
bad arguments that way.

Example usage::

    from curve_lib.errors import CurveCompareError, OperationCancelledError

    try:
        matrix = service.compare_all_to_all(chains, is_cancelled=stop.is_set)
    except OperationCancelledError:
        matrix = None
"""

from __future__ import annotations


class CurveCompareError(Exception):
    """Base class for all curve_lib errors."""


class InvalidInputError(CurveCompareError, ValueError):
    """Malformed geometry or configuration.

    Raised for mismatched point/vector array lengths, empty or zero-length
    paths, alignment of paths resampled to different deltas, and invalid
    configuration values.
    """


class NoFeasibleAlignmentError(CurveCompareError):
    """The edit weights do not admit a minimum-cost alignment."""


class NoCommonAnchorError(CurveCompareError):
    """No pairing could be formed from the given paths."""


class OperationCancelledError(CurveCompareError):
    """A cooperative cancellation request was observed.

    Operations that raise this never return partial results.
    """
