"""
Caller-contract violations raised by pccstream.

All of these are raised synchronously at the call site and never
retried. Degenerate statistics (no samples, zero variance) are not
errors: they produce a coefficient of 0.
"""


class PCCError(ValueError):
    """Base class for pccstream input errors."""


class InvalidSize(PCCError):
    """Column count (or block extent) is too small to be meaningful."""


class ColumnCountMismatch(PCCError):
    """A row or block does not have the accumulator's column count."""


class SizeMismatch(PCCError):
    """Two accumulators with different column counts were merged."""


class InvalidStride(PCCError):
    """A zero stride was given on an axis that spans more than one element."""


class LengthMismatch(PCCError):
    """Two sample sequences that must be paired have different lengths."""


class IndexOutOfRange(PCCError, IndexError):
    """Linear pair index, pair or buffer position outside its valid range."""
