"""
Sufficient statistics for the Pearson correlation of one column pair.

A PartialSum holds count, Σv1, Σv2, Σv1², Σv2² and Σv1·v2. Two partial
sums over disjoint samples merge by field-wise addition into exactly the
partial sum of the union, so shards can be accumulated independently and
combined in any order.

    r = (Σv1v2 - Σv1·Σv2/n) / sqrt((Σv1² - (Σv1)²/n) · (Σv2² - (Σv2)²/n))

No samples, or a column whose variance is lost in rounding, yields 0
instead of NaN. A variance total at or below n·eps·Σv² is treated as
zero: a constant column of 0.1 leaves a residue of that size, with
either sign. That treats "undefined" and "uncorrelated" the same way;
callers that need to tell them apart should check count and variance.
"""

from dataclasses import dataclass, field, replace
from typing import Sequence

import numpy as np

from pccstream.errors import IndexOutOfRange, InvalidSize, InvalidStride, LengthMismatch

_SUM_FIELDS = ('sum1', 'sum2', 'sum1_sq', 'sum2_sq', 'sum_prod')


def as_float_dtype(dtype) -> np.dtype:
    """Resolve ``dtype`` to a numpy floating dtype, rejecting anything else."""
    dt = np.dtype(dtype)
    if not np.issubdtype(dt, np.floating):
        raise TypeError(f"dtype must be a floating type, got {dt}")
    return dt


def variance_floor(sum_sq, n: int, dtype):
    """
    Rounding floor for a variance total ``Σv² - (Σv)²/n``.

    Totals at or below it are indistinguishable from zero. Works on
    scalars and arrays alike.
    """
    return n * np.finfo(dtype).eps * sum_sq


@dataclass
class PartialSum:
    """
    Running sums for one (v1, v2) column pair.

    Fields are numpy scalars of ``dtype``. ``count`` is a plain int.
    The all-zero state is the merge identity.
    """
    count: int = 0
    sum1: float = 0.0
    sum2: float = 0.0
    sum1_sq: float = 0.0
    sum2_sq: float = 0.0
    sum_prod: float = 0.0
    dtype: np.dtype = field(default=np.dtype(np.float64), repr=False, compare=False)

    def __post_init__(self):
        self.dtype = as_float_dtype(self.dtype)
        if self.count < 0:
            raise InvalidSize(f"count must be non-negative, got {self.count}")
        self.count = int(self.count)
        scalar = self.dtype.type
        for name in _SUM_FIELDS:
            setattr(self, name, scalar(getattr(self, name)))

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def empty(cls, dtype=np.float64) -> "PartialSum":
        return cls(dtype=dtype)

    @classmethod
    def from_samples(
        cls,
        v1: Sequence[float],
        v2: Sequence[float],
        dtype=np.float64,
    ) -> "PartialSum":
        """
        Accumulate two equal-length sequences in one shot.

        Parameters
        ----------
        v1, v2 : sequence of float
            Paired observations. Must have the same length.
        dtype : numpy floating dtype
            Precision of the running sums.

        Returns
        -------
        PartialSum over all pairs (v1[k], v2[k]).
        """
        dt = as_float_dtype(dtype)
        a = np.asarray(v1, dtype=dt).ravel()
        b = np.asarray(v2, dtype=dt).ravel()
        if a.shape[0] != b.shape[0]:
            raise LengthMismatch(
                f"Arguments must have the same length, found len(v1)={a.shape[0]}, "
                f"len(v2)={b.shape[0]}"
            )
        return cls._from_arrays(a, b, dt)

    @classmethod
    def _from_arrays(cls, a: np.ndarray, b: np.ndarray, dt: np.dtype) -> "PartialSum":
        return cls(
            count=a.shape[0],
            sum1=a.sum(dtype=dt),
            sum2=b.sum(dtype=dt),
            sum1_sq=(a * a).sum(dtype=dt),
            sum2_sq=(b * b).sum(dtype=dt),
            sum_prod=(a * b).sum(dtype=dt),
            dtype=dt,
        )

    # ------------------------------------------------------------------
    # Accumulation
    # ------------------------------------------------------------------

    def accumulate(self, v1: float, v2: float) -> "PartialSum":
        """Add a single observation. Returns self."""
        scalar = self.dtype.type
        v1 = scalar(v1)
        v2 = scalar(v2)
        self.sum1 += v1
        self.sum2 += v2
        self.sum1_sq += v1 * v1
        self.sum2_sq += v2 * v2
        self.sum_prod += v1 * v2
        self.count += 1
        return self

    def accumulate_strided(
        self,
        data,
        count: int,
        first: int,
        second: int,
        stride: int,
    ) -> "PartialSum":
        """
        Add ``count`` samples scattered through a flat buffer.

        Sample k is ``(data[first + k*stride], data[second + k*stride])``.
        This is how one column pair is pulled out of a row-major matrix
        without copying the rest of it (first=i, second=j, stride=cols).

        Parameters
        ----------
        data : array-like
            Buffer, flattened in C order.
        count : int
            Number of samples to take.
        first, second : int
            Buffer positions of the first sample's two values.
        stride : int
            Distance between consecutive samples, in elements. May be
            negative; must be non-zero when count > 1.

        Returns
        -------
        self
        """
        if count < 0:
            raise InvalidSize(f"count must be non-negative, got {count}")
        if count == 0:
            return self
        if stride == 0 and count > 1:
            raise InvalidStride(f"stride 0 would repeat one sample {count} times")

        buf = np.asarray(data).reshape(-1)
        span = (count - 1) * stride
        for start in (first, second):
            lo, hi = min(start, start + span), max(start, start + span)
            if lo < 0 or hi >= buf.shape[0]:
                raise IndexOutOfRange(
                    f"samples [{start}, {start + span}] step {stride} fall outside "
                    f"buffer of length {buf.shape[0]}"
                )

        steps = stride * np.arange(count)
        a = buf[first + steps].astype(self.dtype, copy=False)
        b = buf[second + steps].astype(self.dtype, copy=False)
        return self.merge_into(self._from_arrays(a, b, self.dtype))

    # ------------------------------------------------------------------
    # Merge
    # ------------------------------------------------------------------

    def merge_into(self, other: "PartialSum") -> "PartialSum":
        """Field-wise add ``other`` into self. Returns self."""
        scalar = self.dtype.type
        self.count += other.count
        for name in _SUM_FIELDS:
            setattr(self, name, getattr(self, name) + scalar(getattr(other, name)))
        return self

    def merge(self, other: "PartialSum") -> "PartialSum":
        """New PartialSum covering the samples of both. Keeps self's dtype."""
        return replace(self).merge_into(other)

    # ------------------------------------------------------------------
    # Result
    # ------------------------------------------------------------------

    def compute(self):
        """
        Pearson correlation coefficient of the accumulated samples.

        Returns 0 when there are no samples or when either column has
        zero variance. Rounding can push the value marginally outside
        [-1, 1]; it is not clipped.
        """
        scalar = self.dtype.type
        n = self.count
        if n == 0:
            return scalar(0)

        num = self.sum_prod - (self.sum1 * self.sum2) / n
        var1 = self.sum1_sq - (self.sum1 * self.sum1) / n
        var2 = self.sum2_sq - (self.sum2 * self.sum2) / n

        if var1 <= variance_floor(self.sum1_sq, n, self.dtype) or \
                var2 <= variance_floor(self.sum2_sq, n, self.dtype):
            return scalar(0)
        return num / np.sqrt(var1 * var2)


def merge(a: PartialSum, b: PartialSum) -> PartialSum:
    """Associative, commutative merge of two partial sums."""
    return a.merge(b)


def pearson(v1: Sequence[float], v2: Sequence[float], dtype=np.float64):
    """Pearson correlation of two equal-length sequences."""
    return PartialSum.from_samples(v1, v2, dtype=dtype).compute()
