"""
Multicolumn correlation accumulator.

Holds O(N) per-column state (Σx, Σx²) plus one Σxy per column pair,
instead of the raw samples. Any pair's PartialSum can be rebuilt from
those totals and the shared row count, so all C(N,2) coefficients come
out exact without ever storing a row.

Accumulators are independent: one per shard/worker, merged at the end
by field-wise addition in any order or tree shape.
"""

import logging
from typing import Dict, Optional, Sequence, Tuple

import numpy as np
import polars as pl

from pccstream.block import StridedBlock
from pccstream.errors import ColumnCountMismatch, InvalidSize, SizeMismatch
from pccstream.pairs import index_of, iter_pairs, pair_arrays, pair_count
from pccstream.partial import PartialSum, as_float_dtype, variance_floor

logger = logging.getLogger(__name__)


class MulticolumnAccumulator:
    """
    Running totals for pairwise Pearson correlation over N columns.

    Parameters
    ----------
    n_columns : int
        Column count N, fixed for the accumulator's lifetime. N >= 2.
    dtype : numpy floating dtype
        Precision of every running total (default float64).

    Attributes
    ----------
    totals : np.ndarray
        (N,) running Σx per column.
    squared_totals : np.ndarray
        (N,) running Σx² per column.
    cross_totals : np.ndarray
        (N(N-1)/2,) running Σx_i·x_j per pair, in canonical pair order.
    row_count : int
        Rows accumulated so far.
    """

    def __init__(self, n_columns: int, dtype=np.float64):
        if n_columns < 2:
            raise InvalidSize(f"n_columns must be at least 2, received {n_columns}")
        self.n_columns = int(n_columns)
        self.dtype = as_float_dtype(dtype)

        self.totals = np.zeros(self.n_columns, dtype=self.dtype)
        self.squared_totals = np.zeros(self.n_columns, dtype=self.dtype)
        self.cross_totals = np.zeros(pair_count(self.n_columns), dtype=self.dtype)
        self.row_count = 0

        self._firsts, self._seconds = pair_arrays(self.n_columns)

    def __repr__(self) -> str:
        return (
            f"MulticolumnAccumulator(n_columns={self.n_columns}, "
            f"rows={self.row_count}, dtype={self.dtype})"
        )

    @property
    def n_pairs(self) -> int:
        return self.cross_totals.shape[0]

    # ------------------------------------------------------------------
    # Accumulation
    # ------------------------------------------------------------------

    def accumulate_row(self, row: Sequence[float]) -> "MulticolumnAccumulator":
        """Add one row of N values. O(N²) for the cross products."""
        values = np.asarray(row, dtype=self.dtype)
        if values.ndim != 1 or values.shape[0] != self.n_columns:
            raise ColumnCountMismatch(
                f"row has shape {values.shape}, accumulator expects {self.n_columns} columns"
            )

        self.totals += values
        self.squared_totals += values * values
        self.cross_totals += values[self._firsts] * values[self._seconds]
        self.row_count += 1
        return self

    def accumulate_rows(self, matrix) -> "MulticolumnAccumulator":
        """Add every row of a 2-D (rows, N) array."""
        data = np.asarray(matrix, dtype=self.dtype)
        if data.ndim != 2 or data.shape[1] != self.n_columns:
            raise ColumnCountMismatch(
                f"matrix has shape {data.shape}, accumulator expects (rows, {self.n_columns})"
            )
        return self._accumulate_matrix(data)

    def accumulate_block(
        self,
        data,
        rows: int,
        cols: int,
        row_stride: int,
        col_stride: int,
        offset: int = 0,
    ) -> "MulticolumnAccumulator":
        """
        Add a strided (rows × cols) block of a flat buffer.

        Element (r, c) is ``data[offset + r*row_stride + c*col_stride]``,
        strides in elements. ``row_stride=cols, col_stride=1`` reads
        row-major storage; ``row_stride=1, col_stride=rows`` reads
        column-major storage.

        Totals match calling ``accumulate_row`` once per row, up to
        summation order.
        """
        if cols != self.n_columns:
            raise ColumnCountMismatch(
                f"block has {cols} columns, accumulator expects {self.n_columns}"
            )
        return self.accumulate_view(
            StridedBlock(data, rows, cols, row_stride, col_stride, offset=offset)
        )

    def accumulate_view(self, block: StridedBlock) -> "MulticolumnAccumulator":
        if block.cols != self.n_columns:
            raise ColumnCountMismatch(
                f"block has {block.cols} columns, accumulator expects {self.n_columns}"
            )
        data = np.asarray(block.view(), dtype=self.dtype)
        return self._accumulate_matrix(data)

    def _accumulate_matrix(self, data: np.ndarray) -> "MulticolumnAccumulator":
        rows = data.shape[0]
        if rows == 0:
            return self

        # Pass 1: per-column totals
        self.totals += data.sum(axis=0, dtype=self.dtype)
        self.squared_totals += (data * data).sum(axis=0, dtype=self.dtype)

        # Pass 2: per-pair cross totals from the Gram matrix's upper triangle
        gram = data.T @ data
        self.cross_totals += gram[self._firsts, self._seconds]

        self.row_count += rows
        logger.debug("accumulated %d rows (total %d)", rows, self.row_count)
        return self

    # ------------------------------------------------------------------
    # Merge
    # ------------------------------------------------------------------

    def copy(self) -> "MulticolumnAccumulator":
        clone = MulticolumnAccumulator(self.n_columns, dtype=self.dtype)
        clone.totals[:] = self.totals
        clone.squared_totals[:] = self.squared_totals
        clone.cross_totals[:] = self.cross_totals
        clone.row_count = self.row_count
        return clone

    def merge_into(self, other: "MulticolumnAccumulator") -> "MulticolumnAccumulator":
        """Add ``other``'s totals into self. Returns self."""
        if other.n_columns != self.n_columns:
            raise SizeMismatch(
                f"cannot merge accumulators of {self.n_columns} and {other.n_columns} columns"
            )
        self.totals += other.totals.astype(self.dtype, copy=False)
        self.squared_totals += other.squared_totals.astype(self.dtype, copy=False)
        self.cross_totals += other.cross_totals.astype(self.dtype, copy=False)
        self.row_count += other.row_count
        logger.debug("merged %d rows into accumulator (total %d)", other.row_count, self.row_count)
        return self

    def merge(self, other: "MulticolumnAccumulator") -> "MulticolumnAccumulator":
        """New accumulator covering both. Keeps self's dtype."""
        if other.n_columns != self.n_columns:
            raise SizeMismatch(
                f"cannot merge accumulators of {self.n_columns} and {other.n_columns} columns"
            )
        return self.copy().merge_into(other)

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def partial(self, i: int, j: int) -> PartialSum:
        """Rebuild the PartialSum of columns i < j from the totals."""
        k = index_of(self.n_columns, i, j)
        return PartialSum(
            count=self.row_count,
            sum1=self.totals[i],
            sum2=self.totals[j],
            sum1_sq=self.squared_totals[i],
            sum2_sq=self.squared_totals[j],
            sum_prod=self.cross_totals[k],
            dtype=self.dtype,
        )

    def results(self) -> Dict[Tuple[int, int], float]:
        """
        Coefficient of every pair, keyed by (i, j) with i < j.

        Keys are inserted in canonical pair order.
        """
        return {(i, j): self.partial(i, j).compute() for i, j in iter_pairs(self.n_columns)}

    def coefficients(self) -> np.ndarray:
        """(N(N-1)/2,) coefficients in canonical pair order, vectorized."""
        n = self.row_count
        if n == 0:
            return np.zeros(self.n_pairs, dtype=self.dtype)

        s1 = self.totals[self._firsts]
        s2 = self.totals[self._seconds]
        num = self.cross_totals - (s1 * s2) / n
        var = self.squared_totals - (self.totals * self.totals) / n
        flat = var <= variance_floor(self.squared_totals, n, self.dtype)
        den = var[self._firsts] * var[self._seconds]

        with np.errstate(invalid='ignore', divide='ignore'):
            out = num / np.sqrt(den)
        out[flat[self._firsts] | flat[self._seconds]] = 0
        return out

    def results_matrix(self) -> np.ndarray:
        """
        Symmetric (N, N) correlation matrix.

        Diagonal is 1 for columns with variance, 0 for zero-variance
        columns (and for all columns before any row arrives).
        """
        matrix = np.zeros((self.n_columns, self.n_columns), dtype=self.dtype)
        coeffs = self.coefficients()
        matrix[self._firsts, self._seconds] = coeffs
        matrix[self._seconds, self._firsts] = coeffs

        if self.row_count > 0:
            n = self.row_count
            var = self.squared_totals - (self.totals * self.totals) / n
            floor = variance_floor(self.squared_totals, n, self.dtype)
            np.fill_diagonal(matrix, np.where(var > floor, 1, 0))
        return matrix

    def results_frame(self, names: Optional[Sequence[str]] = None) -> pl.DataFrame:
        """
        One row per pair: column_a, column_b, correlation.

        ``names`` labels the columns; without it the labels are the
        integer column indices.
        """
        if names is not None and len(names) != self.n_columns:
            raise ColumnCountMismatch(
                f"got {len(names)} names for {self.n_columns} columns"
            )
        labels = list(names) if names is not None else list(range(self.n_columns))
        return pl.DataFrame({
            'column_a': [labels[i] for i in self._firsts],
            'column_b': [labels[j] for j in self._seconds],
            'correlation': self.coefficients().astype(np.float64),
        })


def merge(a: MulticolumnAccumulator, b: MulticolumnAccumulator) -> MulticolumnAccumulator:
    """Associative, commutative merge of two accumulators into a new one."""
    return a.merge(b)
