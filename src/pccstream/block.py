"""
Strided block descriptor.

A block is a (rows × cols) window onto a flat buffer where element
(r, c) lives at ``offset + r*row_stride + c*col_stride``. Row-major,
column-major and sub-matrix views of a larger matrix are all blocks:

    row-major      row_stride = cols, col_stride = 1
    column-major   row_stride = 1,    col_stride = rows
    sub-view       strides of the parent, offset of the top-left element

Strides are counted in elements, not bytes, and may be negative.
"""

from dataclasses import dataclass
from typing import Any

import numpy as np
from numpy.lib.stride_tricks import as_strided

from pccstream.errors import IndexOutOfRange, InvalidSize, InvalidStride


@dataclass(frozen=True)
class StridedBlock:
    base: Any
    rows: int
    cols: int
    row_stride: int
    col_stride: int
    offset: int = 0

    @classmethod
    def row_major(cls, base, rows: int, cols: int, offset: int = 0) -> "StridedBlock":
        return cls(base, rows, cols, row_stride=cols, col_stride=1, offset=offset)

    @classmethod
    def column_major(cls, base, rows: int, cols: int, offset: int = 0) -> "StridedBlock":
        return cls(base, rows, cols, row_stride=1, col_stride=rows, offset=offset)

    def bounds(self):
        """Lowest and highest buffer positions the block touches."""
        row_span = (self.rows - 1) * self.row_stride
        col_span = (self.cols - 1) * self.col_stride
        lo = self.offset + min(0, row_span) + min(0, col_span)
        hi = self.offset + max(0, row_span) + max(0, col_span)
        return lo, hi

    def view(self) -> np.ndarray:
        """
        Read-only (rows, cols) numpy view of the block.

        Zero-copy when ``base`` is a contiguous array or a 1-D view;
        other inputs are flattened (copied) first. Every corner of the
        block is bounds-checked against the flattened buffer.
        """
        if self.rows < 0 or self.cols < 0:
            raise InvalidSize(f"block shape must be non-negative, got ({self.rows}, {self.cols})")

        buf = np.asarray(self.base).reshape(-1)
        if self.rows == 0 or self.cols == 0:
            return np.empty((self.rows, self.cols), dtype=buf.dtype)

        if self.rows > 1 and self.row_stride == 0:
            raise InvalidStride(f"row_stride 0 would alias all {self.rows} rows")
        if self.cols > 1 and self.col_stride == 0:
            raise InvalidStride(f"col_stride 0 would alias all {self.cols} columns")

        lo, hi = self.bounds()
        if lo < 0 or hi >= buf.shape[0]:
            raise IndexOutOfRange(
                f"block touches [{lo}, {hi}] but buffer has {buf.shape[0]} elements"
            )

        step = buf.strides[0]
        return as_strided(
            buf[self.offset:],
            shape=(self.rows, self.cols),
            strides=(self.row_stride * step, self.col_stride * step),
            writeable=False,
        )
