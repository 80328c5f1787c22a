"""
Streaming pairwise Pearson correlation.

Keeps O(N) per-column state (Σx, Σx²) plus one Σxy per column pair,
so C(N,2) exact coefficients come out of data that is never held in
memory at once. Rows or strided matrix blocks go in; independently
accumulated shards merge associatively; ``results()`` reads out every
pair's coefficient.

N columns → C(N,2) pairs. For 14 columns → 91 pairs.
"""

__version__ = "0.3.0"

from pccstream.errors import (
    PCCError,
    InvalidSize,
    ColumnCountMismatch,
    SizeMismatch,
    InvalidStride,
    LengthMismatch,
    IndexOutOfRange,
)
from pccstream.partial import (
    PartialSum,
    pearson,
)
from pccstream.pairs import (
    PairCursor,
    pair_count,
    pair_at,
    index_of,
    iter_pairs,
)
from pccstream.block import StridedBlock
from pccstream.accumulator import (
    MulticolumnAccumulator,
    merge,
)
from pccstream.reduce import (
    merge_all,
    accumulate_sharded,
)

__all__ = [
    '__version__',
    'PCCError',
    'InvalidSize',
    'ColumnCountMismatch',
    'SizeMismatch',
    'InvalidStride',
    'LengthMismatch',
    'IndexOutOfRange',
    'PartialSum',
    'pearson',
    'PairCursor',
    'pair_count',
    'pair_at',
    'index_of',
    'iter_pairs',
    'StridedBlock',
    'MulticolumnAccumulator',
    'merge',
    'merge_all',
    'accumulate_sharded',
]
