"""
Sharded accumulation and merge trees.

Each shard gets its own accumulator with no shared state, so workers
never lock. Merging is the only synchronization point, and because
merge is associative and commutative the reduction can be a linear
fold or a balanced tree with identical results up to rounding.
"""

import logging
from concurrent.futures import ProcessPoolExecutor
from typing import List, Optional, Sequence, Tuple

import numpy as np

from pccstream.accumulator import MulticolumnAccumulator
from pccstream.errors import ColumnCountMismatch, InvalidSize

logger = logging.getLogger(__name__)

MERGE_TREES = ('balanced', 'linear')


def merge_all(
    accumulators: Sequence[MulticolumnAccumulator],
    tree: str = 'balanced',
) -> MulticolumnAccumulator:
    """
    Reduce accumulators into one new accumulator.

    Parameters
    ----------
    accumulators : sequence of MulticolumnAccumulator
        Non-empty, all with the same column count.
    tree : str
        "balanced" merges neighbours pairwise, level by level
        (log2(k) depth). "linear" folds left to right.

    Returns
    -------
    MulticolumnAccumulator. Inputs are left untouched.
    """
    if tree not in MERGE_TREES:
        raise ValueError(f"Unknown merge tree: {tree} (expected one of {MERGE_TREES})")
    if len(accumulators) == 0:
        raise ValueError("merge_all needs at least one accumulator")

    if tree == 'linear':
        result = accumulators[0].copy()
        for acc in accumulators[1:]:
            result.merge_into(acc)
        return result

    level: List[MulticolumnAccumulator] = [accumulators[0].copy()] + list(accumulators[1:])
    depth = 0
    while len(level) > 1:
        merged = []
        for k in range(0, len(level) - 1, 2):
            merged.append(level[k].merge(level[k + 1]))
        if len(level) % 2:
            merged.append(level[-1])
        level = merged
        depth += 1
    logger.debug("balanced merge of %d accumulators, depth %d", len(accumulators), depth)
    return level[0]


def shard_rows(n_rows: int, n_shards: int) -> List[Tuple[int, int]]:
    """Split [0, n_rows) into ``n_shards`` contiguous (start, stop) slices."""
    if n_shards < 1:
        raise InvalidSize(f"n_shards must be at least 1, received {n_shards}")
    if n_rows < 0:
        raise InvalidSize(f"n_rows must be non-negative, received {n_rows}")
    edges = np.linspace(0, n_rows, n_shards + 1).astype(int)
    return [(int(edges[k]), int(edges[k + 1])) for k in range(n_shards)]


def accumulate_chunk(chunk: np.ndarray, n_columns: int, dtype: str) -> MulticolumnAccumulator:
    """Fresh accumulator over one chunk."""
    return MulticolumnAccumulator(n_columns, dtype=dtype).accumulate_rows(chunk)


def accumulate_sharded(
    matrix,
    n_shards: int,
    workers: Optional[int] = None,
    dtype=np.float64,
) -> MulticolumnAccumulator:
    """
    Accumulate a (rows, N) matrix as ``n_shards`` independent slices.

    With ``workers > 1`` the shards run in a process pool; otherwise
    they run in-process one after another. Shards are merged in a
    balanced tree.
    """
    data = np.asarray(matrix)
    if data.ndim != 2:
        raise ColumnCountMismatch(f"expected a 2-D (rows, columns) matrix, got shape {data.shape}")
    n_columns = data.shape[1]
    dtype_name = np.dtype(dtype).name
    slices = shard_rows(data.shape[0], n_shards)

    if workers is not None and workers > 1:
        logger.info("accumulating %d shards on %d workers", len(slices), workers)
        with ProcessPoolExecutor(max_workers=workers) as pool:
            futures = [
                pool.submit(accumulate_chunk, data[start:stop], n_columns, dtype_name)
                for start, stop in slices
            ]
            shards = [fut.result() for fut in futures]
    else:
        shards = [
            accumulate_chunk(data[start:stop], n_columns, dtype_name)
            for start, stop in slices
        ]

    return merge_all(shards, tree='balanced')
