"""
Linear indexing of unordered column pairs.

N columns → C(N,2) pairs, enumerated in canonical order:

    (0,1), (0,2), ..., (0,N-1), (1,2), ..., (N-2,N-1)

i.e. the row-major upper triangle of an N×N matrix without its
diagonal (same order as ``np.triu_indices(N, k=1)``). Row ``a`` holds
N-1-a pairs and starts at offset a·(2N-a-1)/2.

``pair_at`` inverts that offset in O(1) with integer arithmetic only,
so the flattened pair space can be addressed at random without ever
materializing it.
"""

import math
from typing import Iterator, Tuple

import numpy as np

from pccstream.errors import IndexOutOfRange, InvalidSize


def pair_count(n: int) -> int:
    """Number of unordered pairs of n columns, C(n,2)."""
    if n < 2:
        raise InvalidSize(f"n must be at least 2, received {n}")
    return n * (n - 1) // 2


def _check_index(n: int, index: int) -> int:
    limit = pair_count(n)
    if index < 0 or index >= limit:
        raise IndexOutOfRange(f"i ({index}) must be in [0,{limit})")
    return limit


def pair_at(n: int, index: int) -> Tuple[int, int]:
    """
    Pair (a, b), a < b, at linear position ``index``.

    Counted from the end, the triangle's rows hold 1, 2, 3, ... pairs,
    so the reversed index r = M-1-index falls in reversed row
    t = floor((sqrt(8r+1) - 1) / 2). ``math.isqrt`` keeps that exact
    for any n.
    """
    limit = _check_index(n, index)
    r = limit - 1 - index
    t = (math.isqrt(8 * r + 1) - 1) // 2
    a = n - 2 - t
    b = index - row_offset(n, a) + a + 1
    return a, b


def row_offset(n: int, a: int) -> int:
    """Linear index of the first pair (a, a+1) in row a."""
    return a * (2 * n - a - 1) // 2


def index_of(n: int, a: int, b: int) -> int:
    """Linear position of pair (a, b). Inverse of ``pair_at``."""
    pair_count(n)
    if not 0 <= a < b < n:
        raise IndexOutOfRange(f"pair ({a},{b}) is not a valid pair of {n} columns")
    return row_offset(n, a) + (b - a - 1)


def iter_pairs(n: int, start: int = 0) -> Iterator[Tuple[int, int]]:
    """Yield pairs in canonical order from linear position ``start``."""
    yield from PairCursor(n, start)


def pair_arrays(n: int) -> Tuple[np.ndarray, np.ndarray]:
    """(firsts, seconds) index arrays of every pair, in canonical order."""
    pair_count(n)
    return np.triu_indices(n, k=1)


class PairCursor:
    """
    Sequential enumerator over the pairs of n columns.

    Starts at a given linear index. ``advance()`` steps to the next pair;
    once the last pair (n-2, n-1) has been passed the cursor is
    ``finished`` and further advances do nothing.

        cur = PairCursor(4)
        while cur:
            print(cur)       # (0,1) (0,2) ... (2,3)
            cur.advance()
    """

    def __init__(self, n: int, index: int = 0):
        self.limit = _check_index(n, index)
        self.n = n
        self.index = index
        self.first, self.second = pair_at(n, index)
        self.finished = False

    @property
    def last(self) -> bool:
        """True while positioned on the final pair."""
        return self.index == self.limit - 1

    def advance(self) -> "PairCursor":
        if self.finished:
            return self
        if self.last:
            self.finished = True
            return self
        self.index += 1
        if self.second + 1 == self.n:
            self.first += 1
            self.second = self.first + 1
        else:
            self.second += 1
        return self

    def as_pair(self) -> Tuple[int, int]:
        return self.first, self.second

    def __bool__(self) -> bool:
        return not self.finished

    def __iter__(self) -> Iterator[Tuple[int, int]]:
        while not self.finished:
            yield self.as_pair()
            self.advance()

    def __eq__(self, other) -> bool:
        if not isinstance(other, PairCursor):
            return NotImplemented
        return self.n == other.n and self.index == other.index

    def __hash__(self) -> int:
        return hash((self.n, self.index))

    def __str__(self) -> str:
        return f"({self.first},{self.second})"

    def __repr__(self) -> str:
        return f"PairCursor(n={self.n}, index={self.index}, pair={self})"
