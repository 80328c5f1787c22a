"""
Chunked file ingest.

The polars schema picks the columns; pyarrow then streams the file once
(CSV blocks or parquet record batches), and the batches are re-cut into
fixed-size row chunks → numpy. The full dataset is never collected.
Parsing text into numbers is left to pyarrow.

    for names, chunk in iter_chunks('data.csv', chunk_rows=50_000):
        acc.accumulate_rows(chunk)
"""

import logging
from concurrent.futures import ProcessPoolExecutor
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

import numpy as np
import polars as pl
import pyarrow as pa
import pyarrow.csv as pacsv
import pyarrow.parquet as pq

from pccstream.accumulator import MulticolumnAccumulator
from pccstream.errors import InvalidSize
from pccstream.reduce import accumulate_chunk, merge_all

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_ROWS = 100_000

NUMERIC_TYPES = [
    pl.Float64, pl.Float32,
    pl.Int64, pl.Int32, pl.Int16, pl.Int8,
    pl.UInt64, pl.UInt32, pl.UInt16, pl.UInt8,
]


def scan(path) -> pl.LazyFrame:
    """Lazy frame for a .csv or .parquet file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"No such data file: {path}")
    suffix = path.suffix.lower()
    if suffix == '.csv':
        return pl.scan_csv(path)
    if suffix in ('.parquet', '.pq'):
        return pl.scan_parquet(path)
    raise ValueError(f"Unsupported file type: {suffix} (expected .csv or .parquet)")


def select_columns(lazy: pl.LazyFrame, columns: Optional[Sequence[str]] = None) -> List[str]:
    """
    Resolve the columns to correlate.

    With ``columns`` given, every name must exist and be numeric.
    Without it, all numeric columns are used in file order.
    """
    schema = lazy.collect_schema()
    if columns is None:
        names = [name for name in schema.names() if schema[name] in NUMERIC_TYPES]
    else:
        names = list(columns)
        missing = [c for c in names if c not in schema.names()]
        if missing:
            raise ValueError(f"Columns not in file: {missing}")
        non_numeric = [c for c in names if schema[c] not in NUMERIC_TYPES]
        if non_numeric:
            raise TypeError(
                "Columns are not numeric: "
                + ", ".join(f"{c} ({schema[c]})" for c in non_numeric)
            )

    if len(names) < 2:
        raise InvalidSize(f"need at least 2 numeric columns, found {len(names)}: {names}")
    return names


def _read_batches(path, names: List[str]) -> Iterator[pl.DataFrame]:
    """One forward pass over the file, as polars frames of ``names``."""
    if Path(path).suffix.lower() == '.csv':
        reader = pacsv.open_csv(
            str(path),
            convert_options=pacsv.ConvertOptions(
                include_columns=names,
                column_types={name: pa.float64() for name in names},
            ),
        )
    else:
        reader = pq.ParquetFile(str(path)).iter_batches(columns=names)
    for batch in reader:
        yield pl.from_arrow(batch).select(names)


def rebatch(frames: Iterable[pl.DataFrame], chunk_rows: int) -> Iterator[pl.DataFrame]:
    """Re-cut a stream of frames into frames of exactly ``chunk_rows`` rows (last one shorter)."""
    pending = None
    for frame in frames:
        pending = frame if pending is None else pl.concat([pending, frame])
        while pending.height >= chunk_rows:
            yield pending.slice(0, chunk_rows)
            pending = pending.slice(chunk_rows)
    if pending is not None and pending.height > 0:
        yield pending


def _chunks(path, names: List[str], chunk_rows: int, dtype) -> Iterator[np.ndarray]:
    if chunk_rows < 1:
        raise InvalidSize(f"chunk_rows must be at least 1, received {chunk_rows}")
    logger.info("scanning %s: %d columns, %d rows per chunk", path, len(names), chunk_rows)
    for frame in rebatch(_read_batches(path, names), chunk_rows):
        yield frame.to_numpy().astype(dtype, copy=False)


def iter_chunks(
    path,
    columns: Optional[Sequence[str]] = None,
    chunk_rows: int = DEFAULT_CHUNK_ROWS,
    dtype=np.float64,
) -> Iterator[Tuple[List[str], np.ndarray]]:
    """
    Yield (column_names, chunk) pairs, chunk shaped (≤chunk_rows, N).

    The file is read once, front to back; only the current batch and
    the rows carried over to the next chunk are held in memory.

    Parameters
    ----------
    path : str or Path
        CSV or parquet file.
    columns : list of str, optional
        Columns to read. Default: every numeric column.
    chunk_rows : int
        Maximum rows per chunk.
    dtype : numpy floating dtype
        dtype of the yielded arrays.
    """
    names = select_columns(scan(path), columns)
    for chunk in _chunks(path, names, chunk_rows, dtype):
        yield names, chunk


def accumulate_file(
    path,
    columns: Optional[Sequence[str]] = None,
    chunk_rows: int = DEFAULT_CHUNK_ROWS,
    dtype=np.float64,
    workers: int = 1,
    tree: str = 'balanced',
) -> Tuple[List[str], MulticolumnAccumulator]:
    """
    Stream a file through accumulators. Returns (names, accumulator).

    With ``workers == 1`` every chunk goes into one accumulator. With
    more, each chunk is accumulated in a process pool into its own
    accumulator (at most 2×workers chunks in flight) and the per-chunk
    accumulators are merged with ``merge_all(..., tree=tree)``.
    """
    names = select_columns(scan(path), columns)
    chunks = _chunks(path, names, chunk_rows, dtype)

    if workers <= 1:
        acc = MulticolumnAccumulator(len(names), dtype=dtype)
        n_chunks = 0
        for chunk in chunks:
            acc.accumulate_rows(chunk)
            n_chunks += 1
        logger.info("accumulated %d rows in %d chunks", acc.row_count, n_chunks)
        return names, acc

    dtype_name = np.dtype(dtype).name
    shards = []
    pending = []
    with ProcessPoolExecutor(max_workers=workers) as pool:
        for chunk in chunks:
            pending.append(pool.submit(accumulate_chunk, chunk, len(names), dtype_name))
            if len(pending) >= 2 * workers:
                shards.append(pending.pop(0).result())
        shards.extend(fut.result() for fut in pending)

    if not shards:
        return names, MulticolumnAccumulator(len(names), dtype=dtype)
    acc = merge_all(shards, tree=tree)
    logger.info(
        "accumulated %d rows in %d chunks on %d workers", acc.row_count, len(shards), workers,
    )
    return names, acc
