"""
pccstream: pairwise Pearson correlation of every column pair in a file.

    pccstream data.csv
    pccstream data.parquet --columns a b c --chunk-rows 50000
    pccstream data.csv --workers 4 --output pairs.parquet
    pccstream data.csv --config pcc.yaml -v
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

import polars as pl

from pccstream.config import PCCConfig
from pccstream.ingest import accumulate_file
from pccstream.reduce import MERGE_TREES

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='pccstream',
        description='Stream a CSV/parquet file and compute the Pearson '
                    'correlation of every pair of numeric columns.',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
examples:
  pccstream data.csv                              All numeric columns, table to stdout
  pccstream data.csv --columns a b c              Only these columns
  pccstream data.csv --workers 4 -o pairs.csv     Parallel chunks, write CSV
""",
    )
    parser.add_argument('path', help='CSV or parquet data file')
    parser.add_argument('--columns', nargs='+', default=None,
                        help='Columns to correlate (default: every numeric column)')
    parser.add_argument('--config', default=None,
                        help='YAML config file (flags override its values)')
    parser.add_argument('--chunk-rows', type=int, default=None,
                        help='Rows per chunk')
    parser.add_argument('--workers', type=int, default=None,
                        help='Worker processes (default: PCC_WORKERS env or 1)')
    parser.add_argument('--dtype', default=None,
                        help='Accumulator precision: float32, float64, longdouble')
    parser.add_argument('--tree', choices=MERGE_TREES, default=None,
                        help='Merge tree for per-chunk accumulators')
    parser.add_argument('--output', '-o', default=None,
                        help='Write the pair table to .csv or .parquet instead of stdout')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Debug logging')
    return parser


OUTPUT_SUFFIXES = ('.csv', '.parquet', '.pq')


def _output_path(output: str) -> Path:
    path = Path(output)
    if path.suffix.lower() not in OUTPUT_SUFFIXES:
        raise ValueError(f"Unsupported output type: {path.suffix} (expected .csv or .parquet)")
    return path


def _write(frame: pl.DataFrame, output: Path) -> None:
    if output.suffix.lower() == '.csv':
        frame.write_csv(output)
    else:
        frame.write_parquet(output)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    try:
        config = PCCConfig.from_yaml(args.config) if args.config else PCCConfig()
        config = config.with_overrides(
            columns=args.columns,
            chunk_rows=args.chunk_rows,
            workers=args.workers,
            dtype=args.dtype,
            tree=args.tree,
        )
        logger.debug("config: %s", config)
        output = _output_path(args.output) if args.output else None

        names, acc = accumulate_file(
            args.path,
            columns=config.columns,
            chunk_rows=config.chunk_rows,
            dtype=config.dtype,
            workers=config.workers,
            tree=config.tree,
        )
        frame = acc.results_frame(names)

        if output is not None:
            _write(frame, output)
            print(f"{len(frame)} pairs over {acc.row_count:,} rows → {output}")
        else:
            with pl.Config(tbl_rows=-1):
                print(frame)
        return 0

    except (ValueError, TypeError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
