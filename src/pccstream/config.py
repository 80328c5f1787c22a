"""
Run configuration.

Usage:
    from pccstream.config import PCCConfig

    cfg = PCCConfig.from_yaml('pcc.yaml')
    cfg = PCCConfig(chunk_rows=10_000, workers=4)

YAML layout (every key optional):

    dtype: float64
    chunk_rows: 100000
    workers: 4
    tree: balanced
    columns: [a, b, c]

``workers`` falls back to the PCC_WORKERS environment variable, then 1.
"""

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import List, Optional

import yaml

from pccstream.ingest import DEFAULT_CHUNK_ROWS
from pccstream.partial import as_float_dtype
from pccstream.reduce import MERGE_TREES

DEFAULT_DTYPE = 'float64'
DEFAULT_TREE = 'balanced'
WORKERS_ENV = 'PCC_WORKERS'


def _env_workers() -> int:
    raw = os.environ.get(WORKERS_ENV)
    if raw is None or raw == '':
        return 1
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{WORKERS_ENV} must be an integer, got {raw!r}") from None


@dataclass
class PCCConfig:
    """Settings for a streaming correlation run."""
    dtype: str = DEFAULT_DTYPE
    chunk_rows: int = DEFAULT_CHUNK_ROWS
    workers: Optional[int] = None
    tree: str = DEFAULT_TREE
    columns: Optional[List[str]] = None

    def __post_init__(self):
        if self.workers is None:
            self.workers = _env_workers()

    @classmethod
    def from_dict(cls, data: dict) -> 'PCCConfig':
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown config keys: {unknown} (known: {sorted(known)})")
        return cls(**data).validate()

    @classmethod
    def from_yaml(cls, path) -> 'PCCConfig':
        path = Path(path)
        data = yaml.safe_load(path.read_text()) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{path}: expected a YAML mapping, got {type(data).__name__}")
        return cls.from_dict(data)

    def with_overrides(self, **overrides) -> 'PCCConfig':
        """Copy with every non-None override applied (CLI flags win over YAML)."""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data.update({k: v for k, v in overrides.items() if v is not None})
        return PCCConfig(**data).validate()

    def validate(self) -> 'PCCConfig':
        as_float_dtype(self.dtype)
        if self.chunk_rows < 1:
            raise ValueError(f"chunk_rows must be at least 1, got {self.chunk_rows}")
        if self.workers < 1:
            raise ValueError(f"workers must be at least 1, got {self.workers}")
        if self.tree not in MERGE_TREES:
            raise ValueError(f"tree must be one of {MERGE_TREES}, got {self.tree!r}")
        if self.columns is not None and len(self.columns) < 2:
            raise ValueError(f"columns must name at least 2 columns, got {self.columns}")
        return self
