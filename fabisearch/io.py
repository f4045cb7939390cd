"""
Series IO.

A series is a (T, p) float matrix: time in rows, variables in columns.
On disk it is a CSV or Parquet table, one column per variable. Only
numeric columns are read, so an index or label column is skipped.
"""

import logging
from pathlib import Path
from typing import List, Optional, Sequence, Union

import numpy as np
import polars as pl

from factorize import InvalidInputError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

SUFFIXES = ('.csv', '.parquet')


def _check_suffix(path: Path) -> str:
    suffix = path.suffix.lower()
    if suffix not in SUFFIXES:
        raise InvalidInputError(
            f"{path}: unsupported format '{suffix}'. Use one of {list(SUFFIXES)}"
        )
    return suffix


def read_frame(path: PathLike, has_header: bool = True) -> pl.DataFrame:
    path = Path(path)
    if _check_suffix(path) == '.parquet':
        return pl.read_parquet(path)
    return pl.read_csv(path, has_header=has_header)


def read_series(path: PathLike, has_header: bool = True) -> np.ndarray:
    """
    Load a series as a float matrix.

    Parameters
    ----------
    path : str or Path
        .csv or .parquet file.
    has_header : bool
        CSV only: whether the first row holds column names.

    Returns
    -------
    np.ndarray
        (T, p) float64 matrix of the numeric columns.
    """
    df = read_frame(path, has_header)
    numeric = [name for name, dtype in df.schema.items() if dtype.is_numeric()]
    if not numeric:
        raise InvalidInputError(f"{path}: no numeric columns")
    dropped = len(df.columns) - len(numeric)
    if dropped:
        logger.info("%s: skipping %d non-numeric columns", path, dropped)
    return df.select(numeric).cast(pl.Float64).to_numpy()


def series_frame(series: np.ndarray, columns: Optional[Sequence[str]] = None) -> pl.DataFrame:
    series = np.asarray(series, dtype=np.float64)
    if columns is None:
        columns = [f"V{j + 1}" for j in range(series.shape[1])]
    return pl.DataFrame({name: series[:, j] for j, name in enumerate(columns)})


def write_frame(df: pl.DataFrame, path: PathLike) -> Path:
    """Write a table as CSV or Parquet, by suffix."""
    path = Path(path)
    suffix = _check_suffix(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if suffix == '.parquet':
        df.write_parquet(path)
    else:
        df.write_csv(path)
    return path


def write_series(
    series: np.ndarray,
    path: PathLike,
    columns: Optional[List[str]] = None,
) -> Path:
    """Write a (T, p) matrix with columns V1..Vp (or `columns`)."""
    return write_frame(series_frame(series, columns), path)
