"""Tabular I/O utilities for celltype-propeller.

Provides functions for loading per-cell label tables and writing results.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Union

import pandas as pd

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

TABLE_SEPARATORS = {
    ".csv": ",",
    ".tsv": "\t",
    ".txt": "\t",
}


def ensure_output_dir(path: PathLike) -> Path:
    """Make sure the output directory exists (parents included) and return it."""
    out_dir = Path(path)
    out_dir.mkdir(parents=True, exist_ok=True)
    return out_dir


def load_cell_table(path: PathLike) -> pd.DataFrame:
    """Load a per-cell metadata table (CSV or TSV).

    Parameters
    ----------
    path : PathLike
        Path to a .csv, .tsv or .txt file (optionally gzipped) with one row
        per cell.

    Returns
    -------
    pd.DataFrame
        Cell table with every column read as string labels.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the extension is not recognised.
    """
    table_path = Path(path)
    if not table_path.exists():
        raise FileNotFoundError(f"Cell table not found: {table_path}")

    suffixes = [s.lower() for s in table_path.suffixes]
    if suffixes and suffixes[-1] == ".gz":
        suffixes = suffixes[:-1]
    suffix = suffixes[-1] if suffixes else ""
    if suffix not in TABLE_SEPARATORS:
        raise ValueError(
            f"Unsupported cell table format '{suffix}'; expected one of {sorted(TABLE_SEPARATORS)}"
        )

    df = pd.read_csv(table_path, sep=TABLE_SEPARATORS[suffix], dtype=str)
    logger.info(f"Loaded cell table {table_path.name}: {len(df):,} cells, {df.shape[1]} columns")
    return df


def read_label_source(path: PathLike) -> Any:
    """Load cell labels from an .h5ad file or a delimited cell table.

    Parameters
    ----------
    path : PathLike
        Path to an .h5ad AnnData file or a CSV/TSV cell table.

    Returns
    -------
    AnnData or pd.DataFrame
        Object accepted by the label-source adapters.

    Raises
    ------
    ImportError
        If an .h5ad file is given and anndata is not installed.
    """
    source_path = Path(path)
    if source_path.suffix.lower() == ".h5ad":
        import anndata as ad

        if not source_path.exists():
            raise FileNotFoundError(f"AnnData file not found: {source_path}")
        adata = ad.read_h5ad(source_path, backed="r")
        logger.info(f"Loaded {source_path.name}: {adata.n_obs:,} cells")
        return adata
    return load_cell_table(source_path)


def write_dataframe(df: pd.DataFrame, path: PathLike, *, index: bool = False) -> Path:
    """Save ``df`` as CSV at ``path``, creating missing parent directories.

    Pass ``index=True`` for tables keyed by cluster or sample.
    """
    target = ensure_output_dir(Path(path).parent) / Path(path).name
    df.to_csv(target, index=index)
    return target
