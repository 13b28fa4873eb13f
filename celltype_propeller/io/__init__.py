"""I/O utilities for celltype-propeller.

Provides logging, tabular I/O, and data loading utilities.
"""

from .logging import get_logger, get_timestamped_log_path, log_json, log_yaml
from .csv import (
    ensure_output_dir,
    load_cell_table,
    read_label_source,
    write_dataframe,
)

__all__ = [
    # Logging
    "get_logger",
    "get_timestamped_log_path",
    "log_json",
    "log_yaml",
    # Tabular I/O
    "ensure_output_dir",
    "load_cell_table",
    "read_label_source",
    "write_dataframe",
]
