"""Command-line interface for celltype-propeller.

Example Usage
-------------
    # From command line:
    celltype-propeller --help
    celltype-propeller run --input cells.csv --out results/
    celltype-propeller run --input data.h5ad --out results/ --transform asin
"""

from .main import cli, main

__all__ = [
    "cli",
    "main",
]
