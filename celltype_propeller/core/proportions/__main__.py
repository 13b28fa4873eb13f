"""CLI entry point for differential proportion testing.

Usage:
    python -m celltype_propeller.core.proportions --help

    # Per-cell table with clusters/sample/group columns
    python -m celltype_propeller.core.proportions \\
        --input cells.csv \\
        --out propeller_output

    # AnnData input, custom columns, arcsin square root transform
    python -m celltype_propeller.core.proportions \\
        --input annotated.h5ad \\
        --cluster-col cell_type --sample-col donor --group-col condition \\
        --transform asin \\
        --out propeller_output
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import yaml

# Default log filename
LOG_FILENAME = "propeller.log"


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Differential cell-type proportion testing",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Default columns (clusters or cluster, sample, group)
    python -m celltype_propeller.core.proportions \\
        --input cells.csv \\
        --out propeller_output

    # Non-robust prior with a mean-variance trend
    python -m celltype_propeller.core.proportions \\
        --input cells.tsv \\
        --no-robust --trend \\
        --out propeller_output
        """,
    )

    # Required arguments
    parser.add_argument(
        "--input", "-i",
        type=Path,
        required=True,
        help="Per-cell table (.csv/.tsv) or AnnData file (.h5ad)",
    )
    parser.add_argument(
        "--out", "-o",
        type=Path,
        required=True,
        help="Output directory",
    )

    # Configuration
    parser.add_argument(
        "--config", "-c",
        type=Path,
        help="Path to YAML configuration file",
    )

    # Metadata columns
    parser.add_argument("--cluster-col", type=str, default=None, help="Cluster label column")
    parser.add_argument("--sample-col", type=str, default=None, help="Biological replicate column")
    parser.add_argument("--group-col", type=str, default=None, help="Experimental group column")

    # Test options
    parser.add_argument(
        "--transform",
        choices=["logit", "asin"],
        default=None,
        help="Proportion transform (default: logit)",
    )
    parser.add_argument(
        "--robust",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Robust empirical Bayes variance prior (default: on)",
    )
    parser.add_argument(
        "--trend",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Mean-variance trend for the variance prior (default: off)",
    )
    parser.add_argument(
        "--prefix",
        type=str,
        default="",
        help="Prefix for output file names",
    )

    # Logging
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--log-dir",
        type=Path,
        default=None,
        help="Directory for log files (default: output directory)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    return parser.parse_args()


def main() -> int:
    """Main entry point."""
    args = parse_args()

    log_dir = Path(args.log_dir if args.log_dir else args.out)
    log_dir.mkdir(parents=True, exist_ok=True)

    log_level = logging.DEBUG if args.verbose else getattr(logging, args.log_level)

    from celltype_propeller.io.logging import get_logger, log_yaml

    # Library modules log under the package namespace
    logger, actual_log_path = get_logger(
        name="celltype_propeller",
        log_path=log_dir / LOG_FILENAME,
        level=log_level,
        console=True,
    )

    print(f"[INFO] Log file: {actual_log_path}")
    logger.info("=" * 60)
    logger.info("  Differential Proportion Testing")
    logger.info("=" * 60)
    logger.info(f"Input: {args.input}")
    logger.info(f"Output: {args.out}")

    if not args.input.exists():
        logger.error(f"Input file not found: {args.input}")
        return 1

    from .config import PropellerConfig
    from .engine import PropellerEngine
    from .errors import PropellerError
    from .export import export_all
    from celltype_propeller.io import read_label_source

    try:
        if args.config and args.config.exists():
            logger.info(f"Loading config from {args.config}")
            config = PropellerConfig.from_yaml(args.config)
        else:
            logger.info("Using default configuration")
            config = PropellerConfig.default()
    except (ValueError, yaml.YAMLError) as e:
        logger.error(f"Invalid configuration {args.config}: {e}")
        return 1

    if args.cluster_col is not None:
        config.cluster_column = args.cluster_col
    if args.sample_col is not None:
        config.sample_column = args.sample_col
    if args.group_col is not None:
        config.group_column = args.group_col
    if args.transform is not None:
        config.transform = args.transform
    if args.robust is not None:
        config.robust = args.robust
    if args.trend is not None:
        config.trend = args.trend

    log_yaml(log_dir / LOG_FILENAME, config.to_dict(), logger=logger)

    try:
        source = read_label_source(args.input)
    except ImportError as e:
        logger.error(f"Missing dependency: {e}")
        logger.error("Install with: pip install anndata")
        return 1
    except ValueError as e:
        logger.error(str(e))
        return 1

    logger.info("")
    logger.info("--- Running Propeller ---")

    try:
        engine = PropellerEngine(config=config)
        result = engine.execute(source)
    except PropellerError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1

    logger.info("")
    logger.info("=" * 60)
    logger.info("  PROPELLER SUMMARY")
    logger.info("=" * 60)
    logger.info(f"Test: {result.test}")
    logger.info(f"Transform: {result.props.transform}")
    logger.info(f"Cells: {result.provenance.get('n_cells', 0):,}")
    logger.info(f"Samples: {result.provenance.get('n_samples', 0)}")
    logger.info(f"Clusters: {result.provenance.get('n_clusters', 0)}")
    logger.info(f"Groups: {result.provenance.get('groups', [])}")
    logger.info(
        f"Clusters with FDR < {config.alpha}: {result.provenance.get('n_significant', 0)}"
    )
    logger.info(f"Execution time: {result.provenance.get('duration_seconds', 0):.2f}s")

    logger.info("")
    logger.info("--- Exporting Outputs ---")
    outputs = export_all(result, args.out, prefix=args.prefix)
    for name, path in outputs.items():
        logger.info(f"  {name}: {path.name}")

    logger.info("")
    logger.info("Done.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
