"""Command-line interface for celltype-propeller.

Provides CLI commands for differential cell-type proportion testing.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click
import yaml


def setup_logging(verbose: bool = False, debug: bool = False) -> logging.Logger:
    """Setup logging for CLI commands."""
    level = logging.DEBUG if debug else (logging.INFO if verbose else logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )
    return logging.getLogger("celltype_propeller")


@click.group()
@click.version_option(version="0.1.0", prog_name="celltype-propeller")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option("--debug", is_flag=True, help="Enable debug output")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, debug: bool) -> None:
    """celltype-propeller: Differential cell-type proportions between groups.

    Tests every cluster for a change in its per-sample proportion across
    experimental groups, using variance stabilised proportions and
    empirical Bayes moderated linear models.

    Examples:

        # Two or more groups from a per-cell table
        celltype-propeller run --input cells.csv --out results/

        # AnnData input with custom metadata columns
        celltype-propeller run --input data.h5ad --out results/ \\
            --cluster-col cell_type --sample-col donor --group-col condition

        # Options from a YAML file
        celltype-propeller run --input cells.tsv --out results/ --config propeller.yaml
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["debug"] = debug
    ctx.obj["logger"] = setup_logging(verbose, debug)


@cli.command()
@click.option("--input", "-i", "input_path", required=True, type=click.Path(exists=True),
              help="Per-cell table (.csv/.tsv) or AnnData file (.h5ad)")
@click.option("--out", "-o", "output_path", required=True, type=click.Path(),
              help="Output directory")
@click.option("--config", "-c", type=click.Path(exists=True),
              help="Propeller configuration file (YAML)")
@click.option("--cluster-col", default=None, help="Cluster label column")
@click.option("--sample-col", default=None, help="Biological replicate column")
@click.option("--group-col", default=None, help="Experimental group column")
@click.option("--transform", type=click.Choice(["logit", "asin"]), default=None,
              help="Proportion transform")
@click.option("--robust/--no-robust", default=None,
              help="Robust empirical Bayes variance prior")
@click.option("--trend/--no-trend", default=None,
              help="Mean-variance trend for the variance prior")
@click.option("--prefix", default="", help="Prefix for output file names")
@click.pass_context
def run(
    ctx: click.Context,
    input_path: str,
    output_path: str,
    config: Optional[str],
    cluster_col: Optional[str],
    sample_col: Optional[str],
    group_col: Optional[str],
    transform: Optional[str],
    robust: Optional[bool],
    trend: Optional[bool],
    prefix: str,
) -> None:
    """Test cluster proportions for differences between groups.

    Uses a moderated t-test for two groups and a moderated F-test for
    more. Writes the results table, intermediate matrices, provenance
    and a JSON summary to the output directory.
    """
    logger = ctx.obj["logger"]
    logger.info(f"Running propeller on: {input_path}")

    # Import here to avoid slow startup
    from celltype_propeller.core.proportions import (
        PropellerConfig,
        PropellerEngine,
        export_all,
    )
    from celltype_propeller.io import read_label_source

    overrides = {
        "cluster_column": cluster_col,
        "sample_column": sample_col,
        "group_column": group_col,
        "transform": transform,
        "robust": robust,
        "trend": trend,
    }

    try:
        cfg = PropellerConfig.from_yaml(Path(config)) if config else PropellerConfig.default()
        for key, value in overrides.items():
            if value is not None:
                setattr(cfg, key, value)
        cfg.validate()
        source = read_label_source(input_path)
        result = PropellerEngine(config=cfg).execute(source)
    except (ValueError, ImportError, yaml.YAMLError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    outputs = export_all(result, Path(output_path), prefix=prefix)
    for name, path in outputs.items():
        logger.info(f"  {name}: {path.name}")

    n_sig = result.provenance.get("n_significant", 0)
    click.echo(
        f"Tested {len(result.table)} clusters across "
        f"{result.provenance.get('n_groups', 0)} groups ({result.test}); "
        f"{n_sig} with FDR < {cfg.alpha}"
    )
    click.echo(f"Output saved to: {output_path}")


def main() -> None:
    """Main entry point for CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
