"""Export functions for proportion testing results.

This module provides functions to export results and intermediate
matrices to CSV and JSON.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Dict

import pandas as pd

from .engine import PropellerResult


def _output_path(output_dir: Path, name: str, prefix: str) -> Path:
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir / (f"{prefix}{name}" if prefix else name)


def _write_frame(df: pd.DataFrame, output_dir: Path, name: str, prefix: str, label: str) -> Path:
    path = _output_path(output_dir, name, prefix)
    df.rename_axis(label).to_csv(path)
    return path


def export_results(
    result: PropellerResult,
    output_dir: Path,
    prefix: str = "",
) -> Path:
    """Export the per-cluster results table.

    Parameters
    ----------
    result : PropellerResult
        Test result
    output_dir : Path
        Output directory
    prefix : str
        File prefix

    Returns
    -------
    Path
        Output file path
    """
    return _write_frame(result.table, output_dir, "propeller_results.csv", prefix, "cluster")


def export_counts(result: PropellerResult, output_dir: Path, prefix: str = "") -> Path:
    """Export the clusters x samples count matrix."""
    return _write_frame(result.props.counts, output_dir, "counts.csv", prefix, "cluster")


def export_proportions(result: PropellerResult, output_dir: Path, prefix: str = "") -> Path:
    """Export the clusters x samples proportions matrix."""
    return _write_frame(result.props.proportions, output_dir, "proportions.csv", prefix, "cluster")


def export_transformed(result: PropellerResult, output_dir: Path, prefix: str = "") -> Path:
    """Export the transformed proportions matrix."""
    return _write_frame(
        result.props.transformed, output_dir, "transformed_proportions.csv", prefix, "cluster"
    )


def export_design(result: PropellerResult, output_dir: Path, prefix: str = "") -> Path:
    """Export the samples x groups design matrix."""
    return _write_frame(result.design, output_dir, "design.csv", prefix, "sample")


def export_provenance(
    result: PropellerResult,
    output_dir: Path,
    prefix: str = "",
) -> Path:
    """Export provenance information.

    Parameters
    ----------
    result : PropellerResult
        Test result
    output_dir : Path
        Output directory
    prefix : str
        File prefix

    Returns
    -------
    Path
        Output file path
    """
    path = _output_path(output_dir, "provenance.json", prefix)
    with open(path, "w") as f:
        json.dump(result.provenance, f, indent=2, default=str)
    return path


def export_summary_json(
    result: PropellerResult,
    output_dir: Path,
    prefix: str = "",
) -> Path:
    """Export structured summary for downstream tools.

    Parameters
    ----------
    result : PropellerResult
        Test result
    output_dir : Path
        Output directory
    prefix : str
        File prefix

    Returns
    -------
    Path
        Output file path
    """
    path = _output_path(output_dir, "propeller_summary.json", prefix)

    table = result.table
    stat_col = "Tstatistic" if "Tstatistic" in table.columns else "Fstatistic"
    summary = {
        "metadata": {
            "timestamp": datetime.now().isoformat(),
            "test": result.test,
            "transform": result.props.transform,
            "n_cells": result.provenance.get("n_cells", 0),
            "n_samples": result.provenance.get("n_samples", 0),
            "n_clusters": result.provenance.get("n_clusters", 0),
            "groups": result.provenance.get("groups", []),
            "alpha": result.config.alpha,
        },
        "clusters": [
            {
                "cluster": str(cluster),
                "baseline_prop": float(row["BaselineProp"]),
                "statistic": float(row[stat_col]),
                "p_value": float(row["P.Value"]),
                "fdr": float(row["FDR"]),
                "significant": bool(row["FDR"] < result.config.alpha),
            }
            for cluster, row in table.iterrows()
        ],
    }

    with open(path, "w") as f:
        json.dump(summary, f, indent=2)
    return path


def export_all(
    result: PropellerResult,
    output_dir: Path,
    prefix: str = "",
) -> Dict[str, Path]:
    """Export all results and intermediate matrices.

    Parameters
    ----------
    result : PropellerResult
        Test result
    output_dir : Path
        Output directory
    prefix : str
        File prefix

    Returns
    -------
    Dict[str, Path]
        Mapping of output name to file path
    """
    output_dir = Path(output_dir)
    return {
        "results": export_results(result, output_dir, prefix),
        "counts": export_counts(result, output_dir, prefix),
        "proportions": export_proportions(result, output_dir, prefix),
        "transformed": export_transformed(result, output_dir, prefix),
        "design": export_design(result, output_dir, prefix),
        "provenance": export_provenance(result, output_dir, prefix),
        "summary_json": export_summary_json(result, output_dir, prefix),
    }
