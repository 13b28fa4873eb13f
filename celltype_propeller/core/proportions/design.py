"""Group design matrix and baseline proportions.

Builds the no-intercept sample x group indicator matrix used by the group
tests, and the grouping-independent baseline proportion of each cluster.
"""

from __future__ import annotations

import logging
from typing import Any

import pandas as pd

from .errors import LabelShapeError, SampleGroupConflictError
from .transform import as_factor, cross_tabulate

logger = logging.getLogger(__name__)


def build_design_matrix(sample: Any, group: Any) -> pd.DataFrame:
    """Build a sample x group indicator design matrix without intercept.

    Parameters
    ----------
    sample : array-like
        Biological replicate label for every cell
    group : array-like
        Group label for every cell

    Returns
    -------
    pd.DataFrame
        One row per sample level, one 0/1 column per observed group level

    Raises
    ------
    LabelShapeError
        If the vectors differ in length or a sample level has no cells.
    SampleGroupConflictError
        If a sample has cells under more than one group.
    """
    sample_factor = as_factor(sample, "sample")
    group_factor = as_factor(group, "group")

    if len(sample_factor) != len(group_factor):
        raise LabelShapeError(
            f"sample ({len(sample_factor)}) and group ({len(group_factor)}) "
            "must have one entry per cell"
        )

    observed = set(group_factor.unique())
    unused = [g for g in group_factor.categories if g not in observed]
    if unused:
        logger.info(f"Dropping group levels with no cells: {unused}")
        group_factor = group_factor.remove_unused_categories()

    table = cross_tabulate(sample_factor, group_factor)
    design = (table != 0).astype(int)
    design.index.name = "sample"
    design.columns.name = "group"

    per_sample = design.sum(axis=1)
    missing = per_sample.index[per_sample == 0].tolist()
    if missing:
        raise LabelShapeError(f"Samples with no cells: {missing}")

    conflicts = per_sample.index[per_sample > 1].tolist()
    if conflicts:
        detail = {
            s: design.columns[design.loc[s] == 1].tolist() for s in conflicts
        }
        raise SampleGroupConflictError(
            f"Each sample must belong to exactly one group; found {detail}"
        )

    return design


def compute_baseline_proportions(clusters: Any) -> pd.Series:
    """Overall fraction of cells in each cluster, ignoring samples and groups.

    Parameters
    ----------
    clusters : array-like
        Cluster or cell type label for every cell

    Returns
    -------
    pd.Series
        Baseline proportion per cluster level; sums to 1
    """
    factor = as_factor(clusters, "clusters")
    if len(factor) == 0:
        raise LabelShapeError("No cells provided")
    counts = pd.Series(factor).value_counts(sort=False).reindex(factor.categories, fill_value=0)
    baseline = counts / counts.sum()
    baseline.index.name = "clusters"
    baseline.name = "BaselineProp"
    return baseline
