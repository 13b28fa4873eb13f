"""Cell-type proportions and variance stabilising transforms.

This module turns per-cell cluster and sample labels into a clusters x
samples count matrix, the matching proportions matrix, and a transformed
proportions matrix suitable for linear modelling.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import numpy as np
import pandas as pd

from .errors import LabelShapeError, TransformConfigError

logger = logging.getLogger(__name__)

DEFAULT_TRANSFORM = "logit"

# Added to every count before the logit transform
LOGIT_PSEUDO_COUNT = 0.5


def as_factor(values: Any, name: str = "labels") -> pd.Categorical:
    """Convert a label vector to a categorical with R-style level order.

    Categorical inputs keep their declared categories (including unused
    ones); anything else gets the sorted unique values as levels.

    Parameters
    ----------
    values : array-like
        Per-cell labels (list, np.ndarray, pd.Series or pd.Categorical)
    name : str
        Name used in error messages

    Returns
    -------
    pd.Categorical
        Categorical labels

    Raises
    ------
    LabelShapeError
        If any label is missing.
    """
    if isinstance(values, pd.Categorical):
        factor = values
    elif isinstance(values, pd.Series) and isinstance(values.dtype, pd.CategoricalDtype):
        factor = values.array
    else:
        factor = pd.Categorical(values)

    if factor.isna().any():
        raise LabelShapeError(f"{name} contains missing values")
    return factor


def cross_tabulate(rows: pd.Categorical, cols: pd.Categorical) -> pd.DataFrame:
    """Count co-occurrences of two equal-length categoricals.

    Every declared category appears in the result, in category order.
    """
    counts = np.zeros((len(rows.categories), len(cols.categories)), dtype=np.int64)
    np.add.at(counts, (rows.codes, cols.codes), 1)
    return pd.DataFrame(
        counts,
        index=pd.Index(rows.categories, name=None),
        columns=pd.Index(cols.categories, name=None),
    )


def asin_transform(proportions: pd.DataFrame) -> pd.DataFrame:
    """Arcsine square root transform, finite on the closed interval [0, 1]."""
    return np.arcsin(np.sqrt(proportions))


def logit_transform(
    counts: pd.DataFrame,
    pseudo_count: float = LOGIT_PSEUDO_COUNT,
) -> pd.DataFrame:
    """Log-odds of proportions with a pseudo-count added to every cell count.

    Each sample (column) gets ``(n + c) / (N + c * K)`` where ``K`` is the
    number of clusters, so no proportion is exactly 0 or 1.

    Parameters
    ----------
    counts : pd.DataFrame
        Clusters x samples count matrix
    pseudo_count : float
        Amount added to every count

    Returns
    -------
    pd.DataFrame
        Transformed proportions, same shape as ``counts``
    """
    padded = counts + pseudo_count
    props = padded / padded.sum(axis=0)
    return np.log(props / (1 - props))


TRANSFORMS: Dict[str, Callable[[pd.DataFrame, pd.DataFrame], pd.DataFrame]] = {
    "asin": lambda counts, proportions: asin_transform(proportions),
    "logit": lambda counts, proportions: logit_transform(counts),
}


@dataclass(frozen=True)
class TransformedProps:
    """Counts, proportions and transformed proportions.

    All three matrices have clusters as rows and samples as columns, in
    factor level order.

    Attributes
    ----------
    counts : pd.DataFrame
        Number of cells of each cluster in each sample
    proportions : pd.DataFrame
        Counts divided by sample totals; columns sum to 1
    transformed : pd.DataFrame
        Variance stabilised proportions
    transform : str
        Name of the transform applied
    """

    counts: pd.DataFrame
    proportions: pd.DataFrame
    transformed: pd.DataFrame
    transform: str = DEFAULT_TRANSFORM

    @property
    def clusters(self) -> pd.Index:
        return self.counts.index

    @property
    def samples(self) -> pd.Index:
        return self.counts.columns


def get_transformed_props(
    clusters: Any,
    sample: Any,
    transform: Optional[str] = DEFAULT_TRANSFORM,
) -> TransformedProps:
    """Compute cell-type proportions per sample and transform them.

    Parameters
    ----------
    clusters : array-like
        Cluster or cell type label for every cell
    sample : array-like
        Biological replicate label for every cell
    transform : str, optional
        "logit" (default) or "asin". None selects the default.

    Returns
    -------
    TransformedProps
        Counts, proportions and transformed proportions

    Raises
    ------
    TransformConfigError
        If the transform name is unknown.
    LabelShapeError
        If the label vectors are empty, of different length, contain
        missing values, a sample has no cells, or there is only one
        cluster level.
    """
    if transform is None:
        transform = DEFAULT_TRANSFORM
    if transform not in TRANSFORMS:
        raise TransformConfigError(
            f"Unknown transform '{transform}'. Available: {sorted(TRANSFORMS)}"
        )

    cluster_factor = as_factor(clusters, "clusters")
    sample_factor = as_factor(sample, "sample")

    if len(cluster_factor) != len(sample_factor):
        raise LabelShapeError(
            f"clusters ({len(cluster_factor)}) and sample ({len(sample_factor)}) "
            "must have one entry per cell"
        )
    if len(cluster_factor) == 0:
        raise LabelShapeError("No cells provided")

    counts = cross_tabulate(cluster_factor, sample_factor)
    counts.index.name = "clusters"
    counts.columns.name = "sample"

    totals = counts.sum(axis=0)
    empty = totals.index[totals == 0].tolist()
    if empty:
        raise LabelShapeError(f"Samples with no cells: {empty}")

    if len(counts.index) < 2:
        raise LabelShapeError(
            f"At least two cluster levels are needed to compare proportions, "
            f"got {list(counts.index)}"
        )

    proportions = counts / totals

    if transform == "asin":
        logger.info("Performing arcsin square root transformation of proportions")
    else:
        logger.info("Performing logit transformation of proportions")
    transformed = TRANSFORMS[transform](counts, proportions)

    return TransformedProps(
        counts=counts,
        proportions=proportions,
        transformed=transformed,
        transform=transform,
    )
