"""Differential proportion testing engine.

This module provides the PropellerEngine class that orchestrates label
extraction, proportion estimation, design construction and group testing,
and the functional :func:`propeller` entry point built on it.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd

from .adapters import extract_labels
from .config import PropellerConfig
from .design import build_design_matrix, compute_baseline_proportions
from .errors import DesignConfigError, LabelShapeError, MissingInputError
from .testing import propeller_anova, propeller_ttest
from .transform import TransformedProps, as_factor, get_transformed_props


logger = logging.getLogger(__name__)


@dataclass
class PropellerResult:
    """Result of a differential proportion test.

    Attributes
    ----------
    table : pd.DataFrame
        Per-cluster results, BaselineProp first, then test columns
    props : TransformedProps
        Counts, proportions and transformed proportions
    design : pd.DataFrame
        Samples x groups design matrix
    baseline : pd.Series
        Baseline proportion of each cluster
    test : str
        "t-test" for two groups, "anova" for more
    config : PropellerConfig
        Configuration used
    provenance : Dict[str, Any]
        Execution provenance
    """

    table: pd.DataFrame
    props: TransformedProps
    design: pd.DataFrame
    baseline: pd.Series
    test: str
    config: PropellerConfig = field(default_factory=PropellerConfig)
    provenance: Dict[str, Any] = field(default_factory=dict)

    def significant(self, alpha: Optional[float] = None) -> pd.DataFrame:
        """Rows with FDR below ``alpha`` (config alpha by default)."""
        alpha = self.config.alpha if alpha is None else alpha
        return self.table[self.table["FDR"] < alpha]


class PropellerEngine:
    """Engine for testing cell-type proportion differences between groups.

    Parameters
    ----------
    config : PropellerConfig, optional
        Configuration. Uses defaults if not provided.

    Example
    -------
    >>> from celltype_propeller.core.proportions import PropellerEngine
    >>> engine = PropellerEngine()
    >>> result = engine.execute(clusters=clust, sample=biorep, group=grp)
    >>> print(result.table.head())
    """

    def __init__(self, config: Optional[PropellerConfig] = None):
        self.config = config or PropellerConfig.default()
        self.config.validate()

    def _resolve_labels(self, x: Any, clusters: Any, sample: Any, group: Any):
        if x is None and clusters is None and sample is None and group is None:
            raise MissingInputError(
                "Provide either an annotated object (AnnData or DataFrame) with "
                "cluster, sample and group metadata, or explicit clusters, "
                "sample and group labels"
            )

        if clusters is None or sample is None or group is None:
            if x is None:
                missing = [
                    name for name, value in
                    (("clusters", clusters), ("sample", sample), ("group", group))
                    if value is None
                ]
                raise MissingInputError(f"Missing labels: {missing}")

            labels = extract_labels(
                x,
                cluster_key=self.config.cluster_column,
                sample_key=self.config.sample_column,
                group_key=self.config.group_column,
            )
            clusters = labels.clusters if clusters is None else clusters
            sample = labels.sample if sample is None else sample
            group = labels.group if group is None else group

        return clusters, sample, group

    def execute(
        self,
        x: Any = None,
        clusters: Any = None,
        sample: Any = None,
        group: Any = None,
    ) -> PropellerResult:
        """Test every cluster for a proportion difference between groups.

        Parameters
        ----------
        x : AnnData, pd.DataFrame or LabelSource, optional
            Annotated per-cell data to extract missing labels from
        clusters : array-like, optional
            Cluster or cell type label for every cell
        sample : array-like, optional
            Biological replicate label for every cell
        group : array-like, optional
            Group label for every cell

        Returns
        -------
        PropellerResult
            Results table plus intermediate matrices

        Raises
        ------
        MissingInputError
            If no label source is given.
        LabelShapeError
            If the label vectors are inconsistent.
        DesignConfigError
            If fewer than two groups are present or a sample is in two groups.
        """
        start_time = datetime.now()
        config = self.config

        clusters, sample, group = self._resolve_labels(x, clusters, sample, group)
        clusters = as_factor(clusters, "clusters")
        sample = as_factor(sample, "sample")
        group = as_factor(group, "group")

        if not (len(clusters) == len(sample) == len(group)):
            raise LabelShapeError(
                f"clusters ({len(clusters)}), sample ({len(sample)}) and "
                f"group ({len(group)}) must have one entry per cell"
            )

        design = build_design_matrix(sample, group)
        n_groups = design.shape[1]
        if n_groups < 2:
            raise DesignConfigError(
                f"group variable has {n_groups} level(s); at least 2 are needed"
            )

        props = get_transformed_props(clusters, sample, config.transform)
        baseline = compute_baseline_proportions(clusters)

        if n_groups == 2:
            logger.info("group variable has 2 levels, t-tests will be performed")
            test = "t-test"
            out = propeller_ttest(
                props,
                design,
                contrasts=[1, -1],
                robust=config.robust,
                trend=config.trend,
                sort=False,
            )
        else:
            logger.info("group variable has > 2 levels, ANOVA will be performed")
            test = "anova"
            out = propeller_anova(
                props,
                design,
                coef=list(range(n_groups)),
                robust=config.robust,
                trend=config.trend,
                sort=False,
            )

        out.insert(0, "BaselineProp", baseline.reindex(out.index).to_numpy())
        if config.sort:
            out = out.sort_values("P.Value", kind="mergesort")

        boundary = int(((props.proportions == 0) | (props.proportions == 1)).to_numpy().sum())
        if boundary:
            logger.info(f"{boundary} cluster/sample proportion(s) are exactly 0 or 1")

        end_time = datetime.now()

        provenance = {
            "timestamp": start_time.isoformat(),
            "duration_seconds": (end_time - start_time).total_seconds(),
            "n_cells": len(clusters),
            "n_samples": len(props.samples),
            "n_clusters": len(props.clusters),
            "n_groups": n_groups,
            "groups": [str(g) for g in design.columns],
            "test": test,
            "n_significant": int(np.sum(out["FDR"] < config.alpha)),
            "config": config.to_dict(),
        }

        return PropellerResult(
            table=out,
            props=props,
            design=design,
            baseline=baseline,
            test=test,
            config=config,
            provenance=provenance,
        )


def propeller(
    x: Any = None,
    clusters: Any = None,
    sample: Any = None,
    group: Any = None,
    trend: bool = False,
    robust: bool = True,
    transform: Optional[str] = "logit",
    sort: bool = True,
) -> pd.DataFrame:
    """Find significant differences in cell type proportions between groups.

    Calculates cell type proportions per sample, applies a variance
    stabilising transform and fits a linear model per cluster. With two
    groups a moderated t-test is used, with more an F-test (ANOVA).
    Benjamini-Hochberg FDRs account for testing many clusters.

    Parameters
    ----------
    x : AnnData, pd.DataFrame or LabelSource, optional
        Annotated per-cell data; used for any labels not given explicitly
    clusters, sample, group : array-like, optional
        Per-cell cluster, biological replicate and group labels
    trend : bool
        Fit a mean-variance trend for the variance prior
    robust : bool
        Robust empirical Bayes estimation of the variance prior
    transform : str, optional
        "logit" (default) or "asin"
    sort : bool
        Sort results by ascending p-value

    Returns
    -------
    pd.DataFrame
        One row per cluster with BaselineProp, group mean proportions,
        test statistic, P.Value and FDR
    """
    config = PropellerConfig(
        transform=transform or "logit",
        robust=robust,
        trend=trend,
        sort=sort,
    )
    return PropellerEngine(config).execute(x, clusters, sample, group).table
