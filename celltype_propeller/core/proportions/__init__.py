"""Differential cell-type proportion testing.

This module tests whether cell type proportions differ between
experimental groups. Proportions are computed per biological replicate,
variance stabilised, and modelled per cluster with empirical Bayes
moderated linear models.

Key Features:
- Proportion estimation: counts, proportions, logit or arcsin-sqrt transform
- Two groups: moderated t-test of a contrast
- More than two groups: moderated F-test (ANOVA)
- Robust and mean-variance trend variance priors
- Benjamini-Hochberg FDR across clusters
- Label extraction from AnnData objects or per-cell DataFrames

Example Usage
-------------
Explicit labels:

    >>> from celltype_propeller.core.proportions import propeller
    >>> table = propeller(clusters=clust, sample=biorep, group=grp,
    ...                   robust=False, trend=False, transform="asin")

From an AnnData object with configuration:

    >>> from celltype_propeller.core.proportions import (
    ...     PropellerEngine,
    ...     PropellerConfig,
    ... )
    >>> config = PropellerConfig.from_yaml("propeller.yaml")
    >>> result = PropellerEngine(config=config).execute(adata)
    >>> result.significant()
"""

# Errors
from .errors import (
    PropellerError,
    MissingInputError,
    LabelShapeError,
    TransformConfigError,
    DesignConfigError,
    SampleGroupConflictError,
    MissingColumnError,
    AmbiguousColumnError,
    UnsupportedSourceError,
)

# Configuration
from .config import PropellerConfig

# Proportions
from .transform import (
    TRANSFORMS,
    TransformedProps,
    as_factor,
    asin_transform,
    logit_transform,
    get_transformed_props,
)

# Design
from .design import build_design_matrix, compute_baseline_proportions

# Linear models
from .linear_model import (
    LinearModelFit,
    ModeratedFit,
    lm_fit,
    contrasts_fit,
    ebayes,
    fit_f_dist,
    fit_f_dist_robust,
    squeeze_var,
)

# Group tests
from .testing import propeller_ttest, propeller_anova

# Adapters
from .adapters import (
    CellLabels,
    LabelSource,
    DataFrameLabelSource,
    AnnDataLabelSource,
    resolve_column,
    extract_labels,
)

# Engine
from .engine import PropellerEngine, PropellerResult, propeller

# Export functions
from .export import (
    export_results,
    export_counts,
    export_proportions,
    export_transformed,
    export_design,
    export_provenance,
    export_summary_json,
    export_all,
)

__all__ = [
    # Errors
    "PropellerError",
    "MissingInputError",
    "LabelShapeError",
    "TransformConfigError",
    "DesignConfigError",
    "SampleGroupConflictError",
    "MissingColumnError",
    "AmbiguousColumnError",
    "UnsupportedSourceError",
    # Configuration
    "PropellerConfig",
    # Proportions
    "TRANSFORMS",
    "TransformedProps",
    "as_factor",
    "asin_transform",
    "logit_transform",
    "get_transformed_props",
    # Design
    "build_design_matrix",
    "compute_baseline_proportions",
    # Linear models
    "LinearModelFit",
    "ModeratedFit",
    "lm_fit",
    "contrasts_fit",
    "ebayes",
    "fit_f_dist",
    "fit_f_dist_robust",
    "squeeze_var",
    # Group tests
    "propeller_ttest",
    "propeller_anova",
    # Adapters
    "CellLabels",
    "LabelSource",
    "DataFrameLabelSource",
    "AnnDataLabelSource",
    "resolve_column",
    "extract_labels",
    # Engine
    "PropellerEngine",
    "PropellerResult",
    "propeller",
    # Export
    "export_results",
    "export_counts",
    "export_proportions",
    "export_transformed",
    "export_design",
    "export_provenance",
    "export_summary_json",
    "export_all",
]
