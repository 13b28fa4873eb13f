"""celltype-propeller: Differential cell-type proportion testing for single-cell data.

This package provides tools for:
- Estimating per-sample cell type proportions from per-cell labels
- Variance stabilising transforms (logit, arcsin square root)
- Moderated t-tests (two groups) and F-tests (more groups) per cluster
- Benjamini-Hochberg FDR control across clusters

Example usage:
    >>> from celltype_propeller import propeller
    >>>
    >>> # Explicit per-cell labels
    >>> table = propeller(clusters=clust, sample=biorep, group=grp)
    >>>
    >>> # Labels taken from an AnnData object's obs table
    >>> table = propeller(adata)
"""

__version__ = "0.1.0"

from .core.proportions import (
    PropellerConfig,
    PropellerEngine,
    PropellerResult,
    get_transformed_props,
    propeller,
    propeller_anova,
    propeller_ttest,
)

__all__ = [
    "__version__",
    "PropellerConfig",
    "PropellerEngine",
    "PropellerResult",
    "get_transformed_props",
    "propeller",
    "propeller_anova",
    "propeller_ttest",
]
