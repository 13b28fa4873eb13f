"""Group tests on transformed cell-type proportions.

Two tests are provided, both built on per-cluster linear models with
empirical Bayes moderated variances:

- propeller_ttest: moderated t-test of one contrast (two groups)
- propeller_anova: moderated F-test that several group means are equal
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from celltype_propeller.utils.stats import adjust_pvalues

from .errors import DesignConfigError
from .linear_model import contrasts_fit, ebayes, lm_fit
from .transform import TransformedProps

logger = logging.getLogger(__name__)

PropInput = Union[TransformedProps, pd.DataFrame, np.ndarray]


def _unpack(prop_list: PropInput) -> Tuple[pd.DataFrame, Optional[pd.DataFrame]]:
    """Split input into transformed and (if available) raw proportions."""
    if isinstance(prop_list, TransformedProps):
        return prop_list.transformed, prop_list.proportions
    if isinstance(prop_list, pd.DataFrame):
        return prop_list, None
    arr = np.asarray(prop_list, dtype=float)
    if arr.ndim != 2:
        raise DesignConfigError("Transformed proportions must be a 2-D matrix")
    return pd.DataFrame(arr), None


def _align_design(design: Union[pd.DataFrame, np.ndarray], samples: pd.Index) -> pd.DataFrame:
    """Return the design as a DataFrame with rows in ``samples`` order."""
    if not isinstance(design, pd.DataFrame):
        arr = np.asarray(design, dtype=float)
        if arr.ndim != 2:
            raise DesignConfigError("Design must be a 2-D matrix")
        design = pd.DataFrame(arr, columns=[str(i) for i in range(arr.shape[1])])
        if len(samples) == arr.shape[0]:
            design.index = samples

    if len(design) != len(samples):
        raise DesignConfigError(
            f"Design has {len(design)} rows but there are {len(samples)} samples"
        )
    if set(design.index) == set(samples):
        design = design.loc[samples]
    return design


def _finish(out: pd.DataFrame, p_value: np.ndarray, sort: bool) -> pd.DataFrame:
    out["P.Value"] = p_value
    out["FDR"] = adjust_pvalues(p_value, method="fdr_bh")
    if sort:
        out = out.sort_values("P.Value", kind="mergesort")
    return out


def propeller_ttest(
    prop_list: PropInput,
    design: Union[pd.DataFrame, np.ndarray],
    contrasts: Optional[Sequence[float]] = None,
    robust: bool = True,
    trend: bool = False,
    sort: bool = True,
) -> pd.DataFrame:
    """Moderated t-test of a contrast between groups for every cluster.

    Parameters
    ----------
    prop_list : TransformedProps or matrix
        Output of :func:`get_transformed_props`, or a clusters x samples
        matrix of transformed proportions
    design : pd.DataFrame or np.ndarray
        Samples x groups design matrix without intercept
    contrasts : Sequence[float], optional
        One weight per design column. Defaults to first minus second column.
    robust : bool
        Robust empirical Bayes estimation of the variance prior
    trend : bool
        Let the variance prior depend on mean transformed proportion
    sort : bool
        Sort rows by ascending p-value

    Returns
    -------
    pd.DataFrame
        Per-cluster results with columns:
        - PropMean.<group>: mean proportion in each contrasted group
          (only when raw proportions are available)
        - PropRatio: product of group means raised to the contrast weights
        - PropDiff: contrast applied to the group mean proportions
        - Tstatistic
        - P.Value
        - FDR: Benjamini-Hochberg adjusted p-value
    """
    transformed, proportions = _unpack(prop_list)
    design = _align_design(design, transformed.columns)
    n_coef = design.shape[1]

    if contrasts is None:
        if n_coef < 2:
            raise DesignConfigError("Design needs at least 2 group columns for a t-test")
        contrasts = np.zeros(n_coef)
        contrasts[0], contrasts[1] = 1.0, -1.0
    contrasts = np.asarray(contrasts, dtype=float)
    if contrasts.ndim != 1 or len(contrasts) != n_coef:
        raise DesignConfigError(
            f"Contrast needs one weight per design column ({n_coef}), got {contrasts.tolist()}"
        )
    if not np.any(contrasts != 0):
        raise DesignConfigError("Contrast must have at least one non-zero weight")

    fit = lm_fit(transformed, design)
    fit_cont = contrasts_fit(fit, contrasts)
    moderated = ebayes(fit_cont, robust=robust, trend=trend)

    out = pd.DataFrame(index=transformed.index.copy())

    if proportions is not None:
        active = contrasts != 0
        fit_prop = lm_fit(proportions, design.loc[:, active])
        prop_means = fit_prop.coefficients
        weights = contrasts[active]
        for j, name in enumerate(design.columns[active]):
            out[f"PropMean.{name}"] = prop_means[:, j]
        with np.errstate(divide="ignore", invalid="ignore"):
            out["PropRatio"] = np.prod(prop_means ** weights, axis=1)
        out["PropDiff"] = prop_means @ weights

    out["Tstatistic"] = moderated.t[:, 0]
    return _finish(out, moderated.p_value[:, 0], sort)


def propeller_anova(
    prop_list: PropInput,
    design: Union[pd.DataFrame, np.ndarray],
    coef: Optional[Sequence[int]] = None,
    robust: bool = True,
    trend: bool = False,
    sort: bool = True,
) -> pd.DataFrame:
    """Moderated F-test that group mean proportions are equal, per cluster.

    The first ``coef`` column is replaced by an intercept, so the remaining
    ``coef`` columns measure differences from that group and are tested
    jointly.

    Parameters
    ----------
    prop_list : TransformedProps or matrix
        Output of :func:`get_transformed_props`, or a clusters x samples
        matrix of transformed proportions
    design : pd.DataFrame or np.ndarray
        Samples x groups design matrix without intercept
    coef : Sequence[int], optional
        Zero-based indices of the group-of-interest columns. Defaults to
        all columns.
    robust : bool
        Robust empirical Bayes estimation of the variance prior
    trend : bool
        Let the variance prior depend on mean transformed proportion
    sort : bool
        Sort rows by ascending p-value

    Returns
    -------
    pd.DataFrame
        Per-cluster results with PropMean.<group> (when raw proportions are
        available), Fstatistic, P.Value and FDR columns
    """
    transformed, proportions = _unpack(prop_list)
    design = _align_design(design, transformed.columns)
    n_coef = design.shape[1]

    coef = list(range(n_coef)) if coef is None else [int(c) for c in coef]
    if len(coef) < 2:
        raise DesignConfigError("At least 2 group columns are needed for an F-test")
    if len(set(coef)) != len(coef):
        raise DesignConfigError(f"Duplicate coefficient indices: {coef}")
    bad = [c for c in coef if c < 0 or c >= n_coef]
    if bad:
        raise DesignConfigError(
            f"Coefficient indices {bad} out of range for {n_coef} design columns"
        )

    out = pd.DataFrame(index=transformed.index.copy())

    if proportions is not None:
        fit_prop = lm_fit(proportions, design.iloc[:, coef])
        for j, name in enumerate(design.columns[coef]):
            out[f"PropMean.{name}"] = fit_prop.coefficients[:, j]

    intercept_design = design.astype(float)
    intercept_design.iloc[:, coef[0]] = 1.0
    intercept_design = intercept_design.rename(
        columns={design.columns[coef[0]]: "Int"}
    )

    fit = lm_fit(transformed, intercept_design)
    moderated = ebayes(fit.subset(coef[1:]), robust=robust, trend=trend)

    out["Fstatistic"] = moderated.F
    return _finish(out, moderated.F_p_value, sort)
