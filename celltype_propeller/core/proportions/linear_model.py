"""Row-wise linear models with empirical Bayes variance moderation.

This module fits one ordinary least squares model per row of a matrix
(one row per cluster, one column per sample) against a shared design, and
moderates the residual variances by pooling them across rows toward a
scaled-F prior (Smyth, 2004).

Key Features:
- lm_fit: OLS coefficients, unscaled standard errors and residual variances
- contrasts_fit: re-express a fit on a set of contrasts
- ebayes: moderated t and F statistics, with optional mean-variance trend
  and robust (outlier-resistant) prior estimation

References
----------
Smyth, G.K. (2004). Linear models and empirical Bayes methods for assessing
differential expression in microarray experiments. Statistical Applications
in Genetics and Molecular Biology 3, Article 3.

Phipson, B., Lee, S., Majewski, I.J., Alexander, W.S. and Smyth, G.K. (2016).
Robust hyperparameter estimation protects against hypervariable genes and
improves power to detect differential expression. Annals of Applied
Statistics 10, 946-963.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from scipy import special, stats

from celltype_propeller.utils.stats import trigamma_inverse

from .errors import DesignConfigError

logger = logging.getLogger(__name__)

MatrixLike = Union[pd.DataFrame, np.ndarray]

# Tail proportions used to winsorize log-variances in robust prior estimation
WINSOR_TAIL_P = (0.05, 0.1)


@dataclass
class LinearModelFit:
    """Per-row OLS fit of a matrix against a shared design.

    Attributes
    ----------
    coefficients : np.ndarray
        Estimated coefficients, shape (n_rows, n_coef)
    stdev_unscaled : np.ndarray
        Coefficient standard errors divided by sigma, shape (n_rows, n_coef)
    sigma : np.ndarray
        Residual standard deviation per row
    df_residual : np.ndarray
        Residual degrees of freedom per row
    amean : np.ndarray
        Mean of each row across samples
    cov_coefficients : np.ndarray
        Unscaled covariance of the coefficients, shape (n_coef, n_coef)
    row_names : List[str]
        Row labels (clusters)
    coef_names : List[str]
        Coefficient labels (design columns or contrasts)
    """

    coefficients: np.ndarray
    stdev_unscaled: np.ndarray
    sigma: np.ndarray
    df_residual: np.ndarray
    amean: np.ndarray
    cov_coefficients: np.ndarray
    row_names: List[str] = field(default_factory=list)
    coef_names: List[str] = field(default_factory=list)

    @property
    def n_rows(self) -> int:
        return self.coefficients.shape[0]

    def subset(self, coef: Sequence[int]) -> "LinearModelFit":
        """Return a fit restricted to the given coefficient columns."""
        coef = list(coef)
        return replace(
            self,
            coefficients=self.coefficients[:, coef],
            stdev_unscaled=self.stdev_unscaled[:, coef],
            cov_coefficients=self.cov_coefficients[np.ix_(coef, coef)],
            coef_names=[self.coef_names[i] for i in coef],
        )


@dataclass
class ModeratedFit:
    """Linear model fit with empirical Bayes moderated statistics.

    Attributes
    ----------
    fit : LinearModelFit
        The underlying fit
    df_prior : np.ndarray
        Prior degrees of freedom per row (constant unless robust)
    s2_prior : np.ndarray
        Prior variance per row (constant unless trend)
    s2_post : np.ndarray
        Posterior (moderated) residual variance per row
    df_total : np.ndarray
        Residual plus prior degrees of freedom, capped at the pooled df
    t : np.ndarray
        Moderated t-statistics, shape (n_rows, n_coef)
    p_value : np.ndarray
        Two-sided p-values for ``t``
    F : np.ndarray
        Moderated F-statistic testing all coefficients jointly
    F_p_value : np.ndarray
        p-values for ``F``
    """

    fit: LinearModelFit
    df_prior: np.ndarray
    s2_prior: np.ndarray
    s2_post: np.ndarray
    df_total: np.ndarray
    t: np.ndarray
    p_value: np.ndarray
    F: np.ndarray
    F_p_value: np.ndarray


def _as_matrix(y: MatrixLike) -> Tuple[np.ndarray, List[str]]:
    if isinstance(y, pd.DataFrame):
        return y.to_numpy(dtype=float), [str(i) for i in y.index]
    arr = np.asarray(y, dtype=float)
    if arr.ndim == 1:
        arr = arr[np.newaxis, :]
    return arr, [str(i) for i in range(arr.shape[0])]


def lm_fit(y: MatrixLike, design: MatrixLike) -> LinearModelFit:
    """Fit an OLS model to every row of ``y``.

    Parameters
    ----------
    y : pd.DataFrame or np.ndarray
        Response matrix, shape (n_rows, n_samples)
    design : pd.DataFrame or np.ndarray
        Design matrix, shape (n_samples, n_coef)

    Returns
    -------
    LinearModelFit
        Per-row coefficients and residual variances

    Raises
    ------
    DesignConfigError
        If the design does not match ``y`` or is not of full column rank.
    """
    Y, row_names = _as_matrix(y)
    if isinstance(design, pd.DataFrame):
        X = design.to_numpy(dtype=float)
        coef_names = [str(c) for c in design.columns]
    else:
        X = np.asarray(design, dtype=float)
        if X.ndim == 1:
            X = X[:, np.newaxis]
        coef_names = [str(i) for i in range(X.shape[1])]

    n_samples, n_coef = X.shape
    if Y.shape[1] != n_samples:
        raise DesignConfigError(
            f"Design has {n_samples} rows but data has {Y.shape[1]} samples"
        )
    if not np.all(np.isfinite(Y)):
        raise DesignConfigError("Response matrix contains non-finite values")
    if np.linalg.matrix_rank(X) < n_coef:
        raise DesignConfigError(
            f"Design matrix is not of full column rank: {coef_names}"
        )

    xtx_inv = np.linalg.inv(X.T @ X)
    coefficients = Y @ X @ xtx_inv
    residuals = Y - coefficients @ X.T

    df_residual = n_samples - n_coef
    rss = np.sum(residuals ** 2, axis=1)
    if df_residual > 0:
        sigma = np.sqrt(rss / df_residual)
    else:
        sigma = np.full(Y.shape[0], np.nan)

    stdev_unscaled = np.tile(np.sqrt(np.diag(xtx_inv)), (Y.shape[0], 1))

    return LinearModelFit(
        coefficients=coefficients,
        stdev_unscaled=stdev_unscaled,
        sigma=sigma,
        df_residual=np.full(Y.shape[0], float(df_residual)),
        amean=Y.mean(axis=1),
        cov_coefficients=xtx_inv,
        row_names=row_names,
        coef_names=coef_names,
    )


def contrasts_fit(
    fit: LinearModelFit,
    contrasts: Union[Sequence[float], np.ndarray],
    names: Optional[Sequence[str]] = None,
) -> LinearModelFit:
    """Re-express a fit in terms of contrasts of its coefficients.

    Parameters
    ----------
    fit : LinearModelFit
        Fit from :func:`lm_fit`
    contrasts : array-like
        Contrast vector (n_coef,) or matrix (n_coef, n_contrasts)
    names : Sequence[str], optional
        Names for the contrasts

    Returns
    -------
    LinearModelFit
        Fit whose coefficients are the contrasts
    """
    C = np.asarray(contrasts, dtype=float)
    if C.ndim == 1:
        C = C[:, np.newaxis]
    if C.shape[0] != fit.coefficients.shape[1]:
        raise DesignConfigError(
            f"Contrast has {C.shape[0]} entries but fit has "
            f"{fit.coefficients.shape[1]} coefficients"
        )

    cov = C.T @ fit.cov_coefficients @ C
    if names is None:
        names = [f"contrast{i + 1}" for i in range(C.shape[1])]

    return replace(
        fit,
        coefficients=fit.coefficients @ C,
        stdev_unscaled=np.tile(np.sqrt(np.diag(cov)), (fit.n_rows, 1)),
        cov_coefficients=cov,
        coef_names=list(names),
    )


def _trend_basis(covariate: np.ndarray) -> Optional[np.ndarray]:
    """Polynomial basis for the log-variance trend, or None if too few rows."""
    n = len(covariate)
    degree = 1 + int(n >= 3) + int(n >= 6) + int(n >= 30)
    degree = min(degree, len(np.unique(covariate)) - 1, n - 2)
    if degree < 1:
        return None
    centred = covariate - covariate.mean()
    scale = centred.std()
    if scale > 0:
        centred = centred / scale
    return np.vander(centred, degree + 1, increasing=True)


def _floor_variances(x: np.ndarray) -> np.ndarray:
    x = np.maximum(np.asarray(x, dtype=float), 0.0)
    m = np.median(x)
    if m == 0:
        logger.info("More than half of residual variances are exactly zero")
        m = 1.0
    return np.maximum(x, 1e-5 * m)


def _log_variance_trend(
    e: np.ndarray,
    covariate: Optional[np.ndarray],
) -> Tuple[np.ndarray, float]:
    """Fitted log-variance trend and residual variance of ``e``."""
    n = len(e)
    basis = _trend_basis(covariate) if covariate is not None else None
    if basis is None:
        emean = np.full(n, e.mean())
        evar = np.sum((e - e.mean()) ** 2) / (n - 1)
        return emean, evar

    beta, *_ = np.linalg.lstsq(basis, e, rcond=None)
    emean = basis @ beta
    evar = np.sum((e - emean) ** 2) / (n - basis.shape[1])
    return emean, evar


def fit_f_dist(
    x: np.ndarray,
    df1: Union[float, np.ndarray],
    covariate: Optional[np.ndarray] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """Moment estimation of a scaled F prior for sample variances.

    Parameters
    ----------
    x : np.ndarray
        Sample variances, one per row
    df1 : float or np.ndarray
        Degrees of freedom of the sample variances
    covariate : np.ndarray, optional
        If given, the prior variance follows a trend in this covariate

    Returns
    -------
    Tuple[np.ndarray, np.ndarray]
        (df_prior, s2_prior), each broadcast to one value per row
    """
    x = np.asarray(x, dtype=float)
    n = len(x)
    df1 = np.broadcast_to(np.asarray(df1, dtype=float), x.shape)

    if n == 1:
        return np.zeros(1), x.copy()

    x = _floor_variances(x)
    e = np.log(x) - special.digamma(df1 / 2) + np.log(df1 / 2)
    emean, evar = _log_variance_trend(e, covariate)
    evar = evar - np.mean(special.polygamma(1, df1 / 2))

    if evar > 0:
        df2 = 2 * trigamma_inverse(evar)[0]
        s20 = np.exp(emean + special.digamma(df2 / 2) - np.log(df2 / 2))
    else:
        df2 = np.inf
        s20 = np.full(n, x.mean()) if covariate is None else np.exp(emean)

    return np.full(n, df2), s20


def _f_sf(x: np.ndarray, dfn: np.ndarray, dfd: float) -> np.ndarray:
    if np.isinf(dfd):
        return stats.chi2.sf(x * dfn, dfn)
    return stats.f.sf(x, dfn, dfd)


def fit_f_dist_robust(
    x: np.ndarray,
    df1: Union[float, np.ndarray],
    covariate: Optional[np.ndarray] = None,
    winsor_tail_p: Tuple[float, float] = WINSOR_TAIL_P,
) -> Tuple[np.ndarray, np.ndarray]:
    """Robust estimation of a scaled F prior for sample variances.

    The log-variances are winsorized before the moments are matched, and
    rows whose variance is improbably large under the fitted prior receive
    a reduced prior df so they are shrunk less.

    Parameters
    ----------
    x : np.ndarray
        Sample variances, one per row
    df1 : float or np.ndarray
        Degrees of freedom of the sample variances
    covariate : np.ndarray, optional
        If given, the prior variance follows a trend in this covariate
    winsor_tail_p : Tuple[float, float]
        Lower and upper tail proportions to winsorize

    Returns
    -------
    Tuple[np.ndarray, np.ndarray]
        (df_prior, s2_prior), one value per row
    """
    x = np.asarray(x, dtype=float)
    n = len(x)
    if n < 3:
        return fit_f_dist(x, df1, covariate)

    df1 = np.broadcast_to(np.asarray(df1, dtype=float), x.shape)
    x = _floor_variances(x)
    e = np.log(x) - special.digamma(df1 / 2) + np.log(df1 / 2)

    basis = _trend_basis(covariate) if covariate is not None else None
    if basis is None:
        etrend = np.full(n, stats.trim_mean(e, winsor_tail_p[1]))
    else:
        beta, *_ = np.linalg.lstsq(basis, e, rcond=None)
        etrend = basis @ beta
    resid = e - etrend

    lo, hi = np.quantile(resid, [winsor_tail_p[0], 1 - winsor_tail_p[1]])
    winsorized = np.clip(resid, lo, hi)
    evar = winsorized.var(ddof=1) - np.mean(special.polygamma(1, df1 / 2))

    if evar > 0:
        df2 = 2 * trigamma_inverse(evar)[0]
        s20 = np.exp(etrend + winsorized.mean() + special.digamma(df2 / 2) - np.log(df2 / 2))
    else:
        df2 = np.inf
        s20 = np.exp(etrend + winsorized.mean())

    # Down-weight rows that look like outliers under the fitted prior
    fstat = x / s20
    tail_p = _f_sf(fstat, df1, df2)
    ranks = stats.rankdata(fstat)
    empirical_tail_p = (n - ranks + 0.5) / n
    prob_not_outlier = np.minimum(tail_p / empirical_tail_p, 1.0)

    df_prior = np.full(n, df2)
    if np.any(prob_not_outlier < 1):
        var_outlier = np.max(resid) ** 2 - np.mean(special.polygamma(1, df1 / 2))
        if var_outlier > 0:
            df2_outlier = 2 * trigamma_inverse(var_outlier)[0]
            if df2_outlier < df2:
                with np.errstate(invalid="ignore"):
                    shrunk = np.where(
                        prob_not_outlier > 0,
                        prob_not_outlier * df2 + (1 - prob_not_outlier) * df2_outlier,
                        df2_outlier,
                    )
                order = np.argsort(tail_p, kind="mergesort")
                ordered = shrunk[order]
                running_mean = np.cumsum(ordered) / np.arange(1, n + 1)
                imin = int(np.argmin(running_mean))
                ordered[: imin + 1] = running_mean[imin]
                df_prior = np.empty(n)
                df_prior[order] = np.maximum.accumulate(ordered)

    return df_prior, s20


def squeeze_var(
    var: np.ndarray,
    df: np.ndarray,
    df_prior: np.ndarray,
    var_prior: np.ndarray,
) -> np.ndarray:
    """Posterior variances given a scaled F prior.

    Parameters
    ----------
    var : np.ndarray
        Sample variances
    df : np.ndarray
        Residual degrees of freedom
    df_prior : np.ndarray
        Prior degrees of freedom (may be infinite)
    var_prior : np.ndarray
        Prior variances

    Returns
    -------
    np.ndarray
        Moderated variances
    """
    var, df, df_prior, var_prior = np.broadcast_arrays(
        np.asarray(var, dtype=float),
        np.asarray(df, dtype=float),
        np.asarray(df_prior, dtype=float),
        np.asarray(var_prior, dtype=float),
    )
    with np.errstate(invalid="ignore"):
        pooled = (df * var + df_prior * var_prior) / (df + df_prior)
    return np.where(np.isinf(df_prior), var_prior, pooled)


def _moderated_f(t: np.ndarray, cov: np.ndarray, df_total: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    sd = np.sqrt(np.diag(cov))
    cor = cov / np.outer(sd, sd)
    values, vectors = np.linalg.eigh(cor)
    keep = values > values.max() * 1e-8
    q = vectors[:, keep] / np.sqrt(values[keep])
    r = int(keep.sum())
    F = np.sum((t @ q) ** 2, axis=1) / r
    return F, stats.f.sf(F, r, df_total)


def ebayes(
    fit: LinearModelFit,
    robust: bool = False,
    trend: bool = False,
) -> ModeratedFit:
    """Empirical Bayes moderated t and F statistics.

    Parameters
    ----------
    fit : LinearModelFit
        Fit from :func:`lm_fit` or :func:`contrasts_fit`
    robust : bool
        Estimate the prior robustly against outlier variances
    trend : bool
        Let the prior variance depend on the row mean (``amean``)

    Returns
    -------
    ModeratedFit
        Moderated statistics

    Raises
    ------
    DesignConfigError
        If there are no residual degrees of freedom.
    """
    df = fit.df_residual
    if np.any(df <= 0):
        raise DesignConfigError(
            "No residual degrees of freedom: need more samples than design columns"
        )

    s2 = fit.sigma ** 2
    n_zero = int(np.sum(s2 == 0))
    if n_zero:
        logger.info(f"{n_zero} row(s) have zero residual variance; moderating toward the prior")

    covariate = fit.amean if trend else None
    if robust:
        df_prior, s2_prior = fit_f_dist_robust(s2, df, covariate=covariate)
    else:
        df_prior, s2_prior = fit_f_dist(s2, df, covariate=covariate)

    s2_post = squeeze_var(s2, df, df_prior, s2_prior)
    df_total = np.minimum(df + df_prior, np.sum(df))

    se = fit.stdev_unscaled * np.sqrt(s2_post)[:, np.newaxis]
    se = np.maximum(se, np.finfo(float).tiny)
    t = fit.coefficients / se
    p_value = 2 * stats.t.sf(np.abs(t), df_total[:, np.newaxis])

    F, F_p_value = _moderated_f(t, fit.cov_coefficients, df_total)

    logger.debug(
        f"Empirical Bayes prior: df={np.median(df_prior):.3g}, "
        f"s2={np.median(s2_prior):.3g}"
    )

    return ModeratedFit(
        fit=fit,
        df_prior=np.asarray(df_prior, dtype=float),
        s2_prior=np.asarray(s2_prior, dtype=float),
        s2_post=s2_post,
        df_total=df_total,
        t=t,
        p_value=p_value,
        F=F,
        F_p_value=F_p_value,
    )
