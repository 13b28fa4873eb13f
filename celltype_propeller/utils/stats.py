"""Statistical utilities for celltype-propeller.

Provides multiple testing correction and the special-function helpers used
by the empirical Bayes variance moderation.
"""

from __future__ import annotations

from typing import Iterable, Union

import numpy as np
from scipy import special

ArrayLike = Union[Iterable[float], np.ndarray]

CORRECTION_METHODS = ("fdr_bh", "bonferroni", "holm", "none")


def adjust_pvalues(
    p_values: ArrayLike,
    method: str = "fdr_bh",
) -> np.ndarray:
    """Apply multiple testing correction.

    Parameters
    ----------
    p_values : ArrayLike
        Raw p-values. NaN entries are ignored and returned as NaN.
    method : str
        Correction method: "fdr_bh" (Benjamini-Hochberg), "bonferroni",
        "holm", or "none"

    Returns
    -------
    np.ndarray
        Adjusted p-values, in the input order.

    Raises
    ------
    ValueError
        If the method is unknown.
    """
    if method not in CORRECTION_METHODS:
        raise ValueError(f"Unknown correction method: {method}")

    p_values = np.asarray(list(p_values), dtype=float)
    n = len(p_values)

    if n == 0 or method == "none":
        return p_values

    valid_mask = ~np.isnan(p_values)
    valid_p = p_values[valid_mask]
    n_valid = len(valid_p)

    if n_valid == 0:
        return p_values

    # Stable order keeps ties in input order
    sorted_idx = np.argsort(valid_p, kind="mergesort")
    sorted_p = valid_p[sorted_idx]

    if method == "bonferroni":
        adjusted_sorted = sorted_p * n_valid

    elif method == "fdr_bh":
        ranks = np.arange(1, n_valid + 1)
        adjusted_sorted = sorted_p * n_valid / ranks
        adjusted_sorted = np.minimum.accumulate(adjusted_sorted[::-1])[::-1]

    else:
        # Holm step-down
        adjusted_sorted = sorted_p * (n_valid - np.arange(n_valid))
        adjusted_sorted = np.maximum.accumulate(adjusted_sorted)

    adjusted_valid = np.empty(n_valid)
    adjusted_valid[sorted_idx] = np.minimum(adjusted_sorted, 1.0)

    adjusted = np.full(n, np.nan)
    adjusted[valid_mask] = adjusted_valid
    return adjusted


def trigamma_inverse(x: ArrayLike, tol: float = 1e-8, max_iter: int = 50) -> np.ndarray:
    """Solve ``trigamma(y) = x`` for ``y`` by Newton iteration.

    Parameters
    ----------
    x : ArrayLike
        Positive target values of the trigamma function.
    tol : float
        Relative convergence tolerance.
    max_iter : int
        Maximum number of Newton steps.

    Returns
    -------
    np.ndarray
        Inverse trigamma values. Negative inputs give NaN.
    """
    x = np.atleast_1d(np.asarray(x, dtype=float))
    y = np.full_like(x, np.nan)

    large = x > 1e7
    small = (x < 1e-6) & (x >= 0)
    y[large] = 1.0 / np.sqrt(x[large])
    y[small] = 1.0 / x[small]

    todo = (x >= 1e-6) & (x <= 1e7)
    if not np.any(todo):
        return y

    target = x[todo]
    guess = 0.5 + 1.0 / target
    for _ in range(max_iter):
        tri = special.polygamma(1, guess)
        step = tri * (1.0 - tri / target) / special.polygamma(2, guess)
        guess = guess + step
        if np.max(-step / guess) < tol:
            break

    y[todo] = guess
    return y
