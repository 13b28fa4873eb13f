"""Unit tests for row-wise linear models and empirical Bayes moderation."""

import pytest
import numpy as np
import pandas as pd
from scipy import stats

from celltype_propeller.core.proportions import (
    DesignConfigError,
    contrasts_fit,
    ebayes,
    fit_f_dist,
    fit_f_dist_robust,
    lm_fit,
    squeeze_var,
)


@pytest.fixture
def two_group_design() -> np.ndarray:
    return np.array([[1, 0], [1, 0], [0, 1], [0, 1]], dtype=float)


@pytest.fixture
def random_rows() -> np.ndarray:
    rng = np.random.default_rng(11)
    return rng.normal(size=(40, 6))


class TestLmFit:
    """Tests for lm_fit."""

    def test_group_means(self, two_group_design):
        """Test a no-intercept indicator design gives group means."""
        y = np.array([[1.0, 3.0, 10.0, 14.0]])
        fit = lm_fit(y, two_group_design)
        np.testing.assert_allclose(fit.coefficients, [[2.0, 12.0]])
        # Residuals (-1, 1, -2, 2) over 2 df
        np.testing.assert_allclose(fit.sigma ** 2, [5.0])
        np.testing.assert_allclose(fit.df_residual, [2.0])
        np.testing.assert_allclose(fit.stdev_unscaled, [[np.sqrt(0.5), np.sqrt(0.5)]])

    def test_dataframe_names(self, two_group_design):
        """Test row and coefficient names come from DataFrame labels."""
        y = pd.DataFrame([[1.0, 2.0, 3.0, 4.0]], index=["c0"])
        design = pd.DataFrame(two_group_design, columns=["A", "B"])
        fit = lm_fit(y, design)
        assert fit.row_names == ["c0"]
        assert fit.coef_names == ["A", "B"]

    def test_shape_mismatch(self, two_group_design):
        """Test design rows must match samples."""
        with pytest.raises(DesignConfigError):
            lm_fit(np.ones((2, 3)), two_group_design)

    def test_rank_deficient(self):
        """Test a design without full column rank raises."""
        design = np.array([[1, 1], [1, 1], [1, 1]], dtype=float)
        with pytest.raises(DesignConfigError):
            lm_fit(np.ones((1, 3)), design)

    def test_non_finite(self, two_group_design):
        """Test infinite responses raise."""
        with pytest.raises(DesignConfigError):
            lm_fit(np.array([[1.0, np.inf, 2.0, 3.0]]), two_group_design)


class TestContrastsFit:
    """Tests for contrasts_fit."""

    def test_difference_of_means(self, two_group_design):
        """Test contrast (1, -1) gives the difference of group means."""
        y = np.array([[1.0, 3.0, 10.0, 14.0]])
        fit = contrasts_fit(lm_fit(y, two_group_design), [1, -1])
        np.testing.assert_allclose(fit.coefficients, [[-10.0]])
        np.testing.assert_allclose(fit.stdev_unscaled, [[1.0]])

    def test_wrong_length(self, two_group_design):
        """Test contrast length must match coefficients."""
        fit = lm_fit(np.ones((1, 4)) + np.arange(4), two_group_design)
        with pytest.raises(DesignConfigError):
            contrasts_fit(fit, [1, -1, 0])


class TestFitFDist:
    """Tests for prior estimation."""

    def test_recovers_prior(self):
        """Test moment estimates are close for simulated scaled-F variances."""
        rng = np.random.default_rng(5)
        n, d, d0, s0 = 4000, 4.0, 8.0, 0.5
        true_var = s0 * d0 / rng.chisquare(d0, size=n)
        s2 = true_var * rng.chisquare(d, size=n) / d
        df_prior, s2_prior = fit_f_dist(s2, d)
        assert df_prior[0] == pytest.approx(d0, rel=0.3)
        assert s2_prior[0] == pytest.approx(s0, rel=0.15)

    def test_equal_variances_infinite_df(self):
        """Test identical variances give infinite prior df."""
        df_prior, s2_prior = fit_f_dist(np.full(10, 0.3), 3.0)
        assert np.all(np.isinf(df_prior))
        np.testing.assert_allclose(s2_prior, 0.3)

    def test_single_row(self):
        """Test a single variance gives zero prior df."""
        df_prior, s2_prior = fit_f_dist(np.array([0.7]), 2.0)
        assert df_prior[0] == 0
        assert s2_prior[0] == pytest.approx(0.7)

    def test_trend_prior_follows_covariate(self):
        """Test the trended prior increases with the covariate."""
        rng = np.random.default_rng(9)
        covariate = np.linspace(-3, 3, 300)
        s2 = np.exp(covariate) * rng.chisquare(4, size=300) / 4
        _, s2_prior = fit_f_dist(s2, 4.0, covariate=covariate)
        assert s2_prior[-1] > s2_prior[0]

    def test_robust_shrinks_outliers_less(self):
        """Test hypervariable rows get a smaller prior df."""
        rng = np.random.default_rng(13)
        true_var = 4.0 / rng.chisquare(4, size=200)
        s2 = true_var * rng.chisquare(4, size=200) / 4
        s2[:3] = 200.0
        df_prior, _ = fit_f_dist_robust(s2, 4.0)
        assert df_prior[0] <= np.median(df_prior)
        assert np.all(df_prior >= 0)

    def test_robust_falls_back_for_few_rows(self):
        """Test robust estimation with two rows matches the plain estimate."""
        s2 = np.array([0.2, 0.4])
        plain = fit_f_dist(s2, 2.0)
        robust = fit_f_dist_robust(s2, 2.0)
        np.testing.assert_allclose(robust[1], plain[1])


class TestSqueezeVar:
    """Tests for squeeze_var."""

    def test_weighted_average(self):
        """Test posterior is the df-weighted average."""
        out = squeeze_var([1.0], [2.0], [6.0], [3.0])
        assert out[0] == pytest.approx((2 * 1 + 6 * 3) / 8)

    def test_infinite_prior_df(self):
        """Test infinite prior df returns the prior variance."""
        out = squeeze_var([1.0, 5.0], [2.0, 2.0], [np.inf, np.inf], [3.0, 3.0])
        np.testing.assert_allclose(out, [3.0, 3.0])


class TestEbayes:
    """Tests for ebayes."""

    def test_posterior_between_sample_and_prior(self, two_group_design):
        """Test each posterior variance lies between its sample and prior variance."""
        y = np.array([[1.0, 3.0, 10.0, 14.0], [2.0, 2.5, 3.0, 3.2], [0.0, 1.0, 0.5, 0.7]])
        fit = contrasts_fit(lm_fit(y, two_group_design), [1, -1])
        moderated = ebayes(fit)
        s2 = fit.sigma ** 2
        lower = np.minimum(s2, moderated.s2_prior)
        upper = np.maximum(s2, moderated.s2_prior)
        assert np.all(moderated.s2_post >= lower - 1e-12)
        assert np.all(moderated.s2_post <= upper + 1e-12)
        assert np.all((moderated.p_value > 0) & (moderated.p_value <= 1))

    def test_p_values_from_t(self, random_rows):
        """Test p-values are two-sided t tail areas on df_total."""
        design = np.column_stack([np.repeat([1, 0], 3), np.repeat([0, 1], 3)]).astype(float)
        fit = contrasts_fit(lm_fit(random_rows, design), [1, -1])
        moderated = ebayes(fit, robust=True, trend=True)
        expected = 2 * stats.t.sf(np.abs(moderated.t[:, 0]), moderated.df_total)
        np.testing.assert_allclose(moderated.p_value[:, 0], expected)
        assert np.all(moderated.df_total <= 4 * len(random_rows))

    def test_single_coef_f_equals_t_squared(self, random_rows):
        """Test F for one coefficient is t squared with matching p-value."""
        design = np.column_stack([np.ones(6), np.repeat([0, 1], 3)]).astype(float)
        moderated = ebayes(lm_fit(random_rows, design).subset([1]))
        np.testing.assert_allclose(moderated.F, moderated.t[:, 0] ** 2)
        np.testing.assert_allclose(moderated.F_p_value, moderated.p_value[:, 0])

    def test_zero_residual_df(self):
        """Test a saturated design raises."""
        design = np.eye(2)
        fit = lm_fit(np.array([[1.0, 2.0]]), design)
        with pytest.raises(DesignConfigError):
            ebayes(fit)

    def test_zero_variance_row(self, two_group_design):
        """Test a row with zero residual variance gets finite statistics."""
        y = np.array([[1.0, 1.0, 1.0, 1.0], [0.1, 0.4, 0.9, 1.5], [2.0, 2.2, 2.1, 2.6]])
        moderated = ebayes(contrasts_fit(lm_fit(y, two_group_design), [1, -1]))
        assert np.all(np.isfinite(moderated.t))
        assert moderated.p_value[0, 0] == pytest.approx(1.0)
