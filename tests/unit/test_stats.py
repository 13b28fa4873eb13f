"""Unit tests for statistical utilities."""

import pytest
import numpy as np
from scipy import special

from celltype_propeller.utils.stats import adjust_pvalues, trigamma_inverse


class TestAdjustPvalues:
    """Tests for multiple testing correction."""

    def test_bh_known_values(self):
        """Test Benjamini-Hochberg against hand-computed values."""
        p = np.array([0.01, 0.04, 0.03, 0.2])
        adjusted = adjust_pvalues(p, method="fdr_bh")
        # sorted: 0.01*4/1=0.04, 0.03*4/2=0.06, 0.04*4/3=0.0533, 0.2*4/4=0.2
        expected = np.array([0.04, 0.0533333, 0.0533333, 0.2])
        np.testing.assert_allclose(adjusted, expected, rtol=1e-5)

    def test_bh_not_below_raw(self):
        """Test adjusted values are never smaller than raw p-values."""
        rng = np.random.default_rng(0)
        p = rng.uniform(size=50)
        adjusted = adjust_pvalues(p)
        assert np.all(adjusted >= p - 1e-15)
        assert np.all(adjusted <= 1.0)

    def test_bh_monotone_in_raw_order(self):
        """Test adjusted values follow the order of raw p-values."""
        rng = np.random.default_rng(1)
        p = rng.uniform(size=30)
        adjusted = adjust_pvalues(p)
        order = np.argsort(p)
        assert np.all(np.diff(adjusted[order]) >= -1e-15)

    def test_nan_preserved(self):
        """Test NaN entries stay NaN and are not counted."""
        p = np.array([0.01, np.nan, 0.02])
        adjusted = adjust_pvalues(p)
        assert np.isnan(adjusted[1])
        np.testing.assert_allclose(adjusted[[0, 2]], [0.02, 0.02])

    def test_bonferroni(self):
        """Test Bonferroni caps at 1."""
        adjusted = adjust_pvalues([0.01, 0.5], method="bonferroni")
        np.testing.assert_allclose(adjusted, [0.02, 1.0])

    def test_holm(self):
        """Test Holm step-down."""
        adjusted = adjust_pvalues([0.01, 0.04, 0.03], method="holm")
        np.testing.assert_allclose(adjusted, [0.03, 0.06, 0.06])

    def test_empty(self):
        """Test empty input."""
        assert len(adjust_pvalues([])) == 0

    def test_unknown_method(self):
        """Test unknown method raises."""
        with pytest.raises(ValueError):
            adjust_pvalues([0.1], method="storey")


class TestTrigammaInverse:
    """Tests for the inverse trigamma function."""

    @pytest.mark.parametrize("y", [0.05, 0.5, 1.0, 3.0, 25.0])
    def test_inverts_trigamma(self, y):
        """Test trigamma(trigamma_inverse(x)) == x."""
        x = special.polygamma(1, y)
        result = trigamma_inverse(x)
        np.testing.assert_allclose(result, [y], rtol=1e-6)

    def test_negative_is_nan(self):
        """Test negative input gives NaN."""
        assert np.isnan(trigamma_inverse(-1.0)[0])
