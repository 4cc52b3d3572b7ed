"""Tests for the multinomial logit likelihood."""

import numpy as np
import pytest
from scipy.special import log_softmax

from panelmnl import (
    ChoiceLayout,
    DimensionMismatch,
    InvalidLayout,
    choice_probabilities,
    loglik,
    loglik_brand,
    loglik_contributions,
    loglik_gradient,
    simulate_panel,
    sum_to_zero,
    utilities,
)
from panelmnl.likelihood import log_probabilities, period_logsumexp


def brute_force_loglik(layout, beta, gamma=None):
    """Reference likelihood looping over observations and period blocks."""
    total = 0.0
    for i in range(layout.N):
        t = layout.obs_period[i]
        s, j = layout.starts[t], layout.sizes[t]
        u = layout.X[s : s + j] @ beta
        if gamma is not None:
            u = u + gamma[layout.brand[s : s + j]]
        total += log_softmax(u)[layout.obs_choice[i]]
    return total


class TestScenarios:
    """Test hand-computed single-period cases."""

    def test_equal_utilities(self):
        """Test two indistinguishable alternatives give log(0.5)."""
        layout = ChoiceLayout([[0.0], [0.0]], J=[2], xstart=[1], t=[1], Y=[1])
        assert loglik([0.0], layout) == pytest.approx(np.log(0.5))
        assert loglik([0.0], layout) == pytest.approx(-0.6931, abs=1e-4)

    def test_near_certain_choice(self):
        """Test that a dominant alternative has log-probability close to zero."""
        layout = ChoiceLayout([[10.0], [0.0]], J=[2], xstart=[1], t=[1], Y=[1])
        expected = 10.0 - np.log(np.exp(10.0) + 1.0)
        assert loglik([1.0], layout) == pytest.approx(expected, rel=1e-10)
        assert loglik([1.0], layout) == pytest.approx(-4.54e-5, rel=1e-2)

    def test_large_utilities_are_finite(self):
        """Test that utilities far beyond exp overflow stay finite."""
        layout = ChoiceLayout([[1000.0], [0.0]], J=[2], xstart=[1], t=[1], Y=[2])
        assert loglik([1.0], layout) == pytest.approx(-1000.0)

        layout = ChoiceLayout([[1000.0], [999.0]], J=[2], xstart=[1], t=[1], Y=[1])
        assert loglik([1.0], layout) == pytest.approx(-np.log1p(np.exp(-1.0)))

    def test_multiple_observations_sum(self):
        """Test that the total is the sum of per-observation terms."""
        layout = ChoiceLayout([[0.0], [0.0]], J=[2], xstart=[1], t=[1, 1, 1], Y=[1, 2, 1])
        assert loglik([0.0], layout) == pytest.approx(3 * np.log(0.5))
        assert np.allclose(loglik_contributions([0.0], layout), np.log(0.5))


class TestSumToZero:
    """Test the brand-effect reparameterization."""

    def test_two_brands(self):
        """Test that the first brand absorbs the negated sum."""
        assert np.array_equal(sum_to_zero([2.0]), [-2.0, 2.0])
        assert sum_to_zero([2.0]).sum() == 0.0

    def test_order_preserved(self):
        """Test that free effects keep their order after the first brand."""
        gamma = sum_to_zero([0.5, -1.0, 2.0])
        assert np.allclose(gamma, [-1.5, 0.5, -1.0, 2.0])

    def test_sums_to_zero(self):
        """Test that random free effects always produce a zero-sum vector."""
        rng = np.random.default_rng(0)
        for B in range(2, 12):
            gamma = sum_to_zero(rng.normal(scale=10, size=B - 1))
            assert gamma.shape == (B,)
            assert abs(gamma.sum()) < 1e-9

    def test_single_brand(self):
        """Test that one brand has a zero intercept."""
        assert np.array_equal(sum_to_zero([]), [0.0])


class TestLikelihood:
    """Test the vectorized likelihood against a reference loop."""

    def test_matches_reference(self):
        """Test the plain variant on a simulated panel."""
        layout, beta, _ = simulate_panel(N=300, T=20, K=3, seed=1)
        assert loglik(beta, layout) == pytest.approx(brute_force_loglik(layout, beta))

    def test_brand_matches_reference(self):
        """Test the brand-intercept variant on a simulated panel."""
        layout, beta, gamma_raw = simulate_panel(N=300, T=20, K=3, B=4, seed=2)
        expected = brute_force_loglik(layout, beta, sum_to_zero(gamma_raw))
        assert loglik_brand(beta, gamma_raw, layout) == pytest.approx(expected)

    def test_zero_brand_effects(self):
        """Test that zero brand effects reduce to the plain variant."""
        layout, beta, _ = simulate_panel(N=100, T=10, K=2, B=3, seed=3)
        assert loglik_brand(beta, np.zeros(2), layout) == pytest.approx(loglik(beta, layout))

    def test_plain_variant_ignores_brands(self):
        """Test that loglik does not use brands carried by the layout."""
        layout, beta, _ = simulate_panel(N=100, T=10, K=2, B=3, seed=4)
        assert loglik(beta, layout) == pytest.approx(brute_force_loglik(layout, beta))

    def test_log_probabilities_non_positive(self):
        """Test that every contribution is a valid log-probability."""
        layout, beta, gamma_raw = simulate_panel(N=200, T=15, K=2, B=3, seed=5)
        contrib = loglik_contributions(beta, layout, gamma_raw)
        assert contrib.shape == (layout.N,)
        assert np.all(contrib <= 0)

    def test_period_shift_invariance(self):
        """Test that shifting one period's utilities leaves the likelihood unchanged."""
        layout, beta, _ = simulate_panel(N=200, T=10, K=2, seed=6)
        u = utilities(beta, layout)
        base = log_probabilities(u, layout)
        for period, shift in [(0, 5.0), (3, -250.0), (9, 1e4)]:
            shifted = u + np.where(layout.row_period == period, shift, 0.0)
            assert np.allclose(log_probabilities(shifted, layout), base)

    def test_global_brand_shift_invariance(self):
        """Test that adding a constant to every brand effect changes nothing."""
        layout, beta, gamma_raw = simulate_panel(N=200, T=10, K=2, B=3, seed=7)
        u = utilities(beta, layout, gamma_raw)
        assert np.allclose(
            log_probabilities(u + 3.0, layout), log_probabilities(u, layout)
        )

    def test_period_logsumexp_shape(self):
        """Test that utilities must cover every arena row."""
        layout, beta, _ = simulate_panel(N=50, T=5, K=2, seed=8)
        assert period_logsumexp(utilities(beta, layout), layout).shape == (layout.T,)
        with pytest.raises(DimensionMismatch):
            period_logsumexp(np.zeros(layout.M + 1), layout)

    def test_probabilities_sum_to_one(self):
        """Test that choice probabilities sum to one within each period."""
        layout, beta, gamma_raw = simulate_panel(N=50, T=12, K=2, B=3, seed=9)
        probs = choice_probabilities(beta, layout, gamma_raw)
        totals = np.bincount(layout.row_period, weights=probs, minlength=layout.T)
        assert np.allclose(totals, 1.0)
        assert np.all(probs > 0)


class TestParameterErrors:
    """Test parameter dimension checks."""

    def test_beta_length(self):
        """Test that beta must have length K."""
        layout, _, _ = simulate_panel(N=20, T=5, K=3, seed=0)
        with pytest.raises(DimensionMismatch, match="beta must have length 3"):
            loglik(np.zeros(2), layout)

    def test_beta_matrix(self):
        """Test that beta must be a vector."""
        layout, _, _ = simulate_panel(N=20, T=5, K=2, seed=0)
        with pytest.raises(DimensionMismatch, match="one-dimensional"):
            loglik(np.zeros((2, 1)), layout)

    def test_gamma_raw_length(self):
        """Test that gamma_raw must have length B-1."""
        layout, beta, _ = simulate_panel(N=20, T=5, K=2, B=4, seed=0)
        with pytest.raises(DimensionMismatch, match="gamma_raw must have length 3"):
            loglik_brand(beta, np.zeros(4), layout)

    def test_brand_variant_needs_brands(self):
        """Test that loglik_brand rejects layouts without brands."""
        layout, beta, _ = simulate_panel(N=20, T=5, K=2, seed=0)
        with pytest.raises(InvalidLayout, match="brand assignment"):
            loglik_brand(beta, [0.0], layout)

    def test_gamma_raw_without_brands(self):
        """Test that brand effects cannot be applied to an unbranded layout."""
        layout, beta, _ = simulate_panel(N=20, T=5, K=2, seed=0)
        with pytest.raises(InvalidLayout):
            utilities(beta, layout, gamma_raw=[0.0])


class TestGradient:
    """Test the analytical gradient against finite differences."""

    @staticmethod
    def numerical_gradient(f, x, eps=1e-6):
        grad = np.zeros_like(x)
        for k in range(x.size):
            step = np.zeros_like(x)
            step[k] = eps
            grad[k] = (f(x + step) - f(x - step)) / (2 * eps)
        return grad

    def test_plain_gradient(self):
        """Test d loglik / d beta."""
        layout, _, _ = simulate_panel(N=300, T=20, K=3, seed=10)
        beta = np.array([0.3, -0.7, 1.1])
        analytic = loglik_gradient(beta, layout)
        numeric = self.numerical_gradient(lambda b: loglik(b, layout), beta)
        assert analytic.shape == (3,)
        assert np.allclose(analytic, numeric, rtol=1e-4, atol=1e-4)

    def test_brand_gradient(self):
        """Test the gradient with respect to beta and gamma_raw."""
        layout, _, _ = simulate_panel(N=300, T=20, K=2, B=4, seed=11)
        params = np.array([0.4, -0.2, 0.5, -0.3, 0.1])

        def f(p):
            return loglik_brand(p[:2], p[2:], layout)

        analytic = loglik_gradient(params[:2], layout, params[2:])
        numeric = self.numerical_gradient(f, params)
        assert analytic.shape == (5,)
        assert np.allclose(analytic, numeric, rtol=1e-4, atol=1e-4)
