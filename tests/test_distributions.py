"""
Tests for conjugax.core.distributions.
"""

import math

import jax
import jax.numpy as jnp
import pytest

from conjugax.core.distributions import Beta, Normal, SkewNormal
from conjugax.errors import InvalidParameter


class TestNormal:
    def test_value_equality(self):
        assert Normal(1, 2) == Normal(1.0, 2.0)
        assert hash(Normal(1, 2)) == hash(Normal(1.0, 2.0))
        assert isinstance(Normal(1, 2).mean, float)

    @pytest.mark.parametrize("sd", [0.0, -1.0, float("nan"), float("inf")])
    def test_rejects_bad_sd(self, sd):
        with pytest.raises(InvalidParameter):
            Normal(0.0, sd)

    def test_rejects_non_finite_mean(self):
        with pytest.raises(InvalidParameter):
            Normal(float("inf"), 1.0)

    def test_credible_interval(self):
        lower, upper = Normal(0.0, 1.0).credible_interval(0.95)
        assert lower == pytest.approx(-1.959963985, abs=1e-6)
        assert upper == pytest.approx(1.959963985, abs=1e-6)

        lower, upper = Normal(7.5, math.sqrt(2.0)).credible_interval(0.9)
        assert (lower + upper) / 2 == pytest.approx(7.5)
        assert upper - lower == pytest.approx(2 * 1.644853627 * math.sqrt(2.0), abs=1e-6)

    def test_credible_interval_rejects_bad_level(self):
        with pytest.raises(InvalidParameter):
            Normal(0.0, 1.0).credible_interval(1.0)

    def test_sample_moments(self):
        samples = Normal(3.0, 0.5).sample(jax.random.PRNGKey(0), num_samples=100_000)
        assert samples.shape == (100_000,)
        assert float(jnp.mean(samples)) == pytest.approx(3.0, abs=0.01)
        assert float(jnp.std(samples)) == pytest.approx(0.5, abs=0.01)


class TestBeta:
    @pytest.mark.parametrize("alpha, beta", [(0.0, 1.0), (1.0, -2.0), (float("nan"), 1.0)])
    def test_rejects_bad_shapes(self, alpha, beta):
        with pytest.raises(InvalidParameter):
            Beta(alpha, beta)

    def test_moments(self):
        dist = Beta(2.0, 3.0)
        assert dist.mean_() == pytest.approx(0.4)
        assert dist.variance_() == pytest.approx(0.04)

    def test_ppf_of_uniform_is_identity(self):
        for q in [0.01, 0.3, 0.5, 0.77]:
            assert float(Beta(1.0, 1.0).ppf(q)) == pytest.approx(q, abs=1e-8)

    @pytest.mark.parametrize("alpha, beta", [(2.0, 5.0), (17.0, 21.0), (0.5, 0.5)])
    def test_ppf_inverts_cdf(self, alpha, beta):
        dist = Beta(alpha, beta)
        q = jnp.array([0.001, 0.025, 0.25, 0.5, 0.9, 0.999])
        x = dist.ppf(q)
        assert jnp.all((x > 0) & (x < 1))
        assert jnp.max(jnp.abs(dist.cdf(x) - q)) <= 1e-8

    def test_ppf_end_points(self):
        dist = Beta(3.0, 4.0)
        assert float(dist.ppf(0.0)) == 0.0
        assert float(dist.ppf(1.0)) == 1.0

    def test_ppf_symmetric_median(self):
        assert float(Beta(9.0, 9.0).ppf(0.5)) == pytest.approx(0.5, abs=1e-8)

    def test_ppf_rejects_out_of_range(self):
        with pytest.raises(InvalidParameter):
            Beta(2.0, 2.0).ppf(1.5)

    def test_credible_interval(self):
        lower, upper = Beta(1.0, 1.0).credible_interval(0.9)
        assert lower == pytest.approx(0.05, abs=1e-7)
        assert upper == pytest.approx(0.95, abs=1e-7)

    def test_pdf_zero_outside_support(self):
        assert float(Beta(2.0, 2.0).pdf(1.5)) == 0.0


class TestSkewNormal:
    def test_zero_skew_matches_normal(self):
        x = jnp.linspace(-5.0, 5.0, 11)
        assert jnp.allclose(SkewNormal(1.0, 2.0, 0.0).logpdf(x), Normal(1.0, 2.0).logpdf(x), atol=1e-12)

    def test_rejects_bad_scale(self):
        with pytest.raises(InvalidParameter):
            SkewNormal(0.0, 0.0, 1.0)

    def test_moments_match_samples(self):
        dist = SkewNormal(0.0, 1.0, 4.0)
        samples = dist.sample(jax.random.PRNGKey(1), num_samples=200_000)
        assert float(jnp.mean(samples)) == pytest.approx(dist.mean_(), abs=0.01)
        assert float(jnp.var(samples)) == pytest.approx(dist.variance_(), abs=0.01)

    def test_positive_skew_shifts_mass_right(self):
        dist = SkewNormal(0.0, 1.0, 3.0)
        assert dist.mean_() > 0
        assert float(dist.pdf(1.0)) > float(dist.pdf(-1.0))
