"""
Tests for the closed-form conjugate updates and models.
"""

import math

import jax.numpy as jnp
import pytest

from conjugax.conjugate.models import BetaBinomial, NormalNormal, beta_binomial_update, normal_normal_update
from conjugax.core.distributions import Beta, Normal
from conjugax.errors import InvalidParameter


class TestNormalNormalUpdate:
    def test_concrete_scenario(self):
        post = normal_normal_update(mu0=10.0, sigma0=2.0, mu_l=5.0, sigma_l=2.0)
        assert isinstance(post, Normal)
        assert post.sd ** 2 == pytest.approx(2.0, abs=1e-12)
        assert post.mean == pytest.approx(7.5, abs=1e-12)
        assert post.sd == pytest.approx(1.414213562, abs=1e-9)

    @pytest.mark.parametrize(
        "sigma0, sigma_l", [(2.0, 2.0), (0.1, 30.0), (5.0, 0.01), (1e3, 1e-3), (0.7, 0.7)]
    )
    def test_precisions_add(self, sigma0, sigma_l):
        post = normal_normal_update(1.0, sigma0, -3.0, sigma_l)
        expected = 1 / sigma0 ** 2 + 1 / sigma_l ** 2
        assert 1 / post.sd ** 2 == pytest.approx(expected, rel=1e-9, abs=1e-9)

    def test_vague_prior_defers_to_likelihood(self):
        post = normal_normal_update(10.0, 1e6, 5.0, 2.0)
        assert post.mean == pytest.approx(5.0, abs=1e-6)

    def test_vague_likelihood_defers_to_prior(self):
        post = normal_normal_update(10.0, 2.0, 5.0, 1e6)
        assert post.mean == pytest.approx(10.0, abs=1e-6)

    def test_posterior_mean_between_sources(self):
        post = normal_normal_update(0.0, 1.0, 4.0, 3.0)
        assert 0.0 < post.mean < 4.0
        # the more precise source pulls harder
        assert post.mean < 2.0

    @pytest.mark.parametrize("sigma0, sigma_l", [(0.0, 1.0), (-1.0, 1.0), (1.0, 0.0), (1.0, float("nan"))])
    def test_rejects_non_positive_scales(self, sigma0, sigma_l):
        with pytest.raises(InvalidParameter):
            normal_normal_update(0.0, sigma0, 0.0, sigma_l)

    @pytest.mark.parametrize("sigma0", [1e-200, 1e200])
    def test_rejects_degenerate_intermediate_variance(self, sigma0):
        with pytest.raises(InvalidParameter):
            normal_normal_update(0.0, sigma0, 0.0, 1.0)

    def test_credible_interval(self):
        post = normal_normal_update(10.0, 2.0, 5.0, 2.0)
        lower, upper = post.credible_interval(0.95)
        assert lower == pytest.approx(7.5 - 1.959963985 * math.sqrt(2.0), abs=1e-6)
        assert upper == pytest.approx(7.5 + 1.959963985 * math.sqrt(2.0), abs=1e-6)


class TestBetaBinomialUpdate:
    def test_concrete_scenario(self):
        post = beta_binomial_update(a0=9, b0=9, n=20, h=8)
        assert post == Beta(17.0, 21.0)
        assert post.mean_() == pytest.approx(17 / 38)
        assert post.mean_() == pytest.approx(0.4474, abs=1e-4)

    @pytest.mark.parametrize("n, h", [(0, 0), (1, 1), (10, 3), (20, 8), (100, 100), (7, 0)])
    def test_uniform_prior_gives_laplace_rule(self, n, h):
        post = beta_binomial_update(1.0, 1.0, n, h)
        assert post.mean_() == pytest.approx((h + 1) / (n + 2), rel=1e-12)

    @pytest.mark.parametrize(
        "a0, b0, n, h", [(9, 9, 20, 8), (2, 8, 10, 9), (1, 3, 5, 0), (5, 1, 3, 3), (0.5, 0.5, 50, 17)]
    )
    def test_posterior_mean_between_prior_mean_and_rate(self, a0, b0, n, h):
        prior_mean = a0 / (a0 + b0)
        rate = h / n
        post_mean = beta_binomial_update(a0, b0, n, h).mean_()
        assert min(prior_mean, rate) < post_mean < max(prior_mean, rate)

    @pytest.mark.parametrize(
        "a0, b0, n, h",
        [(0, 1, 10, 3), (1, -1, 10, 3), (1, 1, 10, -1), (1, 1, 10, 11), (1, 1, -1, 0), (1, 1, float("nan"), 0)],
    )
    def test_rejects_invalid_input(self, a0, b0, n, h):
        with pytest.raises(InvalidParameter):
            beta_binomial_update(a0, b0, n, h)

    def test_credible_interval_brackets_mean(self):
        post = beta_binomial_update(9, 9, 20, 8)
        lower, upper = post.credible_interval(0.95)
        assert 0 < lower < post.mean_() < upper < 1
        assert float(post.cdf(lower)) == pytest.approx(0.025, abs=1e-8)
        assert float(post.cdf(upper)) == pytest.approx(0.975, abs=1e-8)


class TestNormalNormalModel:
    def test_raw_samples_match_aggregate_update(self):
        # three draws with sd 2*sqrt(3) aggregate to one observation of 5.0 with sd 2
        model = NormalNormal(mu0=10.0, sigma0=2.0, sigma=2 * math.sqrt(3))
        post = model.posterior_params(jnp.array([4.0, 5.0, 6.0]))
        assert post.mu0 == pytest.approx(7.5, abs=1e-9)
        assert post.sigma0 == pytest.approx(math.sqrt(2.0), abs=1e-9)
        assert post.sigma == model.sigma

    def test_stats_match_raw_samples(self):
        model = NormalNormal(mu0=0.0, sigma0=1.0, sigma=1.5)
        x = jnp.array([0.3, -1.2, 2.2, 0.9])
        from_data = model.posterior_params(x)
        from_stats = model.posterior_from_stats((4, float(jnp.sum(x))))
        assert from_data.mu0 == pytest.approx(from_stats.mu0)
        assert from_data.sigma0 == pytest.approx(from_stats.sigma0)

    def test_no_data_returns_prior(self):
        model = NormalNormal(mu0=1.0, sigma0=2.0, sigma=3.0)
        assert model.posterior_params(jnp.array([])) is model

    def test_sequential_updates_match_batch(self):
        model = NormalNormal(mu0=0.0, sigma0=5.0, sigma=1.0)
        x1 = jnp.array([1.0, 2.0, 1.5])
        x2 = jnp.array([0.5, 2.5])
        sequential = model.posterior_params(x1).posterior_params(x2)
        batch = model.posterior_params(jnp.concatenate([x1, x2]))
        assert sequential.mu0 == pytest.approx(batch.mu0, abs=1e-9)
        assert sequential.sigma0 == pytest.approx(batch.sigma0, abs=1e-9)

    def test_log_marginal_likelihood_single_point(self):
        model = NormalNormal(mu0=1.0, sigma0=2.0, sigma=1.0)
        expected = Normal(1.0, math.sqrt(5.0)).logpdf(3.0)
        assert float(model.log_marginal_likelihood(jnp.array([3.0]))) == pytest.approx(float(expected), abs=1e-9)

    def test_predictive_logpdf(self):
        model = NormalNormal(mu0=10.0, sigma0=2.0, sigma=2 * math.sqrt(3))
        data = jnp.array([4.0, 5.0, 6.0])
        expected = Normal(7.5, math.sqrt(2.0 + 12.0)).logpdf(6.0)
        assert float(model.predictive_logpdf(6.0, data)) == pytest.approx(float(expected), abs=1e-9)

    def test_summary_and_dict_moments(self):
        model = NormalNormal(mu0=10.0, sigma0=2.0, sigma=2.0)
        assert model.mean_() == {"mu": 10.0}
        assert model.variance_() == {"mu": pytest.approx(4.0)}
        result = model.posterior(jnp.array([5.0]), level=0.9)
        assert result.exact
        summary = result.summary(quantiles=(0.5,))
        assert summary.mean == pytest.approx(7.5)
        assert summary.quantiles[0.5] == pytest.approx(7.5)
        assert summary.level == 0.9


class TestBetaBinomialModel:
    def test_rows_are_pooled(self):
        model = BetaBinomial(alpha=9.0, beta=9.0)
        post = model.posterior_params(jnp.array([[3, 10], [5, 10]]))
        assert (post.alpha, post.beta) == (17.0, 21.0)
        from_stats = model.posterior_from_stats((20, 8))
        assert (from_stats.alpha, from_stats.beta) == (17.0, 21.0)

    def test_rejects_rows_with_too_many_successes(self):
        with pytest.raises(InvalidParameter):
            BetaBinomial(1.0, 1.0).posterior_params(jnp.array([[11, 10]]))

    def test_uniform_prior_marginal_likelihood(self):
        # every success count in n trials is equally likely a priori: 1 / (n + 1)
        model = BetaBinomial(alpha=1.0, beta=1.0)
        for h in [0, 3, 10]:
            lml = model.log_marginal_likelihood(jnp.array([[h, 10]]))
            assert float(jnp.exp(lml)) == pytest.approx(1 / 11, rel=1e-9)

    def test_marginal_likelihood_matches_lgamma(self):
        def log_beta(a, b):
            return math.lgamma(a) + math.lgamma(b) - math.lgamma(a + b)

        model = BetaBinomial(alpha=2.5, beta=0.7)
        expected = math.log(math.comb(12, 5)) + log_beta(7.5, 7.7) - log_beta(2.5, 0.7)
        lml = model.log_marginal_likelihood(jnp.array([[5, 12]]))
        assert float(lml) == pytest.approx(expected, rel=1e-12)

    def test_predictive_probability_of_success(self):
        model = BetaBinomial(alpha=1.0, beta=1.0)
        no_data = model.predictive_logpdf(jnp.array([[1, 1]]), jnp.array([[0, 0]]))
        assert float(jnp.exp(no_data[0])) == pytest.approx(0.5, rel=1e-9)
        after = model.predictive_logpdf(jnp.array([[1, 1]]), jnp.array([[3, 4]]))
        assert float(jnp.exp(after[0])) == pytest.approx(4 / 6, rel=1e-9)

    def test_sample_is_within_unit_interval(self):
        import jax

        samples = BetaBinomial(17.0, 21.0).sample(jax.random.PRNGKey(0), num_samples=1000)
        assert samples.shape == (1000,)
        assert jnp.all((samples > 0) & (samples < 1))
