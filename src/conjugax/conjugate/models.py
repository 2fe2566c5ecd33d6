import logging
import math
from typing import Union

from jax import Array
from jax import numpy as jnp
from jax.scipy.special import gammaln
from jax.scipy.stats import multivariate_normal, norm
from jax.typing import ArrayLike

from conjugax.conjugate.base import ConjugateModel
from conjugax.core.distributions import Beta, Normal, as_finite, as_positive
from conjugax.errors import InvalidParameter

"""
Implements the following conjugate models (using the base ConjugateModel):
1. Normal - Normal for location family Gaussian (univariate) with known scale sigma
2. Beta - Binomial
"""

logger = logging.getLogger(__name__)


def normal_normal_update(mu0: float, sigma0: float, mu_l: float, sigma_l: float) -> Normal:
    """
    Precision-weighted blend of a Normal prior N(mu0, sigma0^2) and a single aggregate
    observation mu_l with known sd sigma_l.

        var_post  = 1 / (1/sigma0^2 + 1/sigma_l^2)
        mean_post = var_post * (mu0/sigma0^2 + mu_l/sigma_l^2)

    Raises InvalidParameter for non-positive or non-finite scales, and when the
    computed variance is not a positive finite number.
    """
    mu0 = as_finite("prior mean", mu0)
    sigma0 = as_positive("prior sd", sigma0)
    mu_l = as_finite("likelihood mean", mu_l)
    sigma_l = as_positive("likelihood sd", sigma_l)

    prior_var = sigma0 * sigma0
    like_var = sigma_l * sigma_l
    for name, var in (("prior variance", prior_var), ("likelihood variance", like_var)):
        if not (math.isfinite(var) and var > 0):
            msg = f"{name} {var} is not a positive finite number"
            raise InvalidParameter(msg)

    prior_precision = 1.0 / prior_var
    like_precision = 1.0 / like_var
    var_post = 1.0 / (prior_precision + like_precision)
    if not (math.isfinite(var_post) and var_post > 0):
        msg = f"posterior variance {var_post} is not a positive finite number (sigma0={sigma0}, sigma_l={sigma_l})"
        raise InvalidParameter(msg)

    mean_post = var_post * (mu0 * prior_precision + mu_l * like_precision)
    logger.debug(f"Normal-Normal update: N({mu0}, {sigma0}^2) x N({mu_l}, {sigma_l}^2) -> mean {mean_post}, var {var_post}")
    return Normal(mean=mean_post, sd=math.sqrt(var_post))


def beta_binomial_update(a0: float, b0: float, n: Union[int, float], h: Union[int, float]) -> Beta:
    """
    Beta(a0, b0) prior, h successes in n trials:
        a_post = h + a0
        b_post = (n - h) + b0
    """
    a0 = as_positive("prior alpha", a0)
    b0 = as_positive("prior beta", b0)
    n = as_finite("trials n", n)
    h = as_finite("successes h", h)
    if n < 0:
        msg = f"number of trials must be >= 0, got {n}"
        raise InvalidParameter(msg)
    if not 0 <= h <= n:
        msg = f"successes must satisfy 0 <= h <= n, got h={h}, n={n}"
        raise InvalidParameter(msg)

    logger.debug(f"Beta-Binomial update: Beta({a0}, {b0}) with {h}/{n} -> Beta({h + a0}, {n - h + b0})")
    return Beta(alpha=h + a0, beta=(n - h) + b0)


class NormalNormal(ConjugateModel):
    """
    observations follow N(mu, sigma^2) with sigma known
    prior on mu is N(mu0, sigma0^2)
    prior_params = (mu0, sigma0)
    """
    def __init__(self, mu0: float, sigma0: float, sigma: float):
        self.mu0 = as_finite("mu0", mu0)
        self.sigma0 = as_positive("sigma0", sigma0)
        self.sigma = as_positive("sigma", sigma)
        self.param_name = "mu"

    def distribution(self) -> Normal:
        return Normal(mean=self.mu0, sd=self.sigma0)

    def posterior_params(self, data: ArrayLike) -> "NormalNormal":
        x = jnp.atleast_1d(jnp.asarray(data, dtype=float))
        n = x.size
        return self.posterior_from_stats((n, jnp.sum(x)))

    def posterior_from_stats(self, stats: ArrayLike) -> "NormalNormal":
        # stats is [sample size, sum]
        n, sum_x = float(stats[0]), float(stats[1])
        if n < 0:
            msg = f"sample size must be >= 0, got {n}"
            raise InvalidParameter(msg)
        if n == 0:
            return self
        # n draws with known sd act as one observation of the mean with sd sigma / sqrt(n)
        post = normal_normal_update(self.mu0, self.sigma0, sum_x / n, self.sigma / math.sqrt(n))
        return NormalNormal(mu0=post.mean, sigma0=post.sd, sigma=self.sigma)

    def log_marginal_likelihood(self, data: ArrayLike) -> Array:
        x = jnp.atleast_1d(jnp.asarray(data, dtype=float))
        n = x.size
        # x ~ N(mu0 * 1, sigma^2 I + sigma0^2 11^T)
        cov = self.sigma ** 2 * jnp.eye(n) + self.sigma0 ** 2 * jnp.ones((n, n))
        return multivariate_normal.logpdf(x, jnp.full((n,), self.mu0), cov)

    def predictive_logpdf(self, x_new: ArrayLike, data: ArrayLike) -> Array:
        post = self.posterior_params(data)
        scale = jnp.sqrt(post.sigma0 ** 2 + self.sigma ** 2)
        return norm.logpdf(x_new, loc=post.mu0, scale=scale)


def _log_beta(a: ArrayLike, b: ArrayLike) -> Array:
    # jax betaln loses ~1e-7 relative accuracy for small arguments
    return gammaln(a) + gammaln(b) - gammaln(a + b)


def _binomial_rows(data: ArrayLike) -> tuple[Array, Array]:
    data = jnp.atleast_2d(jnp.asarray(data, dtype=float))
    if data.ndim != 2 or data.shape[1] != 2:
        msg = f"binomial data must be rows of (successes, trials), got shape {data.shape}"
        raise InvalidParameter(msg)
    x = data[:, 0]
    n = data[:, 1]
    if bool(jnp.any(x < 0)) or bool(jnp.any(x > n)):
        msg = "each row must satisfy 0 <= successes <= trials"
        raise InvalidParameter(msg)
    return x, n


class BetaBinomial(ConjugateModel):
    """
    observations follow Binomial(n, theta)
    prior on theta is Beta(alpha, beta)
    prior_params = (alpha, beta)
    """
    def __init__(self, alpha: float, beta: float):
        self.alpha = as_positive("alpha", alpha)
        self.beta = as_positive("beta", beta)
        self.param_name = "theta"

    def distribution(self) -> Beta:
        return Beta(alpha=self.alpha, beta=self.beta)

    def posterior_params(self, data: ArrayLike) -> "BetaBinomial":
        # data rows are (successes, trials)
        x, n = _binomial_rows(data)
        return self.posterior_from_stats((jnp.sum(n), jnp.sum(x)))

    def posterior_from_stats(self, stats: ArrayLike) -> "BetaBinomial":
        # stats is [trials, successes]
        post = beta_binomial_update(self.alpha, self.beta, stats[0], stats[1])
        return BetaBinomial(alpha=post.alpha, beta=post.beta)

    def log_marginal_likelihood(self, data: ArrayLike) -> Array:
        x, n = _binomial_rows(data)
        log_binom_coeffs = jnp.sum(
            gammaln(n + 1) - gammaln(x + 1) - gammaln(n - x + 1)
        )
        successes = jnp.sum(x)
        failures = jnp.sum(n - x)
        return (
                log_binom_coeffs +
                _log_beta(self.alpha + successes, self.beta + failures) -
                _log_beta(self.alpha, self.beta)
        )

    def predictive_logpdf(self, x_new: ArrayLike, data: ArrayLike) -> Array:
        """
        Log probability of new (successes, trials) rows under the posterior predictive
        Beta-Binomial, given the observed rows in data.
        """
        post = self.posterior_params(data)
        k, m = _binomial_rows(x_new)
        log_binom = gammaln(m + 1) - gammaln(k + 1) - gammaln(m - k + 1)
        return log_binom + _log_beta(post.alpha + k, post.beta + m - k) - _log_beta(post.alpha, post.beta)
