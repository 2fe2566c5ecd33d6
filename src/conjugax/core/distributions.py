# core/distributions.py
"""
Immutable distribution value objects used as priors, likelihoods and posteriors:
1. Normal(mean, sd)
2. Beta(alpha, beta)
3. SkewNormal(location, scale, skew)
Parameters are stored as python floats so that equality is plain value equality.
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from jax import Array, lax, random
from jax import numpy as jnp
from jax.scipy.special import betainc
from jax.scipy.stats import beta as beta_dist
from jax.scipy.stats import norm
from jax.typing import ArrayLike

from conjugax.config import DEFAULT_CONFIG, EngineConfig
from conjugax.errors import InvalidParameter


def as_finite(name: str, value: ArrayLike) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError) as err:
        msg = f"{name} must be a real number, got {value!r}"
        raise InvalidParameter(msg) from err
    if not math.isfinite(value):
        msg = f"{name} must be finite, got {value}"
        raise InvalidParameter(msg)
    return value


def as_positive(name: str, value: ArrayLike) -> float:
    value = as_finite(name, value)
    if value <= 0:
        msg = f"{name} must be positive, got {value}"
        raise InvalidParameter(msg)
    return value


def _check_level(level: float) -> float:
    if not 0.0 < level < 1.0:
        msg = f"credible level must be in (0, 1), got {level}"
        raise InvalidParameter(msg)
    return level


class Distribution(ABC):
    """base class for the univariate distributions the engine works with"""

    @abstractmethod
    def logpdf(self, x: ArrayLike) -> Array: ...

    @abstractmethod
    def mean_(self) -> float: ...

    @abstractmethod
    def variance_(self) -> float: ...

    @abstractmethod
    def sample(self, rng_key: Array, num_samples: int = 1) -> Array: ...

    def pdf(self, x: ArrayLike) -> Array:
        return jnp.exp(self.logpdf(x))

    def sd_(self) -> float:
        return math.sqrt(self.variance_())


@dataclass(frozen=True)
class Normal(Distribution):
    mean: float
    sd: float

    def __post_init__(self):
        object.__setattr__(self, "mean", as_finite("mean", self.mean))
        object.__setattr__(self, "sd", as_positive("sd", self.sd))

    def logpdf(self, x: ArrayLike) -> Array:
        return norm.logpdf(x, loc=self.mean, scale=self.sd)

    def cdf(self, x: ArrayLike) -> Array:
        return norm.cdf(x, loc=self.mean, scale=self.sd)

    def ppf(self, q: ArrayLike) -> Array:
        return norm.ppf(q, loc=self.mean, scale=self.sd)

    def mean_(self) -> float:
        return self.mean

    def variance_(self) -> float:
        return self.sd * self.sd

    def sample(self, rng_key: Array, num_samples: int = 1) -> Array:
        return random.normal(rng_key, shape=(num_samples,)) * self.sd + self.mean

    def credible_interval(
        self, level: Optional[float] = None, config: EngineConfig = DEFAULT_CONFIG
    ) -> tuple[float, float]:
        """
        Central interval mean ± z(alpha/2) * sd; level defaults to config.credible_level.
        """
        alpha = 1 - _check_level(config.credible_level if level is None else level)
        z = float(norm.ppf(1 - alpha / 2))
        return self.mean - z * self.sd, self.mean + z * self.sd


def _beta_ppf(q: Array, a: float, b: float, tol: float, max_iter: int) -> Array:
    """
    Invert the regularized incomplete beta function by bisection on [0, 1].
    Stops once |I_x(a, b) - q| <= tol or after max_iter halvings. Elements that
    converge early keep their first accepted point while the rest continue.
    """
    def cond(state):
        i, _, _, _, err = state
        return (i < max_iter) & jnp.any(err > tol)

    def body(state):
        i, lo, hi, x, err = state
        mid = 0.5 * (lo + hi)
        resid = betainc(a, b, mid) - q
        below = resid < 0
        lo = jnp.where(below, mid, lo)
        hi = jnp.where(below, hi, mid)
        done = err <= tol
        x = jnp.where(done, x, mid)
        err = jnp.where(done, err, jnp.abs(resid))
        return i + 1, lo, hi, x, err

    init = (0, jnp.zeros_like(q), jnp.ones_like(q), jnp.full_like(q, 0.5), jnp.full_like(q, jnp.inf))
    _, _, _, x, _ = lax.while_loop(cond, body, init)
    # the end points are exact; bisection never lands on them
    return jnp.where(q <= 0, 0.0, jnp.where(q >= 1, 1.0, x))


@dataclass(frozen=True)
class Beta(Distribution):
    alpha: float
    beta: float

    def __post_init__(self):
        object.__setattr__(self, "alpha", as_positive("alpha", self.alpha))
        object.__setattr__(self, "beta", as_positive("beta", self.beta))

    def logpdf(self, x: ArrayLike) -> Array:
        return beta_dist.logpdf(x, self.alpha, self.beta)

    def cdf(self, x: ArrayLike) -> Array:
        return betainc(self.alpha, self.beta, jnp.clip(jnp.asarray(x, dtype=float), 0.0, 1.0))

    def ppf(
        self,
        q: ArrayLike,
        tol: Optional[float] = None,
        max_iter: Optional[int] = None,
        config: EngineConfig = DEFAULT_CONFIG,
    ) -> Array:
        """
        Quantile function (inverse CDF).

        Args:
            q: tail probabilities in [0, 1]
            tol: absolute tolerance on the CDF value at the returned point
                (default config.beta_ppf_tolerance)
            max_iter: maximum number of bisection steps (default config.beta_ppf_max_iter)
            config: engine settings supplying the defaults

        Returns:
            x with I_x(alpha, beta) = q up to tol
        """
        q = jnp.asarray(q, dtype=float)
        if not bool(jnp.all((q >= 0) & (q <= 1))):
            msg = f"quantile probabilities must lie in [0, 1], got {q}"
            raise InvalidParameter(msg)
        tol = config.beta_ppf_tolerance if tol is None else tol
        max_iter = config.beta_ppf_max_iter if max_iter is None else max_iter
        return _beta_ppf(q, self.alpha, self.beta, tol, max_iter)

    def mean_(self) -> float:
        return self.alpha / (self.alpha + self.beta)

    def variance_(self) -> float:
        total = self.alpha + self.beta
        return self.alpha * self.beta / ((total + 1) * total * total)

    def sample(self, rng_key: Array, num_samples: int = 1) -> Array:
        return random.beta(rng_key, self.alpha, self.beta, shape=(num_samples,))

    def credible_interval(
        self, level: Optional[float] = None, config: EngineConfig = DEFAULT_CONFIG
    ) -> tuple[float, float]:
        alpha = 1 - _check_level(config.credible_level if level is None else level)
        lower, upper = self.ppf(jnp.array([alpha / 2, 1 - alpha / 2]), config=config)
        return float(lower), float(upper)


@dataclass(frozen=True)
class SkewNormal(Distribution):
    """
    Azzalini skew-normal: density 2/scale * phi(z) * Phi(skew * z), z = (x - location) / scale.
    skew = 0 recovers Normal(location, scale).
    """
    location: float
    scale: float
    skew: float

    def __post_init__(self):
        object.__setattr__(self, "location", as_finite("location", self.location))
        object.__setattr__(self, "scale", as_positive("scale", self.scale))
        object.__setattr__(self, "skew", as_finite("skew", self.skew))

    @property
    def _delta(self) -> float:
        return self.skew / math.hypot(1.0, self.skew)

    def logpdf(self, x: ArrayLike) -> Array:
        z = (jnp.asarray(x, dtype=float) - self.location) / self.scale
        return jnp.log(2.0) - jnp.log(self.scale) + norm.logpdf(z) + norm.logcdf(self.skew * z)

    def mean_(self) -> float:
        return self.location + self.scale * self._delta * math.sqrt(2 / math.pi)

    def variance_(self) -> float:
        return self.scale * self.scale * (1 - 2 * self._delta ** 2 / math.pi)

    def sample(self, rng_key: Array, num_samples: int = 1) -> Array:
        key1, key2 = random.split(rng_key)
        u0 = jnp.abs(random.normal(key1, shape=(num_samples,)))
        u1 = random.normal(key2, shape=(num_samples,))
        delta = self._delta
        z = delta * u0 + math.sqrt(1 - delta ** 2) * u1
        return self.location + self.scale * z
