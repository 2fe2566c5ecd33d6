"""Posterior result records.

Exact, grid and sampled posteriors all reduce to a `PosteriorSummary`, which is what the
comparison harness and any presentation layer consume.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from jax import numpy as jnp
from jax.typing import ArrayLike

from conjugax.config import DEFAULT_CONFIG, EngineConfig
from conjugax.core.diagnostics import compute_ess, compute_rhat
from conjugax.core.distributions import Beta, Distribution
from conjugax.errors import InvalidParameter

if TYPE_CHECKING:
    from conjugax.core.grid import GridApproximation


@dataclass(frozen=True)
class PosteriorSummary:
    mean: float
    sd: float
    lower: float
    upper: float
    level: float
    quantiles: dict[float, float] = field(default_factory=dict)
    # only set for multi-chain sampler output
    rhat: Optional[float] = None
    ess: Optional[float] = None

    @property
    def interval(self) -> tuple[float, float]:
        return self.lower, self.upper


@dataclass(frozen=True)
class PosteriorResult:
    """
    Output of a posterior computation: exactly one of `distribution` (closed form)
    or `grid` (numeric approximation) is set. `config` supplies the default level,
    the reported quantiles and the Beta quantile tolerances.
    """
    distribution: Optional[Distribution] = None
    grid: Optional[GridApproximation] = None
    level: Optional[float] = None
    config: EngineConfig = field(default=DEFAULT_CONFIG, repr=False)

    def __post_init__(self):
        if self.level is None:
            object.__setattr__(self, "level", self.config.credible_level)
        if (self.distribution is None) == (self.grid is None):
            msg = "PosteriorResult needs exactly one of distribution or grid"
            raise InvalidParameter(msg)
        if not 0.0 < self.level < 1.0:
            msg = f"credible level must be in (0, 1), got {self.level}"
            raise InvalidParameter(msg)

    @property
    def exact(self) -> bool:
        return self.distribution is not None

    def mean_(self) -> float:
        source = self.distribution if self.exact else self.grid
        return source.mean_()

    def sd_(self) -> float:
        source = self.distribution if self.exact else self.grid
        return math.sqrt(source.variance_())

    def credible_interval(self) -> tuple[float, float]:
        if self.exact and not hasattr(self.distribution, "credible_interval"):
            msg = f"{type(self.distribution).__name__} has no closed-form quantile function; use a grid"
            raise InvalidParameter(msg)
        source = self.distribution if self.exact else self.grid
        return source.credible_interval(self.level, config=self.config)

    def _ppf(self, q):
        if isinstance(self.distribution, Beta):
            return self.distribution.ppf(q, config=self.config)
        return self.distribution.ppf(q)

    def summary(self, quantiles: Optional[tuple[float, ...]] = None) -> PosteriorSummary:
        if quantiles is None:
            quantiles = self.config.quantiles
        lower, upper = self.credible_interval()
        if self.exact:
            values = self._ppf(jnp.asarray(quantiles, dtype=float))
        else:
            values = self.grid.quantile(jnp.asarray(quantiles, dtype=float))
        return PosteriorSummary(
            mean=self.mean_(),
            sd=self.sd_(),
            lower=lower,
            upper=upper,
            level=self.level,
            quantiles={float(q): float(v) for q, v in zip(quantiles, jnp.atleast_1d(values))},
        )


def credible_interval(
    samples: ArrayLike,
    level: float = DEFAULT_CONFIG.credible_level,
    interval_type: str = "quantile",
) -> tuple[float, float]:
    """
    Compute the credible interval for an array of samples.

    :param 1darray samples: Array of samples
    :param float level: Credible level (default 0.95)
    :param str interval_type: Type of credible interval to compute. Options are:
                        'hpd' - highest-posterior density (narrowest interval holding `level` of the samples)
                        'quantile' - central quantile interval
    """
    samples = jnp.ravel(jnp.asarray(samples, dtype=float))
    if samples.size == 0:
        msg = "cannot compute a credible interval from zero samples"
        raise InvalidParameter(msg)
    if not 0.0 < level < 1.0:
        msg = f"credible level must be in (0, 1), got {level}"
        raise InvalidParameter(msg)

    if interval_type == "hpd":
        ordered = jnp.sort(samples)
        n = ordered.size
        width = min(max(int(math.ceil(level * n)), 1), n) - 1
        spans = ordered[width:] - ordered[: n - width]
        i = int(jnp.argmin(spans))
        ci = ordered[i], ordered[i + width]
    elif interval_type == "quantile":
        cred_range = jnp.array([(1 - level) / 2, 1 - (1 - level) / 2])
        ci = jnp.quantile(samples, cred_range)
    else:
        msg = f"Invalid interval type: {interval_type}"
        raise ValueError(msg)

    return float(ci[0]), float(ci[1])


def summarize_draws(
    draws: ArrayLike,
    level: float = DEFAULT_CONFIG.credible_level,
    quantiles: tuple[float, ...] = DEFAULT_CONFIG.quantiles,
    interval_type: str = "quantile",
) -> PosteriorSummary:
    """
    Summarize posterior draws of a single scalar parameter.

    Args:
        draws: shape (num_samples,) or (num_chains, num_samples)
        level: credible level
        quantiles: tail probabilities to report
        interval_type: 'quantile' or 'hpd'

    Returns:
        PosteriorSummary; rhat and ess are filled in when there are at least 2 chains
        of at least 4 draws each
    """
    draws = jnp.asarray(draws, dtype=float)
    if draws.ndim not in (1, 2):
        msg = f"draws must have shape (num_samples,) or (num_chains, num_samples), got {draws.shape}"
        raise InvalidParameter(msg)
    flat = jnp.ravel(draws)
    if flat.size < 2:
        msg = f"need at least 2 draws to summarize, got {flat.size}"
        raise InvalidParameter(msg)

    rhat = ess = None
    if draws.ndim == 2 and draws.shape[0] >= 2 and draws.shape[1] >= 4:
        rhat = float(compute_rhat(draws))
        ess = float(compute_ess(draws))

    lower, upper = credible_interval(flat, level=level, interval_type=interval_type)
    values = jnp.quantile(flat, jnp.asarray(quantiles, dtype=float))
    return PosteriorSummary(
        mean=float(jnp.mean(flat)),
        sd=float(jnp.std(flat, ddof=1)),
        lower=lower,
        upper=upper,
        level=level,
        quantiles={float(q): float(v) for q, v in zip(quantiles, jnp.atleast_1d(values))},
        rhat=rhat,
        ess=ess,
    )
