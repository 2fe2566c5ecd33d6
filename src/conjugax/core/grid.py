# core/grid.py
"""
Grid-based posterior for prior/likelihood pairs with no closed form.

Posterior ∝ Prior × Likelihood, evaluated pointwise on a caller-supplied grid. The final
normalization stands in for the marginal likelihood. The masses are a finite-grid proxy
for a density: good for comparison and plotting, not exact probabilities. Range and
resolution are the caller's responsibility; the grid is never expanded automatically.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from jax import Array
from jax import numpy as jnp
from jax.typing import ArrayLike

from conjugax.config import DEFAULT_CONFIG, EngineConfig
from conjugax.errors import DegeneratePosterior, InsufficientSupport, InvalidParameter
from conjugax.results import PosteriorResult

logger = logging.getLogger(__name__)

DensityFn = Callable[[Array], ArrayLike]


def _check_grid(grid: ArrayLike) -> Array:
    x = jnp.asarray(grid, dtype=float)
    if x.ndim != 1 or x.size < 2:
        msg = f"grid must be a 1-D sequence of at least 2 points, got shape {x.shape}"
        raise InvalidParameter(msg)
    if not bool(jnp.all(jnp.isfinite(x))):
        msg = "grid points must be finite"
        raise InvalidParameter(msg)
    if not bool(jnp.all(jnp.diff(x) > 0)):
        msg = "grid points must be strictly increasing"
        raise InvalidParameter(msg)
    return x


@dataclass(frozen=True, eq=False)
class GridApproximation:
    """
    Ordered (x, density) pairs over a finite support.

    Attributes:
        x: strictly increasing grid points, shape (N,)
        density: non-negative values at each grid point, shape (N,)
    """
    x: Array
    density: Array

    def __post_init__(self):
        x = _check_grid(self.x)
        density = jnp.asarray(self.density, dtype=float)
        if density.shape != x.shape:
            msg = f"density shape {density.shape} does not match grid shape {x.shape}"
            raise InvalidParameter(msg)
        if not bool(jnp.all(jnp.isfinite(density))) or bool(jnp.any(density < 0)):
            msg = "grid densities must be finite and non-negative"
            raise InvalidParameter(msg)
        object.__setattr__(self, "x", x)
        object.__setattr__(self, "density", density)

    def __eq__(self, other):
        if not isinstance(other, GridApproximation):
            return NotImplemented
        return (
            self.x.shape == other.x.shape
            and bool(jnp.array_equal(self.x, other.x))
            and bool(jnp.array_equal(self.density, other.density))
        )

    def __hash__(self):
        return hash((tuple(self.x.tolist()), tuple(self.density.tolist())))

    @classmethod
    def from_function(cls, fn: DensityFn, grid: ArrayLike) -> GridApproximation:
        x = _check_grid(grid)
        return cls(x=x, density=jnp.broadcast_to(jnp.asarray(fn(x), dtype=float), x.shape))

    def total_mass(self) -> float:
        return float(jnp.sum(self.density))

    def normalized(self) -> GridApproximation:
        total = self.total_mass()
        if total <= 0:
            msg = "cannot normalize a grid with zero total mass"
            raise DegeneratePosterior(msg)
        return GridApproximation(x=self.x, density=self.density / total)

    def mean_(self) -> float:
        p = self.normalized().density
        return float(jnp.sum(self.x * p))

    def variance_(self) -> float:
        p = self.normalized().density
        mean = jnp.sum(self.x * p)
        return float(jnp.sum((self.x - mean) ** 2 * p))

    def cdf(self) -> Array:
        return jnp.cumsum(self.normalized().density)

    def quantile(self, q: ArrayLike) -> Array:
        """smallest grid point whose cumulative mass reaches q"""
        q = jnp.asarray(q, dtype=float)
        if not bool(jnp.all((q >= 0) & (q <= 1))):
            msg = f"quantile probabilities must lie in [0, 1], got {q}"
            raise InvalidParameter(msg)
        idx = jnp.searchsorted(self.cdf(), q, side="left")
        return self.x[jnp.clip(idx, 0, self.x.size - 1)]

    def credible_interval(
        self, level: Optional[float] = None, config: EngineConfig = DEFAULT_CONFIG
    ) -> tuple[float, float]:
        level = config.credible_level if level is None else level
        if not 0.0 < level < 1.0:
            msg = f"credible level must be in (0, 1), got {level}"
            raise InvalidParameter(msg)
        alpha = 1 - level
        lower, upper = self.quantile(jnp.array([alpha / 2, 1 - alpha / 2]))
        return float(lower), float(upper)

    def boundary_mass(self) -> tuple[float, float]:
        p = self.normalized().density
        return float(p[0]), float(p[-1])


def grid_posterior(
    f_prior: DensityFn,
    f_like: DensityFn,
    grid: ArrayLike,
    boundary_threshold: Optional[float] = None,
    level: Optional[float] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> PosteriorResult:
    """
    Numeric posterior on a grid.

    Args:
        f_prior: prior density, evaluated pointwise on the grid
        f_like: likelihood as a function of the parameter, evaluated pointwise on the grid
        grid: strictly increasing grid points
        boundary_threshold: largest normalized posterior mass allowed at either end point
            (default config.boundary_mass_threshold)
        level: credible level used for the result's summary (default config.credible_level)
        config: engine settings supplying the defaults; carried by the result

    Returns:
        PosteriorResult wrapping the normalized GridApproximation

    Raises:
        InvalidParameter: bad grid, or density values that are negative or non-finite
        DegeneratePosterior: prior, likelihood or their product has zero mass on the grid
        InsufficientSupport: end-point mass above boundary_threshold
    """
    if boundary_threshold is None:
        boundary_threshold = config.boundary_mass_threshold
    if not 0.0 < boundary_threshold <= 1.0:
        msg = f"boundary_threshold must be in (0, 1], got {boundary_threshold}"
        raise InvalidParameter(msg)

    x = _check_grid(grid)
    try:
        prior = GridApproximation.from_function(f_prior, x).normalized()
    except DegeneratePosterior as err:
        msg = "prior has zero mass on the grid"
        raise DegeneratePosterior(msg) from err
    try:
        like = GridApproximation.from_function(f_like, x).normalized()
    except DegeneratePosterior as err:
        msg = "likelihood has zero mass on the grid"
        raise DegeneratePosterior(msg) from err

    product = prior.density * like.density
    if not float(jnp.sum(product)) > 0:
        msg = "prior and likelihood do not overlap on the grid: posterior has zero mass"
        raise DegeneratePosterior(msg)
    posterior = GridApproximation(x=x, density=product).normalized()

    left, right = posterior.boundary_mass()
    if left > boundary_threshold or right > boundary_threshold:
        msg = (
            f"posterior mass at grid boundary exceeds {boundary_threshold}: "
            f"left={left:.4g}, right={right:.4g}; widen the grid"
        )
        raise InsufficientSupport(msg, left_mass=left, right_mass=right)

    logger.debug(f"Grid posterior on {x.size} points: mean {posterior.mean_():.6g}")
    return PosteriorResult(grid=posterior, level=level, config=config)
