"""Boundary between the engine and an external posterior sampler.

The adapter validates data against the model spec, makes one blocking call to the solver
and reduces the returned draws to `PosteriorSummary` records. It never retries: sampling
is expensive, and a rerun is not reproducible unless the caller pins the seed. There is
no timeout and no cancellation; aborting a long run is up to the caller.
"""

from __future__ import annotations

import itertools
import logging
from typing import Any, Callable, Mapping

from jax import numpy as jnp
from jax.typing import ArrayLike

from conjugax.config import DEFAULT_CONFIG, EngineConfig
from conjugax.errors import InvalidParameter, SamplerFailure
from conjugax.results import PosteriorSummary, summarize_draws
from conjugax.sampling.spec import ModelSpec, ParameterDecl, validate_bindings

logger = logging.getLogger(__name__)

Solver = Callable[[ModelSpec, Mapping[str, Any]], Mapping[str, ArrayLike]]

RHAT_WARNING_THRESHOLD = 1.01


def _component_names(decl: ParameterDecl) -> list[tuple[str, tuple[int, ...]]]:
    if not decl.shape:
        return [(decl.name, ())]
    names = []
    for index in itertools.product(*(range(d) for d in decl.shape)):
        names.append((f"{decl.name}[{','.join(str(i) for i in index)}]", index))
    return names


class SamplerAdapter:
    """
    Args:
        solver: blocking callable solver(spec, data) -> {parameter name: draws}, with draws
            shaped (num_samples, *shape) or (num_chains, num_samples, *shape)
        level: credible level of the reported intervals
        quantiles: tail probabilities reported for each parameter
        interval_type: 'quantile' or 'hpd'
    """
    def __init__(
        self,
        solver: Solver,
        level: float = DEFAULT_CONFIG.credible_level,
        quantiles: tuple[float, ...] = DEFAULT_CONFIG.quantiles,
        interval_type: str = "quantile",
    ):
        self.solver = solver
        self.level = level
        self.quantiles = tuple(quantiles)
        self.interval_type = interval_type

    @classmethod
    def from_config(cls, config: EngineConfig, solver: Solver, interval_type: str = "quantile") -> SamplerAdapter:
        """adapter reporting config.credible_level intervals and config.quantiles"""
        return cls(solver, level=config.credible_level, quantiles=config.quantiles, interval_type=interval_type)

    def run(self, spec: ModelSpec, bindings: Mapping[str, Any]) -> dict[str, PosteriorSummary]:
        """
        Validate, sample, summarize.

        Returns:
            one PosteriorSummary per scalar parameter component; vector parameters are
            reported as name[i] (name[i,j], ...)

        Raises:
            ShapeMismatch: bindings do not match the model spec (the solver is not called)
            SamplerFailure: the solver raised, or returned missing, malformed or non-finite draws
        """
        data = validate_bindings(spec, bindings)

        logger.info(f"Invoking sampler for parameters {[p.name for p in spec.parameters]}...")
        try:
            draws = self.solver(spec, data)
        except Exception as err:
            raise SamplerFailure(str(err)) from err
        logger.info("Sampler finished.")
        if not isinstance(draws, Mapping):
            msg = f"solver must return a mapping of parameter name to draws, got {type(draws).__name__}"
            raise SamplerFailure(msg)

        summaries: dict[str, PosteriorSummary] = {}
        for decl in spec.parameters:
            if decl.name not in draws:
                msg = f"solver returned no draws for parameter {decl.name!r}"
                raise SamplerFailure(msg)
            values = jnp.asarray(draws[decl.name], dtype=float)

            leading = values.ndim - len(decl.shape)
            if leading not in (1, 2) or values.shape[leading:] != decl.shape:
                msg = (
                    f"draws for {decl.name!r} have shape {values.shape}; expected (num_samples, *{decl.shape}) "
                    f"or (num_chains, num_samples, *{decl.shape})"
                )
                raise SamplerFailure(msg)
            if not bool(jnp.all(jnp.isfinite(values))):
                msg = f"solver returned non-finite draws for parameter {decl.name!r}"
                raise SamplerFailure(msg)

            for name, index in _component_names(decl):
                component = values[(Ellipsis, *index)] if index else values
                try:
                    summary = summarize_draws(
                        component, level=self.level, quantiles=self.quantiles, interval_type=self.interval_type
                    )
                except InvalidParameter as err:
                    msg = f"cannot summarize draws for {name!r}: {err}"
                    raise SamplerFailure(msg) from err
                if summary.rhat is not None and summary.rhat > RHAT_WARNING_THRESHOLD:
                    logger.warning(f"{name}: R-hat {summary.rhat:.3f} > {RHAT_WARNING_THRESHOLD}; chains may not have mixed")
                summaries[name] = summary

        return summaries
