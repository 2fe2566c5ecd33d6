"""Random-walk Metropolis, the default solver behind `SamplerAdapter`.

The solver reads `ModelSpec.program` as a log density::

    def program(params: dict[str, Array], data: dict[str, Array]) -> Array: ...

Declared parameter bounds are enforced by the solver (log density -inf outside them), so
the program does not need to guard its domain.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Sequence

import jax.numpy as jnp
from jax import random

from conjugax.config import DEFAULT_CONFIG, EngineConfig, SamplerConfig
from conjugax.sampling.base import Array, MCMCModel, MCMCSamples, acceptance_rate
from conjugax.sampling.spec import ModelSpec, ParameterDecl

logger = logging.getLogger(__name__)

LogDensity = Callable[[Dict[str, Array], Dict[str, Array]], Any]

_ACCEPTED = "_accepted"


def _initial_value(decl: ParameterDecl) -> float:
    if decl.lower is not None and decl.upper is not None:
        return 0.5 * (decl.lower + decl.upper)
    if decl.lower is not None:
        return decl.lower + 1.0
    if decl.upper is not None:
        return decl.upper - 1.0
    return 0.0


class RandomWalkMetropolis(MCMCModel):
    """
    Gaussian random-walk proposals over the flattened parameter vector.

    Args:
        log_density: program(params, data) -> scalar log density
        parameters: parameter declarations, defining the layout of the flat vector
        step_size: proposal standard deviation
    """
    def __init__(self, log_density: LogDensity, parameters: Sequence[ParameterDecl], step_size: float):
        self.program = log_density
        self.parameters = tuple(parameters)
        self.step_size = step_size
        self.dim = sum(decl.size for decl in self.parameters)

    def unpack(self, position: Array) -> Dict[str, Array]:
        params, offset = {}, 0
        for decl in self.parameters:
            params[decl.name] = position[offset:offset + decl.size].reshape(decl.shape)
            offset += decl.size
        return params

    def log_density(self, position: Array, data: Dict[str, Array]) -> Array:
        params = self.unpack(position)
        in_bounds = jnp.array(True)
        for decl in self.parameters:
            value = params[decl.name]
            if decl.lower is not None:
                in_bounds &= jnp.all(value > decl.lower)
            if decl.upper is not None:
                in_bounds &= jnp.all(value < decl.upper)
        logp = jnp.reshape(jnp.asarray(self.program(params, data), dtype=float), ())
        return jnp.where(in_bounds, logp, -jnp.inf)

    def initial_position(self) -> Array:
        values = []
        for decl in self.parameters:
            values.append(jnp.full((decl.size,), _initial_value(decl)))
        return jnp.concatenate(values)

    def initialize(self, key: Array, data: Dict[str, Array]) -> Dict:
        """
        Start near the default position; the jittered point is only kept when it has
        finite log density, so every chain starts inside the support.
        """
        base = self.initial_position()
        jittered = base + self.step_size * random.normal(key, shape=base.shape)
        logp_base = self.log_density(base, data)
        logp_jittered = self.log_density(jittered, data)
        keep = jnp.isfinite(logp_jittered)
        return {
            "position": jnp.where(keep, jittered, base),
            "logp": jnp.where(keep, logp_jittered, logp_base),
            "accepted": jnp.array(False),
        }

    def step(self, key: Array, data: Dict[str, Array], state: Dict) -> Dict:
        key_prop, key_acc = random.split(key)
        proposal = state["position"] + self.step_size * random.normal(key_prop, shape=state["position"].shape)
        logp_prop = self.log_density(proposal, data)
        # NaN compares False, so a NaN proposal is rejected
        accept = jnp.log(random.uniform(key_acc)) < logp_prop - state["logp"]
        return {
            "position": jnp.where(accept, proposal, state["position"]),
            "logp": jnp.where(accept, logp_prop, state["logp"]),
            "accepted": accept,
        }

    def extract_sample(self, state: Dict) -> MCMCSamples:
        sample = self.unpack(state["position"])
        sample[_ACCEPTED] = state["accepted"]
        return sample


class MetropolisSolver:
    """
    Solver callable for `SamplerAdapter`: solver(spec, data) -> {name: (chains, draws, *shape)}.
    """
    def __init__(self, config: SamplerConfig = DEFAULT_CONFIG.sampler):
        self.config = config

    @classmethod
    def from_config(cls, config: EngineConfig) -> MetropolisSolver:
        return cls(config.sampler)

    def __call__(self, spec: ModelSpec, data: Dict[str, Array]) -> MCMCSamples:
        if not callable(spec.program):
            msg = f"MetropolisSolver needs a callable log density as the program, got {type(spec.program).__name__}"
            raise ValueError(msg)

        chain = RandomWalkMetropolis(spec.program, spec.parameters, self.config.step_size)
        logp0 = chain.log_density(chain.initial_position(), data)
        if not bool(jnp.isfinite(logp0)):
            msg = f"log density is not finite at the initial position {chain.unpack(chain.initial_position())}: {logp0}"
            raise ValueError(msg)

        logger.info(f"Running Metropolis over {chain.dim} parameter dimension(s)...")
        keys = random.split(random.PRNGKey(self.config.seed), self.config.num_chains)
        samples = chain.run_multiple_chains(
            keys=keys,
            data=data,
            num_iters=self.config.num_iters,
            burnin_proportion=self.config.burnin_proportion,
            thinning=self.config.thinning,
        )
        samples = dict(samples)
        af = acceptance_rate(samples.pop(_ACCEPTED))
        logger.info(f"  acceptance fraction: mean {float(af.mean()):.3f}, min {float(af.min()):.3f}, max {float(af.max()):.3f}")
        return samples
