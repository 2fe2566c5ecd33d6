"""Engine configuration.

Defaults live in `DEFAULT_CONFIG`; a YAML file with a top-level ``posterior`` section
can override any of them:

.. code-block:: yaml

    posterior:
      credible_level: 0.9
      boundary_mass_threshold: 0.005
      sampler:
        num_chains: 4
        num_iters: 2000

Importing this module switches JAX to double precision. Closed-form updates are
checked to 1e-9, which float32 cannot deliver.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import jax
import yaml

jax.config.update("jax_enable_x64", True)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SamplerConfig:
    """Settings for the default Metropolis solver."""
    num_chains: int = 4
    num_iters: int = 5000
    burnin_proportion: float = 0.5
    thinning: int = 1
    step_size: float = 1.0
    seed: int = 0

    def __post_init__(self):
        if self.num_chains < 1:
            msg = f"num_chains must be >= 1, got {self.num_chains}"
            raise ValueError(msg)
        if self.num_iters < 1:
            msg = f"num_iters must be >= 1, got {self.num_iters}"
            raise ValueError(msg)
        if not 0.0 <= self.burnin_proportion < 1.0:
            msg = f"burnin_proportion must be in [0, 1), got {self.burnin_proportion}"
            raise ValueError(msg)
        if self.thinning < 1:
            msg = f"thinning must be >= 1, got {self.thinning}"
            raise ValueError(msg)
        if not self.step_size > 0:
            msg = f"step_size must be positive, got {self.step_size}"
            raise ValueError(msg)


@dataclass(frozen=True)
class EngineConfig:
    credible_level: float = 0.95
    # fraction of posterior mass allowed on either end point of a grid
    boundary_mass_threshold: float = 0.01
    # Beta quantile bisection: absolute tolerance on the CDF value
    beta_ppf_tolerance: float = 1e-8
    beta_ppf_max_iter: int = 100
    quantiles: tuple[float, ...] = (0.025, 0.5, 0.975)
    sampler: SamplerConfig = field(default_factory=SamplerConfig)

    def __post_init__(self):
        if not 0.0 < self.credible_level < 1.0:
            msg = f"credible_level must be in (0, 1), got {self.credible_level}"
            raise ValueError(msg)
        if not 0.0 < self.boundary_mass_threshold <= 1.0:
            msg = f"boundary_mass_threshold must be in (0, 1], got {self.boundary_mass_threshold}"
            raise ValueError(msg)
        if not self.beta_ppf_tolerance > 0:
            msg = f"beta_ppf_tolerance must be positive, got {self.beta_ppf_tolerance}"
            raise ValueError(msg)
        if self.beta_ppf_max_iter < 1:
            msg = f"beta_ppf_max_iter must be >= 1, got {self.beta_ppf_max_iter}"
            raise ValueError(msg)
        if any(not 0.0 <= q <= 1.0 for q in self.quantiles):
            msg = f"quantiles must lie in [0, 1], got {self.quantiles}"
            raise ValueError(msg)

    @classmethod
    def from_dict(cls, settings: dict[str, Any]) -> EngineConfig:
        known = {f.name for f in fields(cls)}
        unknown = set(settings) - known
        if unknown:
            msg = f"Unknown posterior settings: {sorted(unknown)}"
            raise ValueError(msg)

        kwargs = dict(settings)
        if "quantiles" in kwargs:
            kwargs["quantiles"] = tuple(float(q) for q in kwargs["quantiles"])
        if "sampler" in kwargs:
            kwargs["sampler"] = SamplerConfig(**kwargs["sampler"])
        return cls(**kwargs)

    @classmethod
    def from_config_file(cls, config_file: str | Path) -> EngineConfig:
        """
        Load settings from the ``posterior`` section of a YAML file.

        :param config_file: Path to the YAML file
        :return: EngineConfig with the file's values overriding the defaults
        """
        config_file = Path(config_file)
        with config_file.open() as stream:
            config = yaml.safe_load(stream) or {}

        settings = config.get("posterior", {})
        logger.debug(f"Loaded posterior settings from {config_file}: {settings}")
        return cls.from_dict(settings)


DEFAULT_CONFIG = EngineConfig()
