# conjugate/base.py
from abc import ABC, abstractmethod
from typing import Any, Optional

from jax import Array
from jax.typing import ArrayLike

from conjugax.config import DEFAULT_CONFIG, EngineConfig
from conjugax.core.distributions import Distribution
from conjugax.results import PosteriorResult


class ConjugateModel(ABC):
    # param_name is the dict key used by mean_ / variance_
    """base class for defining conjugate models"""
    param_name: str

    @abstractmethod
    def posterior_params(self, data: ArrayLike) -> "ConjugateModel": ...
    """
    returns an object of the same class with updated posterior parameters from whole data
    """

    @abstractmethod
    def posterior_from_stats(self, stats: ArrayLike) -> "ConjugateModel": ...
    """
    returns an object of the same class with updated posterior parameters from sufficient statistics
    """

    @abstractmethod
    def distribution(self) -> Distribution: ...
    """
    returns the current (prior or posterior) distribution of the parameter
    """

    @abstractmethod
    def log_marginal_likelihood(self, data: ArrayLike) -> float: ...
    """
    computes the marginal log likelihood of a given data under object prior
    """

    @abstractmethod
    def predictive_logpdf(self, x_new: Any, data: ArrayLike) -> Any: ...
    """
    computes the predictive distribution of a single new sample x_new under object prior given data
    """

    def sample(self, rng_key: Array, num_samples: int = 1) -> Array:
        return self.distribution().sample(rng_key, num_samples)

    def mean_(self) -> dict:
        return {self.param_name: self.distribution().mean_()}

    def variance_(self) -> dict:
        return {self.param_name: self.distribution().variance_()}

    def posterior(
        self, data: ArrayLike, level: Optional[float] = None, config: EngineConfig = DEFAULT_CONFIG
    ) -> PosteriorResult:
        return PosteriorResult(distribution=self.posterior_params(data).distribution(), level=level, config=config)
