import logging
from abc import ABC, abstractmethod
from functools import partial
from typing import Dict

import jax
import jax.numpy as jnp
from jax import random, lax

Array = jax.Array
MCMCSamples = Dict[str, Array]

logger = logging.getLogger(__name__)


class MCMCModel(ABC):
    @abstractmethod
    def initialize(self, key: Array, data: Dict[str, Array]) -> Dict:
        ...

    @abstractmethod
    def step(self, key: Array, data: Dict[str, Array], state: Dict) -> Dict:
        ...

    @abstractmethod
    def extract_sample(self, state: Dict) -> MCMCSamples:
        ...

    def run_mcmc(
        self,
        key: Array,
        data: Dict[str, Array],
        num_iters: int,
        burnin_proportion: float = 0.1,
        thinning: int = 1,
    ) -> MCMCSamples:
        """
        Run a single chain.

        Returns:
            dict[param] -> (num_kept, ...), post-burnin and thinned
        """
        burnin = int(burnin_proportion * num_iters)

        def scan_step(state, key):
            new_state = self.step(key, data, state)
            sample = self.extract_sample(new_state)
            return new_state, sample

        key_init, key_scan = random.split(key)
        state = self.initialize(key_init, data)
        keys = random.split(key_scan, num_iters)

        _, raw_samples = lax.scan(scan_step, state, keys)

        # burnin and thinning are static, so plain slicing works under jit
        return jax.tree_util.tree_map(lambda x: x[burnin::thinning], raw_samples)

    def run_multiple_chains(
        self,
        keys: Array,
        data: Dict[str, Array],
        num_iters: int,
        burnin_proportion: float = 0.1,
        thinning: int = 1,
    ) -> MCMCSamples:
        """
        Run one chain per key, vectorized over chains.

        Returns:
            dict[param] -> (num_chains, num_kept, ...)
        """
        logger.info(f"  running {keys.shape[0]} chains for {num_iters} iterations")
        run_chain_jit = jax.jit(partial(
            self.run_mcmc,
            data=data,
            num_iters=num_iters,
            burnin_proportion=burnin_proportion,
            thinning=thinning
        ))

        chains = jax.vmap(run_chain_jit)(keys)  # dict[param] -> (nchains, nsamples, ...)
        return chains


def acceptance_rate(accepted: Array) -> Array:
    """per-chain fraction of accepted proposals, accepted shape (num_chains, num_samples)"""
    return jnp.mean(jnp.asarray(accepted, dtype=float), axis=-1)
