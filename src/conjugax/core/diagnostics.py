# R̂, ESS
from typing import Union

import jax
import jax.numpy as jnp


def _check_chains(chains: jnp.ndarray, min_samples: int) -> jnp.ndarray:
    chains = jnp.asarray(chains, dtype=float)
    if chains.ndim < 2:
        raise ValueError("Chains array must have at least 2 dimensions (num_chains, num_samples)")
    if chains.shape[1] < min_samples:
        raise ValueError(f"Need at least {min_samples} samples per chain, got {chains.shape[1]}")
    return chains


def compute_rhat(chains: jnp.ndarray) -> Union[float, jax.Array]:
    """Compute the split potential scale reduction factor (R-hat).
    Assumes chains shape: (num_chains, num_samples, ...)
    Each chain is cut in half so that drift within a chain also inflates R-hat.
    """
    chains = _check_chains(chains, min_samples=4)

    half = chains.shape[1] // 2
    # drop the middle draw for odd lengths
    chains = jnp.concatenate([chains[:, :half], chains[:, -half:]], axis=0)
    num_samples = half

    chain_means = jnp.mean(chains, axis=1)
    chain_vars = jnp.var(chains, axis=1, ddof=1)

    between_chain_var = jnp.var(chain_means, axis=0, ddof=1) * num_samples
    within_chain_var = jnp.mean(chain_vars, axis=0)

    var_hat = ((num_samples - 1) / num_samples) * within_chain_var + (1 / num_samples) * between_chain_var
    rhat = jnp.sqrt(var_hat / within_chain_var)
    return rhat


def _autocovariance(x: jnp.ndarray) -> jnp.ndarray:
    # biased autocovariance along axis 1, via zero-padded FFT
    n = x.shape[1]
    centered = x - jnp.mean(x, axis=1, keepdims=True)
    size = 2 ** int(jnp.ceil(jnp.log2(2 * n)))
    freq = jnp.fft.rfft(centered, n=size, axis=1)
    acov = jnp.fft.irfft(freq * jnp.conjugate(freq), n=size, axis=1)[:, :n]
    return acov / n


def _ess_single(chains: jnp.ndarray) -> float:
    num_chains, num_samples = chains.shape
    acov = _autocovariance(chains)
    chain_means = jnp.mean(chains, axis=1)

    mean_var = jnp.mean(acov[:, 0]) * num_samples / (num_samples - 1)
    var_plus = mean_var * (num_samples - 1) / num_samples
    if num_chains > 1:
        var_plus = var_plus + jnp.var(chain_means, ddof=1)
    if not var_plus > 0:
        # constant chains carry no information about autocorrelation
        return float(num_chains * num_samples)

    rho = 1.0 - (mean_var - jnp.mean(acov, axis=0)) / var_plus
    rho = rho.at[0].set(1.0)

    # Geyer's initial positive sequence: sum autocorrelation pairs until a pair goes negative
    num_pairs = num_samples // 2
    pairs = rho[: 2 * num_pairs : 2] + rho[1 : 2 * num_pairs : 2]
    negative = jnp.nonzero(pairs < 0, size=1, fill_value=num_pairs)[0][0]
    tau = -1.0 + 2.0 * jnp.sum(pairs[: int(negative)])
    tau = jnp.maximum(tau, 1.0 / jnp.log10(num_chains * num_samples))
    return float(num_chains * num_samples / tau)


def compute_ess(chains: jnp.ndarray) -> Union[float, jax.Array]:
    """Compute the effective sample size (ESS).
    Assumes chains shape: (num_chains, num_samples, ...)
    Autocorrelations are pooled across chains and truncated with Geyer's initial
    positive sequence.
    """
    chains = _check_chains(chains, min_samples=4)

    trailing = chains.shape[2:]
    if not trailing:
        return _ess_single(chains)

    flat = chains.reshape(chains.shape[:2] + (-1,))
    ess = jnp.array([_ess_single(flat[:, :, i]) for i in range(flat.shape[2])])
    return ess.reshape(trailing)
