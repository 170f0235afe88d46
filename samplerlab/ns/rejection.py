# Copyright 2024- Will Handley & David Yallup
"""Constrained prior sampling by rejection.

New live points are drawn uniformly from the domain until one lands above the
current likelihood threshold. The search is bounded: once the region above the
threshold becomes too small to hit by uniform draws the search gives up, which
the nested sampler interprets as convergence.
"""
from functools import partial
from typing import Callable, Optional, Union

import jax
import jax.numpy as jnp

import samplerlab.ns.base as base
from samplerlab.base import SamplingAlgorithm
from samplerlab.targets import Domain, Family, Target, as_target
from samplerlab.types import Array, ArrayLike, PRNGKey
from samplerlab.util import sample_uniform

__all__ = ["constrained_uniform_sample", "build_create_fn", "as_top_level_api"]


@partial(jax.jit, static_argnames=("density_fn", "domain", "max_attempts"))
def constrained_uniform_sample(
    rng_key: PRNGKey,
    density_fn: Callable,
    domain: Domain,
    density_threshold: float,
    max_attempts: int = 10_000,
) -> tuple[Array, Array, Array, Array]:
    """Draw from the uniform prior restricted to ``density > density_threshold``.

    Parameters
    ----------
    rng_key
        The pseudo-random number generator key.
    density_fn
        The unnormalized density.
    domain
        The domain the prior is uniform on.
    density_threshold
        Candidates must have a density strictly above this value.
    max_attempts
        Number of candidates drawn before giving up.

    Returns
    -------
    The last candidate, its density, the number of candidates drawn and whether
    the last candidate satisfies the constraint.

    """

    def cond_fun(carry):
        _, num_attempts, _, _, found = carry
        return jnp.logical_not(found) & (num_attempts < max_attempts)

    def body_fun(carry):
        rng_key, num_attempts, _, _, _ = carry
        rng_key, subkey = jax.random.split(rng_key)
        particle = sample_uniform(subkey, domain)
        density = density_fn(particle)
        return rng_key, num_attempts + 1, particle, density, density > density_threshold

    dtype = jnp.result_type(float)
    init_carry = (
        rng_key,
        jnp.asarray(0),
        jnp.zeros(2, dtype=dtype),
        jnp.asarray(0.0, dtype=dtype),
        jnp.asarray(False),
    )
    _, num_attempts, particle, density, found = jax.lax.while_loop(
        cond_fun, body_fun, init_carry
    )
    return particle, density, num_attempts, found


def build_create_fn(density_fn: Callable, domain: Domain, max_attempts: int = 10_000):
    """Replacement generator for the nested sampling kernel."""

    def create_fn(rng_key: PRNGKey, density_threshold: float):
        return constrained_uniform_sample(
            rng_key, density_fn, domain, density_threshold, max_attempts
        )

    return create_fn


def as_top_level_api(
    target: Union[Target, Family, str],
    num_live: int = 100,
    max_attempts: int = 10_000,
    min_iterations: int = 50,
    remaining_evidence_tolerance: float = 0.01,
) -> SamplingAlgorithm:
    """Implements the user interface for rejection Nested Sampling.

    Examples
    --------

    .. code::

        ns = samplerlab.ns("bimodal", num_live=200)
        state = ns.init(rng_key=init_key)
        new_state, info = ns.step(rng_key, state)

    Parameters
    ----------
    target
        The target to sample from, or the name of its family. Its density is
        the likelihood and its domain the support of the uniform prior.
    num_live
        Number of live points.
    max_attempts
        Number of candidates drawn before the replacement search gives up and
        the run is declared converged.
    min_iterations
        Number of discards before the remaining-evidence test applies.
    remaining_evidence_tolerance
        Relative size of the remaining evidence below which the run stops.

    Returns
    -------
    A ``SamplingAlgorithm``.

    """
    if num_live < 2:
        raise ValueError(f"num_live must be at least 2, got {num_live}.")
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got {max_attempts}.")

    target = as_target(target)
    create_fn = build_create_fn(target.density, target.domain, max_attempts)
    kernel = base.build_kernel(create_fn, min_iterations, remaining_evidence_tolerance)

    def init_fn(position: Optional[ArrayLike] = None, rng_key: PRNGKey = None):
        if position is None and rng_key is None:
            raise ValueError("A rng_key is needed to draw the initial live points.")
        return base.init(position, rng_key, target.density, target.domain, num_live)

    def step_fn(rng_key: PRNGKey, state):
        return kernel(rng_key, state)

    return SamplingAlgorithm(init_fn, step_fn)
