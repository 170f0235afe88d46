# Copyright 2020- The Blackjax Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Utility functions for Nested Sampling.

This module provides helper functions to turn the dead points of a run into a
weighted posterior sample, and to summarize the state of a run.
"""
import jax.numpy as jnp

from samplerlab.diagnostics import importance_effective_sample_size
from samplerlab.ns.base import (
    CONVERGED_EVIDENCE,
    CONVERGED_EXHAUSTED,
    SAMPLING,
    NSState,
)
from samplerlab.types import Array

__all__ = [
    "posterior_weights",
    "posterior_samples",
    "posterior_effective_sample_size",
    "evidence_trace",
    "status_message",
]


def posterior_weights(state: NSState) -> Array:
    """Importance weight of every dead point.

    The weight of the i-th dead point uses the centered volume difference

    .. math:: w_i = \\frac{L_i (X_{i-1} - X_{i+1})}{2 Z}

    with :math:`X_{-1} = 1`. The last dead point has no successor yet, so its
    :math:`X_{i+1}` is extrapolated as :math:`X_i e^{-1/N}`. This is the usual
    approximation of the quadrature at the boundary, not an exact value.

    Returns all zeros while the evidence is zero or not finite.
    """
    volume = state.dead_volume
    num_dead = volume.shape[0]
    if num_dead == 0:
        return jnp.zeros((0,))

    num_live = state.particles.shape[0]
    previous = jnp.concatenate([jnp.ones(1), volume[:-1]])
    following = jnp.concatenate(
        [volume[1:], volume[-1:] * jnp.exp(-1.0 / num_live)]
    )

    evidence = jnp.exp(state.logZ)
    is_valid = jnp.isfinite(evidence) & (evidence > 0)
    safe_evidence = jnp.where(is_valid, evidence, 1.0)
    weights = state.dead_density * (previous - following) / (2 * safe_evidence)
    weights = jnp.where(jnp.isfinite(weights) & (weights > 0), weights, 0.0)
    return jnp.where(is_valid, weights, 0.0)


def posterior_samples(state: NSState) -> tuple[Array, Array]:
    """The dead points and their importance weights.

    The positions alone are not a posterior sample: the weights define the
    shape of the posterior, e.g. for weighted histograms.
    """
    return state.dead_particles, posterior_weights(state)


def posterior_effective_sample_size(state: NSState) -> Array:
    return importance_effective_sample_size(posterior_weights(state))


def evidence_trace(state: NSState) -> Array:
    """The log evidence after each discard."""
    return state.logZ_history


def status_message(state: NSState) -> str:
    status = int(state.status)
    iteration = int(state.iteration)
    if status == SAMPLING:
        return f"Sampling: iteration {iteration}, logZ = {float(state.logZ):.4f}"
    if status == CONVERGED_EXHAUSTED:
        return (
            f"Converged after {iteration} iterations: no point above the "
            f"likelihood threshold found in {int(state.num_attempts)} attempts"
        )
    if status == CONVERGED_EVIDENCE:
        return (
            f"Converged after {iteration} iterations: remaining evidence is "
            f"negligible, logZ = {float(state.logZ):.4f}"
        )
    raise ValueError(f"Unknown nested sampling status {status}.")
