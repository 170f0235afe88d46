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
"""Base components for Nested Sampling.

This module provides the data structures (`NSState`, `NSInfo`) and the kernel
of the Nested Sampler. Nested Sampling is a Monte Carlo method primarily aimed
at Bayesian evidence (marginal likelihood) computation and posterior sampling,
particularly effective for multi-modal distributions.

The core idea is to transform the two-dimensional evidence integral into a
one-dimensional integral over the prior volume, ordered by likelihood. This is
achieved by iteratively replacing the point with the lowest likelihood among a
set of "live" points with a new point sampled from the prior, subject to the
constraint that its likelihood must be higher than the one just discarded.

The prior is uniform over the target's domain and the likelihood is the
target's unnormalized density, so the evidence is the mean of the density over
the domain.
"""
import logging
from typing import Callable, NamedTuple, Optional

import jax
import jax.numpy as jnp

from samplerlab.diagnostics import accumulate_log_evidence
from samplerlab.targets import Domain
from samplerlab.types import Array, ArrayLike, PRNGKey
from samplerlab.util import (
    append_to_history,
    empty_history,
    recorded,
    sample_uniform,
)

__all__ = [
    "NSState",
    "NSInfo",
    "init",
    "build_kernel",
    "SAMPLING",
    "CONVERGED_EXHAUSTED",
    "CONVERGED_EVIDENCE",
    "DENSITY_FLOOR",
]

logger = logging.getLogger(__name__)

#: The run is still discarding and replacing live points.
SAMPLING = 0
#: The search for a replacement live point ran out of attempts.
CONVERGED_EXHAUSTED = 1
#: The evidence left in the live points became negligible.
CONVERGED_EVIDENCE = 2

#: Densities and volumes are floored to this value before taking logarithms.
DENSITY_FLOOR = 1e-300


class NSState(NamedTuple):
    """State of the Nested Sampler.

    Attributes
    ----------
    particles
        Positions of the live points, of shape ``(num_live, 2)``.
    density
        Density of each live point.
    logdensity
        Log of the density of each live point, floored at `DENSITY_FLOOR`.
    iteration
        Number of live points discarded so far.
    volume
        The current prior volume estimate :math:`X`, 1 before the first discard.
    logZ
        The accumulated log evidence estimate from the dead points.
    information
        The information statistic :math:`H`, in nats.
    dead_particle_buffer
        Storage for the positions of the discarded points, read through
        `dead_particles`.
    dead_density_buffer
        Storage for the density of each discarded point, read through
        `dead_density`.
    dead_volume_buffer
        Storage for the prior volume at each discard, read through
        `dead_volume`.
    logZ_buffer
        Storage for the log evidence after each discard, read through
        `logZ_history`.
    status
        One of `SAMPLING`, `CONVERGED_EXHAUSTED` or `CONVERGED_EVIDENCE`.
    num_attempts
        Number of candidates drawn by the last replacement search.
    """

    particles: Array
    density: Array
    logdensity: Array
    iteration: int
    volume: float
    logZ: float
    information: float
    dead_particle_buffer: Array
    dead_density_buffer: Array
    dead_volume_buffer: Array
    logZ_buffer: Array
    status: int
    num_attempts: int

    @property
    def dead_particles(self) -> Array:
        """Positions of the discarded points, in discard order."""
        return recorded(self.dead_particle_buffer, self.iteration)

    @property
    def dead_density(self) -> Array:
        """Density of each discarded point. The sequence is non-decreasing."""
        return recorded(self.dead_density_buffer, self.iteration)

    @property
    def dead_volume(self) -> Array:
        """Prior volume estimate at the time of each discard. The sequence is
        strictly decreasing."""
        return recorded(self.dead_volume_buffer, self.iteration)

    @property
    def logZ_history(self) -> Array:
        """The log evidence after each discard."""
        return recorded(self.logZ_buffer, self.iteration)


class NSInfo(NamedTuple):
    """Additional information returned at each step of the Nested Sampler.

    Attributes
    ----------
    particle
        The live point that was discarded.
    density
        Its density, the new likelihood threshold.
    volume
        The prior volume estimate recorded with the discarded point.
    delta_volume
        The volume :math:`X_{k-1} - X_k` assigned to the discarded point.
    log_weight
        The log of its evidence increment :math:`L \\Delta X`.
    logZ
        The log evidence after the discard.
    information
        The information statistic after the discard.
    new_particle
        The point drawn to replace the discarded one.
    new_density
        Its density.
    num_attempts
        Number of candidates drawn to find the replacement.
    is_replaced
        Whether a replacement was found.
    is_converged
        Whether the run is over after this step.
    status
        The status of the run after this step.
    """

    particle: Array
    density: float
    volume: float
    delta_volume: float
    log_weight: float
    logZ: float
    information: float
    new_particle: Array
    new_density: float
    num_attempts: int
    is_replaced: bool
    is_converged: bool
    status: int


def init(
    particles: Optional[ArrayLike],
    rng_key: Optional[PRNGKey],
    density_fn: Callable,
    domain: Domain,
    num_live: int,
) -> NSState:
    """Initializes the Nested Sampler state.

    Parameters
    ----------
    particles
        Initial live points of shape ``(num_live, 2)``, drawn from the prior
        when None.
    rng_key
        Key used to draw the live points uniformly from the domain.
    density_fn
        The unnormalized density of a single particle.
    domain
        The domain the prior is uniform on.
    num_live
        Number of live points.

    Returns
    -------
    NSState
        The initial state of the Nested Sampler.
    """
    if particles is None:
        particles = sample_uniform(rng_key, domain, num_live)
    particles = jnp.asarray(particles, dtype=float)
    density = jax.vmap(density_fn)(particles)
    return NSState(
        particles,
        density,
        floored_log(density),
        jnp.asarray(0),
        jnp.asarray(1.0),
        jnp.asarray(-jnp.inf),
        jnp.asarray(0.0),
        empty_history(2),
        empty_history(),
        empty_history(),
        empty_history(),
        jnp.asarray(SAMPLING),
        jnp.asarray(0),
    )


def build_kernel(
    create_fn: Callable,
    min_iterations: int = 50,
    remaining_evidence_tolerance: float = 0.01,
) -> Callable:
    """Build the Nested Sampling kernel.

    Each step:

    1. finds the live point with the lowest density :math:`L_{min}` (the first
       one in case of ties),
    2. shrinks the prior volume deterministically,
       :math:`X_k = X_{k-1} e^{-1/N}`, and records the point as dead,
    3. adds :math:`L_{min} (X_{k-1} - X_k)` to the evidence and updates the
       information :math:`H`,
    4. replaces the point by a new one with density above :math:`L_{min}`,
       generated by `create_fn`,
    5. checks whether the run is over.

    The run is over when `create_fn` fails to find a replacement,
    or, after `min_iterations` discards, when the largest contribution the
    live points could still make, :math:`\\max L \\times X`, is less than
    `remaining_evidence_tolerance` times the current evidence.

    Parameters
    ----------
    create_fn
        Generates a replacement point, with signature
        `(rng_key, density_threshold) -> (particle, density, num_attempts, found)`.
    min_iterations
        Number of discards before the remaining-evidence test applies.
    remaining_evidence_tolerance
        Relative size of the remaining evidence below which the run stops.

    Returns
    -------
    Callable
        A kernel function for Nested Sampling:
        `(rng_key, state) -> (new_state, ns_info)`.
    """

    def kernel(rng_key: PRNGKey, state: NSState) -> tuple[NSState, NSInfo]:
        if int(state.status) != SAMPLING:
            return state, _converged_info(state)

        num_live = state.particles.shape[0]
        dead_idx = jnp.argmin(state.density)
        dead_particle = state.particles[dead_idx]
        dead_density = state.density[dead_idx]

        # Deterministic shrinkage of the prior volume
        volume = state.volume * jnp.exp(-1.0 / num_live)
        delta_volume = state.volume - volume

        log_weight = state.logdensity[dead_idx] + floored_log(delta_volume)
        logZ = accumulate_log_evidence(state.logZ, log_weight, state.iteration == 0)
        information = update_information(
            state.information, dead_density, delta_volume, logZ
        )

        new_particle, new_density, num_attempts, is_replaced = create_fn(
            rng_key, dead_density
        )
        particles = jnp.where(
            is_replaced,
            state.particles.at[dead_idx].set(new_particle),
            state.particles,
        )
        density = jnp.where(
            is_replaced, state.density.at[dead_idx].set(new_density), state.density
        )

        iteration = state.iteration + 1
        remaining_evidence = density.max() * volume
        is_negligible = (iteration > min_iterations) & (
            remaining_evidence < remaining_evidence_tolerance * jnp.exp(logZ)
        )
        status = jnp.where(
            is_replaced,
            jnp.where(is_negligible, CONVERGED_EVIDENCE, SAMPLING),
            CONVERGED_EXHAUSTED,
        )

        new_state = NSState(
            particles,
            density,
            floored_log(density),
            iteration,
            volume,
            logZ,
            information,
            append_to_history(
                state.dead_particle_buffer, state.iteration, dead_particle
            ),
            append_to_history(state.dead_density_buffer, state.iteration, dead_density),
            append_to_history(state.dead_volume_buffer, state.iteration, volume),
            append_to_history(state.logZ_buffer, state.iteration, logZ),
            status,
            num_attempts,
        )
        logger.debug(
            "Iteration %d: discarded density %.3e, X = %.3e, logZ = %.4f",
            int(iteration),
            float(dead_density),
            float(volume),
            float(logZ),
        )
        is_converged = status != SAMPLING
        if bool(is_converged):
            logger.info(
                "Nested sampling converged after %d iterations (status %d), logZ = %.4f",
                int(iteration),
                int(status),
                float(logZ),
            )
        info = NSInfo(
            dead_particle,
            dead_density,
            volume,
            delta_volume,
            log_weight,
            logZ,
            information,
            new_particle,
            new_density,
            num_attempts,
            is_replaced,
            is_converged,
            status,
        )
        return new_state, info

    return kernel


def update_information(
    information: float, density: float, delta_volume: float, logZ: float
) -> float:
    """Incremental estimate of the information :math:`H`.

    With the weight :math:`w = L \\Delta X` and the running evidence
    :math:`Z`, adds :math:`w \\log L / Z - w \\log w / Z`. Nothing is added
    while the evidence is zero.

    """
    weight = density * delta_volume
    evidence = jnp.exp(logZ)
    safe_evidence = jnp.where(evidence > 0, evidence, 1.0)
    increment = (
        weight * floored_log(density) - weight * floored_log(weight)
    ) / safe_evidence
    return information + jnp.where(evidence > 0, increment, 0.0)


def _converged_info(state: NSState) -> NSInfo:
    """Report for a step taken after the run is over: nothing changes."""
    nan = jnp.asarray(jnp.nan)
    last_particle = jnp.full(2, jnp.nan)
    return NSInfo(
        last_particle,
        nan,
        state.volume,
        jnp.asarray(0.0),
        nan,
        state.logZ,
        state.information,
        last_particle,
        nan,
        jnp.asarray(0),
        jnp.asarray(False),
        jnp.asarray(True),
        state.status,
    )


def floored_log(value: ArrayLike) -> Array:
    return jnp.log(jnp.maximum(value, DENSITY_FLOOR))
