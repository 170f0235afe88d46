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
"""Parallel tempering (replica exchange).

Each rung of a temperature ladder owns a replica that runs random walk
Metropolis against the tempered density :math:`p^\\beta`. Small values of
:math:`\\beta` flatten the target, so hot replicas cross the barriers between
modes that trap the cold (:math:`\\beta = 1`) replica.

Every `swap_frequency` sweeps, adjacent rungs :math:`(k, k + 1)` propose to
exchange their positions, which is accepted with probability

.. math:: \\min\\left(1, \\exp\\left[(\\beta_k - \\beta_{k+1})
    (\\log L_{k+1} - \\log L_k)\\right]\\right)

which is the ratio of the tempered densities after and before the exchange,
so that an exchange moving the better state to the colder rung is always
accepted.

Positions move between rungs while the inverse temperatures stay with their
rung: rung 0 always has :math:`\\beta = 1`, so the positions it holds after
every sweep are samples from the target, whichever replica they come from.
On the bimodal target, a six-rung ladder run for 8 000 sweeps leaves about
0.59 of the cold-rung samples in the :math:`(+2, +2)` mode, whose mixture
weight is 0.6. With the log-densities the other way round in the exponent,
the exchanges would push the worse state to the cold rung.

With a single rung there is nothing to exchange, and a sweep draws the same
random numbers as a step of :func:`samplerlab.mcmc.random_walk.build_kernel`.

Examples
--------

.. code::

    pt = samplerlab.parallel_tempering("bimodal", num_temperatures=6)
    state = pt.init(rng_key=init_key)
    new_state, info = pt.step(rng_key, state)

"""
import logging
import math
from functools import partial
from typing import Callable, NamedTuple, Optional, Union

import jax
import jax.numpy as jnp

from samplerlab.base import SamplingAlgorithm
from samplerlab.mcmc.random_walk import normal, rmh_transition
from samplerlab.targets import Domain, Family, Target, as_target
from samplerlab.tempering.ladder import build_ladder
from samplerlab.types import Array, ArrayLike, PRNGKey
from samplerlab.util import append_to_history, empty_history, recorded

__all__ = [
    "PTState",
    "PTInfo",
    "init",
    "build_kernel",
    "tempered_moves",
    "replica_exchange",
    "as_top_level_api",
    "swap_acceptance_rates",
    "replica_acceptance_rates",
    "ladder_diagnosis",
    "SWAP_LOG_DENSITY_FLOOR",
]

logger = logging.getLogger(__name__)

#: Log-densities are floored to log(1e-300) in the swap acceptance.
SWAP_LOG_DENSITY_FLOOR = math.log(1e-300)


class PTState(NamedTuple):
    """State of the parallel tempering run.

    Rows of the per-replica arrays are rungs of the ladder, cold rung first.

    positions
        Current position held by each rung, of shape ``(K, 2)``.
    logdensity
        Untempered log-density at each position.
    betas
        Inverse temperature of each rung. Never changes during a run.
    num_accepted
        Accepted Metropolis moves of each rung.
    num_proposals
        Proposed Metropolis moves of each rung.
    swap_accepted
        Accepted exchanges between rungs ``k`` and ``k + 1``, shape ``(K - 1,)``.
    swap_attempts
        Attempted exchanges between rungs ``k`` and ``k + 1``.
    iteration
        Number of sweeps.
    history_buffer
        Storage for the positions of the cold rung, read through `history`.
    replica_history_buffer
        Storage for the positions of every rung, read through
        `replica_history`.

    """

    positions: Array
    logdensity: Array
    betas: Array
    num_accepted: Array
    num_proposals: Array
    swap_accepted: Array
    swap_attempts: Array
    iteration: int
    history_buffer: Array
    replica_history_buffer: Array

    @property
    def history(self) -> Array:
        """Positions of the cold rung after every sweep: the posterior sample."""
        return recorded(self.history_buffer, self.iteration)

    @property
    def replica_history(self) -> Array:
        """Positions of every rung after every sweep, shape ``(n, K, 2)``."""
        return recorded(self.replica_history_buffer, self.iteration)


class PTInfo(NamedTuple):
    """Report on one sweep.

    proposals
        The position proposed to each rung.
    acceptance_rate
        Acceptance probability of each rung's move.
    is_accepted
        Whether each rung's move was accepted.
    is_swap_round
        Whether exchanges were attempted after this sweep.
    swap_acceptance_rate
        Acceptance probability of each adjacent exchange, zero when no
        exchange was attempted.
    swap_is_accepted
        Whether each adjacent exchange was accepted.

    """

    proposals: Array
    acceptance_rate: Array
    is_accepted: Array
    is_swap_round: bool
    swap_acceptance_rate: Array
    swap_is_accepted: Array


def init(
    position: Optional[ArrayLike],
    rng_key: Optional[PRNGKey],
    logdensity_fn: Callable,
    betas: Array,
    domain: Domain,
) -> PTState:
    """Create the replicas of a ladder.

    Parameters
    ----------
    position
        Starting positions of shape ``(K, 2)``, or a single ``(2,)`` position
        shared by every rung. When None, positions are drawn uniformly from a
        box centered on the origin with the width and height of the domain.
    rng_key
        Key used to draw the starting positions.
    logdensity_fn
        Log-probability density function of the target.
    betas
        The inverse temperature ladder.
    domain
        The target's domain.

    """
    num_temperatures = betas.shape[0]
    if position is None:
        half_extent = 0.5 * jnp.array([domain.width, domain.height])
        positions = jax.random.uniform(
            rng_key,
            (num_temperatures, 2),
            minval=-half_extent,
            maxval=half_extent,
        )
    else:
        positions = jnp.broadcast_to(
            jnp.asarray(position, dtype=float), (num_temperatures, 2)
        )

    num_pairs = num_temperatures - 1
    return PTState(
        positions,
        jax.vmap(logdensity_fn)(positions),
        betas,
        jnp.zeros(num_temperatures, dtype=int),
        jnp.zeros(num_temperatures, dtype=int),
        jnp.zeros(num_pairs, dtype=int),
        jnp.zeros(num_pairs, dtype=int),
        jnp.asarray(0),
        empty_history(2),
        empty_history(num_temperatures, 2),
    )


@partial(jax.jit, static_argnames=("logdensity_fn", "random_step"))
def tempered_moves(
    rng_key: PRNGKey,
    positions: Array,
    logdensity: Array,
    betas: Array,
    logdensity_fn: Callable,
    random_step: Callable,
):
    """One random walk Metropolis move for every rung, against :math:`p^\\beta`."""

    def move(rng_key, position, logdensity, beta):
        return rmh_transition(
            rng_key, position, logdensity, logdensity_fn, random_step, beta
        )

    keys = jax.random.split(rng_key, betas.shape[0])
    return jax.vmap(move)(keys, positions, logdensity, betas)


@jax.jit
def replica_exchange(
    rng_key: PRNGKey, positions: Array, logdensity: Array, betas: Array
) -> tuple[Array, Array, Array, Array]:
    """Attempt to swap the positions of every pair of adjacent rungs.

    Pairs are visited from the cold end of the ladder to the hot end, each
    attempt seeing the result of the previous ones.

    Returns
    -------
    The new positions and log-densities, and for each pair the acceptance
    probability and whether the exchange was accepted.

    """
    num_pairs = betas.shape[0] - 1
    keys = jax.random.split(rng_key, max(num_pairs, 1))
    p_accepts = []
    accepted = []
    for k in range(num_pairs):
        floored = jnp.maximum(logdensity, SWAP_LOG_DENSITY_FLOOR)
        log_p_accept = (betas[k] - betas[k + 1]) * (floored[k + 1] - floored[k])
        p_accept = jnp.minimum(jnp.exp(log_p_accept), 1.0)
        do_accept = jax.random.uniform(keys[k]) < p_accept

        pair = jnp.array([k, k + 1])
        swapped = pair[::-1]
        positions = jnp.where(
            do_accept, positions.at[pair].set(positions[swapped]), positions
        )
        logdensity = jnp.where(
            do_accept, logdensity.at[pair].set(logdensity[swapped]), logdensity
        )
        p_accepts.append(p_accept)
        accepted.append(do_accept)

    if num_pairs == 0:
        return positions, logdensity, jnp.zeros(0), jnp.zeros(0, dtype=bool)
    return positions, logdensity, jnp.stack(p_accepts), jnp.stack(accepted)


def build_kernel(swap_frequency: int = 10):
    """Build a parallel tempering kernel.

    Parameters
    ----------
    swap_frequency
        Exchanges are attempted after every `swap_frequency`-th sweep.

    Returns
    -------
    A kernel that takes a rng_key and the current state of the ladder and
    returns the state after one sweep, along with a report on the sweep.

    """

    def kernel(
        rng_key: PRNGKey,
        state: PTState,
        logdensity_fn: Callable,
        random_step: Callable,
    ) -> tuple[PTState, PTInfo]:
        if state.betas.shape[0] == 1:
            # A lone cold rung uses its key exactly as a Metropolis chain does.
            (position, logdensity), transition_info = rmh_transition(
                rng_key,
                state.positions[0],
                state.logdensity[0],
                logdensity_fn,
                random_step,
            )
            positions, logdensity = position[None], logdensity[None]
            transition_info = jax.tree_util.tree_map(
                lambda x: x[None], transition_info
            )
            key_swap = rng_key
        else:
            key_moves, key_swap = jax.random.split(rng_key)
            (positions, logdensity), transition_info = tempered_moves(
                key_moves,
                state.positions,
                state.logdensity,
                state.betas,
                logdensity_fn,
                random_step,
            )
        proposals, _, p_accept, _, do_accept = transition_info

        # The cold rung is recorded before the exchanges of this sweep.
        iteration = state.iteration + 1
        history = append_to_history(state.history_buffer, state.iteration, positions[0])
        replica_history = append_to_history(
            state.replica_history_buffer, state.iteration, positions
        )

        is_swap_round = int(iteration) % swap_frequency == 0
        if is_swap_round:
            positions, logdensity, swap_p_accept, swap_accepted = replica_exchange(
                key_swap, positions, logdensity, state.betas
            )
            logger.debug(
                "Sweep %d: exchanges accepted %s",
                int(iteration),
                swap_accepted.tolist(),
            )
        else:
            num_pairs = state.betas.shape[0] - 1
            swap_p_accept = jnp.zeros(num_pairs)
            swap_accepted = jnp.zeros(num_pairs, dtype=bool)

        new_state = PTState(
            positions,
            logdensity,
            state.betas,
            state.num_accepted + do_accept,
            state.num_proposals + 1,
            state.swap_accepted + swap_accepted,
            state.swap_attempts + int(is_swap_round),
            iteration,
            history,
            replica_history,
        )
        info = PTInfo(
            proposals,
            p_accept,
            do_accept,
            is_swap_round,
            swap_p_accept,
            swap_accepted,
        )
        return new_state, info

    return kernel


def as_top_level_api(
    target: Union[Target, Family, str],
    num_temperatures: int = 4,
    sigma: float = 0.3,
    spacing: str = "geometric",
    swap_frequency: int = 10,
) -> SamplingAlgorithm:
    """Implements the user interface for parallel tempering.

    Parameters
    ----------
    target
        The target to sample from, or the name of its family.
    num_temperatures
        Number of rungs of the ladder. With a single rung no exchange is ever
        possible and the run is a plain random walk Metropolis chain.
    sigma
        Standard deviation of the Gaussian proposal, the same for every rung.
    spacing
        The ladder spacing, see :mod:`samplerlab.tempering.ladder`.
    swap_frequency
        Exchanges are attempted after every `swap_frequency`-th sweep.

    Returns
    -------
    A ``SamplingAlgorithm``.

    """
    if num_temperatures < 1:
        logger.warning(
            "num_temperatures=%d is not a valid ladder size, using a single chain.",
            num_temperatures,
        )
        num_temperatures = 1
    if num_temperatures == 1:
        logger.warning("A single temperature cannot swap, running the cold chain alone.")
    if swap_frequency < 1:
        logger.warning(
            "swap_frequency=%d is not a valid frequency, swapping after every sweep.",
            swap_frequency,
        )
        swap_frequency = 1

    target = as_target(target)
    betas = build_ladder(num_temperatures, spacing)
    kernel = build_kernel(swap_frequency)
    random_step = normal(sigma)

    def init_fn(position: Optional[ArrayLike] = None, rng_key: PRNGKey = None):
        if position is None and rng_key is None:
            raise ValueError("A rng_key is needed to draw the initial positions.")
        return init(position, rng_key, target.logdensity, betas, target.domain)

    def step_fn(rng_key: PRNGKey, state):
        return kernel(rng_key, state, target.logdensity, random_step)

    return SamplingAlgorithm(init_fn, step_fn)


def replica_acceptance_rates(state: PTState) -> Array:
    """Metropolis acceptance rate of each rung, NaN before the first sweep."""
    safe = jnp.maximum(state.num_proposals, 1)
    return jnp.where(state.num_proposals > 0, state.num_accepted / safe, jnp.nan)


def swap_acceptance_rates(state: PTState) -> Array:
    """Exchange acceptance rate of each adjacent pair, NaN before any attempt."""
    safe = jnp.maximum(state.swap_attempts, 1)
    return jnp.where(state.swap_attempts > 0, state.swap_accepted / safe, jnp.nan)


def ladder_diagnosis(state: PTState, low: float = 0.2, high: float = 0.4) -> Array:
    """Flag the adjacent pairs whose exchange rate is outside ``[low, high]``.

    Too low a rate means the rungs are too far apart for states to travel
    along the ladder, too high a rate means rungs are wasted. Pairs without
    any attempt yet are not flagged.

    """
    rates = swap_acceptance_rates(state)
    return (state.swap_attempts > 0) & ((rates < low) | (rates > high))
