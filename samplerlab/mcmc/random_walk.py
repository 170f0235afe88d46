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
"""Random walk Metropolis-Hastings.

Let's note :math:`x_{t-1}` the previous position and :math:`x_t` the newly
sampled one. The proposal adds isotropic Gaussian noise to the current
position, :math:`x' = x_{t-1} + \\sigma \\epsilon` with
:math:`\\epsilon \\sim N(0, I)`, and is accepted with probability
:math:`\\min(1, p(x') / p(x_{t-1}))`. The proposal being symmetric, no
Hastings correction is needed.

Reference: :cite:p:`gelman2014bayesian` Section 11.2

Examples
--------

.. code::

    mh = samplerlab.mh("gaussian", sigma=0.5)
    state = mh.init(jnp.zeros(2))
    new_state, info = mh.step(rng_key, state)

"""
from functools import partial
from typing import Callable, NamedTuple, Optional, Union

import jax
import jax.numpy as jnp

from samplerlab.base import SamplingAlgorithm
from samplerlab.mcmc.proposal import density_ratio, metropolis_sampling
from samplerlab.targets import Family, Target, as_target
from samplerlab.types import Array, ArrayLike, PRNGKey
from samplerlab.util import (
    append_to_history,
    empty_history,
    generate_gaussian_noise,
    recorded,
)

__all__ = [
    "RWState",
    "RWInfo",
    "init",
    "normal",
    "rmh_transition",
    "build_kernel",
    "as_top_level_api",
]


def normal(sigma: float) -> Callable:
    """Normal Random Walk proposal.

    Propose a move whose coordinates are independent centered normal draws
    with standard deviation `sigma`.

    """
    if jnp.ndim(sigma) > 0:
        raise ValueError("sigma must be a scalar.")
    if sigma <= 0:
        raise ValueError(f"sigma must be positive, got {sigma}.")

    def propose(rng_key: PRNGKey, position: ArrayLike) -> Array:
        return generate_gaussian_noise(rng_key, position, sigma=sigma)

    return propose


class RWState(NamedTuple):
    """State of the RW chain.

    position
        Current position of the chain.
    logdensity
        Current value of the log-density.
    num_accepted
        Number of accepted proposals since the start of the run.
    num_steps
        Number of steps taken since the start of the run.
    history_buffer
        Storage for the positions the chain has been at after each step,
        read through `history`.

    """

    position: Array
    logdensity: float
    num_accepted: int
    num_steps: int
    history_buffer: Array

    @property
    def history(self) -> Array:
        """Every position the chain has been at after each step, in order,
        including repeated positions after a rejection."""
        return recorded(self.history_buffer, self.num_steps)


class RWInfo(NamedTuple):
    """Additional information on the RW transition.

    proposal
        The position that was proposed.
    ratio
        The density ratio :math:`p(x') / p(x)` of the proposal.
    acceptance_rate
        The acceptance probability :math:`\\min(1, \\text{ratio})`.
    u
        The uniform draw compared to the acceptance probability.
    is_accepted
        Whether the proposed position was accepted or the original position
        was returned.

    """

    proposal: Array
    ratio: float
    acceptance_rate: float
    u: float
    is_accepted: bool


def init(position: Optional[ArrayLike], logdensity_fn: Callable) -> RWState:
    """Create a chain state from a position.

    Parameters
    ----------
    position
        The initial position of the chain, the origin if None.
    logdensity_fn
        Log-probability density function of the distribution we wish to sample
        from.

    """
    if position is None:
        position = jnp.zeros(2)
    position = jnp.asarray(position, dtype=float)
    return RWState(
        position,
        logdensity_fn(position),
        jnp.asarray(0),
        jnp.asarray(0),
        empty_history(2),
    )


@partial(jax.jit, static_argnames=("logdensity_fn", "random_step"))
def rmh_transition(
    rng_key: PRNGKey,
    position: Array,
    logdensity: float,
    logdensity_fn: Callable,
    random_step: Callable,
    beta: float = 1.0,
):
    """One Metropolis move against the tempered density :math:`p^\\beta`.

    Returns
    -------
    The new position and log-density (the old ones if the move is rejected),
    and the tuple ``(proposal, ratio, p_accept, u, do_accept)``.

    """
    key_proposal, key_accept = jax.random.split(rng_key)
    new_position = position + random_step(key_proposal, position)
    new_logdensity = logdensity_fn(new_position)

    ratio = density_ratio(new_logdensity, logdensity, beta)
    (position, logdensity), (do_accept, p_accept, u) = metropolis_sampling(
        key_accept,
        jnp.log(ratio),
        (position, logdensity),
        (new_position, new_logdensity),
    )
    return (position, logdensity), (new_position, ratio, p_accept, u, do_accept)


def build_kernel():
    """Build a random walk Metropolis-Hastings kernel.

    Returns
    -------
    A kernel that takes a rng_key and the current state of the chain and that
    returns a new state of the chain along with information about the
    transition.

    """

    def kernel(
        rng_key: PRNGKey,
        state: RWState,
        logdensity_fn: Callable,
        random_step: Callable,
    ) -> tuple[RWState, RWInfo]:
        """Move the chain by one step.

        Parameters
        ----------
        rng_key:
           The pseudo-random number generator key used to generate random
           numbers.
        state:
            The current state of the chain.
        logdensity_fn:
            A function that returns the log-probability at a given position.
        random_step:
            A function that generates the move to add to the current position.

        Returns
        -------
        The next state of the chain and additional information about the current
        step.

        """
        (position, logdensity), transition_info = rmh_transition(
            rng_key, state.position, state.logdensity, logdensity_fn, random_step
        )
        proposal, ratio, p_accept, u, do_accept = transition_info

        new_state = RWState(
            position,
            logdensity,
            state.num_accepted + do_accept,
            state.num_steps + 1,
            append_to_history(state.history_buffer, state.num_steps, position),
        )
        return new_state, RWInfo(proposal, ratio, p_accept, u, do_accept)

    return kernel


def as_top_level_api(
    target: Union[Target, Family, str],
    sigma: float = 0.5,
) -> SamplingAlgorithm:
    """Implements the user interface for the random walk Metropolis kernel.

    Parameters
    ----------
    target
        The target to sample from, or the name of its family.
    sigma
        Standard deviation of the Gaussian proposal.

    Returns
    -------
    A ``SamplingAlgorithm``.

    """
    target = as_target(target)
    kernel = build_kernel()
    random_step = normal(sigma)

    def init_fn(position: Optional[ArrayLike] = None, rng_key=None):
        del rng_key
        return init(position, target.logdensity)

    def step_fn(rng_key: PRNGKey, state):
        return kernel(rng_key, state, target.logdensity, random_step)

    return SamplingAlgorithm(init_fn, step_fn)
