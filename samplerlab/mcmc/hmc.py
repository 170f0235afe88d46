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
"""Public API for the HMC Kernel"""
from functools import partial
from typing import Callable, NamedTuple, Optional, Union

import jax
import jax.numpy as jnp

import samplerlab.mcmc.integrators as integrators
from samplerlab.base import SamplingAlgorithm
from samplerlab.mcmc.proposal import metropolis_sampling, safe_energy_diff
from samplerlab.targets import Family, Target, as_target
from samplerlab.types import Array, ArrayLike, PRNGKey
from samplerlab.util import (
    append_to_history,
    empty_history,
    generate_gaussian_noise,
    recorded,
)

__all__ = [
    "HMCState",
    "HMCInfo",
    "init",
    "potential_energy",
    "build_kernel",
    "hmc_transition",
    "as_top_level_api",
]

#: Potential energy assigned to positions where the density is exactly zero.
ZERO_DENSITY_POTENTIAL = 1e10


class HMCState(NamedTuple):
    """State of the HMC algorithm.

    The HMC algorithm takes one position of the chain and returns another
    position. In order to make computations more efficient, we also store
    the current logdensity as well as the current gradient of the potential
    energy. The momentum is not part of the state: it is resampled at every
    step. The position after every step is recorded in `history_buffer` and read
    through `history`.

    """

    position: Array
    logdensity: float
    potential_grad: Array
    num_accepted: int
    num_steps: int
    history_buffer: Array

    @property
    def history(self) -> Array:
        return recorded(self.history_buffer, self.num_steps)


class HMCInfo(NamedTuple):
    """Additional information on the HMC transition.

    This additional information can be used for debugging or computing
    diagnostics.

    momentum:
        The momentum that was sampled and used to integrate the trajectory.
    proposal
        The position at the end of the trajectory.
    trajectory
        Every position visited by the integrator, of shape
        ``(num_integration_steps, 2)``. It has no effect on the chain.
    initial_energy
        Total energy :math:`H_0` at the start of the trajectory.
    energy:
        Total energy :math:`H_1` at the end of the trajectory.
    delta_energy
        The energy change :math:`H_1 - H_0`.
    acceptance_rate
        The acceptance probability :math:`\\min(1, e^{-(H_1 - H_0)})`.
    u
        The uniform draw compared to the acceptance probability.
    is_accepted
        Whether the proposed position was accepted or the original position
        was returned.
    is_divergent
        Whether the energy change exceeded the divergence threshold.
    num_integration_steps
        Number of times we run the symplectic integrator to build the trajectory

    """

    momentum: Array
    proposal: Array
    trajectory: Array
    initial_energy: float
    energy: float
    delta_energy: float
    acceptance_rate: float
    u: float
    is_accepted: bool
    is_divergent: bool
    num_integration_steps: int


def init(
    position: Optional[ArrayLike], logdensity_fn: Callable, potential_grad_fn: Callable
) -> HMCState:
    if position is None:
        position = jnp.zeros(2)
    position = jnp.asarray(position, dtype=float)
    return HMCState(
        position,
        logdensity_fn(position),
        potential_grad_fn(position),
        jnp.asarray(0),
        jnp.asarray(0),
        empty_history(2),
    )


def potential_energy(logdensity: float) -> float:
    """Potential energy :math:`U = -\\log p`.

    Zero (or undefined) densities get a large but finite potential so that
    energy differences stay comparable instead of becoming NaN.

    """
    density = jnp.exp(logdensity)
    return jnp.where(density > 0, -logdensity, ZERO_DENSITY_POTENTIAL)


def build_kernel(
    integrator: Callable = integrators.velocity_verlet,
    divergence_threshold: float = 1000,
):
    """Build a HMC kernel.

    Parameters
    ----------
    integrator
        The symplectic integrator to use to integrate the Hamiltonian dynamics.
    divergence_threshold
        Value of the difference in energy above which we consider that the transition is
        divergent.

    Returns
    -------
    A kernel that takes a rng_key and the current state of the chain and that
    returns a new state of the chain along with information about the
    transition.

    """

    def kernel(
        rng_key: PRNGKey,
        state: HMCState,
        logdensity_fn: Callable,
        potential_grad_fn: Callable,
        step_size: float,
        num_integration_steps: int,
    ) -> tuple[HMCState, HMCInfo]:
        """Generate a new sample with the HMC kernel."""
        (position, logdensity, potential_grad), info = hmc_transition(
            rng_key,
            state.position,
            state.logdensity,
            state.potential_grad,
            logdensity_fn,
            potential_grad_fn,
            step_size,
            num_integration_steps,
            integrator,
            divergence_threshold,
        )
        new_state = HMCState(
            position,
            logdensity,
            potential_grad,
            state.num_accepted + info.is_accepted,
            state.num_steps + 1,
            append_to_history(state.history_buffer, state.num_steps, position),
        )
        return new_state, info

    return kernel


@partial(
    jax.jit,
    static_argnames=(
        "logdensity_fn",
        "potential_grad_fn",
        "num_integration_steps",
        "integrator",
        "divergence_threshold",
    ),
)
def hmc_transition(
    rng_key: PRNGKey,
    position: Array,
    logdensity: float,
    potential_grad: Array,
    logdensity_fn: Callable,
    potential_grad_fn: Callable,
    step_size: float,
    num_integration_steps: int,
    integrator: Callable = integrators.velocity_verlet,
    divergence_threshold: float = 1000,
):
    """Integrate a trajectory from `position` and accept or reject its end.

    Returns
    -------
    The new position, log-density and potential gradient (the old ones if the
    proposal is rejected), and the ``HMCInfo`` of the transition.

    """
    build_trajectory = integrators.static_integration(integrator(potential_grad_fn))

    key_momentum, key_accept = jax.random.split(rng_key, 2)
    momentum = generate_gaussian_noise(key_momentum, position)

    initial_state = integrators.IntegratorState(position, momentum, potential_grad)
    end_state, trajectory = build_trajectory(
        initial_state, step_size, num_integration_steps
    )
    new_logdensity = logdensity_fn(end_state.position)

    initial_energy = potential_energy(logdensity) + integrators.kinetic_energy(
        momentum
    )
    new_energy = potential_energy(new_logdensity) + integrators.kinetic_energy(
        end_state.momentum
    )
    delta_energy = safe_energy_diff(initial_energy, new_energy)
    is_divergent = -delta_energy > divergence_threshold

    selected, (do_accept, p_accept, u) = metropolis_sampling(
        key_accept,
        delta_energy,
        (position, logdensity, potential_grad),
        (end_state.position, new_logdensity, end_state.potential_grad),
    )
    info = HMCInfo(
        momentum,
        end_state.position,
        trajectory,
        initial_energy,
        new_energy,
        new_energy - initial_energy,
        p_accept,
        u,
        do_accept,
        is_divergent,
        num_integration_steps,
    )
    return selected, info


def as_top_level_api(
    target: Union[Target, Family, str],
    step_size: float = 0.1,
    num_integration_steps: int = 20,
    *,
    divergence_threshold: int = 1000,
    integrator: Callable = integrators.velocity_verlet,
) -> SamplingAlgorithm:
    """Implements the (basic) user interface for the HMC kernel.

    Examples
    --------

    .. code::

        hmc = samplerlab.hmc("funnel", step_size=0.05, num_integration_steps=30)
        state = hmc.init(jnp.zeros(2))
        new_state, info = hmc.step(rng_key, state)

    Parameters
    ----------
    target
        The target to sample from, or the name of its family.
    step_size
        The value to use for the step size in the symplectic integrator.
    num_integration_steps
        The number of steps we take with the symplectic integrator at each
        sample step before returning a sample.
    divergence_threshold
        The absolute value of the difference in energy between two states above
        which we say that the transition is divergent.
    integrator
        (algorithm parameter) The symplectic integrator to use to integrate the
        trajectory.

    Returns
    -------
    A ``SamplingAlgorithm``.
    """
    if step_size <= 0:
        raise ValueError(f"step_size must be positive, got {step_size}.")
    if num_integration_steps < 1:
        raise ValueError(
            f"num_integration_steps must be at least 1, got {num_integration_steps}."
        )

    target = as_target(target)
    kernel = build_kernel(integrator, divergence_threshold)

    def init_fn(position: Optional[ArrayLike] = None, rng_key=None):
        del rng_key
        return init(position, target.logdensity, target.potential_grad)

    def step_fn(rng_key: PRNGKey, state):
        return kernel(
            rng_key,
            state,
            target.logdensity,
            target.potential_grad,
            step_size,
            num_integration_steps,
        )

    return SamplingAlgorithm(init_fn, step_fn)
