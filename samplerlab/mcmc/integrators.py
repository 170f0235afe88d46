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
"""Symplectic, time-reversible, integrators for Hamiltonian trajectories."""
from typing import Callable, NamedTuple

import jax
import jax.numpy as jnp

from samplerlab.types import Array

__all__ = [
    "IntegratorState",
    "new_integrator_state",
    "velocity_verlet",
    "static_integration",
    "flip_momentum",
    "kinetic_energy",
]


class IntegratorState(NamedTuple):
    """State of the trajectory integration.

    We keep the gradient of the potential energy at the current position so
    that each leapfrog step only evaluates it once, at the new position.
    """

    position: Array
    momentum: Array
    potential_grad: Array


Integrator = Callable[[IntegratorState, float], IntegratorState]


def kinetic_energy(momentum: Array) -> float:
    """Kinetic energy for an identity mass matrix."""
    return 0.5 * jnp.sum(momentum**2)


def new_integrator_state(potential_grad_fn: Callable, position, momentum):
    return IntegratorState(position, momentum, potential_grad_fn(position))


def velocity_verlet(potential_grad_fn: Callable) -> Integrator:
    """The velocity Verlet (leapfrog) integrator.

    One step is a half step for the momentum, a full step for the position and
    a second half step for the momentum using the gradient at the new
    position. Chaining steps merges consecutive half steps into full steps, so
    a trajectory of :math:`L` steps is the usual leapfrog scheme: half
    momentum step, :math:`L` alternated position and momentum updates, the
    last momentum update being a half step.

    """

    def one_step(state: IntegratorState, step_size: float) -> IntegratorState:
        position, momentum, potential_grad = state
        momentum = momentum - 0.5 * step_size * potential_grad
        position = position + step_size * momentum
        potential_grad = potential_grad_fn(position)
        momentum = momentum - 0.5 * step_size * potential_grad
        return IntegratorState(position, momentum, potential_grad)

    return one_step


def static_integration(integrator: Integrator) -> Callable:
    """Generate a trajectory by integrating several times in one direction.

    Returns
    -------
    A function that takes the initial state, the step size and the number of
    steps and returns the final state together with the positions visited
    after every step, of shape ``(num_integration_steps, 2)``.

    """

    def integrate(
        initial_state: IntegratorState,
        step_size: float,
        num_integration_steps: int,
    ) -> tuple[IntegratorState, Array]:
        def one_step(state, _):
            state = integrator(state, step_size)
            return state, state.position

        return jax.lax.scan(
            one_step, initial_state, None, length=num_integration_steps
        )

    return integrate


def flip_momentum(state: IntegratorState) -> IntegratorState:
    """Flip the momentum of an integrator state.

    Running the dynamics from the end of a trajectory with flipped momentum
    retraces the trajectory back to its initial position.

    """
    return IntegratorState(state.position, -state.momentum, state.potential_grad)
