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
"""Metropolis accept/reject decisions shared by every chain-based sampler."""
import jax
import jax.numpy as jnp

from samplerlab.types import Array, PRNGKey

__all__ = [
    "safe_energy_diff",
    "density_ratio",
    "metropolis_sampling",
]


def safe_energy_diff(initial_energy: float, new_energy: float) -> float:
    delta_energy = initial_energy - new_energy
    delta_energy = jnp.where(jnp.isnan(delta_energy), -jnp.inf, delta_energy)
    return delta_energy


def density_ratio(
    new_logdensity: float, logdensity: float, beta: float = 1.0
) -> Array:
    """Ratio :math:`(p' / p)^\\beta` of two unnormalized densities.

    The ratio is computed from log-densities so that it never divides by zero.
    When both densities vanish the ratio is undefined and set to one; when only
    the current density vanishes the ratio is infinite and the move is always
    accepted.

    """
    log_ratio = beta * (new_logdensity - logdensity)
    both_zero = jnp.isneginf(new_logdensity) & jnp.isneginf(logdensity)
    return jnp.where(both_zero, 1.0, jnp.exp(log_ratio))


def metropolis_sampling(rng_key: PRNGKey, log_p_accept: float, state, new_state):
    """Accept or reject a proposal.

    The proposal is accepted with probability :math:`\\min(1, e^{\\log p})`
    by comparing this probability to a uniform draw :math:`u`. When the
    proposal is rejected the original state is returned unchanged.

    Returns
    -------
    The selected state, and a tuple ``(do_accept, p_accept, u)``.

    """
    p_accept = jnp.minimum(jnp.exp(log_p_accept), 1.0)
    u = jax.random.uniform(rng_key)
    do_accept = u < p_accept
    info = do_accept, p_accept, u
    return (
        jax.lax.cond(
            do_accept,
            lambda _: new_state,
            lambda _: state,
            operand=None,
        ),
        info,
    )
