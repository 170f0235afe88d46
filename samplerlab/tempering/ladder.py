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
"""Inverse temperature ladders for parallel tempering.

A ladder is a decreasing sequence :math:`1 = \\beta_0 > \\beta_1 > \\dots >
\\beta_{K-1} > 0`. All spacings are deterministic functions of the number of
temperatures :math:`K`.

linear
    :math:`\\beta_k = 1 - 0.8 k / (K - 1)`, down to 0.2.
geometric
    :math:`\\beta_k = 0.2^{k / (K - 1)}`, a constant ratio between rungs.
exponential
    :math:`\\beta_k = e^{-2 k / (K - 1)}`, down to :math:`e^{-2}`.
adaptive
    :math:`\\beta_k = 0.15^{k / (K - 1)}`. A fixed geometric ladder reaching
    hotter temperatures, usually a reasonable approximation of a ladder tuned
    for ~30% swap acceptance. It is not tuned during the run.

"""
from typing import Callable

import jax.numpy as jnp

from samplerlab.types import Array

__all__ = ["SPACINGS", "linear", "geometric", "exponential", "adaptive", "build_ladder"]


def linear(num_temperatures: int) -> Array:
    k = jnp.arange(num_temperatures)
    return 1.0 - k * 0.8 / (num_temperatures - 1)


def geometric(num_temperatures: int) -> Array:
    k = jnp.arange(num_temperatures)
    return 0.2 ** (k / (num_temperatures - 1))


def exponential(num_temperatures: int) -> Array:
    k = jnp.arange(num_temperatures)
    return jnp.exp(-2.0 * k / (num_temperatures - 1))


def adaptive(num_temperatures: int) -> Array:
    k = jnp.arange(num_temperatures)
    return 0.15 ** (k / (num_temperatures - 1))


SPACINGS: dict[str, Callable] = {
    "linear": linear,
    "geometric": geometric,
    "exponential": exponential,
    "adaptive": adaptive,
}


def build_ladder(num_temperatures: int, spacing: str = "geometric") -> Array:
    """Inverse temperatures of a ladder, cold chain first.

    Parameters
    ----------
    num_temperatures
        Number of rungs :math:`K`. A single rung is the cold chain alone.
    spacing
        One of ``"linear"``, ``"geometric"``, ``"exponential"`` or
        ``"adaptive"``.

    Returns
    -------
    An array of shape ``(num_temperatures,)`` whose first entry is exactly 1.

    """
    if spacing not in SPACINGS:
        valid = ", ".join(SPACINGS)
        raise ValueError(f"Unknown spacing {spacing!r}, expected one of: {valid}.")
    if num_temperatures == 1:
        return jnp.ones(1)
    betas = SPACINGS[spacing](num_temperatures)
    return betas.at[0].set(1.0)
