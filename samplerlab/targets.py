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
"""Two-dimensional target densities.

Four unnormalized densities are available, each one chosen to stress a
different weakness of the samplers:

1. A correlated Gaussian (:math:`\\rho = 0.8`), the easy baseline.
2. Rosenbrock's "banana", a thin curved ridge.
3. Neal's funnel, where the scale of :math:`\\theta_2` depends exponentially
   on :math:`\\theta_1`, which defeats fixed step sizes.
4. A mixture of two isotropic Gaussians, to test mode hopping.

The family is resolved once with :func:`get_target`, which returns an
immutable :class:`Target` record. Samplers only ever call the functions stored
in that record, so the per-evaluation cost does not depend on which family was
selected.

Examples
--------

.. code::

    target = samplerlab.targets.get_target("funnel")
    logdensity = target.logdensity(jnp.array([0.0, 1.0]))
    grad_u = target.potential_grad(jnp.array([0.0, 1.0]))

"""
import enum
from typing import Callable, NamedTuple, Union

import jax
import jax.numpy as jnp

from samplerlab.types import Array, ArrayLike

__all__ = [
    "Family",
    "Domain",
    "Target",
    "get_target",
    "as_target",
    "density_grid",
    "gaussian_logdensity",
    "banana_logdensity",
    "funnel_logdensity",
    "bimodal_logdensity",
]

RHO = 0.8

BIMODAL_SIGMA = 0.8
BIMODAL_WEIGHTS = (0.4, 0.6)
BIMODAL_CENTERS = ((-2.0, -2.0), (2.0, 2.0))


class Family(str, enum.Enum):
    GAUSSIAN = "gaussian"
    BANANA = "banana"
    FUNNEL = "funnel"
    BIMODAL = "bimodal"


class Domain(NamedTuple):
    """Rectangular region of the parameter space.

    The domain is where the nested sampler draws its uniform prior samples
    from, and the range over which densities are displayed.

    """

    xmin: float
    xmax: float
    ymin: float
    ymax: float

    @property
    def width(self) -> float:
        return self.xmax - self.xmin

    @property
    def height(self) -> float:
        return self.ymax - self.ymin

    @property
    def area(self) -> float:
        return self.width * self.height

    def contains(self, position: ArrayLike) -> Array:
        x, y = position[0], position[1]
        return (
            (x >= self.xmin) & (x <= self.xmax) & (y >= self.ymin) & (y <= self.ymax)
        )


class Target(NamedTuple):
    """A target density together with everything the samplers need from it.

    family
        Which of the four families this target is.
    logdensity
        Log of the unnormalized density.
    density
        The unnormalized density itself, always non-negative.
    potential_grad
        Closed-form gradient of the potential energy :math:`U = -\\log p`.
    domain
        The finite region used as a uniform prior and as the display range.

    """

    family: Family
    logdensity: Callable
    density: Callable
    potential_grad: Callable
    domain: Domain

    def potential(self, position: ArrayLike) -> Array:
        return -self.logdensity(position)


# --------------------------------------------------------------------
#                           CORRELATED GAUSSIAN
# --------------------------------------------------------------------


def gaussian_logdensity(position: ArrayLike) -> Array:
    x, y = position[0], position[1]
    return -(x * x - 2 * RHO * x * y + y * y) / (2 * (1 - RHO * RHO))


def gaussian_potential_grad(position: ArrayLike) -> Array:
    x, y = position[0], position[1]
    denom = 1 - RHO * RHO
    return jnp.stack([(x - RHO * y) / denom, (y - RHO * x) / denom])


# --------------------------------------------------------------------
#                              BANANA
# --------------------------------------------------------------------


def banana_logdensity(position: ArrayLike) -> Array:
    x, y = position[0], position[1]
    return -(x * x + 100 * (y - x * x) ** 2) / 200


def banana_potential_grad(position: ArrayLike) -> Array:
    x, y = position[0], position[1]
    diff = y - x * x
    return jnp.stack([(x - 200 * x * diff) / 100, diff])


# --------------------------------------------------------------------
#                           NEAL'S FUNNEL
# --------------------------------------------------------------------


def funnel_logdensity(position: ArrayLike) -> Array:
    x, y = position[0], position[1]
    return -(x * x / 18 + y * y * jnp.exp(-2 * x) / 2)


def funnel_potential_grad(position: ArrayLike) -> Array:
    x, y = position[0], position[1]
    inv_var = jnp.exp(-2 * x)
    return jnp.stack([x / 9 - y * y * inv_var, y * inv_var])


# --------------------------------------------------------------------
#                          BIMODAL MIXTURE
# --------------------------------------------------------------------


def _bimodal_component_logdensities(position: ArrayLike) -> Array:
    centers = jnp.asarray(BIMODAL_CENTERS)
    sq_dist = jnp.sum((position[None, :] - centers) ** 2, axis=-1)
    return jnp.log(jnp.asarray(BIMODAL_WEIGHTS)) - sq_dist / (
        2 * BIMODAL_SIGMA**2
    )


def bimodal_logdensity(position: ArrayLike) -> Array:
    return jax.scipy.special.logsumexp(_bimodal_component_logdensities(position))


def bimodal_potential_grad(position: ArrayLike) -> Array:
    # Gradient of each component weighted by its responsibility.
    centers = jnp.asarray(BIMODAL_CENTERS)
    responsibilities = jax.nn.softmax(_bimodal_component_logdensities(position))
    return (
        jnp.sum(responsibilities[:, None] * (position[None, :] - centers), axis=0)
        / BIMODAL_SIGMA**2
    )


def _as_density(logdensity_fn: Callable) -> Callable:
    def density(position: ArrayLike) -> Array:
        return jnp.exp(logdensity_fn(position))

    return density


_TARGETS = {
    Family.GAUSSIAN: Target(
        Family.GAUSSIAN,
        gaussian_logdensity,
        _as_density(gaussian_logdensity),
        gaussian_potential_grad,
        Domain(-4.0, 4.0, -4.0, 4.0),
    ),
    Family.BANANA: Target(
        Family.BANANA,
        banana_logdensity,
        _as_density(banana_logdensity),
        banana_potential_grad,
        Domain(-3.0, 3.0, -1.0, 8.0),
    ),
    Family.FUNNEL: Target(
        Family.FUNNEL,
        funnel_logdensity,
        _as_density(funnel_logdensity),
        funnel_potential_grad,
        Domain(-10.0, 10.0, -50.0, 50.0),
    ),
    Family.BIMODAL: Target(
        Family.BIMODAL,
        bimodal_logdensity,
        _as_density(bimodal_logdensity),
        bimodal_potential_grad,
        Domain(-5.0, 5.0, -5.0, 5.0),
    ),
}


def get_target(family: Union[Family, str]) -> Target:
    """Resolve a family name into its target record.

    Parameters
    ----------
    family
        A :class:`Family` member or its string value, e.g. ``"banana"``.

    Returns
    -------
    The :class:`Target` of the family.

    """
    try:
        family = Family(family)
    except ValueError:
        valid = ", ".join(f.value for f in Family)
        raise ValueError(
            f"Unknown target family {family!r}, expected one of: {valid}."
        ) from None
    return _TARGETS[family]


def density_grid(target: Target, num_points: int = 200) -> tuple[Array, Array, Array]:
    """Evaluate the density on a regular grid covering the target's domain.

    The grid starts at the lower corner of the domain and does not include the
    upper edges, one cell per point.

    Returns
    -------
    The grid abscissae of shape ``(num_points,)``, ordinates of shape
    ``(num_points,)`` and density values of shape ``(num_points, num_points)``
    indexed as ``values[i, j] = p(xs[i], ys[j])``.

    """
    domain = target.domain
    xs = jnp.linspace(domain.xmin, domain.xmax, num_points, endpoint=False)
    ys = jnp.linspace(domain.ymin, domain.ymax, num_points, endpoint=False)
    grid_x, grid_y = jnp.meshgrid(xs, ys, indexing="ij")
    positions = jnp.stack([grid_x.ravel(), grid_y.ravel()], axis=-1)
    values = jax.vmap(target.density)(positions).reshape(num_points, num_points)
    return xs, ys, values


def as_target(target: Union[Target, Family, str]) -> Target:
    """Accept either an already resolved target or a family name."""
    if isinstance(target, Target):
        return target
    return get_target(target)
