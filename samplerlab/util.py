"""Utility functions for samplerlab."""
import logging
from typing import Callable, Optional

import jax.numpy as jnp
from fastprogress.fastprogress import progress_bar as fastprogress_bar
from jax.random import split, uniform

from samplerlab.base import SamplingAlgorithm
from samplerlab.targets import Domain
from samplerlab.types import Array, ArrayLike, PRNGKey

__all__ = [
    "box_muller",
    "generate_gaussian_noise",
    "sample_uniform",
    "append_to_history",
    "empty_history",
    "recorded",
    "run_inference_algorithm",
]

logger = logging.getLogger(__name__)


def box_muller(rng_key: PRNGKey, shape=(2,), dtype=None) -> Array:
    """Draw standard normal variates with the Box-Muller transform.

    Two independent uniforms :math:`u, v` in :math:`(0, 1]` give the normal
    variate :math:`\\sqrt{-2 \\log u} \\cos(2 \\pi v)`.

    """
    dtype = jnp.result_type(float) if dtype is None else dtype
    key_u, key_v = split(rng_key)
    tiny = jnp.finfo(dtype).tiny
    u = uniform(key_u, shape, dtype=dtype, minval=tiny, maxval=1.0)
    v = uniform(key_v, shape, dtype=dtype)
    return jnp.sqrt(-2 * jnp.log(u)) * jnp.cos(2 * jnp.pi * v)


def generate_gaussian_noise(
    rng_key: PRNGKey,
    position: ArrayLike,
    mu: float = 0.0,
    sigma: float = 1.0,
) -> Array:
    """Generate N(mu, sigma) noise with the shape of a given position.

    Parameters
    ----------
    rng_key:
        The pseudo-random number generator key used to generate random numbers.
    position:
        Position whose shape and dtype the output should match.
    mu:
        The mean of the Gaussian distribution.
    sigma:
        The standard deviation of the Gaussian distribution.

    """
    position = jnp.asarray(position)
    sample = box_muller(rng_key, position.shape, position.dtype)
    return mu + sigma * sample


def sample_uniform(rng_key: PRNGKey, domain: Domain, num_samples: Optional[int] = None):
    """Draw positions uniformly from a rectangular domain.

    Returns an array of shape ``(2,)``, or ``(num_samples, 2)`` when
    `num_samples` is given.

    """
    shape = (2,) if num_samples is None else (num_samples, 2)
    lower = jnp.array([domain.xmin, domain.ymin])
    upper = jnp.array([domain.xmax, domain.ymax])
    return uniform(rng_key, shape, minval=lower, maxval=upper)


#: Number of rows of a freshly created history buffer.
HISTORY_CAPACITY = 128


def empty_history(*shape: int, capacity: int = HISTORY_CAPACITY) -> Array:
    """Buffer for a history of samples of the given shape.

    The buffer holds ``capacity`` rows of zeros. Which rows are recorded is
    tracked by the owner of the buffer, usually with a step counter, see
    :func:`recorded`.

    """
    return jnp.zeros((max(capacity, 1), *shape))


def append_to_history(buffer: Array, length: ArrayLike, value: ArrayLike) -> Array:
    """Record `value` as entry number `length` of a history buffer.

    When the buffer is full its capacity doubles. Appends at a given capacity
    share the same shapes, so a run of n steps triggers only about
    :math:`\\log_2 n` reallocations and compilations instead of one per step.

    """
    if int(length) >= buffer.shape[0]:
        buffer = jnp.concatenate([buffer, jnp.zeros_like(buffer)])
    return buffer.at[jnp.asarray(length)].set(jnp.asarray(value, buffer.dtype))


def recorded(buffer: Array, length: ArrayLike) -> Array:
    """The first `length` entries of a history buffer, in recording order."""
    return buffer[: int(length)]


def run_inference_algorithm(
    rng_key: PRNGKey,
    inference_algorithm: SamplingAlgorithm,
    num_steps: int,
    initial_state=None,
    initial_position: Optional[ArrayLike] = None,
    progress_bar: bool = False,
    observer: Optional[Callable] = None,
) -> tuple:
    """Drive a sampling algorithm for a number of steps.

    This is the reference stepping loop: each step runs to completion before
    the next one starts, so the loop can be abandoned between any two steps.
    Runs whose state reports convergence (nested sampling) stop early.

    Parameters
    ----------
    rng_key
        The random state used by JAX's random numbers generator.
    inference_algorithm
        One of samplerlab's sampling algorithms.
    num_steps
        Maximum number of steps.
    initial_state
        The initial state of the algorithm.
    initial_position
        Passed to the algorithm's `init` when the initial state is not provided.
    progress_bar
        Whether to display a progress bar.
    observer
        Called as ``observer(state, info)`` after every step, typically to
        redraw a visualization.

    Returns
    -------
        1. The final state.
        2. The list of step reports.
    """
    if initial_state is not None and initial_position is not None:
        raise ValueError(
            "Only one of `initial_state` or `initial_position` must be provided."
        )

    if initial_state is None:
        rng_key, init_key = split(rng_key, 2)
        initial_state = inference_algorithm.init(initial_position, init_key)

    keys = split(rng_key, num_steps)
    steps = fastprogress_bar(range(num_steps)) if progress_bar else range(num_steps)

    state = initial_state
    infos = []
    for i in steps:
        state, info = inference_algorithm.step(keys[i], state)
        infos.append(info)
        if observer is not None:
            observer(state, info)
        if bool(getattr(info, "is_converged", False)):
            logger.info("Run converged after %d steps.", i + 1)
            break

    return state, infos
