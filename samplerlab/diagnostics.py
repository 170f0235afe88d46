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
"""Convergence diagnostics and evidence bookkeeping."""
import jax.numpy as jnp
from scipy.fftpack import next_fast_len  # type: ignore

from samplerlab.types import Array, ArrayLike

__all__ = [
    "autocorrelation",
    "effective_sample_size",
    "adaptive_max_lag",
    "acceptance_rate",
    "log_add_exp",
    "accumulate_log_evidence",
    "importance_effective_sample_size",
    "potential_scale_reduction",
]

#: Autocorrelations below this value end the sum in the ESS estimate.
ESS_ACF_CUTOFF = 0.05


def autocorrelation(samples: ArrayLike, max_lag: int = 100) -> Array:
    """Normalized autocorrelation function of a one-dimensional series.

    Parameters
    ----------
    samples
        The series, e.g. the trace of one coordinate of a chain.
    max_lag
        Largest lag to compute.

    Returns
    -------
    The autocorrelations for lags ``0, ..., max_lag``. Lags longer than the
    series have zero autocorrelation, and so does every lag of a constant
    series. An empty series gives an empty array.

    Notes
    -----
    The autocovariances :math:`c_t = \\sum_i (x_i - \\bar x)(x_{i+t} - \\bar x)`
    are computed with a zero-padded FFT, and normalized by :math:`c_0`.

    """
    samples = jnp.asarray(samples, dtype=float)
    num_samples = samples.shape[0]
    if num_samples == 0:
        return jnp.zeros((0,))

    centered = samples - samples.mean()
    m = next_fast_len(2 * num_samples)
    fft = jnp.fft.rfft(centered, n=m)
    autocov = jnp.fft.irfft(fft * jnp.conjugate(fft), n=m)[:num_samples]

    total_var = autocov[0]
    safe_var = jnp.where(total_var > 0, total_var, 1.0)
    acf = jnp.where(total_var > 0, autocov / safe_var, 0.0)

    num_lags = min(max_lag + 1, num_samples)
    return jnp.zeros(max_lag + 1).at[:num_lags].set(acf[:num_lags])


def effective_sample_size(samples: ArrayLike) -> Array:
    """Effective sample size of a one-dimensional series.

    Notes
    -----
    The integrated autocorrelation time is estimated as

    .. math:: \\hat{\\tau} = 1 + 2 \\sum_{t=1}^{K} \\hat{\\rho}_t

    where :math:`K` is the last lag before the autocorrelation first drops
    below 0.05, looking at most at :math:`\\min(100, n / 2)` lags. The ESS is
    :math:`n / \\hat{\\tau}`, which never exceeds :math:`n`. Series shorter than
    10 samples are too short for the estimate and count as independent.

    """
    samples = jnp.asarray(samples, dtype=float)
    num_samples = samples.shape[0]
    if num_samples < 10:
        return jnp.asarray(float(num_samples))

    max_lag = min(100, num_samples // 2)
    acf = autocorrelation(samples, max_lag)[1:]
    # Only the lags before the first one under the cutoff are summed.
    mask = jnp.cumprod(acf >= ESS_ACF_CUTOFF)
    tau = 1.0 + 2.0 * jnp.sum(acf * mask)
    return jnp.minimum(num_samples / tau, num_samples)


def adaptive_max_lag(acf_x: ArrayLike, acf_y: ArrayLike, min_lag: int = 50) -> int:
    """Number of lags worth displaying for a pair of autocorrelation functions.

    The range extends a third beyond the first zero crossing of the slower
    decaying series, is at least `min_lag` long and never exceeds the lags
    that were computed.

    """
    acf_x = jnp.asarray(acf_x)
    acf_y = jnp.asarray(acf_y)
    computed = acf_x.shape[0] - 1

    def first_zero_crossing(acf):
        below = acf[1:] <= 0
        return jnp.where(below.any(), jnp.argmax(below) + 1, computed)

    crossing = int(jnp.maximum(first_zero_crossing(acf_x), first_zero_crossing(acf_y)))
    return min(computed, max(min_lag, int(crossing * 1.33)))


def acceptance_rate(num_accepted: ArrayLike, num_steps: ArrayLike) -> Array:
    """Fraction of accepted proposals, NaN before the first step."""
    num_steps = jnp.asarray(num_steps)
    safe_steps = jnp.where(num_steps > 0, num_steps, 1)
    return jnp.where(num_steps > 0, num_accepted / safe_steps, jnp.nan)


def log_add_exp(a: ArrayLike, b: ArrayLike) -> Array:
    """Compute :math:`\\log(e^a + e^b)`. A term equal to :math:`-\\infty`
    leaves the other one unchanged."""
    return jnp.logaddexp(a, b)


def accumulate_log_evidence(
    logZ: ArrayLike, log_weight: ArrayLike, is_first: ArrayLike
) -> Array:
    """Add a weight :math:`e^{\\log w}` to a running evidence :math:`e^{\\log Z}`.

    The first weight initializes the evidence directly.

    """
    return jnp.where(is_first, log_weight, jnp.logaddexp(logZ, log_weight))


def importance_effective_sample_size(weights: ArrayLike) -> Array:
    """Kish's effective sample size :math:`1 / \\sum_i \\hat{w}_i^2` of a
    weighted sample, where :math:`\\hat{w}` are the normalized weights.

    Returns 0 when every weight is zero.

    """
    weights = jnp.asarray(weights, dtype=float)
    total = weights.sum()
    safe_total = jnp.where(total > 0, total, 1.0)
    normalized = weights / safe_total
    sum_sq = jnp.sum(normalized**2)
    return jnp.where(total > 0, 1.0 / jnp.where(sum_sq > 0, sum_sq, 1.0), 0.0)


def potential_scale_reduction(
    input_array: ArrayLike, chain_axis: int = 0, sample_axis: int = 1
) -> Array:
    """Gelman and Rubin (1992)'s potential scale reduction for computing multiple MCMC chain convergence.

    Parameters
    ----------
    input_array:
        An array representing multiple chains of MCMC samples. The array must
        contains a chain dimension and a sample dimension.
    chain_axis
        The axis indicating the multiple chains. Default to 0.
    sample_axis
        The axis indicating a single chain of MCMC samples. Default to 1.

    Returns
    -------
    NDArray of the resulting statistics (r-hat), with the chain and sample dimensions squeezed.

    Notes
    -----
    The diagnostic is computed by:

    .. math:: \\hat{R} = \\frac{\\hat{V}}{W}

    where :math:`W` is the within-chain variance and :math:`\\hat{V}` is the posterior variance
    estimate for the pooled traces. This is the potential scale reduction factor, which
    converges to unity when each of the traces is a sample from the target posterior.

    """
    input_array = jnp.asarray(input_array)
    if input_array.shape[chain_axis] < 2:
        raise ValueError(
            "potential_scale_reduction as implemented only works for two or more chains."
        )

    num_samples = input_array.shape[sample_axis]
    per_chain_mean = input_array.mean(axis=sample_axis, keepdims=True)
    per_chain_var = input_array.var(axis=sample_axis, ddof=1, keepdims=True)
    between_chain_variance = num_samples * per_chain_mean.var(
        axis=chain_axis, ddof=1, keepdims=True
    )
    within_chain_variance = per_chain_var.mean(axis=chain_axis, keepdims=True)
    rhat_value = jnp.sqrt(
        (between_chain_variance / within_chain_variance + num_samples - 1)
        / (num_samples)
    )
    return rhat_value.squeeze()
