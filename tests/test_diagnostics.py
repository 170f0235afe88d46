"""Test the convergence diagnostics."""
import chex
import jax
import jax.numpy as jnp
import numpy as np
from absl.testing import absltest, parameterized

import samplerlab.diagnostics as diagnostics


def ar1_series(rng_key, num_samples, phi):
    """An autoregressive series x_t = phi x_{t-1} + noise."""
    noise = jax.random.normal(rng_key, (num_samples,))

    def one_step(x, eps):
        x = phi * x + eps
        return x, x

    _, series = jax.lax.scan(one_step, jnp.zeros(()), noise)
    return series


class AutocorrelationTest(chex.TestCase):
    def test_lag_zero_is_one(self):
        samples = jax.random.normal(jax.random.key(0), (500,))
        acf = diagnostics.autocorrelation(samples, max_lag=20)
        chex.assert_shape(acf, (21,))
        np.testing.assert_allclose(acf[0], 1.0)
        self.assertTrue(bool(jnp.all(jnp.abs(acf) <= 1.0 + 1e-12)))

    def test_matches_direct_sum(self):
        samples = jax.random.normal(jax.random.key(1), (64,))
        centered = samples - samples.mean()
        c0 = jnp.sum(centered * centered)
        expected = [jnp.sum(centered[: 64 - t] * centered[t:]) / c0 for t in range(6)]
        np.testing.assert_allclose(
            diagnostics.autocorrelation(samples, max_lag=5), expected, atol=1e-10
        )

    def test_constant_series(self):
        acf = diagnostics.autocorrelation(jnp.full(50, 3.0), max_lag=10)
        np.testing.assert_array_equal(acf, jnp.zeros(11))

    def test_empty_series(self):
        chex.assert_shape(diagnostics.autocorrelation(jnp.zeros(0)), (0,))

    def test_lags_beyond_series_are_zero(self):
        samples = jnp.array([1.0, 2.0, 0.0, 3.0, -1.0])
        acf = diagnostics.autocorrelation(samples, max_lag=8)
        chex.assert_shape(acf, (9,))
        np.testing.assert_array_equal(acf[5:], jnp.zeros(4))

    def test_adaptive_max_lag(self):
        acf_x = jnp.concatenate([jnp.ones(60), -jnp.ones(41)])
        acf_y = jnp.concatenate([jnp.ones(10), -jnp.ones(91)])
        self.assertEqual(diagnostics.adaptive_max_lag(acf_x, acf_y), 79)
        # Fast decay: the range is at least 50 lags.
        self.assertEqual(diagnostics.adaptive_max_lag(acf_y, acf_y), 50)
        # No zero crossing: every computed lag is shown.
        self.assertEqual(diagnostics.adaptive_max_lag(jnp.ones(101), acf_y), 100)


class EffectiveSampleSizeTest(chex.TestCase):
    def test_short_series_counts_as_independent(self):
        np.testing.assert_array_equal(
            diagnostics.effective_sample_size(jnp.arange(7.0)), 7.0
        )

    def test_uncorrelated_series_has_full_size(self):
        # Lag-one autocorrelation is -1: the sum stops immediately.
        samples = jnp.tile(jnp.array([1.0, -1.0]), 100)
        np.testing.assert_allclose(diagnostics.effective_sample_size(samples), 200.0)

    def test_independent_draws(self):
        samples = jax.random.normal(jax.random.key(2), (5000,))
        ess = diagnostics.effective_sample_size(samples)
        self.assertLessEqual(float(ess), 5000.0)
        self.assertGreater(float(ess), 4000.0)

    @parameterized.parameters([0.5, 0.9, 0.99])
    def test_never_exceeds_sample_count(self, phi):
        samples = ar1_series(jax.random.key(3), 2000, phi)
        ess = diagnostics.effective_sample_size(samples)
        self.assertGreater(float(ess), 0.0)
        self.assertLessEqual(float(ess), 2000.0)

    def test_correlated_series(self):
        samples = ar1_series(jax.random.key(4), 5000, 0.9)
        ess = diagnostics.effective_sample_size(samples)
        # The integrated autocorrelation time of an AR(1) series is
        # (1 + phi) / (1 - phi) = 19.
        self.assertLess(float(ess), 5000.0 / 5)
        self.assertGreater(float(ess), 5000.0 / 60)


class EvidenceTest(chex.TestCase):
    @parameterized.parameters(
        [(0.0, 0.0), (-3.0, 2.0), (1000.0, 1000.0), (-800.0, -801.0)]
    )
    def test_log_add_exp(self, a, b):
        np.testing.assert_allclose(
            diagnostics.log_add_exp(a, b), np.logaddexp(a, b), rtol=1e-12
        )

    def test_log_add_exp_with_zero_term(self):
        self.assertEqual(float(diagnostics.log_add_exp(-jnp.inf, -2.5)), -2.5)
        self.assertEqual(float(diagnostics.log_add_exp(4.0, -jnp.inf)), 4.0)
        self.assertEqual(float(diagnostics.log_add_exp(-jnp.inf, -jnp.inf)), -jnp.inf)

    def test_log_add_exp_elementwise(self):
        a = jnp.array([-jnp.inf, 0.0, 700.0])
        b = jnp.array([1.5, -jnp.inf, 710.0])
        result = diagnostics.log_add_exp(a, b)
        np.testing.assert_allclose(result, jnp.logaddexp(a, b), rtol=1e-15)
        self.assertTrue(bool(jnp.all(jnp.isfinite(result))))
        self.assertEqual(
            float(diagnostics.accumulate_log_evidence(-2.0, -jnp.inf, False)), -2.0
        )

    def test_accumulate_log_evidence(self):
        first = diagnostics.accumulate_log_evidence(-jnp.inf, jnp.log(0.25), True)
        np.testing.assert_allclose(first, jnp.log(0.25))
        second = diagnostics.accumulate_log_evidence(first, jnp.log(0.5), False)
        np.testing.assert_allclose(second, jnp.log(0.75))

    def test_importance_effective_sample_size(self):
        np.testing.assert_allclose(
            diagnostics.importance_effective_sample_size(jnp.full(40, 0.3)), 40.0
        )
        np.testing.assert_allclose(
            diagnostics.importance_effective_sample_size(jnp.array([0.0, 2.0, 0.0])),
            1.0,
        )
        np.testing.assert_allclose(
            diagnostics.importance_effective_sample_size(jnp.array([1.0, 1.0, 2.0])),
            16.0 / 6.0,
        )
        self.assertEqual(
            float(diagnostics.importance_effective_sample_size(jnp.zeros(5))), 0.0
        )

    def test_acceptance_rate(self):
        self.assertTrue(bool(jnp.isnan(diagnostics.acceptance_rate(0, 0))))
        np.testing.assert_allclose(diagnostics.acceptance_rate(3, 12), 0.25)


class PotentialScaleReductionTest(chex.TestCase):
    @parameterized.parameters([(0, 1), (1, 0)])
    def test_rhat(self, chain_axis, sample_axis):
        shape = [0, 0]
        shape[chain_axis] = 4
        shape[sample_axis] = 5000
        samples = jax.random.normal(jax.random.key(5), tuple(shape))
        rhat = diagnostics.potential_scale_reduction(
            samples, chain_axis=chain_axis, sample_axis=sample_axis
        )
        np.testing.assert_allclose(rhat, 1.0, rtol=1e-2)

    def test_rhat_detects_separated_chains(self):
        samples = jax.random.normal(jax.random.key(6), (2, 1000))
        samples = samples + jnp.array([[-3.0], [3.0]])
        self.assertGreater(float(diagnostics.potential_scale_reduction(samples)), 2.0)

    def test_rhat_needs_two_chains(self):
        with self.assertRaisesRegex(ValueError, "two or more chains"):
            diagnostics.potential_scale_reduction(jnp.zeros((1, 100)))


if __name__ == "__main__":
    absltest.main()
