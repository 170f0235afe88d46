import chex
import jax
import jax.numpy as jnp
import numpy as np
from absl.testing import absltest, parameterized

from samplerlab.mcmc.proposal import (
    density_ratio,
    metropolis_sampling,
    safe_energy_diff,
)


class SafeEnergyDiffTest(chex.TestCase):
    def test_nan_energy_is_rejected(self):
        self.assertEqual(float(safe_energy_diff(1.0, jnp.nan)), -jnp.inf)
        np.testing.assert_allclose(safe_energy_diff(1.0, 3.0), -2.0)


class DensityRatioTest(chex.TestCase):
    def test_ratio(self):
        np.testing.assert_allclose(
            density_ratio(jnp.log(0.3), jnp.log(0.6)), 0.5, rtol=1e-12
        )

    @parameterized.parameters([1.0, 0.5, 0.1])
    def test_tempered_ratio(self, beta):
        np.testing.assert_allclose(
            density_ratio(jnp.log(0.3), jnp.log(0.6), beta), 0.5**beta, rtol=1e-12
        )

    def test_zero_densities(self):
        self.assertEqual(float(density_ratio(-jnp.inf, -jnp.inf)), 1.0)
        self.assertEqual(float(density_ratio(-jnp.inf, 0.0)), 0.0)
        self.assertEqual(float(density_ratio(0.0, -jnp.inf)), jnp.inf)


class MetropolisSamplingTest(chex.TestCase):
    def test_always_accepts_favorable_moves(self):
        keys = jax.random.split(jax.random.key(0), 100)
        for key in keys[:10]:
            selected, (do_accept, p_accept, u) = metropolis_sampling(
                key, jnp.log(1.05), jnp.array(0.0), jnp.array(1.0)
            )
            self.assertTrue(bool(do_accept))
            self.assertEqual(float(p_accept), 1.0)
            self.assertEqual(float(selected), 1.0)
            self.assertTrue(0.0 <= float(u) < 1.0)

    def test_never_accepts_impossible_moves(self):
        selected, (do_accept, p_accept, _) = metropolis_sampling(
            jax.random.key(1), -jnp.inf, jnp.array(0.0), jnp.array(1.0)
        )
        self.assertFalse(bool(do_accept))
        self.assertEqual(float(p_accept), 0.0)
        self.assertEqual(float(selected), 0.0)

    def test_acceptance_frequency(self):
        keys = jax.random.split(jax.random.key(2), 10_000)
        _, (do_accept, p_accept, _) = jax.vmap(
            lambda key: metropolis_sampling(
                key, jnp.log(0.3), jnp.array(0.0), jnp.array(1.0)
            )
        )(keys)
        np.testing.assert_allclose(p_accept, 0.3, rtol=1e-12)
        np.testing.assert_allclose(do_accept.mean(), 0.3, atol=0.02)


if __name__ == "__main__":
    absltest.main()
