"""Test the random walk Metropolis sampler."""
import chex
import jax
import jax.numpy as jnp
import numpy as np
from absl.testing import absltest, parameterized

import samplerlab
from samplerlab.mcmc import random_walk


def log_ratio_105(position):
    """Density ratio 1.05 between (0.2, -0.1) and the origin."""
    return jnp.log(1.05) * jnp.sum(jnp.abs(position)) / 0.3


def fixed_step(rng_key, position):
    return jnp.array([0.2, -0.1])


def far_step(rng_key, position):
    return jnp.array([5.0, 5.0])


def disk_logdensity(position):
    return jnp.where(jnp.sum(position**2) < 1.0, 0.0, -jnp.inf)


class RandomWalkTest(chex.TestCase):
    def test_init(self):
        state = random_walk.init(None, samplerlab.targets.gaussian_logdensity)
        np.testing.assert_array_equal(state.position, jnp.zeros(2))
        self.assertEqual(float(state.logdensity), 0.0)
        self.assertEqual(int(state.num_accepted), 0)
        self.assertEqual(int(state.num_steps), 0)
        chex.assert_shape(state.history, (0, 2))

    def test_accept_favorable_proposal(self):
        """From the origin, a proposal to (0.2, -0.1) with density ratio 1.05 is
        accepted whatever the uniform draw."""
        kernel = random_walk.build_kernel()
        state = random_walk.init(jnp.zeros(2), log_ratio_105)
        new_state, info = kernel(jax.random.key(0), state, log_ratio_105, fixed_step)

        np.testing.assert_allclose(info.ratio, 1.05, rtol=1e-12)
        self.assertEqual(float(info.acceptance_rate), 1.0)
        self.assertTrue(bool(info.is_accepted))
        np.testing.assert_allclose(new_state.position, [0.2, -0.1])
        np.testing.assert_allclose(new_state.history, [[0.2, -0.1]])
        self.assertEqual(int(new_state.num_accepted), 1)
        self.assertEqual(int(new_state.num_steps), 1)

    def test_rejected_step_keeps_state(self):
        kernel = random_walk.build_kernel()
        state = random_walk.init(jnp.array([0.1, 0.2]), disk_logdensity)
        new_state, info = kernel(jax.random.key(1), state, disk_logdensity, far_step)

        self.assertFalse(bool(info.is_accepted))
        self.assertEqual(float(info.acceptance_rate), 0.0)
        np.testing.assert_array_equal(new_state.position, state.position)
        np.testing.assert_array_equal(new_state.logdensity, state.logdensity)
        np.testing.assert_array_equal(new_state.history, [[0.1, 0.2]])
        self.assertEqual(int(new_state.num_accepted), 0)
        self.assertEqual(int(new_state.num_steps), 1)

    def test_step_invariants(self):
        mh = samplerlab.mh("banana", sigma=0.8)
        state = mh.init()
        keys = jax.random.split(jax.random.key(2), 200)
        for key in keys:
            new_state, info = mh.step(key, state)
            p_accept = float(info.acceptance_rate)
            self.assertTrue(0.0 <= p_accept <= 1.0)
            np.testing.assert_allclose(p_accept, min(1.0, float(info.ratio)))
            if bool(info.is_accepted):
                np.testing.assert_array_equal(new_state.position, info.proposal)
            else:
                np.testing.assert_array_equal(new_state.position, state.position)
                np.testing.assert_array_equal(new_state.logdensity, state.logdensity)
            np.testing.assert_array_equal(new_state.history[-1], new_state.position)
            state = new_state

        chex.assert_shape(state.history, (200, 2))
        self.assertEqual(int(state.num_steps), 200)
        self.assertGreater(int(state.num_accepted), 0)
        self.assertLess(int(state.num_accepted), 200)

    def test_gaussian_moments(self):
        mh = samplerlab.mh("gaussian", sigma=1.0)
        state, _ = samplerlab.run_inference_algorithm(jax.random.key(3), mh, 4_000)
        samples = state.history[500:]
        np.testing.assert_allclose(samples.mean(axis=0), 0.0, atol=0.25)
        np.testing.assert_allclose(samples.std(axis=0), 1.0, atol=0.2)
        np.testing.assert_allclose(jnp.corrcoef(samples.T)[0, 1], 0.8, atol=0.1)

    @parameterized.parameters([0.0, -0.5])
    def test_invalid_sigma(self, sigma):
        with self.assertRaisesRegex(ValueError, "sigma must be positive"):
            samplerlab.mh("gaussian", sigma=sigma)

    def test_unknown_family(self):
        with self.assertRaises(ValueError):
            samplerlab.mh("donut")


if __name__ == "__main__":
    absltest.main()
