import chex
import jax
import jax.numpy as jnp
import numpy as np
from absl.testing import absltest, parameterized

import samplerlab
from samplerlab.targets import Domain
from samplerlab.util import (
    HISTORY_CAPACITY,
    append_to_history,
    box_muller,
    empty_history,
    generate_gaussian_noise,
    recorded,
    run_inference_algorithm,
    sample_uniform,
)


class NoiseTest(chex.TestCase):
    def test_box_muller_moments(self):
        samples = box_muller(jax.random.key(0), (200_000,))
        self.assertTrue(bool(jnp.all(jnp.isfinite(samples))))
        np.testing.assert_allclose(samples.mean(), 0.0, atol=0.01)
        np.testing.assert_allclose(samples.std(), 1.0, atol=0.01)

    @parameterized.parameters([(0.0, 1.0), (1.5, 0.3)])
    def test_gaussian_noise(self, mu, sigma):
        position = jnp.zeros((100_000, 2))
        noise = generate_gaussian_noise(jax.random.key(1), position, mu, sigma)
        chex.assert_shape(noise, (100_000, 2))
        np.testing.assert_allclose(noise.mean(axis=0), mu, atol=0.01)
        np.testing.assert_allclose(noise.std(axis=0), sigma, rtol=0.02)

    def test_sample_uniform(self):
        domain = Domain(-3.0, 3.0, -1.0, 8.0)
        samples = sample_uniform(jax.random.key(2), domain, 10_000)
        chex.assert_shape(samples, (10_000, 2))
        self.assertTrue(bool(jax.vmap(domain.contains)(samples).all()))
        np.testing.assert_allclose(samples.mean(axis=0), [0.0, 3.5], atol=0.1)
        chex.assert_shape(sample_uniform(jax.random.key(3), domain), (2,))


class HistoryTest(chex.TestCase):
    def test_append(self):
        history = empty_history(2)
        chex.assert_shape(history, (HISTORY_CAPACITY, 2))
        chex.assert_shape(recorded(history, 0), (0, 2))
        history = append_to_history(history, 0, jnp.array([1.0, 2.0]))
        history = append_to_history(history, 1, [3.0, 4.0])
        np.testing.assert_array_equal(recorded(history, 2), [[1.0, 2.0], [3.0, 4.0]])

    def test_append_scalars(self):
        history = append_to_history(empty_history(), 0, 0.5)
        np.testing.assert_array_equal(recorded(history, 1), [0.5])

    def test_capacity_doubles_when_full(self):
        history = empty_history(2, capacity=2)
        for i in range(5):
            history = append_to_history(history, i, jnp.full(2, float(i)))
        chex.assert_shape(history, (8, 2))
        np.testing.assert_array_equal(
            recorded(history, 5), jnp.repeat(jnp.arange(5.0)[:, None], 2, axis=1)
        )

    def test_long_chain_history(self):
        algorithm = samplerlab.mh("gaussian", sigma=0.5)
        num_steps = HISTORY_CAPACITY + 22
        state, infos = run_inference_algorithm(
            jax.random.key(0), algorithm, num_steps, initial_position=jnp.zeros(2)
        )
        chex.assert_shape(state.history, (num_steps, 2))
        self.assertGreaterEqual(state.history_buffer.shape[0], num_steps)
        previous = jnp.zeros(2)
        for position, info in zip(state.history, infos):
            expected = jnp.where(info.is_accepted, info.proposal, previous)
            np.testing.assert_array_equal(position, expected)
            previous = position


class RunInferenceAlgorithmTest(chex.TestCase):
    def setUp(self):
        super().setUp()
        self.key = jax.random.key(42)
        self.algorithm = samplerlab.mh("gaussian", sigma=0.5)
        self.num_steps = 25

    @parameterized.parameters([True, False])
    def test_run(self, progress_bar):
        state, infos = run_inference_algorithm(
            self.key,
            self.algorithm,
            self.num_steps,
            initial_position=jnp.array([1.0, -1.0]),
            progress_bar=progress_bar,
        )
        self.assertEqual(len(infos), self.num_steps)
        self.assertEqual(int(state.num_steps), self.num_steps)
        chex.assert_shape(state.history, (self.num_steps, 2))

    def test_initial_state(self):
        initial_state = self.algorithm.init(jnp.array([0.5, 0.5]))
        state, _ = run_inference_algorithm(
            self.key, self.algorithm, 3, initial_state=initial_state
        )
        self.assertEqual(int(state.num_steps), 3)

    def test_state_and_position_are_exclusive(self):
        initial_state = self.algorithm.init(jnp.zeros(2))
        with self.assertRaisesRegex(ValueError, "Only one of"):
            run_inference_algorithm(
                self.key,
                self.algorithm,
                self.num_steps,
                initial_state=initial_state,
                initial_position=jnp.zeros(2),
            )

    def test_observer(self):
        seen = []

        def observer(state, info):
            seen.append((int(state.num_steps), bool(info.is_accepted)))

        state, infos = run_inference_algorithm(
            self.key, self.algorithm, self.num_steps, observer=observer
        )
        self.assertEqual([s for s, _ in seen], list(range(1, self.num_steps + 1)))
        self.assertEqual(
            [a for _, a in seen], [bool(info.is_accepted) for info in infos]
        )

    def test_stops_when_converged(self):
        ns = samplerlab.ns("gaussian", num_live=20)
        num_steps = 5_000
        state, infos = run_inference_algorithm(self.key, ns, num_steps)
        self.assertLess(len(infos), num_steps)
        self.assertTrue(bool(infos[-1].is_converged))
        self.assertFalse(any(bool(info.is_converged) for info in infos[:-1]))
        self.assertEqual(int(state.iteration), len(infos))


if __name__ == "__main__":
    absltest.main()
