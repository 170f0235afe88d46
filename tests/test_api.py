import chex
import jax
import jax.numpy as jnp
from absl.testing import absltest, parameterized

import samplerlab
from samplerlab.base import SamplingAlgorithm


class TopLevelAPITest(chex.TestCase):
    def test_double_precision(self):
        self.assertEqual(jnp.zeros(1).dtype, jnp.float64)

    @parameterized.parameters(
        [
            (samplerlab.mh, {"sigma": 0.5}),
            (samplerlab.hmc, {"step_size": 0.1, "num_integration_steps": 5}),
            (samplerlab.ns, {"num_live": 10}),
            (samplerlab.parallel_tempering, {"num_temperatures": 3}),
        ]
    )
    def test_algorithms(self, api, kwargs):
        algorithm = api("bimodal", **kwargs)
        self.assertIsInstance(algorithm, SamplingAlgorithm)
        self.assertTrue(callable(api.init))
        self.assertTrue(callable(api.build_kernel))

        init_key, step_key = jax.random.split(jax.random.key(0))
        state = algorithm.init(rng_key=init_key)
        new_state, info = algorithm.step(step_key, state)
        self.assertIsInstance(new_state, type(state))
        self.assertIsInstance(info, tuple)

    def test_init_takes_the_position_first(self):
        target = samplerlab.targets.get_target("gaussian")
        position = jnp.array([0.5, -0.5])
        states = [
            samplerlab.mh.init(position, target.logdensity),
            samplerlab.hmc.init(position, target.logdensity, target.potential_grad),
            samplerlab.parallel_tempering.init(
                position, None, target.logdensity, jnp.ones(2), target.domain
            ),
            samplerlab.ns.init(position[None], None, target.density, target.domain, 1),
        ]
        chex.assert_trees_all_equal(
            states[0].position,
            states[1].position,
            states[2].positions[0],
            states[3].particles[0],
        )

    def test_version(self):
        self.assertIsInstance(samplerlab.__version__, str)


if __name__ == "__main__":
    absltest.main()
