import dataclasses
from typing import Callable

import jax

# Evidence and swap computations rely on densities down to 1e-300.
jax.config.update("jax_enable_x64", True)

from samplerlab._version import __version__  # noqa: E402

from . import targets  # noqa: E402
from .base import SamplingAlgorithm  # noqa: E402
from .diagnostics import effective_sample_size as ess  # noqa: E402
from .diagnostics import potential_scale_reduction as rhat  # noqa: E402
from .mcmc import hmc as _hmc  # noqa: E402
from .mcmc import random_walk as _random_walk  # noqa: E402
from .ns import base as _ns_base  # noqa: E402
from .ns import rejection as _rejection  # noqa: E402
from .tempering import parallel_tempering as _parallel_tempering  # noqa: E402
from .util import run_inference_algorithm  # noqa: E402


@dataclasses.dataclass
class GenerateSamplingAPI:
    differentiable: Callable
    init: Callable
    build_kernel: Callable

    def __call__(self, *args, **kwargs) -> SamplingAlgorithm:
        return self.differentiable(*args, **kwargs)


def generate_top_level_api_from(module):
    return GenerateSamplingAPI(
        module.as_top_level_api, module.init, module.build_kernel
    )


# MCMC
mh = generate_top_level_api_from(_random_walk)
hmc = generate_top_level_api_from(_hmc)
parallel_tempering = generate_top_level_api_from(_parallel_tempering)

# Nested sampling
ns = GenerateSamplingAPI(
    _rejection.as_top_level_api, _ns_base.init, _ns_base.build_kernel
)


__all__ = [
    "__version__",
    "targets",
    "mh",
    "hmc",
    "ns",
    "parallel_tempering",
    "run_inference_algorithm",
    "ess",  # diagnostics
    "rhat",
]
