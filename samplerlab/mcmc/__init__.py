from . import hmc, integrators, proposal, random_walk

__all__ = [
    "hmc",
    "integrators",
    "proposal",
    "random_walk",
]
