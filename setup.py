import sys

import setuptools

NAME = "samplerlab"

# READ README.md for long description on PyPi.
try:
    long_description = open("README.md", encoding="utf-8").read()
except Exception as e:
    sys.stderr.write(f"Failed to read README.md:\n  {e}\n")
    sys.stderr.flush()
    long_description = ""


def get_version():
    about = {}
    with open("samplerlab/_version.py", encoding="utf-8") as f:
        exec(f.read(), about)
    return about["__version__"]


setuptools.setup(
    name=NAME,
    author="The samplerlab team",
    description="Two-dimensional Bayesian sampler demonstrations in JAX",
    long_description=long_description,
    version=get_version(),
    packages=setuptools.find_packages(include=["samplerlab", "samplerlab.*"]),
    python_requires=">=3.9",
    install_requires=[
        "fastprogress>=0.2.0",
        "jax>=0.4.16",
        "jaxlib>=0.4.16",
        "numpy>=1.22",
        "scipy>=1.8",
        "typing_extensions>=4.4.0",
    ],
    extras_require={
        "test": [
            "absl-py",
            "chex>=0.1.80",
            "pytest",
        ],
    },
    long_description_content_type="text/markdown",
    keywords="probabilistic machine learning bayesian statistics sampling algorithms",
    license="Apache License 2.0",
)
