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
"""Nested Sampling.

Nested Sampling is a Monte Carlo method for Bayesian computation, primarily
used for evidence (marginal likelihood) calculation and posterior sampling.
It is particularly well-suited for problems with multi-modal posteriors.

Available modules:
------------------
- `base`: Provides the state, the step report and the Nested Sampling kernel.
- `rejection`: Replaces discarded points by rejection sampling from the
               uniform prior, and exposes the user interface.
- `utils`: Contains utility functions for processing and analyzing Nested
           Sampling results.

"""
from . import base, rejection, utils

__all__ = [
    "base",
    "rejection",
    "utils",
]
