# Copyright 2020- The Blackjax Authors.
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
import jax
from jax.typing import ArrayLike

"""
Every sampler in the library works on a two-dimensional parameter space, so
positions are plain arrays of shape ``(2,)`` rather than arbitrary PyTrees.

- `ArrayLike` annotates function inputs,
- `Array` annotates function outputs and the fields of states.

Scalar-like fields (`logdensity`, `acceptance_rate`, ...) are annotated as
`float` to emphasize they are scalars even though they are 0-d arrays.
"""
#: JAX arrays
Array = jax.Array

#: A point (theta_1, theta_2) of the parameter space
Position = Array

#: JAX PRNGKey
PRNGKey = jax.Array

__all__ = ["Array", "ArrayLike", "Position", "PRNGKey"]
