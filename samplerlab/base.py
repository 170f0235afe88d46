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
from typing import NamedTuple, Optional

from typing_extensions import Protocol

from .types import ArrayLike, PRNGKey

State = NamedTuple
Info = NamedTuple


class InitFn(Protocol):
    """A `Callable` used to initialize the state of a run.

    Every run starts from a freshly initialized state: the live set of a nested
    sampler, the replicas of a temperature ladder or the single chain of a
    Metropolis or Hamiltonian sampler. Nothing is carried over from a previous
    run; changing the target or a structural parameter means calling `init`
    again.

    """

    def __call__(
        self, position: Optional[ArrayLike], rng_key: Optional[PRNGKey]
    ) -> State:
        """Initialize the algorithm's state.

        Parameters
        ----------
        position
           A starting position, when the algorithm uses one.
        rng_key
           A key for algorithms whose initial state is random.

        Returns
        -------
        The state that corresponds to the start of a run.

        """


class UpdateFn(Protocol):
    """A transition used as the `step` of a `SamplingAlgorithm`.

    Steps are pure functions. They take a random key and the current state,
    and return a new state together with a step report. The report holds the
    diagnostics of this step only (acceptance probability, energy change,
    evidence increment, ...) and is what a rendering layer consumes; it is
    never needed to compute the next step.

    """

    def __call__(self, rng_key: PRNGKey, state: State) -> tuple[State, Info]:
        """Advance the run by one step.

        Parameters
        ----------
        rng_key:
            The random state used by JAX's random numbers generator.
        state:
            The current state of the run.

        Returns
        -------
        A new state, as well as a NamedTuple that reports on the step.

        """


class SamplingAlgorithm(NamedTuple):
    """A pair of functions that represents a sampling algorithm.

    init:
        A pure function which, when called with an initial position (or a
        random key for population-based algorithms), returns the initial
        state of the run.

    step:
        A pure function that takes a rng key and a state and returns a new
        state and a report on the step.

    """

    init: InitFn
    step: UpdateFn
