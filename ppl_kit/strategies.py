"""
Initialization strategies.

An initialization strategy produces the starting value of a random variable
from its distribution and an RNG key. Strategies are stateless and own no
variables: used as the driving sampler of a model evaluation they touch every
variable the program declares, and they carry no continuation state.

- FromPrior draws from the distribution itself.
- FromUniform draws uniformly on (-2, 2) in unconstrained space and maps the
  draw back into the support, which gives dispersed, finite starting points
  for gradient-based samplers. Distributions without a transform fall back
  to FromPrior behaviour.

References
----------
Stan reference manual, "Random initial values":
https://mc-stan.org/docs/reference-manual/execution.html#random-initial-values
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Tuple

import jax
import jax.numpy as jnp
import jax.random as random

from ppl_kit.distributions import Distribution


# Half-width of the unconstrained interval used by FromUniform
UNIFORM_INIT_RADIUS = 2.0


def _shape(n: Optional[int]) -> Tuple[int, ...]:
    return () if n is None else (n,)


class InitializationStrategy(ABC):
    """
    Abstract base class for initialization strategies.

    Class Attributes
    ----------------
    space : tuple
        Always empty: strategies do not own variables.
    """

    space: Tuple[str, ...] = ()

    @abstractmethod
    def produce(
        self,
        rng_key: jax.Array,
        dist: Distribution,
        n: Optional[int] = None,
    ) -> jnp.ndarray:
        """
        Produce an initial value for one variable.

        Parameters
        ----------
        rng_key : jax.Array
            JAX random key.
        dist : Distribution
            Distribution of the variable.
        n : int, optional
            If given, produce a vector of n values instead of a scalar.

        Returns
        -------
        jnp.ndarray
            Value(s) in the distribution's native support.
        """
        pass

    @property
    def name(self) -> str:
        return self.__class__.__name__


@dataclass(frozen=True)
class FromPrior(InitializationStrategy):
    """Initialize every variable with a draw from its own distribution."""

    def produce(self, rng_key, dist, n=None):
        return dist.sample(rng_key, _shape(n))


@dataclass(frozen=True)
class FromUniform(InitializationStrategy):
    """
    Initialize uniformly on (-2, 2) in unconstrained space.

    Examples
    --------
    >>> from ppl_kit.distributions import Exponential
    >>> x = FromUniform().produce(jax.random.PRNGKey(0), Exponential(1.0))
    >>> bool(jnp.exp(-2) < x < jnp.exp(2))
    True
    """

    def produce(self, rng_key, dist, n=None):
        if not dist.is_transformable:
            return dist.sample(rng_key, _shape(n))
        u = random.uniform(
            rng_key,
            _shape(n),
            minval=-UNIFORM_INIT_RADIUS,
            maxval=UNIFORM_INIT_RADIUS,
        )
        return dist.from_unconstrained(u)


_STRATEGIES = {
    'prior': FromPrior,
    'uniform': FromUniform,
}


def get_strategy(name: str) -> InitializationStrategy:
    """
    Look up an initialization strategy by name ('prior' or 'uniform').

    Raises
    ------
    ValueError
        If the name is unknown.
    """
    key = name.lower()
    if key not in _STRATEGIES:
        available = ', '.join(sorted(_STRATEGIES))
        raise ValueError(f"Unknown initialization strategy '{name}'. Available: {available}")
    return _STRATEGIES[key]()
