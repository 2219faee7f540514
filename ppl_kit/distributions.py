"""
Distributions used to declare random variables in a model.

All distributions are JAX-compatible with jittable log_prob methods. Besides
density and sampling, each distribution knows how to move a value between its
native (constrained) support and an unconstrained real coordinate system.
The bijection is derived from the support bounds, so new continuous
distributions only need to report `bounds` correctly.

Examples
--------
>>> from ppl_kit.distributions import Normal, InverseGamma
>>>
>>> d = InverseGamma(2.0, 3.0)
>>> d.bounds                       # (0.0, None)
>>> y = d.to_unconstrained(1.5)    # log(1.5)
>>> d.from_unconstrained(y)        # 1.5
>>> d.log_abs_det_jacobian(y)      # log |dx/dy| = y
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Tuple, Optional

import jax
import jax.numpy as jnp
import jax.random as random
from jax.scipy.special import gammaln


class Distribution(ABC):
    """
    Abstract base class for distributions.

    All distributions must implement:
    - log_prob(value): Compute log probability density (JAX-compatible)
    - sample(rng_key, shape): Draw samples
    - bounds: Property returning (lower, upper) bounds of the support

    Distributions should be immutable after construction.

    Methods
    -------
    log_prob(value) -> jnp.ndarray
        Elementwise log density at value.
        Returns -inf for values outside the support.

    sample(rng_key, shape) -> jnp.ndarray
        Draw random samples from the distribution.

    to_unconstrained(x), from_unconstrained(y)
        Bijection between the support and the real line. Only available
        when `is_transformable` is True.

    log_abs_det_jacobian(y) -> jnp.ndarray
        log |dx/dy| of `from_unconstrained`, summed over all elements of y.
    """

    @abstractmethod
    def log_prob(self, value: jnp.ndarray) -> jnp.ndarray:
        """
        Compute log probability density at value.

        Must be JAX-jittable. Returns -inf for values outside support.

        Parameters
        ----------
        value : jnp.ndarray
            Value(s) to evaluate.

        Returns
        -------
        jnp.ndarray
            Log probability density at each value.
        """
        pass

    @abstractmethod
    def sample(self, rng_key: jax.Array, shape: Tuple[int, ...] = ()) -> jnp.ndarray:
        """
        Draw samples from the distribution.

        Parameters
        ----------
        rng_key : jax.Array
            JAX random key for reproducibility.
        shape : tuple of int, optional
            Shape of samples to draw. Default is () for single sample.

        Returns
        -------
        jnp.ndarray
            Samples from the distribution.
        """
        pass

    @property
    @abstractmethod
    def bounds(self) -> Tuple[Optional[float], Optional[float]]:
        """
        Return (lower, upper) bounds of the support.

        None indicates unbounded in that direction.
        """
        pass

    @property
    def is_transformable(self) -> bool:
        """Whether the support admits a bijection to unconstrained space."""
        return True

    def _check_transformable(self) -> None:
        if not self.is_transformable:
            raise TypeError(f"{self!r} has no transform to unconstrained space")

    def to_unconstrained(self, x: jnp.ndarray) -> jnp.ndarray:
        """Map a value from the support to the real line."""
        self._check_transformable()
        x = jnp.asarray(x)
        low, high = self.bounds
        if low is None and high is None:
            return x
        if high is None:
            return jnp.log(x - low)
        if low is None:
            return jnp.log(high - x)
        p = (x - low) / (high - low)
        return jnp.log(p) - jnp.log1p(-p)

    def from_unconstrained(self, y: jnp.ndarray) -> jnp.ndarray:
        """Map a real value back into the support."""
        self._check_transformable()
        y = jnp.asarray(y)
        low, high = self.bounds
        if low is None and high is None:
            return y
        if high is None:
            return low + jnp.exp(y)
        if low is None:
            return high - jnp.exp(y)
        return low + (high - low) * jax.nn.sigmoid(y)

    def log_abs_det_jacobian(self, y: jnp.ndarray) -> jnp.ndarray:
        """
        Log absolute determinant of the Jacobian of `from_unconstrained` at y.

        Parameters
        ----------
        y : jnp.ndarray
            Point(s) in unconstrained space.

        Returns
        -------
        jnp.ndarray
            Scalar, summed over all elements of y.
        """
        self._check_transformable()
        y = jnp.asarray(y)
        low, high = self.bounds
        if low is None and high is None:
            return jnp.zeros(())
        if low is None or high is None:
            return jnp.sum(y)
        return jnp.sum(
            jnp.log(high - low) + jax.nn.log_sigmoid(y) + jax.nn.log_sigmoid(-y)
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


@dataclass(frozen=True)
class Uniform(Distribution):
    """
    Uniform distribution on [low, high].

    Doubly bounded, so it is linked through the scaled logit.

    Examples
    --------
    >>> d = Uniform(0, 10)
    >>> d.log_prob(5.0)                 # -log(10)
    >>> d.to_unconstrained(5.0)         # 0.0, the midpoint maps to the origin
    """

    low: float
    high: float

    def __post_init__(self):
        if self.high <= self.low:
            raise ValueError(f"high ({self.high}) must be > low ({self.low})")

    def log_prob(self, value: jnp.ndarray) -> jnp.ndarray:
        inside = (value >= self.low) & (value <= self.high)
        return jnp.where(inside, -jnp.log(self.high - self.low), -jnp.inf)

    def sample(self, rng_key: jax.Array, shape: Tuple[int, ...] = ()) -> jnp.ndarray:
        return random.uniform(rng_key, shape, minval=self.low, maxval=self.high)

    @property
    def bounds(self) -> Tuple[float, float]:
        return (self.low, self.high)

    def __repr__(self) -> str:
        return f"Uniform({self.low}, {self.high})"


@dataclass(frozen=True)
class Gaussian(Distribution):
    """
    Normal distribution with mean mu and standard deviation sigma.

    Unbounded; its unconstrained chart is the identity. `mu` and `sigma` may
    be values of other variables, e.g. `Normal(m, jnp.sqrt(s))`.
    """

    mu: float
    sigma: float

    def __post_init__(self):
        if self.sigma <= 0:
            raise ValueError(f"sigma ({self.sigma}) must be positive")

    def log_prob(self, value: jnp.ndarray) -> jnp.ndarray:
        z = (value - self.mu) / self.sigma
        return -0.5 * (z**2 + jnp.log(2 * jnp.pi)) - jnp.log(self.sigma)

    def sample(self, rng_key: jax.Array, shape: Tuple[int, ...] = ()) -> jnp.ndarray:
        return self.mu + self.sigma * random.normal(rng_key, shape)

    @property
    def bounds(self) -> Tuple[None, None]:
        return (None, None)

    def __repr__(self) -> str:
        return f"Normal({self.mu}, {self.sigma})"


Normal = Gaussian


@dataclass(frozen=True)
class Exponential(Distribution):
    """
    Exponential distribution with the given rate.

    log p(x) = log(rate) - rate * x for x >= 0, else -inf
    """

    rate: float

    def __post_init__(self):
        if self.rate <= 0:
            raise ValueError(f"rate ({self.rate}) must be positive")

    def log_prob(self, value: jnp.ndarray) -> jnp.ndarray:
        return jnp.where(value >= 0, jnp.log(self.rate) - self.rate * value, -jnp.inf)

    def sample(self, rng_key: jax.Array, shape: Tuple[int, ...] = ()) -> jnp.ndarray:
        return random.exponential(rng_key, shape) / self.rate

    @property
    def bounds(self) -> Tuple[float, None]:
        return (0.0, None)

    def __repr__(self) -> str:
        return f"Exponential({self.rate})"


@dataclass(frozen=True)
class InverseGamma(Distribution):
    """
    Inverse-gamma distribution with shape alpha and scale beta.

    log p(x) = alpha*log(beta) - lgamma(alpha) - (alpha+1)*log(x) - beta/x

    Parameters
    ----------
    alpha : float
        Shape (must be positive).
    beta : float
        Scale (must be positive).

    Examples
    --------
    >>> # Variance parameter
    >>> d = InverseGamma(2, 3)
    """

    alpha: float
    beta: float

    def __post_init__(self):
        if self.alpha <= 0:
            raise ValueError(f"alpha ({self.alpha}) must be positive")
        if self.beta <= 0:
            raise ValueError(f"beta ({self.beta}) must be positive")

    def log_prob(self, value: jnp.ndarray) -> jnp.ndarray:
        value = jnp.asarray(value)
        safe = jnp.where(value > 0, value, 1.0)
        lp = (
            self.alpha * jnp.log(self.beta)
            - gammaln(self.alpha)
            - (self.alpha + 1) * jnp.log(safe)
            - self.beta / safe
        )
        return jnp.where(value > 0, lp, -jnp.inf)

    def sample(self, rng_key: jax.Array, shape: Tuple[int, ...] = ()) -> jnp.ndarray:
        return self.beta / random.gamma(rng_key, self.alpha, shape)

    @property
    def bounds(self) -> Tuple[float, None]:
        return (0.0, None)

    def __repr__(self) -> str:
        return f"InverseGamma({self.alpha}, {self.beta})"


@dataclass(frozen=True)
class Bernoulli(Distribution):
    """
    Bernoulli distribution on {0, 1} with success probability p.

    Discrete support, so there is no transform to unconstrained space.
    Samples are returned as floats so they flatten alongside continuous
    variables.
    """

    p: float

    def __post_init__(self):
        if not 0 <= self.p <= 1:
            raise ValueError(f"p ({self.p}) must be in [0, 1]")

    def log_prob(self, value: jnp.ndarray) -> jnp.ndarray:
        return jnp.where(
            value == 1,
            jnp.log(self.p),
            jnp.where(value == 0, jnp.log1p(-self.p), -jnp.inf),
        )

    def sample(self, rng_key: jax.Array, shape: Tuple[int, ...] = ()) -> jnp.ndarray:
        return random.bernoulli(rng_key, self.p, shape).astype(float)

    @property
    def bounds(self) -> Tuple[float, float]:
        return (0.0, 1.0)

    @property
    def is_transformable(self) -> bool:
        return False

    def __repr__(self) -> str:
        return f"Bernoulli({self.p})"
