"""
Model evaluator.

A Model wraps a plain Python function that declares random variables through
the object passed as its first argument:

>>> def gdemo(pp, x):
...     s = pp.sample('s', InverseGamma(2, 3))
...     m = pp.sample('m', Normal(0, jnp.sqrt(s)))
...     for i, xi in enumerate(x):
...         pp.observe(f'x[{i}]', Normal(m, jnp.sqrt(s)), xi)
...     return s, m
>>>
>>> model = Model(gdemo, [1.5, 2.0])
>>> retval, store = model.evaluate(jax.random.PRNGKey(0), sampler=FromPrior())

Each call to `evaluate` runs the function once, synchronously, populating or
consuming a VarStore. The set of variables may depend on values drawn
during the run; the store is extended as declarations are encountered.

How values are obtained depends on the driving sampler:

- an InitializationStrategy draws values for variables not yet in the store
  (or flagged for resampling) and reuses the rest;
- None reuses every value and draws nothing (density recomputation);
- a SamplerShell reuses values and draws new variables with the shell's
  initial sampler, tagging them with the shell's selector.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional, Set, Tuple

import jax
import jax.numpy as jnp
import jax.random as random
import numpy as np

from ppl_kit.distributions import Distribution
from ppl_kit.strategies import InitializationStrategy, FromPrior
from ppl_kit.store import VarStore


_log = logging.getLogger(__name__)


# =============================================================================
# Evaluation contexts
# =============================================================================


class EvaluationContext:
    """Controls which terms are accumulated into the store's log-density."""

    include_prior: bool = True
    include_likelihood: bool = True

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class DefaultContext(EvaluationContext):
    """Accumulate the joint density: prior and likelihood."""


class PriorContext(EvaluationContext):
    """Accumulate only the prior terms of latent variables."""

    include_likelihood = False


class LikelihoodContext(EvaluationContext):
    """Accumulate only the observation terms."""

    include_prior = False


# =============================================================================
# Evaluation
# =============================================================================


class _Evaluation:
    """Handle passed to the model function during a single run."""

    def __init__(
        self,
        rng_key: Optional[jax.Array],
        store: VarStore,
        strategy: Optional[InitializationStrategy],
        owners: Tuple,
        redraw_flagged: bool,
        context: EvaluationContext,
    ):
        self._key = rng_key
        self.store = store
        self._strategy = strategy
        self._owners = owners
        self._redraw_flagged = redraw_flagged
        self.context = context
        self._seen: Set[str] = set()

    def _next_key(self) -> jax.Array:
        if self._key is None:
            raise ValueError("An RNG key is required to draw new values")
        self._key, subkey = random.split(self._key)
        return subkey

    def _declare(self, name: str) -> None:
        if name in self._seen:
            raise ValueError(f"Variable '{name}' declared more than once in one run")
        self._seen.add(name)

    def sample(self, name: str, dist: Distribution, n: Optional[int] = None) -> jnp.ndarray:
        """
        Declare a latent variable and return its value.

        Parameters
        ----------
        name : str
            Variable name, unique within the program.
        dist : Distribution
            Distribution of the variable.
        n : int, optional
            If given, the variable is a vector of n iid draws from `dist`.

        Returns
        -------
        jnp.ndarray
            Value in the distribution's native support.
        """
        self._declare(name)
        store = self.store
        exists = name in store
        redraw = exists and self._redraw_flagged and store.record(name).resample

        if exists and not redraw:
            rec = store.record(name)
            rec.dist = dist
            rec.logp = rec._density()
        elif self._strategy is None:
            raise KeyError(
                f"Variable '{name}' is not in the store and no sampler was given to draw it"
            )
        else:
            value = self._strategy.produce(self._next_key(), dist, n)
            if exists:
                rec = store.update(name, np.asarray(value), dist)
            else:
                rec = store.push(name, np.asarray(value), dist, self._owners)

        if self.context.include_prior:
            store.add_logp(rec.logp)
        return jnp.asarray(rec.constrained_value())

    def observe(self, name: str, dist: Distribution, value) -> Any:
        """Condition on an observed value and return it unchanged."""
        self._declare(name)
        if self.context.include_likelihood:
            self.store.add_logp(float(jnp.sum(dist.log_prob(jnp.asarray(value)))))
        return value


class Model:
    """
    A probabilistic program plus the arguments it is run with.

    Parameters
    ----------
    fn : callable
        Function `fn(pp, *args, **kwargs)` declaring variables through `pp`.
    *args, **kwargs
        Arguments forwarded to `fn` on every evaluation.
    """

    def __init__(self, fn: Callable[..., Any], *args, **kwargs):
        self.fn = fn
        self.args = args
        self.kwargs = kwargs

    @property
    def name(self) -> str:
        return getattr(self.fn, '__name__', repr(self.fn))

    def evaluate(
        self,
        rng_key: Optional[jax.Array],
        store: Optional[VarStore] = None,
        sampler=None,
        context: Optional[EvaluationContext] = None,
    ) -> Tuple[Any, VarStore]:
        """
        Run the program once.

        Parameters
        ----------
        rng_key : jax.Array or None
            Random key. May be None if no values need to be drawn.
        store : VarStore, optional
            Store to populate or consume. A new one is created if None.
        sampler : InitializationStrategy, SamplerShell or None
            Driving sampler (see module docstring).
        context : EvaluationContext, optional
            Defaults to DefaultContext().

        Returns
        -------
        retval : Any
            Whatever the model function returns.
        store : VarStore
            The populated store, with log-density accumulated under `context`.
        """
        from ppl_kit.sampling.base import SamplerShell

        if store is None:
            store = VarStore()
        if context is None:
            context = DefaultContext()

        if sampler is None:
            strategy, owners, redraw = None, (), False
        elif isinstance(sampler, InitializationStrategy):
            strategy, owners, redraw = sampler, (), True
        elif isinstance(sampler, SamplerShell):
            strategy, owners, redraw = sampler.initial_sampler(), (sampler.selector,), False
        else:
            raise TypeError(
                f"sampler must be an InitializationStrategy, SamplerShell or None, "
                f"got {type(sampler).__name__}"
            )

        store.reset_logp()
        pp = _Evaluation(rng_key, store, strategy, owners, redraw, context)
        retval = self.fn(pp, *self.args, **self.kwargs)
        _log.debug(
            "Evaluated model %s with %s: %d variables, logp=%.6g",
            self.name, sampler, len(store), store.logp,
        )
        return retval, store

    def init_store(
        self,
        rng_key: jax.Array,
        strategy: Optional[InitializationStrategy] = None,
        context: Optional[EvaluationContext] = None,
    ) -> VarStore:
        """Build a fresh store populated by `strategy` (FromPrior by default)."""
        if strategy is None:
            strategy = FromPrior()
        _, store = self.evaluate(rng_key, VarStore(), strategy, context)
        return store

    def sample_prior(self, rng_key: jax.Array) -> Dict[str, np.ndarray]:
        """Draw every latent variable from its prior and return `{name: value}`."""
        return self.init_store(rng_key).values()

    def __call__(self, rng_key: jax.Array) -> Any:
        """Run the program with fresh prior draws and return its return value."""
        retval, _ = self.evaluate(rng_key, VarStore(), FromPrior())
        return retval

    def __repr__(self) -> str:
        return f"Model({self.name})"


# =============================================================================
# Log-density helpers
# =============================================================================


def _log_density(model: Model, store: VarStore, context: EvaluationContext) -> float:
    scratch = store.copy()
    scratch.unlink(None)
    _, scratch = model.evaluate(None, scratch, None, context)
    return scratch.logp


def logjoint(model: Model, store: VarStore) -> float:
    """Log joint density of `model` at the values in `store` (constrained chart)."""
    return _log_density(model, store, DefaultContext())


def logprior(model: Model, store: VarStore) -> float:
    """Log prior density of `model` at the values in `store`."""
    return _log_density(model, store, PriorContext())


def loglikelihood(model: Model, store: VarStore) -> float:
    """Log likelihood of `model` at the values in `store`."""
    return _log_density(model, store, LikelihoodContext())
