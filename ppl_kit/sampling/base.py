"""
Base classes and the initial-step protocol for inference algorithms.

This module defines:
- Algorithm: Abstract base class for algorithm-specific stepping
- SamplerShell: Pairs an algorithm with the Selector of the variables it owns
- step: Entry point dispatching fresh start, resume and continuation
- initialize_parameters: Merges user-supplied initial values into a store

A concrete algorithm only has to provide `initial_step`, `step` and
`load_state`; starting values, user overrides and resuming from a checkpoint
are handled here, identically for every algorithm.
"""

from __future__ import annotations

import logging
import warnings
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple, Type, TYPE_CHECKING

import numpy as np
import jax
import jax.random as random

from ppl_kit.errors import CheckpointDecodeError, DimensionMismatchError, MissingOperationError
from ppl_kit.model import DefaultContext, EvaluationContext
from ppl_kit.selector import Selector
from ppl_kit.store import VarStore
from ppl_kit.strategies import InitializationStrategy, FromPrior, get_strategy

if TYPE_CHECKING:
    from ppl_kit.model import Model
    from ppl_kit.sampling.configs import BaseAlgorithmConfig


_log = logging.getLogger(__name__)

# Operations every algorithm must supply to be driven by `step`
REQUIRED_OPERATIONS = ('initial_step', 'step', 'load_state')

# Owner of variables outside a shell's declared space (gid 0 is never allocated)
FIXED = Selector(0, 'fixed')


class Algorithm(ABC):
    """
    Abstract base class for inference algorithms.

    Defines the contract the step protocol relies on. Each algorithm keeps
    its tuning options in a config dataclass.

    Class Attributes
    ----------------
    config_class : Type[BaseAlgorithmConfig]
        Which config class this algorithm expects.

    Parameters
    ----------
    config : BaseAlgorithmConfig, optional
        Algorithm configuration. Defaults to `config_class()`.
    """

    config_class: Type['BaseAlgorithmConfig'] = None  # Set by subclasses

    def __init__(self, config: Optional['BaseAlgorithmConfig'] = None):
        if config is None and self.config_class is not None:
            config = self.config_class()
        self.config = config
        self._validate()

    def _validate(self) -> None:
        """Check the config type if config_class is specified."""
        if self.config_class is not None:
            if not isinstance(self.config, self.config_class):
                raise TypeError(
                    f"{self.__class__.__name__} expects config of type "
                    f"{self.config_class.__name__}, got {type(self.config).__name__}"
                )

    @property
    def space(self) -> Tuple[str, ...]:
        """Names of the variables this algorithm updates. Empty means all."""
        return tuple(getattr(self.config, 'space', ()))

    def initial_sampler(self) -> InitializationStrategy:
        """
        Strategy used to draw starting values when none are supplied.

        Uses `config.init_strategy` if present, otherwise FromPrior.
        """
        name = getattr(self.config, 'init_strategy', None)
        return get_strategy(name) if name else FromPrior()

    @abstractmethod
    def initial_step(
        self,
        rng_key: jax.Array,
        model: 'Model',
        shell: 'SamplerShell',
        store: VarStore,
        **kwargs,
    ) -> Tuple[Any, Any]:
        """
        Perform the first step of the algorithm.

        Parameters
        ----------
        rng_key : jax.Array
            JAX random key.
        model : Model
            The model being sampled.
        shell : SamplerShell
            The shell wrapping this algorithm (provides the selector).
        store : VarStore
            Initial values, drawn by `initial_sampler` and possibly
            overridden by the user.

        Returns
        -------
        sample, state
            Algorithm-specific sample and continuation state.
        """
        pass

    @abstractmethod
    def step(
        self,
        rng_key: jax.Array,
        model: 'Model',
        shell: 'SamplerShell',
        state: Any,
        **kwargs,
    ) -> Tuple[Any, Any]:
        """Perform one step from a continuation state."""
        pass

    @abstractmethod
    def load_state(self, data: Any) -> Any:
        """
        Decode a persisted state.

        Raises
        ------
        CheckpointDecodeError
            If `data` cannot be interpreted as a state of this algorithm.
        """
        pass

    @property
    def name(self) -> str:
        """Name of this algorithm."""
        return self.__class__.__name__


@dataclass(frozen=True)
class SamplerShell:
    """
    An algorithm together with the Selector of the variables it owns.

    Immutable after construction. Validation happens here so that a missing
    operation is reported before any random numbers are drawn.

    Parameters
    ----------
    alg : Algorithm
        Algorithm (or any object providing initial_step, step, load_state).
    selector : Selector, optional
        Ownership tag. A fresh selector is created if None. Pass the same
        selector to two shells only if they should share ownership.

    Examples
    --------
    >>> from ppl_kit.sampling import MetropolisHastings, MHConfig, SamplerShell, step
    >>> shell = SamplerShell(MetropolisHastings(MHConfig(proposal_scale=0.3)))
    >>> store, state = step(jax.random.PRNGKey(0), model, shell, init_params=[1.0, None])
    >>> store, state = step(jax.random.PRNGKey(1), model, shell, state)
    """

    alg: Any
    selector: Optional[Selector] = None

    def __post_init__(self):
        if self.selector is None:
            object.__setattr__(self, 'selector', Selector.new(type(self.alg).__name__))
        self._validate()

    def _validate(self) -> None:
        missing = [
            op for op in REQUIRED_OPERATIONS
            if not callable(getattr(self.alg, op, None))
        ]
        if missing:
            raise MissingOperationError(
                f"{type(self.alg).__name__} cannot be used as a sampler: "
                f"missing operation(s) {', '.join(missing)}"
            )

    @property
    def space(self) -> Tuple[str, ...]:
        return tuple(getattr(self.alg, 'space', ()))

    def initial_sampler(self) -> InitializationStrategy:
        """Strategy that draws starting values for this shell (FromPrior by default)."""
        initial_sampler = getattr(self.alg, 'initial_sampler', None)
        if initial_sampler is None:
            return FromPrior()
        return initial_sampler()

    @property
    def name(self) -> str:
        return type(self.alg).__name__


# =============================================================================
# Parameter merge
# =============================================================================


def flatten_init_params(init_params: Any) -> List[Optional[float]]:
    """
    Flatten a possibly nested structure of initial values.

    Nested sequences are concatenated depth-first and arrays are raveled in
    C order. `None` entries are kept and mean "leave this position unset".

    Examples
    --------
    >>> flatten_init_params([1.0, [2.0, None], np.array([[3.0, 4.0]])])
    [1.0, 2.0, None, 3.0, 4.0]

    Raises
    ------
    TypeError
        If an entry is a mapping or another non-numeric object. Mappings are
        only accepted as the whole of `init_params` (see
        `initialize_parameters`).
    """
    if init_params is None:
        return [None]
    if isinstance(init_params, Mapping):
        raise TypeError(
            "Initial values given by name must be the whole of init_params, "
            f"not nested inside a sequence: {init_params!r}"
        )
    if isinstance(init_params, (list, tuple)):
        flat = []
        for item in init_params:
            flat.extend(flatten_init_params(item))
        return flat
    arr = np.asarray(init_params)
    if arr.dtype == object:
        if arr.ndim == 0:
            raise TypeError(
                f"Cannot interpret {type(init_params).__name__} as initial values"
            )
        return flatten_init_params(arr.tolist())
    return [float(x) for x in arr.ravel()]


def _expand_mapping(
    store: VarStore,
    selector: Selector,
    init_params: Mapping,
) -> List[Optional[float]]:
    """Expand `{name: value}` into a flat list in store order."""
    owned = store.owned(selector)
    owned_names = {rec.name for rec in owned}
    unknown = [name for name in init_params if name not in owned_names]
    if unknown:
        raise KeyError(f"Initial values given for unknown variables: {unknown}")

    flat = []
    for rec in owned:
        if rec.name in init_params and init_params[rec.name] is not None:
            values = flatten_init_params(init_params[rec.name])
            if len(values) != rec.size:
                raise DimensionMismatchError(
                    rec.size, len(values), what=f"initial values for '{rec.name}'"
                )
            flat.extend(values)
        else:
            flat.extend([None] * rec.size)
    return flat


def initialize_parameters(
    store: VarStore,
    init_params: Any,
    shell: SamplerShell,
    model: 'Model',
) -> VarStore:
    """
    Overwrite the shell's variables in `store` with user-supplied values.

    Values are given in the distributions' native units. Positions set to
    None keep the value already in the store, so partial overrides are
    possible. If the shell's variables are linked they are unlinked for the
    merge and linked again afterwards, so the chart on exit is the chart on
    entry.

    Parameters
    ----------
    store : VarStore
        Store to update in place.
    init_params : sequence, array or mapping
        Flat or nested values in store order, or `{name: value}`.
    shell : SamplerShell
        Shell whose selector scopes the merge.
    model : Model
        Model the store belongs to.

    Returns
    -------
    VarStore
        The updated store. Its log-density is not refreshed; re-evaluate the
        model afterwards.

    Raises
    ------
    DimensionMismatchError
        If the flattened values do not match the selector's dimensionality.
        The store is left untouched.
    """
    _log.debug("Using passed-in initial variable values: %s", init_params)
    selector = shell.selector

    if isinstance(init_params, Mapping):
        init_theta = _expand_mapping(store, selector, init_params)
    else:
        init_theta = flatten_init_params(init_params)

    expected = store.flat_length(selector)
    if len(init_theta) != expected:
        raise DimensionMismatchError(expected, len(init_theta))

    # Only records linked on entry are relinked; a mixed chart stays mixed
    linked = store.linked_names(selector)
    if linked:
        store.unlink(selector, linked)

    theta = store.get_flat(selector)
    for i, x in enumerate(init_theta):
        if x is not None:
            theta[i] = x
    store.set_flat(selector, theta)

    if linked:
        store.link(selector, linked)
    return store


# =============================================================================
# Step protocol
# =============================================================================


def default_store(
    rng_key: jax.Array,
    model: 'Model',
    shell: SamplerShell,
    context: Optional[EvaluationContext] = None,
) -> VarStore:
    """
    Fresh store populated by the shell's initial sampler.

    If the shell declares a `space`, those variables are claimed by the shell
    selector and every other unclaimed variable is held fixed, so the shell
    only updates its space.
    """
    store = model.init_store(rng_key, shell.initial_sampler(), context)
    if shell.space:
        space = set(shell.space)
        store.claim(shell.selector, [n for n in store.names if n in space])
        store.claim(
            FIXED,
            [n for n in store.names if n not in space and not store.record(n).owners],
        )
    return store


def step(
    rng_key: jax.Array,
    model: 'Model',
    sampler,
    state: Any = None,
    *,
    resume_from: Any = None,
    init_params: Any = None,
    **kwargs,
) -> Tuple[Any, Any]:
    """
    Perform one step of `sampler` on `model`.

    Dispatch, in order:

    1. `sampler` is an InitializationStrategy: evaluate the model once into a
       fresh store and return `(store, None)`.
    2. `state` is given: continue with `alg.step`.
    3. `resume_from` is given: decode it with `alg.load_state` and continue
       from the decoded state. No initial values are drawn and
       `init_params` is ignored.
    4. Otherwise draw initial values with the shell's initial sampler, merge
       `init_params` if given, recompute the joint log-density and call
       `alg.initial_step`.

    Parameters
    ----------
    rng_key : jax.Array
        JAX random key.
    model : Model
        Model to sample.
    sampler : InitializationStrategy or SamplerShell
        Driving sampler.
    state : any, optional
        Continuation state returned by a previous step.
    resume_from : any, optional
        Persisted state to resume from.
    init_params : any, optional
        Initial values (see `initialize_parameters`).
    **kwargs
        Forwarded to the algorithm.

    Returns
    -------
    sample, state
        For initialization strategies, the store and None.

    Raises
    ------
    CheckpointDecodeError
        If `resume_from` cannot be decoded.
    DimensionMismatchError
        If `init_params` has the wrong length.
    """
    if isinstance(sampler, InitializationStrategy):
        _, store = model.evaluate(rng_key, None, sampler)
        return store, None

    if not isinstance(sampler, SamplerShell):
        raise TypeError(
            f"sampler must be an InitializationStrategy or SamplerShell, "
            f"got {type(sampler).__name__}"
        )
    alg = sampler.alg

    if state is not None:
        return alg.step(rng_key, model, sampler, state, **kwargs)

    if resume_from is not None:
        if init_params is not None:
            warnings.warn(
                "init_params is ignored when resuming from a previous state."
            )
        state = alg.load_state(resume_from)
        if state is None:
            raise CheckpointDecodeError(
                f"{sampler.name}.load_state returned no state for {type(resume_from).__name__}"
            )
        _log.debug("Resuming %s from %s", sampler.name, type(resume_from).__name__)
        return alg.step(rng_key, model, sampler, state, **kwargs)

    init_key, step_key = random.split(rng_key)
    store = default_store(init_key, model, sampler)

    if init_params is not None:
        store = initialize_parameters(store, init_params, sampler, model)
        # Merged values can change downstream terms; recompute the joint density
        # without redrawing anything.
        store.recompute_log_density(model, DefaultContext())

    return alg.initial_step(
        step_key, model, sampler, store, init_params=init_params, **kwargs
    )
