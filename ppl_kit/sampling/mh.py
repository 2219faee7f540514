"""
Random-walk Metropolis-Hastings.

A minimal gradient-free algorithm implementing the Algorithm contract. It
proposes Gaussian moves for the variables owned by its shell, in the
unconstrained chart, and accepts or rejects them against the joint
log-density recomputed by re-running the model.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Dict, Tuple, TYPE_CHECKING

import numpy as np
import jax
import jax.random as random

from ppl_kit.errors import CheckpointDecodeError
from ppl_kit.sampling.base import Algorithm
from ppl_kit.sampling.configs import MHConfig
from ppl_kit.store import VarStore

if TYPE_CHECKING:
    from ppl_kit.model import Model
    from ppl_kit.sampling.base import SamplerShell


_log = logging.getLogger(__name__)


@dataclass
class MHState:
    """
    Continuation state of a Metropolis-Hastings chain.

    Attributes
    ----------
    store : VarStore
        Current position (linked for the shell's variables).
    logp : float
        Joint log-density at the current position, in the linked chart.
    n_steps : int
        Number of steps taken, including the initial one.
    n_accepted : int
        Number of accepted proposals.
    """

    store: VarStore
    logp: float
    n_steps: int = 1
    n_accepted: int = 0

    @property
    def acceptance_fraction(self) -> float:
        proposals = self.n_steps - 1
        return self.n_accepted / proposals if proposals > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'store': self.store,
            'logp': self.logp,
            'n_steps': self.n_steps,
            'n_accepted': self.n_accepted,
        }


class MetropolisHastings(Algorithm):
    """
    Random-walk Metropolis-Hastings algorithm.

    Parameters
    ----------
    config : MHConfig, optional
        Algorithm configuration options.

    Examples
    --------
    >>> from ppl_kit.sampling import MetropolisHastings, MHConfig, SamplerShell, step
    >>>
    >>> shell = SamplerShell(MetropolisHastings(MHConfig(proposal_scale=0.3)))
    >>> key = jax.random.PRNGKey(0)
    >>> store, state = step(key, model, shell)
    >>> for i in range(1000):
    ...     key, subkey = jax.random.split(key)
    ...     store, state = step(subkey, model, shell, state)
    """

    config_class = MHConfig

    def initial_step(
        self,
        rng_key: jax.Array,
        model: 'Model',
        shell: 'SamplerShell',
        store: VarStore,
        **kwargs,
    ) -> Tuple[VarStore, MHState]:
        """Link the shell's variables and record the starting log-density."""
        store.link(shell.selector)
        logp = store.recompute_log_density(model)

        if not np.isfinite(logp):
            raise ValueError(
                f"Initial log-density is not finite ({logp}) at {store.values()}. "
                "Check your initial values, priors and likelihood."
            )

        return store.copy(), MHState(store=store, logp=logp)

    def step(
        self,
        rng_key: jax.Array,
        model: 'Model',
        shell: 'SamplerShell',
        state: MHState,
        **kwargs,
    ) -> Tuple[VarStore, MHState]:
        """Propose a Gaussian move and accept it with the MH probability."""
        selector = shell.selector
        prop_key, accept_key = random.split(rng_key)

        theta = state.store.get_flat(selector)
        noise = np.asarray(random.normal(prop_key, theta.shape))
        proposal = theta + self.config.proposal_scale * noise

        candidate = state.store.copy()
        candidate.set_flat(selector, proposal)
        logp_new = candidate.recompute_log_density(model)

        log_u = float(np.log(random.uniform(accept_key)))
        accept = bool(np.isfinite(logp_new) and log_u < logp_new - state.logp)

        if accept:
            new_state = MHState(
                store=candidate,
                logp=logp_new,
                n_steps=state.n_steps + 1,
                n_accepted=state.n_accepted + 1,
            )
        else:
            new_state = MHState(
                store=state.store,
                logp=state.logp,
                n_steps=state.n_steps + 1,
                n_accepted=state.n_accepted,
            )
        return new_state.store.copy(), new_state

    def load_state(self, data: Any) -> MHState:
        """
        Decode a persisted state.

        Accepts an MHState, or a mapping with a 'store' VarStore and optional
        'logp', 'n_steps' and 'n_accepted' entries (the output of
        `MHState.to_dict`).

        Raises
        ------
        CheckpointDecodeError
            If `data` is neither.
        """
        if isinstance(data, MHState):
            return MHState(data.store.copy(), data.logp, data.n_steps, data.n_accepted)

        if not isinstance(data, Mapping):
            raise CheckpointDecodeError(
                f"Cannot load {self.name} state from {type(data).__name__}"
            )

        store = data.get('store')
        if not isinstance(store, VarStore):
            raise CheckpointDecodeError(
                f"{self.name} checkpoint must contain a VarStore under 'store', "
                f"got {type(store).__name__}"
            )
        try:
            logp = float(data.get('logp', store.logp))
            n_steps = int(data.get('n_steps', 1))
            n_accepted = int(data.get('n_accepted', 0))
        except (TypeError, ValueError) as e:
            raise CheckpointDecodeError(f"Malformed {self.name} checkpoint: {e}") from e

        _log.debug("Loaded %s state at step %d", self.name, n_steps)
        return MHState(store.copy(), logp, n_steps, n_accepted)
