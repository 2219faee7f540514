"""
Inference scaffolding for probabilistic programs.

This module provides the generic step protocol every inference algorithm
shares: drawing starting values, merging user-supplied initial values,
resuming from a persisted state, and handing control to the algorithm.

Quick Start
-----------
>>> import jax
>>> from ppl_kit.distributions import Normal, InverseGamma
>>> from ppl_kit.model import Model
>>> from ppl_kit.sampling import MHConfig, build_sampler, step
>>>
>>> def gdemo(pp, x):
...     s = pp.sample('s', InverseGamma(2, 3))
...     m = pp.sample('m', Normal(0, s ** 0.5))
...     for i, xi in enumerate(x):
...         pp.observe(f'x[{i}]', Normal(m, s ** 0.5), xi)
>>>
>>> model = Model(gdemo, [1.5, 2.0])
>>> shell = build_sampler('mh', MHConfig(proposal_scale=0.3))
>>>
>>> # Start with m fixed at 0.5 and s drawn from the prior
>>> key = jax.random.PRNGKey(0)
>>> store, state = step(key, model, shell, init_params=[None, 0.5])
>>>
>>> # Continue the chain
>>> store, state = step(jax.random.PRNGKey(1), model, shell, state)
>>>
>>> # Or resume later from a saved state
>>> store, state = step(jax.random.PRNGKey(2), model, shell, resume_from=state.to_dict())
"""

from ppl_kit.sampling.base import (
    Algorithm,
    SamplerShell,
    step,
    default_store,
    initialize_parameters,
    flatten_init_params,
)
from ppl_kit.sampling.configs import (
    BaseAlgorithmConfig,
    MHConfig,
    RunConfig,
)
from ppl_kit.sampling.factory import (
    build_sampler,
    get_algorithm_class,
    get_available_algorithms,
    register_algorithm,
)
from ppl_kit.sampling.mh import MetropolisHastings, MHState
from ppl_kit.strategies import InitializationStrategy, FromPrior, FromUniform

__all__ = [
    # Core classes
    'Algorithm',
    'SamplerShell',
    'InitializationStrategy',
    'FromPrior',
    'FromUniform',
    # Protocol
    'step',
    'default_store',
    'initialize_parameters',
    'flatten_init_params',
    # Config classes
    'BaseAlgorithmConfig',
    'MHConfig',
    'RunConfig',
    # Factory
    'build_sampler',
    'get_algorithm_class',
    'get_available_algorithms',
    'register_algorithm',
    # Algorithms
    'MetropolisHastings',
    'MHState',
]
