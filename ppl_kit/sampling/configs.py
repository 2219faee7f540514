"""
Configuration classes for inference algorithms.

Each algorithm has its own config class with only relevant fields. A whole
run can also be described in YAML and loaded with `RunConfig.from_yaml`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Any, Dict, Tuple, Union
from pathlib import Path

import jax
import jax.random as random
import yaml


# Names accepted for `init_strategy`
INIT_STRATEGIES = ('prior', 'uniform')


@dataclass
class BaseAlgorithmConfig:
    """
    Minimal configuration shared by all algorithms.

    Attributes
    ----------
    space : tuple of str
        Names of the variables this algorithm updates. Empty means every
        variable not claimed by another sampler.
    init_strategy : str
        How starting values are drawn when none are supplied:

        - 'prior': sample from each variable's distribution (default)
        - 'uniform': uniform on (-2, 2) in unconstrained space
    """

    space: Tuple[str, ...] = ()
    init_strategy: str = 'prior'

    def __post_init__(self):
        if isinstance(self.space, str):
            self.space = (self.space,)
        self.space = tuple(self.space)
        if self.init_strategy not in INIT_STRATEGIES:
            raise ValueError(
                f"init_strategy must be one of {INIT_STRATEGIES}, "
                f"got '{self.init_strategy}'"
            )


@dataclass
class MHConfig(BaseAlgorithmConfig):
    """
    Configuration for random-walk Metropolis-Hastings.

    Attributes
    ----------
    proposal_scale : float
        Standard deviation of the Gaussian proposal in unconstrained space.

    Examples
    --------
    >>> config = MHConfig(proposal_scale=0.2, space=('m',))
    """

    proposal_scale: float = 0.5

    def __post_init__(self):
        super().__post_init__()
        if self.proposal_scale <= 0:
            raise ValueError(f"proposal_scale ({self.proposal_scale}) must be positive")


# =============================================================================
# YAML Configuration Loading
# =============================================================================


@dataclass
class RunConfig:
    """
    Configuration for one sampling run loaded from YAML.

    Attributes
    ----------
    algorithm : str
        Registered algorithm name ('mh', ...).
    algorithm_config : dict
        Options for the algorithm's config class.
    seed : int, optional
        Seed for the run's random key. Defaults to 0.
    init_params : list or dict, optional
        Initial values. `null` entries are left to the initial sampler.

    Examples
    --------
    A YAML file such as::

        algorithm: mh
        algorithm_config:
          proposal_scale: 0.3
          init_strategy: uniform
        seed: 42
        init_params: [1.5, null]

    is loaded with

    >>> run = RunConfig.from_yaml('run.yaml')
    >>> shell = run.build_sampler()
    >>> store, state = step(run.rng_key(), model, shell, init_params=run.init_params)
    """

    algorithm: str
    algorithm_config: Dict[str, Any] = field(default_factory=dict)
    seed: Optional[int] = None
    init_params: Optional[Any] = None

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> 'RunConfig':
        """
        Load configuration from YAML file.

        Parameters
        ----------
        path : str or Path
            Path to YAML configuration file.

        Returns
        -------
        RunConfig
            Loaded configuration.
        """
        path = Path(path)

        with open(path, 'r') as f:
            config_dict = yaml.safe_load(f)

        return cls(**config_dict)

    def get_algorithm_config(self) -> BaseAlgorithmConfig:
        """Build the config object of the registered algorithm."""
        from ppl_kit.sampling.factory import get_algorithm_class

        algorithm_class = get_algorithm_class(self.algorithm)
        return algorithm_class.config_class(**self.algorithm_config)

    def build_sampler(self):
        """Build a SamplerShell for the configured algorithm."""
        from ppl_kit.sampling.factory import build_sampler

        return build_sampler(self.algorithm, self.get_algorithm_config())

    def rng_key(self) -> jax.Array:
        """Random key for the run."""
        return random.PRNGKey(0 if self.seed is None else self.seed)
