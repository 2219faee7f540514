"""
Algorithm factory and registry.

Provides the `build_sampler()` function for creating sampler shells by
algorithm name.
"""

from __future__ import annotations

from typing import Dict, Type, Optional, List, TYPE_CHECKING

if TYPE_CHECKING:
    from ppl_kit.sampling.base import Algorithm, SamplerShell
    from ppl_kit.sampling.configs import BaseAlgorithmConfig
    from ppl_kit.selector import Selector


# Algorithm registry
_ALGORITHM_REGISTRY: Dict[str, Type['Algorithm']] = {}


def register_algorithm(name: str, algorithm_class: Type['Algorithm']) -> None:
    """
    Register an algorithm.

    Parameters
    ----------
    name : str
        Name to register the algorithm under (case-insensitive).
    algorithm_class : type
        Algorithm class to register.

    Examples
    --------
    >>> from ppl_kit.sampling.factory import register_algorithm
    >>> from my_package import MyAlgorithm
    >>> register_algorithm('mine', MyAlgorithm)
    """
    _ALGORITHM_REGISTRY[name.lower()] = algorithm_class


def get_available_algorithms() -> List[str]:
    """
    Get list of registered algorithm names.

    Examples
    --------
    >>> from ppl_kit.sampling import get_available_algorithms
    >>> print(get_available_algorithms())
    ['metropolis', 'mh', 'rwmh']
    """
    return sorted(_ALGORITHM_REGISTRY.keys())


def get_algorithm_class(name: str) -> Type['Algorithm']:
    """
    Look up a registered algorithm class.

    Raises
    ------
    ValueError
        If the name is not registered.
    """
    name_lower = name.lower()
    if name_lower not in _ALGORITHM_REGISTRY:
        available = ', '.join(get_available_algorithms())
        raise ValueError(f"Unknown algorithm '{name}'. Available: {available}")
    return _ALGORITHM_REGISTRY[name_lower]


def build_sampler(
    name: str,
    config: Optional['BaseAlgorithmConfig'] = None,
    selector: Optional['Selector'] = None,
) -> 'SamplerShell':
    """
    Build a sampler shell by algorithm name.

    Parameters
    ----------
    name : str
        Algorithm name (case-insensitive).
        Use `get_available_algorithms()` to see all registered algorithms.
    config : BaseAlgorithmConfig, optional
        Algorithm configuration. If None, uses the algorithm's default config.
    selector : Selector, optional
        Ownership tag. A fresh one is created if None.

    Returns
    -------
    SamplerShell
        Shell ready to be passed to `step`.

    Raises
    ------
    ValueError
        If the algorithm name is not registered.
    TypeError
        If config type doesn't match what the algorithm expects.

    Examples
    --------
    >>> from ppl_kit.sampling import build_sampler, MHConfig
    >>> shell = build_sampler('mh', MHConfig(proposal_scale=0.1))
    >>> shell = build_sampler('mh')  # default config
    """
    from ppl_kit.sampling.base import SamplerShell

    algorithm_class = get_algorithm_class(name)
    return SamplerShell(algorithm_class(config), selector)


def _register_builtins() -> None:
    """Register built-in algorithms."""
    from ppl_kit.sampling.mh import MetropolisHastings

    register_algorithm('mh', MetropolisHastings)

    # Aliases
    register_algorithm('metropolis', MetropolisHastings)
    register_algorithm('rwmh', MetropolisHastings)


# Auto-register built-in algorithms on module import
_register_builtins()
