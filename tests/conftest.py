"""
Pytest configuration and shared fixtures for ppl_kit tests.

This module provides:
- Warning suppression for expected test warnings
- Small models shared across test modules
"""

import jax

jax.config.update("jax_enable_x64", True)

import pytest
import warnings

import jax.numpy as jnp

from ppl_kit.distributions import Normal, InverseGamma, Exponential, Bernoulli
from ppl_kit.model import Model


# ==============================================================================
# Warning Suppression Fixtures
# ==============================================================================


@pytest.fixture(autouse=True)
def suppress_expected_warnings():
    """
    Suppress expected warnings during tests.

    Suppressed warnings:
    - numpy/JAX log of zero or negative numbers when evaluating densities
      outside their support, where -inf is the expected result
    """
    with warnings.catch_warnings():
        warnings.filterwarnings(
            "ignore",
            message="divide by zero encountered",
            category=RuntimeWarning,
        )
        warnings.filterwarnings(
            "ignore",
            message="invalid value encountered",
            category=RuntimeWarning,
        )

        yield


# ==============================================================================
# Slow Test Marker
# ==============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


# ==============================================================================
# Shared Models
# ==============================================================================


def two_normals(pp, y):
    """a, b ~ Normal(0, 1); y ~ Normal(a + b, 1)."""
    a = pp.sample('a', Normal(0.0, 1.0))
    b = pp.sample('b', Normal(0.0, 1.0))
    pp.observe('y', Normal(a + b, 1.0), y)
    return a, b


def gdemo(pp, x):
    """Conjugate normal model with unknown variance."""
    s = pp.sample('s', InverseGamma(2.0, 3.0))
    m = pp.sample('m', Normal(0.0, jnp.sqrt(s)))
    pp.observe('x', Normal(m, jnp.sqrt(s)), jnp.asarray(x))
    return s, m


def vector_model(pp):
    """A vector-valued variable followed by a positive scalar."""
    w = pp.sample('w', Normal(0.0, 1.0), n=3)
    s = pp.sample('s', Exponential(1.0))
    return w, s


def dynamic_model(pp):
    """The declared variables depend on the value of k."""
    k = pp.sample('k', Bernoulli(0.5))
    if k == 1:
        pp.sample('a', Normal(0.0, 1.0))
    else:
        pp.sample('b', Exponential(1.0), n=2)
    return k


@pytest.fixture
def two_normals_model():
    return Model(two_normals, 1.0)


@pytest.fixture
def gdemo_model():
    return Model(gdemo, [1.5, 2.0])


@pytest.fixture
def vector():
    return Model(vector_model)


@pytest.fixture
def dynamic():
    return Model(dynamic_model)


@pytest.fixture
def key():
    return jax.random.PRNGKey(42)
