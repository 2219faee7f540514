"""
Exception types raised by ppl_kit.

All of them subclass a built-in exception so callers that already catch
ValueError / TypeError keep working. None are caught inside the package.
"""

from __future__ import annotations


class DimensionMismatchError(ValueError):
    """Flattened values do not match the dimensionality of a selector's variables."""

    def __init__(self, expected: int, got: int, what: str = 'initial values'):
        self.expected = expected
        self.got = got
        super().__init__(
            f"Provided {what} do not match the dimension of the model: "
            f"expected {expected} values, got {got}"
        )


class MissingOperationError(TypeError):
    """An algorithm does not supply an operation the step protocol requires."""


class CheckpointDecodeError(ValueError):
    """A `resume_from` payload cannot be decoded into an algorithm state."""
