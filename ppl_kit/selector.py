"""
Selector: identity tag that partitions variable ownership.

Several sampler components can share one program execution and each update
its own subset of variables. A Selector is the key passed to every
`VarStore` accessor to scope it to "variables owned by this sampler".
Selectors compare by identity only and are never ordered.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field


_gid_counter = itertools.count(1)


@dataclass(frozen=True)
class Selector:
    """
    Identity tag for a sampler.

    Parameters
    ----------
    gid : int
        Unique identifier. Two selectors are equal iff their gids are equal.
    tag : str
        Human-readable label, not used for comparison.

    Examples
    --------
    >>> s1 = Selector.new()
    >>> s2 = Selector.new('mh')
    >>> s1 == s2
    False
    >>> s1 == Selector(s1.gid, 'renamed')
    True
    """

    gid: int
    tag: str = field(default='default', compare=False)

    @classmethod
    def new(cls, tag: str = 'default') -> 'Selector':
        """Create a selector with a fresh, process-unique gid."""
        return cls(next(_gid_counter), tag)

    def __repr__(self) -> str:
        return f"Selector({self.gid}, {self.tag!r})"
