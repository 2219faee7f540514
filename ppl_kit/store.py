"""
In-memory variable store for a single program execution.

A VarStore is an ordered, append-capable mapping from variable name to a
VarRecord holding the variable's current value, the distribution that
generated it, its log-density contribution and its coordinate chart.
Records are created in the order the model declares them, and the flattened
selector-scoped view preserves that order.

Two charts are tracked per record:

- unlinked: the value lies in the distribution's native support;
- linked: the value lies in unconstrained real space and the log-density
  includes log |dx/dy| of the inverse transform.

The only transitions between the two are `link` and `unlink`, which keep the
log-density bookkeeping consistent.

Examples
--------
>>> store = VarStore()
>>> store.push('s', np.asarray(1.5), InverseGamma(2, 3))
>>> store.push('m', np.asarray(0.2), Normal(0, 1))
>>> sel = Selector.new()
>>> store.get_flat(sel)       # array([1.5, 0.2])
>>> store.link(sel)
>>> store.get_flat(sel)       # array([log(1.5), 0.2])
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Set, Any, TYPE_CHECKING

import numpy as np

from ppl_kit.distributions import Distribution
from ppl_kit.errors import DimensionMismatchError
from ppl_kit.selector import Selector

if TYPE_CHECKING:
    from ppl_kit.model import Model, EvaluationContext


_log = logging.getLogger(__name__)


@dataclass
class VarRecord:
    """
    Binding of one random variable.

    Attributes
    ----------
    name : str
        Variable name, unique within the store.
    value : np.ndarray
        Current value in the record's chart (see `linked`).
    dist : Distribution
        Distribution the value was last evaluated under.
    logp : float
        Log-density contribution of this variable, including the Jacobian
        correction when linked.
    linked : bool
        True if `value` is in unconstrained space.
    owners : set of Selector
        Selectors that own this variable. Empty means shared by all.
    resample : bool
        If True, the next initialization pass draws a fresh value.
    """

    name: str
    value: np.ndarray
    dist: Distribution
    logp: float = 0.0
    linked: bool = False
    owners: Set[Selector] = field(default_factory=set)
    resample: bool = False

    @property
    def size(self) -> int:
        return int(self.value.size)

    def constrained_value(self) -> np.ndarray:
        """Copy of the value in the distribution's native support."""
        if self.linked:
            return np.array(self.dist.from_unconstrained(self.value), dtype=float)
        return self.value.copy()

    def owned_by(self, selector: Optional[Selector]) -> bool:
        if selector is None or not self.owners:
            return True
        return selector in self.owners

    def _density(self) -> float:
        x = self.constrained_value()
        lp = float(np.sum(self.dist.log_prob(x)))
        if self.linked:
            lp += float(self.dist.log_abs_det_jacobian(self.value))
        return lp


class VarStore:
    """
    Ordered store of variable records plus accumulated log-density.

    All value accessors are scoped by a Selector. Passing None as the
    selector addresses every record.
    """

    def __init__(self):
        self._records: Dict[str, VarRecord] = {}
        self._logp = 0.0

    # ------------------------------------------------------------------
    # Mapping behaviour
    # ------------------------------------------------------------------

    def __contains__(self, name: str) -> bool:
        return name in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[str]:
        return iter(self._records)

    def __getitem__(self, name: str) -> np.ndarray:
        """Constrained value of a variable."""
        return self._records[name].constrained_value()

    @property
    def names(self) -> List[str]:
        """Variable names in declaration order."""
        return list(self._records)

    def record(self, name: str) -> VarRecord:
        return self._records[name]

    def values(self) -> Dict[str, np.ndarray]:
        """Dictionary of constrained values in declaration order."""
        return {name: rec.constrained_value() for name, rec in self._records.items()}

    def push(
        self,
        name: str,
        value: np.ndarray,
        dist: Distribution,
        owners: Iterable[Selector] = (),
    ) -> VarRecord:
        """
        Append a new variable in the constrained chart.

        Raises
        ------
        KeyError
            If a variable with this name already exists.
        """
        if name in self._records:
            raise KeyError(f"Variable '{name}' is already in the store")
        rec = VarRecord(
            name=name,
            value=np.array(value, dtype=float),
            dist=dist,
            owners=set(owners),
        )
        rec.logp = rec._density()
        self._records[name] = rec
        return rec

    def update(self, name: str, value: np.ndarray, dist: Distribution) -> VarRecord:
        """Overwrite a variable with a constrained value, keeping its chart."""
        rec = self._records[name]
        rec.dist = dist
        value = np.array(value, dtype=float)
        if rec.linked:
            value = np.asarray(dist.to_unconstrained(value), dtype=float)
        rec.value = value
        rec.resample = False
        rec.logp = rec._density()
        return rec

    # ------------------------------------------------------------------
    # Ownership
    # ------------------------------------------------------------------

    def owned(self, selector: Optional[Selector]) -> List[VarRecord]:
        """Records owned by `selector`, in declaration order."""
        return [rec for rec in self._records.values() if rec.owned_by(selector)]

    def claim(self, selector: Selector, names: Iterable[str]) -> None:
        """Tag the named variables as owned by `selector`."""
        for name in names:
            if name not in self._records:
                raise KeyError(f"Cannot claim unknown variable '{name}'")
            self._records[name].owners.add(selector)

    def flag_resample(self, selector: Optional[Selector]) -> None:
        """Mark owned variables to be redrawn by the next initialization pass."""
        for rec in self.owned(selector):
            rec.resample = True

    # ------------------------------------------------------------------
    # Flattened view
    # ------------------------------------------------------------------

    def flat_length(self, selector: Optional[Selector]) -> int:
        return sum(rec.size for rec in self.owned(selector))

    def get_flat(self, selector: Optional[Selector]) -> np.ndarray:
        """
        Concatenate owned values in the current chart.

        Returns
        -------
        np.ndarray
            1-D array of length `flat_length(selector)`.
        """
        records = self.owned(selector)
        if not records:
            return np.zeros(0)
        return np.concatenate([rec.value.ravel() for rec in records])

    def set_flat(self, selector: Optional[Selector], values) -> None:
        """
        Write a flat vector back into the owned variables.

        Values are interpreted in each record's current chart. Per-record
        log-densities are refreshed; the accumulated log-density is not,
        since downstream terms depend on the whole program. Re-evaluate the
        model (see `recompute_log_density`) after writing.

        Raises
        ------
        DimensionMismatchError
            If `values` does not have `flat_length(selector)` entries.
        """
        values = np.asarray(values, dtype=float).ravel()
        records = self.owned(selector)
        expected = sum(rec.size for rec in records)
        if values.size != expected:
            raise DimensionMismatchError(expected, values.size, what='values')

        offset = 0
        for rec in records:
            chunk = values[offset:offset + rec.size]
            rec.value = chunk.reshape(rec.value.shape).copy()
            rec.logp = rec._density()
            offset += rec.size

    # ------------------------------------------------------------------
    # Linking
    # ------------------------------------------------------------------

    def is_linked(self, selector: Optional[Selector]) -> bool:
        return any(rec.linked for rec in self.owned(selector))

    def linked_names(self, selector: Optional[Selector]) -> List[str]:
        """Names of the owned records currently in unconstrained space."""
        return [rec.name for rec in self.owned(selector) if rec.linked]

    def _scoped(self, selector, names):
        records = self.owned(selector)
        if names is None:
            return records
        names = set(names)
        return [rec for rec in records if rec.name in names]

    def link(self, selector: Optional[Selector], names: Optional[Iterable[str]] = None) -> None:
        """
        Move owned transformable variables to unconstrained space.

        If `names` is given, only those owned records are linked.
        """
        for rec in self._scoped(selector, names):
            if rec.linked or not rec.dist.is_transformable:
                continue
            y = np.asarray(rec.dist.to_unconstrained(rec.value), dtype=float)
            jac = float(rec.dist.log_abs_det_jacobian(y))
            rec.value = y
            rec.linked = True
            rec.logp += jac
            self._logp += jac
        _log.debug("Linked variables for %s", selector)

    def unlink(self, selector: Optional[Selector], names: Optional[Iterable[str]] = None) -> None:
        """Move owned variables (or the named subset) back to their native support."""
        for rec in self._scoped(selector, names):
            if not rec.linked:
                continue
            jac = float(rec.dist.log_abs_det_jacobian(rec.value))
            rec.value = np.asarray(rec.dist.from_unconstrained(rec.value), dtype=float)
            rec.linked = False
            rec.logp -= jac
            self._logp -= jac
        _log.debug("Unlinked variables for %s", selector)

    # ------------------------------------------------------------------
    # Log-density
    # ------------------------------------------------------------------

    @property
    def logp(self) -> float:
        """Accumulated log-density of the last evaluation."""
        return self._logp

    def add_logp(self, value: float) -> None:
        self._logp += float(value)

    def reset_logp(self) -> None:
        self._logp = 0.0

    def recompute_log_density(
        self,
        model: 'Model',
        context: Optional['EvaluationContext'] = None,
    ) -> float:
        """
        Re-run `model` over the current values without drawing anything.

        Returns
        -------
        float
            The recomputed log-density.
        """
        model.evaluate(None, self, None, context)
        return self._logp

    # ------------------------------------------------------------------
    # Misc
    # ------------------------------------------------------------------

    def copy(self) -> 'VarStore':
        """Independent copy; records and arrays are not shared."""
        new = VarStore()
        new._logp = self._logp
        for name, rec in self._records.items():
            new._records[name] = VarRecord(
                name=rec.name,
                value=rec.value.copy(),
                dist=rec.dist,
                logp=rec.logp,
                linked=rec.linked,
                owners=set(rec.owners),
                resample=rec.resample,
            )
        return new

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert store to a plain dictionary (for logging and inspection).

        Values are reported in the constrained chart.
        """
        return {
            'logp': self._logp,
            'variables': {
                name: {
                    'value': rec.constrained_value().tolist(),
                    'dist': repr(rec.dist),
                    'logp': rec.logp,
                    'linked': rec.linked,
                    'owners': sorted(s.gid for s in rec.owners),
                }
                for name, rec in self._records.items()
            },
        }

    def __repr__(self) -> str:
        lines = [f"VarStore(logp={self._logp:.4g}, {{"]
        for name, rec in self._records.items():
            flag = '  # linked' if rec.linked else ''
            lines.append(f"    '{name}': {rec.constrained_value().tolist()} ~ {rec.dist},{flag}")
        lines.append("})")
        return "\n".join(lines)
