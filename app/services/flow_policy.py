"""
Flow policy - the configurable, ordered list of processing steps.

Answers "what comes after / before step X" over the active steps only.
Inactive steps stay in the known vocabulary and are skipped transparently.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Union

from app.domain.enums import OrderStatus

logger = logging.getLogger(__name__)

# Steps that configuration can never deactivate or remove.
FIXED_STEPS = frozenset({
    OrderStatus.IN_STORE,
    OrderStatus.READY_DELIVERY,
    OrderStatus.DELIVERED,
})

DEFAULT_STEPS = [
    # key, name, icon, color, is_active, is_required, position
    (OrderStatus.PENDING_PICKUP, 'Pendiente de Recogida', 'Clock', 'bg-amber-500', True, True, 0),
    (OrderStatus.IN_STORE, 'En Local', 'Store', 'bg-blue-500', True, True, 1),
    (OrderStatus.WASHING, 'Lavando', 'Waves', 'bg-cyan-500', True, False, 2),
    (OrderStatus.DRYING, 'Secando', 'Wind', 'bg-purple-500', True, False, 3),
    (OrderStatus.IRONING, 'Planchado', 'Flame', 'bg-orange-500', True, False, 4),
    (OrderStatus.READY_DELIVERY, 'Listo para Entrega', 'Package', 'bg-emerald-500', True, True, 5),
    (OrderStatus.IN_TRANSIT, 'En Camino', 'Truck', 'bg-indigo-500', True, False, 6),
    (OrderStatus.DELIVERED, 'Entregado', 'CheckCircle', 'bg-green-600', True, True, 7),
]

_DEFAULT_POSITIONS = {row[0]: row[6] for row in DEFAULT_STEPS}


@dataclass(frozen=True)
class FlowStep:
    key: OrderStatus
    is_active: bool
    is_required: bool
    position: int


def _read(step, name, default=None):
    if isinstance(step, dict):
        return step.get(name, default)
    return getattr(step, name, default)


def _coerce_status(value) -> Optional[OrderStatus]:
    if value is None:
        return None
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(str(value))
    except ValueError:
        return None


class FlowPolicy:
    """
    Ordered, partially-active step list.

    Built from anything exposing ``key``, ``is_active``, ``is_required`` and
    ``position`` (ORM rows or dicts; ``order`` is accepted as an alias of
    ``position``). Keys outside the vocabulary are ignored; vocabulary keys
    missing from the configuration are kept inactive at their default
    position. Fixed and required steps are always active.
    """

    def __init__(self, steps: Iterable):
        by_key = {}
        for raw in steps:
            key = _coerce_status(_read(raw, 'key'))
            if key is None:
                logger.warning(f"[FLOW] Ignoring unknown operation step: {_read(raw, 'key')!r}")
                continue
            position = _read(raw, 'position')
            if position is None:
                position = _read(raw, 'order', _DEFAULT_POSITIONS[key])
            is_required = bool(_read(raw, 'is_required', False)) or key in FIXED_STEPS
            is_active = bool(_read(raw, 'is_active', True)) or is_required
            by_key[key] = FlowStep(key=key, is_active=is_active, is_required=is_required, position=int(position))

        for key in OrderStatus:
            if key not in by_key:
                fixed = key in FIXED_STEPS
                by_key[key] = FlowStep(key=key, is_active=fixed, is_required=fixed,
                                       position=_DEFAULT_POSITIONS[key])

        # Ties on position fall back to the vocabulary order
        vocabulary = list(OrderStatus)
        self._steps: List[FlowStep] = sorted(
            by_key.values(), key=lambda s: (s.position, vocabulary.index(s.key))
        )
        self._active: List[OrderStatus] = [s.key for s in self._steps if s.is_active]

    @classmethod
    def default(cls) -> 'FlowPolicy':
        return cls(
            {'key': key, 'is_active': active, 'is_required': required, 'position': position}
            for key, _name, _icon, _color, active, required, position in DEFAULT_STEPS
        )

    @property
    def steps(self) -> List[FlowStep]:
        return list(self._steps)

    @property
    def active_keys(self) -> List[OrderStatus]:
        return list(self._active)

    def is_known(self, key) -> bool:
        return _coerce_status(key) is not None

    def is_active(self, key) -> bool:
        return _coerce_status(key) in self._active

    def _rank(self, key: OrderStatus) -> int:
        for index, step in enumerate(self._steps):
            if step.key == key:
                return index
        return -1

    def next_step(self, current: Union[OrderStatus, str, None]) -> Optional[OrderStatus]:
        """Nearest active step strictly after ``current``; None if last or unknown."""
        key = _coerce_status(current)
        if key is None:
            return None
        rank = self._rank(key)
        for step in self._steps[rank + 1:]:
            if step.is_active:
                return step.key
        return None

    def previous_step(self, current: Union[OrderStatus, str, None]) -> Optional[OrderStatus]:
        """Nearest active step strictly before ``current``; None if first or unknown."""
        key = _coerce_status(current)
        if key is None:
            return None
        rank = self._rank(key)
        for step in reversed(self._steps[:rank]):
            if step.is_active:
                return step.key
        return None

    def has_reached(self, current, target) -> bool:
        """True when ``current`` sits at or after ``target`` in the configured order."""
        current_key, target_key = _coerce_status(current), _coerce_status(target)
        if current_key is None or target_key is None:
            return False
        return self._rank(current_key) >= self._rank(target_key)

    def first_step(self, needs_pickup: bool) -> OrderStatus:
        """Initial status for a new order."""
        if needs_pickup and self.is_active(OrderStatus.PENDING_PICKUP):
            return OrderStatus.PENDING_PICKUP
        return OrderStatus.IN_STORE

    def __repr__(self):
        return f"<FlowPolicy(active={[k.value for k in self._active]})>"
