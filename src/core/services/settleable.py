"""Settleable value with one-or-many listeners.

Delivery rules:
- `settle` installs the value and notifies every listener in the same
  synchronous step, in registration order, exactly once.
- Listeners added after settling are not called; callers read `value`.
- A raising listener is logged and does not stop the ones after it.
"""

from __future__ import annotations

import logging
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Settleable(Generic[T]):
    __slots__ = ("_listeners", "_settled", "_value")

    def __init__(self) -> None:
        self._listeners: list[Callable[[T], None]] = []
        self._settled = False
        self._value: T | None = None

    @property
    def settled(self) -> bool:
        return self._settled

    @property
    def value(self) -> T | None:
        return self._value

    @property
    def waiting(self) -> int:
        return len(self._listeners)

    def add_listener(self, listener: Callable[[T], None]) -> bool:
        """Register `listener`; returns False if the value is already settled."""

        if self._settled:
            return False
        self._listeners.append(listener)
        return True

    def settle(self, value: T) -> None:
        if self._settled:
            raise RuntimeError("value already settled")
        self._settled = True
        self._value = value
        listeners, self._listeners = self._listeners, []
        for listener in listeners:
            try:
                listener(value)
            except Exception:
                logger.exception("Listener %r failed while settling", listener)
