"""Migration unit state machine — enforces valid lifecycle transitions."""

from __future__ import annotations

from typing import Awaitable, Callable

from strata.exceptions import UnitStateError
from strata.types import UnitState

TransitionCallback = Callable[[str, UnitState, UnitState], Awaitable[None]]

# Failed up stays pending; failed down stays applied.
VALID_TRANSITIONS: dict[UnitState, set[UnitState]] = {
    UnitState.UNLOADED: {UnitState.LOADED},
    UnitState.LOADED: {UnitState.PENDING},
    UnitState.PENDING: {UnitState.APPLIED, UnitState.PENDING},
    UnitState.APPLIED: {UnitState.REVERTING},
    UnitState.REVERTING: {UnitState.LOADED, UnitState.APPLIED},
}


class UnitStateMachine:
    """Tracks the lifecycle state of a single migration unit.

    Only valid transitions occur; listeners are notified on every change.
    """

    def __init__(self, name: str, initial: UnitState = UnitState.UNLOADED) -> None:
        self.name = name
        self._state = initial
        self._listeners: list[TransitionCallback] = []

    @property
    def state(self) -> UnitState:
        return self._state

    async def transition(self, target: UnitState) -> None:
        valid = VALID_TRANSITIONS.get(self._state, set())
        if target not in valid:
            raise UnitStateError(
                f"Cannot transition migration {self.name} "
                f"from {self._state.value} to {target.value}"
            )
        old = self._state
        self._state = target
        for listener in self._listeners:
            await listener(self.name, old, target)

    def on_transition(self, callback: TransitionCallback) -> None:
        self._listeners.append(callback)
