"""
License state machine.

    no_permission → pending → granted
    no_permission → pending → denied

granted and denied are terminal. Leaving them, or moving backwards,
needs an explicit administrative reset.
"""

import threading
from typing import Callable, Dict, Optional, Tuple

from corpusgate.core.exceptions import InvalidTransition
from corpusgate.core.logs import get_logger
from corpusgate.core.models import Category, LicenseState

log = get_logger(__name__)

TransitionHook = Callable[[Category, LicenseState, LicenseState], None]

_ALLOWED = {
    LicenseState.NO_PERMISSION: frozenset({LicenseState.PENDING}),
    LicenseState.PENDING:       frozenset({LicenseState.GRANTED, LicenseState.DENIED}),
    LicenseState.GRANTED:       frozenset(),
    LicenseState.DENIED:        frozenset(),
}


def is_terminal(state: LicenseState) -> bool:
    return not _ALLOWED[state]


def validate_transition(current: LicenseState, new: LicenseState) -> None:
    """Raise InvalidTransition unless current → new is a single legal step."""
    if new not in _ALLOWED[current]:
        raise InvalidTransition(
            f"License state cannot move from {current.value} to {new.value}",
            {"from": current.value, "to": new.value},
        )


class LicenseRegistry:
    """
    Current license state per content category.

    This is the administrative side of license tracking; an external
    workflow calls update() when a rights holder responds.
    """

    def __init__(self, initial: Optional[Dict[Category, LicenseState]] = None):
        self._lock = threading.Lock()
        self._states: Dict[Category, LicenseState] = {
            Category.parse(c): LicenseState.parse(s)
            for c, s in (initial or {}).items()
        }

    def state_of(self, category: Category) -> LicenseState:
        return self._states.get(category, LicenseState.NO_PERMISSION)

    def update(
        self,
        category,
        new_state,
        before_change: Optional[TransitionHook] = None,
    ) -> Tuple[LicenseState, LicenseState]:
        """
        Move a category to new_state.

        before_change(category, previous, new_state) runs under the lock
        once the move is known to be legal; if it raises, nothing changes.

        Returns:
            (previous, current), both read under the lock.

        Raises:
            InvalidTransition: the move skips or reverses a state.
        """
        category = Category.parse(category)
        new_state = LicenseState.parse(new_state)
        with self._lock:
            previous = self.state_of(category)
            validate_transition(previous, new_state)
            if before_change is not None:
                before_change(category, previous, new_state)
            self._states = {**self._states, category: new_state}

        log.info(
            "license_state_updated",
            category=category.value,
            previous=previous.value,
            current=new_state.value,
        )
        return previous, new_state

    def reset(
        self,
        category,
        before_change: Optional[TransitionHook] = None,
    ) -> Tuple[LicenseState, LicenseState]:
        """Administrative reset back to no_permission. Returns (previous, current)."""
        category = Category.parse(category)
        current = LicenseState.NO_PERMISSION
        with self._lock:
            previous = self.state_of(category)
            if before_change is not None:
                before_change(category, previous, current)
            self._states = {**self._states, category: current}

        log.warning(
            "license_state_reset",
            category=category.value,
            previous=previous.value,
        )
        return previous, current

    def snapshot(self) -> Dict[Category, LicenseState]:
        return {c: self.state_of(c) for c in Category}
