"""Placement state machine for a single order request.

Tracks the phases an order passes through inside the order processor:
validation and advisory stock checks, the atomic reservation phase, and the
terminal outcomes. Each placement or cancellation gets its own instance; the
recorded history is attached to log events so a rejected request shows how
far it got.
"""

import enum
from datetime import datetime, timezone
from typing import Any, Optional

from bookstore.core.logging import get_logger

logger = get_logger(__name__)


class PlacementPhase(str, enum.Enum):
    """Phases of order placement."""

    VALIDATING = "VALIDATING"
    RESERVING = "RESERVING"
    COMMITTED = "COMMITTED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


_ALLOWED_TRANSITIONS: dict[PlacementPhase, frozenset[PlacementPhase]] = {
    PlacementPhase.VALIDATING: frozenset(
        {PlacementPhase.RESERVING, PlacementPhase.REJECTED}
    ),
    PlacementPhase.RESERVING: frozenset(
        {PlacementPhase.COMMITTED, PlacementPhase.REJECTED}
    ),
    PlacementPhase.COMMITTED: frozenset({PlacementPhase.CANCELLED}),
    PlacementPhase.REJECTED: frozenset(),
    PlacementPhase.CANCELLED: frozenset(),
}


class StateTransitionError(Exception):
    """Raised when an invalid phase transition is attempted."""

    def __init__(
        self,
        message: str,
        current_state: PlacementPhase,
        target_state: PlacementPhase,
        **context: Any,
    ):
        super().__init__(message)
        self.current_state = current_state
        self.target_state = target_state
        self.context = context


def get_allowed_transitions(phase: PlacementPhase) -> frozenset[PlacementPhase]:
    return _ALLOWED_TRANSITIONS[phase]


class PlacementStateMachine:
    """
    Phase tracker for one order.

    Starts in ``VALIDATING`` for a new placement. Cancellation of an existing
    order starts from ``COMMITTED``.
    """

    def __init__(
        self,
        initial: PlacementPhase = PlacementPhase.VALIDATING,
        order_id: Optional[Any] = None,
    ):
        self.phase = initial
        self.order_id = order_id
        self.history: list[tuple[PlacementPhase, datetime]] = [
            (initial, datetime.now(timezone.utc))
        ]
        self.rejection_reason: Optional[str] = None

    @classmethod
    def for_existing_order(cls, order_id: Any) -> "PlacementStateMachine":
        return cls(initial=PlacementPhase.COMMITTED, order_id=order_id)

    @property
    def is_terminal(self) -> bool:
        return not _ALLOWED_TRANSITIONS[self.phase]

    def can_transition(self, target: PlacementPhase) -> bool:
        return target in _ALLOWED_TRANSITIONS[self.phase]

    def transition(self, target: PlacementPhase, reason: Optional[str] = None) -> None:
        """
        Move to ``target``.

        Raises:
            StateTransitionError: If the move is not allowed from the current phase
        """
        if not self.can_transition(target):
            allowed = sorted(p.value for p in _ALLOWED_TRANSITIONS[self.phase])
            raise StateTransitionError(
                f"Invalid transition from {self.phase.value} to {target.value}",
                current_state=self.phase,
                target_state=target,
                allowed_transitions=allowed,
            )

        logger.debug(
            "Placement phase transition",
            order_id=str(self.order_id) if self.order_id else None,
            transition=f"{self.phase.value}->{target.value}",
            reason=reason,
        )

        self.phase = target
        self.history.append((target, datetime.now(timezone.utc)))
        if target is PlacementPhase.REJECTED:
            self.rejection_reason = reason

    def reserve(self) -> None:
        self.transition(PlacementPhase.RESERVING)

    def commit(self, order_id: Any) -> None:
        self.order_id = order_id
        self.transition(PlacementPhase.COMMITTED)

    def reject(self, reason: str) -> None:
        """Reject from any non-terminal pre-commit phase."""
        self.transition(PlacementPhase.REJECTED, reason=reason)

    def cancel(self) -> None:
        self.transition(PlacementPhase.CANCELLED)

    def describe(self) -> dict[str, Any]:
        """Structured summary for log events."""
        return {
            "phase": self.phase.value,
            "phases": [phase.value for phase, _ in self.history],
            "rejection_reason": self.rejection_reason,
        }
