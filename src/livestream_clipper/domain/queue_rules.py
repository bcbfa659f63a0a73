from __future__ import annotations

from .errors import InvalidTransitionError
from .models import QueueStatus

# FAILED -> PENDING is the retry edge; nothing else leaves a terminal state.
ALLOWED_TRANSITIONS: dict[QueueStatus, frozenset[QueueStatus]] = {
    QueueStatus.RECORDING: frozenset({QueueStatus.PENDING}),
    QueueStatus.PENDING: frozenset({QueueStatus.PROCESSING}),
    QueueStatus.PROCESSING: frozenset({QueueStatus.COMPLETED, QueueStatus.FAILED}),
    QueueStatus.COMPLETED: frozenset(),
    QueueStatus.FAILED: frozenset({QueueStatus.PENDING}),
}

CANCELLABLE: frozenset[QueueStatus] = frozenset(
    {QueueStatus.RECORDING, QueueStatus.PENDING, QueueStatus.FAILED}
)


def transition(current: QueueStatus, requested: QueueStatus) -> bool:
    return QueueStatus(requested) in ALLOWED_TRANSITIONS[QueueStatus(current)]


def ensure_transition(current: QueueStatus, requested: QueueStatus) -> None:
    if not transition(current, requested):
        raise InvalidTransitionError(f"Illegal status transition: {current} -> {requested}")


def sources_for(requested: QueueStatus) -> list[QueueStatus]:
    """Statuses from which ``requested`` may be reached, in declaration order."""
    requested = QueueStatus(requested)
    return [status for status, targets in ALLOWED_TRANSITIONS.items() if requested in targets]


def validate_window(t0: float, t1: float | None) -> None:
    if t1 is not None and t1 < t0:
        raise ValueError(f"t1 ({t1}) must be >= t0 ({t0})")
