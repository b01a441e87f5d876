# =====================================================
# FILE: app/services/phase_lifecycle.py
# Phase gating, progress and phase state transitions
# =====================================================
"""
Pure lifecycle rules for a project's ordered phases.

Nothing here touches the database or the request. Every function works on
any record exposing ``order`` and ``status`` (an ORM ``Phase`` or a plain
object), so the rules can be exercised directly in tests and reused by the
approval workflow.
"""

from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence
import logging

from app.core.exceptions import InvalidTransition, ValidationError

logger = logging.getLogger(__name__)


class PhaseStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    AWAITING_APPROVAL = "awaiting_approval"
    APPROVED = "approved"
    CHANGES_REQUESTED = "changes_requested"


class PhaseAction(str, Enum):
    START = "start"
    SUBMIT_FOR_APPROVAL = "submit_for_approval"
    APPROVE = "approve"
    REQUEST_CHANGES = "request_changes"
    RESUME = "resume"


# action -> (required current status, resulting status)
PHASE_TRANSITIONS: Dict[PhaseAction, tuple] = {
    PhaseAction.START: (PhaseStatus.NOT_STARTED, PhaseStatus.IN_PROGRESS),
    PhaseAction.SUBMIT_FOR_APPROVAL: (PhaseStatus.IN_PROGRESS, PhaseStatus.AWAITING_APPROVAL),
    PhaseAction.APPROVE: (PhaseStatus.AWAITING_APPROVAL, PhaseStatus.APPROVED),
    PhaseAction.REQUEST_CHANGES: (PhaseStatus.AWAITING_APPROVAL, PhaseStatus.CHANGES_REQUESTED),
    PhaseAction.RESUME: (PhaseStatus.CHANGES_REQUESTED, PhaseStatus.IN_PROGRESS),
}

# camelCase spellings accepted from callers
ACTION_ALIASES = {
    "submitForApproval": PhaseAction.SUBMIT_FOR_APPROVAL,
    "requestChanges": PhaseAction.REQUEST_CHANGES,
}

# Phase statuses that count toward a team member's active load
ACTIVE_STATUSES = frozenset({
    PhaseStatus.IN_PROGRESS,
    PhaseStatus.AWAITING_APPROVAL,
    PhaseStatus.CHANGES_REQUESTED,
})

# Project statuses the derived progress never overrides
STICKY_PROJECT_STATUSES = frozenset({"archived", "at_risk"})


def parse_status(value) -> PhaseStatus:
    try:
        return PhaseStatus(value)
    except ValueError:
        raise ValidationError(f"Unknown phase status: {value!r}")


def parse_action(value) -> PhaseAction:
    if isinstance(value, PhaseAction):
        return value
    if value in ACTION_ALIASES:
        return ACTION_ALIASES[value]
    try:
        return PhaseAction(value)
    except ValueError:
        valid = ", ".join(a.value for a in PhaseAction)
        raise ValidationError(f"Unknown phase action: {value!r}. Valid actions: {valid}")


def validate_order(order) -> int:
    """Ordinals are 1-based integers."""
    if isinstance(order, bool) or not isinstance(order, int) or order < 1:
        raise ValidationError(f"Phase order must be an integer >= 1, got {order!r}")
    return order


def validate_sequence(phases: Iterable) -> List:
    """
    Check that a project's phase ordinals are valid and distinct.

    Returns the phases sorted by order.
    """
    phases = list(phases)
    seen = set()
    for phase in phases:
        order = validate_order(phase.order)
        if order in seen:
            raise ValidationError(f"Duplicate phase order {order}")
        seen.add(order)
    return sorted(phases, key=lambda p: p.order)


def previous_phase(phases: Sequence, phase) -> Optional[object]:
    """The phase whose order is exactly one less, or None when there is a gap."""
    return next((p for p in phases if p.order == phase.order - 1), None)


def next_phase(phases: Sequence, phase) -> Optional[object]:
    return next((p for p in phases if p.order == phase.order + 1), None)


def is_accessible(phase, previous=None) -> bool:
    """
    Whether a client may open (and approve) ``phase``.

    Phase 1 is always accessible. Any later phase is accessible only when its
    immediate predecessor is approved. A missing predecessor, or one that is
    not at ``order - 1``, fails closed.
    """
    order = validate_order(phase.order)
    if order == 1:
        return True
    if previous is None or previous.order != order - 1:
        return False
    return previous.status == PhaseStatus.APPROVED


def accessibility_map(phases: Iterable) -> Dict[int, bool]:
    """{order: accessible} for every phase of a project."""
    ordered = validate_sequence(phases)
    return {p.order: is_accessible(p, previous_phase(ordered, p)) for p in ordered}


def compute_progress(phases: Iterable) -> int:
    """
    Approved phases as a whole-number percentage of all phases.

    Rounds half up (2 of 3 -> 67) and returns 0 for an empty project.
    """
    phases = list(phases)
    total = len(phases)
    if total == 0:
        return 0
    approved = sum(1 for p in phases if p.status == PhaseStatus.APPROVED)
    return (approved * 200 + total) // (total * 2)


def derive_project_status(current_status: str, progress: int) -> str:
    """Project status implied by progress; archived and at_risk are left alone."""
    if current_status in STICKY_PROJECT_STATUSES:
        return current_status
    return "completed" if progress >= 100 else "active"


def allowed_actions(status) -> List[str]:
    current = parse_status(status)
    return [action.value for action, (source, _) in PHASE_TRANSITIONS.items() if source == current]


def check_transition(status, action) -> PhaseStatus:
    """Resulting status of ``action`` from ``status``, without applying it."""
    action = parse_action(action)
    current = parse_status(status)
    source, target = PHASE_TRANSITIONS[action]

    if current != source:
        raise InvalidTransition(
            f"Cannot {action.value} a phase that is {current.value}"
            f" (allowed from {source.value})"
        )
    return target


def transition(phase, action) -> str:
    """
    Apply ``action`` to ``phase`` and return the new status.

    Mutates ``phase.status``. Raises InvalidTransition when the action is not
    valid from the phase's current status; nothing is coerced.
    """
    action = parse_action(action)
    current = parse_status(phase.status)
    target = check_transition(current, action)

    phase.status = target.value
    logger.debug(f"Phase order={phase.order} {current.value} -> {target.value} via {action.value}")
    return target.value
