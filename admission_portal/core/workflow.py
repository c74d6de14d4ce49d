"""
Application status state machine. Status is the only mutable lifecycle field;
every change goes through `check_transition`.
"""

from typing import Dict, FrozenSet

from admission_portal.core.enums import ApplicationStatus as S
from admission_portal.core.exceptions import InvalidTransitionError

ALLOWED_TRANSITIONS: Dict[S, FrozenSet[S]] = {
    S.DRAFT: frozenset({S.SUBMITTED, S.CANCELLED}),
    S.SUBMITTED: frozenset({S.UNDER_REVIEW, S.APPROVED, S.REJECTED, S.CANCELLED}),
    S.UNDER_REVIEW: frozenset({S.APPROVED, S.REJECTED, S.CANCELLED}),
    S.REJECTED: frozenset({S.SUBMITTED, S.CANCELLED}),
    S.APPROVED: frozenset({S.COMPLETE, S.CANCELLED}),
    S.COMPLETE: frozenset({S.CANCELLED}),
    S.CANCELLED: frozenset(),
}

# Statuses in which the submitter may still edit the record
EDITABLE_STATUSES = frozenset({S.DRAFT, S.REJECTED})

# Workflow actions recorded in the audit trail
ACTION_BY_TARGET = {
    S.SUBMITTED: "SUBMIT",
    S.UNDER_REVIEW: "START_REVIEW",
    S.APPROVED: "APPROVE",
    S.REJECTED: "REJECT",
    S.COMPLETE: "COMPLETE",
    S.CANCELLED: "CANCEL",
}


def can_transition(from_status: S, to_status: S) -> bool:
    return to_status in ALLOWED_TRANSITIONS.get(from_status, frozenset())


def check_transition(from_status: S, to_status: S) -> None:
    """Raise InvalidTransitionError unless from_status -> to_status is allowed."""
    if not can_transition(from_status, to_status):
        raise InvalidTransitionError(from_status.value, to_status.value)


def action_for(from_status: S, to_status: S) -> str:
    if from_status == S.REJECTED and to_status == S.SUBMITTED:
        return "RESUBMIT"
    return ACTION_BY_TARGET.get(to_status, "UPDATE_STATUS")
