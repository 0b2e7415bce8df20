"""
Outlet session lifecycle.

    open ──► escalated ──► closed | resolved
      └──────────────────► closed | resolved

closed and resolved are terminal. The functions here are pure: they take the
current status (and kind) and either return the next status or raise
InvalidOperationError. Persisting the result is the orchestrator's job.
"""
from enum import Enum

from backend.app.core.exceptions import InvalidOperationError
from backend.app.schemas.outlet import SessionKind, SessionStatus

TERMINAL_STATUSES = frozenset({SessionStatus.CLOSED, SessionStatus.RESOLVED})


class LifecycleAction(str, Enum):
    POST_MESSAGE = "post_message"
    ESCALATE = "escalate"
    CLOSE = "close"
    RESOLVE = "resolve"


# Actions that only exist for the outlet kind
_STAFF_WORKFLOW_ACTIONS = frozenset({LifecycleAction.ESCALATE, LifecycleAction.RESOLVE})


def is_terminal(status: SessionStatus) -> bool:
    return SessionStatus(status) in TERMINAL_STATUSES


def ensure_staff_workflow_allowed(kind: SessionKind, action: LifecycleAction) -> None:
    """Single guard for the confessional restrictions on escalate/resolve."""
    if SessionKind(kind) is SessionKind.CONFESSIONAL and action in _STAFF_WORKFLOW_ACTIONS:
        raise InvalidOperationError(
            f"Confessional sessions cannot be {'escalated' if action is LifecycleAction.ESCALATE else 'resolved'}."
        )


def next_status(current: SessionStatus, action: LifecycleAction, kind: SessionKind = SessionKind.OUTLET) -> SessionStatus:
    """
    Project the status that results from applying `action`.

    Escalating an already-escalated session keeps `escalated`; closing a
    closed session is a no-op that returns `closed`.
    """
    current = SessionStatus(current)
    ensure_staff_workflow_allowed(kind, action)

    if action is LifecycleAction.CLOSE and current is SessionStatus.CLOSED:
        return SessionStatus.CLOSED

    if current in TERMINAL_STATUSES:
        raise InvalidOperationError(
            f"Session is {current.value}; {action.value.replace('_', ' ')} is no longer allowed."
        )

    if action is LifecycleAction.POST_MESSAGE:
        return current
    if action is LifecycleAction.ESCALATE:
        return SessionStatus.ESCALATED
    if action is LifecycleAction.CLOSE:
        return SessionStatus.CLOSED
    if action is LifecycleAction.RESOLVE:
        return SessionStatus.RESOLVED
    raise ValueError(f"Unknown lifecycle action: {action}")
