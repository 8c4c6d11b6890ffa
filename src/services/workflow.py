# --------------------------- src/services/workflow.py ----------------------------
"""
Inquiry Router · Workflow State Machine

OVERVIEW:
An inquiry task's status string and its group membership are one piece of
state. WorkflowState couples them so the pipeline can never write status
"Assigned" while leaving the task in the "New Inquiry" group.

TRANSITIONS:
    NEW              -> ASSIGNED | IMMEDIATE_ACTION
    IMMEDIATE_ACTION -> ASSIGNED | IMMEDIATE_ACTION
    ASSIGNED         -> ASSIGNED              (re-assignment)

Statuses reached through user actions (Won, Lost, Proposal Sent, Negotiation,
In Progress, ...) are outside pipeline control: from_status() returns None for
them and the automatic pipeline refuses to move such tasks.

MANUAL OVERRIDE:
A manager may force any task into ASSIGNED (manual_transition) unless it has
reached a terminal sales status (TERMINAL_STATUSES).
"""

from enum import Enum
from typing import Dict, Optional

from src.services.errors import InvalidTransitionError


class WorkflowState(Enum):
    """Pipeline-controlled states with the group each one lives in."""
    NEW = ("New", "New Inquiry", "#10B981", 0)
    ASSIGNED = ("Assigned", "Assigned", "#3B82F6", 2)
    IMMEDIATE_ACTION = ("Immediate Action", "Immediate Action", "#EF4444", 3)

    def __init__(self, status: str, group_title: str, group_color: str, group_position: int):
        self.status = status
        self.group_title = group_title
        self.group_color = group_color
        self.group_position = group_position

    @classmethod
    def from_status(cls, status: Optional[str]) -> Optional["WorkflowState"]:
        for state in cls:
            if state.status == status:
                return state
        return None


ALLOWED_TRANSITIONS = {
    WorkflowState.NEW: {WorkflowState.ASSIGNED, WorkflowState.IMMEDIATE_ACTION},
    WorkflowState.IMMEDIATE_ACTION: {WorkflowState.ASSIGNED, WorkflowState.IMMEDIATE_ACTION},
    WorkflowState.ASSIGNED: {WorkflowState.ASSIGNED},
}


def can_transition(current: Optional[WorkflowState], target: WorkflowState) -> bool:
    if current is None:
        return False
    return target in ALLOWED_TRANSITIONS[current]


def transition(current: Optional[WorkflowState], target: WorkflowState) -> WorkflowState:
    """Validate a move and return the target state."""
    if not can_transition(current, target):
        label = current.status if current else "outside pipeline control"
        raise InvalidTransitionError(f"Cannot move task from '{label}' to '{target.status}'")
    return target


TERMINAL_STATUSES = frozenset({"Won", "Lost", "Proposal Sent", "Negotiation"})


def manual_transition(current_status: Optional[str], target: WorkflowState) -> WorkflowState:
    """Validate a manager-forced move: any status except a terminal one."""
    if current_status in TERMINAL_STATUSES:
        raise InvalidTransitionError(f"Cannot move task from terminal status '{current_status}' to '{target.status}'")
    return target


def workflow_patch(state: WorkflowState, group_id: str) -> Dict[str, str]:
    """The coupled status/group update for a task entering `state`."""
    return {"status": state.status, "group_id": group_id}
