# --------------------------- tests/unit/test_workflow.py ----------------------------
"""Coupled status/group workflow states and their transition table."""

import pytest

from src.services.errors import InvalidTransitionError
from src.services.workflow import (
    TERMINAL_STATUSES,
    WorkflowState,
    can_transition,
    manual_transition,
    transition,
    workflow_patch,
)

NEW = WorkflowState.NEW
ASSIGNED = WorkflowState.ASSIGNED
IMMEDIATE = WorkflowState.IMMEDIATE_ACTION


class TestWorkflowState:

    @pytest.mark.parametrize("state,status,group", [
        (NEW, "New", "New Inquiry"),
        (ASSIGNED, "Assigned", "Assigned"),
        (IMMEDIATE, "Immediate Action", "Immediate Action"),
    ])
    def test_status_and_group_are_coupled(self, state, status, group):
        assert state.status == status
        assert state.group_title == group
        assert WorkflowState.from_status(status) is state

    @pytest.mark.parametrize("status", ["Won", "Lost", "Proposal Sent", "Negotiation", "In Progress", None])
    def test_user_controlled_statuses_are_not_pipeline_states(self, status):
        assert WorkflowState.from_status(status) is None

    def test_patch_writes_status_and_group_together(self):
        assert workflow_patch(ASSIGNED, "group-1") == {"status": "Assigned", "group_id": "group-1"}


class TestTransitions:

    @pytest.mark.parametrize("current,target", [
        (NEW, ASSIGNED),
        (NEW, IMMEDIATE),
        (IMMEDIATE, ASSIGNED),
        (IMMEDIATE, IMMEDIATE),
        (ASSIGNED, ASSIGNED),
    ])
    def test_allowed(self, current, target):
        assert can_transition(current, target)
        assert transition(current, target) is target

    @pytest.mark.parametrize("current,target", [
        (ASSIGNED, IMMEDIATE),
        (ASSIGNED, NEW),
        (IMMEDIATE, NEW),
        (NEW, NEW),
        (None, ASSIGNED),
    ])
    def test_rejected(self, current, target):
        assert not can_transition(current, target)
        with pytest.raises(InvalidTransitionError):
            transition(current, target)


class TestManualTransition:

    @pytest.mark.parametrize("status", ["New", "Assigned", "Immediate Action", "In Progress", "New Lead", None])
    def test_forced_into_assigned(self, status):
        assert manual_transition(status, ASSIGNED) is ASSIGNED

    @pytest.mark.parametrize("status", sorted(TERMINAL_STATUSES))
    def test_terminal_statuses_are_refused(self, status):
        with pytest.raises(InvalidTransitionError):
            manual_transition(status, ASSIGNED)
