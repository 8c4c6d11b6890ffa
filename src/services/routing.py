# --------------------------- src/services/routing.py ----------------------------
"""
Inquiry Router · Inquiry Assignment Routing

OVERVIEW:
Moves an inquiry task out of "New Inquiry" once it has been classified:
either to "Assigned" with a sales rep, or to "Immediate Action" with the
reason a human has to step in.

WORKFLOW:
1. Classify the inquiry (subject + company keywords)
2. Find a sales rep for the category
3. Validate the assignment (category, rep, expertise, workload)
4. Apply the coupled status/group change and persist it
5. Record TASK_ASSIGNED or TASK_NEEDS_ASSIGNMENT

BUSINESS LOGIC:
- A failed validation overrides a successful rep lookup: the task goes to
  Immediate Action even when a rep was nominally found.
- Manual assignment lands in Assigned from any status except the terminal
  ones (Won, Lost, Proposal Sent, Negotiation). Validation still runs, but
  its failures are kept as warnings on the task instead of blocking. Once the
  task update is stored, a failed activity write no longer fails the call.
- Entering Assigned clears earlier failure markers from custom fields.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from src.services.activity import ActivityAction, ActivityLogger
from src.services.assignment import AssignmentValidation, RepAssignmentEngine, Representative
from src.services.boards import BoardDirectory
from src.services.classification import CategoryClassifier
from src.services.errors import RecordNotFoundError
from src.services.store import Store
from src.services.workflow import WorkflowState, manual_transition, transition, workflow_patch

logger = logging.getLogger(__name__)

FAILURE_FLAGS = ("assignment_failure_reason", "validation_failed")


def _cleared_assignment_flags(custom_fields: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Custom fields of a task entering Assigned: the earlier failure markers removed."""
    fields = {k: v for k, v in (custom_fields or {}).items() if k not in FAILURE_FLAGS}
    fields["needs_manual_assignment"] = False
    return fields


@dataclass
class AssignmentOutcome:
    task_id: str
    product_category: str
    representative: Optional[Representative]
    validation: AssignmentValidation
    state: WorkflowState

    @property
    def assigned(self) -> bool:
        return self.state is WorkflowState.ASSIGNED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_id": self.task_id,
            "product_category": self.product_category,
            "sales_rep_id": self.representative.id if self.representative else None,
            "sales_rep_name": self.representative.name if self.representative else None,
            "status": self.state.status,
            "group": self.state.group_title,
            "validation_passed": self.validation.is_valid,
            "validation_reason": self.validation.reason,
        }


class InquiryRouter:
    def __init__(self, store: Store, boards: BoardDirectory, classifier: CategoryClassifier,
                 engine: RepAssignmentEngine, activity: ActivityLogger):
        self.store = store
        self.boards = boards
        self.classifier = classifier
        self.engine = engine
        self.activity = activity

    async def _load_task(self, task_id: str) -> Dict[str, Any]:
        task = await self.store.find_one("tasks", {"id": task_id})
        if not task:
            raise RecordNotFoundError(f"Task not found: {task_id}")
        return task

    async def process_inquiry_assignment(self, task_id: str, subject: str, company_name: str) -> AssignmentOutcome:
        """
        Classify, pick a rep, validate and move the task to its workflow group.

        RAISES:
            RecordNotFoundError: task does not exist
            InvalidTransitionError: task is in a status outside pipeline control
            StoreError: persistence failed
        """
        logger.info(f"Processing inquiry assignment for task {task_id}")
        task = await self._load_task(task_id)

        product_category = self.classifier.determine_product_category(subject, company_name)
        logger.info(f"Determined product category: {product_category}")

        sales_rep = await self.engine.find_sales_rep_by_product_category(product_category)
        validation = await self.engine.validate_assignment_requirements(task_id, product_category, sales_rep)
        assigned = sales_rep is not None and validation.is_valid

        target = WorkflowState.ASSIGNED if assigned else WorkflowState.IMMEDIATE_ACTION
        state = transition(WorkflowState.from_status(task.get("status")), target)
        group = await self.boards.get_or_create_workflow_group(task["board_id"], state)

        custom_fields = dict(task.get("custom_fields") or {})
        patch = {"product_category": product_category, **workflow_patch(state, group["id"])}
        if assigned:
            patch["assigned_sales_rep"] = sales_rep.id
            custom_fields = _cleared_assignment_flags(custom_fields)
        else:
            custom_fields.update({
                "needs_manual_assignment": True,
                "assignment_failure_reason": validation.reason,
                "validation_failed": not validation.is_valid,
            })
        patch["custom_fields"] = custom_fields

        await self.store.update("tasks", task_id, patch)

        action = ActivityAction.TASK_ASSIGNED if assigned else ActivityAction.TASK_NEEDS_ASSIGNMENT
        await self.activity.record(task_id, action, {
            "product_category": product_category,
            "sales_rep_id": sales_rep.id if sales_rep else None,
            "sales_rep_name": sales_rep.name if sales_rep else None,
            "group_moved_to": state.group_title,
            "assignment_status": "assigned" if assigned else "needs_manual_assignment",
            "validation_passed": validation.is_valid,
            "validation_reason": validation.reason,
        })

        if assigned:
            logger.info(f"Task {task_id} assigned to {sales_rep.name} ({sales_rep.id})")
        else:
            logger.warning(f"Task {task_id} needs manual assignment: {validation.reason}")

        return AssignmentOutcome(task_id, product_category, sales_rep, validation, state)

    async def manually_assign_sales_rep(self, task_id: str, sales_rep_id: str, assigned_by: str) -> bool:
        """
        Force-assign a rep from the UI.

        RETURNS:
            True once the task update is stored. False for an unknown task or
            rep, a task in a terminal status such as Won or Lost, or a store
            error before the update. Never raises.
        """
        logger.info(f"Manual assignment of task {task_id} to {sales_rep_id} by {assigned_by}")
        try:
            task = await self.store.find_one("tasks", {"id": task_id})
            if not task:
                logger.warning(f"Manual assignment failed, task {task_id} not found")
                return False

            state = manual_transition(task.get("status"), WorkflowState.ASSIGNED)

            rep_row = await self.store.find_one("users", {"id": sales_rep_id}, columns="id, fullname, email, role")
            if not rep_row:
                logger.warning(f"Manual assignment failed, sales rep {sales_rep_id} not found")
                return False
            sales_rep = Representative.from_row(rep_row)

            validation = await self.engine.validate_assignment_requirements(
                task_id, task.get("product_category"), sales_rep
            )
            warnings = [] if validation.is_valid else [validation.reason]

            group = await self.boards.get_or_create_workflow_group(task["board_id"], state)
            await self.store.update("tasks", task_id, {
                **workflow_patch(state, group["id"]),
                "assigned_sales_rep": sales_rep.id,
                "custom_fields": {
                    **_cleared_assignment_flags(task.get("custom_fields")),
                    "manually_assigned": True,
                    "assigned_by": assigned_by,
                    "assigned_at": datetime.now().isoformat(),
                    "validation_warnings": warnings,
                },
            })

            await self.activity.record_quietly(task_id, ActivityAction.MANUAL_SALES_REP_ASSIGNMENT, {
                "sales_rep_id": sales_rep.id,
                "sales_rep_name": sales_rep.name,
                "assigned_by": assigned_by,
                "previous_status": task.get("status"),
                "validation_warnings": warnings,
                "group_moved_to": state.group_title,
            })
            return True

        except Exception as e:
            logger.error(f"Error in manual sales rep assignment for task {task_id}: {e}")
            return False

    async def get_tasks_needing_assignment(self) -> List[Dict[str, Any]]:
        """Tasks parked in Immediate Action or flagged for manual assignment, newest first."""
        try:
            parked = await self.store.find("tasks", {"status": WorkflowState.IMMEDIATE_ACTION.status})
            flagged = await self.store.find("tasks", {"custom_fields->>needs_manual_assignment": "true"})
        except Exception as e:
            logger.error(f"Error getting tasks needing assignment: {e}")
            return []

        by_id = {task["id"]: task for task in parked + flagged}
        return sorted(by_id.values(), key=lambda t: t.get("created_at") or "", reverse=True)
