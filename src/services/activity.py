# --------------------------- src/services/activity.py ----------------------------
"""
Inquiry Router · Activity Logger

OVERVIEW:
Append-only audit trail keyed by task. Every decision the pipeline makes
(contact linked, lead created, task assigned, step failed, ...) becomes one
row in the `activity_log` collection. Rows are never updated or deleted.

BUSINESS LOGIC:
The pipeline has no UI of its own. Operators audit what happened to an inquiry
by reading its activity history, so failures in enrichment steps are written
here instead of being raised.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from src.services.store import Store

logger = logging.getLogger(__name__)

ACTIVITY_TABLE = "activity_log"


class ActivityAction(Enum):
    """Closed vocabulary of activity record tags."""
    EMAIL_RECEIVED_NEW = "EMAIL_RECEIVED_NEW"
    EMAIL_RECEIVED_LINKED = "EMAIL_RECEIVED_LINKED"
    EMAIL_SENT = "EMAIL_SENT"
    NEW_CONTACT_PIPELINE_COMPLETED = "NEW_CONTACT_PIPELINE_COMPLETED"
    NEW_CONTACT_PIPELINE_ERROR = "NEW_CONTACT_PIPELINE_ERROR"
    EXISTING_CONTACT_LINKED = "EXISTING_CONTACT_LINKED"
    LEAD_CREATED_FROM_EMAIL = "LEAD_CREATED_FROM_EMAIL"
    LEAD_CREATED_MANUALLY = "LEAD_CREATED_MANUALLY"
    LEAD_QUALIFIED = "LEAD_QUALIFIED"
    LEAD_MOVED_TO_CONTACTS_MANUALLY = "LEAD_MOVED_TO_CONTACTS_MANUALLY"
    CONTACT_CREATED_FROM_LEAD = "CONTACT_CREATED_FROM_LEAD"
    CONTACT_REGISTERED = "CONTACT_REGISTERED"
    TASK_ASSIGNED = "TASK_ASSIGNED"
    TASK_NEEDS_ASSIGNMENT = "TASK_NEEDS_ASSIGNMENT"
    INQUIRY_ASSIGNMENT_ERROR = "INQUIRY_ASSIGNMENT_ERROR"
    MANUAL_SALES_REP_ASSIGNMENT = "MANUAL_SALES_REP_ASSIGNMENT"


class ActivityLogger:
    """Writes immutable activity records through the store."""

    def __init__(self, store: Store):
        self.store = store

    @staticmethod
    def _entry(task_id: Optional[str], action: ActivityAction, details: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "task_id": task_id,
            "action": action.value,
            "details": details or {},
            "created_at": datetime.now().isoformat(),
        }

    async def record(self, task_id: Optional[str], action: ActivityAction,
                     details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Append one record; store failures propagate."""
        row = await self.store.insert(ACTIVITY_TABLE, self._entry(task_id, action, details))
        logger.info(f"Activity {action.value} recorded for task {task_id}")
        return row

    async def record_quietly(self, task_id: Optional[str], action: ActivityAction,
                             details: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        """Append one record; a failed write is logged and does not interrupt the caller."""
        try:
            return await self.record(task_id, action, details)
        except Exception as e:
            logger.error(f"Error logging activity {action.value} for task {task_id}: {e}")
            return None

    async def record_many(self, entries: List[Tuple[Optional[str], ActivityAction, Dict[str, Any]]]) -> List[Dict[str, Any]]:
        rows = [self._entry(task_id, action, details) for task_id, action, details in entries]
        return await self.store.insert_many(ACTIVITY_TABLE, rows)

    async def history(self, task_id: str) -> List[Dict[str, Any]]:
        return await self.store.find(ACTIVITY_TABLE, {"task_id": task_id}, order_by="created_at")
