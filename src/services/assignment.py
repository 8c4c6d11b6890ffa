# --------------------------- src/services/assignment.py ----------------------------
"""
Inquiry Router · Sales Rep Assignment Engine

OVERVIEW:
Selects a sales representative for a classified inquiry and decides whether
the assignment may go through.

WORKFLOW:
1. Find a representative for the product category
2. Validate: specific category, rep present, rep has expertise, rep not overloaded
3. Return a structured pass/fail result that drives routing (never an exception)

BUSINESS LOGIC:
- Rep selection is role-only: the first user with the sales role. The
  category -> expertise tag map is kept as an extension point and is not
  consulted when choosing a rep.
- Expertise and availability checks FAIL OPEN: if the data needed to check
  them cannot be read, the rep is treated as eligible.
- A rep is overloaded at MAX_ACTIVE_TASKS_PER_REP active tasks
  (status New, Assigned or In Progress).
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from config import settings
from src.services.store import Store

logger = logging.getLogger(__name__)

REASON_GENERIC_CATEGORY = "Product category not specified or too generic"
REASON_NO_REP = "No sales rep assigned for this product category"
REASON_NO_EXPERTISE = "Assigned sales rep lacks expertise in this product category"
REASON_OVERLOADED = "Assigned sales rep is currently overloaded"
REASON_VALIDATION_ERROR = "Validation error occurred"
REASON_OK = "All requirements met"


@dataclass
class Representative:
    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Representative":
        return cls(
            id=row["id"],
            name=row.get("fullname") or row.get("name"),
            email=row.get("email"),
            role=row.get("role"),
        )


@dataclass
class AssignmentValidation:
    is_valid: bool
    reason: str


class RepAssignmentEngine:
    def __init__(self, store: Store, sales_role: str = settings.SALES_ROLE,
                 max_active_tasks: int = settings.MAX_ACTIVE_TASKS_PER_REP,
                 active_statuses: Optional[List[str]] = None,
                 expertise_tags: Optional[Dict[str, List[str]]] = None,
                 default_category: str = settings.DEFAULT_PRODUCT_CATEGORY):
        self.store = store
        self.sales_role = sales_role
        self.max_active_tasks = max_active_tasks
        self.active_statuses = active_statuses or list(settings.ACTIVE_TASK_STATUSES)
        self.expertise_tags = expertise_tags if expertise_tags is not None else \
            settings.PRODUCT_CATEGORIES.get("expertise_tags", {})
        self.default_category = default_category

    def expertise_tags_for(self, product_category: str) -> List[str]:
        """Expertise tags associated with a category (not yet used for selection)."""
        return self.expertise_tags.get(product_category, ["general_sales_rep"])

    async def find_sales_rep_by_product_category(self, product_category: str) -> Optional[Representative]:
        logger.info(f"Finding sales rep for product category: {product_category}")
        try:
            reps = await self.store.find(
                "users", {"role": self.sales_role}, columns="id, fullname, email, role", limit=1
            )
        except Exception as e:
            logger.warning(f"Error querying sales reps, no rep selected: {e}")
            return None

        if not reps:
            logger.info("No sales reps available")
            return None

        rep = Representative.from_row(reps[0])
        logger.info(f"Found sales rep {rep.id} ({rep.name}) for {product_category}")
        return rep

    async def validate_sales_rep_expertise(self, sales_rep_id: str, product_category: str) -> bool:
        try:
            rep = await self.store.find_one("users", {"id": sales_rep_id}, columns="fullname, role")
        except Exception as e:
            logger.warning(f"Could not fetch sales rep {sales_rep_id}, assuming valid: {e}")
            return True

        if not rep:
            logger.warning(f"Sales rep {sales_rep_id} not found, assuming valid")
            return True

        logger.info(f"Sales rep validation for {product_category}: {rep.get('fullname')} ({rep.get('role')})")
        return True

    async def count_active_tasks(self, sales_rep_id: str) -> int:
        tasks = await self.store.find(
            "tasks",
            {"assigned_sales_rep": sales_rep_id, "status": self.active_statuses},
            columns="id",
            limit=100,
        )
        return len(tasks)

    async def check_sales_rep_availability(self, sales_rep_id: str) -> bool:
        try:
            active = await self.count_active_tasks(sales_rep_id)
        except Exception as e:
            logger.warning(f"Could not check availability of {sales_rep_id}, assuming available: {e}")
            return True

        available = active < self.max_active_tasks
        logger.info(f"Sales rep availability: {active}/{self.max_active_tasks} tasks, available: {available}")
        return available

    async def validate_assignment_requirements(self, task_id: str, product_category: Optional[str],
                                               sales_rep: Optional[Representative]) -> AssignmentValidation:
        """
        Check an assignment before the task may enter the Assigned state.

        VALIDATION ORDER (first failure wins):
        1. category present and not the generic default
        2. a rep was found
        3. rep has expertise (fails open)
        4. rep is below the active task ceiling (fails open)
        """
        logger.info(f"Validating assignment requirements for task {task_id}")
        try:
            if not product_category or product_category == self.default_category:
                return AssignmentValidation(False, REASON_GENERIC_CATEGORY)

            if sales_rep is None:
                return AssignmentValidation(False, REASON_NO_REP)

            if not await self.validate_sales_rep_expertise(sales_rep.id, product_category):
                return AssignmentValidation(False, REASON_NO_EXPERTISE)

            if not await self.check_sales_rep_availability(sales_rep.id):
                return AssignmentValidation(False, REASON_OVERLOADED)

            return AssignmentValidation(True, REASON_OK)

        except Exception as e:
            logger.error(f"Error validating assignment requirements for task {task_id}: {e}")
            return AssignmentValidation(False, REASON_VALIDATION_ERROR)
