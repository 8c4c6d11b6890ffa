# --------------------------- src/services/boards.py ----------------------------
"""
Inquiry Router · Board Directory

OVERVIEW:
Resolves boards by the role they play in the pipeline ("sales", "leads",
"contacts") and provides get-or-create for boards and groups.

BUSINESS LOGIC:
- Board titles drifted over time ("Sales Tracker Board", "Sales Tracker", ...),
  so each role has an ordered list of candidate titles; the first one that
  resolves wins, and the first one is used when the board has to be created.
- Groups are created on demand per board ("New Inquiry", "Assigned", ...).

CONCURRENCY:
Get-or-create is not transactional. Two pipeline runs for the same board can
both miss the lookup and both insert. With the unique constraints from the
migration the second insert fails with DuplicateRecordError and we re-fetch
the winner's row. Without those constraints the race remains.
"""

import logging
from typing import Any, Dict, Optional

from config import settings
from src.services.errors import DuplicateRecordError, StoreError
from src.services.store import Store
from src.services.workflow import WorkflowState

logger = logging.getLogger(__name__)


class BoardDirectory:
    """Role-based board lookup plus get-or-create helpers for boards and groups."""

    def __init__(self, store: Store, board_roles: Optional[Dict[str, Dict[str, Any]]] = None,
                 owner_id: str = settings.DEFAULT_BOARD_OWNER_ID):
        self.store = store
        self.board_roles = board_roles or settings.BOARD_ROLES
        self.owner_id = owner_id

    def candidate_titles(self, role: str) -> list:
        try:
            return self.board_roles[role]["titles"]
        except KeyError:
            raise ValueError(f"Unknown board role: {role}")

    async def resolve_board_by_role(self, role: str) -> Optional[str]:
        """Return the id of the first candidate board that exists, or None."""
        for title in self.candidate_titles(role):
            board = await self.store.find_one("boards", {"title": title}, columns="id")
            if board:
                return board["id"]
        return None

    async def get_or_create_board(self, role: str) -> Dict[str, Any]:
        board_id = await self.resolve_board_by_role(role)
        if board_id:
            return {"id": board_id}

        config = self.board_roles[role]
        title = config["titles"][0]
        logger.info(f"{title} board not found, creating it...")
        try:
            board = await self.store.insert("boards", {
                "title": title,
                "description": config.get("description", ""),
                "background_color": config.get("background_color", "#10B981"),
                "owner_id": self.owner_id,
            })
        except DuplicateRecordError:
            board = await self.store.find_one("boards", {"title": title})
            if not board:
                raise
        logger.info(f"Using {title} board: {board['id']}")
        return board

    async def get_or_create_group(self, board_id: str, title: str,
                                  color: str = "#10B981", position: int = 0) -> Dict[str, Any]:
        group = await self.store.find_one("groups", {"board_id": board_id, "title": title})
        if group:
            return group

        logger.info(f"{title} group not found on board {board_id}, creating it...")
        try:
            return await self.store.insert("groups", {
                "title": title,
                "color": color,
                "board_id": board_id,
                "position": position,
            })
        except DuplicateRecordError:
            # Created concurrently by another pipeline run
            group = await self.store.find_one("groups", {"board_id": board_id, "title": title})
            if not group:
                raise StoreError(f"Group '{title}' reported as duplicate but could not be re-fetched")
            return group

    async def get_or_create_workflow_group(self, board_id: str, state: WorkflowState) -> Dict[str, Any]:
        return await self.get_or_create_group(
            board_id, state.group_title, state.group_color, state.group_position
        )
