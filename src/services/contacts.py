# --------------------------- src/services/contacts.py ----------------------------
"""
Inquiry Router · Contact Resolver

OVERVIEW:
Decides whether the sender of an inbound email is already known, by looking
for a record with the same email address on the contacts board and then on
the leads board.

BUSINESS LOGIC:
- Contacts are the more qualified state, so a contact match always wins over
  a lead match for the same address.
- At most one record is returned per lookup.
- A missing board or missing record is a normal "no match", never an error.
  Only genuine store/transport failures propagate to the caller.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from src.services.boards import BoardDirectory
from src.services.store import Store

logger = logging.getLogger(__name__)

CONTACT_COLUMNS = "id, title, sender_email, sender_name, sender_company, board_id"
SEARCH_ORDER = ("contacts", "leads")


@dataclass
class ContactMatch:
    """A resolved contact or lead, tagged with the collection it came from."""
    record_id: str
    name: str
    email: str
    company: str
    board_type: str  # 'contacts' | 'leads'

    def to_dict(self) -> Dict[str, Any]:
        return {
            "contact_id": self.record_id,
            "contact_board": self.board_type,
            "contact_name": self.name,
            "company": self.company,
        }


class ContactResolver:
    def __init__(self, store: Store, boards: BoardDirectory):
        self.store = store
        self.boards = boards

    async def find_existing_contact(self, email: str) -> Optional[ContactMatch]:
        """
        Look the sender up on the contacts board, then on the leads board.

        RETURNS:
            ContactMatch tagged 'contacts' or 'leads', or None when unknown
        """
        email = (email or "").strip().lower()
        if not email:
            return None

        for board_type in SEARCH_ORDER:
            board_id = await self.boards.resolve_board_by_role(board_type)
            if not board_id:
                logger.info(f"No {board_type} board configured, skipping lookup")
                continue

            record = await self.store.find_one(
                "tasks", {"board_id": board_id, "sender_email": email}, columns=CONTACT_COLUMNS
            )
            if record:
                logger.info(f"Found existing {board_type} record {record['id']} for {email}")
                return ContactMatch(
                    record_id=record["id"],
                    name=record.get("title") or record.get("sender_name") or email,
                    email=email,
                    company=record.get("sender_company") or "Unknown",
                    board_type=board_type,
                )
            logger.info(f"No existing record found in {board_type} board for {email}")

        return None
