# --------------------------- src/services/email/intake.py ----------------------------
"""
Inquiry Router · Email Intake Service

OVERVIEW:
Entry point for inbound mail. Accepts a parsed message from the
mail-fetching collaborator (webhook payload dict, InboundEmail, or an .eml
file), skips messages that were already processed and runs the inquiry
pipeline.

WORKFLOW:
1. Normalize the input into an InboundEmail
2. Skip it if a task already carries the same gmail_message_id
3. Run the LangGraph inquiry pipeline
4. Summarize the run for the caller

BUSINESS LOGIC:
- Mailbox monitors redeliver messages; the message id check keeps one
  inquiry per email.
- Critical-path failures (task creation) propagate to the caller. Enrichment
  failures are already in the activity log and show up as a successful run.

DEPENDENCIES:
- Supabase store (service role key)
- Resend for acknowledgment emails when RESEND_API_KEY is set
"""

import logging
from pathlib import Path
from typing import Any, Dict, Union

from config import settings
from src.agents.inquiry.graph import InquiryPipeline, InquiryState
from src.services.activity import ActivityLogger
from src.services.assignment import RepAssignmentEngine
from src.services.boards import BoardDirectory
from src.services.classification import CategoryClassifier
from src.services.contacts import ContactResolver
from src.services.email.acknowledgment import AcknowledgmentMailer, create_transport
from src.services.email.message import InboundEmail
from src.services.leads import LeadService
from src.services.routing import InquiryRouter
from src.services.store import Store, create_supabase_store
from src.utils.email_parser import EnhancedEmailParser, extract_email_address

logger = logging.getLogger(__name__)


class EmailIntakeService:
    """
    Runs inbound messages through the inquiry pipeline.

    KEY METHODS:
    - process_email(): webhook payloads and already-parsed messages
    - process_file_email(): .eml files (CLI, batch import)
    """

    def __init__(self, pipeline: InquiryPipeline, store: Store, parser: EnhancedEmailParser = None):
        self.pipeline = pipeline
        self.store = store
        self.parser = parser or EnhancedEmailParser()

    @staticmethod
    def normalize_email(email_data: Union[InboundEmail, Dict[str, Any]]) -> InboundEmail:
        if isinstance(email_data, InboundEmail):
            return email_data

        email = InboundEmail.from_dict(email_data)
        if not email.sender_email:
            email.sender_email = extract_email_address(email.from_header)
        if not email.sender_email:
            raise ValueError("Inbound email has no sender address")
        return email

    async def is_already_processed(self, message_id: str) -> bool:
        if not message_id:
            return False
        existing = await self.store.find_one("tasks", {"gmail_message_id": message_id}, columns="id")
        return existing is not None

    async def process_email(self, email_data: Union[InboundEmail, Dict[str, Any]]) -> Dict[str, Any]:
        """
        Process one inbound message.

        RETURNS:
            Dict with success, action, task_id, inquiry_id, contact_status,
            lead_task_id and assignment. action is 'INQUIRY_CREATED' or
            'SKIPPED_DUPLICATE'.

        RAISES:
            ValueError: message has no usable sender address
            StoreError and transport errors from the critical path
        """
        email = self.normalize_email(email_data)
        logger.info(f"Processing email {email.message_id or '(no id)'} from {email.sender_email}")

        if await self.is_already_processed(email.message_id):
            logger.info(f"Email {email.message_id} already processed, skipping")
            return {
                "success": True,
                "action": "SKIPPED_DUPLICATE",
                "message_id": email.message_id,
            }

        state = await self.pipeline.process(email)
        return self._summarize(state)

    async def process_file_email(self, file_path: Union[str, Path]) -> Dict[str, Any]:
        email = self.parser.parse_email_file(file_path)
        return await self.process_email(email)

    @staticmethod
    def _summarize(state: InquiryState) -> Dict[str, Any]:
        return {
            "success": True,
            "action": "INQUIRY_CREATED",
            "task_id": state.get("task_id"),
            "inquiry_id": state.get("inquiry_id"),
            "contact_status": state.get("contact_status"),
            "lead_task_id": state.get("lead_task_id"),
            "assignment": state.get("assignment"),
            "errors": state.get("error_log", []),
        }


# ===============================================================================
# CONVENIENCE FUNCTIONS
# ===============================================================================

def build_pipeline(store: Store, transport=None) -> InquiryPipeline:
    """Wire every pipeline collaborator around one store."""
    activity = ActivityLogger(store)
    boards = BoardDirectory(store)
    engine = RepAssignmentEngine(store)
    router = InquiryRouter(store, boards, CategoryClassifier.from_settings(), engine, activity)
    mailer = AcknowledgmentMailer(
        transport or create_transport(settings.RESEND_API_KEY, settings.ACK_FROM_EMAIL), activity
    )
    return InquiryPipeline(
        store=store,
        boards=boards,
        resolver=ContactResolver(store, boards),
        leads=LeadService(store, boards, activity),
        router=router,
        mailer=mailer,
        activity=activity,
    )


async def create_email_intake_service() -> EmailIntakeService:
    """Factory for a service connected to the configured Supabase project."""
    store = await create_supabase_store(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
    return EmailIntakeService(build_pipeline(store), store)
