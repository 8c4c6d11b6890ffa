# --------------------------- src/agents/inquiry/graph.py ----------------------------
"""
Inquiry Router · Inquiry Pipeline Agent

OVERVIEW:
LangGraph workflow that turns one inbound email into an inquiry task on the
sales board, links or creates the sender's contact records and routes the
task to a sales rep.

WORKFLOW:
1. Extract sender name and company from the message
2. Resolve the sender against Contacts, then Leads
3. Create the inquiry task in "New Inquiry"           (critical path)
4a. New sender: acknowledgment email, lead, link lead to inquiry
4b. Known sender: record the link to the existing contact
5. Classify and assign (Assigned / Immediate Action)

BUSINESS LOGIC:
- Steps 1-3 are the critical path. If the task cannot be created the whole
  run fails and the exception reaches the caller.
- Steps 4 and 5 are enrichment. Their failures are written to the activity
  log (NEW_CONTACT_PIPELINE_ERROR, INQUIRY_ASSIGNMENT_ERROR) and the run
  continues. The inquiry task always stays queryable in a valid state.
- New senders get priority High because they still need qualification.

TECHNICAL ARCHITECTURE:
- StateGraph over InquiryState, one sequential ainvoke per email
- Collaborators are injected, so every run in a process shares one store

DEPENDENCIES:
- langgraph for the workflow graph
- jinja2 for the task description
"""

import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

from jinja2 import Template
from langgraph.graph import StateGraph
from typing_extensions import TypedDict

from config import settings
from src.services.activity import ActivityAction, ActivityLogger
from src.services.boards import BoardDirectory
from src.services.contacts import ContactMatch, ContactResolver
from src.services.email.acknowledgment import AcknowledgmentMailer
from src.services.email.identity import extract_company_name, extract_sender_name, generate_inquiry_id
from src.services.email.message import InboundEmail
from src.services.errors import DuplicateRecordError
from src.services.leads import LeadService
from src.services.routing import InquiryRouter
from src.services.store import Store
from src.services.workflow import WorkflowState

# ╔══════════ 1. Configuration ═════════════════════════════════════════════

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

INQUIRY_ID_ATTEMPTS = 5

TASK_DESCRIPTION_TEMPLATE = Template("""**Email Inquiry**

- From: {{ sender_name }} <{{ email.sender_email }}>
- Company: {{ company_name }}
- Subject: {{ email.subject or '(no subject)' }}
- Received: {{ email.date }}
- Inquiry ID: {{ inquiry_id }}
- Contact status: {% if match %}existing {{ match.board_type }} record ({{ match.name }}){% else %}new contact, registration requested{% endif %}

**Message:**
{{ email.body }}""")


class InquiryState(TypedDict, total=False):
    """
    State carried through one pipeline run.

    email:         the inbound message (input)
    sender_name / company_name / contact_match: identity and resolution
    task:          the inquiry task row created on the sales board
    lead_task_id:  set when a lead was created for a new sender
    assignment:    AssignmentOutcome.to_dict() when routing succeeded
    error_log:     enrichment steps that failed
    """
    email: InboundEmail
    sender_name: str
    company_name: str
    contact_match: Optional[ContactMatch]
    inquiry_id: str
    task: Dict[str, Any]
    task_id: str
    contact_status: str
    lead_task_id: Optional[str]
    assignment: Optional[Dict[str, Any]]
    error_log: List[Dict[str, Any]]
    processing_metadata: Dict[str, Any]


class InquiryPipeline:
    def __init__(self, store: Store, boards: BoardDirectory, resolver: ContactResolver, leads: LeadService,
                 router: InquiryRouter, mailer: AcknowledgmentMailer, activity: ActivityLogger):
        self.store = store
        self.boards = boards
        self.resolver = resolver
        self.leads = leads
        self.router = router
        self.mailer = mailer
        self.activity = activity
        self.graph = self.build_graph()

    # ╔══════════ 2. Identity & Contact Resolution ═════════════════════════

    async def extract_identity(self, state: InquiryState) -> Dict[str, Any]:
        email = state["email"]
        sender_name = (email.sender_name or "").strip().strip("'\"").strip() \
            or extract_sender_name(email.from_header or email.sender_email)
        company_name = extract_company_name(email.sender_email, email.body)
        logger.info(f"Processing inquiry from {sender_name} ({email.sender_email}) at {company_name}")
        return {"sender_name": sender_name, "company_name": company_name}

    async def resolve_contact(self, state: InquiryState) -> Dict[str, Any]:
        match = await self.resolver.find_existing_contact(state["email"].sender_email)
        return {
            "contact_match": match,
            "contact_status": "existing" if match else "new",
        }

    # ╔══════════ 3. Inquiry Task (critical path) ══════════════════════════

    def _inquiry_record(self, state: InquiryState, inquiry_id: str, board_id: str, group_id: str) -> Dict[str, Any]:
        email = state["email"]
        match = state.get("contact_match")
        return {
            "title": email.subject or f"Inquiry from {state['sender_name']}",
            "description": TASK_DESCRIPTION_TEMPLATE.render(
                email=email,
                sender_name=state["sender_name"],
                company_name=state["company_name"],
                inquiry_id=inquiry_id,
                match=match,
            ),
            "status": WorkflowState.NEW.status,
            "priority": "Medium" if match else "High",
            "board_id": board_id,
            "group_id": group_id,
            "sender_email": email.sender_email,
            "sender_name": state["sender_name"],
            "sender_company": state["company_name"],
            "gmail_message_id": email.message_id or None,
            "email_received_at": datetime.now().isoformat(),
            "inquiry_id": inquiry_id,
            "custom_fields": {
                "contact_linked": match is not None,
                "contact_id": match.record_id if match else None,
                "contact_board_type": match.board_type if match else None,
                "needs_registration": match is None,
                "inquiry_id": inquiry_id,
            },
            "position": 0,
        }

    async def create_inquiry_task(self, state: InquiryState) -> Dict[str, Any]:
        email = state["email"]
        match = state.get("contact_match")
        company_name = state["company_name"]

        board = await self.boards.get_or_create_board("sales")
        group = await self.boards.get_or_create_workflow_group(board["id"], WorkflowState.NEW)

        # Same company within the same millisecond: take the next one
        timestamp_ms = int(time.time() * 1000)
        for attempt in range(INQUIRY_ID_ATTEMPTS):
            inquiry_id = generate_inquiry_id(company_name, timestamp_ms + attempt)
            try:
                task = await self.store.insert(
                    "tasks", self._inquiry_record(state, inquiry_id, board["id"], group["id"])
                )
                break
            except DuplicateRecordError:
                if attempt == INQUIRY_ID_ATTEMPTS - 1:
                    raise
                logger.warning(f"Inquiry id {inquiry_id} already taken, retrying")
        logger.info(f"Inquiry task created: {task['id']} ({inquiry_id})")

        action = ActivityAction.EMAIL_RECEIVED_LINKED if match else ActivityAction.EMAIL_RECEIVED_NEW
        await self.activity.record_quietly(task["id"], action, {
            "from": email.sender_email,
            "subject": email.subject,
            "inquiry_id": inquiry_id,
            "company": company_name,
            "contact_id": match.record_id if match else None,
            "contact_board_type": match.board_type if match else None,
        })
        return {"task": task, "task_id": task["id"], "inquiry_id": inquiry_id}

    def route_after_task_created(self, state: InquiryState) -> str:
        return "link_existing_contact" if state.get("contact_match") else "new_contact_pipeline"

    # ╔══════════ 4. Contact Branches ═══════════════════════════════════════

    async def new_contact_pipeline(self, state: InquiryState) -> Dict[str, Any]:
        """Acknowledge, create the lead and link it. Failures are logged, never raised."""
        email = state["email"]
        task_id = state["task_id"]
        step = "acknowledgment_email"
        try:
            email_sent = await self.mailer.send_acknowledgment_email(
                email.sender_email, state["sender_name"], state["company_name"],
                inquiry_id=state["inquiry_id"], task_id=task_id,
            )

            step = "lead_creation"
            lead = await self.leads.create_automatic_lead(
                email, state["sender_name"], state["company_name"], task_id
            )

            step = "inquiry_lead_link"
            await self.store.update("tasks", task_id, {
                "custom_fields": {
                    **(state["task"].get("custom_fields") or {}),
                    "lead_created": True,
                    "lead_task_id": lead["id"],
                    "lead_board_id": lead.get("board_id"),
                    "needs_registration": True,
                    "registration_email_sent": email_sent,
                },
            })

            step = "completion_record"
            await self.activity.record(task_id, ActivityAction.NEW_CONTACT_PIPELINE_COMPLETED, {
                "lead_task_id": lead["id"],
                "lead_board_id": lead.get("board_id"),
                "acknowledgment_sent": email_sent,
                "contact_name": state["sender_name"],
                "company": state["company_name"],
            })
            return {"lead_task_id": lead["id"]}

        except Exception as e:
            logger.error(f"New contact pipeline failed for task {task_id} at {step}: {e}")
            await self.activity.record_quietly(task_id, ActivityAction.NEW_CONTACT_PIPELINE_ERROR, {
                "error": str(e),
                "pipeline_step": step,
                "from": email.sender_email,
            })
            return {"error_log": state.get("error_log", []) + [{"step": step, "error": str(e)}]}

    async def link_existing_contact(self, state: InquiryState) -> Dict[str, Any]:
        match = state["contact_match"]
        await self.activity.record_quietly(state["task_id"], ActivityAction.EXISTING_CONTACT_LINKED, {
            "contact_id": match.record_id,
            "contact_board_type": match.board_type,
            "contact_name": match.name,
            "company": match.company,
        })
        logger.info(f"Inquiry {state['task_id']} linked to existing {match.board_type} record {match.record_id}")
        return {}

    # ╔══════════ 5. Assignment ═════════════════════════════════════════════

    async def assign_inquiry(self, state: InquiryState) -> Dict[str, Any]:
        task_id = state["task_id"]
        try:
            outcome = await self.router.process_inquiry_assignment(
                task_id, state["email"].subject, state["company_name"]
            )
            return {"assignment": outcome.to_dict()}
        except Exception as e:
            logger.error(f"Inquiry assignment failed for task {task_id}: {e}")
            await self.activity.record_quietly(task_id, ActivityAction.INQUIRY_ASSIGNMENT_ERROR, {
                "error": str(e),
                "subject": state["email"].subject,
                "company": state["company_name"],
            })
            return {
                "assignment": None,
                "error_log": state.get("error_log", []) + [{"step": "assignment", "error": str(e)}],
            }

    # ╔══════════ 6. Build Graph ════════════════════════════════════════════

    def build_graph(self):
        graph = StateGraph(InquiryState)

        graph.add_node("extract_identity", self.extract_identity)
        graph.add_node("resolve_contact", self.resolve_contact)
        graph.add_node("create_inquiry_task", self.create_inquiry_task)
        graph.add_node("new_contact_pipeline", self.new_contact_pipeline)
        graph.add_node("link_existing_contact", self.link_existing_contact)
        graph.add_node("assign_inquiry", self.assign_inquiry)

        graph.add_edge("extract_identity", "resolve_contact")
        graph.add_edge("resolve_contact", "create_inquiry_task")
        graph.add_conditional_edges(
            "create_inquiry_task", self.route_after_task_created,
            ["new_contact_pipeline", "link_existing_contact"],
        )
        graph.add_edge("new_contact_pipeline", "assign_inquiry")
        graph.add_edge("link_existing_contact", "assign_inquiry")

        graph.set_entry_point("extract_identity")
        graph.set_finish_point("assign_inquiry")
        return graph.compile()

    async def process(self, email: InboundEmail) -> InquiryState:
        """Run one email through the pipeline. Critical-path failures propagate."""
        initial_state: InquiryState = {
            "email": email,
            "lead_task_id": None,
            "assignment": None,
            "error_log": [],
            "processing_metadata": {"started_at": datetime.now().isoformat()},
        }
        return await self.graph.ainvoke(initial_state)
