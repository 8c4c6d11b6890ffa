# --------------------------- src/services/leads.py ----------------------------
"""
Inquiry Router · Lead Lifecycle Service

OVERVIEW:
Creates and promotes the records that sit beside an inquiry: Leads
(unqualified prospects) and Contacts (qualified business relationships).
Both live as tasks on their own boards.

WORKFLOW:
1. New sender emails in          -> automatic lead in Leads / New Leads
2. Sales rep adds a prospect     -> manual lead in Leads / Manual Leads
3. Lead is qualified             -> new contact in Contacts Board / Active Contacts,
                                    original lead kept and marked Qualified
4. Prospect fills the registration form -> contact created, inquiry linked

BUSINESS LOGIC:
- Qualification never deletes the lead; the contact keeps a one-way
  reference (original_lead_id) back to it.
- Every record created here leaves an activity trail.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from jinja2 import Template

from config import settings
from src.services.activity import ActivityAction, ActivityLogger
from src.services.boards import BoardDirectory
from src.services.email.message import InboundEmail
from src.services.errors import RecordNotFoundError
from src.services.store import Store

logger = logging.getLogger(__name__)

NEW_LEADS_GROUP = ("New Leads", "#EF4444", 0)
MANUAL_LEADS_GROUP = ("Manual Leads", "#8B5CF6", 1)
ACTIVE_CONTACTS_GROUP = ("Active Contacts", "#3B82F6", 0)

EMAIL_LEAD_TEMPLATE = Template("""Lead generated from email inquiry: {{ subject }}

**Contact Information:**
- Name: {{ sender_name or 'Unknown' }}
- Email: {{ sender_email }}
- Company: {{ company_name }}
- Source: Email Inquiry
- Inquiry Task ID: {{ inquiry_task_id }}

**Email Content:**
{{ excerpt }}...""")

MANUAL_LEAD_TEMPLATE = Template("""Manually created lead by: {{ request.created_by }}

**Contact Information:**
- Name: {{ request.name }}
- Email: {{ request.email }}
- Company: {{ request.company }}
- Phone: {{ request.phone or 'Not provided' }}
- Position: {{ request.position or 'Not specified' }}
- Notes: {{ request.notes or 'No additional notes' }}

**Lead Details:**
- Created: {{ created }}
- Created by: {{ request.created_by }}
- Source: Manual creation
- Status: New Lead""")

QUALIFIED_CONTACT_TEMPLATE = Template("""{{ lead_description }}

**Qualification Details:**
- Qualified by: {{ q.qualified_by or 'Sales Rep' }}
- Qualification date: {{ qualification_date }}
- Qualification notes: {{ q.notes or 'Lead qualified and moved to contacts' }}
- Budget: {{ q.budget or 'Not specified' }}
- Timeline: {{ q.timeline or 'Not specified' }}
- Decision maker: {{ q.decision_maker or 'Not identified' }}

**Original Lead Info:**
- Lead ID: {{ lead_id }}
- Created from: Email inquiry
- Original inquiry: {{ inquiry_task_id or 'Unknown' }}""")


@dataclass
class QualificationData:
    qualified_by: str = "Sales Rep"
    notes: Optional[str] = None
    budget: Optional[str] = None
    timeline: Optional[str] = None
    decision_maker: Optional[str] = None
    sales_potential: str = "Medium"
    next_steps: Optional[str] = None


@dataclass
class ManualLeadRequest:
    name: str
    email: str
    company: str
    created_by: str
    phone: Optional[str] = None
    position: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class VendorRegistration:
    """Answers from the registration form a new sender sends back."""
    contact_name: str
    email: str
    company_name: str
    phone: str = ""
    position: str = ""
    company_website: str = ""
    company_address: str = ""
    company_size: str = ""
    industry: str = ""
    business_type: str = "customer"  # customer | vendor | partner
    services: str = ""
    notes: str = ""
    priority: str = "Medium"
    extra: Dict[str, Any] = field(default_factory=dict)

    def contact_group(self) -> str:
        if self.business_type != "customer":
            return "New Prospects"
        if self.company_size == "1000+":
            return "Enterprise Clients"
        if self.company_size in ("201-1000", "51-200"):
            return "SMB Contacts"
        return "New Prospects"


class LeadService:
    def __init__(self, store: Store, boards: BoardDirectory, activity: ActivityLogger):
        self.store = store
        self.boards = boards
        self.activity = activity

    async def _board_and_group(self, role: str, group: tuple):
        board = await self.boards.get_or_create_board(role)
        title, color, position = group
        target_group = await self.boards.get_or_create_group(board["id"], title, color, position)
        return board, target_group

    # ─── Lead creation ────────────────────────────────────────────────────

    async def create_automatic_lead(self, email: InboundEmail, sender_name: str, company_name: str,
                                    inquiry_task_id: str) -> Dict[str, Any]:
        """Create a lead for a sender that is not yet a contact or lead."""
        logger.info(f"Creating automatic lead for new contact: {email.sender_email}")
        board, group = await self._board_and_group("leads", NEW_LEADS_GROUP)

        lead = await self.store.insert("tasks", {
            "title": sender_name or email.sender_email.split("@")[0],
            "description": EMAIL_LEAD_TEMPLATE.render(
                subject=email.subject,
                sender_name=sender_name,
                sender_email=email.sender_email,
                company_name=company_name,
                inquiry_task_id=inquiry_task_id,
                excerpt=email.body[:settings.LEAD_BODY_EXCERPT_CHARS],
            ),
            "status": "New Lead",
            "priority": "High",
            "board_id": board["id"],
            "group_id": group["id"],
            "sender_email": email.sender_email,
            "sender_name": sender_name,
            "sender_company": company_name,
            "email_received_at": datetime.now().isoformat(),
            "custom_fields": {
                "lead_source": "email_inquiry",
                "inquiry_task_id": inquiry_task_id,
                "needs_qualification": True,
                "qualification_status": "pending",
                "sales_rep_assigned": False,
            },
            "position": 0,
        })

        await self.activity.record_quietly(lead["id"], ActivityAction.LEAD_CREATED_FROM_EMAIL, {
            "from": email.sender_email,
            "inquiry_task_id": inquiry_task_id,
            "company": company_name,
            "source": "email_inquiry",
        })
        logger.info(f"Automatic lead created successfully: {lead['id']}")
        return lead

    async def manually_create_lead(self, request: ManualLeadRequest) -> Dict[str, Any]:
        logger.info(f"Manually creating lead: {request.email}")
        board, group = await self._board_and_group("leads", MANUAL_LEADS_GROUP)

        lead = await self.store.insert("tasks", {
            "title": request.name,
            "description": MANUAL_LEAD_TEMPLATE.render(
                request=request, created=datetime.now().strftime("%Y-%m-%d %H:%M")
            ),
            "status": "New Lead",
            "priority": "Medium",
            "board_id": board["id"],
            "group_id": group["id"],
            "sender_email": request.email.strip().lower(),
            "sender_name": request.name,
            "sender_company": request.company,
            "email_received_at": datetime.now().isoformat(),
            "custom_fields": {
                "lead_source": "manual_creation",
                "created_by": request.created_by,
                "phone": request.phone,
                "position": request.position,
                "notes": request.notes,
                "needs_qualification": True,
                "qualification_status": "pending",
                "sales_rep_assigned": False,
            },
            "position": 0,
        })

        await self.activity.record(lead["id"], ActivityAction.LEAD_CREATED_MANUALLY, {
            "created_by": request.created_by,
            "contact_name": request.name,
            "company": request.company,
            "email": request.email,
        })
        return lead

    # ─── Qualification ────────────────────────────────────────────────────

    async def qualify_lead_and_move_to_contacts(self, lead_task_id: str,
                                                qualification: QualificationData) -> Dict[str, Any]:
        """
        Promote a lead to a contact.

        The lead is retained and marked Qualified with a reference to the new
        contact; the contact references the lead. Two activity records are
        written, one against each.

        RAISES:
            RecordNotFoundError: lead does not exist
        """
        logger.info(f"Qualifying lead and moving to contacts: {lead_task_id}")
        lead = await self.store.find_one("tasks", {"id": lead_task_id})
        if not lead:
            raise RecordNotFoundError(f"Lead task not found: {lead_task_id}")

        board, group = await self._board_and_group("contacts", ACTIVE_CONTACTS_GROUP)
        lead_fields = lead.get("custom_fields") or {}
        qualified_at = datetime.now()

        contact = await self.store.insert("tasks", {
            "title": lead.get("sender_name") or (lead.get("sender_email") or "").split("@")[0],
            "description": QUALIFIED_CONTACT_TEMPLATE.render(
                lead_description=lead.get("description") or "",
                q=qualification,
                qualification_date=qualified_at.strftime("%Y-%m-%d"),
                lead_id=lead["id"],
                inquiry_task_id=lead_fields.get("inquiry_task_id"),
            ),
            "status": "Active Contact",
            "priority": "Medium",
            "board_id": board["id"],
            "group_id": group["id"],
            "sender_email": lead.get("sender_email"),
            "sender_name": lead.get("sender_name"),
            "sender_company": lead.get("sender_company"),
            "email_received_at": lead.get("email_received_at"),
            "custom_fields": {
                "contact_type": "qualified_lead",
                "original_lead_id": lead["id"],
                "qualification_date": qualified_at.isoformat(),
                "qualified_by": qualification.qualified_by,
                "budget": qualification.budget,
                "timeline": qualification.timeline,
                "decision_maker": qualification.decision_maker,
                "sales_potential": qualification.sales_potential,
            },
            "position": 0,
        })

        await self.store.update("tasks", lead["id"], {
            "status": "Qualified",
            "custom_fields": {
                **lead_fields,
                "qualified": True,
                "qualified_date": qualified_at.isoformat(),
                "moved_to_contacts": True,
                "contact_task_id": contact["id"],
                "needs_qualification": False,
                "qualification_status": "qualified",
            },
        })

        await self.activity.record_many([
            (lead["id"], ActivityAction.LEAD_QUALIFIED, {
                "qualified_by": qualification.qualified_by,
                "qualification_notes": qualification.notes,
                "contact_task_id": contact["id"],
            }),
            (contact["id"], ActivityAction.CONTACT_CREATED_FROM_LEAD, {
                "original_lead_id": lead["id"],
                "qualified_by": qualification.qualified_by,
                "qualification_date": qualified_at.isoformat(),
            }),
        ])

        logger.info(f"Lead {lead['id']} qualified as contact {contact['id']}")
        return contact

    async def move_lead_to_contacts(self, lead_task_id: str, qualification: QualificationData) -> Dict[str, Any]:
        contact = await self.qualify_lead_and_move_to_contacts(lead_task_id, qualification)
        await self.activity.record(contact["id"], ActivityAction.LEAD_MOVED_TO_CONTACTS_MANUALLY, {
            "moved_by": qualification.qualified_by,
            "original_lead_id": lead_task_id,
            "qualification_notes": qualification.notes,
            "next_steps": qualification.next_steps,
        })
        return contact

    # ─── Registration form ────────────────────────────────────────────────

    async def register_vendor_from_form(self, form: VendorRegistration,
                                        source_task_id: Optional[str] = None) -> Dict[str, Any]:
        """Create a contact from a returned registration form and link the originating inquiry."""
        group_title = form.contact_group()
        board, group = await self._board_and_group("contacts", (group_title, "#10B981", 0))
        is_customer = form.business_type == "customer"

        contact = await self.store.insert("tasks", {
            "title": form.contact_name,
            "description": f"{form.position + ' - ' if form.position else ''}{form.notes}",
            "status": "Active Contacts" if is_customer else "New Contact",
            "priority": form.priority,
            "board_id": board["id"],
            "group_id": group["id"],
            "sender_email": form.email.strip().lower(),
            "sender_name": form.contact_name,
            "sender_company": form.company_name,
            "text_field": "Regular" if is_customer else "Prospect",
            "number_field": 0,
            "custom_fields": {
                "phone": form.phone,
                "position": form.position,
                "company_website": form.company_website,
                "company_address": form.company_address,
                "company_size": form.company_size,
                "industry": form.industry,
                "business_type": form.business_type,
                "services": form.services,
                "registered_from_email": bool(source_task_id),
                "source_task_id": source_task_id,
                **form.extra,
            },
            "position": 0,
        })

        if source_task_id:
            source = await self.store.find_one("tasks", {"id": source_task_id})
            if source:
                await self.store.update("tasks", source_task_id, {
                    "custom_fields": {
                        **(source.get("custom_fields") or {}),
                        "contact_linked": True,
                        "contact_id": contact["id"],
                        "contact_board_type": "contacts",
                        "needs_registration": False,
                    },
                })
            await self.activity.record(source_task_id, ActivityAction.CONTACT_REGISTERED, {
                "new_contact_id": contact["id"],
                "contact_name": form.contact_name,
                "company": form.company_name,
            })

        return contact

    # ─── Queries ──────────────────────────────────────────────────────────

    async def get_leads_needing_qualification(self) -> List[Dict[str, Any]]:
        try:
            return await self.store.find(
                "tasks",
                {
                    "custom_fields->>needs_qualification": "true",
                    "custom_fields->>qualification_status": "pending",
                },
                order_by="created_at",
                descending=True,
            )
        except Exception as e:
            logger.error(f"Error getting leads needing qualification: {e}")
            return []

    async def get_contacts_with_lead_history(self) -> List[Dict[str, Any]]:
        try:
            return await self.store.find(
                "tasks",
                {"custom_fields->>contact_type": "qualified_lead"},
                order_by="created_at",
                descending=True,
            )
        except Exception as e:
            logger.error(f"Error getting contacts with lead history: {e}")
            return []
