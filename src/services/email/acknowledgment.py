# --------------------------- src/services/email/acknowledgment.py ----------------------------
"""
Inquiry Router · Acknowledgment Email & Registration Form

OVERVIEW:
New senders (no contact or lead on file) receive an acknowledgment email with
a registration form attached, so the sales team can qualify them.

WORKFLOW:
1. Generate the registration form document for the sender
2. Render the acknowledgment body (Jinja2)
3. Hand the message to the configured transport (Resend, or log-only)
4. Record EMAIL_SENT in the activity log

BUSINESS LOGIC:
Sending is fire-and-forget: a failed send is logged and reported as False,
never raised, so mail problems cannot break inquiry processing.

DEPENDENCIES:
- resend for delivery when RESEND_API_KEY is configured
- jinja2 for the message body
"""

import asyncio
import base64
import logging
from datetime import datetime
from typing import Optional

import resend
from jinja2 import Template

from src.services.activity import ActivityAction, ActivityLogger
from src.services.email.message import EmailAttachment, OutboundEmail

logger = logging.getLogger(__name__)

ACKNOWLEDGMENT_TEMPLATE = Template("""
Dear {{ contact_name }},

Thank you for reaching out to us. We have received your inquiry{% if inquiry_id %} (ID: {{ inquiry_id }}){% endif %} and our team will review it shortly.

To better serve you, we have attached a brief registration form to gather some additional information about your company and requirements.

**Next Steps:**
1. Please complete the attached registration form
2. Our sales team will review your requirements
3. We will contact you within 24 hours to discuss your needs

**What to Expect:**
- Detailed proposal based on your requirements
- Technical specifications and pricing
- Delivery timeline and terms
- Ongoing support and consultation

If you have any immediate questions, please don't hesitate to reach out.

Best regards,
Sales Team
""".strip())


def generate_registration_form(contact_name: str, company_name: str,
                               inquiry_id: Optional[str] = None) -> EmailAttachment:
    """Client/vendor registration form sent to new senders."""
    form = {
        "inquiry_id": inquiry_id or "PENDING",
        "contact_name": contact_name,
        "company_name": company_name,
        "generated_at": datetime.now().isoformat(),
        "form_type": "client_vendor_registration",
        "sections": {
            "company_information": {
                "company_name": company_name,
                "industry": "",
                "company_size": "",
                "website": "",
                "phone": "",
                "address": "",
            },
            "contact_information": {
                "primary_contact": contact_name,
                "position": "",
                "email": "",
                "phone": "",
                "alternative_contact": "",
            },
            "business_requirements": {
                "product_category": "",
                "specific_needs": "",
                "timeline": "",
                "budget_range": "",
                "technical_specifications": "",
            },
            "additional_information": {
                "how_did_you_hear_about_us": "",
                "previous_experience": "",
                "special_requirements": "",
                "notes": "",
            },
        },
    }
    company_slug = "_".join((company_name or "").split())
    return EmailAttachment(
        filename=f"registration_form_{inquiry_id or 'new'}_{company_slug}.json",
        content=form,
        mime_type="application/json",
    )


def build_acknowledgment_email(to: str, contact_name: str, company_name: str,
                               inquiry_id: Optional[str] = None) -> OutboundEmail:
    subject = f"Inquiry Received [{inquiry_id}]" if inquiry_id else "Thank you for contacting us - Next Steps"
    return OutboundEmail(
        to=to,
        subject=subject,
        body=ACKNOWLEDGMENT_TEMPLATE.render(contact_name=contact_name, inquiry_id=inquiry_id),
        attachments=[generate_registration_form(contact_name, company_name, inquiry_id)],
    )


# ╔══════════ Transports ═══════════════════════════════════════════════════

class LoggingTransport:
    """Used when no mail provider is configured: the message is only logged."""

    async def send(self, message: OutboundEmail) -> Optional[str]:
        logger.info(
            f"Acknowledgment email prepared for {message.to}: {message.subject} "
            f"({', '.join(a.filename for a in message.attachments) or 'no attachments'})"
        )
        return None


class ResendTransport:
    """Delivers messages through the Resend API."""

    def __init__(self, api_key: str, from_address: str):
        resend.api_key = api_key
        self.from_address = from_address

    def _params(self, message: OutboundEmail) -> dict:
        return {
            "from": self.from_address,
            "to": [message.to],
            "subject": message.subject,
            "text": message.body,
            "attachments": [
                {
                    "filename": attachment.filename,
                    "content": base64.b64encode(attachment.as_bytes()).decode("ascii"),
                    "content_type": attachment.mime_type,
                }
                for attachment in message.attachments
            ],
        }

    async def send(self, message: OutboundEmail) -> Optional[str]:
        result = await asyncio.to_thread(resend.Emails.send, self._params(message))
        return result.get("id") if isinstance(result, dict) else getattr(result, "id", None)


def create_transport(api_key: Optional[str], from_address: str):
    if api_key:
        return ResendTransport(api_key, from_address)
    logger.warning("RESEND_API_KEY not set, acknowledgment emails will only be logged")
    return LoggingTransport()


# ╔══════════ Mailer ═══════════════════════════════════════════════════════

class AcknowledgmentMailer:
    def __init__(self, transport, activity: ActivityLogger):
        self.transport = transport
        self.activity = activity

    async def send_acknowledgment_email(self, email_address: str, contact_name: str, company_name: str,
                                        inquiry_id: Optional[str] = None,
                                        task_id: Optional[str] = None) -> bool:
        """
        Send the acknowledgment with the registration form attached.

        RETURNS:
            True if the transport accepted the message, False otherwise.
            Never raises.
        """
        logger.info(f"Sending acknowledgment email to {contact_name} at {email_address} from {company_name}")
        try:
            message = build_acknowledgment_email(email_address, contact_name, company_name, inquiry_id)
            provider_id = await self.transport.send(message)
        except Exception as e:
            logger.error(f"Error sending acknowledgment email to {email_address}: {e}")
            return False

        await self.activity.record_quietly(task_id, ActivityAction.EMAIL_SENT, {
            "email_type": "acknowledgment",
            "to": message.to,
            "subject": message.subject,
            "attachments": [a.filename for a in message.attachments],
            "provider_message_id": provider_id,
            "sent_at": datetime.now().isoformat(),
        })
        return True
