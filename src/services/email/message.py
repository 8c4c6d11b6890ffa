# --------------------------- src/services/email/message.py ----------------------------
"""
Inquiry Router · Email Message Types

INBOUND:  the parsed message handed over by the mail-fetching collaborator
OUTBOUND: the acknowledgment handed to the mail-sending collaborator
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class InboundEmail:
    """Parsed inbound message that starts one pipeline run."""
    message_id: str
    from_header: str
    sender_email: str
    subject: str
    date: str
    body: str
    sender_name: Optional[str] = None

    def __post_init__(self):
        self.sender_email = (self.sender_email or "").strip().lower()
        self.subject = self.subject or ""
        self.body = self.body or ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InboundEmail":
        """Accept both the camelCase webhook shape and snake_case keys."""
        return cls(
            message_id=data.get("messageId") or data.get("message_id") or "",
            from_header=data.get("from") or data.get("from_header") or data.get("senderEmail", ""),
            sender_email=data.get("senderEmail") or data.get("sender_email") or "",
            subject=data.get("subject", ""),
            date=data.get("date", ""),
            body=data.get("body", ""),
            sender_name=data.get("senderName") or data.get("sender_name"),
        )


@dataclass
class EmailAttachment:
    filename: str
    content: Dict[str, Any]
    mime_type: str = "application/json"

    def as_bytes(self) -> bytes:
        return json.dumps(self.content, indent=2).encode("utf-8")


@dataclass
class OutboundEmail:
    to: str
    subject: str
    body: str
    attachments: List[EmailAttachment] = field(default_factory=list)
