"""Email Services Module"""
from .message import InboundEmail, OutboundEmail, EmailAttachment
from .acknowledgment import AcknowledgmentMailer

__all__ = ["InboundEmail", "OutboundEmail", "EmailAttachment", "AcknowledgmentMailer"]
