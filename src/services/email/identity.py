# --------------------------- src/services/email/identity.py ----------------------------
"""
Inquiry Router · Sender Identity Extraction

OVERVIEW:
Pulls a display name and an organization name out of raw "From" headers and
message bodies, and builds the user-visible inquiry identifier.

BUSINESS LOGIC:
- "Jane Smith <jane@globex.com>"  -> "Jane Smith"
- "john.doe@acme.com"             -> "John Doe"
- Company comes from the sender's domain unless it is a personal mailbox
  provider, in which case the signature block is scanned instead.

INQUIRY ID FORMAT (persisted, appears in mails already sent to customers):
    INQ-<unix-epoch-millis>-<COMPANY CODE>
The company code is the company name without whitespace, upper-cased,
at most 8 characters.
"""

import re
import time
from typing import Optional

UNKNOWN_SENDER = "Unknown Sender"
UNKNOWN_COMPANY = "Unknown Company"

PERSONAL_EMAIL_PROVIDERS = ["gmail", "yahoo", "hotmail", "outlook", "aol"]

NAME_WITH_ADDRESS = re.compile(r"^(.+?)\s*<.+>$")
LOCAL_PART = re.compile(r"([^<>\s]+)@")
DOMAIN_SUFFIX = re.compile(r"\.(com|org|net|edu|gov|io|co).*$", re.IGNORECASE)

SIGNATURE_PATTERNS = [
    re.compile(r"Best regards,?\s*\n(.+?)\n", re.IGNORECASE),
    re.compile(r"Thanks,?\s*\n(.+?)\n", re.IGNORECASE),
    re.compile(r"Sincerely,?\s*\n(.+?)\n", re.IGNORECASE),
    re.compile(r"\n(.+?)\s+(?:Inc|Corp|LLC|Ltd|Company|Co\.)\s*$", re.IGNORECASE | re.MULTILINE),
]

COMPANY_CODE_LENGTH = 8


def _title(part: str) -> str:
    return part[:1].upper() + part[1:].lower()


def extract_sender_name(from_header: str) -> str:
    """Display name from a From header, falling back to the mailbox local part."""
    from_header = (from_header or "").strip()

    match = NAME_WITH_ADDRESS.match(from_header)
    if match:
        name = re.sub(r"['\"]", "", match.group(1)).strip()
        if name:
            return name

    match = LOCAL_PART.search(from_header)
    if match:
        segments = [s for s in re.split(r"[._-]", match.group(1)) if s]
        if segments:
            return " ".join(_title(s) for s in segments)

    return UNKNOWN_SENDER


def _is_personal_domain(domain: str) -> bool:
    lowered = domain.lower()
    return any(provider in lowered for provider in PERSONAL_EMAIL_PROVIDERS)


def _company_from_signature(body: str) -> Optional[str]:
    for pattern in SIGNATURE_PATTERNS:
        match = pattern.search(body or "")
        if match and match.group(1).strip():
            return match.group(1).strip()
    return None


def extract_company_name(email: str, body: str) -> str:
    """Organization name from the sender's domain or, for personal mailboxes, the signature."""
    parts = (email or "").split("@")
    domain = parts[1].strip() if len(parts) > 1 else ""

    if domain and not _is_personal_domain(domain):
        stripped = DOMAIN_SUFFIX.sub("", domain, count=1)
        labels = [label for label in stripped.split(".") if label]
        if labels:
            return " ".join(_title(label) for label in labels)

    from_signature = _company_from_signature(body)
    if from_signature:
        return from_signature

    return domain.split(".")[0] if domain else UNKNOWN_COMPANY


def company_code(company_name: str) -> str:
    return re.sub(r"\s", "", company_name or "").upper()[:COMPANY_CODE_LENGTH]


def generate_inquiry_id(company_name: str, timestamp_ms: Optional[int] = None) -> str:
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"INQ-{timestamp_ms}-{company_code(company_name)}"
