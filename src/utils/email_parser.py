# --------------------------- src/utils/email_parser.py ----------------------------
"""
Inquiry Router · Inbound Email Parser

OVERVIEW:
Turns a raw RFC 822 message (.eml file or bytes from a mailbox) into the
InboundEmail the inquiry pipeline consumes.

WORKFLOW:
1. Decode the headers (RFC 2047 encoded words)
2. Pick the body: plain text first, HTML converted to text otherwise
3. Clean the text (zero-width characters, blank line runs, mobile signatures)

TECHNICAL ARCHITECTURE:
- Parts without a declared charset are decoded with the charset chardet
  detects, falling back to utf-8
- HTML to text keeps links and drops images, without line wrapping

DEPENDENCIES:
- email (standard library)
- html2text for HTML conversion
- chardet for encoding detection
"""

import email
import email.header
import logging
import re
from email.message import Message
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

import chardet
import html2text

from src.services.email.message import InboundEmail

logger = logging.getLogger(__name__)

HEADERS = ['From', 'To', 'Subject', 'Date', 'Message-ID', 'Reply-To']

MOBILE_SIGNATURES = [
    r'Sent from my iPhone.*$',
    r'Sent from my Android.*$',
    r'Get Outlook for iOS.*$',
]


def extract_email_address(from_header: str) -> str:
    """Clean, lower-cased address from a From header."""
    from_header = from_header or ''
    match = re.search(r'<([^>]+)>', from_header)
    if match:
        return match.group(1).strip().lower()

    match = re.search(r'[\w\.+-]+@[\w\.-]+\.\w+', from_header)
    if match:
        return match.group(0).lower()

    return from_header.strip().lower()


class EnhancedEmailParser:
    """Parses raw messages into InboundEmail instances."""

    def __init__(self):
        self.html_converter = html2text.HTML2Text()
        self.html_converter.ignore_links = False
        self.html_converter.ignore_images = True
        self.html_converter.body_width = 0  # Don't wrap lines

    def parse_email_file(self, file_path: Union[str, Path]) -> InboundEmail:
        with open(file_path, 'rb') as f:
            return self.parse_bytes(f.read())

    def parse_bytes(self, raw_email: bytes) -> InboundEmail:
        msg = email.message_from_bytes(raw_email)
        headers = self._extract_headers(msg)
        body_text, _ = self._extract_body(msg)

        return InboundEmail(
            message_id=headers.get('message-id', '').strip('<> '),
            from_header=headers.get('from', ''),
            sender_email=extract_email_address(headers.get('from', '')),
            subject=headers.get('subject', ''),
            date=headers.get('date', ''),
            body=body_text,
        )

    def _extract_headers(self, msg: Message) -> Dict[str, str]:
        headers = {}
        for header in HEADERS:
            value = msg.get(header, '')
            if not value:
                continue
            parts = []
            for part, encoding in email.header.decode_header(value):
                if isinstance(part, bytes):
                    part = part.decode(encoding or 'utf-8', errors='replace')
                parts.append(part)
            headers[header.lower()] = ''.join(parts).strip()
        return headers

    @staticmethod
    def _decode_payload(part: Message) -> str:
        payload = part.get_payload(decode=True) or b''
        charset = part.get_content_charset()
        if not charset:
            charset = chardet.detect(payload)['encoding'] or 'utf-8'
        try:
            return payload.decode(charset, errors='replace')
        except LookupError:
            logger.warning(f"Unknown charset {charset}, decoding as utf-8")
            return payload.decode('utf-8', errors='replace')

    def _extract_body(self, msg: Message) -> Tuple[str, Optional[str]]:
        """
        EXTRACTION STRATEGY:
        1. Prefer plain text if available
        2. Convert HTML to text if no plain text
        """
        plain_text = ''
        html_content = None

        for part in msg.walk():
            if part.is_multipart() or part.get_content_disposition() == 'attachment':
                continue
            content_type = part.get_content_type()
            if content_type == 'text/plain':
                plain_text += self._decode_payload(part) + '\n'
            elif content_type == 'text/html' and html_content is None:
                html_content = self._decode_payload(part)

        if not plain_text.strip() and html_content:
            plain_text = self.html_converter.handle(html_content)

        return self._clean_email_text(plain_text), html_content

    def _clean_email_text(self, text: str) -> str:
        text = text.replace('\u200b', '')  # Zero-width space
        text = text.replace('\xa0', ' ')   # Non-breaking space
        text = text.replace('\r\n', '\n')

        text = re.sub(r'\n\s*\n\s*\n+', '\n\n', text)
        text = re.sub(r'[ \t]+', ' ', text)

        for pattern in MOBILE_SIGNATURES:
            text = re.sub(pattern, '', text, flags=re.IGNORECASE | re.MULTILINE | re.DOTALL)

        return text.strip()
