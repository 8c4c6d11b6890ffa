# src/utils/__init__.py
"""
Inquiry Router - Utilities Package

Helpers shared by the intake service and the CLI scripts.
"""

from .email_parser import EnhancedEmailParser, extract_email_address

__all__ = ['EnhancedEmailParser', 'extract_email_address']
