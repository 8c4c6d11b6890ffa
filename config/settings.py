"""
Inquiry Router Configuration Settings

This module contains all configuration settings for the inquiry routing pipeline.
Settings can be overridden by environment variables.
"""

import os
import json
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Base paths
BASE_DIR = Path(__file__).resolve().parent.parent
CONFIG_DIR = Path(__file__).resolve().parent

# API Keys
RESEND_API_KEY = os.getenv("RESEND_API_KEY")

# Supabase Configuration
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY")

# Outbound mail
ACK_FROM_EMAIL = os.getenv("ACK_FROM_EMAIL", "sales@inquiries.example.com")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Business Rules
SALES_ROLE = os.getenv("SALES_ROLE", "sales")
MAX_ACTIVE_TASKS_PER_REP = int(os.getenv("MAX_ACTIVE_TASKS_PER_REP", "10"))
ACTIVE_TASK_STATUSES = ["New", "Assigned", "In Progress"]
LEAD_BODY_EXCERPT_CHARS = 500
DEFAULT_BOARD_OWNER_ID = os.getenv("DEFAULT_BOARD_OWNER_ID", "00000000-0000-0000-0000-000000000000")


def _titles_from_env(name: str, default: list) -> list:
    raw = os.getenv(name)
    if not raw:
        return default
    return [title.strip() for title in raw.split(",") if title.strip()]


# Board roles: ordered candidate titles, the first one is used when creating
BOARD_ROLES = {
    "sales": {
        "titles": _titles_from_env(
            "BOARD_TITLES_SALES", ["Sales Tracker Board", "Sales Tracker", "Sales Board"]
        ),
        "description": "Sales inquiries and customer management",
        "background_color": "#10B981",
    },
    "leads": {
        "titles": _titles_from_env("BOARD_TITLES_LEADS", ["Leads", "Leads Board", "Prospects"]),
        "description": "Potential customers and prospects",
        "background_color": "#F59E0B",
    },
    "contacts": {
        "titles": _titles_from_env(
            "BOARD_TITLES_CONTACTS", ["Contacts Board", "Contacts", "Customer Contacts"]
        ),
        "description": "Qualified customers and active contacts",
        "background_color": "#10B981",
    },
}

# Product category keyword tables
PRODUCT_CATEGORIES_FILE = Path(
    os.getenv("PRODUCT_CATEGORIES_FILE", str(CONFIG_DIR / "product_categories.json"))
)


def load_product_categories(path: Path = PRODUCT_CATEGORIES_FILE) -> dict:
    """Load the category keyword tables, preserving their declared order."""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


PRODUCT_CATEGORIES = load_product_categories()
DEFAULT_PRODUCT_CATEGORY = PRODUCT_CATEGORIES.get("default_category", "General Inquiry")
