# --------------------------- tests/conftest.py ----------------------------
"""
Shared fixtures for the inquiry router test suite.

FakeStore is an in-memory Store that honours the unique constraints from
supabase/migrations/001_inquiry_pipeline.sql, so get-or-create races and
duplicate handling behave as they would against Supabase.
"""

import copy
import itertools
import sys
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.services.activity import ActivityLogger
from src.services.assignment import RepAssignmentEngine
from src.services.boards import BoardDirectory
from src.services.classification import CategoryClassifier
from src.services.contacts import ContactResolver
from src.services.email.acknowledgment import AcknowledgmentMailer
from src.services.email.intake import EmailIntakeService, build_pipeline
from src.services.errors import DuplicateRecordError
from src.services.leads import LeadService
from src.services.routing import InquiryRouter
from src.services.store import Store

UNIQUE_CONSTRAINTS = {
    "boards": [("title",)],
    "groups": [("board_id", "title")],
    "tasks": [("inquiry_id",)],
}


def _json_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class FakeStore(Store):
    """In-memory Store with failure injection."""

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.failures: Dict[tuple, Exception] = {}
        self._clock = itertools.count(1)

    # ─── test helpers ─────────────────────────────────────────────────────

    def seed(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        row = dict(row)
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", self._timestamp())
        self.tables.setdefault(table, []).append(row)
        return row

    def rows(self, table: str, **filters) -> List[Dict[str, Any]]:
        return [copy.deepcopy(r) for r in self.tables.get(table, []) if self._matches(r, filters)]

    def fail(self, operation: str, table: str, error: Exception = None):
        self.failures[(operation, table)] = error or ConnectionError(f"{operation} on {table} unavailable")

    def _timestamp(self) -> str:
        return f"2026-01-01T00:00:00.{next(self._clock):06d}"

    def _check_failure(self, operation: str, table: str):
        error = self.failures.get((operation, table))
        if error:
            raise error

    @staticmethod
    def _matches(row: Dict[str, Any], filters: Dict[str, Any]) -> bool:
        for column, expected in filters.items():
            if "->>" in column:
                json_column, key = column.split("->>", 1)
                actual = _json_text((row.get(json_column) or {}).get(key))
            else:
                actual = row.get(column)
            if isinstance(expected, (list, tuple, set)):
                if actual not in expected:
                    return False
            elif actual != expected:
                return False
        return True

    # ─── Store contract ───────────────────────────────────────────────────

    async def find(self, table, filters=None, *, columns="*", order_by=None,
                   descending=False, limit=None):
        self._check_failure("find", table)
        rows = [r for r in self.tables.get(table, []) if self._matches(r, filters or {})]
        if order_by:
            rows = sorted(rows, key=lambda r: r.get(order_by) or "", reverse=descending)
        if limit:
            rows = rows[:limit]
        return [copy.deepcopy(r) for r in rows]

    async def insert(self, table, record):
        self._check_failure("insert", table)
        row = copy.deepcopy(record)
        for columns in UNIQUE_CONSTRAINTS.get(table, []):
            values = tuple(row.get(c) for c in columns)
            if None in values:
                continue
            if any(tuple(r.get(c) for c in columns) == values for r in self.tables.get(table, [])):
                raise DuplicateRecordError(f"{table}: duplicate key {columns}={values}", code="23505")
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", self._timestamp())
        self.tables.setdefault(table, []).append(row)
        return copy.deepcopy(row)

    async def update(self, table, record_id, patch):
        self._check_failure("update", table)
        for row in self.tables.get(table, []):
            if row["id"] == record_id:
                row.update(copy.deepcopy(patch))
                return copy.deepcopy(row)
        return {}


class RecordingTransport:
    """Mail transport that keeps sent messages in memory."""

    def __init__(self):
        self.sent = []

    async def send(self, message):
        self.sent.append(message)
        return f"msg-{len(self.sent)}"


# ===============================================================================
# FIXTURES
# ===============================================================================

@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def activity(store):
    return ActivityLogger(store)


@pytest.fixture
def boards(store):
    return BoardDirectory(store)


@pytest.fixture
def engine(store):
    return RepAssignmentEngine(store)


@pytest.fixture
def classifier():
    return CategoryClassifier.from_settings()


@pytest.fixture
def router(store, boards, classifier, engine, activity):
    return InquiryRouter(store, boards, classifier, engine, activity)


@pytest.fixture
def leads(store, boards, activity):
    return LeadService(store, boards, activity)


@pytest.fixture
def resolver(store, boards):
    return ContactResolver(store, boards)


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def mailer(transport, activity):
    return AcknowledgmentMailer(transport, activity)


@pytest.fixture
def pipeline(store, transport):
    return build_pipeline(store, transport=transport)


@pytest.fixture
def intake(pipeline, store):
    return EmailIntakeService(pipeline, store)


@pytest.fixture
def sales_rep(store):
    return store.seed("users", {
        "fullname": "Sam Seller",
        "email": "sam@ourcompany.com",
        "role": "sales",
    })


@pytest.fixture
def contacts_board(store):
    board = store.seed("boards", {"title": "Contacts Board"})
    return board


@pytest.fixture
def existing_contact(store, contacts_board):
    return store.seed("tasks", {
        "title": "Wendy Contact",
        "status": "Active Contact",
        "board_id": contacts_board["id"],
        "sender_email": "wendy@initech.com",
        "sender_name": "Wendy Contact",
        "sender_company": "Initech",
        "custom_fields": {},
    })


@pytest.fixture
def inbound_email():
    return {
        "messageId": "<msg-001@globex.com>",
        "from": "Jane Smith <jane@globex.com>",
        "senderEmail": "jane@globex.com",
        "subject": "Tank cleaning inquiry",
        "date": "Mon, 19 Oct 2026 09:30:00 +0000",
        "body": "Hello,\nWe need a quote for tank cleaning at our plant.\n\nBest regards,\nJane\n",
    }
