# --------------------------- tests/integration/test_inquiry_pipeline.py ----------------------------
"""
Inquiry Router · End-to-End Pipeline Tests

OVERVIEW:
Runs inbound emails through EmailIntakeService -> LangGraph pipeline against
the in-memory store and checks the resulting tasks, leads and activity trail.

SCENARIOS:
- New sender, with and without a sales rep on file
- Sender already on the contacts board
- Enrichment failures (acknowledgment, lead, assignment) leave the inquiry intact
- Critical-path failures propagate
- Redelivered messages are skipped
"""

import re
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

import src.agents.inquiry.graph as graph_module
from src.services.assignment import REASON_GENERIC_CATEGORY, REASON_NO_REP


def _actions(store, task_id=None):
    rows = store.rows("activity_log", task_id=task_id) if task_id else store.rows("activity_log")
    return [r["action"] for r in rows]


def _group_title(store, group_id):
    return store.rows("groups", id=group_id)[0]["title"]


def _inquiry(store, result):
    return store.rows("tasks", id=result["task_id"])[0]


class TestNewSender:

    @pytest.mark.asyncio
    async def test_assigned_when_rep_is_available(self, intake, store, transport, sales_rep, inbound_email):
        result = await intake.process_email(inbound_email)

        assert result["success"] and result["action"] == "INQUIRY_CREATED"
        assert result["contact_status"] == "new"
        task = _inquiry(store, result)
        assert task["status"] == "Assigned"
        assert _group_title(store, task["group_id"]) == "Assigned"
        assert task["assigned_sales_rep"] == sales_rep["id"]
        assert task["product_category"] == "Tank Cleaning"
        assert task["priority"] == "High"
        assert task["sender_email"] == "jane@globex.com"
        assert task["sender_name"] == "Jane Smith"
        assert task["sender_company"] == "Globex"
        assert re.fullmatch(r"INQ-\d{13}-GLOBEX", task["inquiry_id"])
        assert result["assignment"]["sales_rep_id"] == sales_rep["id"]

        [message] = transport.sent
        assert message.to == "jane@globex.com"
        assert message.subject == f"Inquiry Received [{task['inquiry_id']}]"

    @pytest.mark.asyncio
    async def test_lead_created_and_linked(self, intake, store, inbound_email):
        result = await intake.process_email(inbound_email)
        task = _inquiry(store, result)

        [lead] = store.rows("tasks", status="New Lead")
        assert result["lead_task_id"] == lead["id"]
        assert _group_title(store, lead["group_id"]) == "New Leads"
        assert store.rows("boards", id=lead["board_id"])[0]["title"] == "Leads"
        assert lead["priority"] == "High"
        assert lead["custom_fields"]["inquiry_task_id"] == task["id"]
        assert task["id"] in lead["description"]

        fields = task["custom_fields"]
        assert fields["lead_created"] is True
        assert fields["lead_task_id"] == lead["id"]
        assert fields["lead_board_id"] == lead["board_id"]
        assert fields["registration_email_sent"] is True
        assert fields["needs_registration"] is True
        assert fields["contact_linked"] is False
        assert fields["inquiry_id"] == task["inquiry_id"]

        [completed] = store.rows("activity_log", action="NEW_CONTACT_PIPELINE_COMPLETED")
        assert completed["task_id"] == task["id"]
        assert completed["details"]["lead_task_id"] == lead["id"]

    @pytest.mark.asyncio
    async def test_activity_trail(self, intake, store, sales_rep, inbound_email):
        result = await intake.process_email(inbound_email)
        actions = _actions(store, result["task_id"])
        assert actions == [
            "EMAIL_RECEIVED_NEW",
            "EMAIL_SENT",
            "NEW_CONTACT_PIPELINE_COMPLETED",
            "TASK_ASSIGNED",
        ]
        assert _actions(store, result["lead_task_id"]) == ["LEAD_CREATED_FROM_EMAIL"]

    @pytest.mark.asyncio
    async def test_immediate_action_without_rep(self, intake, store, inbound_email):
        result = await intake.process_email(inbound_email)
        task = _inquiry(store, result)

        assert task["status"] == "Immediate Action"
        assert _group_title(store, task["group_id"]) == "Immediate Action"
        assert task["custom_fields"]["needs_manual_assignment"] is True
        assert task["custom_fields"]["assignment_failure_reason"] == REASON_NO_REP
        assert task.get("assigned_sales_rep") is None

        [record] = store.rows("activity_log", action="TASK_NEEDS_ASSIGNMENT")
        assert record["details"]["group_moved_to"] == "Immediate Action"
        assert record["details"]["validation_passed"] is False

    @pytest.mark.asyncio
    async def test_generic_category_overrides_found_rep(self, intake, store, sales_rep, inbound_email):
        inbound_email["subject"] = "Hello"
        result = await intake.process_email(inbound_email)
        task = _inquiry(store, result)

        assert task["status"] == "Immediate Action"
        assert task["product_category"] == "General Inquiry"
        assert task["custom_fields"]["assignment_failure_reason"] == REASON_GENERIC_CATEGORY
        [record] = store.rows("activity_log", action="TASK_NEEDS_ASSIGNMENT")
        assert record["details"]["sales_rep_id"] == sales_rep["id"]

    @pytest.mark.asyncio
    async def test_personal_mailbox_company_from_signature(self, intake, store):
        result = await intake.process_email({
            "messageId": "gm-1",
            "from": "pat.jones@gmail.com",
            "subject": "Chemical supply question",
            "body": "Hi,\nDo you stock solvents?\n\nBest regards,\nGlobex Corp\n",
        })
        task = _inquiry(store, result)
        assert task["sender_email"] == "pat.jones@gmail.com"
        assert task["sender_name"] == "Pat Jones"
        assert task["sender_company"] == "Globex Corp"
        assert task["inquiry_id"].endswith("-GLOBEXCO")


class TestExistingContact:

    @pytest.mark.asyncio
    async def test_linked_without_lead(self, intake, store, transport, existing_contact):
        result = await intake.process_email({
            "messageId": "msg-wendy",
            "from": "Wendy Contact <Wendy@Initech.com>",
            "senderEmail": "Wendy@Initech.com",
            "subject": "Chemical supply reorder",
            "body": "Same as last month please.",
        })
        task = _inquiry(store, result)

        assert result["contact_status"] == "existing"
        assert task["priority"] == "Medium"
        assert task["custom_fields"]["contact_linked"] is True
        assert task["custom_fields"]["contact_id"] == existing_contact["id"]
        assert task["custom_fields"]["contact_board_type"] == "contacts"
        assert task["custom_fields"]["needs_registration"] is False
        assert store.rows("tasks", status="New Lead") == []
        assert transport.sent == []

        [linked] = store.rows("activity_log", action="EXISTING_CONTACT_LINKED")
        assert linked["task_id"] == task["id"]
        assert linked["details"]["contact_id"] == existing_contact["id"]
        assert "EMAIL_RECEIVED_LINKED" in _actions(store, task["id"])

    @pytest.mark.asyncio
    async def test_known_lead_is_not_duplicated(self, intake, store, inbound_email):
        await intake.process_email(inbound_email)
        inbound_email["messageId"] = "<msg-002@globex.com>"
        second = await intake.process_email(inbound_email)

        assert second["contact_status"] == "existing"
        assert len(store.rows("tasks", status="New Lead")) == 1
        task = _inquiry(store, second)
        assert task["custom_fields"]["contact_board_type"] == "leads"


class TestFailureIsolation:

    @pytest.mark.asyncio
    async def test_acknowledgment_failure(self, intake, pipeline, store, sales_rep, inbound_email):
        pipeline.mailer.send_acknowledgment_email = AsyncMock(side_effect=RuntimeError("mail provider down"))

        result = await intake.process_email(inbound_email)
        task = _inquiry(store, result)

        assert task["inquiry_id"]
        [error] = store.rows("activity_log", action="NEW_CONTACT_PIPELINE_ERROR")
        assert error["task_id"] == task["id"]
        assert error["details"]["error"] == "mail provider down"
        assert error["details"]["pipeline_step"] == "acknowledgment_email"
        assert store.rows("tasks", status="New Lead") == []
        # Assignment still runs
        assert task["status"] == "Assigned"
        assert result["errors"][0]["step"] == "acknowledgment_email"

    @pytest.mark.asyncio
    async def test_lead_creation_failure(self, intake, pipeline, store, inbound_email):
        pipeline.leads.create_automatic_lead = AsyncMock(side_effect=ConnectionError("store timeout"))

        result = await intake.process_email(inbound_email)

        [error] = store.rows("activity_log", action="NEW_CONTACT_PIPELINE_ERROR")
        assert error["details"]["pipeline_step"] == "lead_creation"
        assert "lead_created" not in _inquiry(store, result)["custom_fields"]

    @pytest.mark.asyncio
    async def test_assignment_failure(self, intake, pipeline, store, inbound_email):
        pipeline.router.process_inquiry_assignment = AsyncMock(side_effect=ConnectionError("store timeout"))

        result = await intake.process_email(inbound_email)
        task = _inquiry(store, result)

        assert task["status"] == "New"
        assert _group_title(store, task["group_id"]) == "New Inquiry"
        [error] = store.rows("activity_log", action="INQUIRY_ASSIGNMENT_ERROR")
        assert error["task_id"] == task["id"]
        assert result["assignment"] is None
        assert "NEW_CONTACT_PIPELINE_COMPLETED" in _actions(store, task["id"])

    @pytest.mark.asyncio
    async def test_activity_log_outage_does_not_stop_the_run(self, intake, store, sales_rep, inbound_email):
        store.fail("insert", "activity_log")
        result = await intake.process_email(inbound_email)
        assert _inquiry(store, result)["inquiry_id"]

    @pytest.mark.asyncio
    async def test_task_creation_failure_propagates(self, intake, store, inbound_email):
        store.fail("insert", "tasks")
        with pytest.raises(ConnectionError):
            await intake.process_email(inbound_email)
        assert store.rows("activity_log") == []

    @pytest.mark.asyncio
    async def test_board_creation_failure_propagates(self, intake, store, inbound_email):
        store.fail("insert", "boards")
        with pytest.raises(ConnectionError):
            await intake.process_email(inbound_email)


class TestIntake:

    @pytest.mark.asyncio
    async def test_redelivered_message_is_skipped(self, intake, store, inbound_email):
        first = await intake.process_email(inbound_email)
        second = await intake.process_email(inbound_email)

        assert first["action"] == "INQUIRY_CREATED"
        assert second == {"success": True, "action": "SKIPPED_DUPLICATE", "message_id": "<msg-001@globex.com>"}
        assert len(store.rows("tasks", gmail_message_id="<msg-001@globex.com>")) == 1

    @pytest.mark.asyncio
    async def test_same_company_same_millisecond(self, intake, store, monkeypatch, inbound_email):
        monkeypatch.setattr(graph_module, "time", SimpleNamespace(time=lambda: 1760866200.0))
        await intake.process_email(inbound_email)
        inbound_email.update({"messageId": "other", "senderEmail": "joe@globex.com", "from": "joe@globex.com"})
        await intake.process_email(inbound_email)

        ids = sorted(t["inquiry_id"] for t in store.rows("tasks") if t.get("inquiry_id"))
        assert ids == ["INQ-1760866200000-GLOBEX", "INQ-1760866200001-GLOBEX"]

    @pytest.mark.asyncio
    async def test_sender_address_from_header(self, intake, store):
        result = await intake.process_email({
            "message_id": "snake-1",
            "from": "Lee Park <Lee@Hooli.com>",
            "subject": "Consulting",
            "body": "",
        })
        assert _inquiry(store, result)["sender_email"] == "lee@hooli.com"

    @pytest.mark.asyncio
    async def test_message_without_sender_is_rejected(self, intake):
        with pytest.raises(ValueError):
            await intake.process_email({"subject": "no sender", "body": "x"})

    @pytest.mark.asyncio
    async def test_eml_file(self, intake, store, tmp_path):
        path = tmp_path / "inquiry.eml"
        path.write_bytes(
            b"From: Jane Smith <jane@globex.com>\n"
            b"Subject: Storage tank maintenance\n"
            b"Message-ID: <eml-1@globex.com>\n"
            b"Content-Type: text/html; charset=utf-8\n\n"
            b"<p>Our storage tank needs maintenance.</p>\n"
        )
        result = await intake.process_file_email(path)
        task = _inquiry(store, result)
        assert task["gmail_message_id"] == "eml-1@globex.com"
        assert task["product_category"] == "Tank Cleaning"
        assert "Our storage tank needs maintenance." in task["description"]
