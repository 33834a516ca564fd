"""
Pydantic model validation tests.

Ensures wire payloads map onto the models and lenient fields coerce
as expected. No AWS connection required.

Run with: pytest tests/unit/test_models.py -v
"""

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest
from pydantic import ValidationError

# Add src to path to simulate Lambda environment
SRC_PATH = Path(__file__).parent.parent.parent / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))


class TestTicketStub:
    """Test TicketStub mapping from the list endpoint."""

    def test_nested_fields(self):
        """Assignee, department and resolution come from nested objects."""
        from models.ticket import TicketStub

        stub = TicketStub.model_validate(
            {
                "ticket_id": 991,
                "ticket_number": "OCA-1",
                "ticket_subject": "No signal",
                "assigned_data": {"name": "Agent A"},
                "department_data": {"name": "Tier 2"},
                "detail": "Customer reports no signal",
                "as_ticket": {"first_executed_at": "2025-01-01T00:05:00Z", "resolved_at": None},
                "escalation_to": "NOC",
                "room": "room-7",
                "unused_field": "ignored",
            }
        )
        assert stub.ticket_id == "991"
        assert stub.subject == "No signal"
        assert stub.assignee == "Agent A"
        assert stub.department == "Tier 2"
        assert stub.description == "Customer reports no signal"
        assert stub.first_response_at == "2025-01-01T00:05:00Z"
        assert stub.resolved_at is None
        assert stub.escalation_target == "NOC"
        assert stub.room_id == "room-7"

    def test_missing_assignee_and_department_default_to_dash(self):
        from models.ticket import TicketStub

        stub = TicketStub.model_validate({"ticket_number": "OCA-1", "assigned_data": {"name": ""}})
        assert stub.assignee == "-"
        assert stub.department == "-"


class TestActivityRecord:
    """Test ActivityRecord mapping."""

    def test_naive_timestamp_is_utc(self):
        from models.ticket import ActivityRecord

        activity = ActivityRecord.model_validate({"timestamp": "2025-01-01T01:00:00"})
        assert activity.timestamp == datetime(2025, 1, 1, 1, tzinfo=timezone.utc)
        assert activity.actor is None
        assert activity.changes == []


class TestTicketRecord:
    """Test TicketRecord coercion."""

    def test_lenient_fields(self):
        from models.ticket import TicketRecord

        record = TicketRecord.model_validate(
            {
                "ticket_number": "OCA-1",
                "created_at": "31/12/2024 23:00:00",
                "last_update": "not a date",
                "amount_revenue": "-",
                "msisdn_count": "12 nomor",
                "subject": None,
            }
        )
        assert record.created_at == datetime(2024, 12, 31, 23, tzinfo=timezone.utc)
        assert record.last_update is None
        assert record.amount_revenue is None
        assert record.msisdn_count == 12
        assert record.subject == ""
        assert record.validation_status == "Valid"
        assert record.source == "api"


class TestBatchJob:
    """Test BatchJob queue payload."""

    def test_job_requires_id(self):
        from models.ticket import BatchJob

        with pytest.raises(ValidationError):
            BatchJob.model_validate({"tickets": []})

    def test_save_result_written(self):
        from models.results import SaveResult

        assert SaveResult(inserted=2, updated=3).written == 5
