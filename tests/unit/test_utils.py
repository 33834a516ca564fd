"""
Tests for value coercion, settings and error helpers.

Run with: pytest tests/unit/test_utils.py -v
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest

from utils.dates import as_utc, parse_timestamp
from utils.error_handling import (
    ConfigurationError,
    DispatchError,
    TicketEnrichmentError,
    UpstreamApiError,
    describe,
)
from utils.normalizers import (
    INT32_MAX,
    is_placeholder,
    normalize_key,
    parse_amount,
    parse_count,
    parse_leading_int,
)
from utils.settings import PipelineSettings, parse_sla_thresholds


class TestParseTimestamp:
    """Lenient timestamp parsing."""

    @pytest.mark.parametrize("value,expected", [
        ("2025-01-01T02:00:00Z", datetime(2025, 1, 1, 2, tzinfo=timezone.utc)),
        ("2025-01-01T09:00:00+07:00", datetime(2025, 1, 1, 2, tzinfo=timezone.utc)),
        ("2025-01-01 02:00:00", datetime(2025, 1, 1, 2, tzinfo=timezone.utc)),
        ("31/01/2025 13:45:10", datetime(2025, 1, 31, 13, 45, 10, tzinfo=timezone.utc)),
        ("31/01/2025", datetime(2025, 1, 31, tzinfo=timezone.utc)),
        (45658, datetime(2025, 1, 1, tzinfo=timezone.utc)),
        ("45658,5", datetime(2025, 1, 1, 12, tzinfo=timezone.utc)),
    ])
    def test_supported_formats(self, value, expected):
        assert parse_timestamp(value) == expected

    @pytest.mark.parametrize("value", [None, "", "-", "~", "soon", True, -5])
    def test_unparseable_values(self, value):
        assert parse_timestamp(value) is None

    def test_naive_datetime_is_utc(self):
        assert as_utc(datetime(2025, 1, 1)) == datetime(2025, 1, 1, tzinfo=timezone.utc)


class TestNormalizers:
    """Small coercion helpers."""

    def test_normalize_key(self):
        assert normalize_key("  Foo ") == "foo"
        assert normalize_key(12) == ""

    def test_placeholders(self):
        assert is_placeholder(None) is True
        assert is_placeholder(" - ") is True
        assert is_placeholder("INC1") is False

    @pytest.mark.parametrize("value,expected", [
        ("12", 12),
        ("  3 nomor", 3),
        ("abc", 0),
        (None, 0),
        (7, 7),
    ])
    def test_parse_leading_int(self, value, expected):
        assert parse_leading_int(value) == expected

    @pytest.mark.parametrize("value,expected", [
        ("Rp 13.513.500.000", 13513500000),
        ("-", None),
        ("~", None),
        ("", None),
        ("n/a", None),
        (2500, 2500),
    ])
    def test_parse_amount(self, value, expected):
        assert parse_amount(value) == expected

    @pytest.mark.parametrize("value", [
        "Rp 99.999.999.999.999.999.999",
        10**20,
        float("inf"),
    ])
    def test_amount_out_of_bigint_range_is_dropped(self, value):
        assert parse_amount(value) is None

    def test_count_is_clamped_to_integer_column(self):
        """A phone number typed into the count field does not overflow."""
        assert parse_count("6281234567890") == INT32_MAX
        assert parse_count("-6281234567890") == -INT32_MAX - 1
        assert parse_count("12 nomor") == 12

    def test_non_finite_float_count_uses_default(self):
        assert parse_leading_int(float("nan")) == 0


class TestSettings:
    """Environment-driven configuration."""

    def test_defaults(self):
        settings = PipelineSettings.from_environment({})
        assert settings.page_size == 100
        assert settings.page_attempts == 3
        assert settings.timezone == "Asia/Jakarta"
        assert settings.sla_thresholds_hours == {"connectivity": 3.0, "solution": 6.0}
        assert settings.batch_queue_url is None

    def test_overrides(self):
        settings = PipelineSettings.from_environment(
            {
                "SYNC_PAGE_SIZE": "50",
                "ENRICHMENT_CONCURRENCY": "5",
                "SLA_THRESHOLDS_HOURS": "Connectivity=4, solution=8",
                "TICKETING_BASE_URL": "https://api.test/ticketing/",
            }
        )
        assert settings.page_size == 50
        assert settings.enrichment_concurrency == 5
        assert settings.sla_thresholds_hours == {"connectivity": 4.0, "solution": 8.0}
        assert settings.ticketing_base_url == "https://api.test/ticketing"

    @pytest.mark.parametrize("env", [
        {"SYNC_PAGE_SIZE": "many"},
        {"SYNC_PAGE_ATTEMPTS": "0"},
        {"HTTP_TIMEOUT_SECONDS": "soon"},
        {"SLA_THRESHOLDS_HOURS": "connectivity"},
        {"SLA_THRESHOLDS_HOURS": "connectivity=fast"},
    ])
    def test_malformed_values_are_rejected(self, env):
        with pytest.raises(ConfigurationError):
            PipelineSettings.from_environment(env)

    @patch("utils.settings.boto3")
    def test_secret_credentials_win(self, mock_boto3):
        mock_client = MagicMock()
        mock_boto3.client.return_value = mock_client
        mock_client.get_secret_value.return_value = {
            "SecretString": '{"username": "svc", "password": "s3cret"}'
        }

        settings = PipelineSettings.from_environment(
            {"TICKETING_USERNAME": "plain", "TICKETING_SECRET_ARN": "arn:test"}
        )

        assert settings.api_username == "svc"
        assert settings.api_password == "s3cret"
        assert "s3cret" not in repr(settings)

    @patch("utils.settings.boto3")
    def test_no_secret_arn_skips_secrets_manager(self, mock_boto3):
        """The export Lambda runs without the ticketing secret."""
        settings = PipelineSettings.from_environment({"DB_SECRET_ARN": "arn:db"})
        mock_boto3.client.assert_not_called()
        assert settings.api_username == ""

    def test_parse_sla_thresholds_skips_empty_chunks(self):
        assert parse_sla_thresholds("connectivity=3,,") == {"connectivity": 3.0}


class TestErrors:
    """Exception metadata."""

    def test_fatal_flags(self):
        assert DispatchError("x", job_id="batch-1").fatal is True
        assert UpstreamApiError("x", status_code=502).fatal is False

    def test_enrichment_error_mentions_ticket(self):
        error = TicketEnrichmentError("t1", "timeout")
        assert error.ticket_id == "t1"
        assert "t1" in str(error)

    def test_describe(self):
        assert describe(DispatchError("queue down")) == {
            "error": "queue down",
            "error_type": "DispatchError",
            "fatal": True,
        }
