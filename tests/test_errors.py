"""
Unit tests for the booking error model.

Covers error codes, the response shape produced by ToolError.to_dict, the
factory helpers and message sanitization.
"""

import pytest

from models.errors import (
    ErrorCode,
    ToolError,
    create_configuration_error,
    create_conflict_error,
    create_db_error,
    create_db_not_found_error,
    create_internal_error,
    create_not_found_error,
    create_permission_error,
    create_validation_error,
    sanitize_path,
    sanitize_sql_error,
    sanitize_stack_trace,
)


class TestErrorCode:
    def test_booking_outcome_codes(self):
        """Every outcome kind an operation can report has a code."""
        assert {code.value for code in ErrorCode} == {
            "VALIDATION_ERROR",
            "NOT_FOUND",
            "CONFLICT",
            "PERMISSION_DENIED",
            "CONFIGURATION_ERROR",
            "DB_NOT_FOUND",
            "DB_ERROR",
            "INTERNAL_ERROR",
        }

    def test_codes_compare_as_strings(self):
        assert ErrorCode.CONFLICT == "CONFLICT"


class TestToolError:
    def test_to_dict_without_field(self):
        error = ToolError(code=ErrorCode.CONFLICT, message="Job already taken")

        assert error.to_dict() == {
            "error": {"code": "CONFLICT", "message": "Job already taken", "retryable": False}
        }

    def test_to_dict_includes_field_when_set(self):
        """Validation errors name the offending input field."""
        error = create_validation_error("Du måste fylla in alla fält", field="due_date")

        assert error.to_dict()["error"]["field"] == "due_date"

    def test_is_raisable(self):
        with pytest.raises(ToolError) as exc_info:
            raise create_permission_error("Translator can not create booking")

        assert exc_info.value.code == ErrorCode.PERMISSION_DENIED
        assert str(exc_info.value) == "Translator can not create booking"

    def test_keeps_original_error(self):
        original = KeyError("consumer_type")
        error = create_internal_error("boom", original_error=original)
        assert error.original_error is original


class TestFactories:
    def test_not_found_names_entity_and_id(self):
        error = create_not_found_error("Job", 42)
        assert error.code == ErrorCode.NOT_FOUND
        assert error.message == "Job not found: 42"
        assert error.retryable is False

    def test_conflict(self):
        error = create_conflict_error("Job is already completed")
        assert error.code == ErrorCode.CONFLICT
        assert error.retryable is False

    def test_configuration_error_is_not_retryable(self):
        error = create_configuration_error("Unknown translator type: robot")
        assert error.code == ErrorCode.CONFIGURATION_ERROR
        assert error.retryable is False

    def test_validation_error_field_defaults_to_none(self):
        error = create_validation_error("Please, add comment")
        assert error.field is None
        assert "field" not in error.to_dict()["error"]

    def test_db_not_found_hides_directory(self):
        error = create_db_not_found_error("/srv/booking/data/booking.db")
        assert error.message == "Database not found: booking.db"

    def test_db_error_strips_sql(self):
        error = create_db_error("UNIQUE constraint failed SQL: INSERT INTO translator_job_rel")
        assert error.code == ErrorCode.DB_ERROR
        assert "INSERT" not in error.message
        assert error.message.startswith("Database error: UNIQUE constraint failed")

    def test_db_error_retryable_flag(self):
        assert create_db_error("database is locked", retryable=True).retryable is True

    def test_internal_error_is_retryable_and_single_line(self):
        error = create_internal_error("boom\nTraceback (most recent call last):\n  ...")
        assert error.retryable is True
        assert error.message == "Internal error: boom"


class TestSanitizers:
    @pytest.mark.parametrize(
        "path,expected",
        [
            ("/var/lib/booking/booking.db", "booking.db"),
            ("data/booking.db", "data/booking.db"),
        ],
    )
    def test_sanitize_path(self, path, expected):
        assert sanitize_path(path) == expected

    def test_sanitize_sql_quoted_query(self):
        message = 'failed to run "SELECT * FROM jobs WHERE id = 1"'
        assert sanitize_sql_error(message) == "failed to run [SQL query]"

    def test_sanitize_sql_unquoted_query(self):
        assert sanitize_sql_error("near UPDATE jobs SET status") == "near [SQL query]"

    def test_sanitize_sql_paths(self):
        assert "[path]/" in sanitize_sql_error("unable to open /srv/booking/data/booking.db")

    def test_sanitize_sql_keeps_plain_message(self):
        assert sanitize_sql_error("database is locked") == "database is locked"

    def test_sanitize_stack_trace(self):
        assert sanitize_stack_trace("  first line  \nsecond line") == "first line"
        assert sanitize_stack_trace("single") == "single"
