"""
Tests for the cross-cutting infrastructure: validation, error handling,
logging and configuration.
"""

import json
import logging
import os
import tempfile
from unittest.mock import Mock

import pytest

from cnmaturity.domain.schemas import AnswerInput, SessionCreationInput, validate_input
from cnmaturity.infrastructure.config import (
    ApplicationConfig,
    AssessmentConfig,
    get_settings,
    load_settings_from_file,
    override_settings,
    reset_settings,
)
from cnmaturity.infrastructure.exceptions import (
    InvalidOptionValueError,
    SessionExpiredError,
    SessionNotFoundError,
    ValidationError,
    create_user_friendly_error_message,
    log_error_details,
)
from cnmaturity.infrastructure.logging import (
    LogContext,
    StructuredFormatter,
    clear_context,
    context_filter,
    get_logger,
    log_operation,
    set_context,
    setup_logging,
)


@pytest.fixture
def clean_env():
    """Drop any settings the test writes into the environment."""
    before = set(os.environ)
    yield
    for key in set(os.environ) - before:
        del os.environ[key]
    reset_settings()


class TestPydanticValidation:
    """Test input validation using Pydantic models."""

    def test_session_creation_validation_success(self):
        """Test successful session creation validation."""
        result = validate_input(
            SessionCreationInput,
            {
                "assessment_type": "standard",
                "respondent_role": "manager",
                "categories": ["cicd_practices", "dora_metrics"],
            },
        )

        assert result.success is True
        assert result.data is not None
        assert result.data["assessment_type"] == "standard"
        assert result.data["categories"] == ["cicd_practices", "dora_metrics"]

    def test_session_creation_validation_failure(self):
        """Test session creation validation with an unknown assessment type."""
        result = validate_input(SessionCreationInput, {"assessment_type": "exhaustive"})

        assert result.success is False
        assert any("assessment_type" in error.field for error in result.errors)

    def test_duplicate_categories_rejected(self):
        result = validate_input(
            SessionCreationInput,
            {"assessment_type": "quick", "categories": ["dora_metrics", "dora_metrics"]},
        )

        assert result.success is False

    def test_input_sanitization(self):
        """Test that string inputs are stripped of markup and control characters."""
        result = validate_input(
            AnswerInput,
            {"question_id": "  <b>fc_1</b>\x00 ", "value": 66},
        )

        assert result.success is True
        assert result.data is not None
        assert result.data["question_id"] == "fc_1"

    def test_question_id_characters(self):
        result = validate_input(AnswerInput, {"question_id": "fc 1;", "value": 0})

        assert result.success is False
        assert result.errors[0].field == "question_id"


class TestErrorHandling:
    """Test error handling and user-friendly messages."""

    def test_validation_error_creation(self):
        """Test ValidationError creation and properties."""
        error = ValidationError("test_field", "Test error message", "invalid_value")

        assert error.field == "test_field"
        assert "Test error message" in str(error)
        assert error.user_message is not None
        assert error.details["field"] == "test_field"

    def test_domain_error_details(self):
        error = InvalidOptionValueError("fc_1", 42, [0, 33, 66, 100, -1])

        assert error.question_id == "fc_1"
        assert error.details["allowed"] == [0, 33, 66, 100, -1]
        assert "listed answers" in error.user_message

    def test_expired_session_is_a_missing_session(self):
        error = SessionExpiredError("abc")

        assert isinstance(error, SessionNotFoundError)
        assert "expired" in error.user_message

    def test_user_friendly_error_messages(self):
        """Test creation of user-friendly error messages."""
        validation_error = ValidationError("assessment_type", "unknown value")
        friendly_msg = create_user_friendly_error_message(validation_error)

        assert "assessment type" in friendly_msg.lower()

        generic_error = ValueError("Some technical error")
        friendly_msg = create_user_friendly_error_message(generic_error)

        assert "try again" in friendly_msg.lower()

    def test_log_error_details(self):
        details = log_error_details(SessionNotFoundError("abc"), {"operation": "submit_answer"})

        assert details["error_type"] == "SessionNotFoundError"
        assert details["context"] == {"operation": "submit_answer"}
        assert details["error_details"] == {"session_id": "abc"}


class TestLogging:
    """Test the logging setup."""

    def test_logger_creation(self):
        """Test loggers are namespaced under the package."""
        assert get_logger("test_module").name == "cnmaturity.test_module"
        assert get_logger("cnmaturity.domain").name == "cnmaturity.domain"

    def test_logging_configuration(self):
        """Test logging setup writes structured records to a file."""
        with tempfile.TemporaryDirectory() as temp_dir:
            log_file = os.path.join(temp_dir, "test.log")
            setup_logging(level="DEBUG", log_file=log_file, structured=True, enable_console=False)
            try:
                get_logger("test").info("Test message")
                for handler in logging.getLogger("cnmaturity").handlers:
                    handler.flush()

                with open(log_file, encoding="utf-8") as f:
                    entry = json.loads(f.readline())
                assert entry["message"] == "Test message"
                assert entry["logger"] == "cnmaturity.test"
            finally:
                setup_logging(level="WARNING", enable_console=False)

    def test_context_logging(self):
        """Test context variables are attached to records."""
        clear_context()
        set_context(session_id="s-1")
        record = logging.LogRecord("cnmaturity.x", logging.INFO, __file__, 1, "hi", None, None)
        context_filter.filter(record)
        clear_context()

        payload = json.loads(StructuredFormatter().format(record))

        assert payload["session_id"] == "s-1"
        assert context_filter.context == {}

    def test_log_context_restores_previous(self):
        clear_context()
        set_context(request_id="r-1")
        with LogContext(operation="score"):
            assert context_filter.context == {"request_id": "r-1", "operation": "score"}
        assert context_filter.context == {"request_id": "r-1"}
        clear_context()

    def test_log_operation_logs_and_reraises(self):
        logger = Mock()

        @log_operation("explode", logger=logger)
        def explode():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            explode()

        logger.debug.assert_called_once_with("Starting explode")
        assert logger.error.call_args.kwargs["exc_info"] is True

    def test_log_operation_reports_completion(self):
        logger = Mock()

        @log_operation("add", logger=logger)
        def add(a, b):
            return a + b

        assert add(1, 2) == 3
        assert logger.info.call_args.args[0].startswith("Completed add in ")


class TestConfiguration:
    """Test centralized configuration management."""

    def test_assessment_defaults(self):
        config = AssessmentConfig()

        assert config.beginner_max == 50
        assert config.intermediate_max == 75
        assert config.default_language == "en"
        assert (config.data_dir / "questions" / "index.json").exists()

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"beginner_max": 80, "intermediate_max": 70},
            {"risk_high_max": 70, "risk_medium_max": 65},
            {"default_language": "fr"},
        ],
    )
    def test_assessment_config_validation(self, kwargs):
        with pytest.raises(ValueError):
            AssessmentConfig(**kwargs)

    def test_debug_not_allowed_in_production(self):
        with pytest.raises(ValueError):
            ApplicationConfig(environment="production", debug=True)

    def test_settings_override(self, clean_env):
        """Test settings override functionality."""
        test_settings = override_settings(
            app_environment="testing", assessment_beginner_max=40
        )

        assert test_settings.is_testing()
        assert test_settings.assessment.beginner_max == 40
        assert get_settings() is test_settings

    def test_settings_from_json_file(self, clean_env, tmp_path):
        config_file = tmp_path / "settings.json"
        config_file.write_text(
            json.dumps(
                {
                    "security": {"session_timeout_minutes": 30},
                    "assessment": {"supported_languages": ["en", "ja", "de"]},
                }
            )
        )

        settings = load_settings_from_file(str(config_file))

        assert settings.security.session_timeout_minutes == 30
        assert settings.assessment.supported_languages == ["en", "ja", "de"]

    def test_settings_file_errors(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings_from_file(str(tmp_path / "missing.json"))

        yaml_file = tmp_path / "settings.yaml"
        yaml_file.write_text("app: {}")
        with pytest.raises(ValueError):
            load_settings_from_file(str(yaml_file))

    def test_environment_info(self, clean_env):
        info = override_settings(app_environment="testing").get_environment_info()

        assert info["environment"] == "testing"
        assert info["languages"] == ["en", "ja"]
