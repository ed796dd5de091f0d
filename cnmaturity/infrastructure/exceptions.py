"""
Custom exception classes for the cloud native maturity assessment engine.

Provides structured error handling with user-friendly messages and proper
error categorization for catalog loading, session operations and scoring.
"""

from __future__ import annotations

from typing import Any


class MaturityAssessmentError(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        user_message: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.user_message = user_message or self._get_default_user_message()

    def _get_default_user_message(self) -> str:
        """Provide a user-friendly version of the error message."""
        return "An unexpected error occurred. Please try again."

    def __str__(self) -> str:
        return f"{self.__class__.__name__}: {self.message}"


class ValidationError(MaturityAssessmentError):
    """Raised when input validation fails."""

    def __init__(
        self, field: str, message: str, value: Any = None, details: dict[str, Any] | None = None
    ):
        self.field = field
        self.value = value
        super().__init__(
            message=f"Validation failed for field '{field}': {message}",
            details=details or {"field": field, "value": value},
            user_message=f"Invalid {field.replace('_', ' ')}: {message}",
        )

    def _get_default_user_message(self) -> str:
        return f"Please check your input for {self.field.replace('_', ' ')} and try again."


class MultipleValidationError(MaturityAssessmentError):
    """Raised when multiple validation errors occur."""

    def __init__(self, errors: list[ValidationError]):
        self.validation_errors = errors
        messages = [f"{e.field}: {e.message}" for e in errors]
        super().__init__(
            message=f"Multiple validation errors: {'; '.join(messages)}",
            details={
                "errors": [
                    {"field": e.field, "message": e.message, "value": e.value} for e in errors
                ]
            },
            user_message="Please correct the following errors and try again.",
        )


# ---------------------------------------------------------------------------
# Catalog errors: fatal at load time, the service refuses to start
# ---------------------------------------------------------------------------


class CatalogError(MaturityAssessmentError):
    """Raised when the question catalog cannot be loaded."""

    def __init__(
        self,
        message: str,
        question_id: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.question_id = question_id
        super().__init__(
            message=message,
            details=details or {"question_id": question_id},
            user_message="The question bank is invalid. Please contact the administrator.",
        )


class DuplicateQuestionIdError(CatalogError):
    """Raised when two questions share an id."""

    def __init__(self, question_id: str, categories: tuple[str, str] | None = None):
        where = f" (in {categories[0]} and {categories[1]})" if categories else ""
        super().__init__(
            message=f"Duplicate question id '{question_id}'{where}",
            question_id=question_id,
            details={"question_id": question_id, "categories": list(categories or ())},
        )


class DanglingDependencyError(CatalogError):
    """Raised when a dependency references a question that does not exist."""

    def __init__(self, question_id: str, missing_id: str):
        self.missing_id = missing_id
        super().__init__(
            message=f"Question '{question_id}' depends on unknown question '{missing_id}'",
            question_id=question_id,
            details={"question_id": question_id, "missing_id": missing_id},
        )


class DependencyCycleError(CatalogError):
    """Raised when question dependencies form a cycle."""

    def __init__(self, cycle: list[str]):
        self.cycle = cycle
        super().__init__(
            message=f"Dependency cycle detected: {' -> '.join(cycle)}",
            question_id=cycle[0] if cycle else None,
            details={"cycle": cycle},
        )


class InvalidQuestionError(CatalogError):
    """Raised when a question definition is malformed."""


class IssueRuleError(CatalogError):
    """Raised when a critical-issue rule cannot be bound to the catalog."""

    def __init__(self, rule_id: str, message: str):
        self.rule_id = rule_id
        super().__init__(
            message=f"Issue rule '{rule_id}': {message}",
            details={"rule_id": rule_id},
        )


# ---------------------------------------------------------------------------
# Lookup errors
# ---------------------------------------------------------------------------


class NotFoundError(MaturityAssessmentError):
    """Raised when a requested item does not exist."""

    def _get_default_user_message(self) -> str:
        return "The requested item could not be found."


class QuestionNotFoundError(NotFoundError):
    """Raised when a question id is unknown to the catalog."""

    def __init__(self, question_id: str):
        self.question_id = question_id
        super().__init__(
            message=f"Question with ID {question_id} not found",
            details={"question_id": question_id},
        )

    def _get_default_user_message(self) -> str:
        return "The selected question could not be found. Please refresh and try again."


class CategoryNotFoundError(NotFoundError):
    """Raised when a category id is unknown to the catalog."""

    def __init__(self, category: str):
        self.category = category
        super().__init__(
            message=f"Category {category} not found",
            details={"category": category},
        )


class KnowledgeNotFoundError(NotFoundError):
    """Raised when no knowledge article exists for a question."""

    def __init__(self, question_id: str):
        self.question_id = question_id
        super().__init__(
            message=f"No knowledge article for question {question_id}",
            details={"question_id": question_id},
        )

    def _get_default_user_message(self) -> str:
        return "No learning resources are available for this question yet."


# ---------------------------------------------------------------------------
# Session errors: recoverable, returned to the caller
# ---------------------------------------------------------------------------


class SessionError(MaturityAssessmentError):
    """Raised when session operations fail."""

    def __init__(
        self,
        message: str,
        session_id: str | None = None,
        details: dict[str, Any] | None = None,
        user_message: str | None = None,
    ):
        self.session_id = session_id
        super().__init__(
            message=message,
            details=details or {"session_id": session_id},
            user_message=user_message,
        )

    def _get_default_user_message(self) -> str:
        return "Session error occurred. Please start a new assessment and try again."


class SessionNotFoundError(SessionError):
    """Raised when a session is not found."""

    def __init__(self, session_id: str):
        super().__init__(message=f"Session with ID {session_id} not found", session_id=session_id)

    def _get_default_user_message(self) -> str:
        return "The assessment session could not be found. Please start a new assessment."


class SessionExpiredError(SessionNotFoundError):
    """Raised when a session existed but its lifetime has elapsed."""

    def _get_default_user_message(self) -> str:
        return "Your assessment session has expired. Please start a new assessment."


class AnswerError(MaturityAssessmentError):
    """Raised when an answer cannot be recorded."""

    def __init__(
        self,
        message: str,
        question_id: str,
        details: dict[str, Any] | None = None,
    ):
        self.question_id = question_id
        super().__init__(message=message, details=details or {"question_id": question_id})


class QuestionNotEligibleError(AnswerError):
    """Raised when answering a question that is not currently eligible."""

    def __init__(self, question_id: str, reason: str = "not currently eligible"):
        self.reason = reason
        super().__init__(
            message=f"Question {question_id} is {reason}",
            question_id=question_id,
            details={"question_id": question_id, "reason": reason},
        )

    def _get_default_user_message(self) -> str:
        return "This question cannot be answered right now. Please refresh the question list."


class QuestionNotAnsweredError(QuestionNotEligibleError):
    """Raised when revising a question that has no recorded answer."""

    def __init__(self, question_id: str):
        super().__init__(question_id, reason="not answered yet")

    def _get_default_user_message(self) -> str:
        return "Only questions you have already answered can be changed."


class InvalidOptionValueError(AnswerError):
    """Raised when a value is not one of the question's declared options."""

    def __init__(self, question_id: str, value: Any, allowed: list[int] | None = None):
        self.value = value
        self.allowed = allowed or []
        super().__init__(
            message=f"Value {value!r} is not a valid option for question {question_id}",
            question_id=question_id,
            details={"question_id": question_id, "value": value, "allowed": self.allowed},
        )

    def _get_default_user_message(self) -> str:
        return "Please select one of the listed answers."


class NoScoreAvailableError(MaturityAssessmentError):
    """Raised by callers that require a numeric score when none can be computed."""

    def __init__(self, session_id: str | None = None):
        self.session_id = session_id
        super().__init__(
            message=f"No score available for session {session_id}",
            details={"session_id": session_id},
            user_message="Answer at least one question to see a maturity score.",
        )


class ConfigurationError(MaturityAssessmentError):
    """Raised when configuration is invalid."""

    def __init__(
        self,
        message: str,
        config_key: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.config_key = config_key
        super().__init__(
            message=message,
            details=details or {"config_key": config_key},
            user_message="Configuration error. Please check your settings.",
        )


def create_user_friendly_error_message(error: Exception) -> str:
    """
    Create a user-friendly error message from any exception.

    Args:
        error: The exception to convert

    Returns:
        User-friendly error message

    Example:
        >>> error = ValidationError("assessment_type", "unknown value")
        >>> message = create_user_friendly_error_message(error)
        >>> print(message)  # "Invalid assessment type: unknown value"
    """
    if isinstance(error, MaturityAssessmentError):
        return error.user_message

    error_type = type(error).__name__
    messages = {
        "ValueError": "Invalid input provided. Please check your data and try again.",
        "KeyError": "Required information is missing. Please check your input.",
        "TypeError": "Incorrect data type provided. Please check your input format.",
    }
    return messages.get(
        error_type, "An unexpected error occurred. Please try again or contact support."
    )


def log_error_details(error: Exception, context: dict[str, Any] | None = None) -> dict[str, Any]:
    """
    Create structured error details for logging.

    Args:
        error: The exception to log
        context: Additional context information

    Returns:
        Dictionary with structured error details

    Example:
        >>> error = SessionNotFoundError("abc123")
        >>> details = log_error_details(error, {"operation": "submit_answer"})
        >>> print(details["error_type"])  # "SessionNotFoundError"
    """
    details = {
        "error_type": type(error).__name__,
        "error_message": str(error),
        "context": context or {},
    }

    if isinstance(error, MaturityAssessmentError):
        details.update({"user_message": error.user_message, "error_details": error.details})

    return details
