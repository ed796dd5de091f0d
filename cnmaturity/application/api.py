"""
Application API layer with error handling, validation and logging.

This module is the single entry point the web layer (or any other host)
uses: load the question bank, run sessions, score them and look up
supporting content. Domain errors propagate unchanged; anything unexpected
is wrapped into a MaturityAssessmentError with a user-facing message.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..domain.catalog import QuestionCatalog
from ..domain.issues import IssueEngine
from ..domain.knowledge import KnowledgeBase, ResolvedArticle
from ..domain.models import CriticalIssue, Question, QuestionModule
from ..domain.resolver import DependencyResolver, SessionScope, default_category_scope
from ..domain.schemas import AnswerInput, SessionCreationInput, validate_input
from ..domain.services import MaturityThresholds, ScoreResult, ScoringService
from ..domain.session import AssessmentSession, SessionSnapshot
from ..infrastructure import sources
from ..infrastructure.config import AssessmentConfig, get_settings
from ..infrastructure.exceptions import (
    CategoryNotFoundError,
    MaturityAssessmentError,
    MultipleValidationError,
    ValidationError,
    create_user_friendly_error_message,
    log_error_details,
)
from ..infrastructure.logging import LogContext, get_logger, log_operation
from ..infrastructure.session_store import SessionRegistry

logger = get_logger(__name__)


def _raise_validation_errors(errors) -> None:
    failures = [ValidationError(e.field, e.message, e.value) for e in errors]
    if len(failures) == 1:
        raise failures[0]
    raise MultipleValidationError(failures)


@log_operation("load_catalog")
def load_catalog(modules: Iterable[QuestionModule | Mapping[str, Any]]) -> QuestionCatalog:
    """
    Merge question modules into a validated catalog.

    Args:
        modules: Category modules in declaration order

    Returns:
        Read-only QuestionCatalog

    Raises:
        CatalogError: Duplicate ids, dangling references, cycles or malformed
            questions; a host must refuse to serve with a broken catalog

    Example:
        >>> catalog = load_catalog(sources.load_question_modules())
        >>> len(catalog) > 0
        True
    """
    return QuestionCatalog.load(modules, logger=get_logger("catalog"))


@dataclass(slots=True)
class RevisionOutcome:
    snapshot: SessionSnapshot
    dropped_question_ids: tuple[str, ...]


class AssessmentService:
    """
    Facade over the assessment engine.

    Holds the shared read-only content (catalog, knowledge, issue rules) and
    the registry of live sessions.

    Example:
        >>> service = AssessmentService.from_data_dir()
        >>> snapshot = service.create_session("quick", "practitioner")
        >>> questions = service.get_eligible_questions(snapshot.session_id)
    """

    def __init__(
        self,
        catalog: QuestionCatalog,
        config: AssessmentConfig | None = None,
        registry: SessionRegistry | None = None,
        knowledge: KnowledgeBase | None = None,
        issues: IssueEngine | None = None,
    ):
        self.catalog = catalog
        self.config = config or get_settings().assessment
        self.registry = registry or SessionRegistry()
        self.resolver = DependencyResolver(catalog, logger=get_logger("resolver"))
        self.scoring = ScoringService(
            catalog, MaturityThresholds.from_config(self.config), logger=get_logger("scoring")
        )
        self.knowledge = knowledge or KnowledgeBase({}, {}, self.config.default_language)
        self.issues = issues or IssueEngine(
            [], catalog, max_per_category=self.config.max_issues_per_category
        )

    @classmethod
    @log_operation("load_content")
    def from_data_dir(
        cls,
        data_dir: str | Path | None = None,
        config: AssessmentConfig | None = None,
        registry: SessionRegistry | None = None,
    ) -> AssessmentService:
        """
        Build the service from the bundled content directory.

        Raises:
            CatalogError: Any content file is missing, malformed or inconsistent
        """
        config = config or get_settings().assessment
        data_dir = data_dir or config.data_dir

        catalog = load_catalog(sources.load_question_modules(data_dir))
        knowledge = KnowledgeBase.load(
            sources.load_knowledge_modules(data_dir),
            catalog,
            default_language=config.default_language,
            logger=get_logger("knowledge"),
        )
        issues = IssueEngine.from_raw(
            sources.load_issue_rules(data_dir),
            catalog,
            max_per_category=config.max_issues_per_category,
            logger=get_logger("issues"),
        )
        return cls(catalog, config=config, registry=registry, knowledge=knowledge, issues=issues)

    # -- sessions ----------------------------------------------------------

    @log_operation("create_session")
    def create_session(
        self,
        assessment_type: str,
        respondent_role: str | None = None,
        categories: list[str] | None = None,
    ) -> SessionSnapshot:
        """
        Start a new assessment session.

        Args:
            assessment_type: ``quick``, ``standard`` or ``comprehensive``
            respondent_role: ``executive``, ``manager``, ``practitioner`` or None
                for no role filtering
            categories: Optional explicit category scope

        Raises:
            ValidationError: If input data is invalid
            CategoryNotFoundError: If a requested category does not exist
        """
        validation_result = validate_input(
            SessionCreationInput,
            {
                "assessment_type": assessment_type,
                "respondent_role": respondent_role,
                "categories": categories,
            },
        )
        if not validation_result.success:
            error_msg = "; ".join(f"{e.field}: {e.message}" for e in validation_result.errors)
            logger.warning(f"Session creation validation failed: {error_msg}")
            _raise_validation_errors(validation_result.errors)
        data = validation_result.data or {}

        if data["categories"] is not None:
            for category in data["categories"]:
                self.catalog.category(category)
            scope_categories: frozenset[str] | None = frozenset(data["categories"])
        elif self.config.apply_category_scope:
            scope_categories = default_category_scope(
                data["assessment_type"], self.catalog.category_ids
            )
        else:
            scope_categories = None

        scope = SessionScope(
            assessment_type=data["assessment_type"],
            respondent_role=data["respondent_role"],
            categories=scope_categories,
        )
        self.cleanup_expired_sessions()
        session = AssessmentSession(
            self.catalog, scope, resolver=self.resolver, logger=get_logger("session")
        )
        session_id = self.registry.create(session)
        with LogContext(session_id=session_id, assessment_type=scope.assessment_type):
            logger.info(
                f"Created {scope.assessment_type} session {session_id} "
                f"for role {scope.respondent_role or 'any'}"
            )
        return session.to_record()

    def get_session(self, session_id: str) -> AssessmentSession:
        """
        Raises:
            SessionNotFoundError: Unknown or expired session
        """
        return self.registry.get(session_id)

    def get_state(self, session_id: str) -> SessionSnapshot:
        return self.get_session(session_id).to_record()

    @log_operation("get_eligible_questions")
    def get_eligible_questions(self, session_id: str) -> list[Question]:
        """Eligible, unanswered questions grouped by category in declaration order."""
        return self.get_session(session_id).eligible_questions()

    @log_operation("submit_answer")
    def submit_answer(self, session_id: str, question_id: str, value: int) -> SessionSnapshot:
        """
        Record an answer and return the resulting session state.

        Raises:
            SessionNotFoundError: Unknown or expired session
            QuestionNotFoundError: Unknown question
            QuestionNotEligibleError: The question is not currently eligible
            InvalidOptionValueError: ``value`` is not a declared option
        """
        validation_result = validate_input(
            AnswerInput, {"question_id": question_id, "value": value}
        )
        if not validation_result.success:
            _raise_validation_errors(validation_result.errors)
        value = (validation_result.data or {}).get("value", value)

        with LogContext(session_id=session_id, question_id=question_id):
            session = self.get_session(session_id)
            try:
                with session.lock:
                    session.submit_answer(question_id, value)
                    return session.to_record()
            except Exception as e:
                error_details = log_error_details(
                    e, {"session_id": session_id, "question_id": question_id, "value": value}
                )
                logger.warning("Answer rejected", extra=error_details)

                if isinstance(e, MaturityAssessmentError):
                    raise

                raise MaturityAssessmentError(
                    f"Failed to record answer for {question_id}: {str(e)}",
                    details=error_details,
                    user_message=create_user_friendly_error_message(e),
                ) from e

    @log_operation("revise_answer")
    def revise_answer(self, session_id: str, question_id: str, value: int) -> RevisionOutcome:
        """
        Change an existing answer; dependents that lose their prerequisites
        are discarded together with their answers.

        Raises:
            SessionNotFoundError: Unknown or expired session
            QuestionNotAnsweredError: The question was never answered
            InvalidOptionValueError: ``value`` is not a declared option
        """
        validation_result = validate_input(
            AnswerInput, {"question_id": question_id, "value": value}
        )
        if not validation_result.success:
            _raise_validation_errors(validation_result.errors)
        value = (validation_result.data or {}).get("value", value)

        with LogContext(session_id=session_id, question_id=question_id):
            session = self.get_session(session_id)
            try:
                with session.lock:
                    result = session.revise_answer(question_id, value)
                    snapshot = session.to_record(dropped=result.dropped_question_ids)
            except Exception as e:
                error_details = log_error_details(
                    e, {"session_id": session_id, "question_id": question_id, "value": value}
                )
                logger.warning("Revision rejected", extra=error_details)

                if isinstance(e, MaturityAssessmentError):
                    raise

                raise MaturityAssessmentError(
                    f"Failed to revise answer for {question_id}: {str(e)}",
                    details=error_details,
                    user_message=create_user_friendly_error_message(e),
                ) from e

        return RevisionOutcome(snapshot, result.dropped_question_ids)

    @log_operation("get_score")
    def get_score(self, session_id: str) -> ScoreResult:
        """
        Score a session from its recorded answers.

        ``overall`` is None when no scored answer exists; callers must branch
        on it (or use ``ScoreResult.require_overall``).
        """
        session = self.get_session(session_id)
        with session.lock:
            answers = session.answers
        categories = self.resolver.admitted_categories(session.scope)
        return self.scoring.score(answers, categories=categories, session_id=session_id)

    def is_complete(self, session_id: str) -> bool:
        return self.get_session(session_id).is_complete

    @log_operation("reset_session")
    def reset_session(self, session_id: str) -> SessionSnapshot:
        session = self.get_session(session_id)
        with session.lock:
            session.reset()
            return session.to_record()

    @log_operation("delete_session")
    def delete_session(self, session_id: str) -> None:
        self.registry.delete(session_id)

    def cleanup_expired_sessions(self) -> int:
        return self.registry.cleanup_expired()

    @log_operation("get_critical_issues")
    def get_critical_issues(self, session_id: str) -> list[CriticalIssue]:
        session = self.get_session(session_id)
        return self.issues.evaluate(session.answers)

    # -- content -----------------------------------------------------------

    def get_question(self, question_id: str) -> Question:
        return self.catalog.get(question_id)

    def get_knowledge(self, question_id: str, language: str | None = None) -> ResolvedArticle:
        self.catalog.get(question_id)
        return self.knowledge.article(question_id, language or self.config.default_language)

    def knowledge_for_category(self, category: str) -> list[str]:
        if category not in self.catalog.category_ids:
            raise CategoryNotFoundError(category)
        return self.knowledge.for_category(category)
