"""
Assessment session state machine.

A session belongs to one respondent. It records answers, derives the
eligible question set from them on demand, and moves through
``not_started -> in_progress -> complete``. Every read and mutation runs
under the session's own re-entrant lock so a double submit from a client
never observes a half-applied answer set.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from ..infrastructure.exceptions import (
    InvalidOptionValueError,
    QuestionNotAnsweredError,
    QuestionNotEligibleError,
)
from .catalog import QuestionCatalog
from .models import Answer, DontKnow, Question, Scored, Selection, SessionState
from .resolver import DependencyResolver, SessionScope


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    session_id: str
    assessment_type: str
    respondent_role: str | None
    categories: tuple[str, ...] | None
    state: SessionState
    answers: dict[str, int]  # question id -> submitted option value
    eligible_question_ids: tuple[str, ...]
    created_at: datetime
    updated_at: datetime
    dropped_question_ids: tuple[str, ...] = field(default=())

    @property
    def is_complete(self) -> bool:
        return self.state == "complete"

    @property
    def answered_count(self) -> int:
        return len(self.answers)


@dataclass(frozen=True, slots=True)
class RevisionResult:
    answer: Answer
    dropped_question_ids: tuple[str, ...]


def selection_for(question: Question, value: int) -> Selection:
    """Map a submitted option value onto the question's declared options."""
    option = question.option_for(value) if not isinstance(value, bool) else None
    if option is None:
        raise InvalidOptionValueError(question.id, value, question.option_values)
    return DontKnow() if option.is_dont_know else Scored(option.value)


class AssessmentSession:
    def __init__(
        self,
        catalog: QuestionCatalog,
        scope: SessionScope,
        resolver: DependencyResolver | None = None,
        session_id: str | None = None,
        clock: Callable[[], datetime] | None = None,
        logger: logging.Logger | None = None,
    ):
        self.catalog = catalog
        self.scope = scope
        self.resolver = resolver or DependencyResolver(catalog)
        self.session_id = session_id or uuid.uuid4().hex
        self._clock = clock or _utcnow
        self.logger = logger or logging.getLogger(__name__)
        self._answers: dict[str, Answer] = {}
        self._lock = threading.RLock()
        self.created_at = self._clock()
        self.updated_at = self.created_at

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    @property
    def answers(self) -> dict[str, Answer]:
        with self._lock:
            return dict(self._answers)

    def eligible_questions(self) -> list[Question]:
        with self._lock:
            return self.resolver.eligible(self._answers, self.scope)

    def eligible_by_category(self) -> dict[str, list[Question]]:
        with self._lock:
            return self.resolver.eligible_by_category(self._answers, self.scope)

    @property
    def state(self) -> SessionState:
        with self._lock:
            if not self.resolver.eligible(self._answers, self.scope):
                return "complete"
            return "in_progress" if self._answers else "not_started"

    @property
    def is_complete(self) -> bool:
        return self.state == "complete"

    def submit_answer(self, question_id: str, value: int) -> Answer:
        """
        Record an answer to a currently eligible question.

        Raises:
            QuestionNotFoundError: Unknown question id
            QuestionNotEligibleError: Already answered, outside the session's
                scope, or waiting on prerequisites
            InvalidOptionValueError: ``value`` is not one of the declared options
        """
        question = self.catalog.get(question_id)
        with self._lock:
            if question_id in self._answers:
                raise QuestionNotEligibleError(question_id, "already answered")
            if not self.scope.admits(question):
                raise QuestionNotEligibleError(question_id, "not part of this assessment")
            if not self.resolver.is_reachable(question, self._answers, self.scope):
                raise QuestionNotEligibleError(question_id, "waiting on prerequisite answers")

            answer = Answer(question_id, selection_for(question, value), self._clock())
            self._answers[question_id] = answer
            self.updated_at = answer.timestamp
            self.logger.debug(
                "Session %s recorded %s=%s", self.session_id, question_id, answer.value
            )
            return answer

    def revise_answer(self, question_id: str, value: int) -> RevisionResult:
        """
        Replace an existing answer and discard answers that lose their prerequisites.

        Pruning repeats until no recorded answer is unreachable, so chains of
        dependents are discarded together.

        Raises:
            QuestionNotFoundError: Unknown question id
            QuestionNotAnsweredError: The question has no answer to revise
            InvalidOptionValueError: ``value`` is not one of the declared options
        """
        question = self.catalog.get(question_id)
        with self._lock:
            if question_id not in self._answers:
                raise QuestionNotAnsweredError(question_id)
            answer = Answer(question_id, selection_for(question, value), self._clock())
            self._answers[question_id] = answer

            dropped: list[str] = []
            while True:
                unreachable = self.resolver.unreachable_answers(self._answers, self.scope)
                if not unreachable:
                    break
                for qid in unreachable:
                    del self._answers[qid]
                    dropped.append(qid)

            self.updated_at = answer.timestamp
            if dropped:
                self.logger.info(
                    "Session %s revision of %s discarded dependent answers: %s",
                    self.session_id,
                    question_id,
                    ", ".join(dropped),
                )
            return RevisionResult(answer, tuple(dropped))

    def reset(self) -> None:
        """Discard every answer, returning the session to its initial state."""
        with self._lock:
            self._answers.clear()
            self.updated_at = self._clock()
            self.logger.info("Session %s reset", self.session_id)

    def to_record(self, dropped: Iterable[str] = ()) -> SessionSnapshot:
        with self._lock:
            eligible = self.resolver.eligible(self._answers, self.scope)
            if not eligible:
                state: SessionState = "complete"
            else:
                state = "in_progress" if self._answers else "not_started"
            categories = self.scope.categories
            return SessionSnapshot(
                session_id=self.session_id,
                assessment_type=self.scope.assessment_type,
                respondent_role=self.scope.respondent_role,
                categories=(
                    tuple(c for c in self.catalog.category_ids if c in categories)
                    if categories is not None
                    else None
                ),
                state=state,
                answers={qid: a.value for qid, a in self._answers.items()},
                eligible_question_ids=tuple(q.id for q in eligible),
                created_at=self.created_at,
                updated_at=self.updated_at,
                dropped_question_ids=tuple(dropped),
            )
