from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

import pytest
from factories import branching_modules, module, question

from cnmaturity.domain.catalog import QuestionCatalog
from cnmaturity.domain.models import DontKnow, Scored
from cnmaturity.domain.resolver import SessionScope
from cnmaturity.domain.services import ScoringService
from cnmaturity.domain.session import AssessmentSession
from cnmaturity.infrastructure.exceptions import (
    InvalidOptionValueError,
    QuestionNotAnsweredError,
    QuestionNotEligibleError,
    QuestionNotFoundError,
)


class FakeClock:
    def __init__(self):
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def catalog():
    return QuestionCatalog.load(branching_modules())


@pytest.fixture
def session(catalog):
    return AssessmentSession(catalog, SessionScope("quick"), session_id="s1")


class TestSessionLifecycle:
    """State transitions from not_started to complete."""

    def test_new_session_not_started(self, session):
        assert session.state == "not_started"
        assert [q.id for q in session.eligible_questions()] == ["q1", "q4"]

    def test_first_answer_moves_to_in_progress(self, session):
        session.submit_answer("q1", 66)

        assert session.state == "in_progress"
        assert [q.id for q in session.eligible_questions()] == ["q2", "q4"]

    def test_complete_when_nothing_left(self, session):
        session.submit_answer("q1", 0)
        session.submit_answer("q4", 100)

        assert session.state == "complete"
        assert session.is_complete
        assert session.eligible_questions() == []

    def test_all_dont_know_completes_without_score(self, catalog, session):
        session.submit_answer("q1", -1)
        session.submit_answer("q4", -1)

        assert session.is_complete
        result = ScoringService(catalog).score(session.answers)
        assert result.overall is None

    def test_empty_scope_is_complete_from_start(self):
        catalog = QuestionCatalog.load(
            [module("foo", question("q1", assessment_type="comprehensive"))]
        )
        session = AssessmentSession(catalog, SessionScope("quick"))

        assert session.state == "complete"

    def test_generated_session_ids_are_unique(self, catalog):
        first = AssessmentSession(catalog, SessionScope("quick"))
        second = AssessmentSession(catalog, SessionScope("quick"))

        assert first.session_id != second.session_id


class TestSubmitAnswer:
    def test_records_scored_and_dont_know(self, session):
        scored = session.submit_answer("q1", 66)
        unknown = session.submit_answer("q4", -1)

        assert scored.selection == Scored(66)
        assert unknown.selection == DontKnow()
        assert session.answers["q4"].is_dont_know

    def test_unknown_question(self, session):
        with pytest.raises(QuestionNotFoundError):
            session.submit_answer("ghost", 0)

    def test_gated_question_not_eligible(self, session):
        with pytest.raises(QuestionNotEligibleError) as exc_info:
            session.submit_answer("q2", 100)

        assert exc_info.value.question_id == "q2"

    def test_out_of_scope_question_not_eligible(self, session):
        with pytest.raises(QuestionNotEligibleError):
            session.submit_answer("q5", 100)

    def test_double_submit_rejected(self, session):
        session.submit_answer("q1", 66)

        with pytest.raises(QuestionNotEligibleError):
            session.submit_answer("q1", 100)
        assert session.answers["q1"].value == 66

    @pytest.mark.parametrize("value", [50, 101, -2, True])
    def test_undeclared_option_rejected(self, session, value):
        with pytest.raises(InvalidOptionValueError):
            session.submit_answer("q1", value)

        assert session.answers == {}

    def test_dont_know_rejected_without_option(self):
        catalog = QuestionCatalog.load([module("foo", question("q1", dont_know=False))])
        session = AssessmentSession(catalog, SessionScope("quick"))

        with pytest.raises(InvalidOptionValueError):
            session.submit_answer("q1", -1)

    def test_timestamps_follow_clock(self, catalog):
        clock = FakeClock()
        session = AssessmentSession(catalog, SessionScope("quick"), clock=clock)
        clock.advance(minutes=5)

        answer = session.submit_answer("q1", 0)

        assert answer.timestamp == clock.now
        assert session.updated_at == clock.now
        assert session.created_at == clock.now - timedelta(minutes=5)

    def test_concurrent_double_submit_applies_once(self, session):
        barrier = threading.Barrier(8)
        outcomes = []

        def submit():
            barrier.wait()
            try:
                session.submit_answer("q1", 66)
                outcomes.append("ok")
            except QuestionNotEligibleError:
                outcomes.append("rejected")

        threads = [threading.Thread(target=submit) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert outcomes.count("ok") == 1
        assert outcomes.count("rejected") == 7


class TestReviseAnswer:
    """Revisions and the cascade through dependent answers."""

    def test_revision_drops_dependency_chain(self, session):
        session.submit_answer("q1", 66)
        session.submit_answer("q2", 100)
        session.submit_answer("q3", 0)

        result = session.revise_answer("q1", 0)

        assert result.dropped_question_ids == ("q2", "q3")
        assert set(session.answers) == {"q1"}
        assert session.answers["q1"].value == 0

    def test_revision_keeping_gate_open_drops_nothing(self, session):
        session.submit_answer("q1", 66)
        session.submit_answer("q2", 100)

        result = session.revise_answer("q1", 100)

        assert result.dropped_question_ids == ()
        assert set(session.answers) == {"q1", "q2"}

    def test_revision_to_dont_know_closes_gate(self, session):
        session.submit_answer("q1", 66)
        session.submit_answer("q2", 100)

        result = session.revise_answer("q1", -1)

        assert result.dropped_question_ids == ("q2",)
        assert "q2" not in [q.id for q in session.eligible_questions()]

    def test_revise_unanswered_question(self, session):
        with pytest.raises(QuestionNotAnsweredError):
            session.revise_answer("q1", 0)

    def test_revise_invalid_value_leaves_answer(self, session):
        session.submit_answer("q1", 66)

        with pytest.raises(InvalidOptionValueError):
            session.revise_answer("q1", 42)
        assert session.answers["q1"].value == 66

    def test_dropped_question_can_be_answered_again(self, session):
        session.submit_answer("q1", 66)
        session.submit_answer("q2", 100)
        session.revise_answer("q1", 0)
        session.revise_answer("q1", 100)

        session.submit_answer("q2", 0)

        assert session.answers["q2"].value == 0


class TestRecord:
    def test_snapshot_reflects_session(self, session):
        session.submit_answer("q1", 66)

        record = session.to_record(dropped=["q9"])

        assert record.session_id == "s1"
        assert record.assessment_type == "quick"
        assert record.state == "in_progress"
        assert record.answers == {"q1": 66}
        assert record.eligible_question_ids == ("q2", "q4")
        assert record.dropped_question_ids == ("q9",)
        assert record.answered_count == 1
        assert not record.is_complete

    def test_snapshot_categories_in_catalog_order(self):
        catalog = QuestionCatalog.load(
            [module("foo", question("f1")), module("bar", question("b1", "bar"))]
        )
        scope = SessionScope("quick", categories=frozenset({"bar", "foo"}))

        record = AssessmentSession(catalog, scope).to_record()

        assert record.categories == ("foo", "bar")

    def test_reset_clears_answers(self, session):
        session.submit_answer("q1", 66)
        session.submit_answer("q2", 100)

        session.reset()

        assert session.answers == {}
        assert session.state == "not_started"
