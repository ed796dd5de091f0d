from __future__ import annotations

import pytest
from factories import branching_modules, module, question

from cnmaturity.domain.catalog import QuestionCatalog
from cnmaturity.domain.models import Answer, DontKnow, Scored
from cnmaturity.domain.resolver import (
    DependencyResolver,
    SessionScope,
    default_category_scope,
)


def _answers(**values):
    return {
        qid: Answer(qid, DontKnow() if value == -1 else Scored(value))
        for qid, value in values.items()
    }


@pytest.fixture
def resolver():
    return DependencyResolver(QuestionCatalog.load(branching_modules()))


class TestEligibility:
    """Dependency gating of the eligible question set."""

    def test_initial_set_is_base_questions(self, resolver):
        eligible = resolver.eligible({}, SessionScope("quick"))

        assert [q.id for q in eligible] == ["q1", "q4"]

    def test_meeting_threshold_unlocks_dependent(self, resolver):
        eligible = resolver.eligible(_answers(q1=66), SessionScope("quick"))

        assert [q.id for q in eligible] == ["q2", "q4"]

    def test_below_threshold_keeps_dependent_hidden(self, resolver):
        eligible = resolver.eligible(_answers(q1=0), SessionScope("quick"))

        assert [q.id for q in eligible] == ["q4"]

    def test_threshold_is_inclusive(self, resolver):
        eligible = resolver.eligible(_answers(q1=33), SessionScope("quick"))

        assert "q2" in [q.id for q in eligible]

    def test_dont_know_never_satisfies_dependency(self, resolver):
        eligible = resolver.eligible(_answers(q1=-1), SessionScope("quick"))

        assert [q.id for q in eligible] == ["q4"]

    def test_dont_know_fails_even_zero_threshold(self, resolver):
        scope = SessionScope("comprehensive")

        eligible = resolver.eligible(_answers(q5=-1), scope)

        assert "q6" not in [q.id for q in eligible]

    def test_chain_unlocks_step_by_step(self, resolver):
        scope = SessionScope("quick")

        assert [q.id for q in resolver.eligible(_answers(q1=100, q2=100), scope)] == [
            "q3",
            "q4",
        ]

    def test_repeated_calls_are_identical(self, resolver):
        answers = _answers(q1=66)
        scope = SessionScope("comprehensive")

        first = [q.id for q in resolver.eligible(answers, scope)]
        second = [q.id for q in resolver.eligible(answers, scope)]

        assert first == second

    def test_answered_questions_excluded(self, resolver):
        eligible = resolver.eligible(_answers(q4=100), SessionScope("quick"))

        assert [q.id for q in eligible] == ["q1"]

    def test_all_prerequisites_must_hold(self):
        resolver = DependencyResolver(
            QuestionCatalog.load(
                [
                    module(
                        "foo",
                        question("a"),
                        question("b", base=False, deps=[("a", 33), ("c", 66)]),
                        question("c"),
                    )
                ]
            )
        )
        scope = SessionScope("quick")

        def eligible(**values):
            return [q.id for q in resolver.eligible(_answers(**values), scope)]

        assert eligible(a=100) == ["c"]
        assert eligible(a=100, c=33) == []
        assert eligible(a=100, c=66) == ["b"]
        assert eligible(a=0, c=100) == []


class TestScopeFilters:
    """Assessment type, role relevance and category filters."""

    def test_optional_questions_excluded_from_quick(self, resolver):
        eligible = resolver.eligible({}, SessionScope("quick"))

        assert "q5" not in [q.id for q in eligible]

    def test_optional_questions_included_in_standard(self, resolver):
        eligible = resolver.eligible({}, SessionScope("standard"))

        assert [q.id for q in eligible] == ["q1", "q4", "q5"]

    def test_dependent_of_filtered_question_stays_ineligible(self, resolver):
        scope = SessionScope("quick")

        # q5 is out of scope for quick, so q6 can never open
        assert not resolver.is_reachable(resolver.catalog.get("q6"), {}, scope)
        assert "q6" not in [q.id for q in resolver.eligible(_answers(q1=0, q4=0), scope)]

    @pytest.mark.parametrize(
        ("role", "visible"),
        [("executive", False), ("practitioner", True), (None, True), ("architect", True)],
    )
    def test_role_relevance(self, role, visible):
        catalog = QuestionCatalog.load(
            [
                module(
                    "foo",
                    question("q1", roles={"executive": "none", "practitioner": "high"}),
                    question("q2"),
                )
            ]
        )
        resolver = DependencyResolver(catalog)

        eligible = [q.id for q in resolver.eligible({}, SessionScope("quick", role))]

        assert ("q1" in eligible) is visible
        assert "q2" in eligible

    def test_category_scope_restricts_questions(self):
        catalog = QuestionCatalog.load(
            [module("foo", question("f1")), module("bar", question("b1", "bar"))]
        )
        resolver = DependencyResolver(catalog)
        scope = SessionScope("quick", categories=frozenset({"bar"}))

        assert [q.id for q in resolver.eligible({}, scope)] == ["b1"]
        assert resolver.admitted_categories(scope) == ["bar"]

    def test_grouped_in_category_order(self):
        catalog = QuestionCatalog.load(
            [
                module("bar", question("b1", "bar"), question("b2", "bar")),
                module("foo", question("f1")),
            ]
        )
        resolver = DependencyResolver(catalog)

        grouped = resolver.eligible_by_category({}, SessionScope("quick"))

        assert list(grouped) == ["bar", "foo"]
        assert [q.id for q in grouped["bar"]] == ["b1", "b2"]


class TestUnreachableAnswers:
    def test_reports_answers_that_lost_prerequisites(self, resolver):
        answers = _answers(q1=0, q2=100)

        assert resolver.unreachable_answers(answers, SessionScope("quick")) == ["q2"]

    def test_nothing_unreachable_when_gates_hold(self, resolver):
        answers = _answers(q1=66, q2=100, q3=0)

        assert resolver.unreachable_answers(answers, SessionScope("quick")) == []


class TestDefaultCategoryScope:
    def test_comprehensive_is_unrestricted(self):
        assert default_category_scope("comprehensive", ["foo"]) is None

    def test_quick_keeps_listed_categories(self):
        scope = default_category_scope(
            "quick", ["foundations_culture", "dora_metrics", "observability"]
        )

        assert scope == frozenset({"foundations_culture"})

    def test_standard_extends_quick(self):
        scope = default_category_scope(
            "standard", ["foundations_culture", "dora_metrics", "operations_resilience"]
        )

        assert scope == frozenset({"foundations_culture", "dora_metrics"})

    def test_unlisted_categories_never_restricted(self):
        assert default_category_scope("quick", ["foo", "bar"]) == frozenset({"foo", "bar"})
