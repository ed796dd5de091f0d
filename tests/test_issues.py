from __future__ import annotations

import pytest
from factories import module, question

from cnmaturity.domain.catalog import QuestionCatalog
from cnmaturity.domain.issues import IssueEngine, in_band, limit_issues_per_category
from cnmaturity.domain.models import Answer, CriticalIssue, DontKnow, Scored
from cnmaturity.infrastructure import sources
from cnmaturity.infrastructure.exceptions import CatalogError, IssueRuleError


def _answers(**values):
    return {
        qid: Answer(qid, DontKnow() if value == -1 else Scored(value))
        for qid, value in values.items()
    }


def _rule(rule_id, questions, severity=2, category="foo", **extra):
    return {
        "id": rule_id,
        "categoryId": category,
        "questionIds": list(questions),
        "severity": severity,
        "text": {"en": f"Issue {rule_id}", "ja": f"課題 {rule_id}"},
        **extra,
    }


@pytest.fixture
def catalog():
    return QuestionCatalog.load(
        [
            module("foo", question("q1"), question("q2"), question("q3")),
            module("bar", question("b1", "bar")),
        ]
    )


class TestBands:
    @pytest.mark.parametrize(
        ("value", "band"),
        [(0, "low"), (33, "low"), (34, "mid"), (66, "mid"), (67, "high"), (100, "high")],
    )
    def test_band_edges(self, value, band):
        assert in_band(value, band)
        for other in {"low", "mid", "high"} - {band}:
            assert not in_band(value, other)


class TestIssueEngine:
    """Rule matching over recorded answers."""

    def test_low_answer_triggers_rule(self, catalog):
        engine = IssueEngine.from_raw([_rule("r1", ["q1"])], catalog)

        issues = engine.evaluate(_answers(q1=0))

        assert [i.rule_id for i in issues] == ["r1"]
        assert issues[0].text["en"] == "Issue r1"

    def test_high_answer_does_not_trigger(self, catalog):
        engine = IssueEngine.from_raw([_rule("r1", ["q1"])], catalog)

        assert engine.evaluate(_answers(q1=100)) == []

    def test_dont_know_never_triggers(self, catalog):
        engine = IssueEngine.from_raw([_rule("r1", ["q1"])], catalog)

        assert engine.evaluate(_answers(q1=-1)) == []

    def test_unanswered_questions_never_trigger(self, catalog):
        engine = IssueEngine.from_raw([_rule("r1", ["q1"], match="all")], catalog)

        assert engine.evaluate({}) == []

    def test_match_any_versus_all(self, catalog):
        engine = IssueEngine.from_raw(
            [
                _rule("any", ["q1", "q2"]),
                _rule("all", ["q1", "q2"], match="all"),
            ],
            catalog,
        )

        assert [i.rule_id for i in engine.evaluate(_answers(q1=0, q2=100))] == ["any"]
        assert [i.rule_id for i in engine.evaluate(_answers(q1=0, q2=33))] == ["any", "all"]

    def test_all_ignores_dont_know_answers(self, catalog):
        engine = IssueEngine.from_raw([_rule("all", ["q1", "q2"], match="all")], catalog)

        assert [i.rule_id for i in engine.evaluate(_answers(q1=0, q2=-1))] == ["all"]

    def test_mid_band_rule(self, catalog):
        engine = IssueEngine.from_raw([_rule("mid", ["q1"], band="mid")], catalog)

        assert engine.evaluate(_answers(q1=66))
        assert not engine.evaluate(_answers(q1=33))

    def test_sorted_by_severity_then_declaration(self, catalog):
        engine = IssueEngine.from_raw(
            [
                _rule("minor", ["q1"], severity=1),
                _rule("major-a", ["q2"], severity=3),
                _rule("major-b", ["q3"], severity=3),
            ],
            catalog,
        )

        issues = engine.evaluate(_answers(q1=0, q2=0, q3=0))

        assert [i.rule_id for i in issues] == ["major-a", "major-b", "minor"]

    def test_limited_per_category(self, catalog):
        rules = [_rule(f"r{n}", ["q1"], severity=1 + n % 3) for n in range(5)]
        rules.append(_rule("bar", ["b1"], category="bar"))
        engine = IssueEngine.from_raw(rules, catalog, max_per_category=2)

        issues = engine.evaluate(_answers(q1=0, b1=0))

        assert [i.category_id for i in issues].count("foo") == 2
        assert [i.severity for i in issues if i.category_id == "foo"] == [3, 2]
        assert "bar" in [i.rule_id for i in issues]
        assert len(engine.evaluate(_answers(q1=0), limit=4)) == 4


class TestRuleValidation:
    def test_unknown_question_rejected(self, catalog):
        with pytest.raises(IssueRuleError) as exc_info:
            IssueEngine.from_raw([_rule("r1", ["ghost"])], catalog)

        assert "ghost" in str(exc_info.value)

    def test_unknown_category_rejected(self, catalog):
        with pytest.raises(IssueRuleError):
            IssueEngine.from_raw([_rule("r1", ["q1"], category="nope")], catalog)

    def test_duplicate_rule_id_rejected(self, catalog):
        with pytest.raises(IssueRuleError):
            IssueEngine.from_raw([_rule("r1", ["q1"]), _rule("r1", ["q2"])], catalog)

    @pytest.mark.parametrize("severity", [0, 4])
    def test_severity_out_of_range(self, catalog, severity):
        with pytest.raises(IssueRuleError) as exc_info:
            IssueEngine.from_raw([_rule("r1", ["q1"], severity=severity)], catalog)

        assert isinstance(exc_info.value, CatalogError)


class TestLimitIssuesPerCategory:
    def test_keeps_first_entries_per_category(self):
        issues = [
            CriticalIssue(f"r{n}", cat, 3, {"en": "x"}, ("q1",))
            for n, cat in enumerate(["a", "a", "b", "a", "b"])
        ]

        kept = limit_issues_per_category(issues, 1)

        assert [i.rule_id for i in kept] == ["r0", "r2"]


class TestBundledRules:
    def test_bundled_rules_match_bundled_catalog(self):
        catalog = QuestionCatalog.load(sources.load_question_modules())

        engine = IssueEngine.from_raw(sources.load_issue_rules(), catalog)

        assert len(engine.rules) == 37
