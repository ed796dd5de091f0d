"""
Critical-issue detection.

Rules are plain data: a rule names one category, one or more questions,
a score band and whether any or all of the scored answers must fall in it.
Don't-know answers never trigger a rule.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from ..infrastructure.exceptions import IssueRuleError
from .catalog import QuestionCatalog
from .models import Answer, CriticalIssue, IssueRule, Scored
from .schemas import IssueRuleSchema

LOW_BAND_MAX = 33
MID_BAND_MAX = 66


def in_band(value: int, band: str) -> bool:
    if band == "low":
        return value <= LOW_BAND_MAX
    if band == "mid":
        return LOW_BAND_MAX < value <= MID_BAND_MAX
    return value > MID_BAND_MAX


def limit_issues_per_category(
    issues: Iterable[CriticalIssue], limit: int
) -> list[CriticalIssue]:
    """Keep the first ``limit`` issues of each category, preserving order."""
    kept: list[CriticalIssue] = []
    seen: dict[str, int] = {}
    for issue in issues:
        n = seen.get(issue.category_id, 0)
        if n < limit:
            kept.append(issue)
            seen[issue.category_id] = n + 1
    return kept


class IssueEngine:
    def __init__(
        self,
        rules: Sequence[IssueRule],
        catalog: QuestionCatalog,
        max_per_category: int = 3,
        logger: logging.Logger | None = None,
    ):
        self.catalog = catalog
        self.max_per_category = max_per_category
        self.logger = logger or logging.getLogger(__name__)

        seen: set[str] = set()
        for rule in rules:
            if rule.id in seen:
                raise IssueRuleError(rule.id, "duplicate rule id")
            seen.add(rule.id)
            if rule.category_id not in catalog.category_ids:
                raise IssueRuleError(rule.id, f"unknown category '{rule.category_id}'")
            missing = [q for q in rule.question_ids if q not in catalog]
            if missing:
                raise IssueRuleError(rule.id, f"unknown questions {', '.join(missing)}")
        self.rules = tuple(rules)

    @classmethod
    def from_raw(
        cls,
        raw_rules: Iterable[Mapping[str, Any]],
        catalog: QuestionCatalog,
        max_per_category: int = 3,
        logger: logging.Logger | None = None,
    ) -> IssueEngine:
        rules = []
        for index, raw in enumerate(raw_rules):
            try:
                rules.append(IssueRuleSchema.model_validate(raw).to_domain())
            except PydanticValidationError as e:
                rule_id = raw.get("id") if isinstance(raw, Mapping) else None
                raise IssueRuleError(
                    str(rule_id or f"#{index}"), e.errors(include_url=False)[0]["msg"]
                ) from e
        return cls(rules, catalog, max_per_category=max_per_category, logger=logger)

    def fires(self, rule: IssueRule, answers: Mapping[str, Answer]) -> bool:
        scored = [
            answers[q].selection.value
            for q in rule.question_ids
            if q in answers and isinstance(answers[q].selection, Scored)
        ]
        if not scored:
            return False
        checks = (in_band(v, rule.band) for v in scored)
        return all(checks) if rule.match == "all" else any(checks)

    def evaluate(
        self, answers: Mapping[str, Answer], limit: int | None = None
    ) -> list[CriticalIssue]:
        """Triggered issues, most severe first, at most ``limit`` per category."""
        found = [
            CriticalIssue(
                rule_id=rule.id,
                category_id=rule.category_id,
                severity=rule.severity,
                text=rule.text,
                question_ids=rule.question_ids,
            )
            for rule in self.rules
            if self.fires(rule, answers)
        ]
        found.sort(key=lambda issue: -issue.severity)
        limited = limit_issues_per_category(found, limit or self.max_per_category)
        self.logger.debug("Critical issues: %d triggered, %d reported", len(found), len(limited))
        return limited
