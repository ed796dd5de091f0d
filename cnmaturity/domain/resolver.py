"""
Dependency resolution: which questions a session may show next.

Eligibility is a pure function of the catalog, the session's scope
(assessment type, respondent role, category scope) and its recorded
answers. Results follow catalog declaration order so repeated calls with
the same answers return identical listings.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from .catalog import QuestionCatalog
from .models import Answer, Question

# Session type -> question tags it admits
ASSESSMENT_TYPE_COMPATIBILITY: Mapping[str, frozenset[str]] = {
    "quick": frozenset({"quick"}),
    "standard": frozenset({"quick", "standard", "optional"}),
    "comprehensive": frozenset({"quick", "standard", "comprehensive", "optional"}),
}

_QUICK_CATEGORIES = (
    "foundations_culture",
    "business_value_strategy",
    "application_architecture",
    "cicd_practices",
    "security_compliance",
)

# Every category the bundled question bank ships, in presentation order
KNOWN_CATEGORIES = (
    "foundations_culture",
    "business_value_strategy",
    "application_architecture",
    "app_migration_modernization",
    "container_infrastructure",
    "cicd_practices",
    "dora_metrics",
    "security_compliance",
    "infrastructure_platform",
    "data_management",
    "observability",
    "finops_cost_management",
    "operations_resilience",
    "multicloud_hybrid_governance",
    "ai_ml_integration",
)

# Session type -> categories it covers; None means every category
CATEGORY_SCOPE: Mapping[str, tuple[str, ...] | None] = {
    "quick": _QUICK_CATEGORIES,
    "standard": _QUICK_CATEGORIES
    + (
        "app_migration_modernization",
        "container_infrastructure",
        "dora_metrics",
        "observability",
        "finops_cost_management",
    ),
    "comprehensive": None,
}


def default_category_scope(
    assessment_type: str, category_ids: Iterable[str]
) -> frozenset[str] | None:
    """
    Categories a session of ``assessment_type`` covers by default.

    Categories outside KNOWN_CATEGORIES are never restricted.

    Example:
        >>> sorted(default_category_scope("quick", ["cicd_practices", "dora_metrics"]))
        ['cicd_practices']
    """
    scoped = CATEGORY_SCOPE.get(assessment_type)
    if scoped is None:
        return None
    return frozenset(
        c for c in category_ids if c in scoped or c not in KNOWN_CATEGORIES
    )


@dataclass(frozen=True, slots=True)
class SessionScope:
    assessment_type: str
    respondent_role: str | None = None
    categories: frozenset[str] | None = None

    def admits(self, question: Question) -> bool:
        """Static filters: assessment type, role relevance and category scope."""
        if question.assessment_type not in ASSESSMENT_TYPE_COMPATIBILITY[self.assessment_type]:
            return False
        if question.is_excluded_for(self.respondent_role):
            return False
        if self.categories is not None and question.category not in self.categories:
            return False
        return True


class DependencyResolver:
    """Computes eligible question sets over a shared, read-only catalog."""

    def __init__(self, catalog: QuestionCatalog, logger: logging.Logger | None = None):
        self.catalog = catalog
        self.logger = logger or logging.getLogger(__name__)

    @staticmethod
    def dependencies_met(question: Question, answers: Mapping[str, Answer]) -> bool:
        for dep in question.dependencies:
            answer = answers.get(dep.question_id)
            if answer is None or not answer.satisfies(dep.min_value):
                return False
        return True

    def is_reachable(
        self, question: Question, answers: Mapping[str, Answer], scope: SessionScope
    ) -> bool:
        """True when ``question`` may be shown given ``answers``, answered or not."""
        if not scope.admits(question):
            return False
        return question.base_question or self.dependencies_met(question, answers)

    def eligible(self, answers: Mapping[str, Answer], scope: SessionScope) -> list[Question]:
        """Unanswered reachable questions, grouped by category in declaration order."""
        return [
            q
            for q in self.catalog
            if q.id not in answers and self.is_reachable(q, answers, scope)
        ]

    def eligible_by_category(
        self, answers: Mapping[str, Answer], scope: SessionScope
    ) -> dict[str, list[Question]]:
        grouped: dict[str, list[Question]] = {}
        for question in self.eligible(answers, scope):
            grouped.setdefault(question.category, []).append(question)
        return grouped

    def admitted_categories(self, scope: SessionScope) -> list[str]:
        """Categories holding at least one question the scope admits."""
        return [
            c.id
            for c in self.catalog.categories
            if any(scope.admits(q) for q in self.catalog.questions_in(c.id))
        ]

    def unreachable_answers(
        self, answers: Mapping[str, Answer], scope: SessionScope
    ) -> list[str]:
        return [
            qid
            for qid in answers
            if not self.is_reachable(self.catalog.get(qid), answers, scope)
        ]
