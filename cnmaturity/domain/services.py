from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from ..infrastructure.exceptions import ConfigurationError, NoScoreAvailableError
from .catalog import QuestionCatalog
from .models import Answer, Scored


@dataclass(frozen=True, slots=True)
class MaturityThresholds:
    beginner_max: float = 50.0
    intermediate_max: float = 75.0
    risk_high_max: float = 35.0
    risk_medium_max: float = 65.0

    def __post_init__(self):
        if not 0 <= self.beginner_max < self.intermediate_max <= 100:
            raise ConfigurationError(
                "Maturity thresholds must satisfy 0 <= beginner_max < intermediate_max <= 100",
                config_key="beginner_max",
            )
        if not self.risk_high_max < self.risk_medium_max:
            raise ConfigurationError(
                "Risk thresholds must satisfy risk_high_max < risk_medium_max",
                config_key="risk_high_max",
            )

    @classmethod
    def from_config(cls, config) -> MaturityThresholds:
        return cls(
            beginner_max=config.beginner_max,
            intermediate_max=config.intermediate_max,
            risk_high_max=config.risk_high_max,
            risk_medium_max=config.risk_medium_max,
        )

    def maturity_level(self, score: float | None) -> str | None:
        if score is None:
            return None
        if score <= self.beginner_max:
            return "beginner"
        if score <= self.intermediate_max:
            return "intermediate"
        return "advanced"

    def risk_level(self, score: float | None) -> str:
        if score is None:
            return "NONE"
        if score <= self.risk_high_max:
            return "HIGH"
        if score <= self.risk_medium_max:
            return "MEDIUM"
        return "LOW"


@dataclass(slots=True)
class CategoryScore:
    category: str
    score: float | None  # None when no scored answers exist
    answered_count: int
    dont_know_count: int
    knowledge_gap_percentage: int
    maturity_level: str  # bucket, "knowledge_gap" or "not_started"
    risk_level: str


@dataclass(slots=True)
class ScoreResult:
    overall: float | None
    by_category: dict[str, CategoryScore] = field(default_factory=dict)
    maturity_level: str | None = None
    session_id: str | None = None

    @property
    def has_score(self) -> bool:
        return self.overall is not None

    def category_scores(self) -> dict[str, float | None]:
        return {c: s.score for c, s in self.by_category.items()}

    def require_overall(self) -> float:
        """Overall score, raising NoScoreAvailableError when none can be computed."""
        if self.overall is None:
            raise NoScoreAvailableError(self.session_id)
        return self.overall


class ScoringService:
    def __init__(
        self,
        catalog: QuestionCatalog,
        thresholds: MaturityThresholds | None = None,
        logger: logging.Logger | None = None,
    ):
        self.catalog = catalog
        self.thresholds = thresholds or MaturityThresholds()
        self.logger = logger or logging.getLogger(__name__)

    def score_category(self, category: str, answers: Iterable[Answer]) -> CategoryScore:
        """
        Weighted average of the scored answers in one category.
        - Don't-know answers are left out of numerator and denominator.
        - score is None when nothing in the category carries a value.
        """
        answered = 0
        dont_know = 0
        weighted_sum = 0.0
        weight_total = 0.0

        for answer in answers:
            answered += 1
            if isinstance(answer.selection, Scored):
                weight = self.catalog.get(answer.question_id).weight
                weighted_sum += answer.selection.value * weight
                weight_total += weight
            else:
                dont_know += 1

        score = weighted_sum / weight_total if weight_total else None

        if answered == 0:
            level = "not_started"
        elif score is None:
            level = "knowledge_gap"
        else:
            level = self.thresholds.maturity_level(score) or "not_started"

        # Halves round up
        gap = math.floor(dont_know / answered * 100 + 0.5) if answered else 0

        return CategoryScore(
            category=category,
            score=score,
            answered_count=answered,
            dont_know_count=dont_know,
            knowledge_gap_percentage=gap,
            maturity_level=level,
            risk_level=self.thresholds.risk_level(score),
        )

    def score(
        self,
        answers: Mapping[str, Answer],
        categories: Iterable[str] | None = None,
        session_id: str | None = None,
    ) -> ScoreResult:
        """
        Per-category and overall scores for a set of answers.
        - ``categories`` lists categories to report even when unanswered;
          categories holding answers are always reported.
        - overall = equal-weight mean of the defined category scores.
        - No scored answer at all gives overall=None, never 0.
        """
        grouped: dict[str, list[Answer]] = {c: [] for c in categories or ()}
        for answer in answers.values():
            category = self.catalog.get(answer.question_id).category
            grouped.setdefault(category, []).append(answer)

        # Report in catalog declaration order
        order = {c: i for i, c in enumerate(self.catalog.category_ids)}
        by_category = {
            c: self.score_category(c, grouped[c])
            for c in sorted(grouped, key=lambda c: order.get(c, len(order)))
        }

        defined = [s.score for s in by_category.values() if s.score is not None]
        overall = sum(defined) / len(defined) if defined else None

        self.logger.debug(
            "Scored session %s: %d answers, %d/%d categories defined",
            session_id,
            len(answers),
            len(defined),
            len(by_category),
        )
        return ScoreResult(
            overall=overall,
            by_category=by_category,
            maturity_level=self.thresholds.maturity_level(overall),
            session_id=session_id,
        )
