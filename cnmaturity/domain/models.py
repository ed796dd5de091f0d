from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal

# Reserved option value marking the "I don't know" answer in source data
DONT_KNOW_VALUE = -1

QuestionAssessmentType = Literal["quick", "standard", "comprehensive", "optional"]
SessionAssessmentType = Literal["quick", "standard", "comprehensive"]
RespondentRole = Literal["executive", "manager", "practitioner"]
Relevance = Literal["none", "low", "medium", "high"]
Importance = Literal["low", "medium", "high"]
MaturityLevel = Literal["beginner", "intermediate", "advanced"]
SessionState = Literal["not_started", "in_progress", "complete"]

LocalizedText = Mapping[str, str]  # language code -> text


def localize(text: LocalizedText | None, language: str | None = None, default: str = "en") -> str:
    """Pick ``language`` from ``text``, then ``default``, then the first declared entry."""
    if not text:
        return ""
    if language and language in text:
        return text[language]
    if default in text:
        return text[default]
    return next(iter(text.values()))


@dataclass(frozen=True, slots=True)
class AnswerOption:
    value: int
    label: LocalizedText
    is_dont_know: bool = False
    description: LocalizedText | None = None


@dataclass(frozen=True, slots=True)
class DependencyCondition:
    question_id: str
    min_value: int


@dataclass(frozen=True, slots=True)
class KnowledgeLink:
    text: str
    url: str


@dataclass(frozen=True, slots=True)
class KnowledgeResource:
    summary: str
    links: tuple[KnowledgeLink, ...] = ()


@dataclass(frozen=True, slots=True)
class Question:
    id: str
    category: str
    text: LocalizedText
    options: tuple[AnswerOption, ...]
    weight: float = 1.0
    maturity_level: MaturityLevel = "beginner"
    maturity_importance: Importance = "medium"
    role_relevance: Mapping[str, Relevance] = field(default_factory=dict)
    assessment_type: QuestionAssessmentType = "comprehensive"
    base_question: bool = False
    dependencies: tuple[DependencyCondition, ...] = ()
    knowledge: Mapping[str, KnowledgeResource] = field(default_factory=dict)

    @property
    def has_dont_know(self) -> bool:
        return any(o.is_dont_know for o in self.options)

    @property
    def option_values(self) -> list[int]:
        return [o.value for o in self.options]

    @property
    def has_knowledge_resource(self) -> bool:
        return bool(self.knowledge)

    def is_excluded_for(self, role: str | None) -> bool:
        # A role missing from the mapping is not excluded
        return role is not None and self.role_relevance.get(role) == "none"

    def option_for(self, value: int) -> AnswerOption | None:
        for option in self.options:
            if option.value == value:
                return option
        return None


@dataclass(frozen=True, slots=True)
class Scored:
    value: int


@dataclass(frozen=True, slots=True)
class DontKnow:
    pass


Selection = Scored | DontKnow


@dataclass(frozen=True, slots=True)
class Answer:
    question_id: str
    selection: Selection
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_dont_know(self) -> bool:
        return isinstance(self.selection, DontKnow)

    @property
    def value(self) -> int:
        """Numeric option value as submitted; the don't-know sentinel for DontKnow."""
        if isinstance(self.selection, Scored):
            return self.selection.value
        return DONT_KNOW_VALUE

    def satisfies(self, min_value: int) -> bool:
        # DontKnow never satisfies a dependency, whatever the threshold
        return isinstance(self.selection, Scored) and self.selection.value >= min_value


@dataclass(frozen=True, slots=True)
class CategoryInfo:
    id: str
    title: LocalizedText
    description: LocalizedText | None = None
    order: int = 0


@dataclass(frozen=True, slots=True)
class QuestionModule:
    info: CategoryInfo
    questions: tuple[Question, ...]


@dataclass(frozen=True, slots=True)
class KnowledgeArticle:
    explanation: str
    examples: tuple[str, ...] = ()
    resources: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class IssueRule:
    id: str
    category_id: str
    question_ids: tuple[str, ...]
    severity: int
    text: LocalizedText
    match: Literal["any", "all"] = "any"
    band: Literal["low", "mid", "high"] = "low"


@dataclass(frozen=True, slots=True)
class CriticalIssue:
    rule_id: str
    category_id: str
    severity: int
    text: LocalizedText
    question_ids: tuple[str, ...]
