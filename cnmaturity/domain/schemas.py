"""
Pydantic schemas for question content and user input validation.

Content schemas mirror the camelCase keys used by the bundled question
modules and convert validated data into the immutable domain records.
Input schemas sanitise strings the way every user-facing form in the
application does.
"""

from __future__ import annotations

import re
from html import unescape
from typing import Annotated, Any, Literal

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from ..infrastructure.exceptions import InvalidQuestionError
from .models import (
    DONT_KNOW_VALUE,
    AnswerOption,
    CategoryInfo,
    DependencyCondition,
    Importance,
    IssueRule,
    KnowledgeArticle,
    KnowledgeLink,
    KnowledgeResource,
    MaturityLevel,
    Question,
    QuestionAssessmentType,
    QuestionModule,
    Relevance,
    RespondentRole,
    SessionAssessmentType,
)


def _coerce_localized(value: Any) -> Any:
    # A bare string is treated as English text
    if isinstance(value, str):
        return {"en": value}
    return value


def _require_language(value: dict[str, str]) -> dict[str, str]:
    if not value:
        raise ValueError("at least one language is required")
    return value


LocalizedField = Annotated[
    dict[str, str], BeforeValidator(_coerce_localized), AfterValidator(_require_language)
]


class ContentSchema(BaseModel):
    """Base schema for bundled content files (camelCase keys, no sanitising)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class OptionSchema(ContentSchema):
    value: int
    label: LocalizedField
    is_dont_know: bool = False
    description: LocalizedField | None = None

    @model_validator(mode="after")
    def validate_value_range(self):
        """Scored options lie in [0, 100]; the don't-know option carries the sentinel."""
        if self.is_dont_know:
            if self.value != DONT_KNOW_VALUE:
                raise ValueError(f"don't-know option must have value {DONT_KNOW_VALUE}")
        elif not 0 <= self.value <= 100:
            raise ValueError(f"option value {self.value} outside 0..100")
        return self


class DependencySchema(ContentSchema):
    question_id: str = Field(..., min_length=1)
    min_value: int


class KnowledgeLinkSchema(ContentSchema):
    text: str
    url: str


class InlineKnowledgeSchema(ContentSchema):
    summary: str = ""
    links: list[KnowledgeLinkSchema] = []


class QuestionSchema(ContentSchema):
    """Validation schema for one question definition."""

    id: str = Field(..., min_length=1, max_length=100)
    category: str | None = None
    text: LocalizedField
    weight: float = Field(1.0, gt=0)
    maturity_importance: Importance = "medium"
    maturity_level: MaturityLevel = "beginner"
    role_relevance: dict[RespondentRole, Relevance] = {}
    assessment_type: QuestionAssessmentType = "comprehensive"
    base_question: bool = False
    options: list[OptionSchema] = Field(..., min_length=1)
    knowledge: dict[str, InlineKnowledgeSchema] = {}
    dependencies: list[DependencySchema] = []

    @model_validator(mode="after")
    def validate_options(self):
        """Ensure the option set is well formed."""
        values = [o.value for o in self.options]
        if len(set(values)) != len(values):
            raise ValueError("option values must be unique within a question")
        if sum(1 for o in self.options if o.is_dont_know) > 1:
            raise ValueError("at most one don't-know option is allowed")
        if all(o.is_dont_know for o in self.options):
            raise ValueError("at least one scored option is required")
        if not self.base_question and not self.dependencies:
            raise ValueError("a non-base question must declare at least one dependency")
        return self

    def to_domain(self, module_category: str) -> Question:
        category = self.category or module_category
        if category != module_category:
            raise InvalidQuestionError(
                f"Question '{self.id}' declares category '{category}' "
                f"inside module '{module_category}'",
                question_id=self.id,
            )
        return Question(
            id=self.id,
            category=category,
            text=dict(self.text),
            options=tuple(
                AnswerOption(
                    value=o.value,
                    label=dict(o.label),
                    is_dont_know=o.is_dont_know,
                    description=dict(o.description) if o.description else None,
                )
                for o in self.options
            ),
            weight=self.weight,
            maturity_level=self.maturity_level,
            maturity_importance=self.maturity_importance,
            role_relevance=dict(self.role_relevance),
            assessment_type=self.assessment_type,
            base_question=self.base_question,
            dependencies=tuple(
                DependencyCondition(d.question_id, d.min_value) for d in self.dependencies
            ),
            knowledge={
                lang: KnowledgeResource(
                    summary=k.summary,
                    links=tuple(KnowledgeLink(link.text, link.url) for link in k.links),
                )
                for lang, k in self.knowledge.items()
            },
        )


class QuestionModuleSchema(ContentSchema):
    """Validation schema for one category module file."""

    category: str = Field(..., min_length=1)
    title: LocalizedField
    description: LocalizedField | None = None
    questions: list[QuestionSchema] = []

    def to_domain(self, order: int = 0) -> QuestionModule:
        info = CategoryInfo(
            id=self.category,
            title=dict(self.title),
            description=dict(self.description) if self.description else None,
            order=order,
        )
        return QuestionModule(
            info=info, questions=tuple(q.to_domain(self.category) for q in self.questions)
        )


class IssueRuleSchema(ContentSchema):
    id: str = Field(..., min_length=1)
    category_id: str = Field(..., min_length=1)
    question_ids: list[str] = Field(..., min_length=1)
    severity: int = Field(..., ge=1, le=3)
    match: Literal["any", "all"] = "any"
    band: Literal["low", "mid", "high"] = "low"
    text: LocalizedField

    def to_domain(self) -> IssueRule:
        return IssueRule(
            id=self.id,
            category_id=self.category_id,
            question_ids=tuple(self.question_ids),
            severity=self.severity,
            text=dict(self.text),
            match=self.match,
            band=self.band,
        )


class KnowledgeArticleSchema(ContentSchema):
    explanation: str = Field(..., min_length=1)
    examples: list[str] = []
    resources: list[str] = []

    def to_domain(self) -> KnowledgeArticle:
        return KnowledgeArticle(
            explanation=self.explanation,
            examples=tuple(self.examples),
            resources=tuple(self.resources),
        )


class KnowledgeModuleSchema(ContentSchema):
    category: str = Field(..., min_length=1)
    articles: dict[str, dict[str, KnowledgeArticleSchema]] = {}


# ---------------------------------------------------------------------------
# User input
# ---------------------------------------------------------------------------


class BaseValidationSchema(BaseModel):
    """Base schema with common validation utilities."""

    model_config = ConfigDict(str_strip_whitespace=True, validate_assignment=True)

    @field_validator("*", mode="before")
    def sanitize_strings(cls, v):
        """Sanitize string inputs to prevent XSS and injection attacks."""
        if isinstance(v, str):
            cleaned = unescape(v.strip())
            cleaned = re.sub(
                r"<\s*script[^>]*>.*?<\s*/\s*script\s*>",
                "",
                cleaned,
                flags=re.IGNORECASE | re.DOTALL,
            )
            cleaned = re.sub(r"<[^>]+>", "", cleaned)
            cleaned = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]", "", cleaned)
            return cleaned
        return v


_IDENTIFIER = re.compile(r"^[A-Za-z0-9_\-]+$")


class SessionCreationInput(BaseValidationSchema):
    """Validation schema for creating assessment sessions."""

    assessment_type: SessionAssessmentType
    respondent_role: RespondentRole | None = None
    categories: list[str] | None = Field(None, max_length=50)

    @field_validator("categories")
    def validate_categories(cls, v):
        """Reject blank, malformed and duplicate category ids."""
        if v is None:
            return None
        cleaned = [c.strip() for c in v]
        if any(not c or not _IDENTIFIER.match(c) for c in cleaned):
            raise ValueError("Category ids may only contain letters, digits, '-' and '_'")
        if len(set(cleaned)) != len(cleaned):
            raise ValueError("Duplicate categories are not allowed")
        return cleaned


class AnswerInput(BaseValidationSchema):
    """Validation schema for a submitted answer."""

    question_id: str = Field(..., min_length=1, max_length=100)
    value: int

    @field_validator("question_id")
    def validate_question_id(cls, v):
        if not _IDENTIFIER.match(v):
            raise ValueError("Question id contains invalid characters")
        return v

    @field_validator("value", mode="before")
    def reject_boolean_value(cls, v):
        if isinstance(v, bool):
            raise ValueError("Answer value must be an integer option value")
        return v


class ValidationErrorDetail(BaseModel):
    """Schema for validation error details."""

    field: str
    message: str
    value: Any = None


class ValidationResponse(BaseModel):
    """Schema for validation responses."""

    success: bool
    errors: list[ValidationErrorDetail] = []
    data: dict[str, Any] | None = None


def validate_input(schema_class: type[BaseModel], data: dict[str, Any]) -> ValidationResponse:
    """
    Centralized validation function that returns structured validation results.

    Args:
        schema_class: Pydantic model class to use for validation
        data: Input data to validate

    Returns:
        ValidationResponse with success status and any errors

    Example:
        >>> result = validate_input(AnswerInput, {"question_id": "fc_1", "value": 66})
        >>> if result.success:
        ...     validated_data = result.data
        >>> else:
        ...     for error in result.errors:
        ...         print(f"Error in {error.field}: {error.message}")
    """
    try:
        validated = schema_class(**data)
        return ValidationResponse(success=True, data=validated.model_dump())
    except Exception as e:
        errors = []
        if hasattr(e, "errors"):  # Pydantic validation errors
            for error in e.errors():
                errors.append(
                    ValidationErrorDetail(
                        field=".".join(str(x) for x in error["loc"]) or "general",
                        message=error["msg"],
                        value=error.get("input"),
                    )
                )
        else:
            errors.append(ValidationErrorDetail(field="general", message=str(e)))

        return ValidationResponse(success=False, errors=errors)
