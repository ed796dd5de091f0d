from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class CategoryResponse(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    question_count: int = 0
    knowledge_article_count: int = 0


class AnswerOptionResponse(BaseModel):
    value: int
    label: str
    is_dont_know: bool = False
    description: Optional[str] = None


class DependencyResponse(BaseModel):
    question_id: str
    min_value: int


class KnowledgeLinkResponse(BaseModel):
    text: str
    url: str


class InlineKnowledgeResponse(BaseModel):
    summary: str
    links: list[KnowledgeLinkResponse] = Field(default_factory=list)


class QuestionResponse(BaseModel):
    id: str
    category: str
    text: str
    language: str
    weight: float
    maturity_level: str
    maturity_importance: str
    assessment_type: str
    base_question: bool
    dependencies: list[DependencyResponse] = Field(default_factory=list)
    options: list[AnswerOptionResponse]
    knowledge: Optional[InlineKnowledgeResponse] = None
    has_knowledge_article: bool = False


class CategoryQuestionsResponse(BaseModel):
    category: str
    title: str
    questions: list[QuestionResponse]


class EligibleQuestionsResponse(BaseModel):
    session_id: str
    state: str
    total: int
    categories: list[CategoryQuestionsResponse]


class SessionCreateRequest(BaseModel):
    assessment_type: str
    respondent_role: Optional[str] = None
    categories: Optional[list[str]] = None


class AnswerReviseRequest(BaseModel):
    value: int

    @field_validator("value", mode="before")
    def reject_boolean_value(cls, v):
        if isinstance(v, bool):
            raise ValueError("value must be an integer option value")
        return v


class AnswerSubmitRequest(AnswerReviseRequest):
    question_id: str


class SessionStateResponse(BaseModel):
    session_id: str
    assessment_type: str
    respondent_role: Optional[str] = None
    categories: Optional[list[str]] = None
    state: str
    is_complete: bool
    answers: dict[str, int] = Field(default_factory=dict)
    answered_count: int = 0
    eligible_question_ids: list[str] = Field(default_factory=list)
    eligible_count: int = 0
    dropped_question_ids: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class CategoryScoreResponse(BaseModel):
    category: str
    title: str
    score: Optional[float] = None
    answered_count: int
    dont_know_count: int
    knowledge_gap_percentage: int
    maturity_level: str
    risk_level: str


class ScoreResponse(BaseModel):
    session_id: str
    overall: Optional[float] = None
    maturity_level: Optional[str] = None
    by_category: dict[str, Optional[float]] = Field(default_factory=dict)
    categories: list[CategoryScoreResponse] = Field(default_factory=list)


class CriticalIssueResponse(BaseModel):
    rule_id: str
    category: str
    severity: int
    text: str
    question_ids: list[str]


class KnowledgeArticleResponse(BaseModel):
    question_id: str
    category: str
    language: str
    explanation: str
    examples: list[str] = Field(default_factory=list)
    resources: list[str] = Field(default_factory=list)
