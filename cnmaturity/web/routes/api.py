from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from cnmaturity.application.api import AssessmentService
from cnmaturity.domain.models import Question, localize
from cnmaturity.domain.session import SessionSnapshot
from cnmaturity.infrastructure.exceptions import (
    MaturityAssessmentError,
    NotFoundError,
    QuestionNotEligibleError,
    SessionNotFoundError,
)
from cnmaturity.web.dependencies import get_assessment_service
from cnmaturity.web.schemas import (
    AnswerOptionResponse,
    AnswerReviseRequest,
    AnswerSubmitRequest,
    CategoryQuestionsResponse,
    CategoryResponse,
    CategoryScoreResponse,
    CriticalIssueResponse,
    DependencyResponse,
    EligibleQuestionsResponse,
    InlineKnowledgeResponse,
    KnowledgeArticleResponse,
    KnowledgeLinkResponse,
    QuestionResponse,
    ScoreResponse,
    SessionCreateRequest,
    SessionStateResponse,
)

router = APIRouter(prefix="/api")
logger = logging.getLogger(__name__)

LANGUAGE_PATTERN = r"^[a-z]{2}(-[A-Za-z]{2})?$"


def _http_error(exc: MaturityAssessmentError) -> HTTPException:
    if isinstance(exc, (SessionNotFoundError, NotFoundError)):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, QuestionNotEligibleError):
        code = status.HTTP_409_CONFLICT
    else:
        code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail=exc.user_message)


def _language(service: AssessmentService, language: Optional[str]) -> str:
    # Unsupported languages render in the default one
    if language and language in service.config.supported_languages:
        return language
    return service.config.default_language


def _question_response(
    service: AssessmentService, question: Question, language: str
) -> QuestionResponse:
    default = service.config.default_language
    knowledge = None
    if question.has_knowledge_resource:
        lang = (
            language
            if language in question.knowledge
            else default
            if default in question.knowledge
            else next(iter(question.knowledge))
        )
        resource = question.knowledge[lang]
        knowledge = InlineKnowledgeResponse(
            summary=resource.summary,
            links=[KnowledgeLinkResponse(text=link.text, url=link.url) for link in resource.links],
        )

    return QuestionResponse(
        id=question.id,
        category=question.category,
        text=localize(question.text, language, default),
        language=language,
        weight=question.weight,
        maturity_level=question.maturity_level,
        maturity_importance=question.maturity_importance,
        assessment_type=question.assessment_type,
        base_question=question.base_question,
        dependencies=[
            DependencyResponse(question_id=d.question_id, min_value=d.min_value)
            for d in question.dependencies
        ],
        options=[
            AnswerOptionResponse(
                value=o.value,
                label=localize(o.label, language, default),
                is_dont_know=o.is_dont_know,
                description=localize(o.description, language, default) if o.description else None,
            )
            for o in question.options
        ],
        knowledge=knowledge,
        has_knowledge_article=service.knowledge.has_article(question.id),
    )


def _state_response(snapshot: SessionSnapshot) -> SessionStateResponse:
    return SessionStateResponse(
        session_id=snapshot.session_id,
        assessment_type=snapshot.assessment_type,
        respondent_role=snapshot.respondent_role,
        categories=list(snapshot.categories) if snapshot.categories is not None else None,
        state=snapshot.state,
        is_complete=snapshot.is_complete,
        answers=dict(snapshot.answers),
        answered_count=snapshot.answered_count,
        eligible_question_ids=list(snapshot.eligible_question_ids),
        eligible_count=len(snapshot.eligible_question_ids),
        dropped_question_ids=list(snapshot.dropped_question_ids),
        created_at=snapshot.created_at,
        updated_at=snapshot.updated_at,
    )


@router.get("/health")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/categories", response_model=list[CategoryResponse])
def list_categories(
    language: Optional[str] = Query(None, pattern=LANGUAGE_PATTERN),
    service: AssessmentService = Depends(get_assessment_service),
) -> list[CategoryResponse]:
    lang = _language(service, language)
    default = service.config.default_language
    return [
        CategoryResponse(
            id=info.id,
            title=localize(info.title, lang, default),
            description=localize(info.description, lang, default) if info.description else None,
            question_count=len(service.catalog.questions_in(info.id)),
            knowledge_article_count=len(service.knowledge.for_category(info.id)),
        )
        for info in service.catalog.categories
    ]


@router.get("/questions/{question_id}", response_model=QuestionResponse)
def get_question(
    question_id: str,
    language: Optional[str] = Query(None, pattern=LANGUAGE_PATTERN),
    service: AssessmentService = Depends(get_assessment_service),
) -> QuestionResponse:
    try:
        question = service.get_question(question_id)
    except MaturityAssessmentError as exc:
        raise _http_error(exc) from exc
    return _question_response(service, question, _language(service, language))


@router.get("/knowledge/{question_id}", response_model=KnowledgeArticleResponse)
def get_knowledge(
    question_id: str,
    language: Optional[str] = Query(None, pattern=LANGUAGE_PATTERN),
    service: AssessmentService = Depends(get_assessment_service),
) -> KnowledgeArticleResponse:
    try:
        resolved = service.get_knowledge(question_id, _language(service, language))
    except MaturityAssessmentError as exc:
        raise _http_error(exc) from exc
    return KnowledgeArticleResponse(
        question_id=resolved.question_id,
        category=resolved.category,
        language=resolved.language,
        explanation=resolved.article.explanation,
        examples=list(resolved.article.examples),
        resources=list(resolved.article.resources),
    )


@router.post(
    "/sessions", response_model=SessionStateResponse, status_code=status.HTTP_201_CREATED
)
def create_session(
    payload: SessionCreateRequest,
    service: AssessmentService = Depends(get_assessment_service),
) -> SessionStateResponse:
    try:
        snapshot = service.create_session(
            payload.assessment_type, payload.respondent_role, payload.categories
        )
    except MaturityAssessmentError as exc:
        raise _http_error(exc) from exc
    return _state_response(snapshot)


@router.get("/sessions/{session_id}", response_model=SessionStateResponse)
def get_session(
    session_id: str,
    service: AssessmentService = Depends(get_assessment_service),
) -> SessionStateResponse:
    try:
        snapshot = service.get_state(session_id)
    except MaturityAssessmentError as exc:
        raise _http_error(exc) from exc
    return _state_response(snapshot)


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_session(
    session_id: str,
    service: AssessmentService = Depends(get_assessment_service),
) -> Response:
    try:
        service.delete_session(session_id)
    except MaturityAssessmentError as exc:
        raise _http_error(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/sessions/{session_id}/reset", response_model=SessionStateResponse)
def reset_session(
    session_id: str,
    service: AssessmentService = Depends(get_assessment_service),
) -> SessionStateResponse:
    try:
        snapshot = service.reset_session(session_id)
    except MaturityAssessmentError as exc:
        raise _http_error(exc) from exc
    return _state_response(snapshot)


@router.get("/sessions/{session_id}/questions", response_model=EligibleQuestionsResponse)
def list_eligible_questions(
    session_id: str,
    language: Optional[str] = Query(None, pattern=LANGUAGE_PATTERN),
    service: AssessmentService = Depends(get_assessment_service),
) -> EligibleQuestionsResponse:
    lang = _language(service, language)
    try:
        session = service.get_session(session_id)
        with session.lock:
            grouped = session.eligible_by_category()
            state = session.state
    except MaturityAssessmentError as exc:
        raise _http_error(exc) from exc

    categories = [
        CategoryQuestionsResponse(
            category=category,
            title=localize(
                service.catalog.category(category).title, lang, service.config.default_language
            ),
            questions=[_question_response(service, q, lang) for q in questions],
        )
        for category, questions in grouped.items()
    ]
    return EligibleQuestionsResponse(
        session_id=session_id,
        state=state,
        total=sum(len(c.questions) for c in categories),
        categories=categories,
    )


@router.post("/sessions/{session_id}/answers", response_model=SessionStateResponse)
def submit_answer(
    session_id: str,
    payload: AnswerSubmitRequest,
    service: AssessmentService = Depends(get_assessment_service),
) -> SessionStateResponse:
    try:
        snapshot = service.submit_answer(session_id, payload.question_id, payload.value)
    except MaturityAssessmentError as exc:
        raise _http_error(exc) from exc
    return _state_response(snapshot)


@router.put("/sessions/{session_id}/answers/{question_id}", response_model=SessionStateResponse)
def revise_answer(
    session_id: str,
    question_id: str,
    payload: AnswerReviseRequest,
    service: AssessmentService = Depends(get_assessment_service),
) -> SessionStateResponse:
    try:
        outcome = service.revise_answer(session_id, question_id, payload.value)
    except MaturityAssessmentError as exc:
        raise _http_error(exc) from exc
    return _state_response(outcome.snapshot)


@router.get("/sessions/{session_id}/score", response_model=ScoreResponse)
def get_score(
    session_id: str,
    language: Optional[str] = Query(None, pattern=LANGUAGE_PATTERN),
    service: AssessmentService = Depends(get_assessment_service),
) -> ScoreResponse:
    lang = _language(service, language)
    try:
        result = service.get_score(session_id)
    except MaturityAssessmentError as exc:
        raise _http_error(exc) from exc

    def _round(value: Optional[float]) -> Optional[float]:
        return round(value, 2) if value is not None else None

    return ScoreResponse(
        session_id=session_id,
        overall=_round(result.overall),
        maturity_level=result.maturity_level,
        by_category={c: _round(s) for c, s in result.category_scores().items()},
        categories=[
            CategoryScoreResponse(
                category=s.category,
                title=localize(
                    service.catalog.category(s.category).title,
                    lang,
                    service.config.default_language,
                ),
                score=_round(s.score),
                answered_count=s.answered_count,
                dont_know_count=s.dont_know_count,
                knowledge_gap_percentage=s.knowledge_gap_percentage,
                maturity_level=s.maturity_level,
                risk_level=s.risk_level,
            )
            for s in result.by_category.values()
        ],
    )


@router.get("/sessions/{session_id}/issues", response_model=list[CriticalIssueResponse])
def get_critical_issues(
    session_id: str,
    language: Optional[str] = Query(None, pattern=LANGUAGE_PATTERN),
    service: AssessmentService = Depends(get_assessment_service),
) -> list[CriticalIssueResponse]:
    lang = _language(service, language)
    try:
        issues = service.get_critical_issues(session_id)
    except MaturityAssessmentError as exc:
        raise _http_error(exc) from exc
    return [
        CriticalIssueResponse(
            rule_id=issue.rule_id,
            category=issue.category_id,
            severity=issue.severity,
            text=localize(issue.text, lang, service.config.default_language),
            question_ids=list(issue.question_ids),
        )
        for issue in issues
    ]
