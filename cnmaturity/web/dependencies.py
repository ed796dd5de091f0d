from __future__ import annotations

from fastapi import Request

from cnmaturity.application.api import AssessmentService
from cnmaturity.infrastructure.config import AssessmentConfig, get_settings


def get_assessment_config(request: Request) -> AssessmentConfig:
    config = getattr(request.app.state, "assessment_config", None)
    if config is None:
        config = get_settings().assessment
        request.app.state.assessment_config = config
    return config


def get_assessment_service(request: Request) -> AssessmentService:
    service = getattr(request.app.state, "assessment_service", None)
    if service is None:
        service = AssessmentService.from_data_dir(config=get_assessment_config(request))
        request.app.state.assessment_service = service
    return service
