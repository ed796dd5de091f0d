from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cnmaturity.application.api import AssessmentService
from cnmaturity.infrastructure.config import get_settings
from cnmaturity.web.routes import api


def create_application(service: AssessmentService | None = None) -> FastAPI:
    """
    Build the API application.

    The question bank is loaded before the app is returned, so a broken
    catalog raises CatalogError here and the server never starts serving.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.app.title,
        version=settings.app.version,
        debug=settings.app.debug,
    )

    app.state.assessment_config = settings.assessment
    app.state.assessment_service = service or AssessmentService.from_data_dir(
        config=settings.assessment
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.cors_origins,
        allow_credentials=True,
        allow_methods=settings.security.cors_methods,
        allow_headers=["*"],
    )

    app.include_router(api.router)

    return app


app = create_application()
