from __future__ import annotations

from fastapi import FastAPI

from src.application.dtos.common_dto import HealthResponse, RootResponse
from src.infrastructure.api.dependencies import get_settings
from src.infrastructure.api.error_handlers import register_exception_handlers
from src.infrastructure.api.middlewares import add_default_middlewares
from src.infrastructure.api.routes.auth_routes import router as auth_router
from src.infrastructure.api.routes.credit_routes import router as credit_router
from src.infrastructure.api.routes.editor_routes import router as editor_router
from src.infrastructure.api.routes.gallery_routes import router as gallery_router
from src.infrastructure.logging_setup import setup_logging


def create_app() -> FastAPI:
    settings = get_settings()
    logger = setup_logging(settings)
    app = FastAPI(
        title="ImageGenie Backend",
        version="0.1.0",
        description="""
        ## ImageGenie Backend API

        Photo editing and AI image generation backend. Images are edited through
        a per-user undo/redo history; AI operations are paid for with credits
        that are refunded automatically when an operation fails.

        ### Features
        - **Authentication**: Token-based authentication with Supabase
        - **Editor**: Upload, undo/redo, crop, localized AI edits, filters and adjustments
        - **Gallery**: Text-to-image generation, prompt improvement and upscaling
        - **Credits**: Balance, transaction history and credit packs

        ### Authentication
        All endpoints (except root, health and catalogue listings) require
        authentication via Bearer token in the Authorization header:
        ```
        Authorization: Bearer your-jwt-token
        ```
        Editing, gallery and credit endpoints additionally require a verified email.

        ### Error Responses
        - **400 Bad Request**: Missing image, selection or prompt, or malformed input
        - **401 Unauthorized**: Missing or invalid token, or unverified email
        - **402 Payment Required**: Not enough credits (`required` and `available` are included)
        - **404 Not Found**: Gallery entry or display reference does not exist
        - **422 Unprocessable Entity**: Validation error in request body
        - **502 Bad Gateway**: The AI service did not return a usable result
        - **503 Service Unavailable**: Profile not created yet or credit ledger unavailable
        """,
    )
    add_default_middlewares(app, settings)
    register_exception_handlers(app)

    @app.get(
        "/",
        response_model=RootResponse,
        summary="API Root",
        description="Get basic information about the ImageGenie API",
        response_description="API information including status and version",
    )
    def root():
        """Get API root information."""
        return {"status": "ok", "service": "imagegenie-backend", "version": app.version}

    @app.get(
        "/health",
        response_model=HealthResponse,
        summary="Health Check",
        description="Check if the API service is running and healthy",
        response_description="Health status of the API service",
    )
    def health():
        """Check API health status."""
        return {"status": "healthy"}

    app.include_router(auth_router)
    app.include_router(editor_router)
    app.include_router(gallery_router)
    app.include_router(credit_router)
    logger.info("ImageGenie backend ready (env=%s, gemini_disabled=%s)", settings.env, settings.gemini_disabled)
    return app


app = create_app()
