"""Translate domain errors raised by the services into HTTP responses."""
from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from src.domain.errors import (
    EntryNotFound,
    GenerationFailed,
    ImageGenieError,
    InsufficientCredits,
    LedgerWriteFailed,
    MalformedPayload,
    NotAuthenticated,
    PreconditionFailed,
    ProfileNotReady,
    UnknownCreditPack,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: list[tuple[type[ImageGenieError], int]] = [
    (PreconditionFailed, status.HTTP_400_BAD_REQUEST),
    (MalformedPayload, status.HTTP_400_BAD_REQUEST),
    (UnknownCreditPack, status.HTTP_400_BAD_REQUEST),
    (NotAuthenticated, status.HTTP_401_UNAUTHORIZED),
    (InsufficientCredits, status.HTTP_402_PAYMENT_REQUIRED),
    (EntryNotFound, status.HTTP_404_NOT_FOUND),
    (GenerationFailed, status.HTTP_502_BAD_GATEWAY),
    (ProfileNotReady, status.HTTP_503_SERVICE_UNAVAILABLE),
    (LedgerWriteFailed, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def status_for(exc: ImageGenieError) -> int:
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def handle_domain_error(request: Request, exc: ImageGenieError) -> JSONResponse:
    code = status_for(exc)
    body: dict = {"detail": str(exc)}
    if isinstance(exc, InsufficientCredits):
        body.update(required=exc.required, available=exc.available)
    if code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=code, content=body)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ImageGenieError, handle_domain_error)  # type: ignore[arg-type]
