from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from src.application.dtos.common_dto import ErrorResponse, InsufficientCreditsResponse
from src.application.dtos.gallery_dto import (
    GalleryEntryResponse,
    GalleryListResponse,
    GenerateImageRequest,
    ImprovePromptRequest,
    ImprovePromptResponse,
    StylePresetsResponse,
)
from src.application.services.session_bridge import SessionBridge
from src.domain.entities.gallery import GalleryEntry
from src.domain.entities.generation import STYLE_PRESETS, apply_style_preset
from src.infrastructure.api.dependencies import get_session

router = APIRouter(
    prefix="/gallery",
    tags=["Gallery"],
    responses={
        401: {"description": "Unauthorized - Invalid token or unverified email", "model": ErrorResponse},
        503: {"description": "Profile not ready or ledger unavailable", "model": ErrorResponse},
    },
)

_METERED_RESPONSES = {
    400: {"description": "Bad Request - Invalid prompt, aspect ratio or preset", "model": ErrorResponse},
    402: {"description": "Payment Required - Not enough credits", "model": InsufficientCreditsResponse},
    502: {"description": "Bad Gateway - The AI service returned no usable image", "model": ErrorResponse},
}


def _entry(entry: GalleryEntry) -> dict:
    return {
        "id": entry.id,
        "url": entry.url,
        "prompt": entry.prompt,
        "is_upscaled": entry.is_upscaled,
        "created_at": entry.created_at,
    }


@router.get(
    "",
    response_model=GalleryListResponse,
    summary="List Gallery",
    description="""
    Generated images of the caller, newest first.

    **Authentication required**: Yes (Bearer token, verified email)
    """,
)
async def list_gallery(session: SessionBridge = Depends(get_session)):
    """List gallery entries."""
    session.require_profile()
    return {"entries": [_entry(e) for e in session.gallery.entries]}


@router.get("/presets", response_model=StylePresetsResponse, summary="List Style Presets")
def list_presets():
    """Style presets accepted by the generate endpoint."""
    return {"presets": STYLE_PRESETS}


@router.post(
    "/generate",
    response_model=GalleryEntryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Generate Image",
    description="""
    Generate an image from a text prompt and save it to the gallery.

    **Aspect ratios**: 1:1, 3:4, 4:3, 9:16, 16:9

    Costs credits; they are refunded if generation fails.
    """,
    responses=_METERED_RESPONSES,
)
async def generate_image(body: GenerateImageRequest, session: SessionBridge = Depends(get_session)):
    """Generate and store a new gallery image."""
    prompt = body.prompt
    try:
        if body.style_preset:
            prompt = apply_style_preset(prompt, body.style_preset)
        entry = await session.gallery.generate(prompt, body.aspect_ratio)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"entry": _entry(entry), "credits": session.profile.credits if session.profile else None}


@router.post(
    "/improve-prompt",
    response_model=ImprovePromptResponse,
    summary="Improve Prompt",
    description="Expand a short idea into a detailed text-to-image prompt. Free of charge.",
    responses={502: {"description": "Bad Gateway - The AI service returned nothing", "model": ErrorResponse}},
)
async def improve_prompt(body: ImprovePromptRequest, session: SessionBridge = Depends(get_session)):
    """Return an expanded prompt."""
    return {"prompt": await session.gallery.improve_prompt(body.text)}


@router.post(
    "/{entry_id}/upscale",
    response_model=GalleryEntryResponse,
    summary="Upscale Gallery Image",
    description="""
    Upscale a stored gallery image and replace it in place.

    Entries that are already upscaled are rejected unless `force=true`.
    Costs credits; they are refunded and the entry is left unchanged if
    upscaling fails.
    """,
    responses={
        **_METERED_RESPONSES,
        404: {"description": "Not Found - Entry does not exist", "model": ErrorResponse},
        409: {"description": "Conflict - Entry is already upscaled", "model": ErrorResponse},
    },
)
async def upscale_image(
    entry_id: str,
    force: bool = Query(False, description="Upscale again even if the entry is already upscaled"),
    session: SessionBridge = Depends(get_session),
):
    """Upscale one gallery entry."""
    session.require_profile()
    if session.gallery.find(entry_id).is_upscaled and not force:
        raise HTTPException(status_code=409, detail="Image is already upscaled")
    entry = await session.gallery.upscale(entry_id)
    return {"entry": _entry(entry), "credits": session.profile.credits if session.profile else None}
