from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from fastapi.responses import Response

from src.application.dtos.common_dto import ErrorResponse, InsufficientCreditsResponse
from src.application.dtos.editor_dto import (
    ApplyCropRequest,
    CropSelectionBody,
    EditorStateResponse,
    HotspotModel,
    HotspotRequest,
    PromptRequest,
    SetTabRequest,
)
from src.application.services.edit_session import EditSession
from src.application.services.session_bridge import SessionBridge
from src.application.use_cases.upload_image import UploadImageUseCase
from src.domain.entities.artifact import CropSelection, ImageArtifact
from src.domain.errors import NoImageLoaded
from src.infrastructure.api.dependencies import get_session

router = APIRouter(
    prefix="/editor",
    tags=["Editor"],
    responses={
        400: {"description": "Bad Request - Missing image, selection or prompt", "model": ErrorResponse},
        401: {"description": "Unauthorized - Invalid token or unverified email", "model": ErrorResponse},
        422: {"description": "Validation Error - Invalid request format"},
        503: {"description": "Profile not ready or ledger unavailable", "model": ErrorResponse},
    },
)

_METERED_RESPONSES = {
    402: {"description": "Payment Required - Not enough credits", "model": InsufficientCreditsResponse},
    502: {"description": "Bad Gateway - The AI service returned no usable image", "model": ErrorResponse},
}


def _artifact_info(artifact: ImageArtifact | None, ref: str | None) -> dict | None:
    if artifact is None:
        return None
    return {"name": artifact.name, "mime_type": artifact.mime_type, "size": artifact.size, "display_ref": ref}


def _state(session: SessionBridge) -> dict:
    editor: EditSession = session.editor
    history = editor.history
    selection = editor.crop_selection
    return {
        "has_image": not history.is_empty,
        "history_length": len(history),
        "cursor": history.cursor,
        "can_undo": history.can_undo,
        "can_redo": history.can_redo,
        "active_tab": editor.active_tab,
        "hotspot": {"x": editor.hotspot.x, "y": editor.hotspot.y} if editor.hotspot else None,
        "crop_selection": asdict(selection) if selection else None,
        "current": _artifact_info(editor.current, editor.current_ref),
        "original": _artifact_info(editor.original, editor.original_ref),
        "busy": editor.busy,
        "credits": session.profile.credits if session.profile else None,
    }


def _editor(session: SessionBridge) -> EditSession:
    session.require_profile()
    return session.editor


@router.get(
    "/state",
    response_model=EditorStateResponse,
    summary="Get Editor State",
    description="""
    Snapshot of the caller's editing session: history position, undo/redo
    availability, active tool, hotspot, crop selection and display references.

    **Authentication required**: Yes (Bearer token, verified email)
    """,
)
async def get_state(session: SessionBridge = Depends(get_session)):
    """Return the editing session snapshot."""
    session.require_profile()
    return _state(session)


@router.post(
    "/upload",
    response_model=EditorStateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload Image",
    description="""
    Start a new editing session from an image file. Any previous history is
    replaced, the hotspot and crop selection are cleared and the prompt edit
    tool becomes active.

    **Supported formats**: JPEG, PNG, GIF, BMP, TIFF, WEBP
    """,
    responses={400: {"description": "Bad Request - Invalid image file", "model": ErrorResponse}},
)
async def upload_image(
    file: UploadFile = File(..., description="Image file to upload"),
    session: SessionBridge = Depends(get_session),
):
    """Upload an image and make it the original of a fresh history."""
    editor = _editor(session)
    data = await file.read()
    if not data:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")
    await UploadImageUseCase(session=editor).execute(
        data, file.filename, mime_type=file.content_type
    )
    return _state(session)


@router.post("/undo", response_model=EditorStateResponse, summary="Undo")
async def undo(session: SessionBridge = Depends(get_session)):
    """Step back one version; a no-op at the original."""
    await _editor(session).undo()
    return _state(session)


@router.post("/redo", response_model=EditorStateResponse, summary="Redo")
async def redo(session: SessionBridge = Depends(get_session)):
    """Step forward one version; a no-op at the newest version."""
    await _editor(session).redo()
    return _state(session)


@router.post(
    "/reset",
    response_model=EditorStateResponse,
    summary="Reset to Original",
    description="Show the original image again. Later versions stay available until the next edit.",
)
async def reset(session: SessionBridge = Depends(get_session)):
    """Move the cursor back to the original."""
    await _editor(session).reset_to_original()
    return _state(session)


@router.post(
    "/home",
    response_model=EditorStateResponse,
    summary="Close Image",
    description="Discard the history and return to the empty editor.",
)
async def go_home(session: SessionBridge = Depends(get_session)):
    """Clear the editing session."""
    await _editor(session).go_home()
    return _state(session)


@router.put("/tab", response_model=EditorStateResponse, summary="Select Editing Tool")
async def set_tab(body: SetTabRequest, session: SessionBridge = Depends(get_session)):
    """Switch the active tool; leaving local edit clears the hotspot."""
    _editor(session).set_tab(body.tab)
    return _state(session)


@router.post(
    "/hotspot",
    response_model=HotspotModel,
    summary="Select Local Edit Point",
    description="""
    Map a click on the displayed image to original-image pixels. Only
    available while the local edit tool is active.
    """,
)
async def select_hotspot(body: HotspotRequest, session: SessionBridge = Depends(get_session)):
    """Record the local edit point."""
    hotspot = _editor(session).select_hotspot(body.x, body.y, body.display_width, body.display_height)
    return {"x": hotspot.x, "y": hotspot.y}


@router.put("/crop", response_model=EditorStateResponse, summary="Set Crop Selection")
async def set_crop(body: CropSelectionBody, session: SessionBridge = Depends(get_session)):
    """Store the crop rectangle drawn on the displayed image."""
    _editor(session).set_crop_selection(CropSelection(**body.model_dump()))
    return _state(session)


@router.delete("/crop", response_model=EditorStateResponse, summary="Clear Crop Selection")
async def clear_crop(session: SessionBridge = Depends(get_session)):
    """Drop the crop rectangle."""
    _editor(session).set_crop_selection(None)
    return _state(session)


@router.post(
    "/crop/apply",
    response_model=EditorStateResponse,
    summary="Apply Crop",
    description="""
    Rasterize the selected region of the current image at the given device
    pixel ratio and append it as a new version. Cropping is free.
    """,
)
async def apply_crop(body: ApplyCropRequest, session: SessionBridge = Depends(get_session)):
    """Crop the current version."""
    try:
        await _editor(session).apply_crop(body.pixel_ratio)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _state(session)


@router.post(
    "/local-edit",
    response_model=EditorStateResponse,
    summary="AI Local Edit",
    description="""
    Edit the area around the selected hotspot as described by the prompt.
    Costs credits; they are refunded if the edit fails. The hotspot is cleared
    after every attempt.
    """,
    responses=_METERED_RESPONSES,
)
async def local_edit(body: PromptRequest, session: SessionBridge = Depends(get_session)):
    """Run a localized AI edit."""
    await _editor(session).local_edit(body.prompt)
    return _state(session)


@router.post(
    "/filter",
    response_model=EditorStateResponse,
    summary="AI Filter",
    description="Apply a stylistic filter to the whole image. Costs credits; refunded on failure.",
    responses=_METERED_RESPONSES,
)
async def apply_filter(body: PromptRequest, session: SessionBridge = Depends(get_session)):
    """Run an AI filter."""
    await _editor(session).apply_filter(body.prompt)
    return _state(session)


@router.post(
    "/adjust",
    response_model=EditorStateResponse,
    summary="AI Adjustment",
    description="Apply a global adjustment described by the prompt. Costs credits; refunded on failure.",
    responses=_METERED_RESPONSES,
)
async def apply_adjustment(body: PromptRequest, session: SessionBridge = Depends(get_session)):
    """Run an AI adjustment."""
    await _editor(session).apply_adjustment(body.prompt)
    return _state(session)


@router.get(
    "/display/{ref}",
    summary="Fetch Displayed Image",
    description="Bytes behind a live display reference. References expire when the version is no longer shown.",
    responses={404: {"description": "Not Found - Reference is not live", "model": ErrorResponse}},
)
async def display(ref: str, session: SessionBridge = Depends(get_session)):
    """Serve the artifact behind a display reference."""
    artifact = _editor(session).handles.resolve(ref)
    if artifact is None:
        raise HTTPException(status_code=404, detail="Display reference not found")
    return Response(content=artifact.data, media_type=artifact.mime_type)


@router.get(
    "/download",
    summary="Download Current Image",
    description="The current version as an attachment named `edited-<name>`.",
)
async def download(session: SessionBridge = Depends(get_session)):
    """Download the current version."""
    current = _editor(session).current
    if current is None:
        raise NoImageLoaded()
    return Response(
        content=current.data,
        media_type=current.mime_type,
        headers={"Content-Disposition": f'attachment; filename="edited-{current.name}"'},
    )
