from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from src.domain.entities.editor import EditorTab


class ArtifactInfo(BaseModel):
    """An image version held in the editing history."""
    name: str = Field(..., description="File name of the version", example="edited-1718000000000.png")
    mime_type: str = Field(..., description="MIME type of the version", example="image/png")
    size: int = Field(..., description="Payload size in bytes", example=204800, ge=0)
    display_ref: Optional[str] = Field(
        None,
        description="Transient reference usable with GET /editor/display/{ref} while this version is shown",
        example="blob:2f1c7d0e-8d5b-4f43-9a7e-3f8b1a2c4d5e",
    )


class HotspotModel(BaseModel):
    """Point in original-image pixels."""
    x: int = Field(..., description="X coordinate in original-image pixels", example=412)
    y: int = Field(..., description="Y coordinate in original-image pixels", example=230)


class CropSelectionBody(BaseModel):
    """Crop rectangle drawn on the displayed image."""
    x: float = Field(..., description="Left edge in displayed pixels", example=20, ge=0)
    y: float = Field(..., description="Top edge in displayed pixels", example=10, ge=0)
    width: float = Field(..., description="Width in displayed pixels", example=200, gt=0)
    height: float = Field(..., description="Height in displayed pixels", example=150, gt=0)
    display_width: float = Field(..., description="Width of the displayed image element", example=400, gt=0)
    display_height: float = Field(..., description="Height of the displayed image element", example=300, gt=0)


class EditorStateResponse(BaseModel):
    """Snapshot of the caller's editing session."""
    has_image: bool = Field(..., description="Whether an image is loaded")
    history_length: int = Field(..., description="Number of versions in the history", example=3, ge=0)
    cursor: int = Field(..., description="Index of the current version, -1 when empty", example=2, ge=-1)
    can_undo: bool = Field(..., description="Whether undo is available")
    can_redo: bool = Field(..., description="Whether redo is available")
    active_tab: EditorTab = Field(..., description="Active editing tool", example="promptEdit")
    hotspot: Optional[HotspotModel] = Field(None, description="Selected local edit point")
    crop_selection: Optional[CropSelectionBody] = Field(None, description="Active crop rectangle")
    current: Optional[ArtifactInfo] = Field(None, description="Version currently shown")
    original: Optional[ArtifactInfo] = Field(None, description="First version of the history")
    busy: bool = Field(..., description="Whether an operation is in flight")
    credits: Optional[int] = Field(None, description="Current credit balance", example=23)


class SetTabRequest(BaseModel):
    """Request model for switching the editing tool."""
    tab: EditorTab = Field(..., description="Tool to activate", example="localEdit")


class HotspotRequest(BaseModel):
    """Click on the displayed image, in displayed pixels."""
    x: float = Field(..., description="Click X relative to the image element", example=120.5, ge=0)
    y: float = Field(..., description="Click Y relative to the image element", example=80.0, ge=0)
    display_width: float = Field(..., description="Rendered width of the image element", example=400, gt=0)
    display_height: float = Field(..., description="Rendered height of the image element", example=300, gt=0)


class ApplyCropRequest(BaseModel):
    """Request model for rasterizing the active crop selection."""
    pixel_ratio: float = Field(1.0, description="Device pixel ratio of the client display", example=2.0, gt=0, le=8)


class PromptRequest(BaseModel):
    """Request model for prompt-driven edits."""
    prompt: str = Field(..., min_length=1, max_length=2000, description="Edit instruction", example="remove the person in the background")
