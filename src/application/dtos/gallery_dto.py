from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class GalleryEntryModel(BaseModel):
    """A generated image saved to the user's gallery."""
    id: str = Field(..., description="Unique identifier of the entry", example="gal_4f2a9c1b7d3e")
    url: str = Field(..., description="Public URL of the stored image")
    prompt: str = Field(..., description="Prompt the image was generated from", example="a lighthouse at dusk")
    is_upscaled: bool = Field(..., description="Whether the stored image has been upscaled")
    created_at: datetime = Field(..., description="ISO timestamp when the entry was created")


class GalleryListResponse(BaseModel):
    """Response model for the gallery, newest first."""
    entries: list[GalleryEntryModel] = Field(..., description="Gallery entries, newest first")


class GenerateImageRequest(BaseModel):
    """Request model for text-to-image generation."""
    prompt: str = Field(..., min_length=1, max_length=2000, description="Description of the image", example="a lighthouse at dusk")
    aspect_ratio: str = Field("1:1", description="One of 1:1, 3:4, 4:3, 9:16, 16:9", example="16:9")
    style_preset: Optional[str] = Field(
        None, description="Optional style preset appended to the prompt", example="cinematic"
    )


class GalleryEntryResponse(BaseModel):
    """Response model for a single created or updated entry."""
    entry: GalleryEntryModel = Field(..., description="The gallery entry")
    credits: Optional[int] = Field(None, description="Credit balance after the operation", example=21)


class ImprovePromptRequest(BaseModel):
    """Request model for prompt improvement."""
    text: str = Field(..., min_length=1, max_length=1000, description="Short idea to expand", example="a cat in space")


class ImprovePromptResponse(BaseModel):
    """Response model for prompt improvement."""
    prompt: str = Field(..., description="Expanded prompt")


class StylePresetsResponse(BaseModel):
    """Response model for listing style presets."""
    presets: dict[str, str] = Field(..., description="Preset name to the text it appends")
