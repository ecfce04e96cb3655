"""Closed set of outcomes for one Image AI Service response."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Union

ASPECT_RATIOS = ("1:1", "3:4", "4:3", "9:16", "16:9")

STYLE_PRESETS: dict[str, str] = {
    "cinematic": "cinematic lighting, dramatic, photorealistic, 4k",
    "anime": "vibrant anime style, cel-shaded, detailed background",
    "fantasy_art": "digital painting, fantasy, intricate, epic, concept art",
    "isometric": "isometric 3D, cute, low-poly, detailed",
    "pixel_art": "16-bit pixel art, retro gaming style, vibrant palette",
}


@dataclass(frozen=True)
class ImageReturned:
    data_url: str


@dataclass(frozen=True)
class PromptBlocked:
    reason: str
    message: str | None = None


@dataclass(frozen=True)
class NoImageReturned:
    text: str | None = None


@dataclass(frozen=True)
class StoppedEarly:
    finish_reason: str


GenerationOutcome = Union[ImageReturned, PromptBlocked, NoImageReturned, StoppedEarly]


def apply_style_preset(prompt: str, preset: str) -> str:
    """Append a named style preset to a prompt, comma separated."""
    try:
        addition = STYLE_PRESETS[preset]
    except KeyError:
        raise ValueError(f"Unknown style preset: {preset}") from None
    current = prompt.strip()
    if not current:
        return addition
    if current.endswith(","):
        return f"{current} {addition}"
    return f"{current}, {addition}"
