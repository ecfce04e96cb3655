from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ImageArtifact:
    """Immutable named image payload held by one history slot or gallery entry."""

    name: str
    mime_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class Hotspot:
    x: int  # pixels in original-image space
    y: int


@dataclass(frozen=True)
class CropSelection:
    # rectangle in displayed pixel space
    x: float
    y: float
    width: float
    height: float
    # size of the displayed image element the rectangle was drawn on
    display_width: float
    display_height: float

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0
