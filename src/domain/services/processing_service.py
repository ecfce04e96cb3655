from __future__ import annotations

from io import BytesIO

import numpy as np
from PIL import Image, UnidentifiedImageError

from src.domain.entities.artifact import CropSelection, Hotspot, ImageArtifact
from src.domain.errors import MalformedPayload


def _round_half_up(value: float) -> int:
    return int(np.floor(value + 0.5))


class ProcessingService:
    """Local raster work on artifacts: measuring, hotspot mapping and cropping.

    Pixel arrays are uint8 RGBA with shape (H, W, 4).
    """

    @staticmethod
    def open_image(artifact: ImageArtifact) -> Image.Image:
        try:
            img = Image.open(BytesIO(artifact.data))
            img.load()
        except (UnidentifiedImageError, OSError) as exc:
            raise MalformedPayload(f"Could not decode image {artifact.name}: {exc}") from exc
        return img

    @staticmethod
    def natural_size(artifact: ImageArtifact) -> tuple[int, int]:
        return ProcessingService.open_image(artifact).size

    @staticmethod
    def detect_mime_type(artifact: ImageArtifact) -> str | None:
        """MIME type of the decoded bytes, regardless of the declared one."""
        return Image.MIME.get(ProcessingService.open_image(artifact).format or "")

    # Display click -> original pixel: x_orig = floor(x * naturalWidth / clientWidth + 0.5)
    @staticmethod
    def map_click_to_hotspot(
        click_x: float,
        click_y: float,
        natural_width: int,
        natural_height: int,
        display_width: float,
        display_height: float,
    ) -> Hotspot:
        if display_width <= 0 or display_height <= 0:
            raise ValueError("display size must be > 0")
        scale_x = natural_width / display_width
        scale_y = natural_height / display_height
        return Hotspot(x=_round_half_up(click_x * scale_x), y=_round_half_up(click_y * scale_y))

    # Crop region [top:bottom, left:right] in natural space, resampled to
    # (width * pixel_ratio, height * pixel_ratio).
    @staticmethod
    def crop(
        artifact: ImageArtifact,
        selection: CropSelection,
        pixel_ratio: float = 1.0,
    ) -> bytes:
        if pixel_ratio <= 0:
            raise ValueError("pixel_ratio must be > 0")
        img = ProcessingService.open_image(artifact).convert("RGBA")
        natural_w, natural_h = img.size
        scale_x = natural_w / selection.display_width
        scale_y = natural_h / selection.display_height

        left = int(np.clip(_round_half_up(selection.x * scale_x), 0, natural_w))
        top = int(np.clip(_round_half_up(selection.y * scale_y), 0, natural_h))
        right = int(np.clip(_round_half_up((selection.x + selection.width) * scale_x), 0, natural_w))
        bottom = int(np.clip(_round_half_up((selection.y + selection.height) * scale_y), 0, natural_h))
        if right <= left or bottom <= top:
            raise ValueError("crop selection lies outside the image")

        region = np.asarray(img)[top:bottom, left:right]
        out_w = max(1, _round_half_up(selection.width * pixel_ratio))
        out_h = max(1, _round_half_up(selection.height * pixel_ratio))
        out = Image.fromarray(np.ascontiguousarray(region)).resize(
            (out_w, out_h), Image.Resampling.LANCZOS
        )
        buf = BytesIO()
        out.save(buf, format="PNG")
        return buf.getvalue()
