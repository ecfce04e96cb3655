from __future__ import annotations

from typing import Protocol

from src.domain.entities.artifact import Hotspot, ImageArtifact


class ImageGateway(Protocol):
    """Operations of the Image AI Service; image results are data URLs."""

    async def generate_image(self, prompt: str, aspect_ratio: str) -> str: ...

    async def edit_image(self, artifact: ImageArtifact, prompt: str, hotspot: Hotspot) -> str: ...

    async def filter_image(self, artifact: ImageArtifact, prompt: str) -> str: ...

    async def adjust_image(self, artifact: ImageArtifact, prompt: str) -> str: ...

    async def upscale_image(self, artifact: ImageArtifact) -> str: ...

    async def improve_prompt(self, text: str) -> str: ...
