from __future__ import annotations

from dataclasses import dataclass

from PIL import Image

from src.application.services.edit_session import EditSession
from src.domain.entities.artifact import ImageArtifact
from src.domain.services.processing_service import ProcessingService


@dataclass
class UploadImageUseCase:
    session: EditSession

    async def execute(
        self,
        data: bytes,
        filename: str | None,
        *,
        mime_type: str | None = None,
    ) -> ImageArtifact:
        """
        Start a new editing session from uploaded bytes.

        The payload is decoded once so unreadable files are rejected before
        they reach the history.
        """
        candidate = ImageArtifact(name=filename or "upload", mime_type=mime_type or "", data=data)
        img = ProcessingService.open_image(candidate)
        detected = Image.MIME.get(img.format or "", None)
        artifact = ImageArtifact(
            name=filename or f"upload.{(img.format or 'png').lower()}",
            mime_type=detected or mime_type or "image/png",
            data=data,
        )
        await self.session.upload(artifact)
        return artifact
