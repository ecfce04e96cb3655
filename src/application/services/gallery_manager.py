from __future__ import annotations

import asyncio
import logging
import time

from src.application.services.credit_ledger import CreditLedgerClient
from src.application.services.session_context import SessionContext
from src.domain.entities.artifact import ImageArtifact
from src.domain.entities.gallery import GalleryEntry
from src.domain.entities.generation import ASPECT_RATIOS
from src.domain.errors import EntryNotFound, MissingEditInput
from src.domain.services.artifact_codec import to_artifact
from src.domain.services.image_gateway import ImageGateway
from src.domain.services.processing_service import ProcessingService
from src.infrastructure.database.repositories.gallery_repository import GalleryRepository
from src.infrastructure.settings import CreditCosts
from src.infrastructure.storage.supabase_storage import SupabaseStorage

logger = logging.getLogger(__name__)


class GalleryManager:
    """Generated images of one user, backed by the blob store and gallery table.

    ``entries`` is kept newest first. Generation and upscaling are credit
    metered and refund on failure.
    """

    def __init__(
        self,
        context: SessionContext,
        ledger: CreditLedgerClient,
        gateway: ImageGateway,
        repository: GalleryRepository,
        storage: SupabaseStorage,
        costs: CreditCosts | None = None,
    ) -> None:
        self.context = context
        self.ledger = ledger
        self.gateway = gateway
        self.repository = repository
        self.storage = storage
        self.costs = costs or CreditCosts()
        self.entries: list[GalleryEntry] = []
        self._lock = context.lock

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    async def load(self) -> list[GalleryEntry]:
        entries = await asyncio.to_thread(self.repository.list_by_user, self.context.user_id)
        self.entries = sorted(entries, key=lambda e: e.created_at, reverse=True)
        return self.entries

    def clear(self) -> None:
        self.entries = []

    def find(self, entry_id: str) -> GalleryEntry:
        for entry in self.entries:
            if entry.id == entry_id:
                return entry
        raise EntryNotFound(entry_id)

    async def _store(self, artifact: ImageArtifact, prompt: str) -> GalleryEntry:
        user_id = self.context.user_id
        path = self.storage.generated_path(user_id, artifact.name)
        stored = await asyncio.to_thread(self.storage.upload, path, artifact)
        entry = await asyncio.to_thread(self.repository.add, user_id, stored.url, stored.path, prompt)
        self.entries.insert(0, entry)
        logger.info("Added gallery entry %s for %s", entry.id, user_id)
        return entry

    async def add(self, artifact: ImageArtifact, prompt: str) -> GalleryEntry:
        self.context.require_profile()
        async with self._lock:
            return await self._store(artifact, prompt)

    async def generate(self, prompt: str, aspect_ratio: str) -> GalleryEntry:
        if not prompt.strip():
            raise MissingEditInput("Please enter a prompt to generate an image.")
        if aspect_ratio not in ASPECT_RATIOS:
            raise ValueError(f"Unsupported aspect ratio {aspect_ratio!r}; expected one of {ASPECT_RATIOS}")
        async with self._lock:

            async def attempt() -> GalleryEntry:
                payload = await self.gateway.generate_image(prompt, aspect_ratio)
                artifact = to_artifact(payload, f"generated-{int(time.time() * 1000)}.jpeg")
                return await self._store(artifact, prompt)

            return await self.ledger.run_guarded(
                self.context, self.costs.generate, "Image Generation", attempt
            )

    async def improve_prompt(self, text: str) -> str:
        if not text.strip():
            raise MissingEditInput("Please enter an idea to improve.")
        self.context.require_profile()
        return await self.gateway.improve_prompt(text)

    async def upscale(self, entry_id: str) -> GalleryEntry:
        async with self._lock:
            entry = self.find(entry_id)

            async def attempt() -> GalleryEntry:
                data = await asyncio.to_thread(self.storage.download, entry.storage_path)
                name = entry.storage_path.rsplit("/", 1)[-1]
                candidate = ImageArtifact(name=name, mime_type="", data=data)
                source = ImageArtifact(
                    name=name,
                    mime_type=ProcessingService.detect_mime_type(candidate) or "image/jpeg",
                    data=data,
                )
                payload = await self.gateway.upscale_image(source)
                artifact = to_artifact(payload, f"upscaled-{entry.id}.jpeg")
                path = self.storage.generated_path(self.context.user_id, artifact.name)
                stored = await asyncio.to_thread(self.storage.upload, path, artifact)
                return await asyncio.to_thread(
                    self.repository.update,
                    self.context.user_id,
                    entry.id,
                    url=stored.url,
                    storage_path=stored.path,
                    is_upscaled=True,
                )

            updated = await self.ledger.run_guarded(
                self.context, self.costs.upscale, f"Upscale: {entry.id}", attempt
            )
            self.entries = [updated if e.id == updated.id else e for e in self.entries]
            logger.info("Upscaled gallery entry %s", entry.id)
            return updated
