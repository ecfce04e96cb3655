from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from supabase import Client

from src.domain.entities.artifact import ImageArtifact


@dataclass
class StorageResult:
    path: str
    url: str
    content_type: str
    size: int


class SupabaseStorage:
    """Blob store adapter for Supabase Storage with a local-directory fallback."""

    def __init__(self, client: Client | None) -> None:
        self.client = client
        self.bucket = os.getenv("SUPABASE_STORAGE_BUCKET", "images")
        self.disabled = os.getenv("SUPABASE_DISABLED", "0") == "1"
        self.local_dir = Path(os.getenv("SUPABASE_STORAGE_LOCAL_DIR", ".local_storage"))
        if self._local:
            self.local_dir.mkdir(parents=True, exist_ok=True)

    @property
    def _local(self) -> bool:
        return self.disabled or self.client is None

    @staticmethod
    def generated_path(user_id: str, file_name: str) -> str:
        return f"users/{user_id}/generated/{file_name}"

    def public_url(self, path: str) -> str:
        if self._local:
            return f"local://{self.bucket}/{path}"
        return self.client.storage.from_(self.bucket).get_public_url(path)  # type: ignore[union-attr]

    def upload(self, path: str, artifact: ImageArtifact) -> StorageResult:
        """Store the artifact at ``path``, replacing any previous object there."""
        if self._local:
            full_path = self.local_dir / path
            full_path.parent.mkdir(parents=True, exist_ok=True)
            full_path.write_bytes(artifact.data)
            return StorageResult(
                path=path,
                url=self.public_url(path),
                content_type=artifact.mime_type,
                size=artifact.size,
            )
        try:  # pragma: no cover - network
            self.client.storage.from_(self.bucket).upload(  # type: ignore[union-attr]
                path=path,
                file=artifact.data,
                file_options={"content-type": artifact.mime_type, "upsert": "true"},
            )
            return StorageResult(
                path=path,
                url=self.public_url(path),
                content_type=artifact.mime_type,
                size=artifact.size,
            )
        except Exception as exc:  # pragma: no cover
            raise RuntimeError(f"Storage upload failed: {exc}") from exc

    def download(self, path: str) -> bytes:
        if self._local:
            full_path = self.local_dir / path
            if not full_path.exists():
                raise RuntimeError(f"Storage object {path} not found")
            return full_path.read_bytes()
        try:  # pragma: no cover - network
            return self.client.storage.from_(self.bucket).download(path)  # type: ignore[union-attr]
        except Exception as exc:  # pragma: no cover
            raise RuntimeError(f"Storage download failed: {exc}") from exc
