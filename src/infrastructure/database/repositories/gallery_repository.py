from __future__ import annotations

import os
import threading
import uuid
from dataclasses import replace
from datetime import UTC, datetime

from supabase import Client

from src.domain.entities.gallery import GalleryEntry
from src.infrastructure.database.postgres_client import get_postgres_client

# module-level in-memory store for disabled mode
_MEM_GALLERY: dict[str, GalleryEntry] = {}
_MEM_LOCK = threading.Lock()


class GalleryRepository:
    """Document store access for ``users/{id}/gallery/{entryId}`` documents."""

    def __init__(self, client: Client | None) -> None:
        self.client = client
        self.disabled = os.getenv("SUPABASE_DISABLED", "0") == "1"
        self.use_local_db = os.getenv("USE_LOCAL_DB", "0") == "1"
        self.pg_client = get_postgres_client() if self.use_local_db else None

    @property
    def _in_memory(self) -> bool:
        return not (self.use_local_db and self.pg_client) and (self.disabled or self.client is None)

    def _row_to_entity(self, row: dict) -> GalleryEntry:
        """Convert database row to GalleryEntry."""
        created_at = row["created_at"]
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)
        return GalleryEntry(
            id=str(row["id"]),
            user_id=row["user_id"],
            url=row["url"],
            storage_path=row.get("storage_path", ""),
            prompt=row.get("prompt", ""),
            is_upscaled=bool(row.get("is_upscaled", False)),
            created_at=created_at,
        )

    def add(
        self,
        user_id: str,
        url: str,
        storage_path: str,
        prompt: str,
        is_upscaled: bool = False,
    ) -> GalleryEntry:
        now = datetime.now(UTC)

        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            try:
                row = self.pg_client.fetch_one(
                    """
                    INSERT INTO gallery (user_id, url, storage_path, prompt, is_upscaled, created_at)
                    VALUES (%s, %s, %s, %s, %s, %s)
                    RETURNING *
                    """,
                    (user_id, url, storage_path, prompt, is_upscaled, now),
                )
            except Exception as exc:
                raise RuntimeError(f"PostgreSQL insert gallery entry failed: {exc}") from exc
            return self._row_to_entity(row)

        # In-memory mode
        if self._in_memory:
            entity = GalleryEntry(
                id=f"gal_{uuid.uuid4().hex[:12]}",
                user_id=user_id,
                url=url,
                storage_path=storage_path,
                prompt=prompt,
                is_upscaled=is_upscaled,
                created_at=now,
            )
            with _MEM_LOCK:
                _MEM_GALLERY[entity.id] = entity
            return entity

        # Supabase mode
        try:  # pragma: no cover - network
            data = {
                "user_id": user_id,
                "url": url,
                "storage_path": storage_path,
                "prompt": prompt,
                "is_upscaled": is_upscaled,
                "created_at": now.isoformat(),
            }
            res = self.client.table("gallery").insert(data).execute()
            return self._row_to_entity(res.data[0])
        except Exception as exc:
            raise RuntimeError(f"DB insert gallery entry failed: {exc}") from exc

    def list_by_user(self, user_id: str) -> list[GalleryEntry]:
        """Entries for one user, newest first."""
        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            try:
                rows = self.pg_client.fetch_all(
                    "SELECT * FROM gallery WHERE user_id = %s ORDER BY created_at DESC", (user_id,)
                )
            except Exception as exc:
                raise RuntimeError(f"PostgreSQL list gallery failed: {exc}") from exc
            return [self._row_to_entity(row) for row in rows]

        # In-memory mode
        if self._in_memory:
            entries = [e for e in _MEM_GALLERY.values() if e.user_id == user_id]
            # insertion order breaks created_at ties
            return [e for _, e in sorted(enumerate(entries), key=lambda it: (it[1].created_at, it[0]), reverse=True)]

        # Supabase mode
        try:  # pragma: no cover - network
            res = (
                self.client.table("gallery")
                .select("*")
                .eq("user_id", user_id)
                .order("created_at", desc=True)
                .execute()
            )
            rows = res.data or []
            return [self._row_to_entity(row) for row in rows]
        except Exception as exc:
            raise RuntimeError(f"DB list gallery failed: {exc}") from exc

    def update(
        self,
        user_id: str,
        entry_id: str,
        *,
        url: str,
        storage_path: str,
        is_upscaled: bool,
    ) -> GalleryEntry:
        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            try:
                row = self.pg_client.fetch_one(
                    """
                    UPDATE gallery SET url = %s, storage_path = %s, is_upscaled = %s
                    WHERE id = %s AND user_id = %s
                    RETURNING *
                    """,
                    (url, storage_path, is_upscaled, entry_id, user_id),
                )
            except Exception as exc:
                raise RuntimeError(f"PostgreSQL update gallery entry failed: {exc}") from exc
            if row is None:
                raise RuntimeError(f"Gallery entry {entry_id} does not exist")
            return self._row_to_entity(row)

        # In-memory mode
        if self._in_memory:
            with _MEM_LOCK:
                current = _MEM_GALLERY.get(entry_id)
                if current is None or current.user_id != user_id:
                    raise RuntimeError(f"Gallery entry {entry_id} does not exist")
                updated = replace(current, url=url, storage_path=storage_path, is_upscaled=is_upscaled)
                _MEM_GALLERY[entry_id] = updated
                return updated

        # Supabase mode
        try:  # pragma: no cover - network
            res = (
                self.client.table("gallery")
                .update({"url": url, "storage_path": storage_path, "is_upscaled": is_upscaled})
                .eq("id", entry_id)
                .eq("user_id", user_id)
                .execute()
            )
            rows = res.data or []
        except Exception as exc:
            raise RuntimeError(f"DB update gallery entry failed: {exc}") from exc
        if not rows:
            raise RuntimeError(f"Gallery entry {entry_id} does not exist")
        return self._row_to_entity(rows[0])


def reset_memory_store() -> None:
    """Drop every in-memory gallery entry (disabled mode only)."""
    with _MEM_LOCK:
        _MEM_GALLERY.clear()
