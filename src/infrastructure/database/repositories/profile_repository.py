from __future__ import annotations

import json
import os
import threading
from dataclasses import replace
from datetime import UTC, datetime

from supabase import Client

from src.domain.entities.profile import CreditTransaction, ProfileEntity
from src.infrastructure.database.postgres_client import get_postgres_client

# module-level in-memory store for disabled mode
_MEM_PROFILES: dict[str, ProfileEntity] = {}
_MEM_LOCK = threading.Lock()


def _parse_timestamp(value: str | datetime | None) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


class ProfileRepository:
    """Document store access for ``users/{id}`` profile documents.

    ``increment_credits`` is the only way the balance changes: it adds a signed
    amount and appends one transaction in a single atomic write.
    """

    def __init__(self, client: Client | None) -> None:
        self.client = client
        self.disabled = os.getenv("SUPABASE_DISABLED", "0") == "1"
        self.use_local_db = os.getenv("USE_LOCAL_DB", "0") == "1"
        self.pg_client = get_postgres_client() if self.use_local_db else None

    @property
    def _in_memory(self) -> bool:
        return not (self.use_local_db and self.pg_client) and (self.disabled or self.client is None)

    def _row_to_entity(self, row: dict) -> ProfileEntity:
        """Convert database row to ProfileEntity."""
        history = row.get("credit_history") or []
        if isinstance(history, str):
            history = json.loads(history)
        return ProfileEntity(
            id=row["id"],
            email=row.get("email"),
            name=row.get("name"),
            credits=int(row.get("credits") or 0),
            credit_history=tuple(
                CreditTransaction(
                    reason=item["reason"],
                    amount=int(item["amount"]),
                    timestamp=_parse_timestamp(item["date"]),
                )
                for item in history
            ),
            created_at=_parse_timestamp(row.get("created_at")),
        )

    def get(self, user_id: str) -> ProfileEntity | None:
        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            try:
                row = self.pg_client.fetch_one("SELECT * FROM users WHERE id = %s", (user_id,))
            except Exception as exc:
                raise RuntimeError(f"PostgreSQL get profile failed: {exc}") from exc
            return self._row_to_entity(row) if row else None

        # In-memory mode
        if self._in_memory:
            return _MEM_PROFILES.get(user_id)

        # Supabase mode
        try:  # pragma: no cover - network
            res = self.client.table("users").select("*").eq("id", user_id).limit(1).execute()
        except Exception as exc:
            raise RuntimeError(f"DB get profile failed: {exc}") from exc
        rows = res.data or []
        return self._row_to_entity(rows[0]) if rows else None

    def create(
        self,
        user_id: str,
        email: str | None,
        name: str | None,
        credits: int,
        opening: CreditTransaction,
    ) -> ProfileEntity:
        now = datetime.now(UTC)
        history = [opening.to_document()]

        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            try:
                row = self.pg_client.fetch_one(
                    """
                    INSERT INTO users (id, email, name, credits, credit_history, created_at)
                    VALUES (%s, %s, %s, %s, %s::jsonb, %s)
                    ON CONFLICT (id) DO UPDATE SET email = EXCLUDED.email
                    RETURNING *
                    """,
                    (user_id, email, name, credits, json.dumps(history), now),
                )
            except Exception as exc:
                raise RuntimeError(f"PostgreSQL create profile failed: {exc}") from exc
            return self._row_to_entity(row)

        # In-memory mode
        if self._in_memory:
            with _MEM_LOCK:
                existing = _MEM_PROFILES.get(user_id)
                if existing is not None:
                    return existing
                entity = ProfileEntity(
                    id=user_id,
                    email=email,
                    name=name,
                    credits=credits,
                    credit_history=(opening,),
                    created_at=now,
                )
                _MEM_PROFILES[user_id] = entity
                return entity

        # Supabase mode
        try:  # pragma: no cover - network
            data = {
                "id": user_id,
                "email": email,
                "name": name,
                "credits": credits,
                "credit_history": history,
                "created_at": now.isoformat(),
            }
            res = self.client.table("users").upsert(data, on_conflict="id", ignore_duplicates=True).execute()
            return self.get(user_id) or self._row_to_entity(res.data[0])
        except Exception as exc:
            raise RuntimeError(f"DB create profile failed: {exc}") from exc

    def update_name(self, user_id: str, name: str) -> ProfileEntity:
        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            try:
                row = self.pg_client.fetch_one(
                    "UPDATE users SET name = %s WHERE id = %s RETURNING *", (name, user_id)
                )
            except Exception as exc:
                raise RuntimeError(f"PostgreSQL update profile failed: {exc}") from exc
            if row is None:
                raise RuntimeError(f"Profile {user_id} does not exist")
            return self._row_to_entity(row)

        # In-memory mode
        if self._in_memory:
            with _MEM_LOCK:
                current = _MEM_PROFILES.get(user_id)
                if current is None:
                    raise RuntimeError(f"Profile {user_id} does not exist")
                updated = replace(current, name=name)
                _MEM_PROFILES[user_id] = updated
                return updated

        # Supabase mode
        try:  # pragma: no cover - network
            self.client.table("users").update({"name": name}).eq("id", user_id).execute()
        except Exception as exc:
            raise RuntimeError(f"DB update profile failed: {exc}") from exc
        updated = self.get(user_id)
        if updated is None:
            raise RuntimeError(f"Profile {user_id} does not exist")
        return updated

    def increment_credits(
        self, user_id: str, amount: int, transaction: CreditTransaction
    ) -> ProfileEntity:
        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            try:
                row = self.pg_client.fetch_one(
                    """
                    UPDATE users
                    SET credits = credits + %s,
                        credit_history = credit_history || %s::jsonb
                    WHERE id = %s
                    RETURNING *
                    """,
                    (amount, json.dumps([transaction.to_document()]), user_id),
                )
            except Exception as exc:
                raise RuntimeError(f"PostgreSQL credit update failed: {exc}") from exc
            if row is None:
                raise RuntimeError(f"Profile {user_id} does not exist")
            return self._row_to_entity(row)

        # In-memory mode
        if self._in_memory:
            with _MEM_LOCK:
                current = _MEM_PROFILES.get(user_id)
                if current is None:
                    raise RuntimeError(f"Profile {user_id} does not exist")
                updated = replace(
                    current,
                    credits=current.credits + amount,
                    credit_history=current.credit_history + (transaction,),
                )
                _MEM_PROFILES[user_id] = updated
                return updated

        # Supabase mode: a SQL function performs increment + append in one statement
        try:  # pragma: no cover - network
            res = self.client.rpc(
                "increment_credits",
                {
                    "p_user_id": user_id,
                    "p_amount": amount,
                    "p_transaction": transaction.to_document(),
                },
            ).execute()
        except Exception as exc:
            raise RuntimeError(f"DB credit update failed: {exc}") from exc
        rows = res.data if isinstance(res.data, list) else [res.data]
        if not rows or rows[0] is None:
            raise RuntimeError(f"Profile {user_id} does not exist")
        return self._row_to_entity(rows[0])


def reset_memory_store() -> None:
    """Drop every in-memory profile (disabled mode only)."""
    with _MEM_LOCK:
        _MEM_PROFILES.clear()
