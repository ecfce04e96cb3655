from __future__ import annotations

import hashlib
import inspect
import logging
import os
from typing import Awaitable, Callable, Union

from supabase import Client, create_client

from src.domain.entities.identity import Identity

logger = logging.getLogger(__name__)

# (subject user id, new identity or None when signed out)
IdentityListener = Callable[[str, Union[Identity, None]], Union[Awaitable[None], None]]


class SupabaseAuthAdapter:
    """Validates Supabase access tokens and fans out identity changes.

    When SUPABASE_DISABLED=1, any token maps to a deterministic fake identity.
    Tokens prefixed with ``unverified-`` yield an identity whose email is not
    verified, which lets the disabled mode exercise the verification gate.
    """

    def __init__(self) -> None:
        self.disabled = os.getenv("SUPABASE_DISABLED", "0") == "1"
        self.url = os.getenv("SUPABASE_URL")
        self.key = os.getenv("SUPABASE_ANON_KEY")
        self._client: Client | None = None
        self._listeners: list[IdentityListener] = []
        if not self.disabled and self.url and self.key:
            self._client = create_client(self.url, self.key)

    def validate_token(self, token: str) -> Identity:
        if not token:
            raise ValueError("Missing access token")
        if self.disabled or not self._client:
            digest = hashlib.sha256(token.encode("utf-8")).hexdigest()[:12]
            return Identity(
                id=f"fake-{digest}",
                email=f"{digest}@example.com",
                email_verified=not token.startswith("unverified-"),
            )
        # Real validation via Supabase Auth API
        try:
            res = self._client.auth.get_user(token)  # type: ignore[attr-defined]
            user = res.user  # type: ignore[assignment]
            if not user:
                raise ValueError("Invalid access token")
            return Identity(
                id=user.id,
                email=user.email,
                email_verified=getattr(user, "email_confirmed_at", None) is not None,
            )
        except Exception as exc:  # pragma: no cover - network path
            raise ValueError(f"Invalid access token: {exc}") from exc

    def on_identity_change(self, listener: IdentityListener) -> Callable[[], None]:
        """Register a listener; the returned callable unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def publish(self, subject_id: str, identity: Identity | None) -> None:
        for listener in list(self._listeners):
            result = listener(subject_id, identity)
            if inspect.isawaitable(result):
                await result

    async def sign_out(self, token: str) -> None:
        identity = self.validate_token(token)
        if self._client is not None and not self.disabled:
            try:  # pragma: no cover - network
                self._client.auth.admin.sign_out(token)  # type: ignore[attr-defined]
            except Exception as exc:  # pragma: no cover
                raise RuntimeError(f"Sign-out failed: {exc}") from exc
        logger.info("User %s signed out", identity.id)
        await self.publish(identity.id, None)


# Simple reusable singleton client getter for repositories/storage
_CLIENT_SINGLETON: Client | None = None


def get_supabase_client() -> Client | None:
    global _CLIENT_SINGLETON
    disabled = os.getenv("SUPABASE_DISABLED", "0") == "1"
    url = os.getenv("SUPABASE_URL")
    key = os.getenv("SUPABASE_ANON_KEY")
    if disabled or not url or not key:
        return None
    if _CLIENT_SINGLETON is None:
        _CLIENT_SINGLETON = create_client(url, key)
    return _CLIENT_SINGLETON
