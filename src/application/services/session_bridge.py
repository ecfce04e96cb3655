"""Identity establishment: ties an auth identity to its ledger, editor and gallery."""
from __future__ import annotations

import logging
from typing import Callable

from src.application.services.credit_ledger import CreditLedgerClient
from src.application.services.edit_session import EditSession
from src.application.services.gallery_manager import GalleryManager
from src.application.services.session_context import SessionContext
from src.domain.entities.editor import SessionState
from src.domain.entities.identity import Identity
from src.domain.entities.profile import ProfileEntity
from src.domain.errors import ProfileNotReady
from src.domain.services.image_gateway import ImageGateway
from src.infrastructure.database.repositories.gallery_repository import GalleryRepository
from src.infrastructure.database.supabase_client import SupabaseAuthAdapter
from src.infrastructure.settings import AppSettings
from src.infrastructure.storage.supabase_storage import SupabaseStorage

logger = logging.getLogger(__name__)


class SessionBridge:
    """Session state for one user id.

    A verified identity loads the profile and gallery; an absent or unverified
    identity clears everything user-scoped. A missing profile document puts the
    session in ``LOADING`` until :meth:`refresh` finds it.
    """

    def __init__(
        self,
        user_id: str,
        ledger: CreditLedgerClient,
        gateway: ImageGateway,
        gallery_repository: GalleryRepository,
        storage: SupabaseStorage,
        settings: AppSettings,
    ) -> None:
        self.context = SessionContext(user_id=user_id)
        self.ledger = ledger
        self.editor = EditSession(self.context, ledger, gateway, settings.costs)
        self.gallery = GalleryManager(
            self.context, ledger, gateway, gallery_repository, storage, settings.costs
        )

    @property
    def state(self) -> SessionState:
        return self.context.state

    @property
    def profile(self) -> ProfileEntity | None:
        return self.context.profile

    def require_profile(self) -> ProfileEntity:
        return self.context.require_profile()

    async def handle_identity_change(self, identity: Identity | None) -> SessionState:
        if identity is None or not identity.email_verified:
            await self._clear()
            return self.context.state

        self.context.identity = identity
        try:
            self.context.profile = await self.ledger.load(identity.id)
        except ProfileNotReady:
            logger.info("Profile for %s not written yet; session loading", identity.id)
            self.context.profile = None
            self.context.state = SessionState.LOADING
            return self.context.state

        self.context.state = SessionState.AUTHENTICATED
        await self.gallery.load()
        return self.context.state

    async def refresh(self) -> SessionState:
        """Reload profile and gallery for the current identity."""
        return await self.handle_identity_change(self.context.identity)

    async def _clear(self) -> None:
        # an in-flight operation finishes before the history is dropped
        async with self.context.lock:
            self.editor.clear()
            self.gallery.clear()
            self.context.identity = None
            self.context.profile = None
            self.context.state = SessionState.ANONYMOUS


class SessionRegistry:
    """One :class:`SessionBridge` per user id, driven by auth notifications."""

    def __init__(
        self,
        auth: SupabaseAuthAdapter,
        ledger: CreditLedgerClient,
        gateway: ImageGateway,
        gallery_repository: GalleryRepository,
        storage: SupabaseStorage,
        settings: AppSettings,
    ) -> None:
        self.ledger = ledger
        self.gateway = gateway
        self.gallery_repository = gallery_repository
        self.storage = storage
        self.settings = settings
        self._sessions: dict[str, SessionBridge] = {}
        self._unsubscribe: Callable[[], None] = auth.on_identity_change(self._on_identity_change)

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, user_id: str) -> SessionBridge | None:
        return self._sessions.get(user_id)

    async def establish(self, identity: Identity) -> SessionBridge:
        """Return the live bridge for ``identity``, creating and loading it if needed."""
        bridge = self._sessions.get(identity.id)
        if bridge is None:
            bridge = SessionBridge(
                identity.id,
                self.ledger,
                self.gateway,
                self.gallery_repository,
                self.storage,
                self.settings,
            )
            self._sessions[identity.id] = bridge
        if bridge.state is not SessionState.AUTHENTICATED or not identity.email_verified:
            await bridge.handle_identity_change(identity)
        return bridge

    async def _on_identity_change(self, subject_id: str, identity: Identity | None) -> None:
        bridge = self._sessions.get(subject_id)
        if bridge is None:
            return
        await bridge.handle_identity_change(identity)
        if identity is None:
            del self._sessions[subject_id]
            logger.info("Dropped session for %s", subject_id)

    def close(self) -> None:
        self._unsubscribe()
        self._sessions.clear()
