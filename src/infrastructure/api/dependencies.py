from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.application.services.credit_ledger import CreditLedgerClient
from src.application.services.session_bridge import SessionBridge, SessionRegistry
from src.domain.entities.identity import Identity
from src.infrastructure.ai.gemini_gateway import build_image_gateway
from src.infrastructure.database.repositories.gallery_repository import GalleryRepository
from src.infrastructure.database.repositories.profile_repository import ProfileRepository
from src.infrastructure.database.supabase_client import SupabaseAuthAdapter, get_supabase_client
from src.infrastructure.settings import AppSettings, load_settings
from src.infrastructure.storage.supabase_storage import SupabaseStorage

_bearer_scheme = HTTPBearer(auto_error=False)

# process-wide singletons; sessions must outlive a single request
_SETTINGS: AppSettings | None = None
_AUTH: SupabaseAuthAdapter | None = None
_REGISTRY: SessionRegistry | None = None


def get_settings() -> AppSettings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = load_settings()
    return _SETTINGS


def get_auth_adapter() -> SupabaseAuthAdapter:
    global _AUTH
    if _AUTH is None:
        _AUTH = SupabaseAuthAdapter()
    return _AUTH


def get_storage() -> SupabaseStorage:
    return SupabaseStorage(get_supabase_client())


def get_profile_repo() -> ProfileRepository:
    return ProfileRepository(get_supabase_client())


def get_gallery_repo() -> GalleryRepository:
    return GalleryRepository(get_supabase_client())


def get_ledger(
    profiles: Annotated[ProfileRepository, Depends(get_profile_repo)],
) -> CreditLedgerClient:
    return CreditLedgerClient(profiles)


def get_registry() -> SessionRegistry:
    global _REGISTRY
    if _REGISTRY is None:
        settings = get_settings()
        _REGISTRY = SessionRegistry(
            auth=get_auth_adapter(),
            ledger=CreditLedgerClient(get_profile_repo()),
            gateway=build_image_gateway(settings),
            gallery_repository=get_gallery_repo(),
            storage=get_storage(),
            settings=settings,
        )
    return _REGISTRY


def reset_dependencies() -> None:
    """Forget every singleton so the next request rebuilds them from the environment."""
    global _SETTINGS, _AUTH, _REGISTRY
    if _REGISTRY is not None:
        _REGISTRY.close()
    _SETTINGS = None
    _AUTH = None
    _REGISTRY = None


def get_bearer_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(_bearer_scheme)] = None,
) -> str:
    if not credentials or not credentials.scheme or credentials.scheme.lower() != "bearer":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    if not credentials.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    return credentials.credentials


def get_current_user(
    token: Annotated[str, Depends(get_bearer_token)],
    auth: Annotated[SupabaseAuthAdapter, Depends(get_auth_adapter)],
) -> Identity:
    try:
        return auth.validate_token(token)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc))


async def get_session(
    identity: Annotated[Identity, Depends(get_current_user)],
    registry: Annotated[SessionRegistry, Depends(get_registry)],
) -> SessionBridge:
    """Live session of the caller; profile and gallery are loaded on first use."""
    return await registry.establish(identity)
