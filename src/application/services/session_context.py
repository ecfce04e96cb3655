from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from src.domain.entities.editor import SessionState
from src.domain.entities.identity import Identity
from src.domain.entities.profile import ProfileEntity
from src.domain.errors import NotAuthenticated, ProfileNotReady


@dataclass
class SessionContext:
    """Identity and cached profile shared by one user's editor and gallery."""

    user_id: str
    state: SessionState = SessionState.UNKNOWN
    identity: Identity | None = None
    profile: ProfileEntity | None = None
    # serializes every ledger-touching operation of this user
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    def require_profile(self) -> ProfileEntity:
        if self.state is SessionState.LOADING:
            raise ProfileNotReady(self.user_id)
        if self.state is not SessionState.AUTHENTICATED or self.profile is None:
            raise NotAuthenticated()
        return self.profile
