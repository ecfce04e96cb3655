"""Credit ledger: balance reads, signed adjustments and the debit/refund guard."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import UTC, datetime
from typing import Awaitable, Callable, TypeVar

from src.application.services.session_context import SessionContext
from src.domain.entities.identity import Identity
from src.domain.entities.profile import CreditTransaction, ProfileEntity
from src.domain.errors import InsufficientCredits, LedgerWriteFailed, ProfileNotReady
from src.infrastructure.database.repositories.profile_repository import ProfileRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")

SIGNUP_BONUS_REASON = "Sign-up bonus"


def _newest_first(profile: ProfileEntity) -> ProfileEntity:
    # ties keep the later-appended transaction first
    ordered = sorted(enumerate(profile.credit_history), key=lambda it: (it[1].timestamp, it[0]), reverse=True)
    history = tuple(t for _, t in ordered)
    return replace(profile, credit_history=history)


class CreditLedgerClient:
    def __init__(self, profiles: ProfileRepository) -> None:
        self.profiles = profiles

    async def load(self, user_id: str) -> ProfileEntity:
        profile = await asyncio.to_thread(self.profiles.get, user_id)
        if profile is None:
            raise ProfileNotReady(user_id)
        return _newest_first(profile)

    async def adjust(self, user_id: str, amount: int, reason: str) -> ProfileEntity:
        """Apply a signed change and append its transaction in one write.

        Any store failure surfaces as :class:`LedgerWriteFailed`; the write is
        never retried here.
        """
        transaction = CreditTransaction(reason=reason, amount=amount, timestamp=datetime.now(UTC))
        try:
            profile = await asyncio.to_thread(
                self.profiles.increment_credits, user_id, amount, transaction
            )
        except Exception as exc:
            logger.error("Credit adjustment %+d (%s) for %s failed: %s", amount, reason, user_id, exc)
            raise LedgerWriteFailed(f"Could not update credits: {exc}") from exc
        logger.info("Credits %+d for %s (%s); balance %d", amount, user_id, reason, profile.credits)
        return _newest_first(profile)

    @staticmethod
    def can_afford(profile: ProfileEntity, cost: int) -> bool:
        return profile.credits >= cost

    async def update_profile(self, user_id: str, name: str) -> ProfileEntity:
        profile = await asyncio.to_thread(self.profiles.update_name, user_id, name.strip())
        return _newest_first(profile)

    async def ensure_profile(
        self, identity: Identity, name: str | None, bonus: int
    ) -> ProfileEntity:
        """Create the profile with its sign-up bonus unless it already exists."""
        existing = await asyncio.to_thread(self.profiles.get, identity.id)
        if existing is not None:
            return _newest_first(existing)
        opening = CreditTransaction(
            reason=SIGNUP_BONUS_REASON, amount=bonus, timestamp=datetime.now(UTC)
        )
        profile = await asyncio.to_thread(
            self.profiles.create, identity.id, identity.email, name, bonus, opening
        )
        logger.info("Created profile for %s with %d bonus credits", identity.id, bonus)
        return _newest_first(profile)

    async def run_guarded(
        self,
        context: SessionContext,
        cost: int,
        reason: str,
        attempt: Callable[[], Awaitable[T]],
    ) -> T:
        """Debit ``cost``, run ``attempt`` and refund if it raises.

        The caller's error is always re-raised. A failed refund is logged and
        not retried, leaving the user debited.
        """
        profile = context.require_profile()
        if not self.can_afford(profile, cost):
            raise InsufficientCredits(required=cost, available=profile.credits)

        context.profile = await self.adjust(profile.id, -cost, reason)
        try:
            return await attempt()
        except Exception:
            try:
                context.profile = await self.adjust(profile.id, cost, f"Refund: {reason}")
            except LedgerWriteFailed:
                logger.exception("Refund of %d credits for %s (%s) failed", cost, profile.id, reason)
            raise
