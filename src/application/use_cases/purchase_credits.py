from __future__ import annotations

from dataclasses import dataclass

from src.application.services.credit_ledger import CreditLedgerClient
from src.application.services.session_context import SessionContext
from src.domain.entities.profile import ProfileEntity
from src.domain.errors import UnknownCreditPack


@dataclass
class PurchaseCreditsUseCase:
    ledger: CreditLedgerClient
    packs: dict[int, str]

    async def execute(self, context: SessionContext, credits: int) -> ProfileEntity:
        """Credit a known pack to the signed-in user.

        Payment capture happens outside this service; only the ledger write is
        performed here.
        """
        reason = self.packs.get(credits)
        if reason is None:
            raise UnknownCreditPack(credits)
        profile = context.require_profile()
        context.profile = await self.ledger.adjust(profile.id, credits, reason)
        return context.profile
