from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class CreditTransaction:
    reason: str
    amount: int  # positive for additions, negative for deductions
    timestamp: datetime

    def to_document(self) -> dict:
        return {"reason": self.reason, "amount": self.amount, "date": self.timestamp.isoformat()}


@dataclass(frozen=True)
class ProfileEntity:
    id: str  # user id from Supabase auth
    email: str | None
    name: str | None = None
    credits: int = 0
    credit_history: tuple[CreditTransaction, ...] = field(default_factory=tuple)
    created_at: datetime | None = None
