from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class CreditTransactionModel(BaseModel):
    """One ledger entry."""
    reason: str = Field(..., description="Why the balance changed", example="AI Filter")
    amount: int = Field(..., description="Signed change; negative for deductions", example=-2)
    date: datetime = Field(..., description="ISO timestamp of the change")


class CreditBalanceResponse(BaseModel):
    """Balance and transaction history, newest first."""
    credits: int = Field(..., description="Current balance", example=23)
    history: list[CreditTransactionModel] = Field(..., description="Transactions, newest first")


class CreditPackModel(BaseModel):
    """A purchasable bundle of credits."""
    credits: int = Field(..., description="Credits in the pack", example=100, gt=0)
    reason: str = Field(..., description="Ledger reason recorded on purchase", example="100 Credit Pack")


class CreditPacksResponse(BaseModel):
    """Response model for listing credit packs."""
    packs: list[CreditPackModel] = Field(..., description="Available packs")
    costs: dict[str, int] = Field(
        ...,
        description="Credit cost of each metered operation",
        example={"local_edit": 2, "filter": 2, "adjustment": 2, "generate": 2, "upscale": 1},
    )


class PurchaseCreditsRequest(BaseModel):
    """Request model for buying a credit pack."""
    credits: int = Field(..., description="Size of the pack to buy", example=200, gt=0)
