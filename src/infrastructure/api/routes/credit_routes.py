from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, status

from src.application.dtos.common_dto import ErrorResponse
from src.application.dtos.credit_dto import (
    CreditBalanceResponse,
    CreditPacksResponse,
    PurchaseCreditsRequest,
)
from src.application.services.session_bridge import SessionBridge
from src.application.use_cases.purchase_credits import PurchaseCreditsUseCase
from src.domain.entities.profile import ProfileEntity
from src.infrastructure.api.dependencies import get_session, get_settings
from src.infrastructure.settings import AppSettings

router = APIRouter(
    prefix="/credits",
    tags=["Credits"],
    responses={
        401: {"description": "Unauthorized - Invalid token or unverified email", "model": ErrorResponse},
        503: {"description": "Profile not ready or ledger unavailable", "model": ErrorResponse},
    },
)


def _balance(profile: ProfileEntity) -> dict:
    return {
        "credits": profile.credits,
        "history": [t.to_document() for t in profile.credit_history],
    }


@router.get(
    "",
    response_model=CreditBalanceResponse,
    summary="Get Credit Balance",
    description="""
    Current balance and the full transaction history, newest first.

    **Authentication required**: Yes (Bearer token, verified email)
    """,
    response_description="Balance and transactions",
)
async def get_credits(session: SessionBridge = Depends(get_session)):
    """Return the caller's balance and history."""
    return _balance(session.require_profile())


@router.get(
    "/packs",
    response_model=CreditPacksResponse,
    summary="List Credit Packs",
    description="Credit packs available for purchase and the cost of each metered operation.",
)
def list_packs(settings: AppSettings = Depends(get_settings)):
    """List purchasable packs and operation costs."""
    return {
        "packs": [{"credits": n, "reason": reason} for n, reason in sorted(settings.credit_packs.items())],
        "costs": asdict(settings.costs),
    }


@router.post(
    "/purchase",
    response_model=CreditBalanceResponse,
    status_code=status.HTTP_200_OK,
    summary="Purchase Credit Pack",
    description="""
    Add a credit pack to the caller's balance. Payment capture is handled by
    the payment provider before this call.

    **Authentication required**: Yes (Bearer token, verified email)
    """,
    responses={400: {"description": "Bad Request - Unknown credit pack", "model": ErrorResponse}},
)
async def purchase_credits(
    body: PurchaseCreditsRequest,
    session: SessionBridge = Depends(get_session),
    settings: AppSettings = Depends(get_settings),
):
    """Credit the requested pack."""
    use_case = PurchaseCreditsUseCase(ledger=session.ledger, packs=settings.credit_packs)
    profile = await use_case.execute(session.context, body.credits)
    return _balance(profile)
