from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from src.application.services.credit_ledger import CreditLedgerClient
from src.application.services.session_bridge import SessionBridge, SessionRegistry
from src.domain.entities.editor import SessionState
from src.domain.entities.identity import Identity
from src.infrastructure.api.dependencies import (
    get_auth_adapter,
    get_bearer_token,
    get_current_user,
    get_ledger,
    get_registry,
    get_session,
    get_settings,
)
from src.infrastructure.database.supabase_client import SupabaseAuthAdapter
from src.infrastructure.settings import AppSettings

router = APIRouter(
    prefix="/auth",
    tags=["Authentication"],
    responses={
        401: {"description": "Unauthorized - Invalid or missing authentication token"},
        422: {"description": "Validation Error - Invalid request format"}
    }
)


class ValidateTokenBody(BaseModel):
    """Optional sign-up details recorded when the profile is first created."""
    name: str | None = Field(None, max_length=100, description="Display name chosen at sign-up", example="Jane Doe")


class ValidateTokenResponse(BaseModel):
    """Response model for token validation."""
    user_id: str = Field(..., description="Unique identifier of the authenticated user")
    email: str | None = Field(None, description="Email address of the authenticated user", example="user@example.com")
    email_verified: bool = Field(..., description="Whether the email address has been verified")
    state: SessionState = Field(..., description="Session state after validation", example="authenticated")
    credits: int | None = Field(None, description="Credit balance when the session is authenticated", example=25)


@router.post(
    "/validate",
    response_model=ValidateTokenResponse,
    status_code=status.HTTP_200_OK,
    summary="Validate Authentication Token",
    description="""
    Validate the provided JWT token and establish the caller's session.

    This endpoint:
    - Verifies the JWT token in the Authorization header
    - Creates the user profile with the sign-up bonus if it does not exist yet
    - Loads the credit balance and gallery for verified users

    Unverified email addresses get a profile but stay in the `anonymous` state
    until the address is verified.

    **Authentication required**: Yes (Bearer token)
    """,
    response_description="Identity and session state"
)
async def validate_token(
    body: ValidateTokenBody | None = None,
    user: Identity = Depends(get_current_user),
    ledger: CreditLedgerClient = Depends(get_ledger),
    registry: SessionRegistry = Depends(get_registry),
    settings: AppSettings = Depends(get_settings),
):
    """Validate JWT token and ensure user profile exists."""
    name = body.name.strip() if body and body.name else None
    await ledger.ensure_profile(user, name, settings.signup_bonus_credits)
    session = await registry.establish(user)
    return {
        "user_id": user.id,
        "email": user.email,
        "email_verified": user.email_verified,
        "state": session.state,
        "credits": session.profile.credits if session.profile else None,
    }


class UserProfileResponse(BaseModel):
    """Response model for user profile information."""
    id: str = Field(..., description="Unique identifier of the user")
    email: str | None = Field(None, description="Email address of the user", example="user@example.com")
    name: str | None = Field(None, description="Display name of the user", example="Jane Doe")
    credits: int = Field(..., description="Current credit balance", example=25)
    created_at: datetime | None = Field(None, description="ISO timestamp when the user profile was created")


@router.get(
    "/me",
    response_model=UserProfileResponse,
    status_code=status.HTTP_200_OK,
    summary="Get Current User Profile",
    description="""
    Retrieve the profile of the currently authenticated user.

    Returns 503 while the profile document has not been written yet.

    **Authentication required**: Yes (Bearer token, verified email)
    """,
    response_description="Complete user profile information"
)
async def get_me(session: SessionBridge = Depends(get_session)):
    """Get current user's profile information."""
    prof = session.require_profile()
    return {
        "id": prof.id,
        "email": prof.email,
        "name": prof.name,
        "credits": prof.credits,
        "created_at": prof.created_at,
    }


class UpdateProfileBody(BaseModel):
    """Request model for updating user profile."""
    name: str = Field(..., min_length=1, max_length=100, description="Display name for the user", example="Jane Doe")


class UpdateProfileResponse(BaseModel):
    """Response model for profile update."""
    id: str = Field(..., description="Unique identifier of the user")
    email: str | None = Field(None, description="Email address of the user")
    name: str = Field(..., description="Updated display name of the user")


@router.patch(
    "/profile",
    response_model=UpdateProfileResponse,
    status_code=status.HTTP_200_OK,
    summary="Update User Profile",
    description="""
    Update the display name for the currently authenticated user.

    **Request Requirements:**
    - Display name must be between 1 and 100 characters
    - Display name cannot be empty or whitespace only

    **Authentication required**: Yes (Bearer token, verified email)
    """,
    response_description="Updated user profile information",
    responses={
        400: {"description": "Bad Request - Invalid name provided"}
    }
)
async def update_profile(
    body: UpdateProfileBody,
    session: SessionBridge = Depends(get_session),
):
    """Update the current user's display name."""
    if not body.name or not body.name.strip():
        raise HTTPException(status_code=400, detail="Display name cannot be empty")
    prof = session.require_profile()
    updated = await session.ledger.update_profile(prof.id, body.name)
    session.context.profile = updated
    return {"id": updated.id, "email": updated.email, "name": updated.name}


@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Sign Out",
    description="""
    Sign the caller out and discard their editing session, gallery cache and
    display references.

    **Authentication required**: Yes (Bearer token)
    """,
)
async def logout(
    token: str = Depends(get_bearer_token),
    auth: SupabaseAuthAdapter = Depends(get_auth_adapter),
):
    """Sign out and drop the server-side session."""
    try:
        await auth.sign_out(token)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc))
