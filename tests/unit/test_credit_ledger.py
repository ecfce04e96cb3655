import asyncio
from unittest.mock import Mock

import pytest

from src.application.services.credit_ledger import CreditLedgerClient
from src.application.services.session_context import SessionContext
from src.domain.entities.editor import SessionState
from src.domain.entities.identity import Identity
from src.domain.errors import (
    InsufficientCredits,
    LedgerWriteFailed,
    NotAuthenticated,
    ProfileNotReady,
)


def test_load_missing_profile_is_not_ready(ledger):
    with pytest.raises(ProfileNotReady):
        asyncio.run(ledger.load("nobody"))


def test_ensure_profile_grants_signup_bonus_once(ledger):
    ident = Identity(id="u1", email="u1@example.com", email_verified=True)
    first = asyncio.run(ledger.ensure_profile(ident, "Ada", 25))
    again = asyncio.run(ledger.ensure_profile(ident, "Ada", 25))
    assert first.credits == again.credits == 25
    assert [t.reason for t in again.credit_history] == ["Sign-up bonus"]
    assert again.name == "Ada"


def test_adjust_pairs_balance_change_with_one_transaction(ledger, funded_context):
    ctx = funded_context(10)
    after = asyncio.run(ledger.adjust(ctx.user_id, -2, "AI Filter"))
    assert after.credits == 8
    assert len(after.credit_history) == 2
    # newest first
    assert after.credit_history[0].reason == "AI Filter"
    assert after.credit_history[0].amount == -2
    assert sum(t.amount for t in after.credit_history) == after.credits


def test_adjust_wraps_store_failures():
    repo = Mock()
    repo.increment_credits.side_effect = RuntimeError("db down")
    with pytest.raises(LedgerWriteFailed):
        asyncio.run(CreditLedgerClient(repo).adjust("u1", 5, "x"))
    assert repo.increment_credits.call_count == 1


def test_can_afford():
    profile = Mock(credits=2)
    assert CreditLedgerClient.can_afford(profile, 2)
    assert not CreditLedgerClient.can_afford(profile, 3)


def test_update_profile_trims_name(ledger, funded_context):
    ctx = funded_context()
    assert asyncio.run(ledger.update_profile(ctx.user_id, "  Grace ")).name == "Grace"


def test_guard_refunds_on_failure(ledger, funded_context):
    ctx = funded_context(5)

    async def attempt():
        raise RuntimeError("model exploded")

    with pytest.raises(RuntimeError, match="model exploded"):
        asyncio.run(ledger.run_guarded(ctx, 2, "AI Filter", attempt))

    assert ctx.profile.credits == 5
    reasons = [t.reason for t in ctx.profile.credit_history]
    assert reasons[:2] == ["Refund: AI Filter", "AI Filter"]


def test_guard_rejects_insufficient_balance_without_writing(ledger, funded_context):
    ctx = funded_context(1)
    attempt = Mock()
    with pytest.raises(InsufficientCredits) as excinfo:
        asyncio.run(ledger.run_guarded(ctx, 2, "AI Filter", attempt))
    assert (excinfo.value.required, excinfo.value.available) == (2, 1)
    attempt.assert_not_called()
    assert len(asyncio.run(ledger.load(ctx.user_id)).credit_history) == 1


def test_guard_requires_authenticated_context(ledger):
    with pytest.raises(NotAuthenticated):
        asyncio.run(ledger.run_guarded(SessionContext(user_id="u"), 1, "x", Mock()))
    with pytest.raises(ProfileNotReady):
        asyncio.run(
            ledger.run_guarded(SessionContext(user_id="u", state=SessionState.LOADING), 1, "x", Mock())
        )
