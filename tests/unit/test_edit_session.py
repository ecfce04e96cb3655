import asyncio
import logging
from unittest.mock import AsyncMock

import pytest

from src.application.services.edit_session import EditSession
from src.domain.entities.artifact import CropSelection
from src.domain.entities.editor import EditorTab
from src.domain.errors import (
    GenerationFailed,
    InsufficientCredits,
    LedgerWriteFailed,
    MalformedPayload,
    MissingEditInput,
    NoCropSelected,
    NoImageLoaded,
    PreconditionFailed,
)


@pytest.fixture()
def make_session(ledger, gateway, funded_context, artifact):
    def _make(credits=25, with_image=True):
        session = EditSession(funded_context(credits), ledger, gateway)
        if with_image:
            asyncio.run(session.upload(artifact(w=40, h=20)))
        return session

    return _make


def _balance(ledger, session):
    return asyncio.run(ledger.load(session.context.user_id)).credits


def test_upload_resets_editor_state(make_session, artifact):
    session = make_session()
    session.set_tab(EditorTab.LOCAL_EDIT)
    session.select_hotspot(10, 5, 40, 20)
    session.set_crop_selection(CropSelection(0, 0, 5, 5, 40, 20))

    asyncio.run(session.upload(artifact(name="second.png")))

    assert len(session.history) == 1
    assert session.current.name == "second.png"
    assert session.hotspot is None
    assert session.crop_selection is None
    assert session.active_tab is EditorTab.PROMPT_EDIT


def test_successful_filter_debits_once_and_appends(make_session, ledger):
    session = make_session(credits=10)

    result = asyncio.run(session.apply_filter("vintage film"))

    assert result.name.startswith("filtered-") and result.name.endswith(".png")
    assert len(session.history) == 2
    assert session.history.cursor == 1
    assert session.current is result
    assert _balance(ledger, session) == 8
    debits = [t for t in session.context.profile.credit_history if t.amount < 0]
    assert [(t.reason, t.amount) for t in debits] == [("AI Filter", -2)]


def test_insufficient_credits_leaves_ledger_and_history_unchanged(make_session, ledger, gateway):
    session = make_session(credits=1)
    session.set_tab(EditorTab.LOCAL_EDIT)
    session.select_hotspot(20, 10, 40, 20)

    with pytest.raises(InsufficientCredits) as excinfo:
        asyncio.run(session.local_edit("add a hat"))

    assert (excinfo.value.required, excinfo.value.available) == (2, 1)
    assert _balance(ledger, session) == 1
    assert len(session.history) == 1
    gateway.edit_image.assert_not_called()


def test_generation_failure_refunds_and_keeps_history(make_session, ledger, gateway):
    session = make_session(credits=10)
    gateway.adjust_image.side_effect = GenerationFailed("adjust image", "blocked")

    with pytest.raises(GenerationFailed):
        asyncio.run(session.apply_adjustment("make it warmer"))

    assert _balance(ledger, session) == 10
    assert session.context.profile.credits == 10
    assert len(session.history) == 1
    reasons = [t.reason for t in session.context.profile.credit_history]
    assert "Refund: AI Prompt Edit" in reasons and "AI Prompt Edit" in reasons


@pytest.mark.parametrize("succeed", [True, False])
def test_balance_is_conserved_across_outcomes(make_session, ledger, gateway, succeed):
    session = make_session(credits=7)
    if not succeed:
        gateway.filter_image.side_effect = GenerationFailed("apply filter", "no image")

    for _ in range(3):
        try:
            asyncio.run(session.apply_filter("noir"))
        except GenerationFailed:
            pass

    expected = 7 - 3 * 2 if succeed else 7
    assert _balance(ledger, session) == expected
    assert len(session.history) == (4 if succeed else 1)


def test_malformed_gateway_payload_refunds(make_session, ledger, gateway):
    session = make_session(credits=4)
    gateway.filter_image.return_value = "not a data url"

    with pytest.raises(MalformedPayload):
        asyncio.run(session.apply_filter("noir"))

    assert _balance(ledger, session) == 4
    assert len(session.history) == 1


def test_refund_failure_is_logged_and_user_stays_debited(make_session, ledger, gateway, caplog):
    """Known limitation: a refund that cannot be written is not retried."""
    session = make_session(credits=10)
    gateway.filter_image.side_effect = GenerationFailed("apply filter", "no image")
    real_adjust = ledger.adjust

    async def adjust(user_id, amount, reason):
        if reason.startswith("Refund: "):
            raise LedgerWriteFailed("db down")
        return await real_adjust(user_id, amount, reason)

    ledger.adjust = adjust
    with caplog.at_level(logging.ERROR):
        with pytest.raises(GenerationFailed):
            asyncio.run(session.apply_filter("noir"))

    assert _balance(ledger, session) == 8
    assert any("Refund of 2 credits" in r.getMessage() for r in caplog.records)


def test_debit_failure_skips_the_gateway(make_session, ledger, gateway):
    session = make_session()
    ledger.adjust = AsyncMock(side_effect=LedgerWriteFailed("db down"))

    with pytest.raises(LedgerWriteFailed):
        asyncio.run(session.apply_filter("noir"))

    gateway.filter_image.assert_not_called()
    assert ledger.adjust.await_count == 1


def test_operations_require_an_image(make_session):
    session = make_session(with_image=False)
    with pytest.raises(NoImageLoaded):
        asyncio.run(session.apply_filter("noir"))
    with pytest.raises(NoImageLoaded):
        asyncio.run(session.apply_crop())


def test_local_edit_requires_prompt_and_hotspot(make_session):
    session = make_session()
    with pytest.raises(MissingEditInput):
        asyncio.run(session.local_edit("   "))
    with pytest.raises(MissingEditInput):
        asyncio.run(session.local_edit("add a hat"))


def test_hotspot_only_in_local_edit_tab(make_session):
    session = make_session()
    with pytest.raises(PreconditionFailed):
        session.select_hotspot(1, 1, 40, 20)
    session.set_tab(EditorTab.LOCAL_EDIT)
    hotspot = session.select_hotspot(10, 5, 20, 10)
    assert (hotspot.x, hotspot.y) == (20, 10)
    session.set_tab(EditorTab.FILTERS)
    assert session.hotspot is None


@pytest.mark.parametrize("fails", [False, True])
def test_hotspot_cleared_after_local_edit_attempt(make_session, gateway, fails):
    session = make_session()
    session.set_tab(EditorTab.LOCAL_EDIT)
    session.select_hotspot(20, 10, 40, 20)
    if fails:
        gateway.edit_image.side_effect = GenerationFailed("edit image", "blocked")

    try:
        asyncio.run(session.local_edit("add a hat"))
    except GenerationFailed:
        pass

    assert session.hotspot is None
    args = gateway.edit_image.await_args.args
    assert (args[2].x, args[2].y) == (20, 10)


def test_hotspot_cleared_on_undo_and_redo(make_session):
    session = make_session()
    asyncio.run(session.apply_filter("noir"))
    session.set_tab(EditorTab.LOCAL_EDIT)

    session.select_hotspot(1, 1, 40, 20)
    assert asyncio.run(session.undo()) is True
    assert session.hotspot is None

    session.select_hotspot(1, 1, 40, 20)
    assert asyncio.run(session.redo()) is True
    assert session.hotspot is None
    assert asyncio.run(session.redo()) is False


def test_crop_whole_image_appends_new_version(make_session):
    session = make_session()
    with pytest.raises(NoCropSelected):
        asyncio.run(session.apply_crop())

    session.set_crop_selection(CropSelection(0, 0, 20, 10, 20, 10))
    cropped = asyncio.run(session.apply_crop(pixel_ratio=2.0))

    assert cropped.name.startswith("cropped-")
    assert cropped.mime_type == "image/png"
    assert len(session.history) == 2
    assert session.history.cursor == 1
    assert session.history.can_undo
    assert session.crop_selection is None
    assert session.context.profile.credits == 25


def test_empty_crop_selection_is_ignored(make_session):
    session = make_session()
    session.set_crop_selection(CropSelection(0, 0, 0, 10, 20, 10))
    assert session.crop_selection is None


def test_reset_and_go_home(make_session):
    session = make_session()
    asyncio.run(session.apply_filter("noir"))
    assert asyncio.run(session.reset_to_original()) is True
    assert session.history.cursor == 0
    assert len(session.history) == 2

    asyncio.run(session.go_home())
    assert session.history.is_empty
    assert session.current_ref is None
    assert asyncio.run(session.reset_to_original()) is False


def test_display_handles_follow_the_current_version(make_session):
    session = make_session()
    first_ref = session.current_ref
    assert session.handles.resolve(first_ref) is session.current

    asyncio.run(session.apply_filter("noir"))
    asyncio.run(session.undo())
    asyncio.run(session.redo())

    assert session.handles.resolve(first_ref) is None
    assert session.handles.live_count == 2  # current and original
    assert session.handles.acquired - session.handles.released == 2

    asyncio.run(session.go_home())
    assert session.handles.live_count == 0
    assert session.handles.acquired == session.handles.released


def test_concurrent_operations_are_serialized(make_session, gateway):
    session = make_session(credits=10)
    result = gateway.filter_image.return_value
    in_flight = 0
    peak = 0

    async def slow_filter(artifact, prompt):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return result

    gateway.filter_image = slow_filter

    async def run_both():
        first = asyncio.create_task(session.apply_filter("a"))
        await asyncio.sleep(0)
        assert session.busy
        await asyncio.gather(first, session.apply_filter("b"))

    asyncio.run(run_both())
    assert peak == 1
    assert len(session.history) == 3
    assert not session.busy
