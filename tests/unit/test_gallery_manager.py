import asyncio

import pytest

from src.application.services.gallery_manager import GalleryManager
from src.domain.entities.artifact import ImageArtifact
from src.domain.errors import EntryNotFound, GenerationFailed, InsufficientCredits
from src.domain.services.artifact_codec import bytes_to_data_url
from src.infrastructure.database.repositories.gallery_repository import GalleryRepository
from src.infrastructure.storage.supabase_storage import SupabaseStorage


@pytest.fixture()
def make_gallery(ledger, gateway, funded_context, tmp_path, monkeypatch):
    monkeypatch.setenv("SUPABASE_STORAGE_LOCAL_DIR", str(tmp_path))

    def _make(credits=25):
        return GalleryManager(
            funded_context(credits), ledger, gateway, GalleryRepository(None), SupabaseStorage(None)
        )

    return _make


def _balance(ledger, gallery):
    return asyncio.run(ledger.load(gallery.context.user_id)).credits


def test_generate_stores_image_and_prepends_entry(make_gallery, ledger, gateway, tmp_path):
    gallery = make_gallery(credits=10)

    first = asyncio.run(gallery.generate("a lighthouse", "16:9"))
    second = asyncio.run(gallery.generate("a forest", "1:1"))

    assert [e.id for e in gallery.entries] == [second.id, first.id]
    assert first.storage_path.startswith("users/user_1/generated/generated-")
    assert first.storage_path.endswith(".jpeg")
    assert (tmp_path / first.storage_path).exists()
    assert not first.is_upscaled
    assert _balance(ledger, gallery) == 6
    gateway.generate_image.assert_any_await("a lighthouse", "16:9")


def test_generate_failure_refunds(make_gallery, ledger, gateway):
    gallery = make_gallery(credits=10)
    gateway.generate_image.side_effect = GenerationFailed("generate image", "blocked")

    with pytest.raises(GenerationFailed):
        asyncio.run(gallery.generate("a lighthouse", "1:1"))

    assert _balance(ledger, gallery) == 10
    assert gallery.entries == []
    reasons = [t.reason for t in gallery.context.profile.credit_history]
    assert reasons[:2] == ["Refund: Image Generation", "Image Generation"]


def test_generate_validates_before_charging(make_gallery, ledger, gateway):
    gallery = make_gallery(credits=10)
    with pytest.raises(ValueError):
        asyncio.run(gallery.generate("a lighthouse", "2:1"))
    gateway.generate_image.assert_not_called()
    assert _balance(ledger, gallery) == 10


def test_generate_with_insufficient_credits(make_gallery, gateway):
    gallery = make_gallery(credits=1)
    with pytest.raises(InsufficientCredits):
        asyncio.run(gallery.generate("a lighthouse", "1:1"))
    gateway.generate_image.assert_not_called()


def test_upscale_replaces_entry_in_place(make_gallery, ledger, gateway):
    gallery = make_gallery(credits=10)
    entry = asyncio.run(gallery.generate("a lighthouse", "1:1"))

    upscaled = asyncio.run(gallery.upscale(entry.id))

    assert upscaled.id == entry.id
    assert upscaled.is_upscaled
    assert upscaled.storage_path == f"users/user_1/generated/upscaled-{entry.id}.jpeg"
    assert gallery.find(entry.id) == upscaled
    assert len(gallery.entries) == 1
    assert _balance(ledger, gallery) == 10 - 2 - 1
    assert gallery.context.profile.credit_history[0].reason == f"Upscale: {entry.id}"
    # stored record updated too
    assert asyncio.run(gallery.load())[0].is_upscaled


def test_upscale_failure_refunds_and_keeps_entry(make_gallery, ledger, gateway):
    gallery = make_gallery(credits=10)
    entry = asyncio.run(gallery.generate("a lighthouse", "1:1"))
    gateway.upscale_image.side_effect = GenerationFailed("upscale image", "no image")

    with pytest.raises(GenerationFailed):
        asyncio.run(gallery.upscale(entry.id))

    assert gallery.find(entry.id) == entry
    assert _balance(ledger, gallery) == 8


def test_upscale_of_upscaled_entry_still_charges(make_gallery, ledger):
    """The service has no double-upscale guard; the API rejects it instead."""
    gallery = make_gallery(credits=10)
    entry = asyncio.run(gallery.generate("a lighthouse", "1:1"))
    asyncio.run(gallery.upscale(entry.id))

    again = asyncio.run(gallery.upscale(entry.id))

    assert again.is_upscaled
    assert _balance(ledger, gallery) == 10 - 2 - 1 - 1


@pytest.mark.parametrize("fmt, expected", [("PNG", "image/png"), ("JPEG", "image/jpeg")])
def test_upscale_sends_the_stored_image_type(make_gallery, gateway, png_bytes, fmt, expected):
    gallery = make_gallery(credits=10)
    gateway.generate_image.return_value = bytes_to_data_url(png_bytes(8, 8, fmt=fmt), expected)
    entry = asyncio.run(gallery.generate("a lighthouse", "1:1"))

    asyncio.run(gallery.upscale(entry.id))

    source = gateway.upscale_image.await_args.args[0]
    assert source.mime_type == expected


def test_find_unknown_entry(make_gallery):
    with pytest.raises(EntryNotFound):
        make_gallery().find("gal_missing")
    with pytest.raises(EntryNotFound):
        asyncio.run(make_gallery().upscale("gal_missing"))


def test_add_and_load_newest_first(make_gallery, png_bytes):
    gallery = make_gallery()
    a = asyncio.run(gallery.add(ImageArtifact("a.jpeg", "image/jpeg", png_bytes(fmt="JPEG")), "first"))
    b = asyncio.run(gallery.add(ImageArtifact("b.jpeg", "image/jpeg", png_bytes(fmt="JPEG")), "second"))
    gallery.clear()

    loaded = asyncio.run(gallery.load())

    assert [e.id for e in loaded] == [b.id, a.id]
    assert loaded[1].prompt == "first"


def test_improve_prompt_is_free(make_gallery, ledger, gateway):
    gallery = make_gallery(credits=3)
    assert asyncio.run(gallery.improve_prompt("a cat")) == "a cat in space, cinematic lighting"
    assert _balance(ledger, gallery) == 3
