import io
import os
import sys
import tempfile
from datetime import UTC, datetime
from pathlib import Path
from unittest.mock import AsyncMock, Mock

import numpy as np
import pytest
from fastapi.testclient import TestClient
from PIL import Image

# Ensure project root is on sys.path so 'src' is importable during tests
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("SUPABASE_DISABLED", "1")
os.environ.setdefault("GEMINI_DISABLED", "1")
os.environ.setdefault("SUPABASE_STORAGE_LOCAL_DIR", tempfile.mkdtemp(prefix="imagegenie-storage-"))


def make_png_bytes(w=4, h=4, color=(128, 64, 32), fmt="PNG") -> bytes:
    arr = np.zeros((h, w, 3), dtype=np.uint8)
    arr[:, :] = color
    img = Image.fromarray(arr)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture(autouse=True)
def reset_state():
    # in-memory stores and API singletons are process-wide
    from src.infrastructure.api.dependencies import reset_dependencies
    from src.infrastructure.database.repositories import gallery_repository, profile_repository

    profile_repository.reset_memory_store()
    gallery_repository.reset_memory_store()
    reset_dependencies()
    yield
    reset_dependencies()


@pytest.fixture()
def png_bytes():
    return make_png_bytes


@pytest.fixture()
def artifact(png_bytes):
    from src.domain.entities.artifact import ImageArtifact

    def _make(name="photo.png", w=4, h=4, color=(128, 64, 32)):
        return ImageArtifact(name=name, mime_type="image/png", data=png_bytes(w, h, color))

    return _make


@pytest.fixture()
def profiles():
    from src.infrastructure.database.repositories.profile_repository import ProfileRepository

    return ProfileRepository(None)


@pytest.fixture()
def ledger(profiles):
    from src.application.services.credit_ledger import CreditLedgerClient

    return CreditLedgerClient(profiles)


@pytest.fixture()
def funded_context(profiles):
    """Authenticated session context whose profile holds ``credits``."""
    from src.application.services.session_context import SessionContext
    from src.domain.entities.editor import SessionState
    from src.domain.entities.profile import CreditTransaction

    def _make(credits=25, user_id="user_1"):
        opening = CreditTransaction(reason="Sign-up bonus", amount=credits, timestamp=datetime.now(UTC))
        profile = profiles.create(user_id, f"{user_id}@example.com", None, credits, opening)
        return SessionContext(user_id=user_id, state=SessionState.AUTHENTICATED, profile=profile)

    return _make


@pytest.fixture()
def gateway():
    """Image gateway whose operations all succeed with a small PNG data URL."""
    from src.domain.services.artifact_codec import bytes_to_data_url

    result = bytes_to_data_url(make_png_bytes(2, 2, (10, 200, 30)), "image/png")
    mock = Mock()
    mock.edit_image = AsyncMock(return_value=result)
    mock.filter_image = AsyncMock(return_value=result)
    mock.adjust_image = AsyncMock(return_value=result)
    mock.upscale_image = AsyncMock(return_value=bytes_to_data_url(make_png_bytes(8, 8, fmt="JPEG"), "image/jpeg"))
    mock.generate_image = AsyncMock(return_value=bytes_to_data_url(make_png_bytes(4, 4, fmt="JPEG"), "image/jpeg"))
    mock.improve_prompt = AsyncMock(return_value="a cat in space, cinematic lighting")
    return mock


@pytest.fixture(scope="session")
def client() -> TestClient:
    # lazy import after env configured
    from src.main import create_app

    app = create_app()
    return TestClient(app)


@pytest.fixture()
def auth_header() -> dict[str, str]:
    # any token is accepted in disabled mode
    return {"Authorization": "Bearer test-token"}
