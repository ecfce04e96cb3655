import pytest

from src.domain.entities.generation import apply_style_preset
from src.infrastructure.settings import load_settings


def test_defaults(monkeypatch):
    for name in ("AI_TIMEOUT_SECONDS", "SIGNUP_BONUS_CREDITS", "CREDIT_COST_UPSCALE", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    settings = load_settings()
    assert settings.ai_timeout_seconds == 120.0
    assert settings.signup_bonus_credits == 25
    assert (settings.costs.local_edit, settings.costs.generate, settings.costs.upscale) == (2, 2, 1)
    assert sorted(settings.credit_packs) == [100, 200, 500]
    assert settings.log_level == "INFO"


def test_overrides(monkeypatch):
    monkeypatch.setenv("CREDIT_COST_UPSCALE", "3")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    settings = load_settings()
    assert settings.costs.upscale == 3
    assert settings.log_level == "DEBUG"


def test_bad_integer_is_rejected(monkeypatch):
    monkeypatch.setenv("SIGNUP_BONUS_CREDITS", "lots")
    with pytest.raises(ValueError):
        load_settings()


@pytest.mark.parametrize(
    "prompt, expected",
    [
        ("a castle", "a castle, cinematic lighting, dramatic, photorealistic, 4k"),
        ("a castle,", "a castle, cinematic lighting, dramatic, photorealistic, 4k"),
        ("  ", "cinematic lighting, dramatic, photorealistic, 4k"),
    ],
)
def test_style_preset_joining(prompt, expected):
    assert apply_style_preset(prompt, "cinematic") == expected


def test_unknown_style_preset():
    with pytest.raises(ValueError):
        apply_style_preset("a castle", "vaporwave")
