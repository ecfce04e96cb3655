"""Environment-driven configuration for the ImageGenie backend."""
from __future__ import annotations

import os
from dataclasses import dataclass, field


def _flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default) == "1"


def _int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True)
class CreditCosts:
    local_edit: int = 2
    filter: int = 2
    adjustment: int = 2
    generate: int = 2
    upscale: int = 1


@dataclass(frozen=True)
class AppSettings:
    env: str = "development"
    log_level: str = "INFO"
    gemini_disabled: bool = False
    gemini_api_key: str | None = None
    gemini_image_model: str = "gemini-2.5-flash-image-preview"
    gemini_text_model: str = "gemini-2.5-flash"
    imagen_model: str = "imagen-4.0-generate-001"
    ai_timeout_seconds: float = 120.0
    signup_bonus_credits: int = 25
    costs: CreditCosts = field(default_factory=CreditCosts)
    # credits -> purchase reason
    credit_packs: dict[int, str] = field(
        default_factory=lambda: {
            100: "100 Credit Pack",
            200: "200 Credit Pack",
            500: "500 Credit Pack",
        }
    )


def load_settings() -> AppSettings:
    """Return settings resolved from the current environment."""
    return AppSettings(
        env=os.getenv("ENV", "development"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        gemini_disabled=_flag("GEMINI_DISABLED"),
        gemini_api_key=os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY"),
        gemini_image_model=os.getenv("GEMINI_IMAGE_MODEL", "gemini-2.5-flash-image-preview"),
        gemini_text_model=os.getenv("GEMINI_TEXT_MODEL", "gemini-2.5-flash"),
        imagen_model=os.getenv("IMAGEN_MODEL", "imagen-4.0-generate-001"),
        ai_timeout_seconds=float(os.getenv("AI_TIMEOUT_SECONDS", "120")),
        signup_bonus_credits=_int("SIGNUP_BONUS_CREDITS", 25),
        costs=CreditCosts(
            local_edit=_int("CREDIT_COST_LOCAL_EDIT", 2),
            filter=_int("CREDIT_COST_FILTER", 2),
            adjustment=_int("CREDIT_COST_ADJUSTMENT", 2),
            generate=_int("CREDIT_COST_GENERATE", 2),
            upscale=_int("CREDIT_COST_UPSCALE", 1),
        ),
    )
