from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class GalleryEntry:
    id: str
    user_id: str
    url: str  # public reference, never an inline payload
    storage_path: str  # blob store path backing `url`
    prompt: str
    is_upscaled: bool
    created_at: datetime
