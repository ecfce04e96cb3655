from __future__ import annotations

from enum import Enum


class EditorTab(str, Enum):
    PROMPT_EDIT = "promptEdit"
    LOCAL_EDIT = "localEdit"
    FILTERS = "filters"
    CROP = "crop"


class SessionState(str, Enum):
    UNKNOWN = "unknown"
    AUTHENTICATED = "authenticated"
    LOADING = "loading"  # verified identity whose profile document is not written yet
    ANONYMOUS = "anonymous"
