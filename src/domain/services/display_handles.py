from __future__ import annotations

import uuid
from contextlib import contextmanager
from typing import Generator

from src.domain.entities.artifact import ImageArtifact


class DisplayHandleRegistry:
    """Issues transient display references for artifacts.

    Every ``acquire`` must be paired with exactly one ``release``. A handle
    resolves to its artifact only while it is live.
    """

    def __init__(self) -> None:
        self._live: dict[str, ImageArtifact] = {}
        self.acquired = 0
        self.released = 0

    def acquire(self, artifact: ImageArtifact) -> str:
        ref = f"blob:{uuid.uuid4()}"
        self._live[ref] = artifact
        self.acquired += 1
        return ref

    def release(self, ref: str) -> None:
        if ref not in self._live:
            raise ValueError(f"Display reference {ref} is not live")
        del self._live[ref]
        self.released += 1

    def resolve(self, ref: str) -> ImageArtifact | None:
        return self._live.get(ref)

    @property
    def live_count(self) -> int:
        return len(self._live)

    @contextmanager
    def scoped(self, artifact: ImageArtifact) -> Generator[str, None, None]:
        """Yield a handle that is released on every exit path."""
        ref = self.acquire(artifact)
        try:
            yield ref
        finally:
            self.release(ref)
