from __future__ import annotations

from dataclasses import dataclass, field

from src.domain.entities.artifact import ImageArtifact


@dataclass
class EditHistory:
    """Linear undo/redo history of image artifacts.

    Invariants:
    - empty history has ``cursor == -1``
    - otherwise ``0 <= cursor <= len(artifacts) - 1``
    - appending while the cursor is behind the tip discards the redo branch
    """

    artifacts: list[ImageArtifact] = field(default_factory=list)
    cursor: int = -1

    def __len__(self) -> int:
        return len(self.artifacts)

    @property
    def is_empty(self) -> bool:
        return not self.artifacts

    @property
    def current(self) -> ImageArtifact | None:
        if self.cursor < 0:
            return None
        return self.artifacts[self.cursor]

    @property
    def original(self) -> ImageArtifact | None:
        return self.artifacts[0] if self.artifacts else None

    @property
    def can_undo(self) -> bool:
        return self.cursor > 0

    @property
    def can_redo(self) -> bool:
        return self.cursor < len(self.artifacts) - 1

    def start(self, artifact: ImageArtifact) -> None:
        self.artifacts = [artifact]
        self.cursor = 0

    def append(self, artifact: ImageArtifact) -> None:
        self.artifacts = self.artifacts[: self.cursor + 1]
        self.artifacts.append(artifact)
        self.cursor = len(self.artifacts) - 1

    def undo(self) -> bool:
        if not self.can_undo:
            return False
        self.cursor -= 1
        return True

    def redo(self) -> bool:
        if not self.can_redo:
            return False
        self.cursor += 1
        return True

    def reset_to_original(self) -> bool:
        # Later versions stay in the sequence; the next append truncates them.
        if self.is_empty:
            return False
        self.cursor = 0
        return True

    def clear(self) -> None:
        self.artifacts = []
        self.cursor = -1
