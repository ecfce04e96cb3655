"""Per-user editing session: linear history, editor state and guarded AI edits."""
from __future__ import annotations

import logging
import time
from typing import Awaitable, Callable

from src.application.services.credit_ledger import CreditLedgerClient
from src.application.services.session_context import SessionContext
from src.domain.entities.artifact import CropSelection, Hotspot, ImageArtifact
from src.domain.entities.edit_history import EditHistory
from src.domain.entities.editor import EditorTab
from src.domain.errors import MissingEditInput, NoCropSelected, NoImageLoaded, PreconditionFailed
from src.domain.services.artifact_codec import to_artifact
from src.domain.services.display_handles import DisplayHandleRegistry
from src.domain.services.image_gateway import ImageGateway
from src.domain.services.processing_service import ProcessingService
from src.infrastructure.settings import CreditCosts

logger = logging.getLogger(__name__)

# artifact -> data URL of the edited image
EditOperation = Callable[[ImageArtifact], Awaitable[str]]


def _timestamp_ms() -> int:
    return int(time.time() * 1000)


class EditSession:
    """Undo/redo history plus the hotspot, crop and tab state around it.

    Every mutating operation holds the session lock it shares with the
    gallery, so at most one credit-metered operation is in flight per user.
    Display handles for the current and original artifact are re-issued
    whenever either changes.
    """

    def __init__(
        self,
        context: SessionContext,
        ledger: CreditLedgerClient,
        gateway: ImageGateway,
        costs: CreditCosts | None = None,
    ) -> None:
        self.context = context
        self.ledger = ledger
        self.gateway = gateway
        self.costs = costs or CreditCosts()
        self.history = EditHistory()
        self.hotspot: Hotspot | None = None
        self.crop_selection: CropSelection | None = None
        self.active_tab = EditorTab.PROMPT_EDIT
        self.handles = DisplayHandleRegistry()
        self.current_ref: str | None = None
        self.original_ref: str | None = None
        self._lock = context.lock

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @property
    def current(self) -> ImageArtifact | None:
        return self.history.current

    @property
    def original(self) -> ImageArtifact | None:
        return self.history.original

    def _release_display_handles(self) -> None:
        for ref in (self.current_ref, self.original_ref):
            if ref is not None:
                self.handles.release(ref)
        self.current_ref = None
        self.original_ref = None

    def _sync_display_handles(self) -> None:
        try:
            self._release_display_handles()
        finally:
            if self.history.current is not None:
                self.current_ref = self.handles.acquire(self.history.current)
            if self.history.original is not None:
                self.original_ref = self.handles.acquire(self.history.original)

    # --- history -----------------------------------------------------------

    async def upload(self, artifact: ImageArtifact) -> None:
        async with self._lock:
            self.history.start(artifact)
            self.hotspot = None
            self.crop_selection = None
            self.active_tab = EditorTab.PROMPT_EDIT
            self._sync_display_handles()
        logger.info("Session %s started with %s", self.context.user_id, artifact.name)

    def _append(self, artifact: ImageArtifact) -> None:
        self.history.append(artifact)
        self.crop_selection = None
        self._sync_display_handles()

    async def append(self, artifact: ImageArtifact) -> None:
        async with self._lock:
            self._append(artifact)

    async def undo(self) -> bool:
        async with self._lock:
            if not self.history.undo():
                return False
            self.hotspot = None
            self._sync_display_handles()
            return True

    async def redo(self) -> bool:
        async with self._lock:
            if not self.history.redo():
                return False
            self.hotspot = None
            self._sync_display_handles()
            return True

    async def reset_to_original(self) -> bool:
        async with self._lock:
            if not self.history.reset_to_original():
                return False
            self.hotspot = None
            self._sync_display_handles()
            return True

    async def go_home(self) -> None:
        async with self._lock:
            self.clear()

    def clear(self) -> None:
        """Drop the history and release every display handle (sign-out path)."""
        self._release_display_handles()
        self.history.clear()
        self.hotspot = None
        self.crop_selection = None
        self.active_tab = EditorTab.PROMPT_EDIT

    # --- editor state ------------------------------------------------------

    def set_tab(self, tab: EditorTab) -> None:
        self.active_tab = tab
        if tab is not EditorTab.LOCAL_EDIT:
            self.hotspot = None

    def select_hotspot(
        self, click_x: float, click_y: float, display_width: float, display_height: float
    ) -> Hotspot:
        if self.active_tab is not EditorTab.LOCAL_EDIT:
            raise PreconditionFailed("Switch to the local edit tool to select a point.")
        current = self.history.current
        if current is None:
            raise NoImageLoaded()
        natural_w, natural_h = ProcessingService.natural_size(current)
        self.hotspot = ProcessingService.map_click_to_hotspot(
            click_x, click_y, natural_w, natural_h, display_width, display_height
        )
        return self.hotspot

    def set_crop_selection(self, selection: CropSelection | None) -> None:
        self.crop_selection = None if selection is None or selection.is_empty else selection

    # --- operations --------------------------------------------------------

    async def perform_guarded_operation(
        self, cost: int, reason: str, operation: EditOperation, name_prefix: str
    ) -> ImageArtifact:
        """Debit, run ``operation`` on the current artifact, append or refund."""
        async with self._lock:
            current = self.history.current
            if current is None:
                raise NoImageLoaded()

            async def attempt() -> ImageArtifact:
                payload = await operation(current)
                return to_artifact(payload, f"{name_prefix}-{_timestamp_ms()}.png")

            artifact = await self.ledger.run_guarded(self.context, cost, reason, attempt)
            self._append(artifact)
            logger.info("%s appended %s (version %d)", reason, artifact.name, self.history.cursor)
            return artifact

    async def local_edit(self, prompt: str) -> ImageArtifact:
        if self.history.current is None:
            raise NoImageLoaded()
        if not prompt.strip():
            raise MissingEditInput("Please enter a description for your edit.")
        hotspot = self.hotspot
        if hotspot is None:
            raise MissingEditInput("Please click on the image to select an area to edit.")
        try:
            return await self.perform_guarded_operation(
                self.costs.local_edit,
                "AI Local Edit",
                lambda artifact: self.gateway.edit_image(artifact, prompt, hotspot),
                "edited",
            )
        finally:
            self.hotspot = None

    async def apply_filter(self, prompt: str) -> ImageArtifact:
        if not prompt.strip():
            raise MissingEditInput("Please choose or describe a filter.")
        return await self.perform_guarded_operation(
            self.costs.filter,
            "AI Filter",
            lambda artifact: self.gateway.filter_image(artifact, prompt),
            "filtered",
        )

    async def apply_adjustment(self, prompt: str) -> ImageArtifact:
        if not prompt.strip():
            raise MissingEditInput("Please describe the adjustment.")
        return await self.perform_guarded_operation(
            self.costs.adjustment,
            "AI Prompt Edit",
            lambda artifact: self.gateway.adjust_image(artifact, prompt),
            "adjusted",
        )

    async def apply_crop(self, pixel_ratio: float = 1.0) -> ImageArtifact:
        async with self._lock:
            current = self.history.current
            if current is None:
                raise NoImageLoaded()
            if self.crop_selection is None:
                raise NoCropSelected()
            data = ProcessingService.crop(current, self.crop_selection, pixel_ratio)
            artifact = ImageArtifact(
                name=f"cropped-{_timestamp_ms()}.png", mime_type="image/png", data=data
            )
            self._append(artifact)
            return artifact
