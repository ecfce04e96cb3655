"""Error taxonomy shared by the editing core and the API layer."""
from __future__ import annotations


class ImageGenieError(Exception):
    """Base class for all expected, user-facing failures."""


class MalformedPayload(ImageGenieError):
    """An encoded image could not be parsed; the user must supply new input."""


class ProfileNotReady(ImageGenieError):
    """The identity is authenticated but its profile document does not exist yet."""

    def __init__(self, user_id: str) -> None:
        super().__init__(f"Profile for user {user_id} is not ready yet")
        self.user_id = user_id


class LedgerWriteFailed(ImageGenieError):
    """A credit adjustment could not be written. Never retried automatically."""


class InsufficientCredits(ImageGenieError):
    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            f"You need {required} credits for this action, but you only have {available}. "
            "Please purchase more."
        )
        self.required = required
        self.available = available


class GenerationFailed(ImageGenieError):
    def __init__(self, context: str, detail: str) -> None:
        super().__init__(f"Failed to {context}. {detail}")
        self.context = context
        self.detail = detail


class PreconditionFailed(ImageGenieError):
    """Base for user-guidance errors raised before any remote call is made."""


class NoImageLoaded(PreconditionFailed):
    def __init__(self) -> None:
        super().__init__("No image loaded to edit.")


class NoCropSelected(PreconditionFailed):
    def __init__(self) -> None:
        super().__init__("Please select an area to crop.")


class MissingEditInput(PreconditionFailed):
    pass


class NotAuthenticated(ImageGenieError):
    def __init__(self, message: str = "A verified sign-in is required") -> None:
        super().__init__(message)


class EntryNotFound(ImageGenieError):
    def __init__(self, entry_id: str) -> None:
        super().__init__(f"Gallery entry {entry_id} not found")
        self.entry_id = entry_id


class UnknownCreditPack(ImageGenieError):
    def __init__(self, credits: int) -> None:
        super().__init__(f"No credit pack offers {credits} credits")
        self.credits = credits
