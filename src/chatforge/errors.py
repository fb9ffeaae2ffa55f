"""Exception types raised inside the generation pipelines."""


class GenerationError(Exception):
    """Base error for a failed generation step.

    Attributes:
        display_message: Optional text that is safe to show to the user.
    """

    def __init__(self, message: str, display_message: str | None = None) -> None:
        super().__init__(message)
        self.display_message = display_message


class InsufficientBalance(GenerationError):
    """Raised when a user cannot afford an operation."""

    def __init__(self, user_id: str, required: int, available: int) -> None:
        super().__init__(
            f"User {user_id} has {available} crystals, needs {required}",
            display_message=(
                f"Not enough crystals. This needs {required} crystals "
                f"and you have {available}."
            ),
        )
        self.user_id = user_id
        self.required = required
        self.available = available


class ProviderError(GenerationError):
    """An external provider call failed or returned unusable output."""


class ArtifactNotFound(ProviderError):
    """No image could be located in a completed job's output."""


class JobFailed(ProviderError):
    """A compute job reached FAILED or CANCELLED."""


class JobTimedOut(ProviderError):
    """A compute job did not finish within the polling budget."""
