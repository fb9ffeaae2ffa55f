"""Tagged results returned by pipeline stages."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class ErrorKind(Enum):
    """Why a pipeline stage did not produce content."""

    ACCESS_DENIED = "access_denied"
    ARCHIVED = "archived"
    BLACKLISTED = "blacklisted"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    PROVIDER = "provider"
    TIMEOUT = "timeout"
    NOT_AN_IMAGE_REQUEST = "not_an_image_request"


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful stage output."""

    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    """Failed stage output.

    Attributes:
        kind: Category of the failure.
        display_message: User-facing text, if the failure carries one.
        detail: Internal description for logs.
    """

    kind: ErrorKind
    display_message: str | None = None
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return False


Result = Ok[Any] | Err
