"""Error taxonomy for the cooking companion core.

Every error carries structured fields (kind, field, attempts, index) next to
its message so the UI can render a specific explanation instead of a generic
failure:

- ValidationError: malformed or missing data, names the first offending field
- RequestError: transport/endpoint failure after retries, or a rejected body
- EmptyPoolError: meal planning with no usable recipes
- OutOfRangeError: cook-session navigation outside the step range
"""

from enum import Enum
from typing import Optional


class CompanionError(Exception):
    """Base class for all errors raised by the cooking companion core."""


class ValidationError(CompanionError, ValueError):
    """Malformed or missing data in an endpoint response or local input."""

    def __init__(self, field: str, message: Optional[str] = None) -> None:
        self.field = field
        self.message = message or "invalid value"
        super().__init__(f"{field}: {self.message}")


class RequestErrorKind(str, Enum):
    """Failure categories surfaced by the request orchestrator."""

    TIMEOUT = "timeout"
    SERVER_ERROR = "server_error"
    NETWORK_ERROR = "network_error"
    VALIDATION_ERROR = "validation_error"


class RequestError(CompanionError):
    """Endpoint call failure.

    Transport kinds (TIMEOUT, SERVER_ERROR, NETWORK_ERROR) are raised only after
    retries are exhausted. VALIDATION_ERROR means the call succeeded but the body
    was rejected by the normalizer; ``field`` names the offending field.
    """

    def __init__(
        self,
        kind: RequestErrorKind,
        attempts: int,
        *,
        endpoint: Optional[str] = None,
        field: Optional[str] = None,
        status: Optional[int] = None,
        message: Optional[str] = None,
    ) -> None:
        self.kind = kind
        self.attempts = attempts
        self.endpoint = endpoint
        self.field = field
        self.status = status
        self.message = message or kind.value.replace("_", " ")
        super().__init__(self._describe())

    @property
    def retryable(self) -> bool:
        """Whether offering the user a "retry" action makes sense.

        4xx responses and rejected bodies will fail the same way again.
        """
        if self.kind == RequestErrorKind.VALIDATION_ERROR:
            return False
        return self.status is None or self.status >= 500

    def _describe(self) -> str:
        parts = [f"{self.endpoint or 'request'} failed ({self.kind.value})"]
        if self.field:
            parts.append(f"field={self.field}")
        if self.status is not None:
            parts.append(f"status={self.status}")
        parts.append(f"attempts={self.attempts}")
        return f"{' '.join(parts)}: {self.message}"


class EmptyPoolError(CompanionError, ValueError):
    """No usable recipes remain after filtering the meal-plan pool."""

    def __init__(self, pool_size: int) -> None:
        self.pool_size = pool_size
        super().__init__(f"No usable recipes after filtering a pool of {pool_size}")


class OutOfRangeError(CompanionError, IndexError):
    """Cook-session jump to a step index outside ``0 <= index < size``."""

    def __init__(self, index: int, size: int) -> None:
        self.index = index
        self.size = size
        super().__init__(f"Step index {index} out of range for {size} steps")
