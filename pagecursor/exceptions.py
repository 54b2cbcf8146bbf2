from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from pydantic import ValidationError as PydanticValidationError


class PageCursorError(Exception):
    """Base exception for all pagecursor errors."""

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class InvalidFieldValueError(PageCursorError):
    """Raised when a row cannot provide a sort value for a child-field ordering."""

    def __init__(self, field: str, value: Any, original_error: Exception | None = None) -> None:
        super().__init__(
            f"A value of type {type(value).__name__} was found, but rows are ordered by "
            f"child field '{field}'. Pagination requires all records to be mappings "
            "to determine an offset value.",
            original_error,
        )
        self.field = field
        self.value = value


class GrowthLimitExceededError(PageCursorError):
    """Raised when growing the key cache takes more steps than allowed."""

    def __init__(self, max_steps: int, original_error: Exception | None = None) -> None:
        super().__init__(
            f"Tried to fetch more than {max_steps:,} pages to determine the correct offset. "
            "Giving up.",
            original_error,
        )
        self.max_steps = max_steps


class DebounceConfigError(PageCursorError, ValueError):
    """Raised when a RateLimiter has an invalid action or wait, or no scheduler."""


class InvalidOffsetError(PageCursorError, ValueError):
    """Raised when an offset is not a non-negative integer."""

    def __init__(self, offset: Any, original_error: Exception | None = None) -> None:
        super().__init__(f"Offset must be a non-negative integer, got {offset!r}", original_error)
        self.offset = offset


class CursorDestroyedError(PageCursorError):
    """Raised when an Offset is used after destroy()."""

    def __init__(
        self, message: str = "Offset cursor has been destroyed", original_error: Exception | None = None
    ) -> None:
        super().__init__(message, original_error)


class OptionsError(PageCursorError, ValueError):
    """Raised when cursor options fail validation."""

    def __init__(
        self,
        message: str,
        errors: list[dict[str, Any]] | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, original_error)
        self.errors = errors or []


@contextmanager
def handle_options_errors() -> Generator[None, None, None]:
    """
    Context manager that catches pydantic validation errors raised while
    building cursor options and raises an OptionsError instead.

    Usage:
        with handle_options_errors():
            OffsetOptions(field="$key", ref=ref, max=10)
    """
    try:
        yield
    except PydanticValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise OptionsError(
            message=f"Invalid cursor options: {fields or 'unknown field'}",
            errors=e.errors(),
            original_error=e,
        ) from e
