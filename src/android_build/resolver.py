from typing import Any, TypeVar

from .errors import BuildConfigError

T = TypeVar("T")


def resolve(value: T | None, fallback: T) -> T:
    return fallback if value is None else value


def to_int(value: Any) -> int:
    """Convert a script or provider value the way Kotlin's ``toInt()`` does."""
    if isinstance(value, bool):
        raise BuildConfigError(f"Not an integer: {value}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            raise BuildConfigError(f"Not an integer: {value!r}") from None
    raise BuildConfigError(f"Not an integer: {value!r}")


def resolve_int(value: Any, fallback: int) -> int:
    return fallback if value is None else to_int(value)
