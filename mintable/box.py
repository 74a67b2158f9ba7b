"""Boxed capabilities: a value that only an authorized identity can take out.

The boxed value is held in a closure and never stored as an attribute.  The opener
is never asked who it is: the box finds the calling module itself.  Opening
evaluates nothing supplied by the opener before the authorization decision;
the fallback, if any, only runs after a denial.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

from mintable.binding import caller_location
from mintable.errors import MintableError

T = TypeVar("T")


class AccessDenied(MintableError):
    """The caller's identity may not open this box."""

    def __init__(self, owner_key: str, identity: str | None):
        self.owner_key = owner_key
        self.identity = identity
        who = identity if identity is not None else "<unresolved caller>"
        super().__init__(f"{who} is not granted contract {owner_key!r}")


@dataclass(frozen=True)
class Unboxed(Generic[T]):
    """Outcome of opening a box: either the value or the denial."""

    value: T | None = None
    denial: AccessDenied | None = None

    @property
    def granted(self) -> bool:
        return self.denial is None

    def unwrap(self) -> T:
        if self.denial is not None:
            raise self.denial
        return self.value  # type: ignore[return-value]

    def or_else(self, fallback: Callable[[], T]) -> T:
        if self.denial is not None:
            return fallback()
        return self.value  # type: ignore[return-value]


class Box(Generic[T]):
    """A sealed value.

    ``open()`` takes no arguments; the box identifies its opener from the module
    that calls it.
    """

    __slots__ = ("owner_key", "_open")

    def __init__(self, owner_key: str, opener: Callable[[], Unboxed[T]]):
        object.__setattr__(self, "owner_key", owner_key)
        object.__setattr__(self, "_open", opener)

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError("Box is immutable")

    def __delattr__(self, name: str) -> None:
        raise AttributeError("Box is immutable")

    def __repr__(self) -> str:
        return f"<Box for {self.owner_key!r}>"

    def __reduce__(self):
        raise TypeError("boxed capabilities cannot be pickled")

    def open(self) -> Unboxed[T]:
        return self._open()


def box(
    value: T,
    owner_key: str,
    may_open: Callable[[str | None], bool],
    identify: Callable[[str | None], str | None],
) -> Box[T]:
    """Wrap *value* so that only callers accepted by *may_open* get it back.

    *identify* turns the opener's module location into an identity.
    """
    openers = _OPENERS

    def opener() -> Unboxed[T]:
        identity = identify(caller_location(openers))
        if may_open(identity) is True:
            return Unboxed(value=value)
        return Unboxed(denial=AccessDenied(owner_key, identity))

    return Box(owner_key, opener)


def open_box(boxed: Box[T]) -> Unboxed[T]:
    """Open *boxed* as the calling code and return the outcome without raising."""
    if not isinstance(boxed, Box):
        raise TypeError(f"expected a Box, got {type(boxed).__name__}")
    return boxed.open()


def unbox(boxed: Box[T], fallback: Callable[[], T] | None = None) -> T:
    """Open *boxed* as the calling code; on denial return fallback() or raise AccessDenied."""
    if not isinstance(boxed, Box):
        raise TypeError(f"expected a Box, got {type(boxed).__name__}")
    result = boxed.open()
    if fallback is not None:
        return result.or_else(fallback)
    return result.unwrap()


# Frames of these functions belong to the opening machinery, not to the opener.
_OPENERS = (Box.open.__code__, open_box.__code__, unbox.__code__)
