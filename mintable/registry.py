"""Mintable types, their minters and their verifiers.

A value verifies for a type only if that type's minter built it.  Minted
instances are remembered by object identity in a table private to this module;
nothing about an instance's attributes, class or equality is trusted.
"""

from __future__ import annotations

import logging
import weakref
from dataclasses import FrozenInstanceError
from typing import Any, Callable, ClassVar, TypeVar

from mintable.authorization import AuthorizationContext
from mintable.box import Box, box
from mintable.config import ConfigurationError

logger = logging.getLogger(__name__)

# Bound at import so later rebinding of builtins cannot intercept minting or verification.
_id = id
_type = type
_isinstance = isinstance
_issubclass = issubclass
_weakref = weakref.ref

M = TypeVar("M", bound="Mintable")

_MISSING = object()


class _IdentitySet:
    """Live objects compared by identity only, never by __eq__/__hash__."""

    def __init__(self) -> None:
        self._refs: dict[int, weakref.ref] = {}

    def add(self, obj: object) -> None:
        key = _id(obj)
        refs = self._refs

        def _discard(ref: weakref.ref, key: int = key) -> None:
            if refs.get(key) is ref:
                del refs[key]

        refs[key] = _weakref(obj, _discard)

    def holds(self, obj: object) -> bool:
        ref = self._refs.get(_id(obj))
        return ref is not None and ref() is obj

    def __len__(self) -> int:
        return len(self._refs)


_FROZEN = _IdentitySet()
_SEALED_KEYS: weakref.WeakKeyDictionary[type, str] = weakref.WeakKeyDictionary()


class MintableMeta(type):
    """Once a type's contract_key has been read it can no longer be changed."""

    def __setattr__(cls, name: str, value: Any) -> None:
        if name == "contract_key" and cls in _SEALED_KEYS:
            raise ConfigurationError(f"{cls.__qualname__}.contract_key is sealed and cannot be reassigned")
        super().__setattr__(name, value)

    def __delattr__(cls, name: str) -> None:
        if name == "contract_key" and cls in _SEALED_KEYS:
            raise ConfigurationError(f"{cls.__qualname__}.contract_key is sealed and cannot be deleted")
        super().__delattr__(name)


class Mintable(metaclass=MintableMeta):
    """Base for types whose instances only authorized code may construct.

    Subclasses declare ``contract_key`` in their own class body::

        class SafeHtml(Mintable):
            contract_key = "safe-html"

            def __init__(self, content: str):
                self.content = content

    Instances returned by a minter are frozen.
    """

    contract_key: ClassVar[str]

    def __setattr__(self, name: str, value: Any) -> None:
        if _FROZEN.holds(self):
            raise FrozenInstanceError(f"cannot assign to field {name!r} of a minted {type(self).__qualname__}")
        super().__setattr__(name, value)

    def __delattr__(self, name: str) -> None:
        if _FROZEN.holds(self):
            raise FrozenInstanceError(f"cannot delete field {name!r} of a minted {type(self).__qualname__}")
        super().__delattr__(name)


def contract_key_of(cls: type) -> str:
    """Validate and seal *cls*'s contract key."""
    if not _isinstance(cls, type) or not _issubclass(cls, Mintable):
        raise ConfigurationError(f"{cls!r} is not a Mintable type")
    declared = cls.__dict__.get("contract_key", _MISSING)
    if declared is _MISSING:
        raise ConfigurationError(f"{cls.__qualname__} does not declare its own contract_key")
    if not _isinstance(declared, str) or not declared.strip():
        raise ConfigurationError(f"{cls.__qualname__}.contract_key must be a non-empty string, got {declared!r}")

    sealed = _SEALED_KEYS.setdefault(cls, declared)
    if sealed != declared:
        raise ConfigurationError(
            f"{cls.__qualname__}.contract_key changed from {sealed!r} to {declared!r} after first use"
        )
    return sealed


class MintableRegistry:
    """Hands out minters and verifiers for Mintable types.

    Minters are boxed; opening the box resolves the calling module through
    *context* and asks it whether that identity holds the type's contract
    key.  Verifiers never look at the context.
    """

    def __init__(self, context: AuthorizationContext):
        self.context = context
        self._tags: dict[type, _IdentitySet] = {}
        self._minters: dict[type, Box[Callable[..., Any]]] = {}
        self._verifiers: dict[type, Callable[[object], bool]] = {}

    def _tags_for(self, cls: type) -> _IdentitySet:
        return self._tags.setdefault(cls, _IdentitySet())

    def minter_for(self, cls: type[M]) -> Box[Callable[..., M]]:
        key = contract_key_of(cls)
        cached = self._minters.get(cls)
        if cached is not None:
            return cached

        tags = self._tags_for(cls)

        def mint(*args: Any, **kwargs: Any) -> M:
            contract_key_of(cls)
            instance = cls(*args, **kwargs)
            if _type(instance) is not cls:
                raise TypeError(f"{cls.__qualname__}() returned {_type(instance).__qualname__}, not a new instance")
            _FROZEN.add(instance)
            tags.add(instance)
            return instance

        def may_open(identity: str | None) -> bool:
            return self.context.is_authorized(identity, key)

        logger.debug("boxed minter for %s (contract %r)", cls.__qualname__, key)
        return self._minters.setdefault(cls, box(mint, key, may_open, self.context.identity_for))

    def verifier_for(self, cls: type) -> Callable[[object], bool]:
        contract_key_of(cls)
        cached = self._verifiers.get(cls)
        if cached is not None:
            return cached

        tags = self._tags_for(cls)

        def verify(value: object) -> bool:
            return tags.holds(value)

        return self._verifiers.setdefault(cls, verify)
