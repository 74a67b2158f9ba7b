"""Process-wide entry points.

Applications call ``authorize`` once at startup.  Library code calls
``minter_for`` / ``unbox`` to construct protected values and ``verifier_for`` to
check them.  ``unbox`` and ``open_box`` identify the calling module themselves.
"""

from __future__ import annotations

import os
from typing import Any, Callable, Mapping

from mintable.authorization import AuthorizationContext
from mintable.binding import caller_location
from mintable.box import Box, open_box, unbox
from mintable.registry import M, MintableRegistry

__all__ = [
    "authorize",
    "authorize_from_manifest",
    "default_context",
    "minter_for",
    "open_box",
    "unbox",
    "verifier_for",
]

_context = AuthorizationContext()
_registry = MintableRegistry(_context)


def default_context() -> AuthorizationContext:
    return _context


def authorize(configuration: Mapping[str, Any] | None, project_root: str | os.PathLike[str] | None = None) -> None:
    """Install the process policy.  Raises AlreadyAuthorized on a second call.

    Relative grant specifiers are anchored at *project_root*, which defaults to
    the directory of the file calling this function.
    """
    if project_root is None:
        location = caller_location()
        project_root = os.path.dirname(location) if location else os.getcwd()
    _context.authorize(configuration, project_root)


def authorize_from_manifest(path: str | os.PathLike[str] | None = None) -> None:
    _context.authorize_from_manifest(path)


def minter_for(cls: type[M]) -> Box[Callable[..., M]]:
    return _registry.minter_for(cls)


def verifier_for(cls: type) -> Callable[[object], bool]:
    return _registry.verifier_for(cls)

