"""Where a piece of calling code was defined.

This is the only place that looks at interpreter frames.  A frame's location
is the origin of the loaded module whose namespace the frame runs in, not the
filename stored on its code object: ``compile()`` accepts any filename, so
``co_filename`` proves nothing.  Code running in a namespace that is not a
module in ``sys.modules`` (``exec`` into a fresh dict, for instance) has no
location at all.

A module can still misreport its own location by rewriting its ``__spec__``
or ``__file__``, and code that holds a granted module's namespace can run as
that module.  Both require reaching into the module itself.
"""

from __future__ import annotations

import sys
from types import CodeType, FrameType, ModuleType
from typing import Iterable

_isinstance = isinstance


def module_location(frame: FrameType) -> str | None:
    """Origin of the module whose namespace *frame* executes in, or None."""
    namespace = frame.f_globals
    name = namespace.get("__name__")
    if not _isinstance(name, str):
        return None
    module = sys.modules.get(name)
    if not _isinstance(module, ModuleType) or module.__dict__ is not namespace:
        return None

    spec = namespace.get("__spec__")
    location = getattr(spec, "origin", None) if getattr(spec, "has_location", False) else None
    if location is None:
        location = namespace.get("__file__")
    if not _isinstance(location, str) or not location:
        return None
    return location


def caller_location(skip: Iterable[CodeType] = ()) -> str | None:
    """Location of whoever called the function calling this one.

    Frames running any of the code objects in *skip* are stepped over, so a
    chain of internal helpers resolves to the code outside it.
    """
    skipped = tuple(skip)
    frame = sys._getframe(1).f_back
    while frame is not None and any(frame.f_code is code for code in skipped):
        frame = frame.f_back
    if frame is None:
        return None
    return module_location(frame)
