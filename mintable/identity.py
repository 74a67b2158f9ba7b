"""Map the defining file of a code unit to the package that owns it.

Identities are derived lexically from the path; nothing is read from disk.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import PurePath

from mintable.errors import MintableError

logger = logging.getLogger(__name__)

# Identity of code that belongs to the project itself rather than a dependency.
SELF_IDENTITY = "."

DEFAULT_BOUNDARY_MARKERS: tuple[str, ...] = ("site-packages", "dist-packages")

# foo.py, foo.pyc, foo.so, foo.cpython-312-x86_64-linux-gnu.so, foo.pyd ...
_MODULE_SUFFIX = re.compile(r"(\.[A-Za-z0-9_-]+)*\.(py|pyc|pyo|pyi|so|pyd)$")


class IdentityResolutionError(MintableError):
    """Raised when a location cannot be mapped to a package."""


def _strip_module_suffix(segment: str) -> str:
    return _MODULE_SUFFIX.sub("", segment)


class IdentityResolver:
    def __init__(
        self,
        project_root: str | os.PathLike[str],
        boundary_markers: tuple[str, ...] = DEFAULT_BOUNDARY_MARKERS,
        namespace_packages: tuple[str, ...] = (),
    ):
        if not boundary_markers:
            raise ValueError("at least one boundary marker is required")
        self.project_root = PurePath(os.path.abspath(project_root))
        self.boundary_markers = frozenset(boundary_markers)
        self.namespace_packages = frozenset(namespace_packages)

    def identity_of(self, location: str | os.PathLike[str]) -> str:
        """Return the identity of the package that owns *location*.

        Raises IdentityResolutionError when *location* is neither inside the
        project nor below a dependency root.
        """
        path = PurePath(os.path.abspath(location))
        try:
            parts = path.relative_to(self.project_root).parts
            inside_project = True
        except ValueError:
            parts = path.parts
            inside_project = False

        marker_index = self._innermost_marker(parts)
        if marker_index is None:
            if inside_project:
                return SELF_IDENTITY
            raise IdentityResolutionError(
                f"'{location}' is outside the project root '{self.project_root}' "
                f"and below no dependency root {sorted(self.boundary_markers)}"
            )

        tail = parts[marker_index + 1:]
        if tail and tail[0].endswith(".egg"):
            # foo-1.0-py3.12.egg/foo/...: the egg directory or zip wraps the package
            tail = tail[1:]
        if not tail:
            raise IdentityResolutionError(f"'{location}' names a dependency root, not a package")

        head = _strip_module_suffix(tail[0])
        if head in self.namespace_packages:
            if len(tail) < 2:
                raise IdentityResolutionError(
                    f"'{location}' names the namespace '{head}' but no package inside it"
                )
            return f"{head}.{_strip_module_suffix(tail[1])}"
        return head

    def caller_identity(self, location: str | os.PathLike[str] | None) -> str | None:
        """identity_of for steady-state use: unresolvable callers get None."""
        if location is None:
            logger.warning("caller location unknown; treating caller as unauthorized")
            return None
        try:
            return self.identity_of(location)
        except IdentityResolutionError as exc:
            logger.warning("treating caller as unauthorized: %s", exc)
            return None

    def _innermost_marker(self, parts: tuple[str, ...]) -> int | None:
        for index in range(len(parts) - 1, -1, -1):
            if parts[index] in self.boundary_markers:
                return index
        return None
