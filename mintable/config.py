"""Policy normalization and resolver settings.

The policy (mode, grants, self-nominations, secondments) comes from the
project manifest.  Only the mechanics of identity resolution can be tuned from
the environment.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

from dotenv import load_dotenv

from mintable.errors import MintableError
from mintable.identity import DEFAULT_BOUNDARY_MARKERS, IdentityResolver

load_dotenv()

logger = logging.getLogger(__name__)

_BARE_NAME = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.-]*$")

_SECTION_KEYS = {
    "mode": "mode",
    "grants": "grants",
    "selfNominate": "self_nominate",
    "self-nominate": "self_nominate",
    "self_nominate": "self_nominate",
    "second": "second",
}


class ConfigurationError(MintableError):
    """Raised when the policy or a mintable type declaration is malformed."""


class Mode(Enum):
    ENFORCE = "enforce"
    PERMISSIVE = "permissive"
    REPORT_ONLY = "report-only"


@dataclass(frozen=True)
class Configuration:
    mode: Mode = Mode.PERMISSIVE
    grants: Mapping[str, frozenset[str]] = field(default_factory=lambda: MappingProxyType({}))
    self_nominate: tuple[str, ...] = ()
    second: tuple[str, ...] = ()  # raw specifiers, located by the grant resolver


@dataclass(frozen=True)
class ResolverSettings:
    """How locations map to identities and where dependencies are searched."""

    boundary_markers: tuple[str, ...] = DEFAULT_BOUNDARY_MARKERS
    namespace_packages: tuple[str, ...] = ()
    dependency_roots: tuple[str, ...] = ()
    manifest_path: str | None = None


def _getenv(name: str, default: str | None = None) -> str | None:
    """os.getenv wrapper that strips inline comments (e.g. 'a,b  # note' → 'a,b')."""
    raw = os.getenv(name, default)
    if raw is None:
        return None
    return raw.split(" #")[0].strip()


def _split(raw: str | None, sep: str) -> tuple[str, ...]:
    if not raw:
        return ()
    return tuple(item.strip() for item in raw.split(sep) if item.strip())


def load_settings() -> ResolverSettings:
    """Build ResolverSettings from the environment."""
    markers = _split(_getenv("MINTABLE_BOUNDARY_MARKERS"), ",") or DEFAULT_BOUNDARY_MARKERS
    return ResolverSettings(
        boundary_markers=markers,
        namespace_packages=_split(_getenv("MINTABLE_NAMESPACE_PACKAGES"), ","),
        dependency_roots=_split(_getenv("MINTABLE_DEPENDENCY_ROOTS"), os.pathsep),
        manifest_path=_getenv("MINTABLE_MANIFEST") or None,
    )


# ── normalization ─────────────────────────────────────────────────────────────


def is_bare_name(specifier: str) -> bool:
    return bool(_BARE_NAME.match(specifier)) and not specifier.startswith(".")


def normalize_specifier(specifier: str, resolver: IdentityResolver, project_root: str | os.PathLike[str]) -> str:
    """Turn a grant specifier into a module identity.

    Bare package names are taken as-is ('-' folded to '_' to match import
    names); anything else is a path relative to *project_root*.
    """
    if is_bare_name(specifier):
        return specifier.replace("-", "_")
    location = os.path.join(os.fspath(project_root), specifier)
    return resolver.identity_of(location)


def _string_list(value: Any, what: str) -> tuple[str, ...]:
    if not isinstance(value, (list, tuple)):
        raise ConfigurationError(f"{what} must be a list of strings, got {type(value).__name__}")
    for item in value:
        if not isinstance(item, str) or not item.strip():
            raise ConfigurationError(f"{what} entries must be non-empty strings, got {item!r}")
    return tuple(item.strip() for item in value)


def _parse_mode(value: Any) -> Mode:
    try:
        return Mode(value)
    except ValueError:
        allowed = ", ".join(m.value for m in Mode)
        raise ConfigurationError(f"unknown mode {value!r}; expected one of {allowed}") from None


def read_section(raw: Mapping[str, Any] | None, source: str = "policy") -> dict[str, Any] | None:
    """Return the 'mintable' section with canonical key names, or None if absent."""
    if raw is None:
        return None
    if not isinstance(raw, Mapping):
        raise ConfigurationError(f"{source} must be a mapping, got {type(raw).__name__}")
    section = raw.get("mintable")
    if section is None:
        return None
    if not isinstance(section, Mapping):
        raise ConfigurationError(f"{source}: 'mintable' must be a mapping, got {type(section).__name__}")

    canonical: dict[str, Any] = {}
    for key, value in section.items():
        name = _SECTION_KEYS.get(key)
        if name is None:
            logger.warning("%s: ignoring unknown key %r in 'mintable' section", source, key)
            continue
        if name in canonical:
            raise ConfigurationError(f"{source}: '{name}' given more than once")
        canonical[name] = value
    return canonical


def normalize(
    raw: Mapping[str, Any] | None,
    resolver: IdentityResolver,
    project_root: str | os.PathLike[str] | None = None,
) -> Configuration:
    """Parse a raw policy object into a Configuration, applying defaults."""
    section = read_section(raw)
    if section is None:
        return Configuration()

    root = resolver.project_root if project_root is None else project_root
    mode = _parse_mode(section["mode"]) if "mode" in section else Mode.ENFORCE

    raw_grants = section.get("grants", {})
    if not isinstance(raw_grants, Mapping):
        raise ConfigurationError(f"grants must be a mapping, got {type(raw_grants).__name__}")
    grants: dict[str, frozenset[str]] = {}
    for key, specifiers in raw_grants.items():
        if not isinstance(key, str) or not key:
            raise ConfigurationError(f"contract keys must be non-empty strings, got {key!r}")
        identities = {
            normalize_specifier(spec, resolver, root)
            for spec in _string_list(specifiers, f"grants[{key!r}]")
        }
        grants[key] = frozenset(identities)

    return Configuration(
        mode=mode,
        grants=MappingProxyType(grants),
        self_nominate=_string_list(section.get("self_nominate", []), "selfNominate"),
        second=_string_list(section.get("second", []), "second"),
    )
