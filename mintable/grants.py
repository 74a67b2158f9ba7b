"""Resolve explicit grants and seconded self-nominations into one GrantTable."""

from __future__ import annotations

import logging
import os
from collections import defaultdict
from types import MappingProxyType
from typing import Iterator, Mapping

from mintable.config import Configuration, ConfigurationError, is_bare_name, read_section
from mintable.identity import SELF_IDENTITY, IdentityResolver
from mintable.manifest import DependencyLocator, load_manifest

logger = logging.getLogger(__name__)

_EMPTY: frozenset[str] = frozenset()


class GrantTable(Mapping[str, frozenset[str]]):
    """Read-only map of contract key → identities allowed to mint it."""

    def __init__(self, grants: Mapping[str, frozenset[str]] | None = None):
        self._grants = MappingProxyType({key: frozenset(ids) for key, ids in (grants or {}).items()})

    def __getitem__(self, key: str) -> frozenset[str]:
        return self._grants[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._grants)

    def __len__(self) -> int:
        return len(self._grants)

    def __repr__(self) -> str:
        body = ", ".join(f"{key!r}: {sorted(ids)}" for key, ids in sorted(self._grants.items()))
        return f"GrantTable({{{body}}})"

    def granted(self, key: str) -> frozenset[str]:
        """Identities granted *key*; an unknown key has none."""
        return self._grants.get(key, _EMPTY)

    def allows(self, key: str, identity: str | None) -> bool:
        return identity is not None and identity in self.granted(key)

    def as_dict(self) -> dict[str, list[str]]:
        return {key: sorted(ids) for key, ids in sorted(self._grants.items())}


class GrantResolver:
    def __init__(
        self,
        resolver: IdentityResolver,
        locator: DependencyLocator,
        project_root: str | os.PathLike[str],
    ):
        self.resolver = resolver
        self.locator = locator
        self.project_root = project_root

    def _seconded_identity(self, specifier: str, location: os.PathLike[str]) -> str:
        if is_bare_name(specifier):
            return specifier.replace("-", "_")
        identity = self.resolver.identity_of(location)
        # project code outside any dependency root runs as the application itself
        if identity == SELF_IDENTITY:
            raise ConfigurationError(
                f"seconded dependency '{specifier}' is part of the project itself; "
                "second installed dependencies only"
            )
        return identity

    def nominations_of(self, specifier: str) -> tuple[str, tuple[str, ...]]:
        """Return (identity, self-nominated keys) for a seconded dependency."""
        location = self.locator.locate(specifier)
        manifest = load_manifest(location)
        section = read_section(manifest, source=f"manifest of '{specifier}'") or {}
        nominated = section.get("self_nominate", [])
        if not isinstance(nominated, (list, tuple)) or not all(
            isinstance(key, str) and key for key in nominated
        ):
            raise ConfigurationError(
                f"manifest of '{specifier}': selfNominate must be a list of contract keys"
            )
        return self._seconded_identity(specifier, location), tuple(nominated)

    def resolve(self, configuration: Configuration) -> GrantTable:
        table: dict[str, set[str]] = defaultdict(set)

        for specifier in configuration.second:
            identity, keys = self.nominations_of(specifier)
            if not keys:
                logger.info("seconded %s nominates no contract keys", identity)
            for key in keys:
                logger.info("seconded %s for contract %r", identity, key)
                table[key].add(identity)

        for key, identities in configuration.grants.items():
            table[key].update(identities)

        return GrantTable({key: frozenset(ids) for key, ids in table.items()})
