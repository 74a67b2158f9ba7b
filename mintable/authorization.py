"""One-time policy resolution and the context object that owns its result.

Lifecycle: UNINITIALIZED → RESOLVING → RESOLVED, or FAILED when resolution
raises.  Only the first transition out of UNINITIALIZED is allowed; after
that the configuration and grant table are never written again.
"""

from __future__ import annotations

import logging
import os
import threading
from enum import Enum
from typing import Any, Mapping

from mintable.binding import caller_location
from mintable.config import Configuration, ResolverSettings, load_settings, normalize
from mintable.errors import MintableError
from mintable.enforcer import CapabilityEnforcer, DenyAll
from mintable.grants import GrantResolver, GrantTable
from mintable.identity import IdentityResolver
from mintable.manifest import DependencyLocator, find_manifest, read_manifest_file

logger = logging.getLogger(__name__)


class AlreadyAuthorized(MintableError):
    """authorize() was called on a context that has already left UNINITIALIZED."""


class State(Enum):
    UNINITIALIZED = "uninitialized"
    RESOLVING = "resolving"
    RESOLVED = "resolved"
    FAILED = "failed"


class AuthorizationContext:
    """Owns the process policy: configuration, grant table and enforcer.

    The module-level API in ``mintable.api`` uses one process-wide instance; tests
    build their own.
    """

    def __init__(self, settings: ResolverSettings | None = None):
        self.settings = settings or load_settings()
        self._lock = threading.Lock()
        self._state = State.UNINITIALIZED
        self._resolver: IdentityResolver | None = None
        self._configuration: Configuration | None = None
        self._table: GrantTable | None = None
        self._enforcer: CapabilityEnforcer | DenyAll | None = None

    @property
    def state(self) -> State:
        return self._state

    @property
    def configuration(self) -> Configuration | None:
        return self._configuration

    @property
    def table(self) -> GrantTable | None:
        return self._table

    @property
    def resolver(self) -> IdentityResolver | None:
        return self._resolver

    def _make_resolver(self, project_root: str | os.PathLike[str]) -> IdentityResolver:
        return IdentityResolver(
            project_root,
            boundary_markers=self.settings.boundary_markers,
            namespace_packages=self.settings.namespace_packages,
        )

    # ── initialization ────────────────────────────────────────────

    def authorize(
        self,
        raw: Mapping[str, Any] | None,
        project_root: str | os.PathLike[str] | None = None,
    ) -> None:
        """Resolve *raw* into the grant table.  May succeed at most once."""
        if project_root is None:
            location = caller_location()
            project_root = os.path.dirname(location) if location else os.getcwd()

        with self._lock:
            if self._state is not State.UNINITIALIZED:
                raise AlreadyAuthorized(f"policy already {self._state.value}; authorize() may only run once")
            self._state = State.RESOLVING

        logger.info("resolving mintable policy (project root %s)", project_root)
        try:
            resolver = self._make_resolver(project_root)
            configuration = normalize(raw, resolver, project_root)
            locator = DependencyLocator(project_root, self.settings.dependency_roots)
            table = GrantResolver(resolver, locator, project_root).resolve(configuration)
        except Exception as exc:
            logger.error("mintable policy resolution failed: %s", exc)
            self._enforcer = DenyAll("policy resolution failed")
            self._state = State.FAILED
            raise

        self._publish(resolver, configuration, table)
        logger.info(
            "mintable policy resolved: mode=%s, %d contract key(s)",
            configuration.mode.value,
            len(table),
        )

    def authorize_from_manifest(self, path: str | os.PathLike[str] | None = None) -> None:
        """Authorize from a manifest file or directory; relative grants anchor at its directory."""
        target = path or self.settings.manifest_path or os.getcwd()
        manifest = find_manifest(target)
        self.authorize(read_manifest_file(manifest), project_root=manifest.resolve().parent)

    def _publish(self, resolver: IdentityResolver, configuration: Configuration, table: GrantTable) -> None:
        self._resolver = resolver
        self._configuration = configuration
        self._table = table
        self._enforcer = CapabilityEnforcer(configuration.mode, table)
        self._state = State.RESOLVED

    def _freeze_default(self) -> None:
        """First use before authorize(): lock in the no-policy default."""
        with self._lock:
            if self._state is not State.UNINITIALIZED:
                return
            logger.warning(
                "mintable capability used before authorize(); freezing the default permissive policy"
            )
            resolver = self._make_resolver(os.getcwd())
            self._publish(resolver, Configuration(), GrantTable())

    # ── steady state ──────────────────────────────────────────────

    def identity_for(self, location: str | os.PathLike[str] | None) -> str | None:
        if self._state is State.UNINITIALIZED:
            self._freeze_default()
        if self._resolver is None:
            return None
        return self._resolver.caller_identity(location)

    def is_authorized(self, identity: str | None, contract_key: str) -> bool:
        if self._state is State.UNINITIALIZED:
            self._freeze_default()
        if self._state is State.RESOLVING:
            logger.warning("denied minter for contract %r to %s: policy still resolving", contract_key, identity)
            return False
        if self._enforcer is None:
            return False
        return self._enforcer.is_authorized(identity, contract_key)

    def describe(self) -> dict[str, Any]:
        configuration = self._configuration
        return {
            "state": self._state.value,
            "project_root": str(self._resolver.project_root) if self._resolver else None,
            "mode": configuration.mode.value if configuration else None,
            "grants": self._table.as_dict() if self._table is not None else {},
        }

