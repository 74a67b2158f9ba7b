"""Locate dependencies and read their declarative manifests from disk."""

from __future__ import annotations

import json
import logging
import os
import sys
import sysconfig
import tomllib
from pathlib import Path
from typing import Any

from mintable.config import ConfigurationError, is_bare_name

logger = logging.getLogger(__name__)

# Searched in this order inside a package directory.
MANIFEST_NAMES = ("mintable.toml", "mintable.json", "pyproject.toml")


class ManifestNotFound(ConfigurationError):
    """No manifest exists at or under the requested location."""


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        with open(path, "rb") as fh:
            return tomllib.load(fh)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigurationError(f"{path}: invalid TOML: {exc}") from exc


def _read_json(path: Path) -> Any:
    try:
        with open(path, encoding="utf-8") as fh:
            return json.load(fh)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"{path}: invalid JSON: {exc}") from exc


def read_manifest_file(path: Path) -> dict[str, Any]:
    """Read one manifest file and return it as {'mintable': {...}} or {}.

    mintable.toml carries the section as a top-level [mintable] table,
    pyproject.toml as [tool.mintable], JSON files as a top-level "mintable" key.
    """
    if path.suffix == ".json":
        data = _read_json(path)
        if not isinstance(data, dict):
            raise ConfigurationError(f"{path}: manifest must be a JSON object")
        return data

    if path.suffix != ".toml":
        raise ConfigurationError(f"{path}: unsupported manifest format")
    data = _read_toml(path)
    if path.name == "pyproject.toml":
        tool = data.get("tool", {})
        if not isinstance(tool, dict):
            raise ConfigurationError(f"{path}: [tool] must be a table")
        section = tool.get("mintable")
        return {} if section is None else {"mintable": section}
    return data


def find_manifest(location: str | os.PathLike[str]) -> Path:
    """Return the manifest file at or under *location*."""
    path = Path(location)
    if path.is_file():
        if path.suffix in (".json", ".toml"):
            return path
        raise ManifestNotFound(f"{path} is a module file, not a package directory with a manifest")
    if not path.is_dir():
        raise ManifestNotFound(f"{path} does not exist")
    for name in MANIFEST_NAMES:
        candidate = path / name
        if candidate.is_file():
            return candidate
    raise ManifestNotFound(f"no manifest ({', '.join(MANIFEST_NAMES)}) under {path}")


def load_manifest(location: str | os.PathLike[str]) -> dict[str, Any]:
    manifest = find_manifest(location)
    logger.debug("reading manifest %s", manifest)
    return read_manifest_file(manifest)


class DependencyLocator:
    """Find a dependency's directory without importing any of its code."""

    def __init__(self, project_root: str | os.PathLike[str], dependency_roots: tuple[str, ...] = ()):
        self.project_root = Path(project_root)
        self.dependency_roots = tuple(Path(root) for root in dependency_roots)

    def search_path(self) -> list[Path]:
        roots = list(self.dependency_roots)
        for key in ("purelib", "platlib"):
            lib = sysconfig.get_paths().get(key)
            if lib:
                roots.append(Path(lib))
        roots.extend(Path(entry) for entry in sys.path if entry)
        seen: set[Path] = set()
        unique = []
        for root in roots:
            if root not in seen:
                seen.add(root)
                unique.append(root)
        return unique

    def locate(self, specifier: str) -> Path:
        """Directory (or module file) for *specifier*; ManifestNotFound if absent."""
        if not is_bare_name(specifier):
            path = self.project_root / specifier
            if not path.exists():
                raise ManifestNotFound(f"seconded dependency '{specifier}' not found at {path}")
            return path

        relative = Path(*specifier.replace("-", "_").split("."))
        for root in self.search_path():
            for candidate in (root / relative, root / relative.with_name(relative.name + ".py")):
                if candidate.exists():
                    return candidate
        raise ManifestNotFound(f"seconded dependency '{specifier}' not found on the search path")
