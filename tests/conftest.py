"""Shared fixtures: real packages installed into a throwaway site-packages."""

from __future__ import annotations

import importlib.util
import itertools
import sys
from pathlib import Path
from types import ModuleType
from typing import Callable, Iterator

import pytest

# Imported from an installed package, so boxes see the package as the opener.
LIBRARY_SOURCE = '''
from mintable.box import open_box, unbox


def outcome(boxed):
    return open_box(boxed)


def take(boxed, fallback=None):
    return unbox(boxed, fallback)


def open_method(boxed):
    return boxed.open()


def call(fn, *args):
    return fn(*args)
'''

_serial = itertools.count()


@pytest.fixture(scope="module")
def site_packages(tmp_path_factory: pytest.TempPathFactory) -> Path:
    return tmp_path_factory.mktemp("venv") / "lib" / "python3.12" / "site-packages"


@pytest.fixture(scope="module")
def install_package(site_packages: Path) -> Iterator[Callable[..., ModuleType]]:
    """Write a package into *site_packages* and import it from there."""
    loaded: list[str] = []

    def install(name: str, source: str = LIBRARY_SOURCE) -> ModuleType:
        pkg = site_packages / name
        pkg.mkdir(parents=True)
        (pkg / "__init__.py").write_text(source)
        module_name = f"_installed_{name}_{next(_serial)}"
        spec = importlib.util.spec_from_file_location(module_name, pkg / "__init__.py")
        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        loaded.append(module_name)
        spec.loader.exec_module(module)
        return module

    yield install
    for module_name in loaded:
        sys.modules.pop(module_name, None)


@pytest.fixture(scope="module")
def libraries(install_package: Callable[..., ModuleType]) -> dict[str, ModuleType]:
    return {"liba": install_package("liba"), "libb": install_package("libb")}
