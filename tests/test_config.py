"""Tests for mintable/config.py — settings from env, policy normalization."""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from mintable.config import (
    Configuration,
    ConfigurationError,
    Mode,
    ResolverSettings,
    load_settings,
    normalize,
)
from mintable.config import _getenv  # noqa: PLC2701
from mintable.identity import SELF_IDENTITY, IdentityResolutionError, IdentityResolver


@pytest.fixture
def resolver(tmp_path: Path) -> IdentityResolver:
    return IdentityResolver(tmp_path)


class TestGetenv:
    def test_returns_default_when_unset(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            assert _getenv("MISSING_VAR_XYZ", "default") == "default"

    def test_strips_inline_comment(self) -> None:
        with patch.dict(os.environ, {"TEST_KEY": "site-packages  # comment"}, clear=False):
            assert _getenv("TEST_KEY", "fallback") == "site-packages"


class TestLoadSettings:
    def test_defaults(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            settings = load_settings()
        assert settings == ResolverSettings()
        assert settings.boundary_markers == ("site-packages", "dist-packages")

    def test_env_overrides(self) -> None:
        env = {
            "MINTABLE_BOUNDARY_MARKERS": "site-packages, vendor",
            "MINTABLE_NAMESPACE_PACKAGES": "google,zope",
            "MINTABLE_DEPENDENCY_ROOTS": os.pathsep.join(["/a", "/b"]),
            "MINTABLE_MANIFEST": "/etc/app/mintable.toml",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = load_settings()
        assert settings.boundary_markers == ("site-packages", "vendor")
        assert settings.namespace_packages == ("google", "zope")
        assert settings.dependency_roots == ("/a", "/b")
        assert settings.manifest_path == "/etc/app/mintable.toml"

    def test_blank_markers_fall_back_to_default(self) -> None:
        with patch.dict(os.environ, {"MINTABLE_BOUNDARY_MARKERS": " , "}, clear=True):
            assert load_settings().boundary_markers == ("site-packages", "dist-packages")


# ── normalize ─────────────────────────────────────────────────────────────────


class TestDefaults:
    def test_no_policy_is_permissive(self, resolver: IdentityResolver) -> None:
        config = normalize(None, resolver)
        assert config == Configuration()
        assert config.mode is Mode.PERMISSIVE
        assert dict(config.grants) == {}

    def test_absent_section_is_permissive(self, resolver: IdentityResolver) -> None:
        config = normalize({"name": "app", "version": "1.0"}, resolver)
        assert config.mode is Mode.PERMISSIVE

    def test_section_without_mode_enforces(self, resolver: IdentityResolver) -> None:
        config = normalize({"mintable": {}}, resolver)
        assert config.mode is Mode.ENFORCE
        assert config.self_nominate == ()
        assert config.second == ()

    @pytest.mark.parametrize("mode", list(Mode))
    def test_every_mode_parses(self, resolver: IdentityResolver, mode: Mode) -> None:
        assert normalize({"mintable": {"mode": mode.value}}, resolver).mode is mode

    def test_unknown_mode_rejected(self, resolver: IdentityResolver) -> None:
        with pytest.raises(ConfigurationError, match="unknown mode"):
            normalize({"mintable": {"mode": "lenient"}}, resolver)

    def test_mode_is_case_sensitive(self, resolver: IdentityResolver) -> None:
        with pytest.raises(ConfigurationError, match="unknown mode"):
            normalize({"mintable": {"mode": "Enforce"}}, resolver)


class TestGrants:
    def test_bare_names_accepted_as_is(self, resolver: IdentityResolver) -> None:
        config = normalize({"mintable": {"grants": {"k": ["liba", "my-lib", "google.protobuf"]}}}, resolver)
        assert config.grants["k"] == frozenset({"liba", "my_lib", "google.protobuf"})

    def test_path_specifiers_resolve_through_identity(self, resolver: IdentityResolver) -> None:
        raw = {"mintable": {"grants": {"k": ["./vendor/site-packages/libc", "./src/app"]}}}
        config = normalize(raw, resolver)
        assert config.grants["k"] == frozenset({"libc", SELF_IDENTITY})

    def test_dot_is_self(self, resolver: IdentityResolver) -> None:
        assert normalize({"mintable": {"grants": {"k": ["."]}}}, resolver).grants["k"] == {SELF_IDENTITY}

    def test_path_outside_project_is_fatal(self, resolver: IdentityResolver) -> None:
        with pytest.raises(IdentityResolutionError):
            normalize({"mintable": {"grants": {"k": ["../../elsewhere/x"]}}}, resolver)

    def test_duplicates_collapse(self, resolver: IdentityResolver) -> None:
        config = normalize({"mintable": {"grants": {"k": ["liba", "liba", "lib-a", "lib_a"]}}}, resolver)
        assert config.grants["k"] == frozenset({"liba", "lib_a"})

    def test_grants_not_a_mapping(self, resolver: IdentityResolver) -> None:
        with pytest.raises(ConfigurationError, match="grants must be a mapping"):
            normalize({"mintable": {"grants": ["liba"]}}, resolver)

    def test_grant_list_not_a_list(self, resolver: IdentityResolver) -> None:
        with pytest.raises(ConfigurationError, match="must be a list"):
            normalize({"mintable": {"grants": {"k": "liba"}}}, resolver)

    def test_empty_specifier_rejected(self, resolver: IdentityResolver) -> None:
        with pytest.raises(ConfigurationError, match="non-empty strings"):
            normalize({"mintable": {"grants": {"k": [""]}}}, resolver)

    def test_grants_are_read_only(self, resolver: IdentityResolver) -> None:
        config = normalize({"mintable": {"grants": {"k": ["liba"]}}}, resolver)
        with pytest.raises(TypeError):
            config.grants["k2"] = frozenset({"libb"})  # type: ignore[index]


class TestSectionShape:
    def test_self_nominate_aliases(self, resolver: IdentityResolver) -> None:
        for key in ("selfNominate", "self-nominate", "self_nominate"):
            config = normalize({"mintable": {key: ["k1", "k2"]}}, resolver)
            assert config.self_nominate == ("k1", "k2")

    def test_conflicting_aliases_rejected(self, resolver: IdentityResolver) -> None:
        with pytest.raises(ConfigurationError, match="more than once"):
            normalize({"mintable": {"selfNominate": ["a"], "self-nominate": ["b"]}}, resolver)

    def test_second_kept_as_specifiers(self, resolver: IdentityResolver) -> None:
        config = normalize({"mintable": {"second": ["liba", "./vendor/libb"]}}, resolver)
        assert config.second == ("liba", "./vendor/libb")

    def test_section_not_a_mapping(self, resolver: IdentityResolver) -> None:
        with pytest.raises(ConfigurationError, match="must be a mapping"):
            normalize({"mintable": "enforce"}, resolver)

    def test_policy_not_a_mapping(self, resolver: IdentityResolver) -> None:
        with pytest.raises(ConfigurationError, match="must be a mapping"):
            normalize(["mintable"], resolver)  # type: ignore[arg-type]

    def test_unknown_keys_warned_and_ignored(
        self, resolver: IdentityResolver, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level("WARNING", logger="mintable.config"):
            config = normalize({"mintable": {"mode": "enforce", "grant": {"k": ["liba"]}}}, resolver)
        assert dict(config.grants) == {}
        assert "unknown key 'grant'" in caplog.text
