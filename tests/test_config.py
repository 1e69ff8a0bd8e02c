"""Tests for profile storage and configuration resolution."""

from __future__ import annotations
import logging
import os
from datetime import timedelta
from pathlib import Path
import pytest
from lirt.config import (
    DEFAULT_CACHE_TTL,
    DEFAULT_FORMAT,
    DEFAULT_PAGE_SIZE,
    Profile,
    ProfileStore,
    parse_duration,
    resolve_paths,
    resolve_profile_name,
    settings_section,
    validate_profile_name,
    validate_setting,
)
from lirt.errors import ConfigurationError, ValidationError


def _mode(path: Path) -> int:
    return os.stat(path).st_mode & 0o777


def test_resolve_paths_defaults_to_home(tmp_path: Path) -> None:
    paths = resolve_paths({"HOME": str(tmp_path)})
    assert paths.config_dir == tmp_path / ".config" / "lirt"
    assert paths.credentials_file == paths.config_dir / "credentials"
    assert paths.settings_file == paths.config_dir / "config"
    assert paths.cache_dir == paths.config_dir / "cache"


def test_resolve_paths_honours_overrides(tmp_path: Path) -> None:
    paths = resolve_paths(
        {
            "LIRT_CONFIG_DIR": str(tmp_path / "dir"),
            "LIRT_CREDENTIALS_FILE": str(tmp_path / "secrets.ini"),
            "LIRT_CONFIG_FILE": str(tmp_path / "settings.ini"),
        }
    )
    assert paths.config_dir == tmp_path / "dir"
    assert paths.credentials_file == tmp_path / "secrets.ini"
    assert paths.settings_file == tmp_path / "settings.ini"


def test_resolve_profile_name_precedence() -> None:
    assert resolve_profile_name(None, {}) == "default"
    assert resolve_profile_name(None, {"LIRT_PROFILE": "work"}) == "work"
    assert resolve_profile_name("flag", {"LIRT_PROFILE": "work"}) == "flag"


@pytest.mark.parametrize(
    "name",
    [
        "",
        "  ",
        " work",
        "a/b",
        "a\\b",
        ".hidden",
        "DEFAULT",
        "[x]",
        "a\nb",
        "a\rb",
        "tab\tname",
        "nul\0",
    ],
)
def test_validate_profile_name_rejects_unsafe_names(name: str) -> None:
    with pytest.raises(ValidationError):
        validate_profile_name(name)


def test_settings_section_names() -> None:
    assert settings_section("default") == "default"
    assert settings_section("work") == "profile work"


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("5m", timedelta(minutes=5)),
        ("1h30m", timedelta(hours=1, minutes=30)),
        ("90s", timedelta(seconds=90)),
        ("250ms", timedelta(milliseconds=250)),
        ("0", timedelta(0)),
    ],
)
def test_parse_duration(text: str, expected: timedelta) -> None:
    assert parse_duration(text) == expected


@pytest.mark.parametrize("text", ["", "5", "abc", "5x", "m5", "5m junk"])
def test_parse_duration_rejects_invalid(text: str) -> None:
    with pytest.raises(ValidationError):
        parse_duration(text)


def test_load_missing_profile_returns_defaults(store: ProfileStore) -> None:
    profile = store.load("default")
    assert profile == Profile(name="default")
    assert profile.format == DEFAULT_FORMAT
    assert profile.cache_ttl == DEFAULT_CACHE_TTL
    assert profile.page_size == DEFAULT_PAGE_SIZE


def test_save_and_load_round_trip(store: ProfileStore) -> None:
    profile = Profile(
        name="work", workspace="Acme", team="ENG", format="json", page_size=25
    )
    store.save(profile, api_key="lin_api_secret")

    assert store.load("work") == profile
    assert store.load_api_key("work") == "lin_api_secret"


def test_file_layout_and_permissions(store: ProfileStore) -> None:
    store.save(Profile(name="default", workspace="Acme"), api_key="key-default")
    store.save(Profile(name="work"), api_key="key-work")

    paths = store.paths
    settings = paths.settings_file.read_text(encoding="utf-8")
    credentials = paths.credentials_file.read_text(encoding="utf-8")
    assert "[default]" in settings
    assert "[profile work]" in settings
    assert "key-" not in settings
    assert "[work]" in credentials
    assert "api_key = key-work" in credentials

    assert _mode(paths.credentials_file) == 0o600
    assert _mode(paths.settings_file) == 0o644
    assert _mode(paths.config_dir) == 0o700


def test_save_restores_secret_file_mode(store: ProfileStore) -> None:
    store.save(Profile(name="default"), api_key="key")
    os.chmod(store.paths.credentials_file, 0o644)

    store.save(Profile(name="default", team="ENG"))

    assert _mode(store.paths.credentials_file) == 0o600
    assert store.load_api_key("default") == "key"


def test_relocated_files_leave_their_directory_mode(tmp_path: Path) -> None:
    shared = tmp_path / "shared"
    shared.mkdir()
    os.chmod(shared, 0o755)
    store = ProfileStore(
        resolve_paths(
            {
                "LIRT_CONFIG_DIR": str(tmp_path / "config"),
                "LIRT_CONFIG_FILE": str(shared / "lirt.ini"),
                "LIRT_CREDENTIALS_FILE": str(shared / "lirt-secrets.ini"),
            }
        )
    )

    store.save(Profile(name="work", team="ENG"), api_key="key-work")
    store.delete("work")

    assert _mode(shared) == 0o755
    assert _mode(shared / "lirt-secrets.ini") == 0o600


def test_control_characters_never_reach_the_files(store: ProfileStore) -> None:
    store.save(Profile(name="default", team="ENG"), api_key="key")

    with pytest.raises(ValidationError):
        store.set_value("a\nb", "team", "X")
    with pytest.raises(ValidationError):
        store.save_api_key("a\nb", "other")

    assert store.load("default").team == "ENG"
    assert store.load_api_key("default") == "key"


def test_exists_and_delete(store: ProfileStore) -> None:
    store.save(Profile(name="work"), api_key="key")
    assert store.exists("work")

    store.delete("work")

    assert not store.exists("work")
    assert store.load_api_key("work") is None
    store.delete("work")


def test_list_unions_both_files(store: ProfileStore) -> None:
    store.save(Profile(name="work", workspace="Acme"))
    store.save_api_key("ci", "key")
    store.save(Profile(name="default"), api_key="key")

    assert store.list() == [("ci", None), ("default", None), ("work", "Acme")]


def test_set_and_unset_value(store: ProfileStore) -> None:
    store.set_value("default", "team", "ENG")
    assert store.load("default").team == "ENG"

    assert store.unset_value("default", "team") is True
    assert store.load("default").team is None
    assert store.unset_value("default", "team") is False


def test_corrupt_settings_file_raises(store: ProfileStore) -> None:
    store.paths.settings_file.parent.mkdir(parents=True)
    store.paths.settings_file.write_text("not an ini file", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        store.load("default")


def test_invalid_page_size_on_disk_is_ignored(store: ProfileStore) -> None:
    store.set_value("default", "page_size", "many")
    assert store.load("default").page_size == DEFAULT_PAGE_SIZE


def test_invalid_ttl_falls_back_to_default(caplog: pytest.LogCaptureFixture) -> None:
    profile = Profile(name="default", cache_ttl="soon")
    with caplog.at_level(logging.WARNING, logger="lirt.config"):
        assert profile.ttl() == timedelta(minutes=5)
    assert "Invalid cache_ttl" in caplog.text


@pytest.mark.parametrize(
    ("key", "value"),
    [
        ("workspace", "Acme"),
        ("format", "yaml"),
        ("cache_ttl", "later"),
        ("page_size", "0"),
        ("page_size", "251"),
        ("page_size", "ten"),
    ],
)
def test_validate_setting_rejects(key: str, value: str) -> None:
    with pytest.raises(ValidationError):
        validate_setting(key, value)


def test_validate_setting_normalises_page_size() -> None:
    assert validate_setting("page_size", "025") == "25"
    assert validate_setting("format", "csv") == "csv"
