"""Shared fixtures for lirt tests."""

from __future__ import annotations
import logging
from collections.abc import Iterator
from pathlib import Path
import pytest
from typer.testing import CliRunner
from lirt.config import ConfigPaths, ProfileStore, resolve_paths


_LIRT_VARIABLES = (
    "LIRT_API_KEY",
    "LINEAR_API_KEY",
    "LIRT_PROFILE",
    "LIRT_CONFIG_DIR",
    "LIRT_CREDENTIALS_FILE",
    "LIRT_CONFIG_FILE",
    "LIRT_TEAM",
    "LIRT_FORMAT",
    "LIRT_API_URL",
    "LIRT_LOG_LEVEL",
    "LIRT_LOG_FORMAT",
)


@pytest.fixture(autouse=True)
def isolated_environment(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> Iterator[None]:
    """Ensure tests never read the developer's real profiles or keys."""
    for name in _LIRT_VARIABLES:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    yield
    logger = logging.getLogger("lirt")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def config_dir(tmp_path: Path) -> Path:
    return tmp_path / "config"


@pytest.fixture()
def env(config_dir: Path) -> dict[str, str]:
    return {
        "LIRT_CONFIG_DIR": str(config_dir),
        "LIRT_API_URL": "https://linear.test/graphql",
        "NO_COLOR": "1",
        "COLUMNS": "200",
    }


@pytest.fixture()
def paths(env: dict[str, str]) -> ConfigPaths:
    return resolve_paths(env)


@pytest.fixture()
def store(paths: ConfigPaths) -> ProfileStore:
    return ProfileStore(paths)
