"""Profile configuration for the lirt CLI.

Profiles live in two INI files that mirror the layout of the AWS CLI:

* the secrets file (``credentials``, mode ``0600``) keyed by the bare profile
  name and holding a single ``api_key`` field;
* the settings file (``config``, mode ``0644``) where the ``default`` profile
  uses the bare ``[default]`` section and every other profile lives under
  ``[profile <name>]``.

Both files are rewritten whole on each change through a temporary file and
``os.replace``. Nothing is locked: two processes saving at the same time race
and the last writer wins.
"""

from __future__ import annotations
import configparser
import io
import logging
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from .errors import ConfigurationError, ValidationError
from .files import (
    SECRET_FILE_MODE,
    SETTINGS_FILE_MODE,
    atomic_write_text,
    ensure_private_dir,
)


logger = logging.getLogger(__name__)

API_KEY_ENV = "LIRT_API_KEY"
LEGACY_API_KEY_ENV = "LINEAR_API_KEY"
PROFILE_ENV = "LIRT_PROFILE"
CONFIG_DIR_ENV = "LIRT_CONFIG_DIR"
CREDENTIALS_FILE_ENV = "LIRT_CREDENTIALS_FILE"
CONFIG_FILE_ENV = "LIRT_CONFIG_FILE"
TEAM_ENV = "LIRT_TEAM"
FORMAT_ENV = "LIRT_FORMAT"
API_URL_ENV = "LIRT_API_URL"

DEFAULT_PROFILE = "default"
DEFAULT_FORMAT = "table"
DEFAULT_CACHE_TTL = "5m"
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 250
OUTPUT_FORMATS = ("table", "json", "csv")

CREDENTIALS_FILENAME = "credentials"
SETTINGS_FILENAME = "config"
PROFILE_SECTION_PREFIX = "profile "
API_KEY_FIELD = "api_key"

WORKSPACE_KEY = "workspace"
TEAM_KEY = "team"
FORMAT_KEY = "format"
CACHE_TTL_KEY = "cache_ttl"
PAGE_SIZE_KEY = "page_size"
SETTINGS_KEYS = (WORKSPACE_KEY, TEAM_KEY, FORMAT_KEY, CACHE_TTL_KEY, PAGE_SIZE_KEY)
SETTABLE_KEYS = (TEAM_KEY, FORMAT_KEY, CACHE_TTL_KEY, PAGE_SIZE_KEY)

_DURATION_RE = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_DURATION_UNITS = {
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
}


@dataclass(slots=True)
class ConfigPaths:
    """Locations of the on-disk files for one invocation."""

    config_dir: Path
    credentials_file: Path
    settings_file: Path

    @property
    def cache_dir(self) -> Path:
        """Return the root directory holding per-profile cache folders."""
        return self.config_dir / "cache"


@dataclass(slots=True)
class Profile:
    """Settings stored for one named profile.

    The profile never holds the secret itself; ``secret_ref`` names the section
    of the secrets file that does.
    """

    name: str
    workspace: str | None = None
    team: str | None = None
    format: str = DEFAULT_FORMAT
    cache_ttl: str = DEFAULT_CACHE_TTL
    page_size: int = DEFAULT_PAGE_SIZE

    @property
    def secret_ref(self) -> str:
        """Return the secrets-file section holding this profile's key."""
        return self.name

    @property
    def section(self) -> str:
        """Return the settings-file section name for this profile."""
        return settings_section(self.name)

    def ttl(self) -> timedelta:
        """Return the cache TTL, falling back to the default when invalid."""
        try:
            return parse_duration(self.cache_ttl)
        except ValidationError:
            logger.warning(
                "Invalid cache_ttl %r for profile %s; using %s",
                self.cache_ttl,
                self.name,
                DEFAULT_CACHE_TTL,
            )
            return parse_duration(DEFAULT_CACHE_TTL)


def _default_config_dir(env: Mapping[str, str]) -> Path:
    home = env.get("HOME")
    base = Path(home) if home else Path.home()
    return base / ".config" / "lirt"


def resolve_paths(env: Mapping[str, str] | None = None) -> ConfigPaths:
    """Return file locations after applying the environment overrides."""
    env = os.environ if env is None else env
    config_dir = Path(env.get(CONFIG_DIR_ENV) or _default_config_dir(env))
    credentials_file = Path(
        env.get(CREDENTIALS_FILE_ENV) or config_dir / CREDENTIALS_FILENAME
    )
    settings_file = Path(env.get(CONFIG_FILE_ENV) or config_dir / SETTINGS_FILENAME)
    return ConfigPaths(
        config_dir=config_dir,
        credentials_file=credentials_file,
        settings_file=settings_file,
    )


def validate_profile_name(name: str) -> str:
    """Return ``name`` unchanged or raise when it is unusable as a profile."""
    if not name or not name.strip():
        raise ValidationError("Profile name cannot be empty")
    if name != name.strip():
        raise ValidationError(f"Profile name '{name}' has surrounding whitespace")
    if "/" in name or "\\" in name or name.startswith("."):
        raise ValidationError(
            f"Profile name '{name}' may not contain path separators or start with '.'"
        )
    if not name.isprintable():
        raise ValidationError(
            f"Profile name {name!r} may not contain control characters"
        )
    if name == configparser.DEFAULTSECT or "[" in name or "]" in name:
        raise ValidationError(f"Profile name '{name}' is reserved")
    return name


def resolve_profile_name(
    flag: str | None, env: Mapping[str, str] | None = None
) -> str:
    """Pick the active profile: flag, then ``LIRT_PROFILE``, then ``default``."""
    env = os.environ if env is None else env
    name = flag or env.get(PROFILE_ENV) or DEFAULT_PROFILE
    return validate_profile_name(name)


def settings_section(name: str) -> str:
    """Return the settings-file section for profile ``name``."""
    if name == DEFAULT_PROFILE:
        return DEFAULT_PROFILE
    return f"{PROFILE_SECTION_PREFIX}{name}"


def _profile_from_section(section: str) -> str:
    if section.startswith(PROFILE_SECTION_PREFIX):
        return section[len(PROFILE_SECTION_PREFIX) :].strip()
    return section


def parse_duration(value: str) -> timedelta:
    """Parse a Go-style duration such as ``5m``, ``1h30m`` or ``0``."""
    text = value.strip() if isinstance(value, str) else ""
    if text == "0":
        return timedelta(0)
    if not text:
        raise ValidationError("Duration cannot be empty")
    total = timedelta(0)
    position = 0
    for match in _DURATION_RE.finditer(text):
        if match.start() != position:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        position = match.end()
    if position != len(text):
        raise ValidationError(
            f"Invalid duration '{value}' (expected e.g. 30s, 5m, 1h30m or 0)"
        )
    return total


def validate_setting(key: str, value: str) -> str:
    """Validate a user supplied settings value before it is persisted."""
    if key not in SETTABLE_KEYS:
        valid = ", ".join(SETTABLE_KEYS)
        raise ValidationError(f"Invalid config key '{key}' (valid keys: {valid})")
    if key == FORMAT_KEY and value not in OUTPUT_FORMATS:
        valid = ", ".join(OUTPUT_FORMATS)
        raise ValidationError(f"Invalid format '{value}' (expected one of: {valid})")
    if key == CACHE_TTL_KEY:
        parse_duration(value)
    if key == PAGE_SIZE_KEY:
        try:
            size = int(value)
        except ValueError as exc:
            msg = f"page_size must be an integer, got '{value}'"
            raise ValidationError(msg) from exc
        if not 1 <= size <= MAX_PAGE_SIZE:
            raise ValidationError(f"page_size must be between 1 and {MAX_PAGE_SIZE}")
        return str(size)
    return value


class ProfileStore:
    """Read and write profiles across the secrets and settings files."""

    def __init__(self, paths: ConfigPaths) -> None:
        """Create a store bound to the provided file locations."""
        self.paths = paths

    @staticmethod
    def _read(path: Path) -> configparser.ConfigParser:
        parser = configparser.ConfigParser(interpolation=None)
        if not path.exists():
            return parser
        try:
            with path.open("r", encoding="utf-8") as handle:
                parser.read_file(handle)
        except (configparser.Error, UnicodeDecodeError) as exc:
            raise ConfigurationError(f"Failed to parse {path}: {exc}") from exc
        except OSError as exc:
            raise ConfigurationError(f"Failed to read {path}: {exc}") from exc
        return parser

    def _ensure_parent(self, path: Path) -> None:
        # Relocated files leave the mode of their directory alone.
        if path.parent == self.paths.config_dir:
            ensure_private_dir(path.parent)
        else:
            path.parent.mkdir(parents=True, exist_ok=True)

    def _write(self, parser: configparser.ConfigParser, path: Path, mode: int) -> None:
        self._ensure_parent(path)
        buffer = io.StringIO()
        parser.write(buffer)
        try:
            atomic_write_text(path, buffer.getvalue(), mode=mode)
        except OSError as exc:
            raise ConfigurationError(f"Failed to write {path}: {exc}") from exc
        logger.debug("Wrote %s", path)

    def load(self, name: str) -> Profile:
        """Return the profile ``name``, filled with defaults where unset."""
        validate_profile_name(name)
        profile = Profile(name=name)
        parser = self._read(self.paths.settings_file)
        section = settings_section(name)
        if not parser.has_section(section):
            return profile

        values = parser[section]
        profile.workspace = values.get(WORKSPACE_KEY) or None
        profile.team = values.get(TEAM_KEY) or None
        profile.format = values.get(FORMAT_KEY) or DEFAULT_FORMAT
        profile.cache_ttl = values.get(CACHE_TTL_KEY) or DEFAULT_CACHE_TTL
        raw_page_size = values.get(PAGE_SIZE_KEY)
        if raw_page_size:
            try:
                profile.page_size = int(raw_page_size)
            except ValueError:
                logger.warning(
                    "Ignoring invalid page_size %r for profile %s", raw_page_size, name
                )
        return profile

    def save(self, profile: Profile, *, api_key: str | None = None) -> None:
        """Persist ``profile`` settings and, when given, its API key.

        The secrets file permissions are re-asserted even when the key is not
        being changed.
        """
        validate_profile_name(profile.name)
        if api_key is not None:
            self.save_api_key(profile.name, api_key)
        elif self.paths.credentials_file.exists():
            os.chmod(self.paths.credentials_file, SECRET_FILE_MODE)

        parser = self._read(self.paths.settings_file)
        section = profile.section
        if not parser.has_section(section):
            parser.add_section(section)
        values = {
            WORKSPACE_KEY: profile.workspace,
            TEAM_KEY: profile.team,
            FORMAT_KEY: profile.format,
            CACHE_TTL_KEY: profile.cache_ttl,
            PAGE_SIZE_KEY: str(profile.page_size),
        }
        for key, value in values.items():
            if value is None or value == "":
                parser.remove_option(section, key)
            else:
                parser.set(section, key, value)
        self._write(parser, self.paths.settings_file, SETTINGS_FILE_MODE)

    def set_value(self, name: str, key: str, value: str) -> None:
        """Set a single settings key for profile ``name``."""
        validate_profile_name(name)
        if key not in SETTINGS_KEYS:
            raise ValidationError(f"Unknown config key '{key}'")
        parser = self._read(self.paths.settings_file)
        section = settings_section(name)
        if not parser.has_section(section):
            parser.add_section(section)
        parser.set(section, key, value)
        self._write(parser, self.paths.settings_file, SETTINGS_FILE_MODE)

    def unset_value(self, name: str, key: str) -> bool:
        """Remove a settings key; return whether it was present."""
        validate_profile_name(name)
        parser = self._read(self.paths.settings_file)
        section = settings_section(name)
        if not parser.has_section(section) or not parser.remove_option(section, key):
            return False
        self._write(parser, self.paths.settings_file, SETTINGS_FILE_MODE)
        return True

    def save_api_key(self, name: str, api_key: str) -> None:
        """Store ``api_key`` for profile ``name`` in the secrets file."""
        validate_profile_name(name)
        if not api_key:
            raise ValidationError("API key cannot be empty")
        parser = self._read(self.paths.credentials_file)
        if not parser.has_section(name):
            parser.add_section(name)
        parser.set(name, API_KEY_FIELD, api_key)
        self._write(parser, self.paths.credentials_file, SECRET_FILE_MODE)

    def load_api_key(self, name: str) -> str | None:
        """Return the stored API key for ``name``, or ``None`` when absent."""
        parser = self._read(self.paths.credentials_file)
        if not parser.has_section(name):
            return None
        return parser[name].get(API_KEY_FIELD) or None

    def exists(self, name: str) -> bool:
        """Return whether either file has an entry for profile ``name``."""
        if self._read(self.paths.credentials_file).has_section(name):
            return True
        return self._read(self.paths.settings_file).has_section(settings_section(name))

    def delete(self, name: str) -> None:
        """Remove profile ``name`` from both files; missing profiles are a no-op."""
        credentials = self._read(self.paths.credentials_file)
        if credentials.remove_section(name):
            self._write(credentials, self.paths.credentials_file, SECRET_FILE_MODE)

        settings = self._read(self.paths.settings_file)
        if settings.remove_section(settings_section(name)):
            self._write(settings, self.paths.settings_file, SETTINGS_FILE_MODE)

    def list(self) -> list[tuple[str, str | None]]:
        """Return ``(name, workspace)`` for every known profile, sorted by name."""
        profiles: dict[str, str | None] = {}
        settings = self._read(self.paths.settings_file)
        for section in settings.sections():
            name = _profile_from_section(section)
            if name:
                profiles[name] = settings[section].get(WORKSPACE_KEY) or None
        for section in self._read(self.paths.credentials_file).sections():
            profiles.setdefault(section, None)
        return sorted(profiles.items())


__all__ = [
    "API_KEY_ENV",
    "API_URL_ENV",
    "CONFIG_DIR_ENV",
    "CONFIG_FILE_ENV",
    "CREDENTIALS_FILE_ENV",
    "DEFAULT_CACHE_TTL",
    "DEFAULT_FORMAT",
    "DEFAULT_PAGE_SIZE",
    "DEFAULT_PROFILE",
    "FORMAT_ENV",
    "LEGACY_API_KEY_ENV",
    "OUTPUT_FORMATS",
    "PROFILE_ENV",
    "SETTABLE_KEYS",
    "TEAM_ENV",
    "ConfigPaths",
    "Profile",
    "ProfileStore",
    "parse_duration",
    "resolve_paths",
    "resolve_profile_name",
    "settings_section",
    "validate_profile_name",
    "validate_setting",
]
