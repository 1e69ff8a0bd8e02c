"""API key resolution and masking."""

from __future__ import annotations
import os
from collections.abc import Mapping
from .config import API_KEY_ENV, LEGACY_API_KEY_ENV, ProfileStore
from .errors import AuthenticationError


MASK_PREFIX_LENGTH = 12
_MASK_MIN_LENGTH = 2 * MASK_PREFIX_LENGTH


def mask_api_key(key: str | None) -> str:
    """Return a display-safe form of ``key``.

    At most the first 12 characters are kept; keys too short for that prefix
    to be a minority of the secret are masked entirely.
    """
    if not key or len(key) < _MASK_MIN_LENGTH:
        return "***"
    return f"{key[:MASK_PREFIX_LENGTH]}..."


def resolve_api_key(
    profile: str,
    *,
    store: ProfileStore,
    env: Mapping[str, str],
    override: str | None = None,
) -> str:
    """Return the effective API key for ``profile``.

    Precedence, highest first: ``LIRT_API_KEY``, the per-invocation
    ``override`` (the ``--api-key`` flag), the secrets file entry for the
    profile, then the legacy ``LINEAR_API_KEY`` variable.
    """
    sources = (
        lambda: env.get(API_KEY_ENV),
        lambda: override,
        lambda: store.load_api_key(profile),
        lambda: env.get(LEGACY_API_KEY_ENV),
    )
    for source in sources:
        candidate = source()
        if candidate:
            return candidate
    msg = (
        f"No API key found for profile '{profile}'. "
        f"Run 'lirt auth login --profile {profile}' to set up credentials."
    )
    raise AuthenticationError(msg)


class CredentialResolver:
    """Resolve API keys against a fixed environment and profile store."""

    def __init__(
        self, store: ProfileStore, env: Mapping[str, str] | None = None
    ) -> None:
        """Bind the resolver to a store and an environment snapshot."""
        self.store = store
        self.env = dict(os.environ if env is None else env)

    def resolve(self, profile: str, *, override: str | None = None) -> str:
        """Return the API key for ``profile`` or raise AuthenticationError."""
        return resolve_api_key(
            profile, store=self.store, env=self.env, override=override
        )


__all__ = [
    "MASK_PREFIX_LENGTH",
    "CredentialResolver",
    "mask_api_key",
    "resolve_api_key",
]
