"""Runtime state shared across CLI commands."""

from __future__ import annotations
from dataclasses import dataclass, field
from rich.console import Console
from lirt.cache import CacheStore
from lirt.config import DEFAULT_FORMAT, MAX_PAGE_SIZE, Profile, ProfileStore
from lirt.credentials import CredentialResolver
from lirt.logging_config import SecretRedactingFilter
from lirt.pager import Pager
from lirt.transport import LINEAR_API_ENDPOINT, GraphQLClient


@dataclass(slots=True)
class CLIContext:
    """Object stored on :class:`typer.Context` for command access.

    One instance is built per invocation from the flags, the environment
    snapshot and the selected profile. The API client is created lazily so
    commands that never reach the network never need a credential.
    """

    env: dict[str, str]
    store: ProfileStore
    profile: Profile
    cache: CacheStore
    console: Console
    endpoint: str = LINEAR_API_ENDPOINT
    team: str | None = None
    output_format: str = DEFAULT_FORMAT
    api_key_override: str | None = None
    no_cache: bool = False
    quiet: bool = False
    err_console: Console = field(default_factory=lambda: Console(stderr=True))
    redactor: SecretRedactingFilter = field(default_factory=SecretRedactingFilter)
    _client: GraphQLClient | None = field(default=None, init=False, repr=False)

    @property
    def profile_name(self) -> str:
        """Return the name of the active profile."""
        return self.profile.name

    @property
    def page_size(self) -> int:
        """Return the profile page size clamped to the accepted range."""
        return max(1, min(self.profile.page_size, MAX_PAGE_SIZE))

    def api_key(self) -> str:
        """Resolve the API key and register it for log redaction."""
        resolver = CredentialResolver(self.store, self.env)
        key = resolver.resolve(self.profile_name, override=self.api_key_override)
        self.redactor.register(key)
        return key

    def client_for(self, api_key: str) -> GraphQLClient:
        """Return a new client for ``api_key`` bound to this endpoint."""
        self.redactor.register(api_key)
        return GraphQLClient(api_key, endpoint=self.endpoint)

    def require_client(self) -> GraphQLClient:
        """Return the shared client, creating it on first use."""
        if self._client is None:
            self._client = self.client_for(self.api_key())
        return self._client

    def pager(self) -> Pager:
        """Return a pager using the shared client and profile page size."""
        return Pager(self.require_client(), page_size=self.page_size)

    def info(self, message: str) -> None:
        """Print a status message on stderr unless ``--quiet`` was given."""
        if not self.quiet:
            self.err_console.print(message, soft_wrap=True)

    def close(self) -> None:
        """Release the HTTP client if one was created."""
        if self._client is not None:
            self._client.close()
            self._client = None


__all__ = ["CLIContext"]
