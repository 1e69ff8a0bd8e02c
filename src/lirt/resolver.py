"""Map human shorthand identifiers to internal identifiers."""

from __future__ import annotations
import logging
import re
from collections.abc import Callable, Iterable, Mapping
from enum import StrEnum
from typing import Any
from .errors import NotFoundError, PartialAPIError, ValidationError
from .pager import QueryClient
from .queries import RESOLVE_ISSUE_QUERY


logger = logging.getLogger(__name__)

_SHORTHAND_RE = re.compile(r"^(?P<team>[A-Za-z][A-Za-z0-9]*)-(?P<number>\d+)$")


class IdentifierKind(StrEnum):
    """How a caller wants an identifier token to be interpreted."""

    AUTO = "auto"
    INTERNAL = "internal"
    SHORTHAND = "shorthand"


def looks_like_shorthand(token: str) -> bool:
    """Return whether ``token`` has the ``TEAM-123`` shape."""
    return bool(_SHORTHAND_RE.match(token.strip()))


class IdentifierResolver:
    """Resolve issue and team tokens against the remote API.

    In ``AUTO`` mode only tokens matching the ``TEAM-123`` grammar trigger a
    lookup; any other token is taken to be an internal id already. Callers
    that know what they hold should pass the kind explicitly.
    """

    def __init__(
        self,
        client: QueryClient,
        *,
        teams: Callable[[], Iterable[Mapping[str, Any]]] | None = None,
    ) -> None:
        """Create a resolver using ``client`` and an optional team loader."""
        self.client = client
        self._teams = teams

    def resolve(self, token: str, kind: IdentifierKind = IdentifierKind.AUTO) -> str:
        """Return the internal id for an issue ``token``."""
        token = token.strip()
        if not token:
            raise ValidationError("Identifier cannot be empty")

        if kind is IdentifierKind.INTERNAL:
            return token
        match = _SHORTHAND_RE.match(token)
        if match is None:
            if kind is IdentifierKind.SHORTHAND:
                raise ValidationError(
                    f"'{token}' is not a shorthand identifier (expected e.g. ENG-123)"
                )
            return token

        variables = {
            "teamKey": match.group("team").upper(),
            "number": int(match.group("number")),
        }
        try:
            result = self.client.query(RESOLVE_ISSUE_QUERY, variables)
        except PartialAPIError as exc:
            if exc.not_found:
                raise NotFoundError(f"Issue not found: {token}") from exc
            raise
        connection = result.data.get("issues") or {}
        nodes = connection.get("nodes") or []
        if not nodes or not nodes[0].get("id"):
            raise NotFoundError(f"Issue not found: {token}")
        resolved = str(nodes[0]["id"])
        logger.debug("Resolved %s to %s", token, resolved)
        return resolved

    def resolve_team(self, token: str) -> str:
        """Return the internal id of the team with key or id ``token``."""
        token = token.strip()
        if not token:
            raise ValidationError("Team cannot be empty")
        if self._teams is None:
            raise RuntimeError("No team loader configured")
        for team in self._teams():
            if str(team.get("key", "")).lower() == token.lower():
                return str(team["id"])
            if str(team.get("id", "")) == token:
                return token
        raise NotFoundError(f"Team not found: {token}")


__all__ = ["IdentifierKind", "IdentifierResolver", "looks_like_shorthand"]
