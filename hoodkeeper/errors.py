"""
hoodkeeper.errors — Error Taxonomy
===================================

Every failure the reconciler can hit is one of these.  Each carries the
district it concerns and the phase it happened in so callers can log and
alert without re-deriving context.

Phases: ``config`` → ``fetch`` → ``resolve`` → ``upsert`` → ``prune`` → ``leader``.
"""

from __future__ import annotations


class HoodkeeperError(Exception):
    """Base class for all reconciliation / permission errors."""

    phase: str = "unknown"

    def __init__(
        self,
        message: str,
        *,
        group_id: str | None = None,
        phase: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.group_id = group_id
        if phase is not None:
            self.phase = phase

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "type": type(self).__name__,
            "group_id": self.group_id,
            "phase": self.phase,
        }


class ConfigurationError(HoodkeeperError):
    """Required connection or credential configuration is absent."""

    phase = "config"


class UpstreamError(HoodkeeperError):
    """The roster fetch failed (network, non-2xx, malformed payload).

    Nothing has been written when this is raised, so retrying the whole
    reconciliation is always safe.
    """

    phase = "fetch"

    def __init__(
        self,
        message: str,
        *,
        group_id: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, group_id=group_id)
        self.status_code = status_code


class RosterAuthError(UpstreamError):
    """The roster API rejected our credentials (401/403)."""


class PersistenceError(HoodkeeperError):
    """An upsert or prune write failed."""

    phase = "upsert"


class PartialIdentityWarning(UserWarning):
    """A fetched roster entry had no principal id and was skipped."""
