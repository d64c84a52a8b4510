"""Failure taxonomy shared by the sync engine, scheduler and ranking service."""

from __future__ import annotations

import math


class StandingError(Exception):
    """Base class for every failure raised by the standing service."""


class CredentialRejected(StandingError):
    """The portal completed the login call but refused the credentials."""


class TransportError(StandingError):
    """Network failure, timeout or non-conforming portal response. Retryable."""


class ParseError(StandingError):
    """A portal payload could not be interpreted at all."""


class PermissionDenied(StandingError):
    pass


class NotFound(StandingError):
    pass


class RateLimited(StandingError):
    """Privacy toggle attempted before the cooldown elapsed."""

    def __init__(self, remaining_seconds: float) -> None:
        self.remaining_seconds = max(1, math.ceil(remaining_seconds))
        super().__init__(f"Privacy setting can be changed again in {self.remaining_seconds} seconds.")


__all__ = [
    "CredentialRejected",
    "NotFound",
    "ParseError",
    "PermissionDenied",
    "RateLimited",
    "StandingError",
    "TransportError",
]
