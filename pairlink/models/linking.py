"""Linking models: the pairing session, poll statuses and terminal outcomes."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from pairlink import errors

LinkState = Literal[
    "idle",
    "creating_session",
    "awaiting_authorization",
    "linked",
    "cancelled",
    "expired",
    "failed",
]


class LinkingSession(BaseModel):
    """One in-flight linking attempt, as issued by the link service. Never mutated."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    pairing_code: str = Field(min_length=1)
    identifier: str = Field(min_length=1)
    issued_at: datetime
    expires_at: datetime
    poll_interval_hint: float | None = Field(default=None, gt=0)
    link_url: str | None = None

    @field_validator("issued_at", "expires_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @model_validator(mode="after")
    def _check_lifetime(self) -> LinkingSession:
        if self.expires_at <= self.issued_at:
            raise ValueError("expires_at must be later than issued_at")
        return self

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def seconds_remaining(self, now: datetime) -> float:
        return max(0.0, (self.expires_at - now).total_seconds())


# Poll results reported by the link service


@dataclass(frozen=True)
class Pending:
    """The user has not finished authorizing yet."""


@dataclass(frozen=True)
class Authorized:
    """The user authorized the pairing; `credential` is the issued token."""

    credential: str


@dataclass(frozen=True)
class Denied:
    """The user or the service refused the pairing."""

    reason: str | None = None


@dataclass(frozen=True)
class PairingExpired:
    """The service no longer knows the pairing."""


PairingStatus = Pending | Authorized | Denied | PairingExpired


# Terminal outcomes, exactly one per attempt


@dataclass(frozen=True)
class Linked:
    credential: str

    state = "linked"

    def unwrap(self) -> str:
        return self.credential


@dataclass(frozen=True)
class Cancelled:
    state = "cancelled"

    def unwrap(self) -> str:
        raise errors.CancelledError()


@dataclass(frozen=True)
class Expired:
    state = "expired"

    @property
    def reason(self) -> str:
        return errors.ExpiredError.user_message

    def unwrap(self) -> str:
        raise errors.ExpiredError()


@dataclass(frozen=True)
class Failed:
    error: Exception

    state = "failed"

    @property
    def reason(self) -> str:
        """Message to show the user."""
        if isinstance(self.error, errors.LinkError):
            return self.error.reason
        return errors.LinkError.user_message

    def unwrap(self) -> str:
        raise self.error


Outcome = Linked | Cancelled | Expired | Failed
