"""
Pytest configuration and fixtures for pairlink tests.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from pairlink.models import LinkedAccount, LinkingSession, Pending

BASE_TIME = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


def make_session(
    code: str = "ABCD",
    identifier: str = "xyz",
    lifetime: float = 600,
    poll_interval_hint: float | None = 0.001,
    issued_at: datetime | None = None,
    link_url: str | None = "https://link.example.test/link",
) -> LinkingSession:
    """Build a LinkingSession issued now (or at `issued_at`)."""
    issued = issued_at or datetime.now(UTC)
    return LinkingSession(
        pairing_code=code,
        identifier=identifier,
        issued_at=issued,
        expires_at=issued + timedelta(seconds=lifetime),
        poll_interval_hint=poll_interval_hint,
        link_url=link_url,
    )


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: datetime = BASE_TIME):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float):
        self.now += timedelta(seconds=seconds)


class ScriptedLinkService:
    """
    In-memory RemoteLinkService that replays scripted results.

    `statuses` items are returned (or raised, if exceptions) by successive
    check_status calls; once exhausted every check reports Pending. Setting
    `hold_checks` makes each check wait for `release` before answering.
    """

    def __init__(self, session=None, statuses=(), create_error=None):
        self.sessions = [session] if isinstance(session, LinkingSession) else list(session or [])
        self.statuses = list(statuses)
        self.create_error = create_error
        self.create_calls = 0
        self.check_calls: list[str] = []
        self.hold_checks = False
        self.hold_create = False
        self.create_started = asyncio.Event()
        self.check_started = asyncio.Event()
        self.release = asyncio.Event()
        self.in_flight = 0
        self.max_in_flight = 0
        self.on_check = None
        self.account = LinkedAccount(id=1, username="listener", title="Listener")
        self.account_error = None

    async def _enter(self, hold: bool, started: asyncio.Event):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        started.set()
        try:
            if hold:
                await self.release.wait()
        finally:
            self.in_flight -= 1

    async def create_pairing(self) -> LinkingSession:
        self.create_calls += 1
        await self._enter(self.hold_create, self.create_started)
        if self.create_error is not None:
            raise self.create_error
        if len(self.sessions) > 1:
            return self.sessions.pop(0)
        return self.sessions[0] if self.sessions else make_session()

    async def check_status(self, identifier: str):
        self.check_calls.append(identifier)
        await self._enter(self.hold_checks, self.check_started)
        if self.on_check is not None:
            self.on_check(len(self.check_calls))
        item = self.statuses.pop(0) if self.statuses else Pending()
        if isinstance(item, Exception):
            raise item
        return item

    async def fetch_account(self, token: str) -> LinkedAccount:
        if self.account_error is not None:
            raise self.account_error
        return self.account


class Recorder:
    """Collects presenter notifications in delivery order."""

    def __init__(self):
        self.events: list[tuple[str, object]] = []

    def on_ready(self, code: str):
        self.events.append(("ready", code))

    def on_terminal(self, outcome):
        self.events.append(("terminal", outcome))

    @property
    def terminals(self) -> list:
        return [value for kind, value in self.events if kind == "terminal"]

    @property
    def ready_codes(self) -> list:
        return [value for kind, value in self.events if kind == "ready"]


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def home(tmp_path, monkeypatch):
    """Point Path.home() at a temporary directory."""
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.delenv("PAIRLINK_SERVICE_URL", raising=False)
    return tmp_path
