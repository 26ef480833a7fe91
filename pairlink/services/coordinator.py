"""
Device-code linking coordinator.

Requests a pairing code from the link service, hands it to the presenter,
then polls until the user finishes authorizing in a browser. An attempt
ends in exactly one terminal outcome: Linked, Cancelled, Expired or Failed.

Each start() runs in its own asyncio task. Cancellation is cooperative:
it is observed before every service call and interrupts the wait between
polls, but never aborts a request that is already in flight.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import webbrowser
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from pairlink import errors
from pairlink.config import settings
from pairlink.models.linking import (
    Authorized,
    Cancelled,
    Denied,
    Expired,
    Failed,
    Linked,
    LinkingSession,
    LinkState,
    Outcome,
    PairingExpired,
)
from pairlink.services.link_service import RemoteLinkService

logger = logging.getLogger(__name__)

ReadyCallback = Callable[[str], None]
TerminalCallback = Callable[[Outcome], None]

_KEEP = object()


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class CoordinatorSnapshot:
    """Point-in-time copy of coordinator state, for diagnostics."""

    state: LinkState
    session: LinkingSession | None
    consecutive_failures: int
    attempt: int


@dataclass
class _Attempt:
    number: int
    on_ready: ReadyCallback | None
    on_terminal: TerminalCallback | None
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    outcome: Outcome | None = None

    @property
    def cancel_requested(self) -> bool:
        return self.cancel_event.is_set()


class LinkingCoordinator:
    """Drives one device-code linking attempt at a time.

    Created once per UI surface and reused for retries. Only the current
    attempt's task writes coordinator state.

    Callers must stop it with aclose() or `async with`. A running attempt
    task holds a reference to the coordinator, so dropping the last outside
    reference does not stop polling; the attempt runs until it finishes or
    the pairing expires.
    """

    def __init__(
        self,
        service: RemoteLinkService,
        *,
        poll_interval: float | None = None,
        max_consecutive_failures: int | None = None,
        clock: Callable[[], datetime] | None = None,
        open_url: Callable[[str], object] | None = None,
        link_page_url: str | None = None,
    ):
        """
        Initialize coordinator.

        Args:
            service: Link service used for pairing and status checks
            poll_interval: Seconds between polls when the session carries no hint
            max_consecutive_failures: Transient failures tolerated in a row
            clock: Returns the current aware datetime (tests inject a fake)
            open_url: Launches a browser; defaults to webbrowser.open
            link_page_url: Fallback link page when the session has none
        """
        self._service = service
        self._poll_interval = poll_interval if poll_interval is not None else settings.POLL_INTERVAL_SECONDS
        self._max_failures = (
            max_consecutive_failures
            if max_consecutive_failures is not None
            else settings.MAX_CONSECUTIVE_FAILURES
        )
        if self._poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        if self._max_failures < 1:
            raise ValueError("max_consecutive_failures must be at least 1")

        self._clock = clock or _utcnow
        self._open_url = open_url or webbrowser.open
        self._link_page_url = link_page_url or settings.LINK_PAGE_URL

        self._state: LinkState = "idle"
        self._session: LinkingSession | None = None
        self._failures = 0
        self._attempts = 0
        self._attempt: _Attempt | None = None
        self._task: asyncio.Task[Outcome] | None = None
        self._closed = False

    # -- read-only views --------------------------------------------------

    @property
    def state(self) -> LinkState:
        return self._state

    @property
    def session(self) -> LinkingSession | None:
        return self._session

    def snapshot(self) -> CoordinatorSnapshot:
        return CoordinatorSnapshot(
            state=self._state,
            session=self._session,
            consecutive_failures=self._failures,
            attempt=self._attempts,
        )

    # -- presenter entry points ---------------------------------------------

    def start(
        self,
        on_ready: ReadyCallback | None = None,
        on_terminal: TerminalCallback | None = None,
    ) -> asyncio.Task[Outcome]:
        """
        Begin a new linking attempt and return immediately.

        Any unfinished attempt is cancelled first; the new attempt does not
        contact the service until the old task has stopped.

        Returns:
            The attempt's task, resolving to its Outcome
        """
        if self._closed:
            raise RuntimeError("LinkingCoordinator is closed")

        previous = self._task
        if self._attempt is not None and self._attempt.outcome is None:
            logger.info("coordinator: attempt %d superseded", self._attempt.number)
            self._attempt.cancel_event.set()

        self._attempts += 1
        attempt = _Attempt(self._attempts, on_ready, on_terminal)
        self._attempt = attempt
        self._task = asyncio.get_running_loop().create_task(
            self._run(attempt, previous),
            name=f"pairlink-attempt-{attempt.number}",
        )
        return self._task

    def cancel(self) -> bool:
        """
        Request cancellation of the current attempt.

        Returns:
            True if an unfinished attempt was asked to stop, False otherwise
        """
        attempt = self._attempt
        if attempt is None or attempt.outcome is not None or attempt.cancel_requested:
            return False
        logger.info("coordinator: cancel requested for attempt %d", attempt.number)
        attempt.cancel_event.set()
        return True

    def open_link_page(self) -> bool:
        """Open the page where the user enters the pairing code."""
        if self._state != "awaiting_authorization" or self._session is None:
            logger.warning("coordinator: open_link_page ignored in state %s", self._state)
            return False
        url = self._session.link_url or self._link_page_url
        logger.info("coordinator: opening %s", url)
        self._open_url(url)
        return True

    async def link(self, on_ready: ReadyCallback | None = None) -> str:
        """
        Run one attempt to completion.

        Returns:
            The credential on success

        Raises:
            CancelledError, ExpiredError, or the error the attempt failed with
        """
        outcome = await self.start(on_ready=on_ready)
        return outcome.unwrap()

    async def aclose(self) -> None:
        """Cancel any in-flight attempt and wait for its loop to stop."""
        self._closed = True
        self.cancel()
        if self._task is not None and not self._task.done():
            await asyncio.wait([self._task])

    async def __aenter__(self) -> LinkingCoordinator:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # -- attempt task ---------------------------------------------------------

    async def _run(self, attempt: _Attempt, previous: asyncio.Task[Outcome] | None) -> Outcome:
        try:
            if previous is not None and not previous.done():
                logger.debug("coordinator: attempt %d waiting for previous loop", attempt.number)
                await asyncio.wait([previous])
            outcome = await self._drive(attempt)
        except asyncio.CancelledError:
            # Task cancelled from outside, e.g. event loop shutdown
            self._finish(attempt, Cancelled())
            raise
        return self._finish(attempt, outcome)

    async def _drive(self, attempt: _Attempt) -> Outcome:
        self._enter(attempt, "idle", session=None)
        if attempt.cancel_requested:
            return Cancelled()

        self._enter(attempt, "creating_session")
        try:
            session = await self._service.create_pairing()
        except errors.LinkError as exc:
            if attempt.cancel_requested:
                return Cancelled()
            logger.warning("coordinator: creating pairing failed: %s", exc)
            return Failed(exc)
        except Exception as exc:
            if attempt.cancel_requested:
                return Cancelled()
            logger.exception("coordinator: unexpected error creating pairing")
            return Failed(exc)

        if attempt.cancel_requested:
            return Cancelled()
        if session.is_expired(self._clock()):
            logger.warning("coordinator: pairing %s issued already expired", session.identifier)
            return Expired()

        self._enter(attempt, "awaiting_authorization", session=session)
        self._notify(attempt.on_ready, session.pairing_code, "ready")
        return await self._poll(attempt, session)

    async def _poll(self, attempt: _Attempt, session: LinkingSession) -> Outcome:
        failures = 0
        while True:
            if attempt.cancel_requested:
                return Cancelled()
            if session.is_expired(self._clock()):
                logger.info("coordinator: pairing %s expired locally", session.identifier)
                return Expired()

            try:
                status = await self._service.check_status(session.identifier)
            except errors.ExpiredError:
                if attempt.cancel_requested:
                    return Cancelled()
                return Expired()
            except errors.LinkError as exc:
                if attempt.cancel_requested:
                    return Cancelled()
                if not errors.is_transient(exc):
                    logger.warning("coordinator: pairing %s rejected: %s", session.identifier, exc)
                    return Failed(exc)
                failures += 1
                self._set_failures(attempt, failures)
                if failures >= self._max_failures:
                    logger.warning("coordinator: giving up after %d consecutive failures: %s", failures, exc)
                    return Failed(exc)
                logger.info("coordinator: poll failed (%d/%d), retrying: %s", failures, self._max_failures, exc)
            except Exception as exc:
                if attempt.cancel_requested:
                    return Cancelled()
                logger.exception("coordinator: unexpected error polling %s", session.identifier)
                return Failed(exc)
            else:
                if attempt.cancel_requested:
                    return Cancelled()
                failures = 0
                self._set_failures(attempt, failures)
                if isinstance(status, Authorized):
                    return Linked(status.credential)
                if isinstance(status, Denied):
                    return Failed(errors.ServiceError(status.reason or "Authorization was denied.", denied=True))
                if isinstance(status, PairingExpired):
                    return Expired()

            if attempt.cancel_requested:
                return Cancelled()
            remaining = session.seconds_remaining(self._clock())
            interval = session.poll_interval_hint or self._poll_interval
            if remaining <= interval:
                # The pairing lapses before the next poll is due
                await self._pause(attempt, remaining)
                if attempt.cancel_requested:
                    return Cancelled()
                logger.info("coordinator: pairing %s expired locally", session.identifier)
                return Expired()
            await self._pause(attempt, interval)

    async def _pause(self, attempt: _Attempt, delay: float) -> None:
        """Sleep between polls; returns early if the attempt is cancelled."""
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(attempt.cancel_event.wait(), timeout=delay)

    # -- state and notifications ---------------------------------------------

    def _enter(self, attempt: _Attempt, state: LinkState, session: object = _KEEP) -> None:
        if attempt is not self._attempt:
            return
        if session is not _KEEP:
            self._session = session  # type: ignore[assignment]
        if state == "idle":
            self._failures = 0
        logger.debug("coordinator: attempt %d %s -> %s", attempt.number, self._state, state)
        self._state = state

    def _set_failures(self, attempt: _Attempt, failures: int) -> None:
        if attempt is self._attempt:
            self._failures = failures

    def _finish(self, attempt: _Attempt, outcome: Outcome) -> Outcome:
        if attempt.outcome is not None:
            return attempt.outcome
        attempt.outcome = outcome
        self._enter(attempt, outcome.state)
        if isinstance(outcome, Failed):
            logger.warning("coordinator: attempt %d failed: %s", attempt.number, outcome.reason)
        else:
            logger.info("coordinator: attempt %d finished: %s", attempt.number, outcome.state)
        self._notify(attempt.on_terminal, outcome, "terminal")
        return outcome

    @staticmethod
    def _notify(callback: Callable | None, value: object, kind: str) -> None:
        if callback is None:
            return
        try:
            callback(value)
        except Exception:
            logger.exception("coordinator: %s callback raised", kind)
