"""Account linking flow for the pairlink CLI."""
from __future__ import annotations

import asyncio
import sys
from collections.abc import Callable
from datetime import UTC, datetime
from typing import TextIO

from pairlink import errors
from pairlink.models import Cancelled, Linked, Outcome
from pairlink.services import LinkingCoordinator, PinLinkService
from pairlink_cli.config import Config


class TerminalPresenter:
    """Shows a linking attempt on the terminal."""

    def __init__(self, coordinator: LinkingCoordinator, open_browser: bool = True, out: TextIO | None = None):
        self.coordinator = coordinator
        self.open_browser = open_browser
        self.out = out or sys.stdout
        self.outcome: Outcome | None = None

    def _print(self, text: str = ""):
        print(text, file=self.out, flush=True)

    def on_ready(self, pairing_code: str):
        self._print()
        self._print(f"Pairing code: {pairing_code}")
        session = self.coordinator.session
        if session and session.link_url:
            self._print(f"Enter it at:  {session.link_url}")
        if self.open_browser:
            self.coordinator.open_link_page()
        self._print("Waiting for authorization... (Ctrl-C to cancel)")

    def on_terminal(self, outcome: Outcome):
        self.outcome = outcome
        if isinstance(outcome, Linked):
            self._print("Authorized.")
        elif isinstance(outcome, Cancelled):
            # Nothing to report
            return
        else:
            self._print(f"Linking failed: {outcome.reason}")


async def _confirm_retry(prompt: Callable[[str], str]) -> bool:
    try:
        answer = await asyncio.to_thread(prompt, "Try again? [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


async def _save_credential(config: Config, service: PinLinkService, credential: str, out: TextIO):
    config.token = credential
    config.linked_at = datetime.now(UTC).isoformat()

    try:
        account = await service.fetch_account(credential)
    except errors.LinkError as e:
        print(f"Linked, but could not fetch account details: {e.reason}", file=out)
        config.username = None
    else:
        config.username = account.username
        print(f"Linked as {account.display_name}", file=out)

    print(f"Credential saved to {config.config_file}", file=out)


async def link_account(
    config: Config,
    service: PinLinkService | None = None,
    *,
    open_browser: bool = True,
    interactive: bool | None = None,
    prompt: Callable[[str], str] = input,
    out: TextIO | None = None,
) -> bool:
    """
    Link an account with the device-code flow.

    Offers a retry after failure or expiry when running interactively.

    Returns True if an account was linked, False otherwise.
    """
    out = out or sys.stdout
    if service is None:
        service = PinLinkService(config.client_identifier, base_url=config.service_url)
    if interactive is None:
        interactive = sys.stdin.isatty()

    print(f"Linking with {config.service_url}...", file=out)
    async with LinkingCoordinator(service) as coordinator:
        presenter = TerminalPresenter(coordinator, open_browser=open_browser, out=out)
        while True:
            attempt = coordinator.start(presenter.on_ready, presenter.on_terminal)
            # Ctrl-C cancels this coroutine, not the attempt; aclose() stops the attempt
            outcome = await asyncio.shield(attempt)

            if isinstance(outcome, Linked):
                await _save_credential(config, service, outcome.credential, out)
                return True
            if isinstance(outcome, Cancelled):
                return False
            if not interactive or not await _confirm_retry(prompt):
                return False


def run_link(config: Config, open_browser: bool = True) -> bool:
    """Run the linking flow. Returns True if successful, False otherwise."""
    try:
        return asyncio.run(link_account(config, open_browser=open_browser))
    except KeyboardInterrupt:
        print()
        return False


def unlink(config: Config, unlink_all: bool = False) -> bool:
    """
    Forget stored credentials.

    Args:
        config: Config instance
        unlink_all: If True, clear every service. If False, only the current one.

    Returns True if successful, False otherwise.
    """
    if unlink_all:
        services = config.list_services()
        if not services:
            print("No linked accounts.")
            return True

        for entry in services:
            print(f"  Unlinking {entry['url']} ({entry.get('username') or 'unknown'})")

        config.clear_all()
        print("Unlinked all accounts.")
        return True

    if not config.is_linked:
        print(f"No account linked for {config.service_url}")
        return False

    username = config.username or "unknown"
    config.clear_service()
    print(f"Unlinked {config.service_url} ({username})")
    return True


def status(config: Config) -> bool:
    """Print linked accounts. Returns True if the current service is linked."""
    services = config.list_services()
    if not services:
        print("No linked accounts.")
        return False

    for entry in services:
        marker = "*" if entry["is_current"] else " "
        since = f" since {entry['linked_at']}" if entry.get("linked_at") else ""
        print(f"{marker} {entry['url']}  {entry.get('username') or 'unknown'}{since}")

    return config.is_linked
