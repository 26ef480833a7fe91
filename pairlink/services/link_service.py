"""HTTP client for a PIN-based remote link service (plex.tv `/api/v2/pins`)."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol

import httpx
from pydantic import ValidationError

from pairlink import errors
from pairlink.config import settings
from pairlink.models.account import LinkedAccount
from pairlink.models.linking import (
    Authorized,
    Denied,
    LinkingSession,
    PairingExpired,
    PairingStatus,
    Pending,
)

logger = logging.getLogger(__name__)

PIN_ENDPOINT = "/api/v2/pins"
USER_ENDPOINT = "/api/v2/user"


class RemoteLinkService(Protocol):
    """What the coordinator needs from a link service. No retries in here."""

    async def create_pairing(self) -> LinkingSession: ...

    async def check_status(self, identifier: str) -> PairingStatus: ...


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO 8601 timestamp, with or without fractional seconds."""
    if not value:
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, UTC)
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        logger.warning("link_service: unparseable timestamp %r", value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _status_error(response: httpx.Response, what: str) -> errors.ServiceError:
    code = response.status_code
    if code == 429 or code >= 500:
        return errors.ServiceError(f"{what} failed: HTTP {code}", status_code=code, transient=True)
    if code in (401, 403):
        return errors.ServiceError(
            "Authorization failed. Please link your account again.",
            status_code=code,
            denied=True,
        )
    return errors.ServiceError(f"{what} failed: HTTP {code}", status_code=code)


class PinLinkService:
    """HTTP client for a PIN-based link service.

    Creates short pairing PINs and reports whether the user has authorized
    them on the service's link page. Every call opens its own
    httpx.AsyncClient; transport failures become NetworkError and HTTP
    rejections become ServiceError.
    """

    def __init__(
        self,
        client_identifier: str,
        base_url: str | None = None,
        link_page_url: str | None = None,
        timeout: float | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._client_identifier = client_identifier
        self._base_url = (base_url or settings.SERVICE_URL).rstrip("/")
        self._link_page_url = link_page_url or settings.LINK_PAGE_URL
        self._timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT_SECONDS
        self._clock = clock or _utcnow

    def _headers(self, token: str | None = None) -> dict[str, str]:
        """Headers sent with every request."""
        headers = {
            "X-Plex-Client-Identifier": self._client_identifier,
            "X-Plex-Product": settings.PRODUCT_NAME,
            "X-Plex-Version": settings.PRODUCT_VERSION,
            "X-Plex-Platform": settings.PLATFORM,
            "X-Plex-Platform-Version": settings.PLATFORM_VERSION,
            "X-Plex-Device-Name": settings.DEVICE_NAME,
            "Accept": "application/json",
        }
        if token:
            headers["X-Plex-Token"] = token
        return headers

    async def _request(self, method: str, path: str, token: str | None = None) -> httpx.Response:
        url = f"{self._base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                return await client.request(method, url, headers=self._headers(token))
        except httpx.TimeoutException as exc:
            raise errors.NetworkError(f"Request to {path} timed out") from exc
        except httpx.TransportError as exc:
            raise errors.NetworkError(f"Network error: {exc}") from exc

    @staticmethod
    def _json(response: httpx.Response, what: str) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as exc:
            raise errors.ServiceError(f"Invalid response from link service ({what})") from exc
        if not isinstance(data, dict):
            raise errors.ServiceError(f"Invalid response from link service ({what})")
        return data

    async def create_pairing(self) -> LinkingSession:
        """
        Request a new pairing PIN.

        Returns:
            LinkingSession holding the code to show the user

        Raises:
            NetworkError: If the service is unreachable
            ServiceError: If the service rejects the request or returns a bad record
        """
        response = await self._request("POST", PIN_ENDPOINT)
        if response.status_code not in (200, 201):
            raise _status_error(response, "Creating pairing")
        data = self._json(response, "pairing")

        issued_at = _parse_timestamp(data.get("createdAt")) or self._clock()
        expires_at = _parse_timestamp(data.get("expiresAt"))
        if expires_at is None:
            ttl = data.get("expiresIn") or settings.PAIRING_TTL_SECONDS
            try:
                expires_at = issued_at + timedelta(seconds=float(ttl))
            except (TypeError, ValueError) as exc:
                raise errors.ServiceError(f"Invalid pairing lifetime: {ttl!r}") from exc

        try:
            session = LinkingSession(
                pairing_code=str(data.get("code") or ""),
                identifier=str(data.get("id") or ""),
                issued_at=issued_at,
                expires_at=expires_at,
                poll_interval_hint=data.get("interval"),
                link_url=self._link_page_url,
            )
        except ValidationError as exc:
            raise errors.ServiceError(f"Invalid pairing record: {exc.error_count()} problem(s)") from exc

        logger.info("link_service: created pairing %s, expires %s", session.identifier, session.expires_at)
        return session

    async def check_status(self, identifier: str) -> PairingStatus:
        """
        Report whether the pairing has been authorized.

        Args:
            identifier: The session identifier returned by create_pairing()

        Returns:
            Pending, Authorized, Denied or PairingExpired
        """
        response = await self._request("GET", f"{PIN_ENDPOINT}/{identifier}")
        if response.status_code in (404, 410):
            return PairingExpired()
        if response.status_code in (401, 403):
            return Denied(f"Pairing refused (HTTP {response.status_code})")
        if response.status_code != 200:
            raise _status_error(response, "Checking pairing")

        data = self._json(response, "pairing status")
        token = data.get("authToken")
        if token:
            return Authorized(credential=str(token))
        return Pending()

    async def fetch_account(self, token: str) -> LinkedAccount:
        """Fetch the account a credential belongs to."""
        response = await self._request("GET", USER_ENDPOINT, token=token)
        if response.status_code != 200:
            raise _status_error(response, "Fetching account")
        data = self._json(response, "account")
        try:
            return LinkedAccount.model_validate(data)
        except ValidationError as exc:
            raise errors.ServiceError("Invalid account record from link service") from exc
