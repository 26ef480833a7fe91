"""Tests for PinLinkService with mocked HTTP."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from pairlink import errors
from pairlink.models import Authorized, Denied, PairingExpired, Pending
from pairlink.services.link_service import PinLinkService

pytestmark = pytest.mark.asyncio(loop_scope="session")

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


def make_service() -> PinLinkService:
    return PinLinkService(
        "client-123",
        base_url="https://link.example.test/",
        link_page_url="https://link.example.test/link",
        clock=lambda: NOW,
    )


def mock_response(status_code: int = 200, payload=None) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    if isinstance(payload, Exception):
        response.json.side_effect = payload
    else:
        response.json.return_value = payload
    return response


def patched_client(mock_client_cls, response=None, side_effect=None) -> AsyncMock:
    mock_client = AsyncMock()
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=None)
    mock_client.request = AsyncMock(return_value=response, side_effect=side_effect)
    mock_client_cls.return_value = mock_client
    return mock_client


async def test_create_pairing_success():
    """create_pairing POSTs to the pins endpoint and builds a session."""
    service = make_service()
    payload = {
        "id": 8421,
        "code": "ABCD",
        "createdAt": "2026-01-01T12:00:00Z",
        "expiresAt": "2026-01-01T12:15:00.000Z",
        "interval": 2,
    }

    with patch("httpx.AsyncClient") as mock_client_cls:
        mock_client = patched_client(mock_client_cls, mock_response(201, payload))
        session = await service.create_pairing()

    assert session.pairing_code == "ABCD"
    assert session.identifier == "8421"
    assert session.issued_at == NOW
    assert session.expires_at == NOW + timedelta(minutes=15)
    assert session.poll_interval_hint == 2
    assert session.link_url == "https://link.example.test/link"

    call = mock_client.request.call_args
    assert call.args == ("POST", "https://link.example.test/api/v2/pins")
    headers = call.kwargs["headers"]
    assert headers["X-Plex-Client-Identifier"] == "client-123"
    assert headers["Accept"] == "application/json"
    assert "X-Plex-Token" not in headers


async def test_create_pairing_uses_expires_in():
    service = make_service()
    payload = {"id": 1, "code": "WXYZ", "expiresIn": 1800}

    with patch("httpx.AsyncClient") as mock_client_cls:
        patched_client(mock_client_cls, mock_response(200, payload))
        session = await service.create_pairing()

    assert session.issued_at == NOW
    assert session.expires_at == NOW + timedelta(seconds=1800)
    assert session.poll_interval_hint is None


async def test_create_pairing_invalid_record():
    """A record missing its code is a ServiceError, not a crash."""
    service = make_service()

    with patch("httpx.AsyncClient") as mock_client_cls:
        patched_client(mock_client_cls, mock_response(201, {"id": 1, "expiresIn": 600}))
        with pytest.raises(errors.ServiceError):
            await service.create_pairing()


async def test_create_pairing_bad_json():
    service = make_service()

    with patch("httpx.AsyncClient") as mock_client_cls:
        patched_client(mock_client_cls, mock_response(201, ValueError("not json")))
        with pytest.raises(errors.ServiceError):
            await service.create_pairing()


async def test_create_pairing_server_error_is_transient():
    service = make_service()

    with patch("httpx.AsyncClient") as mock_client_cls:
        patched_client(mock_client_cls, mock_response(503, {}))
        with pytest.raises(errors.ServiceError) as exc_info:
            await service.create_pairing()

    assert exc_info.value.transient is True
    assert exc_info.value.status_code == 503


async def test_network_failure_becomes_network_error():
    service = make_service()

    with patch("httpx.AsyncClient") as mock_client_cls:
        patched_client(mock_client_cls, side_effect=httpx.ConnectError("Connection refused"))
        with pytest.raises(errors.NetworkError):
            await service.create_pairing()


async def test_timeout_becomes_network_error():
    service = make_service()

    with patch("httpx.AsyncClient") as mock_client_cls:
        patched_client(mock_client_cls, side_effect=httpx.ReadTimeout("slow"))
        with pytest.raises(errors.NetworkError):
            await service.check_status("8421")


async def test_check_status_pending():
    service = make_service()

    with patch("httpx.AsyncClient") as mock_client_cls:
        mock_client = patched_client(mock_client_cls, mock_response(200, {"id": 8421, "authToken": None}))
        status = await service.check_status("8421")

    assert status == Pending()
    assert mock_client.request.call_args.args == ("GET", "https://link.example.test/api/v2/pins/8421")


async def test_check_status_authorized():
    service = make_service()

    with patch("httpx.AsyncClient") as mock_client_cls:
        patched_client(mock_client_cls, mock_response(200, {"id": 8421, "authToken": "secret"}))
        status = await service.check_status("8421")

    assert status == Authorized(credential="secret")


async def test_check_status_unknown_pin_is_expired():
    service = make_service()

    with patch("httpx.AsyncClient") as mock_client_cls:
        patched_client(mock_client_cls, mock_response(404, None))
        status = await service.check_status("8421")

    assert status == PairingExpired()


async def test_check_status_forbidden_is_denied():
    service = make_service()

    with patch("httpx.AsyncClient") as mock_client_cls:
        patched_client(mock_client_cls, mock_response(403, None))
        status = await service.check_status("8421")

    assert isinstance(status, Denied)


async def test_check_status_rate_limited_is_transient():
    service = make_service()

    with patch("httpx.AsyncClient") as mock_client_cls:
        patched_client(mock_client_cls, mock_response(429, None))
        with pytest.raises(errors.ServiceError) as exc_info:
            await service.check_status("8421")

    assert errors.is_transient(exc_info.value)


async def test_check_status_bad_request_is_terminal():
    service = make_service()

    with patch("httpx.AsyncClient") as mock_client_cls:
        patched_client(mock_client_cls, mock_response(400, None))
        with pytest.raises(errors.ServiceError) as exc_info:
            await service.check_status("8421")

    assert not errors.is_transient(exc_info.value)


async def test_fetch_account_sends_token():
    service = make_service()
    payload = {"id": 7, "uuid": "abc", "username": "listener", "email": "l@example.com", "title": "Listener"}

    with patch("httpx.AsyncClient") as mock_client_cls:
        mock_client = patched_client(mock_client_cls, mock_response(200, payload))
        account = await service.fetch_account("secret")

    assert account.username == "listener"
    assert mock_client.request.call_args.kwargs["headers"]["X-Plex-Token"] == "secret"


async def test_fetch_account_unauthorized():
    service = make_service()

    with patch("httpx.AsyncClient") as mock_client_cls:
        patched_client(mock_client_cls, mock_response(401, None))
        with pytest.raises(errors.ServiceError) as exc_info:
            await service.fetch_account("stale")

    assert exc_info.value.denied is True
