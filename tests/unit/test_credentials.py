"""Unit tests for credential resolution.

The aiohttp session is mocked so no request ever leaves the process; local
signing is checked by decoding the produced token's claims.
"""

import asyncio
import json
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from meetjoin.config import IssuanceConfig, SigningConfig
from meetjoin.credentials import CredentialResolver
from meetjoin.errors import (
    InvalidRoomIdentifier,
    MalformedIssuanceResponse,
    MissingParticipant,
    ResolverNotConfigured,
    SigningNotConfigured,
    UpstreamIssuanceError,
)
from meetjoin.types import ConnectionCredential, RequestContext
from tests.helpers.session_fakes import token_claims


def mock_http_session(
    status: int = 200, body: Any = None, content_type: str = "application/json"
) -> MagicMock:
    """Create a mock aiohttp session whose POST answers ``status``/``body``."""
    if body is None:
        body = {"serverUrl": "wss://y", "token": "T"}
    if isinstance(body, str):
        raw = body.encode()
    elif isinstance(body, bytes):
        raw = body
    else:
        raw = json.dumps(body).encode()

    response = MagicMock()
    response.status = status
    response.headers = {"Content-Type": content_type}
    response.read = AsyncMock(return_value=raw)

    session = MagicMock(spec=aiohttp.ClientSession)
    session.post = MagicMock()
    session.post.return_value.__aenter__ = AsyncMock(return_value=response)
    session.post.return_value.__aexit__ = AsyncMock(return_value=False)
    return session


class TestValidation:
    """Input validation happens before any network activity."""

    @pytest.mark.parametrize("room_name", ["lobby", "", "room-42"])
    async def test_invalid_room_sends_no_request(
        self, remote_config: IssuanceConfig, room_name: str
    ) -> None:
        session = mock_http_session()
        resolver = CredentialResolver(remote_config, session)

        with pytest.raises(InvalidRoomIdentifier):
            await resolver.resolve(room_name, "ana")

        session.post.assert_not_called()

    async def test_invalid_room_checked_before_participant(
        self, remote_config: IssuanceConfig
    ) -> None:
        resolver = CredentialResolver(remote_config, mock_http_session())
        with pytest.raises(InvalidRoomIdentifier):
            await resolver.resolve("lobby", "")

    async def test_missing_participant(self, remote_config: IssuanceConfig) -> None:
        session = mock_http_session()
        resolver = CredentialResolver(remote_config, session)

        with pytest.raises(MissingParticipant):
            await resolver.resolve("event-42", "")

        session.post.assert_not_called()

    async def test_missing_participant_local(self, local_config: IssuanceConfig) -> None:
        with pytest.raises(MissingParticipant):
            await CredentialResolver(local_config).resolve("event-42", "")

    async def test_nothing_configured(self) -> None:
        resolver = CredentialResolver(IssuanceConfig())
        with pytest.raises(ResolverNotConfigured):
            await resolver.resolve("event-42", "ana")


class TestRemoteIssuance:
    """Test suite for the remote issuance strategy."""

    async def test_success(self, remote_config: IssuanceConfig) -> None:
        resolver = CredentialResolver(remote_config, mock_http_session())

        credential = await resolver.resolve("event-42", "ana")

        assert credential == ConnectionCredential(
            server_url="wss://y",
            room_name="event-42",
            participant_token="T",
            participant_name="ana",
        )

    async def test_event_id_substituted_into_template(
        self, remote_config: IssuanceConfig
    ) -> None:
        session = mock_http_session()
        resolver = CredentialResolver(remote_config, session)

        await resolver.resolve("event-42", "ana")

        url = session.post.call_args.args[0]
        assert url == "https://api.example.com/events/42/token"

    async def test_forwards_caller_authentication(self, remote_config: IssuanceConfig) -> None:
        session = mock_http_session()
        resolver = CredentialResolver(remote_config, session)

        await resolver.resolve(
            "event-42", "ana", RequestContext(cookie="sid=abc", authorization="Bearer xyz")
        )

        headers = session.post.call_args.kwargs["headers"]
        assert headers == {
            "cookie": "sid=abc",
            "authorization": "Bearer xyz",
            "content-type": "application/json",
        }
        assert "data" not in session.post.call_args.kwargs
        assert "json" not in session.post.call_args.kwargs

    async def test_empty_context_forwards_empty_headers(
        self, remote_config: IssuanceConfig
    ) -> None:
        session = mock_http_session()
        await CredentialResolver(remote_config, session).resolve("event-42", "ana")

        headers = session.post.call_args.kwargs["headers"]
        assert headers["cookie"] == ""
        assert headers["authorization"] == ""

    async def test_response_participant_name_wins(self, remote_config: IssuanceConfig) -> None:
        session = mock_http_session(body={"serverUrl": "wss://y", "token": "T", "participantName": "Ana M."})
        credential = await CredentialResolver(remote_config, session).resolve("event-42", "ana")
        assert credential.participant_name == "Ana M."

    @pytest.mark.parametrize("status", [401, 403, 404, 500, 503])
    async def test_upstream_error_passes_through(
        self, remote_config: IssuanceConfig, status: int
    ) -> None:
        session = mock_http_session(
            status=status, body="not allowed for this event", content_type="text/plain"
        )
        resolver = CredentialResolver(remote_config, session)

        with pytest.raises(UpstreamIssuanceError) as exc_info:
            await resolver.resolve("event-42", "ana")

        assert exc_info.value.status == status
        assert exc_info.value.body == b"not allowed for this event"
        assert exc_info.value.content_type == "text/plain"
        assert exc_info.value.http_status == status
        session.post.assert_called_once()

    async def test_upstream_error_body_not_utf8(self, remote_config: IssuanceConfig) -> None:
        session = mock_http_session(
            status=403, body=b"acc\xe8s refus\xe9", content_type="text/html; charset=latin-1"
        )

        with pytest.raises(UpstreamIssuanceError) as exc_info:
            await CredentialResolver(remote_config, session).resolve("event-42", "ana")

        assert exc_info.value.status == 403
        assert exc_info.value.body == b"acc\xe8s refus\xe9"
        assert exc_info.value.content_type == "text/html; charset=latin-1"
        assert "403" in str(exc_info.value)

    async def test_success_body_not_utf8_is_malformed(
        self, remote_config: IssuanceConfig
    ) -> None:
        session = mock_http_session(body=b'{"serverUrl": "wss://y", "token": "\xe8"}')

        with pytest.raises(MalformedIssuanceResponse, match="UTF-8"):
            await CredentialResolver(remote_config, session).resolve("event-42", "ana")

    @pytest.mark.parametrize(
        "body",
        [
            {"serverUrl": "wss://y"},
            {"token": "T"},
            {"serverUrl": "", "token": "T"},
            {"serverUrl": "wss://y", "token": None},
            ["wss://y", "T"],
            "not json",
        ],
    )
    async def test_malformed_response(self, remote_config: IssuanceConfig, body: Any) -> None:
        resolver = CredentialResolver(remote_config, mock_http_session(body=body))
        with pytest.raises(MalformedIssuanceResponse):
            await resolver.resolve("event-42", "ana")

    async def test_timeout_maps_to_gateway_timeout(self, remote_config: IssuanceConfig) -> None:
        session = mock_http_session()
        session.post.return_value.__aenter__ = AsyncMock(side_effect=asyncio.TimeoutError())

        with pytest.raises(UpstreamIssuanceError) as exc_info:
            await CredentialResolver(remote_config, session).resolve("event-42", "ana")

        assert exc_info.value.status == 504

    async def test_connection_error_maps_to_bad_gateway(
        self, remote_config: IssuanceConfig
    ) -> None:
        session = mock_http_session()
        session.post.return_value.__aenter__ = AsyncMock(
            side_effect=aiohttp.ClientConnectionError("refused")
        )

        with pytest.raises(UpstreamIssuanceError) as exc_info:
            await CredentialResolver(remote_config, session).resolve("event-42", "ana")

        assert exc_info.value.status == 502

    async def test_remote_preferred_over_local(self, remote_config: IssuanceConfig) -> None:
        config = remote_config.model_copy(
            update={"signing": SigningConfig(url="wss://local", api_key="k", api_secret="s")}
        )
        session = mock_http_session()

        credential = await CredentialResolver(config, session).resolve("event-42", "ana")

        assert credential.server_url == "wss://y"
        session.post.assert_called_once()

    async def test_creates_own_session_when_none_injected(
        self, remote_config: IssuanceConfig
    ) -> None:
        session = mock_http_session()
        session.__aenter__ = AsyncMock(return_value=session)
        session.__aexit__ = AsyncMock(return_value=False)

        with patch("meetjoin.credentials.aiohttp.ClientSession", return_value=session) as factory:
            credential = await CredentialResolver(remote_config).resolve("event-42", "ana")

        factory.assert_called_once()
        session.__aexit__.assert_awaited_once()
        assert credential.participant_token == "T"


class TestLocalSigning:
    """Test suite for the local signing strategy."""

    async def test_signs_room_scoped_token(self, local_config: IssuanceConfig) -> None:
        credential = await CredentialResolver(local_config).resolve("event-42", "ana")

        assert credential.server_url == "wss://livekit.example.com"
        assert credential.room_name == "event-42"
        assert credential.participant_name == "ana"

        claims = token_claims(credential.participant_token)
        assert claims["iss"] == "test-key"
        assert claims["sub"] == "ana"
        assert claims["name"] == "ana"
        assert claims["exp"] - claims["nbf"] in (300, 301)

        video = claims["video"]
        assert video["room"] == "event-42"
        assert video["roomJoin"] is True
        assert video["canPublish"] is True
        assert video["canPublishData"] is True
        assert video["canSubscribe"] is True
        assert not video.get("roomAdmin")
        assert not video.get("roomCreate")

    async def test_no_network_activity(self, local_config: IssuanceConfig) -> None:
        session = mock_http_session()
        await CredentialResolver(local_config, session).resolve("event-42", "ana")
        session.post.assert_not_called()

    @pytest.mark.parametrize(
        ("signing", "missing"),
        [
            (SigningConfig(url="wss://x"), ["api_key", "api_secret"]),
            (SigningConfig(api_key="k", api_secret="s"), ["url"]),
            (SigningConfig(url="wss://x", api_key="k"), ["api_secret"]),
        ],
    )
    async def test_incomplete_signing(self, signing: SigningConfig, missing: list[str]) -> None:
        resolver = CredentialResolver(IssuanceConfig(signing=signing))

        with pytest.raises(SigningNotConfigured) as exc_info:
            await resolver.resolve("event-42", "ana")

        assert exc_info.value.missing == missing
        assert exc_info.value.http_status == 500
