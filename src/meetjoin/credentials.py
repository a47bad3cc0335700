"""Credential resolution for event rooms.

Exchanges a room name and participant identity for a server URL and a
signed, room-scoped access token. The strategy (remote issuance service or
local signing) is fixed by configuration; remote issuance wins when both
are configured.
"""

import asyncio
import json
import logging
from datetime import timedelta
from typing import Any, Final

import aiohttp
from livekit.api import AccessToken, VideoGrants

from meetjoin.config import IssuanceConfig, ResolverStrategy
from meetjoin.errors import (
    MalformedIssuanceResponse,
    MissingParticipant,
    ResolverNotConfigured,
    SigningNotConfigured,
    UpstreamIssuanceError,
)
from meetjoin.types import ConnectionCredential, RequestContext, event_id_from_room

logger = logging.getLogger(__name__)

LOCAL_TOKEN_TTL: Final[timedelta] = timedelta(minutes=5)


class CredentialResolver:
    """Resolves connection credentials for event rooms.

    Holds configuration only; every ``resolve`` call is independent.
    """

    def __init__(
        self,
        config: IssuanceConfig,
        http_session: aiohttp.ClientSession | None = None,
    ) -> None:
        """Initialize resolver.

        Args:
            config: Issuance configuration, decides the active strategy
            http_session: Optional shared session for remote issuance. The
                resolver does not close a session it did not create.
        """
        self.config = config
        self.strategy = config.strategy
        self._http_session = http_session

        logger.info("Credential resolver initialized", extra={"strategy": self.strategy.value})

    async def resolve(
        self,
        room_name: str,
        participant_name: str,
        request_context: RequestContext | None = None,
    ) -> ConnectionCredential:
        """Resolve a credential for ``participant_name`` in ``room_name``.

        Args:
            room_name: Room identifier with the reserved ``event-`` prefix
            participant_name: Display name of the joining participant
            request_context: Caller cookie/authorization to forward upstream

        Returns:
            ConnectionCredential for a single session attempt

        Raises:
            InvalidRoomIdentifier: Room prefix missing (no request is sent)
            MissingParticipant: Name is empty
            ResolverNotConfigured: No strategy configured
            SigningNotConfigured: Local signing lacks URL or key pair
            UpstreamIssuanceError: Issuance service answered non-2xx
            MalformedIssuanceResponse: Issuance body lacks serverUrl/token
        """
        event_id = event_id_from_room(room_name)
        if not participant_name:
            raise MissingParticipant()

        if self.strategy is ResolverStrategy.REMOTE:
            return await self._resolve_remote(
                room_name, event_id, participant_name, request_context or RequestContext()
            )
        if self.strategy is ResolverStrategy.LOCAL:
            return self._resolve_local(room_name, participant_name)
        raise ResolverNotConfigured()

    def issuance_url(self, event_id: str) -> str:
        """Issuance URL for an EventId."""
        return self.config.service.token_endpoint.replace("{id}", event_id)

    async def _resolve_remote(
        self,
        room_name: str,
        event_id: str,
        participant_name: str,
        request_context: RequestContext,
    ) -> ConnectionCredential:
        url = self.issuance_url(event_id)
        headers = {
            "cookie": request_context.cookie,
            "authorization": request_context.authorization,
            "content-type": "application/json",
        }

        logger.debug("Requesting credential from issuance service", extra={"event_id": event_id})

        if self._http_session is not None:
            status, content_type, body = await self._post(self._http_session, url, headers)
        else:
            async with aiohttp.ClientSession() as session:
                status, content_type, body = await self._post(session, url, headers)

        if not 200 <= status < 300:
            logger.warning(
                "Issuance service rejected request",
                extra={"event_id": event_id, "status": status},
            )
            raise UpstreamIssuanceError(status, body, content_type)

        data = _parse_issuance_body(body)
        return ConnectionCredential(
            server_url=data["serverUrl"],
            room_name=room_name,
            participant_token=data["token"],
            participant_name=data.get("participantName") or participant_name,
        )

    async def _post(
        self, session: aiohttp.ClientSession, url: str, headers: dict[str, str]
    ) -> tuple[int, str, bytes]:
        timeout = aiohttp.ClientTimeout(total=self.config.service.timeout_s)
        try:
            async with session.post(url, headers=headers, timeout=timeout) as response:
                content_type = response.headers.get("Content-Type", "text/plain")
                return response.status, content_type, await response.read()
        except asyncio.TimeoutError as e:
            raise UpstreamIssuanceError(504, b"Token endpoint timed out") from e
        except aiohttp.ClientError as e:
            raise UpstreamIssuanceError(502, f"Token endpoint unreachable: {e}".encode()) from e

    def _resolve_local(self, room_name: str, participant_name: str) -> ConnectionCredential:
        signing = self.config.signing
        missing = signing.missing_fields()
        if missing:
            raise SigningNotConfigured(missing)

        token = (
            AccessToken(signing.api_key, signing.api_secret)
            .with_identity(participant_name)
            .with_name(participant_name)
            .with_grants(
                VideoGrants(
                    room_join=True,
                    room=room_name,
                    can_publish=True,
                    can_publish_data=True,
                    can_subscribe=True,
                )
            )
            .with_ttl(LOCAL_TOKEN_TTL)
        )

        logger.debug(
            "Signed local credential",
            extra={"room": room_name, "identity": participant_name},
        )

        return ConnectionCredential(
            server_url=signing.url,
            room_name=room_name,
            participant_token=token.to_jwt(),
            participant_name=participant_name,
        )


def _parse_issuance_body(body: bytes) -> dict[str, Any]:
    """Validate a successful issuance response body.

    Raises:
        MalformedIssuanceResponse: Body is not UTF-8 JSON or lacks serverUrl/token
    """
    try:
        data = json.loads(body.decode("utf-8"))
    except UnicodeDecodeError as e:
        raise MalformedIssuanceResponse("Issuance response is not valid UTF-8") from e
    except ValueError as e:
        raise MalformedIssuanceResponse("Issuance response is not valid JSON") from e

    if not isinstance(data, dict):
        raise MalformedIssuanceResponse("Issuance response is not a JSON object")

    for key in ("serverUrl", "token"):
        value = data.get(key)
        if not isinstance(value, str) or not value:
            raise MalformedIssuanceResponse(f"Issuance response is missing '{key}'")

    participant_name = data.get("participantName")
    if participant_name is not None and not isinstance(participant_name, str):
        data["participantName"] = str(participant_name)

    return data
