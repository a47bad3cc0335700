"""Shared value types for room credentials and participant choices."""

import base64
import binascii
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Final

from meetjoin.errors import InvalidRoomIdentifier

logger = logging.getLogger(__name__)

# Reserved namespace for rooms backed by an event
ROOM_PREFIX: Final[str] = "event-"


def is_event_room(room_name: str) -> bool:
    """Check whether a room name carries the reserved event prefix."""
    return room_name.startswith(ROOM_PREFIX)


def event_id_from_room(room_name: str) -> str:
    """Extract the EventId addressed by a room name.

    Args:
        room_name: Room identifier such as ``event-42``

    Returns:
        The suffix after the reserved prefix (``42``)

    Raises:
        InvalidRoomIdentifier: If the prefix is missing
    """
    if not is_event_room(room_name):
        raise InvalidRoomIdentifier(room_name)
    return room_name[len(ROOM_PREFIX) :]


def decode_name_from_token(token: str) -> str:
    """Read the ``name`` claim from a signed token for display only.

    The signature is not verified and the result must never be used for
    authorization. Any decode failure yields an empty string.
    """
    try:
        segment = token.split(".")[1]
    except (AttributeError, IndexError):
        return ""
    if not segment:
        return ""

    try:
        padded = segment + "=" * (-len(segment) % 4)
        claims = json.loads(base64.urlsafe_b64decode(padded))
    except (binascii.Error, ValueError):
        logger.debug("Token payload could not be decoded")
        return ""

    if not isinstance(claims, dict):
        return ""
    name = claims.get("name")
    if name is None:
        return ""
    return str(name).strip()


@dataclass(frozen=True)
class ParticipantChoices:
    """Device and publish choices made before joining."""

    display_name: str = ""
    video_enabled: bool = True
    audio_enabled: bool = True
    # Empty string selects the system default device
    video_device_id: str = ""
    audio_device_id: str = ""

    def __post_init__(self) -> None:
        if self.video_device_id is None:
            object.__setattr__(self, "video_device_id", "")
        if self.audio_device_id is None:
            object.__setattr__(self, "audio_device_id", "")


def default_choices(participant_name: str = "") -> ParticipantChoices:
    """Pre-join defaults, optionally pre-filled with a participant name."""
    return ParticipantChoices(display_name=participant_name)


@dataclass(frozen=True)
class ConnectionCredential:
    """Server address and signed token for one session attempt."""

    server_url: str
    room_name: str
    participant_token: str
    participant_name: str

    def to_dict(self) -> dict[str, str]:
        """Wire representation returned by the connection-details endpoint."""
        return {
            "serverUrl": self.server_url,
            "roomName": self.room_name,
            "participantName": self.participant_name,
            "participantToken": self.participant_token,
        }

    def __repr__(self) -> str:
        return (
            f"ConnectionCredential(server_url={self.server_url!r}, "
            f"room_name={self.room_name!r}, participant_name={self.participant_name!r})"
        )


@dataclass(frozen=True)
class RequestContext:
    """Caller authentication forwarded to the issuance service."""

    cookie: str = ""
    authorization: str = ""

    @classmethod
    def from_headers(cls, headers: Mapping[str, Any]) -> "RequestContext":
        return cls(
            cookie=headers.get("cookie", "") or "",
            authorization=headers.get("authorization", "") or "",
        )


@dataclass(frozen=True)
class DeepLinkParams:
    """Pre-authenticated join parameters taken from a room link."""

    token: str = ""
    server_url: str = ""
    participant_name: str = ""

    @property
    def is_complete(self) -> bool:
        """Both token and server URL are present."""
        return bool(self.token and self.server_url)

    @classmethod
    def from_query(cls, query: Mapping[str, str]) -> "DeepLinkParams":
        """Parse ``token``, ``serverUrl`` and ``participantName`` query values."""
        return cls(
            token=query.get("token", "") or "",
            server_url=query.get("serverUrl", "") or "",
            participant_name=query.get("participantName", "") or "",
        )
