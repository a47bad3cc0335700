"""Error taxonomy for credential resolution and session lifecycle.

Credential errors carry the HTTP status the connection-details endpoint
answers with. Session errors are classified as fatal (``ConnectFailure``)
or non-fatal (``EncryptionFailure``, ``MediaDeviceFailure``).
"""


class MeetJoinError(Exception):
    """Base class for all meetjoin errors."""


class CredentialError(MeetJoinError):
    """Credential resolution failed."""

    http_status: int = 500


class InvalidRoomIdentifier(CredentialError):
    """Room name does not carry the reserved ``event-`` prefix."""

    http_status = 400

    def __init__(self, room_name: str) -> None:
        super().__init__(f"Invalid roomName: {room_name!r}")
        self.room_name = room_name


class MissingParticipant(CredentialError):
    """Participant name is required but was empty."""

    http_status = 400

    def __init__(self) -> None:
        super().__init__("Missing participantName")


class ResolverNotConfigured(CredentialError):
    """Neither remote issuance nor local signing is configured."""

    http_status = 500

    def __init__(self) -> None:
        super().__init__("TOKEN_ENDPOINT is not configured and local signing is disabled")


class SigningNotConfigured(CredentialError):
    """Local signing selected but server URL or key pair is missing."""

    http_status = 500

    def __init__(self, missing: list[str]) -> None:
        super().__init__(f"Local signing is missing: {', '.join(missing)}")
        self.missing = missing


class UpstreamIssuanceError(CredentialError):
    """Issuance service answered with a non-success status.

    Status, raw body bytes and content type are preserved verbatim so callers
    can pass them through; the body is not assumed to be UTF-8.
    """

    def __init__(self, status: int, body: bytes, content_type: str = "text/plain") -> None:
        super().__init__(
            f"Token endpoint failed with {status}: {body.decode('utf-8', errors='replace')}"
        )
        self.status = status
        self.body = body
        self.content_type = content_type

    @property
    def http_status(self) -> int:  # type: ignore[override]
        return self.status


class MalformedIssuanceResponse(CredentialError):
    """Issuance succeeded but the body lacks ``serverUrl`` or ``token``."""

    http_status = 502


class SessionError(MeetJoinError):
    """Media session failure."""

    fatal: bool = False


class ConnectFailure(SessionError):
    """Connecting to the room server failed. Ends the session."""

    fatal = True


class EncryptionFailure(SessionError):
    """End-to-end encryption reported an error. Session stays active."""


class MediaDeviceFailure(SessionError):
    """Camera or microphone could not be enabled. Session stays active."""

    def __init__(self, message: str, device: str | None = None) -> None:
        super().__init__(message)
        self.device = device
