"""Pre-join gate.

Holds a participant back until both a credential and a set of choices are
present. A complete deep link (token and server URL) is authoritative and
skips credential resolution entirely.
"""

import logging
from enum import Enum

from meetjoin.credentials import CredentialResolver
from meetjoin.types import (
    ConnectionCredential,
    DeepLinkParams,
    ParticipantChoices,
    RequestContext,
    decode_name_from_token,
)

logger = logging.getLogger(__name__)


class GateState(Enum):
    """Pre-join gate states.

    - COLLECTING: credential or choices still missing
    - READY: both present; terminal for this gate
    """

    COLLECTING = "collecting"
    READY = "ready"


class PreJoinGate:
    """Collects participant choices and a credential for one room."""

    def __init__(
        self,
        room_name: str,
        resolver: CredentialResolver | None = None,
        deep_link: DeepLinkParams | None = None,
        request_context: RequestContext | None = None,
    ) -> None:
        """Initialize gate.

        Args:
            room_name: Room to join
            resolver: Credential resolver for explicit submissions
            deep_link: Pre-authenticated link parameters, if any
            request_context: Caller authentication forwarded on resolution
        """
        self.room_name = room_name
        self.state = GateState.COLLECTING

        self._resolver = resolver
        self._request_context = request_context
        self._credential: ConnectionCredential | None = None
        self._choices: ParticipantChoices | None = None
        self._handed_off = False
        self._deep_link = deep_link if deep_link is not None and deep_link.is_complete else None

        if self._deep_link is not None:
            name = self._deep_link.participant_name or decode_name_from_token(
                self._deep_link.token
            )
            self._choices = ParticipantChoices(
                display_name=name,
                video_enabled=True,
                audio_enabled=True,
            )
            self._credential = ConnectionCredential(
                server_url=self._deep_link.server_url,
                room_name=room_name,
                participant_token=self._deep_link.token,
                participant_name=name,
            )
            self.state = GateState.READY
            logger.info("Deep link accepted, skipping pre-join", extra={"room": room_name})

    @property
    def is_ready(self) -> bool:
        return self.state == GateState.READY

    @property
    def has_deep_link(self) -> bool:
        return self._deep_link is not None

    @property
    def credential(self) -> ConnectionCredential | None:
        return self._credential

    @property
    def choices(self) -> ParticipantChoices | None:
        return self._choices

    async def submit(self, choices: ParticipantChoices) -> None:
        """Submit pre-join choices.

        With a deep link the choices replace the synthesized defaults and the
        deep-link credential is kept. Otherwise the credential is resolved
        first and the gate becomes READY only on success.

        Raises:
            RuntimeError: Gate already handed off, or already READY without a
                deep link
            CredentialError: Resolution failed; the gate stays COLLECTING
        """
        if self._handed_off:
            raise RuntimeError("Pre-join gate has already handed off its session")

        if self._deep_link is not None:
            self._choices = choices
            return

        if self.state == GateState.READY:
            raise RuntimeError("Pre-join gate is already ready")
        if self._resolver is None:
            raise RuntimeError("No credential resolver available for submission")

        credential = await self._resolver.resolve(
            self.room_name,
            choices.display_name,
            self._request_context,
        )

        self._choices = choices
        self._credential = credential
        self.state = GateState.READY
        logger.info("Pre-join complete", extra={"room": self.room_name})

    def handoff(self) -> tuple[ConnectionCredential, ParticipantChoices]:
        """Release the credential and choices to a lifecycle controller.

        Raises:
            RuntimeError: If the gate is not READY
        """
        if self.state != GateState.READY or self._credential is None or self._choices is None:
            raise RuntimeError("Pre-join gate is not ready")
        self._handed_off = True
        return self._credential, self._choices
