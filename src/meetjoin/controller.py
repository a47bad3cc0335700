"""Session lifecycle controller.

Owns one media session from first connect to final teardown. Observers are
subscribed before connecting and released by a single teardown routine that
runs on every exit path: normal close, connect failure, remote disconnect
and cancellation.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from meetjoin.errors import (
    ConnectFailure,
    EncryptionFailure,
    MediaDeviceFailure,
    SessionError,
)
from meetjoin.session_config import (
    DEFAULT_CODEC,
    SessionConfiguration,
    build_session_configuration,
)
from meetjoin.transport.base import (
    EVENT_DISCONNECTED,
    EVENT_ENCRYPTION_ERROR,
    EVENT_MEDIA_DEVICES_ERROR,
    SessionHandle,
)
from meetjoin.types import ConnectionCredential, ParticipantChoices

logger = logging.getLogger(__name__)


class ControllerState(Enum):
    """Controller state machine states.

    State Transitions:
    - IDLE → CONNECTING (on start)
    - CONNECTING → ACTIVE (on connect success)
    - * → TERMINATED (on connect failure, disconnect, close or cancellation)

    No transition leaves TERMINATED; a retry needs a new controller.
    """

    IDLE = "idle"
    CONNECTING = "connecting"
    ACTIVE = "active"
    TERMINATED = "terminated"


VALID_TRANSITIONS: dict[ControllerState, set[ControllerState]] = {
    ControllerState.IDLE: {ControllerState.CONNECTING, ControllerState.TERMINATED},
    ControllerState.CONNECTING: {ControllerState.ACTIVE, ControllerState.TERMINATED},
    ControllerState.ACTIVE: {ControllerState.TERMINATED},
    ControllerState.TERMINATED: set(),
}


class SessionEventSink(Protocol):
    """Caller-side reporting for session events."""

    def on_disconnected(self) -> None:
        """Session ended; return to the landing context."""
        ...

    def on_error(self, error: SessionError) -> None:
        """Non-fatal error to surface to the participant."""
        ...


HandleFactory = Callable[[SessionConfiguration], SessionHandle]


@dataclass
class Subscription:
    """One observer registered on a session handle."""

    event: str
    callback: Callable[..., Any]


class SessionLifecycleController:
    """Drives one session: configure, connect, publish, tear down."""

    def __init__(
        self,
        credential: ConnectionCredential,
        choices: ParticipantChoices,
        handle_factory: HandleFactory,
        sink: SessionEventSink,
        *,
        hq: bool = False,
        codec: str | None = None,
        default_codec: str = DEFAULT_CODEC,
    ) -> None:
        """Initialize controller.

        Args:
            credential: Credential consumed by this controller's single attempt
            choices: Participant choices, fixed for this session
            handle_factory: Builds a session handle bound to a configuration
            sink: Receives disconnect notification and non-fatal errors
            hq: Publish high quality simulcast layers
            codec: Requested video codec
            default_codec: Codec used when none is requested
        """
        self.credential = credential
        self.choices = choices
        self.state = ControllerState.IDLE

        self._handle_factory = handle_factory
        self._sink = sink
        self._hq = hq
        self._codec = codec
        self._default_codec = default_codec

        self.configuration: SessionConfiguration | None = None
        self._handle: SessionHandle | None = None
        self._subscriptions: list[Subscription] = []
        self._disconnected = False
        self._connecting = False
        self._teardown_task: asyncio.Task[None] | None = None
        self._terminated = asyncio.Event()

    @property
    def handle(self) -> SessionHandle | None:
        return self._handle

    @property
    def is_active(self) -> bool:
        return self.state == ControllerState.ACTIVE

    def transition_state(self, new_state: ControllerState) -> None:
        """Transition to a new state with validation.

        Raises:
            ValueError: If transition is invalid
        """
        if new_state not in VALID_TRANSITIONS.get(self.state, set()):
            raise ValueError(f"Invalid state transition: {self.state.value} → {new_state.value}")

        old_state = self.state
        self.state = new_state
        if new_state == ControllerState.TERMINATED:
            self._terminated.set()

        logger.info(
            "Controller state transition",
            extra={
                "room": self.credential.room_name,
                "from_state": old_state.value,
                "to_state": new_state.value,
            },
        )

    async def start(self) -> None:
        """Configure, connect and publish.

        Raises:
            RuntimeError: If the controller was already started
            ConnectFailure: If connecting fails; teardown has already run
        """
        if self.state != ControllerState.IDLE:
            raise RuntimeError(f"Controller cannot start from state {self.state.value}")

        self.transition_state(ControllerState.CONNECTING)
        self.configuration = build_session_configuration(
            self.choices, self._hq, self._codec, default_codec=self._default_codec
        )
        self._handle = self._handle_factory(self.configuration)

        self._subscribe(EVENT_DISCONNECTED, self._on_disconnected)
        self._subscribe(EVENT_ENCRYPTION_ERROR, self._on_encryption_error)
        self._subscribe(EVENT_MEDIA_DEVICES_ERROR, self._on_media_devices_error)

        self._connecting = True
        try:
            try:
                await self._handle.connect(
                    self.credential.server_url,
                    self.credential.participant_token,
                    auto_subscribe=True,
                )
            finally:
                self._connecting = False
        except asyncio.CancelledError:
            await self.close()
            raise
        except Exception as e:
            logger.error(
                "Failed to connect to room",
                extra={"room": self.credential.room_name, "error": str(e)},
            )
            await self.close()
            raise ConnectFailure(f"Failed to connect to room: {e}") from e

        # close() ran while connecting and left the disconnect to this attempt
        if self.state != ControllerState.CONNECTING:
            await self._force_disconnect()
            return

        self.transition_state(ControllerState.ACTIVE)

        try:
            if self.choices.video_enabled and self.is_active:
                await self._enable_device("camera", self._handle.set_camera_enabled)
            if self.choices.audio_enabled and self.is_active:
                await self._enable_device("microphone", self._handle.set_microphone_enabled)
        except asyncio.CancelledError:
            await self.close()
            raise

    async def _enable_device(self, device: str, enable: Callable[[bool], Any]) -> None:
        try:
            await enable(True)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if not self.is_active:
                logger.debug(
                    "Device enable failed after session ended",
                    extra={"device": device, "error": str(e)},
                )
                return
            logger.warning(
                "Failed to enable local device",
                extra={"device": device, "error": str(e)},
            )
            self._sink.on_error(MediaDeviceFailure(f"Failed to enable {device}: {e}", device))

    def _subscribe(self, event: str, callback: Callable[..., Any]) -> None:
        if self._handle is None:
            raise RuntimeError("Cannot subscribe before a session handle exists")
        self._handle.on(event, callback)
        self._subscriptions.append(Subscription(event, callback))

    def _release_subscriptions(self) -> None:
        if self._handle is None:
            self._subscriptions.clear()
            return
        while self._subscriptions:
            subscription = self._subscriptions.pop()
            self._handle.off(subscription.event, subscription.callback)

    def _on_disconnected(self, *args: Any) -> None:
        logger.info("Session disconnected", extra={"room": self.credential.room_name})
        if self.state != ControllerState.TERMINATED:
            self.transition_state(ControllerState.TERMINATED)
        self._sink.on_disconnected()
        if self._teardown_task is None:
            self._teardown_task = asyncio.get_running_loop().create_task(self.close())

    def _on_encryption_error(self, error: Exception) -> None:
        logger.error("Encryption error", extra={"error": str(error)})
        self._sink.on_error(EncryptionFailure(f"Encryption error: {error}"))

    def _on_media_devices_error(self, error: Exception) -> None:
        logger.error("Media devices error", extra={"error": str(error)})
        self._sink.on_error(MediaDeviceFailure(f"Media devices error: {error}"))

    async def close(self) -> None:
        """Tear the session down.

        Detaches every observer, then force-disconnects the handle exactly
        once. While a connect is in flight the disconnect is left to
        ``start()``, which performs it when the connect attempt settles.
        """
        self._release_subscriptions()

        if self.state != ControllerState.TERMINATED:
            self.transition_state(ControllerState.TERMINATED)

        if self._connecting:
            return
        await self._force_disconnect()

    async def _force_disconnect(self) -> None:
        if self._handle is None or self._disconnected:
            return
        self._disconnected = True

        try:
            await self._handle.disconnect()
        except Exception as e:
            logger.warning(
                "Error during session disconnect",
                extra={"room": self.credential.room_name, "error": str(e)},
            )

    async def wait_terminated(self) -> None:
        """Block until the controller reaches TERMINATED."""
        await self._terminated.wait()
        if self._teardown_task is not None:
            await self._teardown_task

    async def __aenter__(self) -> "SessionLifecycleController":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
