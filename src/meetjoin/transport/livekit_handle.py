"""LiveKit implementation of the SessionHandle interface.

Wraps an ``rtc.Room`` bound to one session configuration. Room events are
translated into the handle's own ``disconnected``, ``encryption_error`` and
``media_devices_error`` events.
"""

import logging
from collections.abc import Callable
from typing import Any

from livekit import rtc

from meetjoin.session_config import SessionConfiguration
from meetjoin.transport.base import (
    EVENT_DISCONNECTED,
    EVENT_ENCRYPTION_ERROR,
    EVENT_MEDIA_DEVICES_ERROR,
    SessionHandle,
)

logger = logging.getLogger(__name__)

AUDIO_SAMPLE_RATE_HZ = 48000

_E2EE_FAILURE_STATES = {
    rtc.EncryptionState.ENCRYPTION_FAILED,
    rtc.EncryptionState.DECRYPTION_FAILED,
    rtc.EncryptionState.INTERNAL_ERROR,
}

_LocalTrack = rtc.LocalVideoTrack | rtc.LocalAudioTrack


class LocalTrackFactory:
    """Creates local camera and microphone tracks for a configuration.

    Device capture itself is external: a capture feeder pushes frames into
    ``video_source`` / ``audio_source`` for the selected device ids. Failing
    to create a source is a device failure, not a publish failure.
    """

    def __init__(self, config: SessionConfiguration) -> None:
        self._config = config
        self.video_source: rtc.VideoSource | None = None
        self.audio_source: rtc.AudioSource | None = None

    @property
    def video_device_id(self) -> str:
        return self._config.capture.video_device_id

    @property
    def audio_device_id(self) -> str:
        return self._config.capture.audio_device_id

    def create_camera_track(self) -> rtc.LocalVideoTrack:
        resolution = self._config.capture.resolution
        self.video_source = rtc.VideoSource(resolution.width, resolution.height)
        return rtc.LocalVideoTrack.create_video_track("camera", self.video_source)

    def create_microphone_track(self) -> rtc.LocalAudioTrack:
        self.audio_source = rtc.AudioSource(AUDIO_SAMPLE_RATE_HZ, num_channels=1)
        return rtc.LocalAudioTrack.create_audio_track("microphone", self.audio_source)


class LiveKitSessionHandle(SessionHandle):
    """Session handle backed by a LiveKit room."""

    def __init__(
        self,
        config: SessionConfiguration,
        room: rtc.Room | None = None,
        tracks: LocalTrackFactory | None = None,
    ) -> None:
        """Initialize handle.

        Args:
            config: Session configuration this handle is bound to
            room: Room instance (created when omitted)
            tracks: Local track factory (created from ``config`` when omitted)
        """
        self._config = config
        self._room = room if room is not None else rtc.Room()
        self._tracks = tracks if tracks is not None else LocalTrackFactory(config)
        self._emitter: rtc.EventEmitter[str] = rtc.EventEmitter()

        self._camera: rtc.LocalTrackPublication | None = None
        self._microphone: rtc.LocalTrackPublication | None = None

        self._room.on("disconnected", self._on_room_disconnected)
        self._room.on("e2ee_state_changed", self._on_e2ee_state_changed)

    @property
    def room(self) -> rtc.Room:
        return self._room

    @property
    def is_connected(self) -> bool:
        return self._room.isconnected()

    def on(self, event: str, callback: Callable[..., Any]) -> None:
        self._emitter.on(event, callback)

    def off(self, event: str, callback: Callable[..., Any]) -> None:
        self._emitter.off(event, callback)

    async def connect(self, server_url: str, token: str, *, auto_subscribe: bool = True) -> None:
        options = self._config.to_room_options()
        options.auto_subscribe = auto_subscribe

        logger.info("Connecting to room server", extra={"url": server_url})
        await self._room.connect(server_url, token, options=options)
        logger.info("Connected to room", extra={"room": self._room.name})

    async def set_camera_enabled(self, enabled: bool) -> None:
        if enabled:
            if self._camera is None:
                track = self._create_track("camera", self._tracks.create_camera_track)
                if track is None:
                    return
                self._camera = await self._room.local_participant.publish_track(
                    track,
                    self._config.track_publish_options(rtc.TrackSource.SOURCE_CAMERA),
                )
                logger.info(
                    "Camera published",
                    extra={"device_id": self._tracks.video_device_id or "default"},
                )
        elif self._camera is not None:
            publication, self._camera = self._camera, None
            await self._room.local_participant.unpublish_track(publication.sid)

    async def set_microphone_enabled(self, enabled: bool) -> None:
        if enabled:
            if self._microphone is None:
                track = self._create_track("microphone", self._tracks.create_microphone_track)
                if track is None:
                    return
                self._microphone = await self._room.local_participant.publish_track(
                    track,
                    self._config.track_publish_options(rtc.TrackSource.SOURCE_MICROPHONE),
                )
                logger.info(
                    "Microphone published",
                    extra={"device_id": self._tracks.audio_device_id or "default"},
                )
        elif self._microphone is not None:
            publication, self._microphone = self._microphone, None
            await self._room.local_participant.unpublish_track(publication.sid)

    def _create_track(
        self, device: str, create: Callable[[], _LocalTrack]
    ) -> _LocalTrack | None:
        """Create a local track, reporting capture failures as device errors."""
        try:
            return create()
        except Exception as e:
            logger.warning(
                "Failed to create local capture source",
                extra={"device": device, "error": str(e)},
            )
            self._emitter.emit(EVENT_MEDIA_DEVICES_ERROR, e)
            return None

    async def disconnect(self) -> None:
        self._room.off("disconnected", self._on_room_disconnected)
        self._room.off("e2ee_state_changed", self._on_e2ee_state_changed)
        self._camera = None
        self._microphone = None
        await self._room.disconnect()

    def _on_room_disconnected(self, *args: Any) -> None:
        reason = args[0] if args else None
        logger.info("Room disconnected", extra={"reason": str(reason)})
        self._emitter.emit(EVENT_DISCONNECTED, reason)

    def _on_e2ee_state_changed(self, participant: rtc.Participant, state: int) -> None:
        if state in _E2EE_FAILURE_STATES:
            error = RuntimeError(
                f"Encryption failed for participant {participant.identity} (state={state})"
            )
            self._emitter.emit(EVENT_ENCRYPTION_ERROR, error)
