"""Session configuration builder.

Turns participant choices plus a quality flag and codec preference into a
frozen ``SessionConfiguration``, and converts it into LiveKit SDK options.
"""

from dataclasses import dataclass
from typing import Final

from livekit import rtc

from meetjoin.config import SUPPORTED_CODECS
from meetjoin.types import ParticipantChoices

DEFAULT_CODEC: Final[str] = "vp9"


@dataclass(frozen=True)
class VideoPreset:
    """Resolution tier with its encoding limits."""

    name: str
    width: int
    height: int
    max_bitrate: int
    max_framerate: float

    def to_encoding(self) -> rtc.VideoEncoding:
        return rtc.VideoEncoding(
            max_bitrate=self.max_bitrate,
            max_framerate=self.max_framerate,
        )


# LiveKit standard 16:9 presets
VIDEO_PRESETS: Final[dict[str, VideoPreset]] = {
    "h90": VideoPreset("h90", 160, 90, 90_000, 15),
    "h180": VideoPreset("h180", 320, 180, 160_000, 15),
    "h216": VideoPreset("h216", 384, 216, 180_000, 15),
    "h360": VideoPreset("h360", 640, 360, 450_000, 20),
    "h540": VideoPreset("h540", 960, 540, 800_000, 25),
    "h720": VideoPreset("h720", 1280, 720, 1_700_000, 30),
    "h1080": VideoPreset("h1080", 1920, 1080, 3_000_000, 30),
    "h1440": VideoPreset("h1440", 2560, 1440, 5_000_000, 30),
    "h2160": VideoPreset("h2160", 3840, 2160, 8_000_000, 30),
}

_HQ_LAYERS = (VIDEO_PRESETS["h1080"], VIDEO_PRESETS["h720"])
_STANDARD_LAYERS = (VIDEO_PRESETS["h540"], VIDEO_PRESETS["h216"])

_CODECS: Final[dict[str, int]] = {
    "vp8": rtc.VideoCodec.VP8,
    "h264": rtc.VideoCodec.H264,
    "vp9": rtc.VideoCodec.VP9,
    "av1": rtc.VideoCodec.AV1,
}


def validate_codec(codec: str) -> str:
    """Normalize a codec name.

    Raises:
        ValueError: If the codec is not supported
    """
    normalized = codec.lower()
    if normalized not in SUPPORTED_CODECS:
        raise ValueError(f"Unsupported video codec '{codec}', expected one of {list(SUPPORTED_CODECS)}")
    return normalized


@dataclass(frozen=True)
class CaptureConstraints:
    """Local device selection and capture resolution."""

    video_device_id: str
    audio_device_id: str
    resolution: VideoPreset


@dataclass(frozen=True)
class PublishConstraints:
    """How local tracks are published."""

    simulcast_layers: tuple[VideoPreset, ...]
    video_codec: str
    red: bool
    dtx: bool


@dataclass(frozen=True)
class SessionConfiguration:
    """Read-only parameters for one session attempt."""

    capture: CaptureConstraints
    publish: PublishConstraints
    adaptive_stream: bool
    dynacast: bool

    def to_room_options(self) -> rtc.RoomOptions:
        """Room options for ``rtc.Room.connect``."""
        return rtc.RoomOptions(auto_subscribe=True, dynacast=self.dynacast)

    def track_publish_options(self, source: int) -> rtc.TrackPublishOptions:
        """Publish options for a local track from ``source``.

        Video sources use the top simulcast layer as the encoding ceiling.
        """
        options = rtc.TrackPublishOptions(
            source=source,
            red=self.publish.red,
            dtx=self.publish.dtx,
        )
        if source in (rtc.TrackSource.SOURCE_CAMERA, rtc.TrackSource.SOURCE_SCREENSHARE):
            options.video_codec = _CODECS[self.publish.video_codec]
            options.simulcast = len(self.publish.simulcast_layers) > 1
            options.video_encoding.CopyFrom(self.publish.simulcast_layers[0].to_encoding())
        return options


def build_session_configuration(
    choices: ParticipantChoices,
    hq: bool = False,
    codec: str | None = None,
    *,
    default_codec: str = DEFAULT_CODEC,
) -> SessionConfiguration:
    """Build the session configuration for a set of participant choices.

    Args:
        choices: Validated pre-join choices
        hq: Publish the high quality simulcast pair
        codec: Requested video codec, ``default_codec`` when empty
        default_codec: Configured fallback codec

    Returns:
        Frozen session configuration; identical inputs give equal results
    """
    capture = CaptureConstraints(
        video_device_id=choices.video_device_id or "",
        audio_device_id=choices.audio_device_id or "",
        resolution=VIDEO_PRESETS["h2160"] if hq else VIDEO_PRESETS["h720"],
    )
    publish = PublishConstraints(
        simulcast_layers=_HQ_LAYERS if hq else _STANDARD_LAYERS,
        video_codec=(codec or default_codec).lower(),
        red=True,
        dtx=False,
    )
    return SessionConfiguration(
        capture=capture,
        publish=publish,
        adaptive_stream=True,
        dynacast=True,
    )
