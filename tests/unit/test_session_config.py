"""Unit tests for the session configuration builder."""

import pytest
from livekit import rtc

from meetjoin.session_config import (
    VIDEO_PRESETS,
    build_session_configuration,
    validate_codec,
)
from meetjoin.types import ParticipantChoices


@pytest.fixture
def devices() -> ParticipantChoices:
    return ParticipantChoices(
        display_name="ana", video_device_id="cam-1", audio_device_id="mic-1"
    )


class TestBuildSessionConfiguration:
    """Test suite for build_session_configuration."""

    def test_standard_quality(self, devices: ParticipantChoices) -> None:
        config = build_session_configuration(devices, hq=False)

        assert config.capture.resolution == VIDEO_PRESETS["h720"]
        assert [layer.name for layer in config.publish.simulcast_layers] == ["h540", "h216"]
        assert config.publish.video_codec == "vp9"

    def test_high_quality(self, devices: ParticipantChoices) -> None:
        config = build_session_configuration(devices, hq=True, codec="av1")

        assert config.capture.resolution == VIDEO_PRESETS["h2160"]
        assert config.capture.resolution.width == 3840
        assert [layer.name for layer in config.publish.simulcast_layers] == ["h1080", "h720"]
        assert config.publish.video_codec == "av1"

    def test_fixed_flags(self, devices: ParticipantChoices) -> None:
        config = build_session_configuration(devices)

        assert config.publish.red is True
        assert config.publish.dtx is False
        assert config.adaptive_stream is True
        assert config.dynacast is True

    def test_device_ids_passed_through(self, devices: ParticipantChoices) -> None:
        config = build_session_configuration(devices)
        assert config.capture.video_device_id == "cam-1"
        assert config.capture.audio_device_id == "mic-1"

    def test_default_devices(self) -> None:
        config = build_session_configuration(ParticipantChoices(display_name="ana"))
        assert config.capture.video_device_id == ""
        assert config.capture.audio_device_id == ""

    @pytest.mark.parametrize("codec", [None, ""])
    def test_empty_codec_uses_configured_default(
        self, devices: ParticipantChoices, codec: str | None
    ) -> None:
        config = build_session_configuration(devices, codec=codec, default_codec="h264")
        assert config.publish.video_codec == "h264"

    def test_deterministic(self, devices: ParticipantChoices) -> None:
        assert build_session_configuration(devices, True, "vp8") == build_session_configuration(
            devices, True, "vp8"
        )

    def test_immutable(self, devices: ParticipantChoices) -> None:
        config = build_session_configuration(devices)
        with pytest.raises(AttributeError):
            config.dynacast = False  # type: ignore[misc]


class TestValidateCodec:
    """Test suite for codec validation."""

    @pytest.mark.parametrize("codec", ["vp8", "h264", "vp9", "av1", "VP9"])
    def test_supported(self, codec: str) -> None:
        assert validate_codec(codec) == codec.lower()

    def test_unsupported(self) -> None:
        with pytest.raises(ValueError, match="Unsupported video codec"):
            validate_codec("theora")


class TestSdkOptions:
    """Test suite for conversion into LiveKit SDK options."""

    def test_room_options(self, devices: ParticipantChoices) -> None:
        options = build_session_configuration(devices).to_room_options()
        assert options.auto_subscribe is True
        assert options.dynacast is True

    def test_camera_publish_options(self, devices: ParticipantChoices) -> None:
        config = build_session_configuration(devices, hq=True, codec="vp8")

        options = config.track_publish_options(rtc.TrackSource.SOURCE_CAMERA)

        assert options.source == rtc.TrackSource.SOURCE_CAMERA
        assert options.video_codec == rtc.VideoCodec.VP8
        assert options.simulcast is True
        assert options.red is True
        assert options.dtx is False
        assert options.video_encoding.max_bitrate == VIDEO_PRESETS["h1080"].max_bitrate

    def test_microphone_publish_options(self, devices: ParticipantChoices) -> None:
        config = build_session_configuration(devices)

        options = config.track_publish_options(rtc.TrackSource.SOURCE_MICROPHONE)

        assert options.source == rtc.TrackSource.SOURCE_MICROPHONE
        assert options.red is True
        assert options.dtx is False
        assert not options.HasField("video_encoding")
