"""Shared fixtures for meetjoin tests."""

import pytest

from meetjoin.config import IssuanceConfig, IssuanceServiceConfig, SigningConfig
from meetjoin.types import ConnectionCredential, ParticipantChoices
from tests.helpers.session_fakes import FakeSessionHandle, RecordingSink


@pytest.fixture
def remote_config() -> IssuanceConfig:
    """Issuance configuration with the remote service enabled."""
    return IssuanceConfig(
        service=IssuanceServiceConfig(token_endpoint="https://api.example.com/events/{id}/token"),
    )


@pytest.fixture
def local_config() -> IssuanceConfig:
    """Issuance configuration with only local signing."""
    return IssuanceConfig(
        signing=SigningConfig(
            url="wss://livekit.example.com",
            api_key="test-key",
            api_secret="test-secret-that-is-long-enough-for-hs256",
        ),
    )


@pytest.fixture
def credential() -> ConnectionCredential:
    return ConnectionCredential(
        server_url="wss://y",
        room_name="event-42",
        participant_token="T",
        participant_name="ana",
    )


@pytest.fixture
def choices() -> ParticipantChoices:
    return ParticipantChoices(display_name="ana", video_enabled=True, audio_enabled=True)


@pytest.fixture
def fake_handle() -> FakeSessionHandle:
    return FakeSessionHandle()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
