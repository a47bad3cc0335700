"""Event room credentials and media session lifecycle.

Resolves short-lived LiveKit credentials for ``event-`` rooms and drives a
participant's media session from pre-join to teardown.
"""

from meetjoin.config import AppConfig, ResolverStrategy
from meetjoin.controller import ControllerState, SessionLifecycleController
from meetjoin.credentials import CredentialResolver
from meetjoin.prejoin import GateState, PreJoinGate
from meetjoin.session_config import SessionConfiguration, build_session_configuration
from meetjoin.types import (
    ConnectionCredential,
    DeepLinkParams,
    ParticipantChoices,
    RequestContext,
)

__all__ = [
    "AppConfig",
    "ConnectionCredential",
    "ControllerState",
    "CredentialResolver",
    "DeepLinkParams",
    "GateState",
    "ParticipantChoices",
    "PreJoinGate",
    "RequestContext",
    "ResolverStrategy",
    "SessionConfiguration",
    "SessionLifecycleController",
    "build_session_configuration",
]
