"""Media session handles."""

from meetjoin.transport.base import SessionHandle
from meetjoin.transport.livekit_handle import LiveKitSessionHandle

__all__ = ["LiveKitSessionHandle", "SessionHandle"]
