"""Base media session abstraction.

Defines the interface the session lifecycle controller drives. A concrete
handle wraps one real-time transport connection (LiveKit room) and emits
the three events the controller observes.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any, Final

# Events a handle emits
EVENT_DISCONNECTED: Final[str] = "disconnected"
EVENT_ENCRYPTION_ERROR: Final[str] = "encryption_error"
EVENT_MEDIA_DEVICES_ERROR: Final[str] = "media_devices_error"

SESSION_EVENTS: Final[tuple[str, ...]] = (
    EVENT_DISCONNECTED,
    EVENT_ENCRYPTION_ERROR,
    EVENT_MEDIA_DEVICES_ERROR,
)


class SessionHandle(ABC):
    """Live media session with a room server.

    Exclusively owned by one controller for its whole lifetime.
    """

    @abstractmethod
    def on(self, event: str, callback: Callable[..., Any]) -> None:
        """Register ``callback`` for ``event``."""
        pass

    @abstractmethod
    def off(self, event: str, callback: Callable[..., Any]) -> None:
        """Remove a previously registered ``callback`` for ``event``."""
        pass

    @abstractmethod
    async def connect(self, server_url: str, token: str, *, auto_subscribe: bool = True) -> None:
        """Connect to the room server.

        Raises:
            Exception: Any transport or authentication failure
        """
        pass

    @abstractmethod
    async def set_camera_enabled(self, enabled: bool) -> None:
        """Start or stop publishing the local camera."""
        pass

    @abstractmethod
    async def set_microphone_enabled(self, enabled: bool) -> None:
        """Start or stop publishing the local microphone."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Force-disconnect and release transport resources.

        Safe to call when never connected.
        """
        pass

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Check if the handle holds a live connection."""
        pass
