"""Command-line room join client.

Runs the pre-join step and a session lifecycle controller against a room
from a terminal. A token plus server URL on the command line act as a deep
link and skip credential resolution.
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

import aiohttp

from meetjoin.config import AppConfig
from meetjoin.controller import SessionLifecycleController
from meetjoin.credentials import CredentialResolver
from meetjoin.errors import ConnectFailure, CredentialError, SessionError
from meetjoin.prejoin import PreJoinGate
from meetjoin.session_config import validate_codec
from meetjoin.transport.livekit_handle import LiveKitSessionHandle
from meetjoin.types import DeepLinkParams, ParticipantChoices

logger = logging.getLogger(__name__)


class ConsoleSink:
    """Reports session events on the terminal."""

    def __init__(self) -> None:
        self.disconnected = False
        self.errors: list[SessionError] = []

    def on_disconnected(self) -> None:
        self.disconnected = True
        print("\nDisconnected from room")

    def on_error(self, error: SessionError) -> None:
        self.errors.append(error)
        print(f"\n{error}")


async def prompt(message: str) -> str:
    """Read one line from stdin without blocking the event loop."""
    loop = asyncio.get_running_loop()
    return (await loop.run_in_executor(None, input, message)).strip()


class JoinClient:
    """Pre-join plus session supervision for one room."""

    def __init__(self, args: argparse.Namespace, config: AppConfig) -> None:
        self.args = args
        self.config = config
        self.sink = ConsoleSink()

    def choices_from_args(self, display_name: str) -> ParticipantChoices:
        return ParticipantChoices(
            display_name=display_name,
            video_enabled=not self.args.no_video,
            audio_enabled=not self.args.no_audio,
            video_device_id=self.args.video_device,
            audio_device_id=self.args.audio_device,
        )

    async def prepare(self, gate: PreJoinGate) -> None:
        """Complete the pre-join step."""
        if gate.is_ready:
            # Explicit device flags still apply to a deep link
            name = gate.choices.display_name if gate.choices else ""
            await gate.submit(self.choices_from_args(name))
            return

        display_name = self.args.name or await prompt("Display name: ")
        await gate.submit(self.choices_from_args(display_name))

    async def run(self) -> int:
        """Run the client.

        Returns:
            Process exit code
        """
        deep_link = DeepLinkParams(
            token=self.args.token,
            server_url=self.args.server_url,
            participant_name=self.args.name,
        )
        hq = self.args.hq or self.config.session.hq

        async with aiohttp.ClientSession() as http_session:
            resolver = CredentialResolver(self.config.issuance, http_session)
            gate = PreJoinGate(self.args.room, resolver, deep_link)

            try:
                await self.prepare(gate)
            except CredentialError as e:
                print(f"Could not join {self.args.room}: {e}")
                return 1

        credential, choices = gate.handoff()
        logger.info(
            "Pre-join complete",
            extra={"room": credential.room_name, "deep_link": gate.has_deep_link},
        )
        controller = SessionLifecycleController(
            credential,
            choices,
            LiveKitSessionHandle,
            self.sink,
            hq=hq,
            codec=self.args.codec,
            default_codec=self.config.session.default_codec,
        )

        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop.set)

        try:
            async with controller:
                print(f"Joined {credential.room_name} as {credential.participant_name or 'guest'}")
                stop_task = asyncio.create_task(stop.wait())
                terminated_task = asyncio.create_task(controller.wait_terminated())
                _, pending = await asyncio.wait(
                    {stop_task, terminated_task}, return_when=asyncio.FIRST_COMPLETED
                )
                for task in pending:
                    task.cancel()
        except ConnectFailure as e:
            print(f"Unexpected error: {e}")
            return 1
        finally:
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)

        return 0


def main() -> None:
    """Main entry point for the join client."""
    parser = argparse.ArgumentParser(description="Join a meetjoin event room")
    parser.add_argument("room", type=str, help="Room name, e.g. event-42")
    parser.add_argument("--name", type=str, default="", help="Display name")
    parser.add_argument("--token", type=str, default="", help="Pre-issued participant token")
    parser.add_argument("--server-url", type=str, default="", help="Room server URL for --token")
    parser.add_argument("--no-video", action="store_true", help="Join with camera off")
    parser.add_argument("--no-audio", action="store_true", help="Join with microphone off")
    parser.add_argument("--video-device", type=str, default="", help="Camera device id")
    parser.add_argument("--audio-device", type=str, default="", help="Microphone device id")
    parser.add_argument("--hq", action="store_true", help="Publish high quality layers")
    parser.add_argument("--codec", type=validate_codec, default=None, help="Video codec")
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("configs") / "meetjoin.yaml",
        help="Path to meetjoin config YAML file",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    config = AppConfig.from_yaml_with_defaults(args.config)

    try:
        sys.exit(asyncio.run(JoinClient(args, config).run()))
    except KeyboardInterrupt:
        print("\nExiting...")
        sys.exit(0)


if __name__ == "__main__":
    main()
