"""
Terminal harness for placing a simulated call with live audio devices.

The call starts in the phone menu; type keys and press Enter to act on the
call. Several keys may be typed on one line.

Usage:
    python run.py [--agent-name NAME] [--voice PROFILE] [--prompt-file PATH]
                  [--visualize] [--log-level LEVEL]

Commands:
    0-9 * #   press keypad digits
    m         toggle mute
    p         toggle hold
    b         toggle office ambience
    h         hang up
    q         hang up and quit
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path

from callsim.audio.devices import MixerOutput
from callsim.audio.visualizer import render_text
from callsim.call_controller import CallController
from callsim.config.logging_config import configure_logging
from callsim.config.settings import load_settings
from callsim.models.call import AgentDescriptor
from callsim.services.history import format_duration

KEYPAD = set("0123456789*#")
VISUALIZER_COLUMNS = 32


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Place a simulated call to a voice agent")
    parser.add_argument("--agent-id", default="agent_local", help="Identifier stored with the call record")
    parser.add_argument("--agent-name", default="Ava Customer Care", help="Agent name (first word is used by the menu)")
    parser.add_argument("--voice", default="Natural Warm", help="Agent voice profile (default: Natural Warm)")
    parser.add_argument("--style", default="", help="Speaking style description for the agent")
    parser.add_argument("--prompt-file", type=Path, help="File holding the agent's persona prompt")
    parser.add_argument("--visualize", action="store_true", help="Draw caller and agent spectrum bars")
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO or LOG_LEVEL env var)",
    )
    return parser.parse_args()


class TerminalSpectrum:
    """Draws both spectrum channels on one status line."""

    def __init__(self, width: float = 256, height: float = 64):
        self.width = width
        self.height = height
        self._caller = ""

    def caller(self, bars, color: str) -> None:
        self._caller = render_text(bars, self.width, self.height, columns=VISUALIZER_COLUMNS, rows=1)

    def agent(self, bars, color: str) -> None:
        agent = render_text(bars, self.width, self.height, columns=VISUALIZER_COLUMNS, rows=1)
        sys.stdout.write(f"\rcaller |{self._caller}|  agent |{agent}|")
        sys.stdout.flush()


async def run(args) -> int:
    settings = load_settings()
    logger = configure_logging(args.log_level or settings.log_level)

    if not settings.api_key:
        logger.error("GEMINI_API_KEY environment variable not set")
        print("Error: GEMINI_API_KEY environment variable is required")
        return 1

    feedback = MixerOutput(name="feedback")
    try:
        feedback.open()
    except OSError as e:
        logger.warning(f"No audio output available, tones and prompts will be silent: {e}")

    renderers = None
    if args.visualize:
        spectrum = TerminalSpectrum()
        renderers = (spectrum.caller, spectrum.agent)

    controller = CallController(settings, feedback_output=feedback, renderers=renderers)
    persona = args.prompt_file.read_text(encoding="utf-8") if args.prompt_file else ""
    agent = AgentDescriptor(
        id=args.agent_id,
        name=args.agent_name,
        voiceProfile=args.voice,
        voiceStyleDescription=args.style,
        systemPromptText=persona,
    )

    session = await controller.start_call(agent)
    print(__doc__.split("Commands:")[1])

    reader = None
    quit_requested = False
    try:
        while controller.active and not quit_requested:
            if reader is None:
                reader = asyncio.ensure_future(asyncio.to_thread(sys.stdin.readline))
            done, _ = await asyncio.wait({reader}, timeout=0.5)
            if not done:
                continue
            line, reader = reader.result(), None
            if not line:
                break
            for command in line.strip().lower():
                if command in KEYPAD:
                    controller.press_key(command)
                elif command == "m":
                    print(f"Muted: {controller.toggle_mute()}")
                elif command == "p":
                    print(f"On hold: {controller.toggle_hold()}")
                elif command == "b":
                    print(f"Ambience: {controller.toggle_ambience()}")
                elif command in ("h", "q"):
                    await controller.end_call()
                    quit_requested = command == "q"
                    break
    finally:
        await controller.close()

    print()
    if reader is not None and not reader.done():
        # stdin is read on a worker thread that only returns on a newline
        print("Press Enter to exit.")
    print(f"Call ended ({session.end_reason.value if session.end_reason else 'unknown'}), "
          f"dialed: {''.join(session.dialed_digits) or '-'}")
    for line in session.transcript_lines:
        print(f"  [{line.speaker.value}] {line.text}")
    records = controller.history.records()
    if records:
        record = records[0]
        print(f"Saved {record.id}: {format_duration(record.duration)}, recording at {record.recordingUrl}")
    return 0


def main():
    """Main entry point for the terminal call harness."""
    args = parse_args()
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
