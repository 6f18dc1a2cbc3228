"""
Realtime voice session between the local audio devices and the live agent.

This module bridges the microphone to the Live API and the agent's synthesized
audio back to the speaker:

- Microphone blocks are converted to PCM16 and queued for a sender task,
  unless the session is muted (capture keeps running while muted)
- Inbound audio chunks are decoded and scheduled back-to-back on the agent
  output; an interruption from the server stops everything still queued
- Caller and agent transcriptions are reported as they arrive

Every device and connection acquired by ``open()`` is registered on an exit
stack, so a failure halfway through releases what was already acquired and
``close()`` releases everything in reverse order.
"""

import asyncio
import logging
from contextlib import AsyncExitStack
from typing import Awaitable, Callable, Optional

from callsim.audio.codec import decode, decode_audio_data, float_to_pcm16
from callsim.audio.devices import Microphone, MixerOutput
from callsim.audio.playback import PlaybackScheduler
from callsim.audio.visualizer import SpectrumAnalyser
from callsim.bot.live_api import WS_MAX_QUEUE, LiveAudioClient
from callsim.bot.voices import resolve_voice
from callsim.config.constants import DEFAULT_LIVE_MODEL, INPUT_SAMPLE_RATE, LOGGER_NAME, OUTPUT_SAMPLE_RATE
from callsim.errors import VoiceConnectionError
from callsim.models.call import Department, Speaker
from callsim.models.live_schemas import ServerMessage, SetupMessage

logger = logging.getLogger(LOGGER_NAME)

TranscriptHandler = Callable[[Speaker, str], None]
ClosedHandler = Callable[[Optional[int], str], Awaitable[None]]


class VoiceSession:
    """Handle for one open agent session."""

    def __init__(self, department: Department, output, on_transcript: Optional[TranscriptHandler] = None,
                 on_closed: Optional[ClosedHandler] = None, muted: bool = False):
        self.department = department
        self.output = output
        self.scheduler = PlaybackScheduler(output)
        self.input_analyser = SpectrumAnalyser()
        self.output_analyser = SpectrumAnalyser()
        self.client: Optional[LiveAudioClient] = None
        self._on_transcript = on_transcript
        self._on_closed = on_closed
        self._muted = muted
        self._closed = False
        self._outbound: asyncio.Queue = asyncio.Queue(maxsize=WS_MAX_QUEUE)
        self._sender: Optional[asyncio.Task] = None
        self._resources: Optional[AsyncExitStack] = None

    @property
    def muted(self) -> bool:
        return self._muted

    @muted.setter
    def muted(self, value: bool) -> None:
        if value != self._muted:
            logger.info(f"Microphone {'muted' if value else 'unmuted'}")
        self._muted = value

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        """Stop streaming and release the devices; safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        if self._resources is not None:
            resources, self._resources = self._resources, None
            await resources.aclose()
        logger.info(f"Voice session for {self.department.value} closed")

    def capture(self, block, sample_rate: int) -> None:
        """Microphone listener; drops the block while muted."""
        if self._muted or self._closed:
            return
        try:
            self._outbound.put_nowait(float_to_pcm16(block))
        except asyncio.QueueFull:
            logger.debug("Outbound audio queue full, dropping microphone block")

    async def handle_message(self, message: ServerMessage) -> None:
        content = message.serverContent
        if content is None or self._closed:
            return

        if content.interrupted:
            self.scheduler.interrupt()

        for payload in content.audio_payloads():
            buffer = decode_audio_data(decode(payload), OUTPUT_SAMPLE_RATE)
            self.scheduler.enqueue(buffer)

        if content.inputTranscription and content.inputTranscription.text:
            self._transcript(Speaker.CALLER, content.inputTranscription.text)
        if content.outputTranscription and content.outputTranscription.text:
            self._transcript(Speaker.AGENT, content.outputTranscription.text)

        if content.turnComplete:
            logger.debug("Agent turn complete")

    async def handle_closed(self, code: Optional[int], reason: str) -> None:
        if self._closed:
            return
        logger.warning(f"Live session closed by remote (code {code}): {reason}")
        if self._on_closed is not None:
            await self._on_closed(code, reason)

    async def _send_loop(self) -> None:
        while True:
            pcm = await self._outbound.get()
            if not await self.client.send_audio(pcm):
                logger.debug("Microphone block not sent, connection inactive")

    async def _stop_sender(self) -> None:
        task, self._sender = self._sender, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    def _transcript(self, speaker: Speaker, text: str) -> None:
        logger.debug(f"{speaker.value}: {text}")
        if self._on_transcript is not None:
            self._on_transcript(speaker, text)


class VoiceSessionManager:
    """
    Opens live agent sessions.

    Device and client classes are injectable so the manager can run against
    fakes; by default it uses PyAudio devices and the Live API client.
    """

    def __init__(self, api_key: Optional[str], model: str = DEFAULT_LIVE_MODEL,
                 client_factory=LiveAudioClient, microphone_factory=Microphone,
                 output_factory=MixerOutput):
        self.api_key = api_key
        self.model = model
        self.client_factory = client_factory
        self.microphone_factory = microphone_factory
        self.output_factory = output_factory

    async def open(self, department: Department, voice_profile: str, system_prompt: str, *,
                   on_transcript: Optional[TranscriptHandler] = None,
                   on_closed: Optional[ClosedHandler] = None,
                   recorder=None, muted: bool = False) -> VoiceSession:
        """
        Establish a duplex stream with the live agent.

        Raises:
            VoiceConnectionError: credentials are missing, a device cannot be
                opened (MicrophonePermissionError for the microphone), or the
                endpoint rejects the handshake
        """
        if not self.api_key:
            raise VoiceConnectionError("GEMINI_API_KEY is not set")

        voice = resolve_voice(voice_profile)
        logger.info(f"Opening voice session for {department.value} with voice {voice}")
        output = self.output_factory(sample_rate=OUTPUT_SAMPLE_RATE, name="agent")
        session = VoiceSession(department, output, on_transcript=on_transcript, on_closed=on_closed, muted=muted)

        async with AsyncExitStack() as stack:
            try:
                output.open()
            except Exception as e:
                raise VoiceConnectionError(f"Audio output unavailable: {e}") from e
            stack.callback(output.close)
            output.add_tap(session.output_analyser.push)

            microphone = self.microphone_factory(sample_rate=INPUT_SAMPLE_RATE)
            microphone.add_listener(session.input_analyser.push)
            microphone.add_listener(session.capture)
            if recorder is not None:
                output.add_tap(recorder.capture)
                microphone.add_listener(recorder.capture)
            try:
                microphone.open()
            except VoiceConnectionError:
                raise
            except Exception as e:
                raise VoiceConnectionError(f"Microphone unavailable: {e}") from e
            stack.callback(microphone.close)

            client = self.client_factory(self.api_key, self.model)
            client.set_handlers(session.handle_message, session.handle_closed)
            stack.push_async_callback(client.close)
            await client.connect(SetupMessage.build(self.model, voice, system_prompt))
            session.client = client

            session._sender = asyncio.create_task(session._send_loop())
            stack.push_async_callback(session._stop_sender)
            session._resources = stack.pop_all()

        logger.info(f"Voice session for {department.value} open")
        return session
