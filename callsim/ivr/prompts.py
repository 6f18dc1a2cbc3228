"""
Spoken IVR prompts.

Prompt text is turned into 24 kHz PCM by the speech synthesis endpoint and
played on the feedback output. Synthesized audio is cached per text, so each
fixed prompt is requested once per process. A prompt that cannot be
synthesized counts as finished straight away, so the menu never stalls.
"""

import asyncio
import logging
from typing import Callable, Dict, Optional

import requests

from callsim.audio.codec import decode, decode_audio_data
from callsim.config.constants import (
    DEFAULT_PROMPT_VOICE,
    DEFAULT_TTS_MODEL,
    GENERATE_CONTENT_URL,
    LOGGER_NAME,
)
from callsim.errors import VoiceConnectionError
from callsim.models.live_schemas import GenerateContentResponse, SpeechRequest

logger = logging.getLogger(LOGGER_NAME)

REQUEST_TIMEOUT = 30  # seconds


class PromptSynthesizer:
    """Client for the text-to-speech generateContent endpoint."""

    def __init__(self, api_key: Optional[str], model: str = DEFAULT_TTS_MODEL,
                 voice: str = DEFAULT_PROMPT_VOICE, timeout: float = REQUEST_TIMEOUT):
        self.api_key = api_key
        self.model = model
        self.voice = voice
        self.timeout = timeout
        self._cache: Dict[str, bytes] = {}

    async def synthesize(self, text: str) -> bytes:
        """Return raw PCM16 audio for ``text``."""
        if text in self._cache:
            return self._cache[text]
        if not self.api_key:
            raise VoiceConnectionError("No API key configured for prompt synthesis")
        pcm = await asyncio.to_thread(self._request, text)
        self._cache[text] = pcm
        return pcm

    def _request(self, text: str) -> bytes:
        payload = SpeechRequest.build(text, self.voice).model_dump_json(exclude_none=True)
        try:
            response = requests.post(
                GENERATE_CONTENT_URL.format(model=self.model),
                headers={"x-goog-api-key": self.api_key, "Content-Type": "application/json"},
                data=payload,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise VoiceConnectionError(f"Speech synthesis request failed: {e}") from e

        if response.status_code != 200:
            raise VoiceConnectionError(
                f"Speech synthesis failed ({response.status_code}): {response.text[:200]}"
            )
        try:
            audio = GenerateContentResponse(**response.json()).first_audio()
        except ValueError as e:
            raise VoiceConnectionError(f"Unreadable speech synthesis response: {e}") from e
        if not audio:
            raise VoiceConnectionError("Speech synthesis returned no audio")
        return decode(audio)


class SpeechPromptPlayer:
    """Plays one prompt at a time; starting a prompt stops the previous one."""

    def __init__(self, output, synthesizer: PromptSynthesizer):
        self.output = output
        self.synthesizer = synthesizer
        self._generation = 0
        self._task: Optional[asyncio.Task] = None
        self._source = None

    def play(self, text: str, on_finished: Callable[[], None]) -> None:
        self.stop()
        generation = self._generation
        logger.debug(f"Playing prompt: {text}")
        self._task = asyncio.ensure_future(self._play(text, on_finished, generation))

    def stop(self) -> None:
        self._generation += 1
        task, self._task = self._task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        if self._source is not None:
            self._source.stop()
            self._source = None

    async def _play(self, text: str, on_finished: Callable[[], None], generation: int) -> None:
        try:
            pcm = await self.synthesizer.synthesize(text)
        except VoiceConnectionError as e:
            logger.error(f"IVR prompt failed: {e}")
            self._finish(generation, on_finished)
            return
        if generation != self._generation:
            return
        buffer = decode_audio_data(pcm, self.output.sample_rate)
        self._source = self.output.schedule(
            buffer.samples, on_ended=lambda _source: self._finish(generation, on_finished)
        )

    def _finish(self, generation: int, on_finished: Callable[[], None]) -> None:
        if generation != self._generation:
            return
        self._generation += 1
        self._source = None
        on_finished()
