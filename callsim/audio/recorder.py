"""
Local recording of the call's mixed audio.

Blocks from every tap (caller microphone, agent playback, prompts and tones)
are placed on a shared timeline by wall-clock arrival and summed, then wrapped
in a WAV container when the recorder stops.
"""

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from callsim.audio.codec import resample, to_wav
from callsim.config.constants import LOGGER_NAME, OUTPUT_SAMPLE_RATE, RECORDING_MIME_TYPE

logger = logging.getLogger(LOGGER_NAME)

GROWTH_SECONDS = 10


@dataclass
class Recording:
    data: bytes
    mime_type: str
    duration: float


class CallRecorder:
    def __init__(self, sample_rate: int = OUTPUT_SAMPLE_RATE, clock: Callable[[], float] = time.monotonic):
        self.sample_rate = sample_rate
        self._clock = clock
        self._lock = threading.Lock()
        self._buffer = np.zeros(0, dtype=np.float32)
        self._length = 0
        self._started_at: Optional[float] = None
        self._recording: Optional[Recording] = None
        self._stopping: Optional[asyncio.Future] = None

    @property
    def is_recording(self) -> bool:
        return self._started_at is not None and self._stopping is None

    def start(self) -> None:
        with self._lock:
            self._buffer = np.zeros(self.sample_rate * GROWTH_SECONDS, dtype=np.float32)
            self._length = 0
            self._started_at = self._clock()
            self._recording = None
            self._stopping = None
        logger.info("Call recording started")

    def capture(self, samples: np.ndarray, sample_rate: int) -> None:
        """Mix one block into the timeline; the block is taken to end now."""
        if not self.is_recording:
            return
        block = resample(samples, sample_rate, self.sample_rate)
        if block.size == 0:
            return
        with self._lock:
            end = int(round((self._clock() - self._started_at) * self.sample_rate))
            start = max(0, end - block.shape[0])
            stop = start + block.shape[0]
            if stop > self._buffer.shape[0]:
                grown = np.zeros(stop + self.sample_rate * GROWTH_SECONDS, dtype=np.float32)
                grown[:self._length] = self._buffer[:self._length]
                self._buffer = grown
            self._buffer[start:stop] += block
            self._length = max(self._length, stop)

    async def stop(self) -> Optional[Recording]:
        """
        Stop recording and finalize the container.

        Safe to call more than once: later calls return the same recording.
        Returns None when the recorder was never started.
        """
        if self._started_at is None:
            return None
        if self._stopping is None:
            with self._lock:
                samples = np.clip(self._buffer[:self._length], -1.0, 1.0)
            self._stopping = asyncio.ensure_future(asyncio.to_thread(to_wav, samples, self.sample_rate))
            data = await self._stopping
            self._recording = Recording(
                data=data,
                mime_type=RECORDING_MIME_TYPE,
                duration=samples.shape[0] / float(self.sample_rate),
            )
            logger.info(f"Call recording finalized: {self._recording.duration:.1f}s, {len(data)/1024:.1f} KB")
        else:
            await self._stopping
        return self._recording
