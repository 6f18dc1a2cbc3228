"""
Audio devices backed by PyAudio.

``MixerOutput`` is a small audio graph around one output stream: buffers are
scheduled at absolute times on the output clock (frames rendered so far divided
by the sample rate) and mixed in the stream callback. ``Microphone`` captures
fixed-size float blocks and hands them to the event loop.

PortAudio callbacks run on their own thread. Ended notifications and captured
blocks are posted to the event loop with ``call_soon_threadsafe``. Output taps
are the exception: they run on the PortAudio thread with every rendered block,
so a tap must be thread-safe and must not touch call state (the recorder and
the spectrum analysers guard their buffers with a lock).
"""

import asyncio
import logging
import threading
from typing import Callable, List, Optional

import numpy as np

from callsim.config.constants import (
    INPUT_BLOCK_SIZE,
    INPUT_SAMPLE_RATE,
    LOGGER_NAME,
    OUTPUT_BLOCK_SIZE,
    OUTPUT_SAMPLE_RATE,
)
from callsim.errors import MicrophonePermissionError

logger = logging.getLogger(LOGGER_NAME)

# Receives (samples, sample_rate) for every captured or rendered block
AudioTap = Callable[[np.ndarray, int], None]


class ScheduledSource:
    """A buffer scheduled on a MixerOutput, the equivalent of a buffer source node."""

    def __init__(self, samples: np.ndarray, start_frame: int, loop: bool = False,
                 volume: float = 1.0, on_ended: Optional[Callable[["ScheduledSource"], None]] = None):
        self.samples = np.asarray(samples, dtype=np.float32)
        self.start_frame = start_frame
        self.loop = loop
        self.volume = volume
        self.on_ended = on_ended
        self.stopped = False
        self.ended = False

    @property
    def end_frame(self) -> Optional[int]:
        if self.loop:
            return None
        return self.start_frame + self.samples.shape[0]

    def stop(self) -> None:
        self.stopped = True


class MixerOutput:
    """Output device with a sample-accurate clock and scheduled playback."""

    def __init__(self, sample_rate: int = OUTPUT_SAMPLE_RATE, block_size: int = OUTPUT_BLOCK_SIZE,
                 name: str = "output"):
        self.sample_rate = sample_rate
        self.block_size = block_size
        self.name = name
        self._lock = threading.Lock()
        self._sources: List[ScheduledSource] = []
        self._taps: List[AudioTap] = []
        self._frames_rendered = 0
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._pyaudio = None
        self._pa = None
        self._stream = None
        self.is_open = False
        self.closed = False

    @property
    def current_time(self) -> float:
        with self._lock:
            return self._frames_rendered / float(self.sample_rate)

    def open(self) -> None:
        """Open the PortAudio output stream; raises OSError when no device is available."""
        import pyaudio

        self._loop = asyncio.get_running_loop()
        self._pyaudio = pyaudio
        try:
            self._pa = pyaudio.PyAudio()
            self._stream = self._pa.open(
                format=pyaudio.paFloat32,
                channels=1,
                rate=self.sample_rate,
                output=True,
                frames_per_buffer=self.block_size,
                stream_callback=self._callback,
            )
            self._stream.start_stream()
        except Exception:
            self._release()
            raise
        self.is_open = True
        logger.info(f"Opened {self.name} output at {self.sample_rate} Hz")

    def add_tap(self, tap: AudioTap) -> None:
        with self._lock:
            self._taps.append(tap)

    def remove_tap(self, tap: AudioTap) -> None:
        with self._lock:
            if tap in self._taps:
                self._taps.remove(tap)

    def schedule(self, samples: np.ndarray, when: Optional[float] = None, *, loop: bool = False,
                 volume: float = 1.0, on_ended=None) -> ScheduledSource:
        """
        Schedule a buffer to start at ``when`` seconds on this output's clock.

        Start times in the past are clamped to the current clock position.
        """
        with self._lock:
            start_frame = self._frames_rendered
            if when is not None:
                start_frame = max(start_frame, int(round(when * self.sample_rate)))
            source = ScheduledSource(samples, start_frame, loop=loop, volume=volume, on_ended=on_ended)
            self._sources.append(source)

        if not self.is_open and not loop:
            # Nothing renders without a device; finish the source after its duration
            self._finish_later(source)
        return source

    def render(self, frame_count: int) -> np.ndarray:
        """Mix every active source into the next ``frame_count`` frames."""
        out = np.zeros(frame_count, dtype=np.float32)
        finished = []
        with self._lock:
            start = self._frames_rendered
            end = start + frame_count
            for source in list(self._sources):
                if source.stopped:
                    self._sources.remove(source)
                    finished.append(source)
                    continue
                length = source.samples.shape[0]
                if length == 0:
                    self._sources.remove(source)
                    finished.append(source)
                    continue
                if source.start_frame >= end:
                    continue
                first = max(start, source.start_frame)
                if source.loop:
                    index = (np.arange(first, end) - source.start_frame) % length
                    out[first - start:] += source.samples[index] * source.volume
                    continue
                last = min(end, source.end_frame)
                if last > first:
                    out[first - start:last - start] += (
                        source.samples[first - source.start_frame:last - source.start_frame] * source.volume
                    )
                if source.end_frame <= end:
                    self._sources.remove(source)
                    finished.append(source)
            self._frames_rendered = end
            taps = list(self._taps)

        np.clip(out, -1.0, 1.0, out=out)
        for tap in taps:
            tap(out, self.sample_rate)
        for source in finished:
            self._notify_ended(source)
        return out

    def stop_all(self) -> None:
        with self._lock:
            sources = list(self._sources)
            self._sources.clear()
        for source in sources:
            source.stop()
            self._notify_ended(source)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.stop_all()
        self._release()
        self.is_open = False
        logger.info(f"Closed {self.name} output")

    def _callback(self, in_data, frame_count, time_info, status):
        block = self.render(frame_count)
        return (block.tobytes(), self._pyaudio.paContinue)

    def _notify_ended(self, source: ScheduledSource) -> None:
        if source.ended:
            return
        source.ended = True
        if source.on_ended is None:
            return
        if self._loop is not None and self.is_open:
            try:
                self._loop.call_soon_threadsafe(source.on_ended, source)
            except RuntimeError:
                logger.debug(f"Event loop closed before {self.name} source ended")
        else:
            source.on_ended(source)

    def _finish_later(self, source: ScheduledSource) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        delay = source.samples.shape[0] / float(self.sample_rate)

        def finish():
            with self._lock:
                if source in self._sources:
                    self._sources.remove(source)
            self._notify_ended(source)

        loop.call_later(delay, finish)

    def _release(self) -> None:
        if self._stream is not None:
            try:
                self._stream.stop_stream()
                self._stream.close()
            except Exception as e:
                logger.warning(f"Error closing {self.name} stream: {e}")
            self._stream = None
        if self._pa is not None:
            self._pa.terminate()
            self._pa = None


class Microphone:
    """Captures mono float blocks from the default input device."""

    def __init__(self, sample_rate: int = INPUT_SAMPLE_RATE, block_size: int = INPUT_BLOCK_SIZE):
        self.sample_rate = sample_rate
        self.block_size = block_size
        self._listeners: List[AudioTap] = []
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._pyaudio = None
        self._pa = None
        self._stream = None
        self.is_open = False

    def add_listener(self, listener: AudioTap) -> None:
        self._listeners.append(listener)

    def open(self) -> None:
        """Start capturing; raises MicrophonePermissionError when the device cannot be opened."""
        import pyaudio

        self._loop = asyncio.get_running_loop()
        self._pyaudio = pyaudio
        try:
            self._pa = pyaudio.PyAudio()
            self._stream = self._pa.open(
                format=pyaudio.paFloat32,
                channels=1,
                rate=self.sample_rate,
                input=True,
                frames_per_buffer=self.block_size,
                stream_callback=self._callback,
            )
            self._stream.start_stream()
        except OSError as e:
            self._release()
            raise MicrophonePermissionError(f"Microphone unavailable: {e}") from e
        self.is_open = True
        logger.info(f"Microphone opened: {self.sample_rate}Hz, block of {self.block_size} frames")

    def deliver(self, block: np.ndarray) -> None:
        """Hand one captured block to every listener (runs on the event loop)."""
        if not self.is_open:
            return
        for listener in self._listeners:
            listener(block, self.sample_rate)

    def close(self) -> None:
        if not self.is_open and self._pa is None:
            return
        self.is_open = False
        self._release()
        logger.info("Microphone stopped")

    def _callback(self, in_data, frame_count, time_info, status):
        block = np.frombuffer(in_data, dtype=np.float32).copy()
        try:
            self._loop.call_soon_threadsafe(self.deliver, block)
        except RuntimeError:
            logger.debug("Event loop closed while capturing")
        return (None, self._pyaudio.paContinue)

    def _release(self) -> None:
        if self._stream is not None:
            try:
                self._stream.stop_stream()
                self._stream.close()
            except Exception as e:
                logger.warning(f"Error closing microphone stream: {e}")
            self._stream = None
        if self._pa is not None:
            self._pa.terminate()
            self._pa = None
