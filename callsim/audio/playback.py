"""
Gapless scheduling of inbound agent audio.

Each chunk starts exactly where the previous one ends, and never before the
output clock's current time. An interruption stops every chunk still in
flight and moves the cursor back to "now" so the next chunk plays at once.
"""

import logging
from typing import Set

from callsim.audio.codec import AudioBuffer
from callsim.audio.devices import ScheduledSource
from callsim.config.constants import LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)


class PlaybackScheduler:
    def __init__(self, output):
        self.output = output
        self._cursor = 0.0
        self._in_flight: Set[ScheduledSource] = set()

    @property
    def cursor(self) -> float:
        """Scheduled end of the last queued chunk, in output-clock seconds."""
        return self._cursor

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def enqueue(self, buffer: AudioBuffer) -> float:
        """Schedule a chunk back-to-back with the previous one; returns its start time."""
        if buffer.sample_rate != self.output.sample_rate:
            logger.warning(
                f"Chunk at {buffer.sample_rate} Hz scheduled on {self.output.sample_rate} Hz output"
            )
        start = max(self._cursor, self.output.current_time)
        source = self.output.schedule(buffer.samples, start, on_ended=self._on_ended)
        self._in_flight.add(source)
        self._cursor = start + buffer.duration
        logger.debug(f"Scheduled {buffer.duration:.3f}s chunk at {start:.3f}s ({len(self._in_flight)} in flight)")
        return start

    def interrupt(self) -> int:
        """Hard-stop all pending playback; returns how many chunks were cancelled."""
        cancelled = list(self._in_flight)
        for source in cancelled:
            source.stop()
        self._in_flight.clear()
        self._cursor = self.output.current_time
        if cancelled:
            logger.info(f"Playback interrupted, {len(cancelled)} chunk(s) cancelled")
        return len(cancelled)

    def _on_ended(self, source: ScheduledSource) -> None:
        self._in_flight.discard(source)
