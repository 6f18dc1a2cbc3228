"""
Oscillator-based synthesis of telephone signalling and call sound effects.

Everything here is generated with numpy: DTMF keypad tones, North American
ringback and busy cadences, plus synthesized hold music and office ambience
beds used when no audio file is configured.
"""

import logging
from typing import Dict, Optional

import numpy as np

from callsim.audio.codec import read_wav
from callsim.config.constants import (
    AMBIENCE_VOLUME,
    DTMF_TONE_DURATION,
    HOLD_MUSIC_VOLUME,
    LOGGER_NAME,
    OUTPUT_SAMPLE_RATE,
)

logger = logging.getLogger(LOGGER_NAME)

DTMF_ROWS = (697, 770, 852, 941)
DTMF_COLUMNS = (1209, 1336, 1477, 1633)
DTMF_KEYS = ("123A", "456B", "789C", "*0#D")

DTMF_FREQUENCIES: Dict[str, tuple] = {
    key: (DTMF_ROWS[row], DTMF_COLUMNS[column])
    for row, keys in enumerate(DTMF_KEYS)
    for column, key in enumerate(keys)
}

RINGBACK_FREQUENCIES = (440, 480)
BUSY_FREQUENCIES = (480, 620)

# Fade length at tone edges, avoids clicks
RAMP_SECONDS = 0.005


def silence(duration: float, sample_rate: int = OUTPUT_SAMPLE_RATE) -> np.ndarray:
    return np.zeros(int(round(duration * sample_rate)), dtype=np.float32)


def dual_tone(low: float, high: float, duration: float, sample_rate: int = OUTPUT_SAMPLE_RATE,
              amplitude: float = 0.25) -> np.ndarray:
    """Sum of two sines with short linear fades at both ends."""
    count = int(round(duration * sample_rate))
    t = np.arange(count) / float(sample_rate)
    tone = amplitude * (np.sin(2 * np.pi * low * t) + np.sin(2 * np.pi * high * t))
    ramp = min(int(RAMP_SECONDS * sample_rate), count // 2)
    if ramp:
        envelope = np.ones(count)
        envelope[:ramp] = np.linspace(0.0, 1.0, ramp)
        envelope[-ramp:] = np.linspace(1.0, 0.0, ramp)
        tone *= envelope
    return tone.astype(np.float32)


def dtmf_tone(key: str, duration: float = DTMF_TONE_DURATION, sample_rate: int = OUTPUT_SAMPLE_RATE) -> np.ndarray:
    if key not in DTMF_FREQUENCIES:
        raise ValueError(f"Not a keypad key: {key!r}")
    low, high = DTMF_FREQUENCIES[key]
    return dual_tone(low, high, duration, sample_rate)


def cadence(frequencies: tuple, on: float, off: float, cycles: int = 1,
            sample_rate: int = OUTPUT_SAMPLE_RATE) -> np.ndarray:
    cycle = np.concatenate([dual_tone(*frequencies, on, sample_rate), silence(off, sample_rate)])
    return np.tile(cycle, cycles)


def ringback(sample_rate: int = OUTPUT_SAMPLE_RATE) -> np.ndarray:
    """One ringback cycle: 2 s on, 4 s off."""
    return cadence(RINGBACK_FREQUENCIES, 2.0, 4.0, sample_rate=sample_rate)


def busy_signal(cycles: int = 4, sample_rate: int = OUTPUT_SAMPLE_RATE) -> np.ndarray:
    """Busy tone, 0.5 s on and 0.5 s off."""
    return cadence(BUSY_FREQUENCIES, 0.5, 0.5, cycles, sample_rate)


def hold_music(sample_rate: int = OUTPUT_SAMPLE_RATE) -> np.ndarray:
    """A soft eight-second arpeggio loop."""
    notes = (261.63, 329.63, 392.0, 523.25, 392.0, 329.63, 293.66, 349.23,
             440.0, 587.33, 440.0, 349.23, 246.94, 293.66, 392.0, 493.88)
    note_length = 0.5
    count = int(round(note_length * sample_rate))
    t = np.arange(count) / float(sample_rate)
    envelope = np.exp(-3.0 * t)
    phrases = [
        (0.6 * np.sin(2 * np.pi * freq * t) + 0.2 * np.sin(4 * np.pi * freq * t)) * envelope
        for freq in notes
    ]
    return (0.3 * np.concatenate(phrases)).astype(np.float32)


def office_ambience(duration: float = 4.0, sample_rate: int = OUTPUT_SAMPLE_RATE, seed: int = 7) -> np.ndarray:
    """Low brown-noise bed, looped under the call."""
    rng = np.random.default_rng(seed)
    walk = np.cumsum(rng.standard_normal(int(round(duration * sample_rate))))
    walk -= np.linspace(walk[0], walk[-1], walk.shape[0])  # seamless loop point
    peak = np.max(np.abs(walk)) or 1.0
    return (0.5 * walk / peak).astype(np.float32)


def load_bed(path, fallback, sample_rate: int = OUTPUT_SAMPLE_RATE) -> np.ndarray:
    if path:
        try:
            return read_wav(path, sample_rate)
        except (OSError, ValueError, EOFError) as e:
            logger.warning(f"Could not load {path}, using synthesized audio: {e}")
    return fallback(sample_rate=sample_rate)


class ToneEngine:
    """Plays signalling tones and looping beds on a feedback output."""

    def __init__(self, output, hold_music_path=None, ambience_path=None):
        self.output = output
        self._hold_music_path = hold_music_path
        self._ambience_path = ambience_path
        self._loops = {}
        self._beds: Dict[str, np.ndarray] = {}
        self._ringback = ringback(output.sample_rate)
        self._busy = busy_signal(sample_rate=output.sample_rate)

    def start_ringback(self) -> None:
        self.start_loop("ringback", self._ringback)

    def stop_ringback(self) -> None:
        self.stop_loop("ringback")

    def play_key(self, key: str) -> None:
        try:
            self.output.schedule(dtmf_tone(key, sample_rate=self.output.sample_rate))
        except ValueError:
            logger.debug(f"No keypad tone for {key!r}")

    def play_failure(self) -> None:
        self.output.schedule(self._busy)

    def start_hold_music(self) -> None:
        self.start_loop("hold", self._bed("hold", self._hold_music_path, hold_music), HOLD_MUSIC_VOLUME)

    def stop_hold_music(self) -> None:
        self.stop_loop("hold")

    def start_ambience(self) -> None:
        self.start_loop("ambience", self._bed("ambience", self._ambience_path, office_ambience), AMBIENCE_VOLUME)

    def stop_ambience(self) -> None:
        self.stop_loop("ambience")

    def is_playing(self, name: str) -> bool:
        return name in self._loops

    def start_loop(self, name: str, samples: np.ndarray, volume: float = 1.0) -> None:
        if name in self._loops:
            return
        self._loops[name] = self.output.schedule(samples, loop=True, volume=volume)
        logger.debug(f"Started {name} loop")

    def stop_loop(self, name: str) -> None:
        source = self._loops.pop(name, None)
        if source is not None:
            source.stop()
            logger.debug(f"Stopped {name} loop")

    def stop_all(self) -> None:
        for name in list(self._loops):
            self.stop_loop(name)

    def _bed(self, name: str, path, fallback) -> np.ndarray:
        if name not in self._beds:
            self._beds[name] = load_bed(path, fallback, self.output.sample_rate)
        return self._beds[name]
