"""
Conversions between base64 wire payloads, 16-bit PCM and float sample buffers.

Float buffers are ``float32`` arrays in [-1.0, 1.0]. Mono buffers are 1-D;
multi-channel buffers are shaped ``(frames, channels)``.
"""

import base64
import io
import wave
from dataclasses import dataclass

import numpy as np

PCM16_SCALE = 32768.0


@dataclass
class AudioBuffer:
    """Decoded audio ready to be scheduled on an output."""

    samples: np.ndarray
    sample_rate: int
    channels: int = 1

    @property
    def frames(self) -> int:
        return int(self.samples.shape[0])

    @property
    def duration(self) -> float:
        return self.frames / float(self.sample_rate)


def encode(data: bytes) -> str:
    return base64.b64encode(data).decode("utf-8")


def decode(payload: str) -> bytes:
    return base64.b64decode(payload)


def float_to_pcm16(samples: np.ndarray) -> bytes:
    """Convert float samples to little-endian signed 16-bit PCM."""
    scaled = np.asarray(samples, dtype=np.float32) * PCM16_SCALE
    return np.clip(scaled, -32768, 32767).astype("<i2").tobytes()


def pcm16_to_float(data: bytes, channels: int = 1) -> np.ndarray:
    # Trailing odd byte of a truncated chunk is ignored
    usable = len(data) - (len(data) % (2 * channels))
    samples = np.frombuffer(data[:usable], dtype="<i2").astype(np.float32) / PCM16_SCALE
    if channels > 1:
        return samples.reshape(-1, channels)
    return samples


def decode_audio_data(data: bytes, sample_rate: int, channels: int = 1) -> AudioBuffer:
    """Turn raw PCM16 bytes into a playable buffer at a fixed sample rate."""
    return AudioBuffer(pcm16_to_float(data, channels), sample_rate, channels)


def resample(samples: np.ndarray, src_rate: int, dst_rate: int) -> np.ndarray:
    """Linear-interpolation resampling of a mono buffer."""
    samples = np.asarray(samples, dtype=np.float32)
    if src_rate == dst_rate or samples.size == 0:
        return samples
    count = int(round(samples.shape[0] * dst_rate / float(src_rate)))
    src_positions = np.arange(samples.shape[0]) / float(src_rate)
    dst_positions = np.arange(count) / float(dst_rate)
    return np.interp(dst_positions, src_positions, samples).astype(np.float32)


def to_wav(samples: np.ndarray, sample_rate: int, channels: int = 1) -> bytes:
    """Wrap float samples in a 16-bit WAV container."""
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(2)  # 2 bytes for 'int16'
        wf.setframerate(sample_rate)
        wf.writeframes(float_to_pcm16(samples))
    return buffer.getvalue()


def read_wav(path, target_rate: int) -> np.ndarray:
    """Load a 16-bit WAV file as a mono float buffer at ``target_rate``."""
    with wave.open(str(path), "rb") as wf:
        if wf.getsampwidth() != 2:
            raise ValueError(f"{path}: only 16-bit WAV files are supported")
        channels = wf.getnchannels()
        rate = wf.getframerate()
        samples = pcm16_to_float(wf.readframes(wf.getnframes()), channels)
    if channels > 1:
        samples = samples.mean(axis=1).astype(np.float32)
    return resample(samples, rate, target_rate)
