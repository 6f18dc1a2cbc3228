"""
Unit tests for the audio codec helpers.
"""

import io
import wave

import numpy as np

from callsim.audio.codec import (
    decode,
    decode_audio_data,
    encode,
    float_to_pcm16,
    pcm16_to_float,
    read_wav,
    resample,
    to_wav,
)


def test_float_to_pcm16_scales_and_clips():
    """Full scale maps to the int16 range and out-of-range samples are clipped."""
    pcm = float_to_pcm16(np.array([0.0, 0.5, -1.0, 1.0, 2.0, -2.0], dtype=np.float32))
    values = np.frombuffer(pcm, dtype="<i2")

    assert values.tolist() == [0, 16384, -32768, 32767, 32767, -32768]


def test_pcm16_to_float_ignores_trailing_byte():
    data = np.array([16384, -16384], dtype="<i2").tobytes() + b"\x01"

    samples = pcm16_to_float(data)

    assert samples.dtype == np.float32
    np.testing.assert_allclose(samples, [0.5, -0.5])


def test_pcm16_to_float_stereo_shape():
    data = np.array([1, 2, 3, 4, 5, 6], dtype="<i2").tobytes()

    assert pcm16_to_float(data, channels=2).shape == (3, 2)


def test_decode_audio_data_uses_given_rate():
    """Chunk duration is derived from the fixed output rate, not the payload."""
    pcm = np.zeros(12000, dtype="<i2").tobytes()

    buffer = decode_audio_data(pcm, 24000)

    assert buffer.sample_rate == 24000
    assert buffer.frames == 12000
    assert buffer.duration == 0.5


def test_base64_helpers():
    payload = encode(b"\x00\x01\xff")

    assert payload == "AAH/"
    assert decode(payload) == b"\x00\x01\xff"


def test_resample_changes_length():
    samples = np.linspace(-1.0, 1.0, 16000, dtype=np.float32)

    resampled = resample(samples, 16000, 24000)

    assert resampled.shape[0] == 24000
    assert resampled[0] == samples[0]


def test_resample_same_rate_is_passthrough():
    samples = np.ones(10, dtype=np.float32)

    assert resample(samples, 24000, 24000) is samples


def test_to_wav_container():
    samples = np.zeros(2400, dtype=np.float32)

    data = to_wav(samples, 24000)

    with wave.open(io.BytesIO(data), "rb") as wf:
        assert wf.getnchannels() == 1
        assert wf.getsampwidth() == 2
        assert wf.getframerate() == 24000
        assert wf.getnframes() == 2400


def test_read_wav_downmixes_and_resamples(tmp_path):
    path = tmp_path / "bed.wav"
    stereo = np.tile(np.array([[8192, -8192]], dtype="<i2"), (8000, 1))
    with wave.open(str(path), "wb") as wf:
        wf.setnchannels(2)
        wf.setsampwidth(2)
        wf.setframerate(8000)
        wf.writeframes(stereo.tobytes())

    samples = read_wav(path, 24000)

    assert samples.shape[0] == 24000
    np.testing.assert_allclose(samples, 0.0, atol=1e-6)
