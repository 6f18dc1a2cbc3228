"""
Tests for synthesized telephone tones and the tone engine.
"""

import wave
from unittest.mock import MagicMock

import numpy as np
import pytest

from callsim.audio.devices import MixerOutput
from callsim.audio.tones import (
    DTMF_FREQUENCIES,
    ToneEngine,
    busy_signal,
    dtmf_tone,
    hold_music,
    load_bed,
    office_ambience,
    ringback,
)

RATE = 8000


def dominant_frequencies(samples, sample_rate, count=2):
    spectrum = np.abs(np.fft.rfft(samples))
    freqs = np.fft.rfftfreq(samples.shape[0], 1.0 / sample_rate)
    return sorted(freqs[np.argsort(spectrum)[-count:]])


def test_dtmf_table():
    assert DTMF_FREQUENCIES["1"] == (697, 1209)
    assert DTMF_FREQUENCIES["0"] == (941, 1336)
    assert DTMF_FREQUENCIES["#"] == (941, 1477)


@pytest.mark.parametrize("key", ["5", "*"])
def test_dtmf_tone_contains_both_frequencies(key):
    tone = dtmf_tone(key, duration=1.0, sample_rate=RATE)

    low, high = dominant_frequencies(tone, RATE)

    assert low == pytest.approx(DTMF_FREQUENCIES[key][0], abs=2)
    assert high == pytest.approx(DTMF_FREQUENCIES[key][1], abs=2)


def test_dtmf_tone_fades_in_and_out():
    tone = dtmf_tone("1", sample_rate=RATE)

    assert tone.shape[0] == int(0.15 * RATE)
    assert tone[0] == 0.0
    assert tone[-1] == 0.0
    assert np.abs(tone).max() <= 0.5


def test_unknown_key_rejected():
    with pytest.raises(ValueError):
        dtmf_tone("x")


def test_ringback_cadence():
    cycle = ringback(sample_rate=RATE)

    assert cycle.shape[0] == 6 * RATE
    assert np.abs(cycle[: 2 * RATE]).max() > 0
    assert not cycle[2 * RATE:].any()


def test_busy_signal_cadence():
    busy = busy_signal(cycles=4, sample_rate=RATE)

    assert busy.shape[0] == 4 * RATE
    assert not busy[RATE // 2: RATE].any()


def test_beds_are_bounded():
    for bed in (hold_music(RATE), office_ambience(duration=1.0, sample_rate=RATE)):
        assert bed.dtype == np.float32
        assert np.abs(bed).max() <= 1.0


def test_ambience_is_deterministic():
    np.testing.assert_array_equal(office_ambience(1.0, RATE), office_ambience(1.0, RATE))


def test_load_bed_falls_back_when_missing(tmp_path):
    fallback = MagicMock(return_value=np.zeros(4, dtype=np.float32))

    bed = load_bed(tmp_path / "missing.wav", fallback, RATE)

    fallback.assert_called_once_with(sample_rate=RATE)
    assert bed.shape[0] == 4


def test_load_bed_reads_file(tmp_path):
    path = tmp_path / "music.wav"
    with wave.open(str(path), "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(RATE)
        wf.writeframes(np.full(RATE, 1000, dtype="<i2").tobytes())
    fallback = MagicMock()

    bed = load_bed(path, fallback, RATE)

    fallback.assert_not_called()
    assert bed.shape[0] == RATE


class TestToneEngine:
    @pytest.fixture
    def output(self):
        return MixerOutput(sample_rate=RATE)

    @pytest.fixture
    def engine(self, output):
        return ToneEngine(output)

    def test_ringback_loops_until_stopped(self, engine, output):
        engine.start_ringback()
        engine.start_ringback()

        assert engine.is_playing("ringback")
        assert output.render(RATE).any()

        engine.stop_ringback()

        assert not engine.is_playing("ringback")
        assert not output.render(RATE).any()

    def test_ambience_volume(self, engine, output):
        engine.start_ambience()

        assert np.abs(output.render(RATE)).max() <= 0.05 + 1e-6

    def test_stop_all_stops_every_loop(self, engine):
        engine.start_hold_music()
        engine.start_ambience()

        engine.stop_all()

        assert not engine.is_playing("hold")
        assert not engine.is_playing("ambience")

    def test_key_and_failure_tones_are_one_shots(self, engine, output):
        engine.play_key("7")
        engine.play_key("x")
        engine.play_failure()

        assert output.render(RATE // 10).any()
        assert not engine.is_playing("ringback")
