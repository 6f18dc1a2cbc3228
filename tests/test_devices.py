"""
Tests for the mixing output and microphone fan-out, run without an audio device.
"""

import asyncio
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from callsim.audio.devices import Microphone, MixerOutput
from callsim.errors import MicrophonePermissionError, VoiceConnectionError


@pytest.fixture
def output():
    return MixerOutput(sample_rate=1000, block_size=100, name="test")


def test_clock_advances_with_rendered_frames(output):
    assert output.current_time == 0.0

    output.render(250)

    assert output.current_time == 0.25


def test_scheduled_buffer_plays_at_its_start_time(output):
    output.schedule(np.ones(100, dtype=np.float32), when=0.05)

    block = output.render(200)

    assert not block[:50].any()
    assert block[50:150].tolist() == [1.0] * 100
    assert not block[150:].any()


def test_start_in_the_past_is_clamped_to_now(output):
    output.render(100)

    source = output.schedule(np.ones(10, dtype=np.float32), when=0.0)

    assert source.start_frame == 100


def test_sources_are_mixed_and_clipped(output):
    output.schedule(np.full(10, 0.75, dtype=np.float32))
    output.schedule(np.full(10, 0.75, dtype=np.float32))

    block = output.render(10)

    assert block.max() == 1.0


def test_ended_callback_after_last_frame(output):
    ended = MagicMock()
    source = output.schedule(np.ones(150, dtype=np.float32), on_ended=ended)

    output.render(100)
    ended.assert_not_called()
    output.render(100)

    ended.assert_called_once_with(source)


def test_stopped_source_is_silenced_and_ends(output):
    ended = MagicMock()
    source = output.schedule(np.ones(500, dtype=np.float32), on_ended=ended)
    output.render(100)

    source.stop()
    block = output.render(100)

    assert not block.any()
    ended.assert_called_once_with(source)


def test_looping_source_repeats(output):
    output.schedule(np.array([0.1, 0.2], dtype=np.float32), loop=True, volume=0.5)

    block = output.render(5)

    np.testing.assert_allclose(block, [0.05, 0.1, 0.05, 0.1, 0.05], rtol=1e-6)


def test_taps_receive_rendered_blocks(output):
    tap = MagicMock()
    output.add_tap(tap)

    output.render(100)
    output.remove_tap(tap)
    output.render(100)

    assert tap.call_count == 1
    assert tap.call_args[0][1] == 1000


def test_stop_all_ends_every_source(output):
    ended = MagicMock()
    output.schedule(np.ones(100, dtype=np.float32), on_ended=ended)
    output.schedule(np.ones(100, dtype=np.float32), loop=True, on_ended=ended)

    output.stop_all()

    assert ended.call_count == 2
    assert not output.render(10).any()


@pytest.mark.asyncio
async def test_headless_output_finishes_after_duration():
    """Without a device, a one-shot buffer still reports its end on the loop."""
    output = MixerOutput(sample_rate=1000)
    done = asyncio.Event()

    output.schedule(np.ones(20, dtype=np.float32), on_ended=lambda source: done.set())

    await asyncio.wait_for(done.wait(), timeout=1.0)


def test_close_is_idempotent(output):
    output.close()
    output.close()

    assert output.closed is True


def test_microphone_delivers_to_listeners():
    mic = Microphone(sample_rate=16000, block_size=4)
    listener = MagicMock()
    mic.add_listener(listener)
    mic.is_open = True
    block = np.zeros(4, dtype=np.float32)

    mic.deliver(block)

    listener.assert_called_once_with(block, 16000)


@pytest.mark.asyncio
async def test_microphone_open_failure_is_a_permission_error():
    fake_pyaudio = MagicMock()
    fake_pyaudio.PyAudio.return_value.open.side_effect = OSError("Invalid input device")
    mic = Microphone()

    with patch.dict("sys.modules", {"pyaudio": fake_pyaudio}):
        with pytest.raises(MicrophonePermissionError) as excinfo:
            mic.open()

    assert isinstance(excinfo.value, VoiceConnectionError)
    assert mic.is_open is False
    fake_pyaudio.PyAudio.return_value.terminate.assert_called_once()
