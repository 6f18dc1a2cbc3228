"""
Audio module: codecs, devices, scheduling, synthesis, recording and visualization.

Key components:
- codec: base64 / PCM16 / float conversions, resampling and WAV containers.
- devices: PyAudio-backed MixerOutput (scheduled, mixed playback with its own
  clock) and Microphone (fixed-size capture blocks).
- playback: PlaybackScheduler, gapless back-to-back scheduling with barge-in.
- tones: DTMF, ringback and busy synthesis plus hold music and ambience beds.
- recorder: CallRecorder, the mixed local recording of a call.
- visualizer: SpectrumAnalyser and the periodic SpectrumVisualizer loop.
"""

from callsim.audio.codec import AudioBuffer, decode_audio_data, float_to_pcm16
from callsim.audio.devices import Microphone, MixerOutput, ScheduledSource
from callsim.audio.playback import PlaybackScheduler
from callsim.audio.recorder import CallRecorder, Recording
from callsim.audio.tones import ToneEngine
from callsim.audio.visualizer import SpectrumAnalyser, SpectrumVisualizer
