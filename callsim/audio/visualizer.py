"""
Spectrum analysis and bar-graph visualization of call audio.

``SpectrumAnalyser`` mirrors a browser analyser node: it keeps the most recent
``fft_size`` samples and reports smoothed byte-scaled magnitudes per frequency
bin. ``SpectrumVisualizer`` periodically samples its analysers and hands bar
geometry to pluggable renderers.
"""

import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from callsim.config.constants import (
    ANALYSER_FFT_SIZE,
    LOGGER_NAME,
    VISUALIZER_BARS,
    VISUALIZER_FPS,
)

logger = logging.getLogger(LOGGER_NAME)

MIN_DECIBELS = -100.0
MAX_DECIBELS = -30.0
SMOOTHING = 0.8
BAR_GAMMA = 2.2


@dataclass
class Bar:
    x: float
    y: float
    width: float
    height: float


class SpectrumAnalyser:
    def __init__(self, fft_size: int = ANALYSER_FFT_SIZE, smoothing: float = SMOOTHING):
        self.fft_size = fft_size
        self.smoothing = smoothing
        self._lock = threading.Lock()
        self._window = np.zeros(fft_size, dtype=np.float32)
        self._previous = np.zeros(fft_size // 2, dtype=np.float64)
        self._blackman = np.blackman(fft_size)

    @property
    def frequency_bin_count(self) -> int:
        return self.fft_size // 2

    def push(self, samples: np.ndarray, sample_rate: int = 0) -> None:
        """Feed audio; usable directly as a device tap."""
        samples = np.asarray(samples, dtype=np.float32)
        with self._lock:
            if samples.shape[0] >= self.fft_size:
                self._window = samples[-self.fft_size:].copy()
            else:
                self._window = np.concatenate([self._window[samples.shape[0]:], samples])

    def byte_frequency_data(self) -> np.ndarray:
        with self._lock:
            window = self._window.copy()
        spectrum = np.abs(np.fft.rfft(window * self._blackman))[:self.frequency_bin_count] / self.fft_size
        self._previous = self.smoothing * self._previous + (1.0 - self.smoothing) * spectrum
        with np.errstate(divide="ignore"):
            decibels = 20.0 * np.log10(self._previous)
        scaled = 255.0 * (decibels - MIN_DECIBELS) / (MAX_DECIBELS - MIN_DECIBELS)
        return np.clip(np.nan_to_num(scaled, neginf=0.0), 0, 255).astype(np.uint8)


def bar_levels(data: np.ndarray, num_bars: int = VISUALIZER_BARS) -> np.ndarray:
    """Average frequency bins into ``num_bars`` levels in [0, 1], non-linearly scaled."""
    data = np.asarray(data, dtype=np.float64)
    step = data.shape[0] // num_bars
    if step > 0:
        averages = data[:step * num_bars].reshape(num_bars, step).mean(axis=1)
    else:
        averages = np.resize(data, num_bars)
    return np.power(averages / 255.0, BAR_GAMMA)


def layout_bars(levels: Sequence[float], width: float, height: float) -> List[Bar]:
    """Bars drawn from the vertical center with one unit of spacing."""
    bar_width = width / float(len(levels))
    bars = []
    for i, level in enumerate(levels):
        bar_height = level * height
        if bar_height <= 0:
            continue
        bars.append(Bar(x=i * bar_width, y=(height - bar_height) / 2.0, width=bar_width - 1, height=bar_height))
    return bars


def render_text(bars: Sequence[Bar], width: float, height: float,
                columns: int = VISUALIZER_BARS, rows: int = 8) -> str:
    """Terminal rendering of a bar layout, one character column per bar slot."""
    levels = [0.0] * columns
    slot = width / float(columns)
    for bar in bars:
        index = min(columns - 1, int(round(bar.x / slot)))
        levels[index] = bar.height / float(height)
    lines = []
    for row in range(rows):
        distance = abs(row - (rows - 1) / 2.0)
        lines.append("".join("#" if level * rows / 2.0 > distance else " " for level in levels))
    return "\n".join(lines)


# A renderer receives the bars for one frame and the color of its channel
Renderer = Callable[[List[Bar], str], None]


class SpectrumVisualizer:
    """Periodic sampling loop driving one renderer per analyser."""

    def __init__(self, channels: Sequence[Tuple[SpectrumAnalyser, Renderer, str]],
                 width: float = 256, height: float = 64, fps: int = VISUALIZER_FPS):
        self.channels = list(channels)
        self.width = width
        self.height = height
        self.interval = 1.0 / fps
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def draw(self) -> None:
        for analyser, renderer, color in self.channels:
            levels = bar_levels(analyser.byte_frequency_data())
            renderer(layout_bars(levels, self.width, self.height), color)

    def start(self) -> None:
        if not self.running:
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        while True:
            try:
                self.draw()
            except Exception as e:
                logger.warning(f"Visualizer frame failed: {e}")
            await asyncio.sleep(self.interval)
