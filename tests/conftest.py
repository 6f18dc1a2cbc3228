import logging

import pytest

from callsim.models.call import AgentDescriptor, CallSession, CallStatus


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging configuration before each test"""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    logging.basicConfig(level=logging.NOTSET)
    app_logger = logging.getLogger("callsim")
    for handler in app_logger.handlers[:]:
        app_logger.removeHandler(handler)
        handler.close()
    app_logger.setLevel(logging.NOTSET)
    app_logger.propagate = True
    yield


class FakeTimer:
    def __init__(self, due, callback):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeTimers:
    """Millisecond clock advanced by hand."""

    def __init__(self):
        self.now = 0
        self._timers = []

    def call_later(self, delay_ms, callback):
        timer = FakeTimer(self.now + delay_ms, callback)
        self._timers.append(timer)
        return timer

    @property
    def pending(self):
        return [timer for timer in self._timers if not timer.cancelled]

    def advance(self, ms):
        target = self.now + ms
        while True:
            due = sorted((t for t in self.pending if t.due <= target), key=lambda t: t.due)
            if not due:
                break
            timer = due[0]
            self._timers.remove(timer)
            self.now = max(self.now, timer.due)
            timer.callback()
        self.now = target


class FakePromptPlayer:
    """Records prompts; ``finish()`` completes the one currently playing."""

    def __init__(self, auto_finish=False):
        self.auto_finish = auto_finish
        self.played = []
        self.stops = 0
        self._on_finished = None

    @property
    def last(self):
        return self.played[-1] if self.played else None

    @property
    def playing(self):
        return self._on_finished is not None

    def play(self, text, on_finished):
        self.played.append(text)
        self._on_finished = on_finished
        if self.auto_finish:
            self.finish()

    def finish(self):
        callback, self._on_finished = self._on_finished, None
        if callback is not None:
            callback()

    def stop(self):
        self.stops += 1
        self._on_finished = None


@pytest.fixture
def timers():
    return FakeTimers()


@pytest.fixture
def prompts():
    return FakePromptPlayer()


@pytest.fixture
def agent():
    return AgentDescriptor(
        id="agent_1",
        name="Ava Customer Care",
        voiceProfile="Professional Male",
        voiceStyleDescription="Warm and unhurried",
        systemPromptText="You are Ava, a customer care specialist.",
    )


@pytest.fixture
def session(agent):
    return CallSession(agent=agent, status=CallStatus.CONNECTING, started_at=1_000)


@pytest.fixture
def immediate_prompts():
    """Prompt player whose prompts complete as soon as they start."""
    return FakePromptPlayer(auto_finish=True)
