"""
Millisecond timers for the IVR.

A timer source exposes ``call_later(delay_ms, callback)`` returning a handle
with ``cancel()``. ``LoopTimers`` runs them on the asyncio event loop; tests
substitute a fake clock with the same interface.
"""

import asyncio


class LoopTimers:
    def __init__(self, loop: asyncio.AbstractEventLoop = None):
        self._loop = loop

    def call_later(self, delay_ms: int, callback) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay_ms / 1000.0, callback)
