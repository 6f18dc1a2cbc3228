"""
IVR state machine for the pre-agent phase of a call.

All inputs (keypresses, timer expirations, prompt completions, connect and
hangup) are turned into events and processed one at a time from a single
queue, so a callback that fires while an event is being handled is queued
behind it instead of running re-entrantly.

Every state entry bumps an epoch. Timers carry the epoch they were armed in
and prompts carry a token; an expiration or completion whose epoch or token
no longer matches is stale and ignored.
"""

import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional

from callsim.config.constants import LOGGER_NAME, RING_DURATION_MS, ROUTING_DELAY_MS
from callsim.errors import InvalidInputError, IvrTimeoutError
from callsim.ivr.menu import (
    INVALID_OPTION_PROMPT,
    MENUS,
    NO_RESPONSE_PROMPT,
    Menu,
    routing_prompt,
)
from callsim.models.call import CallSession, CallStatus, Department, EndReason, IvrState

logger = logging.getLogger(LOGGER_NAME)


# Events
@dataclass(frozen=True)
class Start:
    pass


@dataclass(frozen=True)
class KeyPressed:
    key: str


@dataclass(frozen=True)
class TimerElapsed:
    epoch: int
    purpose: str


@dataclass(frozen=True)
class PromptFinished:
    token: int


@dataclass(frozen=True)
class AgentConnected:
    pass


@dataclass(frozen=True)
class Hangup:
    pass


class PromptKind(str, Enum):
    MENU = "menu"
    INVALID = "invalid"
    GOODBYE = "goodbye"
    ROUTING = "routing"


RING = "ring"
RESPONSE = "response"
ROUTE = "route"


class IvrStateMachine:
    """
    Drives ``session.ivr_state`` from ringing through routing.

    Collaborators:
        prompts: ``play(text, on_finished)`` / ``stop()``
        tones:   ``start_ringback()`` / ``stop_ringback()`` / ``play_key(key)``
        timers:  ``call_later(delay_ms, callback)`` returning a cancellable handle

    Callbacks:
        on_route(department): routing delay elapsed, open the agent session
        on_end(reason, error): the IVR ended the call on its own
        on_system_message(text): a system line for the transcript
    """

    def __init__(
        self,
        session: CallSession,
        prompts,
        tones,
        timers,
        on_route: Callable[[Department], None],
        on_end: Callable[[EndReason, Exception], None],
        on_system_message: Optional[Callable[[str], None]] = None,
        menus: Dict[IvrState, Menu] = None,
        ring_ms: int = RING_DURATION_MS,
        routing_delay_ms: int = ROUTING_DELAY_MS,
    ):
        self.session = session
        self.prompts = prompts
        self.tones = tones
        self.timers = timers
        self.on_route = on_route
        self.on_end = on_end
        self.on_system_message = on_system_message
        self.menus = menus if menus is not None else MENUS
        self.ring_ms = ring_ms
        self.routing_delay_ms = routing_delay_ms

        self._queue = deque()
        self._draining = False
        self._epoch = 0
        self._timer = None
        self._prompt_token = 0
        self._prompt_kind: Optional[PromptKind] = None
        self._pending_key: Optional[str] = None

    @property
    def state(self) -> IvrState:
        return self.session.ivr_state

    @property
    def prompt_playing(self) -> bool:
        return self._prompt_kind is not None

    @property
    def pending_key(self) -> Optional[str]:
        return self._pending_key

    # Public inputs
    def start(self) -> None:
        self.dispatch(Start())

    def press_key(self, key: str) -> None:
        self.dispatch(KeyPressed(key))

    def agent_connected(self) -> None:
        self.dispatch(AgentConnected())

    def hangup(self) -> None:
        self.dispatch(Hangup())

    def dispatch(self, event) -> None:
        self._queue.append(event)
        if self._draining:
            return
        self._draining = True
        try:
            while self._queue:
                event = self._queue.popleft()
                self._handlers[type(event)](self, event)
        finally:
            self._draining = False

    # Handlers
    def _on_start(self, event: Start) -> None:
        if self.state is not IvrState.IDLE:
            logger.warning(f"IVR already started (state {self.state.value})")
            return
        if self._enter(IvrState.RINGING):
            self.tones.start_ringback()
            self._arm(self.ring_ms, RING)

    def _on_key(self, event: KeyPressed) -> None:
        if self.state not in self.menus or self._prompt_kind is PromptKind.GOODBYE:
            logger.debug(f"Ignoring key {event.key!r} in {self.state.value}")
            return
        self.tones.play_key(event.key)
        if self._prompt_kind is not None:
            if self._pending_key is None:
                self._pending_key = event.key
                logger.debug(f"Queued key {event.key!r} until the prompt finishes")
            else:
                logger.debug(f"Dropped key {event.key!r}, one key already queued")
            return
        self._accept(event.key)

    def _on_timer(self, event: TimerElapsed) -> None:
        if event.epoch != self._epoch:
            logger.debug(f"Stale {event.purpose} timer from epoch {event.epoch} ignored")
            return
        self._timer = None

        if event.purpose == RING and self.state is IvrState.RINGING:
            self.tones.stop_ringback()
            self._enter(IvrState.LANGUAGE_SELECT)
        elif event.purpose == RESPONSE and self.state in self.menus:
            logger.info(f"No response in {self.state.value}")
            self._system_message(NO_RESPONSE_PROMPT)
            self._play(PromptKind.GOODBYE, NO_RESPONSE_PROMPT)
        elif event.purpose == ROUTE and self.state is IvrState.ROUTING:
            logger.info(f"Routing to {self.session.department.value} department")
            self.on_route(self.session.department)

    def _on_prompt_finished(self, event: PromptFinished) -> None:
        if event.token != self._prompt_token or self._prompt_kind is None:
            logger.debug("Stale prompt completion ignored")
            return
        kind, self._prompt_kind = self._prompt_kind, None

        if kind is PromptKind.MENU or kind is PromptKind.INVALID:
            key, self._pending_key = self._pending_key, None
            if key is not None:
                self._accept(key)
            elif kind is PromptKind.INVALID:
                self._play(PromptKind.MENU, self._menu.prompt_for(self.session.agent.name))
            else:
                self._arm(self._menu.timeout_ms, RESPONSE)
        elif kind is PromptKind.GOODBYE:
            error = IvrTimeoutError(self.state, self._menu.timeout_ms)
            self.on_end(EndReason.IVR_TIMEOUT, error)
        elif kind is PromptKind.ROUTING:
            self._arm(self.routing_delay_ms, ROUTE)

    def _on_agent_connected(self, event: AgentConnected) -> None:
        if self.state is not IvrState.ROUTING:
            logger.warning(f"Agent connected outside routing (state {self.state.value})")
            return
        self._enter(IvrState.CONNECTED_TO_AGENT)

    def _on_hangup(self, event: Hangup) -> None:
        if self.state is IvrState.ENDED:
            return
        self._reset()
        self.tones.stop_ringback()
        self.session.ivr_state = IvrState.ENDED
        logger.info("IVR ended")

    _handlers = {
        Start: _on_start,
        KeyPressed: _on_key,
        TimerElapsed: _on_timer,
        PromptFinished: _on_prompt_finished,
        AgentConnected: _on_agent_connected,
        Hangup: _on_hangup,
    }

    # Internals
    @property
    def _menu(self) -> Menu:
        return self.menus[self.state]

    def _accept(self, key: str) -> None:
        self._cancel_timer()
        self.session.dialed_digits.append(key)
        try:
            choice = self._menu.resolve(key)
        except InvalidInputError as e:
            logger.info(str(e))
            self._play(PromptKind.INVALID, INVALID_OPTION_PROMPT)
            return
        if choice.department is not None:
            self.session.department = choice.department
        self._enter(choice.next_state)

    def _enter(self, state: IvrState) -> bool:
        if self.session.status is not CallStatus.CONNECTING:
            logger.warning(f"Not entering {state.value}: call is {self.session.status.value}")
            return False
        self._reset()
        previous, self.session.ivr_state = self.session.ivr_state, state
        logger.info(f"IVR {previous.value} -> {state.value}")

        if state in self.menus:
            self._play(PromptKind.MENU, self.menus[state].prompt_for(self.session.agent.name))
        elif state is IvrState.ROUTING:
            self._play(PromptKind.ROUTING, routing_prompt(self.session.department))
        return True

    def _reset(self) -> None:
        self._cancel_timer()
        self._epoch += 1
        if self._prompt_kind is not None:
            self._prompt_kind = None
            self._prompt_token += 1
            self.prompts.stop()
        self._pending_key = None

    def _arm(self, delay_ms: int, purpose: str) -> None:
        self._cancel_timer()
        epoch = self._epoch
        self._timer = self.timers.call_later(delay_ms, lambda: self.dispatch(TimerElapsed(epoch, purpose)))

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _play(self, kind: PromptKind, text: str) -> None:
        self._prompt_token += 1
        token = self._prompt_token
        self._prompt_kind = kind
        self.prompts.play(text, lambda: self.dispatch(PromptFinished(token)))

    def _system_message(self, text: str) -> None:
        if self.on_system_message is not None:
            self.on_system_message(text)
