"""
Tests for the IVR state machine, driven by a fake millisecond clock.
"""

from unittest.mock import MagicMock

import pytest

from callsim.errors import IvrTimeoutError
from callsim.ivr.menu import INVALID_OPTION_PROMPT, NO_RESPONSE_PROMPT
from callsim.ivr.state_machine import IvrStateMachine
from callsim.models.call import CallStatus, Department, EndReason, IvrState

LANGUAGE_PROMPT = (
    "Thank you for calling Ava. For English, press 1. Para Español, oprima el número dos."
)


@pytest.fixture
def tones():
    return MagicMock()


@pytest.fixture
def ivr(session, prompts, tones, timers):
    return IvrStateMachine(
        session,
        prompts,
        tones,
        timers,
        on_route=MagicMock(),
        on_end=MagicMock(),
        on_system_message=MagicMock(),
    )


def ring_through(ivr, timers):
    ivr.start()
    timers.advance(8000)


def to_main_menu(ivr, timers, prompts):
    ring_through(ivr, timers)
    prompts.finish()
    ivr.press_key("1")
    prompts.finish()


def test_start_rings(ivr, session, tones, timers):
    ivr.start()

    assert session.ivr_state is IvrState.RINGING
    tones.start_ringback.assert_called_once()
    assert [timer.due for timer in timers.pending] == [8000]


def test_ring_elapses_into_language_select(ivr, session, tones, timers, prompts):
    ivr.start()
    timers.advance(7999)
    assert session.ivr_state is IvrState.RINGING

    timers.advance(1)

    tones.stop_ringback.assert_called_once()
    assert session.ivr_state is IvrState.LANGUAGE_SELECT
    assert prompts.last == LANGUAGE_PROMPT


def test_response_timer_armed_after_prompt(ivr, timers, prompts):
    ring_through(ivr, timers)
    assert timers.pending == []

    prompts.finish()

    assert [timer.due - timers.now for timer in timers.pending] == [7000]


def test_no_response_ends_call(ivr, session, timers, prompts):
    """Ringing, then no input in language select: apology and graceful end."""
    ring_through(ivr, timers)
    prompts.finish()

    timers.advance(7000)

    ivr.on_system_message.assert_called_once_with(NO_RESPONSE_PROMPT)
    assert prompts.last == NO_RESPONSE_PROMPT
    ivr.on_end.assert_not_called()

    prompts.finish()

    reason, error = ivr.on_end.call_args[0]
    assert reason is EndReason.IVR_TIMEOUT
    assert isinstance(error, IvrTimeoutError)
    assert error.timeout_ms == 7000
    assert session.ivr_state is IvrState.LANGUAGE_SELECT


def test_keys_ignored_during_goodbye(ivr, session, timers, prompts):
    ring_through(ivr, timers)
    prompts.finish()
    timers.advance(7000)

    ivr.press_key("1")
    prompts.finish()

    assert session.dialed_digits == []
    ivr.on_end.assert_called_once()


def test_stale_menu_timeout_never_fires(ivr, session, timers, prompts):
    """Leaving main_menu invalidates its response timer."""
    to_main_menu(ivr, timers, prompts)
    ivr.press_key("2")
    assert session.ivr_state is IvrState.ROUTING

    timers.advance(20000)

    assert session.ivr_state is IvrState.ROUTING
    assert NO_RESPONSE_PROMPT not in prompts.played
    ivr.on_system_message.assert_not_called()
    ivr.on_end.assert_not_called()


def test_input_before_timeout_cancels_it(ivr, session, timers, prompts):
    ring_through(ivr, timers)
    prompts.finish()
    timers.advance(6000)

    ivr.press_key("2")
    timers.advance(2000)

    assert session.ivr_state is IvrState.MAIN_MENU
    ivr.on_system_message.assert_not_called()


def test_invalid_key_does_not_advance(ivr, session, timers, prompts):
    ring_through(ivr, timers)
    prompts.finish()

    ivr.press_key("9")

    assert prompts.last == INVALID_OPTION_PROMPT
    assert session.ivr_state is IvrState.LANGUAGE_SELECT
    timers.advance(7000)
    ivr.on_system_message.assert_not_called()

    prompts.finish()

    assert session.ivr_state is IvrState.LANGUAGE_SELECT
    assert prompts.last == LANGUAGE_PROMPT
    assert session.dialed_digits == ["9"]


def test_invalid_key_then_valid_key(ivr, session, timers, prompts):
    ring_through(ivr, timers)
    prompts.finish()
    ivr.press_key("7")
    prompts.finish()
    prompts.finish()

    ivr.press_key("2")

    assert session.ivr_state is IvrState.MAIN_MENU
    assert session.dialed_digits == ["7", "2"]


def test_routes_to_selected_department(ivr, session, timers, prompts):
    """Language 1, department 2: Refunds is opened one second after the prompt."""
    to_main_menu(ivr, timers, prompts)

    ivr.press_key("2")

    assert session.department is Department.REFUNDS
    assert prompts.last == "Connecting you to the Refunds department. Please hold."

    prompts.finish()
    timers.advance(999)
    ivr.on_route.assert_not_called()

    timers.advance(1)
    ivr.on_route.assert_called_once_with(Department.REFUNDS)
    assert session.dialed_digits == ["1", "2"]


def test_key_during_prompt_is_queued(ivr, session, tones, timers, prompts):
    ring_through(ivr, timers)

    ivr.press_key("1")
    ivr.press_key("2")

    tones.play_key.assert_any_call("1")
    tones.play_key.assert_any_call("2")
    assert session.ivr_state is IvrState.LANGUAGE_SELECT
    assert ivr.pending_key == "1"

    prompts.finish()

    assert session.ivr_state is IvrState.MAIN_MENU
    assert session.dialed_digits == ["1"]


def test_queued_key_survives_error_prompt(ivr, session, timers, prompts):
    ring_through(ivr, timers)
    prompts.finish()
    ivr.press_key("8")

    ivr.press_key("1")
    prompts.finish()

    assert session.ivr_state is IvrState.MAIN_MENU
    assert session.dialed_digits == ["8", "1"]


def test_prompts_finishing_immediately(session, tones, timers, immediate_prompts):
    """A prompt that completes inside play() is handled after the state entry."""
    ivr = IvrStateMachine(session, immediate_prompts, tones, timers, on_route=MagicMock(), on_end=MagicMock())

    ring_through(ivr, timers)

    assert session.ivr_state is IvrState.LANGUAGE_SELECT
    assert [timer.due - timers.now for timer in timers.pending] == [7000]


def test_agent_connected_after_routing(ivr, session, timers, prompts):
    to_main_menu(ivr, timers, prompts)
    ivr.press_key("0")
    prompts.finish()
    timers.advance(1000)

    ivr.agent_connected()

    assert session.ivr_state is IvrState.CONNECTED_TO_AGENT
    ivr.press_key("3")
    assert session.dialed_digits == ["1", "0"]


def test_agent_connected_ignored_outside_routing(ivr, session, timers):
    ring_through(ivr, timers)

    ivr.agent_connected()

    assert session.ivr_state is IvrState.LANGUAGE_SELECT


def test_hangup_during_routing_cancels_route(ivr, session, tones, timers, prompts):
    to_main_menu(ivr, timers, prompts)
    ivr.press_key("1")
    prompts.finish()

    ivr.hangup()
    timers.advance(5000)

    assert session.ivr_state is IvrState.ENDED
    ivr.on_route.assert_not_called()
    assert timers.pending == []


def test_hangup_mid_prompt_stops_it(ivr, session, tones, timers, prompts):
    ring_through(ivr, timers)

    ivr.hangup()
    ivr.hangup()

    assert prompts.stops == 1
    assert session.ivr_state is IvrState.ENDED
    assert tones.stop_ringback.call_count >= 1


def test_no_transition_once_call_is_not_connecting(ivr, session, timers):
    ivr.start()
    session.status = CallStatus.ENDED

    timers.advance(8000)

    assert session.ivr_state is IvrState.RINGING


def test_start_twice_is_ignored(ivr, tones):
    ivr.start()
    ivr.start()

    tones.start_ringback.assert_called_once()
