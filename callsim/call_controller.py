"""
Call lifecycle orchestration.

``CallController`` owns the single active ``CallSession``: it is the only
writer of the call status, it starts the phone menu, opens the agent session
when the menu routes the caller, and tears everything down through one
``end_call`` path however the call ends (hangup, menu timeout, connection
failure, remote close or shutdown). A completed call that reached an agent
produces exactly one ``CallRecord``.
"""

import asyncio
import logging
from typing import Callable, Optional, Set, Tuple

from callsim.audio.devices import MixerOutput
from callsim.audio.recorder import CallRecorder, Recording
from callsim.audio.tones import ToneEngine
from callsim.audio.visualizer import Renderer, SpectrumVisualizer
from callsim.bot.instructions import build_departmental_prompt
from callsim.bot.live_api import NORMAL_CLOSURE
from callsim.bot.voice_session import VoiceSession, VoiceSessionManager
from callsim.config.constants import INPUT_VISUALIZER_COLOR, LOGGER_NAME, OUTPUT_VISUALIZER_COLOR
from callsim.config.settings import Settings
from callsim.errors import (
    CallHistoryError,
    MicrophonePermissionError,
    RecordingUploadError,
    VoiceConnectionError,
)
from callsim.ivr.prompts import PromptSynthesizer, SpeechPromptPlayer
from callsim.ivr.state_machine import IvrStateMachine
from callsim.ivr.timers import LoopTimers
from callsim.models.call import (
    AgentDescriptor,
    CallRecord,
    CallSession,
    CallStatus,
    Department,
    EndReason,
    Speaker,
    now_ms,
)
from callsim.services.history import CallHistory, HttpCallRecordSink
from callsim.services.notifications import LoggingNotifier, Severity
from callsim.services.storage import HttpObjectStorage, LocalRecordingStore

logger = logging.getLogger(LOGGER_NAME)


class CallController:
    """
    Starts, drives and ends simulated calls.

    Every collaborator can be injected; the defaults are built from
    ``settings``. The feedback output carries tones, prompts and music and
    lives as long as the controller, so the failure tone can still play after
    a call has ended.
    """

    def __init__(
        self,
        settings: Settings,
        feedback_output=None,
        tones=None,
        prompts=None,
        voice_sessions=None,
        timers=None,
        history: Optional[CallHistory] = None,
        storage=None,
        local_store=None,
        notifier=None,
        recorder_factory: Callable[[], CallRecorder] = CallRecorder,
        renderers: Optional[Tuple[Renderer, Renderer]] = None,
        ivr_options: Optional[dict] = None,
    ):
        self.settings = settings
        self.feedback = feedback_output if feedback_output is not None else MixerOutput(name="feedback")
        self.tones = tones or ToneEngine(self.feedback, settings.hold_music_path, settings.ambience_path)
        self.prompts = prompts or SpeechPromptPlayer(
            self.feedback,
            PromptSynthesizer(settings.api_key, settings.tts_model, settings.prompt_voice),
        )
        self.voice_sessions = voice_sessions or VoiceSessionManager(settings.api_key, settings.live_model)
        self.timers = timers or LoopTimers()
        if history is None:
            sink = None
            if settings.call_history_url:
                sink = HttpCallRecordSink(settings.call_history_url, settings.storage_key)
            history = CallHistory(sink)
        self.history = history
        if storage is None and settings.storage_configured:
            storage = HttpObjectStorage(settings.storage_url, settings.storage_key, settings.storage_bucket)
        self.storage = storage
        self.local_store = local_store or LocalRecordingStore()
        self.notifier = notifier or LoggingNotifier()
        self.recorder_factory = recorder_factory
        self.renderers = renderers
        self.ivr_options = ivr_options or {}

        self.session: Optional[CallSession] = None
        self.ivr: Optional[IvrStateMachine] = None
        self.recorder: Optional[CallRecorder] = None
        self.voice_session: Optional[VoiceSession] = None
        self.visualizer: Optional[SpectrumVisualizer] = None
        self._connect_task: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def active(self) -> bool:
        return self.session is not None and self.session.is_active

    async def start_call(self, agent: AgentDescriptor) -> Optional[CallSession]:
        """Place a call to ``agent``; does nothing while another call is active."""
        if self.active:
            logger.warning("Call already in progress, ignoring start")
            return None

        session = CallSession(agent=agent, status=CallStatus.CONNECTING, started_at=now_ms())
        self.session = session
        self.voice_session = None
        self.visualizer = None
        logger.info(f"Calling {agent.name} ({agent.id})")

        recorder = self.recorder_factory()
        recorder.start()
        self.feedback.add_tap(recorder.capture)
        session.resources.callback(self.feedback.remove_tap, recorder.capture)
        self.recorder = recorder

        self.ivr = IvrStateMachine(
            session,
            self.prompts,
            self.tones,
            self.timers,
            on_route=self._on_route,
            on_end=self._on_ivr_end,
            on_system_message=lambda text: session.add_transcript(Speaker.SYSTEM, text),
            **self.ivr_options,
        )
        self.ivr.start()
        return session

    def press_key(self, key: str) -> None:
        if self.session is None:
            return
        if self.session.status is CallStatus.CONNECTING:
            self.ivr.press_key(key)
        elif self.session.status is CallStatus.CONNECTED:
            self.tones.play_key(key)

    def set_muted(self, muted: bool) -> None:
        session = self.session
        if not self.active:
            return
        if session.on_hold and not muted:
            logger.info("Cannot unmute while on hold")
            return
        session.muted = muted
        if self.voice_session is not None:
            self.voice_session.muted = muted

    def toggle_mute(self) -> bool:
        if self.active:
            self.set_muted(not self.session.muted)
        return self.session is not None and self.session.muted

    def toggle_hold(self) -> bool:
        """Hold plays music and mutes the caller; releasing hold unmutes."""
        session = self.session
        if session is None or session.status is not CallStatus.CONNECTED:
            return False
        if session.on_hold:
            session.on_hold = False
            self.tones.stop_hold_music()
            self.set_muted(False)
        else:
            session.on_hold = True
            self.tones.start_hold_music()
            self.set_muted(True)
        logger.info(f"Call {'on hold' if session.on_hold else 'resumed'}")
        return session.on_hold

    def toggle_ambience(self) -> bool:
        if not self.active:
            return False
        if self.tones.is_playing("ambience"):
            self.tones.stop_ambience()
        else:
            self.tones.start_ambience()
        return self.tones.is_playing("ambience")

    async def end_call(self, reason: EndReason = EndReason.HANGUP) -> Optional[CallRecord]:
        """
        End the active call and finalize it.

        Safe to call from any path and more than once: only the first call
        on an active session does anything. Returns the persisted record, or
        None when the call never reached an agent.
        """
        session = self.session
        if session is None or not session.is_active:
            return None

        session.status = CallStatus.ENDED
        session.ended_at = now_ms()
        session.end_reason = reason
        logger.info(f"Call to {session.agent.name} ended: {reason.value}")

        self.ivr.hangup()
        await self._cancel_connect()
        self.tones.stop_all()
        self.prompts.stop()
        if self.visualizer is not None:
            await self.visualizer.stop()
        await session.resources.aclose()
        self.voice_session = None

        recording = await self.recorder.stop()
        if not session.reached_agent:
            logger.info("Call ended before reaching an agent, no record created")
            return None

        record_id = f"call_{session.ended_at}"
        recording_url = await self._store_recording(recording, record_id)
        record = session.to_record(record_id, recording_url)
        try:
            await self.history.append(record)
        except CallHistoryError as e:
            logger.warning(str(e))
            self.notifier.notify("The call could not be saved to history.", Severity.WARNING)
        return record

    async def close(self) -> None:
        """End any active call and release the feedback output."""
        await self.end_call(EndReason.TEARDOWN)
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self.feedback.close()

    # IVR callbacks
    def _on_route(self, department: Department) -> None:
        session = self.session
        session.add_transcript(Speaker.SYSTEM, f"Connecting to {department.value} department...")
        self._connect_task = self._spawn(self._connect(session, department))

    def _on_ivr_end(self, reason: EndReason, error: Exception) -> None:
        logger.info(f"IVR ended the call: {error}")
        self._spawn(self.end_call(reason))

    async def _connect(self, session: CallSession, department: Department) -> None:
        prompt = build_departmental_prompt(session.agent, department, self.settings.company_name)
        try:
            voice_session = await self.voice_sessions.open(
                department,
                session.agent.voiceProfile,
                prompt,
                on_transcript=session.add_transcript,
                on_closed=lambda code, reason: self._on_remote_closed(session, code, reason),
                recorder=self.recorder,
                muted=session.muted,
            )
        except VoiceConnectionError as e:
            await self._fail(session, e, EndReason.CONNECTION_FAILED)
            return
        except Exception as e:
            logger.error(f"Unexpected error opening the agent session: {e}", exc_info=True)
            await self._fail(session, VoiceConnectionError(str(e)), EndReason.CONNECTION_FAILED)
            return

        if session is not self.session or session.status is not CallStatus.CONNECTING:
            logger.info("Call ended while the agent session was opening")
            await voice_session.close()
            return

        session.resources.push_async_callback(voice_session.close)
        self.voice_session = voice_session
        self.ivr.agent_connected()
        session.status = CallStatus.CONNECTED
        session.connected_at = now_ms()
        logger.info(f"Connected to {session.agent.name} in {department.value}")

        if self.renderers is not None:
            input_renderer, output_renderer = self.renderers
            self.visualizer = SpectrumVisualizer([
                (voice_session.input_analyser, input_renderer, INPUT_VISUALIZER_COLOR),
                (voice_session.output_analyser, output_renderer, OUTPUT_VISUALIZER_COLOR),
            ])
            self.visualizer.start()

    async def _on_remote_closed(self, session: CallSession, code: Optional[int], reason: str) -> None:
        if session is not self.session or session.status is not CallStatus.CONNECTED:
            return
        if code != NORMAL_CLOSURE:
            await self._fail(session, VoiceConnectionError(f"Connection lost ({code}): {reason}"),
                             EndReason.SESSION_ERROR)
            return
        session.add_transcript(Speaker.SYSTEM, "The agent ended the call.")
        await self.end_call(EndReason.REMOTE_CLOSED)

    async def _fail(self, session: CallSession, error: Exception, reason: EndReason) -> None:
        if isinstance(error, MicrophonePermissionError):
            message = "Microphone access was denied. Allow microphone access and call again."
        else:
            message = f"Could not reach the agent: {error}"
        logger.error(f"Call failed: {error}")
        session.add_transcript(Speaker.SYSTEM, message)
        self.tones.play_failure()
        self.notifier.notify(message, Severity.ERROR)
        await self.end_call(reason)

    async def _cancel_connect(self) -> None:
        task, self._connect_task = self._connect_task, None
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _store_recording(self, recording: Optional[Recording], record_id: str) -> Optional[str]:
        if recording is None:
            return None
        if self.storage is not None:
            try:
                return await self.storage.upload(recording, record_id)
            except RecordingUploadError as e:
                logger.warning(str(e))
                self.notifier.notify("Recording upload failed, keeping a local copy.", Severity.WARNING)
        try:
            return await self.local_store.save(recording, record_id)
        except OSError as e:
            logger.warning(f"Could not keep recording locally: {e}")
            return None

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task
