"""
Call state for the simulator.

``CallSession`` is the runtime aggregate owned by the call controller: every
per-call value lives here, including the exit stack that releases the audio
resources acquired for the call. ``CallRecord`` is the persisted distillation
of a completed call, produced exactly once at call end.
"""

import logging
import time
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from callsim.config.constants import LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)


class CallStatus(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ENDED = "ended"


class IvrState(str, Enum):
    IDLE = "idle"
    RINGING = "ringing"
    LANGUAGE_SELECT = "language_select"
    MAIN_MENU = "main_menu"
    ROUTING = "routing"
    CONNECTED_TO_AGENT = "connected_to_agent"
    ENDED = "ended"


class Department(str, Enum):
    BOOKING = "Booking"
    REFUNDS = "Refunds"
    COMPLAINTS = "Complaints"
    SPECIAL_NEEDS = "Special Needs"
    OTHER = "Other"
    GENERAL = "General"


class Speaker(str, Enum):
    CALLER = "caller"
    AGENT = "agent"
    SYSTEM = "system"


class EndReason(str, Enum):
    HANGUP = "hangup"
    IVR_TIMEOUT = "ivr_timeout"
    CONNECTION_FAILED = "connection_failed"
    SESSION_ERROR = "session_error"
    REMOTE_CLOSED = "remote_closed"
    TEARDOWN = "teardown"


class AgentDescriptor(BaseModel):
    """Read-only description of the agent being called."""

    id: str
    name: str
    voiceProfile: str = Field("Natural Warm", description="Display name of the agent voice")
    voiceStyleDescription: str = ""
    systemPromptText: str = ""


class TranscriptLine(BaseModel):
    speaker: Speaker
    text: str
    timestamp: int = Field(..., description="Epoch milliseconds at time of receipt")


class CallRecord(BaseModel):
    """Completed call as handed to the persistence sink."""

    id: str
    agentId: str
    agentName: str
    startTime: int
    endTime: int
    duration: int
    transcript: List[TranscriptLine]
    recordingUrl: Optional[str] = None


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class CallSession:
    agent: AgentDescriptor
    status: CallStatus = CallStatus.IDLE
    ivr_state: IvrState = IvrState.IDLE
    dialed_digits: List[str] = field(default_factory=list)
    department: Optional[Department] = None

    started_at: Optional[int] = None
    connected_at: Optional[int] = None
    ended_at: Optional[int] = None
    end_reason: Optional[EndReason] = None

    muted: bool = False
    on_hold: bool = False
    transcript_lines: List[TranscriptLine] = field(default_factory=list)

    # Resources acquired for this call, released by one teardown
    resources: AsyncExitStack = field(default_factory=AsyncExitStack)

    @property
    def is_active(self) -> bool:
        return self.status in (CallStatus.CONNECTING, CallStatus.CONNECTED)

    @property
    def reached_agent(self) -> bool:
        return self.connected_at is not None

    @property
    def duration_ms(self) -> int:
        if self.started_at is None:
            return 0
        end = self.ended_at if self.ended_at is not None else now_ms()
        return end - self.started_at

    def add_transcript(self, speaker: Speaker, text: str, timestamp: Optional[int] = None) -> Optional[TranscriptLine]:
        """Append a transcript line; lines arriving after the call ended are dropped."""
        if self.status is CallStatus.ENDED:
            logger.debug(f"Dropping {speaker.value} transcript after call end: {text!r}")
            return None
        line = TranscriptLine(
            speaker=speaker,
            text=text,
            timestamp=timestamp if timestamp is not None else now_ms(),
        )
        self.transcript_lines.append(line)
        return line

    def to_record(self, record_id: str, recording_url: Optional[str]) -> CallRecord:
        return CallRecord(
            id=record_id,
            agentId=self.agent.id,
            agentName=self.agent.name,
            startTime=self.started_at,
            endTime=self.ended_at,
            duration=self.ended_at - self.started_at,
            transcript=[line.model_copy() for line in self.transcript_lines],
            recordingUrl=recording_url,
        )
