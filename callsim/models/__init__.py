"""
Models module for call state and wire schemas.

Key components:
- call: The runtime CallSession aggregate, its enums (call status, IVR state,
  department, speaker, end reason), the agent descriptor, transcript lines and
  the persisted CallRecord.
- live_schemas: Pydantic models for the live voice streaming protocol and the
  speech synthesis response.

Usage examples:
```python
from callsim.models import AgentDescriptor, CallSession, CallStatus, Speaker

agent = AgentDescriptor(id="agent_1", name="Ayla Demir", voiceProfile="Natural Warm")
session = CallSession(agent=agent, status=CallStatus.CONNECTING)
session.add_transcript(Speaker.SYSTEM, "Connecting to Refunds department...")
```
"""

from callsim.models.call import (
    AgentDescriptor,
    CallRecord,
    CallSession,
    CallStatus,
    Department,
    EndReason,
    IvrState,
    Speaker,
    TranscriptLine,
    now_ms,
)
from callsim.models.live_schemas import (
    GenerateContentResponse,
    RealtimeInputMessage,
    ServerContent,
    ServerMessage,
    SetupMessage,
    SpeechRequest,
)
