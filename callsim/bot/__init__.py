"""
Live agent layer: the Live API client and the voice session built on it.

Example usage:
    ```python
    from callsim.bot import VoiceSessionManager, build_departmental_prompt

    manager = VoiceSessionManager(settings.api_key, settings.live_model)
    session = await manager.open(
        Department.REFUNDS,
        agent.voiceProfile,
        build_departmental_prompt(agent, Department.REFUNDS),
        on_transcript=lambda speaker, text: print(speaker.value, text),
    )
    session.muted = True
    await session.close()
    ```
"""

from callsim.bot.instructions import build_departmental_prompt
from callsim.bot.live_api import LiveAudioClient
from callsim.bot.voice_session import VoiceSession, VoiceSessionManager
from callsim.bot.voices import VOICE_MAP, resolve_voice
