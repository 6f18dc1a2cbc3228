"""
Agent Call Simulator - placing simulated phone calls to live voice agents

This package lets a user call a configured voice agent the way a customer
would: the call rings, an automated phone menu (IVR) asks for a language and
a department, and the caller is then connected to a live, speech-to-speech
agent session whose audio and transcript are recorded.

Architecture Overview:
- A phone menu state machine driven by keypresses, prompt completions and
  timers, processed one event at a time
- Live API integration streaming microphone audio out and agent audio back,
  with gapless playback and barge-in
- Locally synthesized telephone sounds, spectrum visualizers and a mixed
  call recording
- A single call controller that owns the call from first ring to the saved
  call record

Key Components:
- audio: Codecs, PyAudio devices, playback scheduling, tones, recorder, visualizer
- bot: Live API client, voice session manager, voice table and agent instructions
- config: Application-wide constants, logging setup and environment settings
- ivr: Menus, spoken prompts, timers and the IVR state machine
- models: Call state, call records and wire schemas
- services: Recording storage, call history and notifications
- call_controller: Call lifecycle orchestration

Getting Started:
1. Set up environment variables (or a .env file):
   - GEMINI_API_KEY: Your Gemini API key
   - STORAGE_URL / STORAGE_KEY: Optional object storage for recordings
   - CALL_HISTORY_URL: Optional REST endpoint for call records
   - LOG_LEVEL: Logging level (default INFO)

2. Place a call from a terminal:
   ```bash
   python run.py --agent-name "Ava Customer Care" --visualize
   ```
"""

__version__ = "0.1.0"
