"""
Constants and configuration values used throughout the call simulator.

This module defines constants that are used across different parts of the application,
providing a centralized location for configuration values and making it easier to
maintain consistent naming throughout the codebase.
"""

# Logger name used throughout the application
LOGGER_NAME = "callsim"

# Live voice endpoint
DEFAULT_LIVE_MODEL = "gemini-2.5-flash-native-audio-preview-09-2025"
DEFAULT_TTS_MODEL = "gemini-2.5-flash-preview-tts"
DEFAULT_PROMPT_VOICE = "Kore"
LIVE_API_URL = (
    "wss://generativelanguage.googleapis.com/ws/"
    "google.ai.generativelanguage.v1beta.GenerativeService.BidiGenerateContent"
)
GENERATE_CONTENT_URL = (
    "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
)

# Audio formats
INPUT_SAMPLE_RATE = 16000  # microphone capture, outbound wire format
OUTPUT_SAMPLE_RATE = 24000  # synthesized agent audio and prompts
INPUT_BLOCK_SIZE = 4096  # frames per captured microphone block
OUTPUT_BLOCK_SIZE = 1024  # frames per rendered output block
INPUT_MIME_TYPE = f"audio/pcm;rate={INPUT_SAMPLE_RATE}"
RECORDING_MIME_TYPE = "audio/wav"

# IVR timings (milliseconds)
RING_DURATION_MS = 8000
LANGUAGE_SELECT_TIMEOUT_MS = 7000
MAIN_MENU_TIMEOUT_MS = 10000
ROUTING_DELAY_MS = 1000

# Sound effect levels
AMBIENCE_VOLUME = 0.1
HOLD_MUSIC_VOLUME = 0.5
DTMF_TONE_DURATION = 0.15  # seconds

# Visualizer
ANALYSER_FFT_SIZE = 256
VISUALIZER_BARS = 64
VISUALIZER_FPS = 30
INPUT_VISUALIZER_COLOR = "#fbbf24"
OUTPUT_VISUALIZER_COLOR = "#2dd4bf"

# Default brand woven into the departmental prompt
DEFAULT_COMPANY_NAME = "Turkish Airlines"
