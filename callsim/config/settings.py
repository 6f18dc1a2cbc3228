"""
Environment-based settings for the call simulator.

Values are read from the process environment after an optional ``.env`` file
has been loaded, so local development and deployment share one mechanism.
"""

import os
from pathlib import Path
from typing import Optional

import dotenv
from pydantic import BaseModel, Field

from callsim.config.constants import (
    DEFAULT_COMPANY_NAME,
    DEFAULT_LIVE_MODEL,
    DEFAULT_PROMPT_VOICE,
    DEFAULT_TTS_MODEL,
)


class Settings(BaseModel):
    """Runtime configuration shared by the controller and its collaborators."""

    api_key: Optional[str] = Field(None, description="Credential for the live voice and TTS endpoints")
    live_model: str = DEFAULT_LIVE_MODEL
    tts_model: str = DEFAULT_TTS_MODEL
    prompt_voice: str = DEFAULT_PROMPT_VOICE
    company_name: str = DEFAULT_COMPANY_NAME

    storage_url: Optional[str] = None
    storage_key: Optional[str] = None
    storage_bucket: str = "recordings"
    call_history_url: Optional[str] = None

    hold_music_path: Optional[Path] = None
    ambience_path: Optional[Path] = None

    log_level: str = "INFO"

    @property
    def storage_configured(self) -> bool:
        return bool(self.storage_url and self.storage_key)


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """
    Build a Settings instance from environment variables.

    Args:
        env_file: Optional path of a dotenv file; defaults to ``./.env`` when it exists

    Returns:
        Settings: the loaded configuration
    """
    env_path = env_file or Path(".") / ".env"
    if env_path.exists():
        dotenv.load_dotenv(env_path)

    return Settings(
        api_key=os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY"),
        live_model=os.getenv("LIVE_MODEL", DEFAULT_LIVE_MODEL),
        tts_model=os.getenv("TTS_MODEL", DEFAULT_TTS_MODEL),
        prompt_voice=os.getenv("PROMPT_VOICE", DEFAULT_PROMPT_VOICE),
        company_name=os.getenv("COMPANY_NAME", DEFAULT_COMPANY_NAME),
        storage_url=os.getenv("STORAGE_URL"),
        storage_key=os.getenv("STORAGE_KEY"),
        storage_bucket=os.getenv("STORAGE_BUCKET", "recordings"),
        call_history_url=os.getenv("CALL_HISTORY_URL"),
        hold_music_path=os.getenv("HOLD_MUSIC_PATH") or None,
        ambience_path=os.getenv("AMBIENCE_PATH") or None,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
