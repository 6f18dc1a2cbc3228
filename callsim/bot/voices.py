"""Display voice names mapped to the live endpoint's prebuilt voices."""

DEFAULT_VOICE = "Kore"

VOICE_MAP = {
    "Natural Warm": "Kore",
    "Professional Male": "Puck",
    "Upbeat Female": "Zephyr",
    "Calm Narrator": "Charon",
    "Friendly": "Fenrir",
    "Elegant Female": "Aoede",
}


def resolve_voice(voice_profile: str) -> str:
    return VOICE_MAP.get(voice_profile, DEFAULT_VOICE)
