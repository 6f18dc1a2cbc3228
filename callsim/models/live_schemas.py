"""
Pydantic models for the Gemini Live bidirectional streaming protocol.

This module provides type-safe models for the messages exchanged with the live
voice endpoint, covering the setup handshake, realtime audio input, and the
server content stream (audio, transcriptions, interruption), together with the
generateContent response used for synthesized IVR prompts.
"""

import base64
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# Setup
class PrebuiltVoiceConfig(BaseModel):
    voiceName: str


class VoiceConfig(BaseModel):
    prebuiltVoiceConfig: PrebuiltVoiceConfig


class SpeechConfig(BaseModel):
    voiceConfig: VoiceConfig

    @classmethod
    def for_voice(cls, voice_name: str) -> "SpeechConfig":
        return cls(voiceConfig=VoiceConfig(prebuiltVoiceConfig=PrebuiltVoiceConfig(voiceName=voice_name)))


class GenerationConfig(BaseModel):
    responseModalities: List[str] = Field(default_factory=lambda: ["AUDIO"])
    speechConfig: Optional[SpeechConfig] = None


class TextPart(BaseModel):
    text: str


class Content(BaseModel):
    parts: List[TextPart]


class AudioTranscriptionConfig(BaseModel):
    """Empty object enabling transcription of one audio direction."""


class LiveSetup(BaseModel):
    model: str
    generationConfig: GenerationConfig
    systemInstruction: Optional[Content] = None
    inputAudioTranscription: Optional[AudioTranscriptionConfig] = None
    outputAudioTranscription: Optional[AudioTranscriptionConfig] = None


class SetupMessage(BaseModel):
    """First client message of a live session."""

    setup: LiveSetup

    @classmethod
    def build(cls, model: str, voice_name: str, system_prompt: str) -> "SetupMessage":
        if not model.startswith("models/"):
            model = f"models/{model}"
        return cls(
            setup=LiveSetup(
                model=model,
                generationConfig=GenerationConfig(speechConfig=SpeechConfig.for_voice(voice_name)),
                systemInstruction=Content(parts=[TextPart(text=system_prompt)]),
                inputAudioTranscription=AudioTranscriptionConfig(),
                outputAudioTranscription=AudioTranscriptionConfig(),
            )
        )


# Realtime input
class MediaBlob(BaseModel):
    data: str = Field(..., description="Base64 encoded audio payload")
    mimeType: str


class RealtimeInput(BaseModel):
    audio: MediaBlob


class RealtimeInputMessage(BaseModel):
    realtimeInput: RealtimeInput

    @classmethod
    def from_pcm(cls, pcm: bytes, mime_type: str) -> "RealtimeInputMessage":
        data = base64.b64encode(pcm).decode("utf-8")
        return cls(realtimeInput=RealtimeInput(audio=MediaBlob(data=data, mimeType=mime_type)))


# Server messages
class InlineData(BaseModel):
    mimeType: str = ""
    data: str


class Part(BaseModel):
    text: Optional[str] = None
    inlineData: Optional[InlineData] = None


class ModelTurn(BaseModel):
    parts: List[Part] = Field(default_factory=list)


class Transcription(BaseModel):
    text: str = ""


class ServerContent(BaseModel):
    modelTurn: Optional[ModelTurn] = None
    inputTranscription: Optional[Transcription] = None
    outputTranscription: Optional[Transcription] = None
    interrupted: bool = False
    turnComplete: bool = False

    def audio_payloads(self) -> List[str]:
        """Base64 audio chunks carried by this message, in order."""
        if not self.modelTurn:
            return []
        return [
            part.inlineData.data
            for part in self.modelTurn.parts
            if part.inlineData and part.inlineData.data
        ]


class GoAway(BaseModel):
    timeLeft: Optional[str] = None


class ServerMessage(BaseModel):
    setupComplete: Optional[Dict[str, Any]] = None
    serverContent: Optional[ServerContent] = None
    goAway: Optional[GoAway] = None


# Prompt synthesis (generateContent)
class SpeechRequest(BaseModel):
    contents: List[Content]
    generationConfig: GenerationConfig

    @classmethod
    def build(cls, text: str, voice_name: str) -> "SpeechRequest":
        return cls(
            contents=[Content(parts=[TextPart(text=text)])],
            generationConfig=GenerationConfig(speechConfig=SpeechConfig.for_voice(voice_name)),
        )


class Candidate(BaseModel):
    content: Optional[ModelTurn] = None


class GenerateContentResponse(BaseModel):
    candidates: List[Candidate] = Field(default_factory=list)

    def first_audio(self) -> Optional[str]:
        for candidate in self.candidates:
            if candidate.content:
                for part in candidate.content.parts:
                    if part.inlineData and part.inlineData.data:
                        return part.inlineData.data
        return None
