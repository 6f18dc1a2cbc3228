"""
Tests for the Live API message models.
"""

from callsim.models.live_schemas import (
    GenerateContentResponse,
    RealtimeInputMessage,
    ServerMessage,
    SetupMessage,
    SpeechRequest,
)


def test_setup_message_shape():
    message = SetupMessage.build("models/live-model", "Puck", "Be brief.")

    data = message.model_dump(exclude_none=True)

    setup = data["setup"]
    assert setup["model"] == "models/live-model"
    assert setup["generationConfig"]["responseModalities"] == ["AUDIO"]
    assert setup["generationConfig"]["speechConfig"]["voiceConfig"]["prebuiltVoiceConfig"]["voiceName"] == "Puck"
    assert setup["systemInstruction"]["parts"] == [{"text": "Be brief."}]
    assert setup["outputAudioTranscription"] == {}


def test_realtime_input_from_pcm():
    message = RealtimeInputMessage.from_pcm(b"\xff\x7f", "audio/pcm;rate=16000")

    assert message.realtimeInput.audio.data == "/38="
    assert message.realtimeInput.audio.mimeType == "audio/pcm;rate=16000"


def test_server_content_audio_payloads_in_order():
    message = ServerMessage(**{
        "serverContent": {
            "modelTurn": {"parts": [
                {"inlineData": {"mimeType": "audio/pcm;rate=24000", "data": "AAA="}},
                {"text": "thinking"},
                {"inlineData": {"mimeType": "audio/pcm;rate=24000", "data": "AQE="}},
            ]},
            "interrupted": False,
        }
    })

    assert message.serverContent.audio_payloads() == ["AAA=", "AQE="]


def test_server_message_tolerates_unknown_fields():
    message = ServerMessage(**{"usageMetadata": {"totalTokenCount": 12}, "serverContent": {"interrupted": True}})

    assert message.serverContent.interrupted is True
    assert message.serverContent.audio_payloads() == []


def test_setup_complete_detected():
    assert ServerMessage(**{"setupComplete": {}}).setupComplete == {}
    assert ServerMessage(**{}).setupComplete is None


def test_speech_request_and_response():
    request = SpeechRequest.build("Please hold.", "Kore")
    response = GenerateContentResponse(**{
        "candidates": [{"content": {"parts": [{"inlineData": {"data": "AAA="}}]}}]
    })

    assert request.contents[0].parts[0].text == "Please hold."
    assert response.first_audio() == "AAA="
    assert GenerateContentResponse().first_audio() is None
