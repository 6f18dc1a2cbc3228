"""
Error taxonomy for the call simulator.

Fatal errors (connection, permission) end the call; the others are either
recoverable inside the IVR or reported as warnings.
"""


class CallSimulatorError(Exception):
    """Base class for all call simulator errors."""


class VoiceConnectionError(CallSimulatorError, ConnectionError):
    """The live voice session could not be opened or was lost."""


class MicrophonePermissionError(VoiceConnectionError, PermissionError):
    """The capture device could not be opened."""


class IvrTimeoutError(CallSimulatorError):
    """No keypress arrived within the menu's response window."""

    def __init__(self, state, timeout_ms: int):
        super().__init__(f"No input in {state.value} after {timeout_ms} ms")
        self.state = state
        self.timeout_ms = timeout_ms


class InvalidInputError(CallSimulatorError):
    """A key that is not mapped in the current menu."""

    def __init__(self, key: str, state):
        super().__init__(f"Key {key!r} is not valid in {state.value}")
        self.key = key
        self.state = state


class RecordingUploadError(CallSimulatorError):
    """The call recording could not be uploaded to object storage."""


class CallHistoryError(CallSimulatorError):
    """A call record could not be handed to the persistence sink."""
