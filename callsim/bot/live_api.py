import asyncio
import json
import logging
import time
from typing import Awaitable, Callable, Optional

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedError, ConnectionClosedOK, WebSocketException
from pydantic import ValidationError

from callsim.config.constants import INPUT_MIME_TYPE, LIVE_API_URL, LOGGER_NAME
from callsim.errors import VoiceConnectionError
from callsim.models.live_schemas import RealtimeInputMessage, ServerMessage, SetupMessage

logger = logging.getLogger(LOGGER_NAME)

CONNECTION_TIMEOUT = 30  # seconds
SETUP_TIMEOUT = 15  # seconds
SEND_TIMEOUT = 5  # seconds

# WebSocket configuration for low latency
WS_MAX_SIZE = 16 * 1024 * 1024  # 16MB - large enough for audio chunks
WS_MAX_QUEUE = 32  # Small queue to prevent buffering

NORMAL_CLOSURE = 1000

MessageHandler = Callable[[ServerMessage], Awaitable[None]]
ClosedHandler = Callable[[Optional[int], str], Awaitable[None]]


class LiveAudioClient:
    """
    Client for the Gemini Live API over WebSocket, streaming speech-to-speech.

    The session is not reconnected when it drops: the closed handler is told
    the close code and the owner decides what happens to the call.
    """
    def __init__(self, api_key: str, model: str, url: str = LIVE_API_URL):
        self.api_key = api_key
        self.model = model
        self.url = url
        self.ws = None
        self._recv_task: Optional[asyncio.Task] = None
        self._connection_active = False
        self._is_closing = False
        self._message_handler: Optional[MessageHandler] = None
        self._closed_handler: Optional[ClosedHandler] = None
        logger.info(f"LiveAudioClient initialized with model: {model}")

    @property
    def connected(self) -> bool:
        return self._connection_active

    def set_handlers(self, message_handler: Optional[MessageHandler] = None,
                     closed_handler: Optional[ClosedHandler] = None) -> None:
        """
        Set handlers for server messages and for the remote closing the session.

        Args:
            message_handler: Async function called with every parsed ServerMessage
            closed_handler: Async function called with the close code and reason
        """
        self._message_handler = message_handler
        self._closed_handler = closed_handler

    async def connect(self, setup: SetupMessage) -> None:
        """
        Open the WebSocket and complete the setup handshake.

        Raises:
            VoiceConnectionError: the endpoint is unreachable, times out, or
                does not acknowledge the setup message
        """
        if self._is_closing:
            raise VoiceConnectionError("Cannot connect - client is closing")

        headers = {"x-goog-api-key": self.api_key}
        try:
            logger.info(f"Connecting to Live API with model: {self.model}")
            connection_start = time.time()
            self.ws = await asyncio.wait_for(
                websockets.connect(
                    self.url,
                    max_size=WS_MAX_SIZE,
                    max_queue=WS_MAX_QUEUE,
                    compression=None,  # Disable compression for lower latency
                    additional_headers=headers,
                ),
                timeout=CONNECTION_TIMEOUT,
            )
            logger.debug(f"WebSocket connection established in {time.time() - connection_start:.2f} seconds")
        except asyncio.TimeoutError as e:
            raise VoiceConnectionError(f"Timeout while connecting to Live API (after {CONNECTION_TIMEOUT}s)") from e
        except (OSError, WebSocketException) as e:
            raise VoiceConnectionError(f"Failed to connect to Live API: {e}") from e

        try:
            await self.ws.send(setup.model_dump_json(exclude_none=True))
            reply = await asyncio.wait_for(self.ws.recv(), timeout=SETUP_TIMEOUT)
            message = self._parse(reply)
            if message is None or message.setupComplete is None:
                raise VoiceConnectionError("Live API did not acknowledge the session setup")
        except asyncio.TimeoutError as e:
            await self._abort()
            raise VoiceConnectionError(f"Timeout waiting for session setup (after {SETUP_TIMEOUT}s)") from e
        except ConnectionClosed as e:
            await self._abort()
            code, reason = _close_details(e)
            raise VoiceConnectionError(f"Live API rejected the session ({code}): {reason}") from e
        except VoiceConnectionError:
            await self._abort()
            raise

        self._connection_active = True
        self._recv_task = asyncio.create_task(self._recv_loop())
        logger.info("Live session setup complete")

    async def send_audio(self, pcm: bytes) -> bool:
        """
        Send one block of PCM16 microphone audio.

        Returns:
            bool: True if the block was sent, False when the connection is gone
        """
        if not self._connection_active or self.ws is None:
            return False
        message = RealtimeInputMessage.from_pcm(pcm, INPUT_MIME_TYPE).model_dump_json()
        try:
            await asyncio.wait_for(self.ws.send(message), timeout=SEND_TIMEOUT)
            logger.debug(f"Sent audio block of {len(pcm)} bytes")
            return True
        except asyncio.TimeoutError:
            logger.warning("Timeout while sending audio block")
            return False
        except ConnectionClosed as e:
            logger.warning(f"Connection closed while sending audio: {e}")
            self._connection_active = False
            return False

    async def _recv_loop(self) -> None:
        """
        Receive server messages until the connection closes and hand each
        parsed message to the message handler.
        """
        code, reason = None, ""
        try:
            logger.debug("Receive loop started")
            async for raw in self.ws:
                message = self._parse(raw)
                if message is None:
                    continue
                if message.goAway is not None:
                    logger.warning(f"Live API will close the session soon (time left: {message.goAway.timeLeft})")
                if self._message_handler is not None:
                    try:
                        await self._message_handler(message)
                    except Exception as e:
                        logger.error(f"Error handling server message: {e}", exc_info=True)
            code = getattr(self.ws, "close_code", NORMAL_CLOSURE)
            reason = getattr(self.ws, "close_reason", "") or ""
            logger.info("WebSocket connection closed normally")
        except ConnectionClosedOK as e:
            code, reason = _close_details(e)
            logger.info("WebSocket connection closed normally")
        except ConnectionClosedError as e:
            code, reason = _close_details(e)
            logger.warning(f"WebSocket connection closed unexpectedly: {e}")
        except asyncio.CancelledError:
            logger.debug("Receive loop cancelled")
            raise
        finally:
            self._connection_active = False

        logger.info("Receive loop exited, connection marked as inactive")
        if self._closed_handler is not None and not self._is_closing:
            try:
                await self._closed_handler(code, reason)
            except Exception as e:
                logger.error(f"Error in connection closed handler: {e}", exc_info=True)

    def _parse(self, raw) -> Optional[ServerMessage]:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        try:
            return ServerMessage(**json.loads(raw))
        except (json.JSONDecodeError, ValidationError, TypeError) as e:
            logger.warning(f"Received invalid message: {e}: {str(raw)[:100]}...")
            return None

    async def _abort(self) -> None:
        ws, self.ws = self.ws, None
        if ws is not None:
            try:
                await ws.close()
            except Exception as e:
                logger.warning(f"Error closing WebSocket: {e}")

    async def close(self) -> None:
        """
        Close the WebSocket connection and cancel the receive task.
        """
        if self._is_closing:
            return
        logger.info("Closing Live API client")
        self._is_closing = True
        self._connection_active = False

        task, self._recv_task = self._recv_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self._abort()


def _close_details(error: ConnectionClosed):
    frame = error.rcvd
    if frame is None:
        return None, ""
    return frame.code, frame.reason
