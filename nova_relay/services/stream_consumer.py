"""
STREAM CONSUMER MODULE
======================

Client side of POST /chat/stream. Sends one message, reads the relay's SSE
body and reassembles it into an InProgressMessage, calling on_update with a
snapshot after every visible change so a UI can render partial text.

LIFECYCLE OF ONE REPLY:
  idle -> sending -> streaming -> completed | timed_out | errored | cancelled

DEADLINE:
  One deadline per reply:
    min(send time + agent.max_response_time + timeout_grace,
        stream start + stream_timeout)
  Until response headers arrive only the first term applies. The deadline is
  enforced with asyncio.wait_for around the request and around the read loop,
  so there is no timer left running after the reply finishes.

GUARANTEES:
  - The reply always ends with is_streaming=False, whatever happened.
  - Records are applied in arrival order; content is append-only.
  - The response body is closed on every exit path.
  - A malformed record is logged, counted and skipped; it never aborts the reply.
  - Cancelling the sending task aborts the transport and leaves the reply's
    content as it was (no update is emitted); the CancelledError propagates.
"""

import asyncio
import logging
import uuid
from typing import Any, Callable, Dict, List, Optional

import httpx

from config import RESPONSE_TIMEOUT_GRACE_SECONDS, STREAM_TIMEOUT_SECONDS
from nova_relay.models import ChatMessage, InProgressMessage, MessageState
from nova_relay.services.agent_profiles import get_agent_profile
from nova_relay.utils.sse import RECORD_DELIMITER, FrameBuffer, parse_relay_record

logger = logging.getLogger("NOVA")

# Text shown when a reply ends with nothing accumulated.
NO_RESPONSE_PLACEHOLDER = "No response received."
TIMEOUT_PLACEHOLDER = "Response timed out. Please try again."
STREAM_ERROR_PLACEHOLDER = "Error: Failed to process streaming response. Please try again."
TIMEOUT_NOTICE = "Response timed out"


class ConsumerBusyError(RuntimeError):
    """Raised when send() is called while the previous reply is still streaming."""


class StreamConsumer:
    """
    One conversation thread against a N.O.V.A relay.

    history holds the messages sent as context on the next request. Only one
    reply can be in flight at a time; use it as an async context manager (or
    call aclose()) to release the HTTP client.
    """

    def __init__(
        self,
        base_url: str,
        agent_id: Optional[str] = None,
        *,
        stream_path: str = "/chat/stream",
        stream_timeout: float = STREAM_TIMEOUT_SECONDS,
        timeout_grace: float = RESPONSE_TIMEOUT_GRACE_SECONDS,
        conversation_id: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        on_update: Optional[Callable[[InProgressMessage], None]] = None,
    ):
        self.agent = get_agent_profile(agent_id)
        self.stream_path = stream_path
        self.stream_timeout = stream_timeout
        self.timeout_grace = timeout_grace
        self.conversation_id = conversation_id or str(uuid.uuid4())
        self.on_update = on_update
        self.history: List[ChatMessage] = []
        self.active: Optional[InProgressMessage] = None
        # No httpx read timeout: the reply deadline below covers it.
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=httpx.Timeout(None, connect=10.0),
            transport=transport,
        )

    async def __aenter__(self) -> "StreamConsumer":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    @property
    def is_streaming(self) -> bool:
        return self.active is not None and self.active.is_streaming

    def use_agent(self, agent_id: Optional[str]) -> None:
        """Switch agents for the next send (unknown ids fall back to the default agent)."""
        self.agent = get_agent_profile(agent_id)

    def clear(self) -> None:
        """Forget the conversation and start a new one."""
        if self.is_streaming:
            raise ConsumerBusyError("Cannot clear while a reply is streaming")
        self.history = []
        self.active = None
        self.conversation_id = str(uuid.uuid4())

    # -------------------------------------------------------------------------
    # SEND
    # -------------------------------------------------------------------------

    async def send(self, text: str, agent_id: Optional[str] = None) -> InProgressMessage:
        """
        Send text as the next user message and stream the reply.

        agent_id, when given, switches the thread to that agent first.

        Returns the finished InProgressMessage. Never raises for relay, network
        or timeout failures (they end up in message.state / message.error);
        raises ConsumerBusyError if a reply is already streaming and re-raises
        CancelledError if the calling task is cancelled.
        """
        if self.is_streaming:
            raise ConsumerBusyError("Previous reply is still streaming")
        if agent_id is not None:
            self.use_agent(agent_id)

        agent = self.agent
        user_message = ChatMessage(role="user", content=text)
        message = InProgressMessage(id=str(uuid.uuid4()))
        self.active = message

        body = self._build_body(user_message)
        loop = asyncio.get_running_loop()
        total_deadline = loop.time() + agent.max_response_time + self.timeout_grace
        response: Optional[httpx.Response] = None

        try:
            message.advance(MessageState.SENDING)
            request = self._client.build_request("POST", self.stream_path, json=body)
            try:
                response = await asyncio.wait_for(
                    self._client.send(request, stream=True),
                    timeout=max(total_deadline - loop.time(), 0),
                )
            except asyncio.TimeoutError:
                logger.warning("Request timeout - aborting")
                self._finish_timeout(message)
                return message
            except httpx.HTTPError as e:
                logger.error("Chat request failed: %s", e)
                self._finish(
                    message,
                    MessageState.ERRORED,
                    content=f"Error: {e}. Please try again.",
                    error=str(e) or type(e).__name__,
                )
                return message

            if not response.is_success:
                status_error = f"HTTP error! status: {response.status_code}"
                logger.error("Relay returned %s", response.status_code)
                self._finish(
                    message,
                    MessageState.ERRORED,
                    content=f"Error: {status_error}",
                    error=status_error,
                )
                return message

            message.advance(MessageState.STREAMING)
            stream_deadline = min(total_deadline, loop.time() + self.stream_timeout)
            try:
                await asyncio.wait_for(
                    self._read_stream(response, message),
                    timeout=max(stream_deadline - loop.time(), 0),
                )
            except asyncio.TimeoutError:
                logger.warning("Stream timeout - forcing completion")
                self._finish_timeout(message)
            except httpx.HTTPError as e:
                logger.error("Streaming error: %s", e)
                self._finish(
                    message,
                    MessageState.ERRORED,
                    content=message.content or STREAM_ERROR_PLACEHOLDER,
                    error="Stream error",
                )
        except asyncio.CancelledError:
            # Caller went away: freeze the reply as it is, no further updates.
            message.close()
            raise
        finally:
            if response is not None:
                await response.aclose()
            if message.is_streaming:
                # Unexpected exception on its way out; end the reply without notifying.
                message.finalize(
                    MessageState.ERRORED,
                    content=message.content or STREAM_ERROR_PLACEHOLDER,
                    error="Stream error",
                )
            self._record_history(user_message, message)

        return message

    def _build_body(self, user_message: ChatMessage) -> Dict[str, Any]:
        messages = self.history + [user_message]
        return {
            "messages": [m.model_dump() for m in messages],
            "agentId": self.agent.key,
            "agentType": self.agent.type,
            "conversationId": self.conversation_id,
            "thinkingStyle": self.agent.thinking_style,
        }

    # -------------------------------------------------------------------------
    # STREAM READING
    # -------------------------------------------------------------------------

    async def _read_stream(self, response: httpx.Response, message: InProgressMessage) -> None:
        """Read records until a terminal one arrives or the body ends."""
        frames = FrameBuffer(RECORD_DELIMITER)
        async for chunk in response.aiter_bytes():
            for record in frames.feed(chunk):
                if self._apply_record(record, message):
                    return

        # Body ended without done/error.
        self._finish(
            message,
            MessageState.COMPLETED,
            content=message.content or NO_RESPONSE_PLACEHOLDER,
        )

    def _apply_record(self, record: str, message: InProgressMessage) -> bool:
        """Apply one SSE record to message. Returns True when the reply is finished."""
        try:
            payload = parse_relay_record(record)
        except ValueError as e:
            message.malformed_records += 1
            logger.warning("Failed to parse SSE data: %s (%r)", e, record[:200])
            return False
        if payload is None:
            return False

        if payload.get("done"):
            self._finish(message, MessageState.COMPLETED)
            return True

        content = payload.get("content")
        if isinstance(content, str) and content:
            if message.append(content):
                self._notify(message)
            return False

        error = payload.get("error")
        if error:
            error = str(error)
            self._finish(
                message,
                MessageState.ERRORED,
                content=message.content or f"Error: {error}",
                error=error,
            )
            return True

        # Unknown record shape: ignore.
        return False

    # -------------------------------------------------------------------------
    # FINALIZATION
    # -------------------------------------------------------------------------

    def _finish(
        self,
        message: InProgressMessage,
        state: MessageState,
        content: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        if message.finalize(state, content=content, error=error):
            self._notify(message)

    def _finish_timeout(self, message: InProgressMessage) -> None:
        self._finish(
            message,
            MessageState.TIMED_OUT,
            content=message.content or TIMEOUT_PLACEHOLDER,
            error=TIMEOUT_NOTICE,
        )

    def _notify(self, message: InProgressMessage) -> None:
        if self.on_update is not None:
            self.on_update(message.model_copy())

    def _record_history(self, user_message: ChatMessage, message: InProgressMessage) -> None:
        self.history.append(user_message)
        if message.state == MessageState.COMPLETED and not message.error and message.content:
            if message.content != NO_RESPONSE_PLACEHOLDER:
                self.history.append(ChatMessage(role="assistant", content=message.content))
