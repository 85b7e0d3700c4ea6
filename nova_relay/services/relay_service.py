"""
GROQ RELAY SERVICE MODULE
=========================

Forwards one chat request to Groq's streaming chat completion endpoint and
re-frames the response as the relay's own SSE stream. Used by POST /chat/stream.

FLOW:
  1. build_payload(request): resolve the agent, prepend its system prompt, drop
     caller-supplied system messages, add model/max_tokens/temperature/stream.
  2. open_stream(request): send the request. Failures here happen before any
     byte went to the client, so they are raised and become HTTP errors:
       - UpstreamUnavailableError: connection refused, DNS, connect timeout.
       - UpstreamStatusError: Groq answered non-2xx (status and body attached).
  3. The returned RelayStream reads Groq's bytes, parses each complete line
     and yields SSE records: {"content": ...} per delta, then exactly one
     {"done": true}. If anything fails mid-stream the client gets an apology
     as content followed by done, never a silent truncation.
     RelayStream.aclose() releases the upstream response even if the body was
     never iterated (client gone before the first chunk).

No retries: a streaming completion cannot be safely replayed halfway through.
Each call works on its own response object; the only thing shared between
sessions is the HTTP connection pool.
"""

import logging
from typing import Any, AsyncGenerator, Dict, Optional

import httpx

from nova_relay.models import ChatRequest, ContentDelta, ContentEvent, DoneEvent, StreamDone
from nova_relay.services.agent_profiles import get_agent_profile, resolve_system_prompt
from nova_relay.utils.sse import LINE_DELIMITER, FrameBuffer, encode_event, parse_upstream_line

logger = logging.getLogger("NOVA")

# Sent as a normal content delta when the upstream breaks after streaming began.
STREAM_FALLBACK_MESSAGE = (
    "I apologize, but I encountered an issue processing your request. Please try again."
)

# ==============================================================================
# ERRORS
# ==============================================================================

class UpstreamError(Exception):
    """Base class for failures talking to the completion provider."""


class UpstreamUnavailableError(UpstreamError):
    """The upstream could not be reached at all."""


class UpstreamStatusError(UpstreamError):
    """The upstream answered with a non-success status before streaming."""

    def __init__(self, status_code: int, body: str = ""):
        super().__init__(f"Groq API error: {status_code} - {body}")
        self.status_code = status_code
        self.body = body

# ==============================================================================
# RELAY SERVICE
# ==============================================================================

class RelayService:
    """
    Bridges one upstream streaming response to one downstream SSE stream per call.

    All settings are passed in (the API layer reads them from config at startup),
    and transport lets tests plug in httpx.MockTransport as a fake Groq.
    """

    def __init__(
        self,
        api_key: str,
        api_url: str,
        default_model: str,
        max_tokens: int = 1000,
        temperature: float = 0.7,
        connect_timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.api_url = api_url
        self.default_model = default_model
        self.max_tokens = max_tokens
        self.temperature = temperature
        # Reads are unbounded: a slow model is the client's deadline to enforce.
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(None, connect=connect_timeout),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def build_payload(self, request: ChatRequest) -> Dict[str, Any]:
        """
        Build the Groq request body for a chat request.

        Raises ValueError if, after dropping system messages, nothing is left to answer.
        """
        conversation = [
            {"role": m.role, "content": m.content}
            for m in request.messages
            if m.role != "system"
        ]
        if not conversation:
            raise ValueError("messages must contain at least one user or assistant message")

        return {
            "model": request.model or self.default_model,
            "messages": [{"role": "system", "content": resolve_system_prompt(request.agent_id)}] + conversation,
            "stream": True,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }

    async def open_stream(self, request: ChatRequest) -> "RelayStream":
        """
        Start the upstream request and return the SSE byte stream for the client.

        Raises UpstreamUnavailableError / UpstreamStatusError before anything is
        streamed; after this returns, every failure is handled inside the stream.
        """
        payload = self.build_payload(request)
        upstream_request = self._client.build_request(
            "POST",
            self.api_url,
            json=payload,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
        )
        logger.info(
            "Relaying to Groq: agent=%s model=%s messages=%d",
            get_agent_profile(request.agent_id).key,
            payload["model"],
            len(payload["messages"]),
        )

        try:
            response = await self._client.send(upstream_request, stream=True)
        except httpx.RequestError as e:
            logger.error("Groq unreachable: %s", e)
            raise UpstreamUnavailableError(f"Groq API unreachable: {e}") from e

        if not response.is_success:
            try:
                body = (await response.aread()).decode("utf-8", errors="replace")
            except httpx.HTTPError:
                body = ""
            finally:
                await response.aclose()
            logger.warning("Groq returned %s: %s", response.status_code, body[:500])
            raise UpstreamStatusError(response.status_code, body)

        return RelayStream(response, self._relay(response))

    async def _relay(self, response: httpx.Response) -> AsyncGenerator[bytes, None]:
        """Re-frame the upstream body. Always ends with exactly one done record."""
        frames = FrameBuffer(LINE_DELIMITER)
        content_events = 0
        skipped_lines = 0
        try:
            async for chunk in response.aiter_bytes():
                for line in frames.feed(chunk):
                    event = parse_upstream_line(line)
                    if isinstance(event, StreamDone):
                        yield encode_event(DoneEvent())
                        return
                    if isinstance(event, ContentDelta):
                        content_events += 1
                        yield encode_event(ContentEvent(content=event.text))
                    elif event.reason == "malformed":
                        skipped_lines += 1
            tail = frames.flush()
            if tail.strip():
                logger.debug("Dropping incomplete upstream line at EOF: %r", tail[:200])
            # Upstream closed without [DONE]; still terminate the client's stream.
            logger.warning("Groq stream ended without [DONE]")
            yield encode_event(DoneEvent())
        except Exception as e:
            logger.error("Streaming error after %d content events: %s", content_events, e, exc_info=True)
            yield encode_event(ContentEvent(content=STREAM_FALLBACK_MESSAGE))
            yield encode_event(DoneEvent())
        finally:
            await response.aclose()
            logger.info(
                "Relay session finished: %d content events, %d malformed lines skipped",
                content_events,
                skipped_lines,
            )


class RelayStream:
    """
    The relayed SSE body for one session, tied to the upstream response it reads.

    Iterate it for the bytes to send. aclose() stops the body and closes the
    upstream response; it is safe to call more than once and also works when
    iteration never started.
    """

    def __init__(self, response: httpx.Response, body: AsyncGenerator[bytes, None]):
        self.response = response
        self._body = body

    def __aiter__(self) -> "RelayStream":
        return self

    async def __anext__(self) -> bytes:
        return await self._body.__anext__()

    async def aclose(self) -> None:
        try:
            await self._body.aclose()
        finally:
            await self.response.aclose()
