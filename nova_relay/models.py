"""
DATA MODELS MODULE
==================

This file defines the Pydantic models used for API requests, agent profiles,
stream events, and the client-side message that a stream is reassembled into.
FastAPI uses ChatRequest to validate incoming JSON; the relay and the consumer
use the event models to keep the wire format in one place.

MODELS:
  ChatMessage       - One message in a conversation (role + content).
  ChatRequest       - Body of POST /chat/stream (messages + agent selector + pass-through fields).
  AgentProfile      - One agent personality: system prompt and response budget. Immutable.
  ContentDelta, StreamDone, ParseSkip
                    - What one upstream (Groq) line parses into.
  ContentEvent, DoneEvent, ErrorEvent
                    - What the relay sends to its client, one SSE record each.
  MessageState      - Lifecycle of a reply on the client side.
  InProgressMessage - The reply being reassembled by the stream consumer.
"""

from enum import Enum
from typing import List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

# ==============================================================================
# REQUEST MODELS
# ==============================================================================

class ChatMessage(BaseModel):
    """A single message in a conversation. Order in the list defines chronology."""
    role: Literal["system", "user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    """
    Request body for POST /chat/stream.

    - messages: Required, at least one. System messages sent by the caller are
      dropped by the relay; it always prepends the agent's own system prompt.
    - agentId: Optional agent key or alias. Unknown or missing -> default agent.
    - model: Optional Groq model id; the configured default is used otherwise.
    - agentType, conversationId, thinkingStyle: accepted for front-end
      compatibility and passed through unused.
    """
    model_config = ConfigDict(populate_by_name=True)

    messages: List[ChatMessage] = Field(..., min_length=1)
    agent_id: Optional[str] = Field(None, alias="agentId")
    agent_type: Optional[str] = Field(None, alias="agentType")
    conversation_id: Optional[str] = Field(None, alias="conversationId")
    thinking_style: Optional[str] = Field(None, alias="thinkingStyle")
    model: Optional[str] = None


class AgentProfile(BaseModel):
    """
    A chat personality. Built once from config.AGENT_PROFILES and never changed.

    max_response_time is the per-agent budget (seconds) that clients add a grace
    period to when computing their request deadline.
    """
    model_config = ConfigDict(frozen=True)

    key: str
    name: str
    type: str
    thinking_style: str
    max_response_time: float
    system_prompt: str
    aliases: Tuple[str, ...] = ()
    capabilities: Tuple[str, ...] = ()

# ==============================================================================
# UPSTREAM EVENTS (one per Groq line)
# ==============================================================================

class ContentDelta(BaseModel):
    """choices[0].delta.content of one upstream chunk (never empty)."""
    text: str


class StreamDone(BaseModel):
    """The upstream sent its [DONE] sentinel."""


class ParseSkip(BaseModel):
    """A line that carries nothing to forward (not data, empty delta, bad JSON)."""
    reason: str


UpstreamEvent = Union[ContentDelta, StreamDone, ParseSkip]

# ==============================================================================
# RELAY EVENTS (one per SSE record sent to the client)
# ==============================================================================

class ContentEvent(BaseModel):
    content: str


class DoneEvent(BaseModel):
    done: bool = True


class ErrorEvent(BaseModel):
    error: str


RelayEvent = Union[ContentEvent, DoneEvent, ErrorEvent]

# ==============================================================================
# CLIENT-SIDE MESSAGE
# ==============================================================================

class MessageState(str, Enum):
    IDLE = "idle"
    SENDING = "sending"
    STREAMING = "streaming"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    ERRORED = "errored"
    CANCELLED = "cancelled"


class InProgressMessage(BaseModel):
    """
    The assistant reply a stream is being reassembled into.

    is_streaming goes from True to False exactly once (finalize or close).
    After that, append() and finalize() refuse to change anything and return
    False, so a late chunk or a late timeout can never touch a finished reply.
    """
    id: str
    content: str = ""
    is_streaming: bool = True
    error: Optional[str] = None
    state: MessageState = MessageState.IDLE
    # SSE records that could not be parsed as JSON (skipped, not fatal).
    malformed_records: int = 0

    def advance(self, state: MessageState) -> bool:
        """Move between non-terminal states (idle -> sending -> streaming)."""
        if not self.is_streaming:
            return False
        self.state = state
        return True

    def append(self, text: str) -> bool:
        """Append a delta. Returns False (and does nothing) once finalized."""
        if not self.is_streaming:
            return False
        self.content += text
        self.state = MessageState.STREAMING
        return True

    def finalize(
        self,
        state: MessageState,
        content: Optional[str] = None,
        error: Optional[str] = None,
    ) -> bool:
        """One-time transition to a terminal state. Later calls return False."""
        if not self.is_streaming:
            return False
        if content is not None:
            self.content = content
        self.error = error
        self.state = state
        self.is_streaming = False
        return True

    def close(self) -> bool:
        """Stop accepting updates without touching content (used on cancellation)."""
        return self.finalize(MessageState.CANCELLED)
