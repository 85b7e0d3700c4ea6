"""
SSE FRAMING UTILITY
===================

Everything that knows what the bytes on the wire look like, for both hops:

  Groq -> relay:   one JSON object per line, "data: {...}\\n", ending with "data: [DONE]".
  relay -> client: one JSON object per record, "data: {...}\\n\\n".

FrameBuffer turns a sequence of arbitrary byte chunks into complete records.
Decoding is incremental, so a multi-byte UTF-8 character split across two
chunks is held back until its last byte arrives. The incomplete tail after
the last delimiter stays in the buffer and is only ever re-prefixed onto the
next chunk; it is never parsed on its own.

Example:
  frames = FrameBuffer(RECORD_DELIMITER)
  for chunk in chunks:
      for record in frames.feed(chunk):
          payload = parse_relay_record(record)
"""

import codecs
import json
from typing import Any, Dict, List, Optional

from nova_relay.models import (
    ContentDelta,
    ParseSkip,
    RelayEvent,
    StreamDone,
    UpstreamEvent,
)

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"

# Groq separates events with single newlines; the relay terminates each of its
# records with a blank line. Splitting relay output on "\n" alone would hand a
# half-empty record to the parser.
LINE_DELIMITER = "\n"
RECORD_DELIMITER = "\n\n"


class FrameBuffer:
    """Stateful UTF-8 decoder plus a split buffer for one stream."""

    def __init__(self, delimiter: str = LINE_DELIMITER):
        if not delimiter:
            raise ValueError("delimiter must not be empty")
        self.delimiter = delimiter
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    @property
    def remainder(self) -> str:
        """The incomplete tail held back from the last feed()."""
        return self._buffer

    def feed(self, chunk: bytes) -> List[str]:
        """Decode chunk, append it to the buffer and return every complete record, in order."""
        self._buffer += self._decoder.decode(chunk)
        parts = self._buffer.split(self.delimiter)
        # Last element is always the (possibly empty) incomplete remainder.
        self._buffer = parts.pop()
        return parts

    def flush(self) -> str:
        """
        End of stream: return whatever was never terminated and reset.

        Bytes of an unfinished UTF-8 sequence come back as U+FFFD. Callers only
        report the result; an unterminated record is not parsed.
        """
        tail = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        return tail


def encode_event(event: RelayEvent) -> bytes:
    """Serialize one relay event as an SSE record: data: <json>\\n\\n"""
    return f"{DATA_PREFIX} {event.model_dump_json()}{RECORD_DELIMITER}".encode("utf-8")


def parse_upstream_line(line: str) -> UpstreamEvent:
    """
    Parse one Groq stream line.

    Only "data: " lines count. "[DONE]" ends the stream. Otherwise the payload
    is a chat.completion.chunk and we forward choices[0].delta.content when it
    is a non-empty string. Anything else (keep-alive comments, role-only
    deltas, bad JSON) is a ParseSkip.
    """
    line = line.rstrip("\r")
    if not line.startswith(DATA_PREFIX + " "):
        return ParseSkip(reason="not-data")

    data = line[len(DATA_PREFIX) + 1:].strip()
    if data == DONE_SENTINEL:
        return StreamDone()

    try:
        parsed = json.loads(data)
    except ValueError:
        return ParseSkip(reason="malformed")

    try:
        text = parsed["choices"][0]["delta"].get("content")
    except (KeyError, IndexError, TypeError, AttributeError):
        return ParseSkip(reason="no-delta")

    if isinstance(text, str) and text:
        return ContentDelta(text=text)
    return ParseSkip(reason="empty")


def parse_relay_record(record: str) -> Optional[Dict[str, Any]]:
    """
    Parse one relay SSE record into its JSON object.

    Returns None for records to ignore: blank, not "data:", empty payload,
    "{}", or JSON that is not an object. Raises ValueError (json.JSONDecodeError)
    for malformed JSON so the caller can log and count it.
    """
    record = record.strip()
    if not record or not record.startswith(DATA_PREFIX):
        return None

    data = record[len(DATA_PREFIX):].strip()
    if not data or data == "{}":
        return None

    parsed = json.loads(data)
    if not isinstance(parsed, dict):
        return None
    return parsed
