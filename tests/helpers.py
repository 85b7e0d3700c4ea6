"""Test helpers: fake response bodies in Groq's and the relay's framing."""

import asyncio
import json
from typing import Iterable, List, Optional

import httpx


class ChunkedStream(httpx.AsyncByteStream):
    """
    Response body that yields pre-cut chunks, optionally slowly or with a failure.

    closed records whether the reader released the body.
    """

    def __init__(
        self,
        chunks: Iterable[bytes],
        delay: float = 0.0,
        fail_after: Optional[int] = None,
        hang_after: Optional[int] = None,
    ):
        self.chunks = list(chunks)
        self.delay = delay
        self.fail_after = fail_after
        self.hang_after = hang_after
        self.closed = False

    async def __aiter__(self):
        for i, chunk in enumerate(self.chunks):
            if self.fail_after is not None and i == self.fail_after:
                raise httpx.ReadError("connection reset by peer")
            if self.hang_after is not None and i == self.hang_after:
                await asyncio.sleep(3600)
            if self.delay:
                await asyncio.sleep(self.delay)
            yield chunk
        if self.hang_after is not None and self.hang_after >= len(self.chunks):
            await asyncio.sleep(3600)

    async def aclose(self):
        self.closed = True


def groq_chunk(text: str) -> str:
    return "data: " + json.dumps({"choices": [{"index": 0, "delta": {"content": text}}]}, ensure_ascii=False) + "\n\n"


def groq_body(*deltas: str, done: bool = True) -> bytes:
    """An upstream body in Groq's framing: one data line per delta, then [DONE]."""
    body = "".join(groq_chunk(d) for d in deltas)
    if done:
        body += "data: [DONE]\n\n"
    return body.encode("utf-8")


def relay_body(*deltas: str, done: bool = True) -> bytes:
    """A body in the relay's own framing."""
    body = "".join("data: " + json.dumps({"content": d}, ensure_ascii=False) + "\n\n" for d in deltas)
    if done:
        body += 'data: {"done": true}\n\n'
    return body.encode("utf-8")


def split_every(data: bytes, size: int) -> List[bytes]:
    return [data[i:i + size] for i in range(0, len(data), size)]


def parse_sse(body: bytes) -> List[dict]:
    """Decode a relay response body into its JSON records."""
    records = body.decode("utf-8").split("\n\n")
    assert records[-1] == "", "relay body must end with a record delimiter"
    return [json.loads(r[len("data: "):]) for r in records[:-1]]
