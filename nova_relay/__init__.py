"""
N.O.V.A RELAY PACKAGE
=====================

This directory is the main Python package for the N.O.V.A chat relay.
The presence of __init__.py makes Python treat 'nova_relay' as a package, so you can:

  from nova_relay.main import app
  from nova_relay.models import ChatRequest
  from nova_relay.services.relay_service import RelayService
  from nova_relay.services.stream_consumer import StreamConsumer

FILE STRUCTURE:
  nova_relay/
    __init__.py   - This file; marks 'nova_relay' as a package.
    main.py       - FastAPI app and all HTTP endpoints (/chat/stream, /agents, /health, etc.).
    models.py     - Pydantic models: chat request, agent profiles, stream events, in-progress message.
    services/     - Agent profile lookup, the Groq relay, and the client-side stream consumer.
    utils/        - SSE framing helpers (frame buffer, upstream line and relay record parsing).
"""
