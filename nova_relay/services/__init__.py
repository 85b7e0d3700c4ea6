"""
SERVICES PACKAGE
=================

Business logic lives here. The API layer (nova_relay.main) calls the relay
service; chat_cli.py and other clients use the stream consumer.

MODULES:
    agent_profiles  - Immutable agent table; key/alias lookup with default fallback.
    relay_service   - Forwards a chat request to Groq and re-frames its stream as SSE.
    stream_consumer - Client side: reads the relay's SSE into one InProgressMessage.
"""
