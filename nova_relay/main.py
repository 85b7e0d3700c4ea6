"""
N.O.V.A MAIN API
================

This module defines the FastAPI application and all HTTP endpoints. The relay
is stateless: every POST /chat/stream opens one upstream Groq stream and
forwards it as Server-Sent Events, so any number of copies can run side by side.

ENDPOINTS:
  GET     /             - Returns API name and list of endpoints.
  GET     /health       - Returns whether the relay service is initialized.
  GET     /agents       - Lists the agent profiles (ids, names, response budgets).
  POST    /chat/stream  - Streams a reply as text/event-stream records:
                            data: {"content": "..."}   one per delta
                            data: {"done": true}       exactly once, last
  OPTIONS /chat/stream  - CORS preflight (wildcard origin).

ERRORS (before any byte is streamed):
  422 - body failed validation (e.g. no messages).
  400 - no user/assistant message left once system messages are dropped.
  429 - Groq rate limit; 502 - any other Groq error status; 503 - Groq unreachable.
  Once streaming has started, failures become a fallback content record plus done.

STARTUP:
  The lifespan function reads config once and builds the RelayService with it.
  On shutdown it closes the upstream connection pool.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import BackgroundTasks, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response, StreamingResponse
import uvicorn

from config import (
    GROQ_API_KEY,
    GROQ_API_URL,
    GROQ_MAX_TOKENS,
    GROQ_MODEL,
    GROQ_TEMPERATURE,
    HOST,
    LOG_LEVEL,
    PORT,
    UPSTREAM_CONNECT_TIMEOUT,
)
from nova_relay.models import ChatRequest
from nova_relay.services.agent_profiles import list_agent_profiles
from nova_relay.services.relay_service import (
    RelayService,
    UpstreamStatusError,
    UpstreamUnavailableError,
)

# User-friendly message when Groq rate limit (daily token quota) is exceeded.
RATE_LIMIT_MESSAGE = (
    "You've reached the API limit for this assistant. "
    "Please try again in a little while."
)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Max-Age": "86400",
}


# -----------------------------------------------------------------------------
# LOGGING
# -----------------------------------------------------------------------------
logging.basicConfig(
    level=LOG_LEVEL,
    format='%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger("NOVA")


# -----------------------------------------------------------------------------
# GLOBAL SERVICE REFERENCES
# -----------------------------------------------------------------------------
# Set during startup (lifespan) and used by the route handlers. Tests replace it
# with a RelayService wired to a fake upstream.
relay_service: RelayService = None


def print_title():
    """Print the N.O.V.A banner to the console when the server starts."""
    CYAN = "\033[96m"
    MAGENTA = "\033[95m"
    BOLD = "\033[1m"
    RESET = "\033[0m"
    print(f"\n{BOLD}{CYAN}  N . O . V . A{RESET}  {MAGENTA}streaming chat relay{RESET}\n")

# -------------------------------------------------------------------------
# LIFESPAN (STARTUP / SHUTDOWN)
# -------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Build the relay service from config at startup; close its connection pool at shutdown.

    Config is resolved here, once, and handed to RelayService explicitly so the
    service can be constructed with any other settings (tests use a fake Groq).
    """
    global relay_service

    print_title()
    logger.info("=" * 60)
    logger.info("N.O.V.A - Starting Up...")
    logger.info("=" * 60)

    if not GROQ_API_KEY:
        logger.warning("GROQ_API_KEY not set. Groq will reject relayed requests.")

    relay_service = RelayService(
        api_key=GROQ_API_KEY,
        api_url=GROQ_API_URL,
        default_model=GROQ_MODEL,
        max_tokens=GROQ_MAX_TOKENS,
        temperature=GROQ_TEMPERATURE,
        connect_timeout=UPSTREAM_CONNECT_TIMEOUT,
    )
    logger.info("Relay service ready (model %s, %d agents)", GROQ_MODEL, len(list_agent_profiles()))
    logger.info("API: http://localhost:%d", PORT)
    logger.info("=" * 60)

    try:
        yield
    finally:
        logger.info("Shutting down N.O.V.A...")
        if relay_service is not None:
            await relay_service.aclose()
        logger.info("Goodbye!")


# -------------------------------------------------------------------------
# FASTAPI APP AND CORS
# -------------------------------------------------------------------------
app = FastAPI(
    title="N.O.V.A Relay API",
    description="Streams Groq chat completions to the browser over Server-Sent Events",
    lifespan=lifespan
)

# Wildcard origin so any front-end can call the relay. Credentials stay off;
# browsers refuse "*" together with credentials.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =========================================================================
# API ENDPOINTS
# =========================================================================

@app.get("/")
async def root():
    """Return the API name and a short description of each endpoint (for discovery)."""
    return {
        "message": "N.O.V.A Relay API",
        "endpoints": {
            "/chat/stream": "Streaming chat (Server-Sent Events)",
            "/agents": "Available agent profiles",
            "/health": "System health check"
        }
    }


@app.get("/health")
async def health():
    return {
        "status": "healthy",
        "relay_service": relay_service is not None,
    }


@app.get("/agents")
async def agents():
    """List agent profiles. Clients use max_response_time to size their request deadline."""
    return [
        profile.model_dump(exclude={"system_prompt"})
        for profile in list_agent_profiles()
    ]


@app.options("/chat/stream")
async def chat_stream_preflight():
    return Response(status_code=200, headers=CORS_HEADERS)


@app.post("/chat/stream")
async def chat_stream(request: ChatRequest):
    """
    Streaming chat endpoint - relay a conversation to Groq and stream the reply.

    REQUEST BODY:
    {
        "messages": [{"role": "user", "content": "hi"}],
        "agentId": "nova-researcher"
    }

    RESPONSE (text/event-stream):
        data: {"content":"Hel"}

        data: {"content":"lo"}

        data: {"done":true}
    """
    if not relay_service:
        raise HTTPException(status_code=503, detail="Relay service not initialized")

    try:
        stream = await relay_service.open_stream(request)
    except ValueError as e:
        logger.warning(f"Invalid chat request: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except UpstreamStatusError as e:
        detail = {
            "error": str(e),
            "upstream_status": e.status_code,
            "upstream_body": e.body,
        }
        if e.status_code == 429:
            detail["error"] = RATE_LIMIT_MESSAGE
            raise HTTPException(status_code=429, detail=detail)
        raise HTTPException(status_code=502, detail=detail)
    except UpstreamUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))

    # Runs after the response even if the client left before the first chunk.
    background = BackgroundTasks()
    background.add_task(stream.aclose)

    return StreamingResponse(
        stream,
        media_type="text/event-stream",
        headers=SSE_HEADERS,
        background=background,
    )


# -------------------------------------------------------------------------
# STANDALONE RUN (python -m nova_relay.main)
# -------------------------------------------------------------------------
def run():
    """Start the uvicorn server (same as run.py)."""
    uvicorn.run(
        "nova_relay.main:app",
        host=HOST,
        port=PORT,
        log_level="info"
    )

if __name__ == "__main__":
    run()
