"""
CONFIGURATION MODULE
====================

PURPOSE:
  Central place for all N.O.V.A relay settings: the Groq API key and endpoint,
  model defaults, client timeouts, and the agent profile table (system prompts
  and per-agent response budgets).

WHAT THIS FILE DOES:
  - Loads environment variables from .env (so API keys stay out of code).
  - Exposes GROQ_API_KEY, GROQ_API_URL, GROQ_MODEL and the completion knobs.
  - Defines the client-side timeouts (stream window and grace period).
  - Holds the raw agent profile table. nova_relay.services.agent_profiles turns
    it into an immutable lookup once at import.

USAGE:
  Import what you need: `from config import GROQ_API_KEY, AGENT_PROFILES`
  The API layer reads these once at startup and passes them into the relay
  service, so the service itself never touches the environment.
"""

import os
import logging
from dotenv import load_dotenv


logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# ENVIRONMENT
# -----------------------------------------------------------------------------
# Load environment variables from .env file (if it exists).
load_dotenv()


def _env_float(name: str, default: float) -> float:
    """Read a float from the environment; fall back to default on missing or bad values."""
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring invalid value for %s: %r (using %s)", name, raw, default)
        return default


def _env_int(name: str, default: int) -> int:
    """Read an int from the environment; fall back to default on missing or bad values."""
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring invalid value for %s: %r (using %s)", name, raw, default)
        return default


# ============================================================================
# GROQ API CONFIGURATION
# ============================================================================
# Groq exposes an OpenAI-compatible chat completion endpoint. When stream=true
# it answers with "data: {...}" lines and a final "data: [DONE]".

GROQ_API_KEY = os.getenv("GROQ_API_KEY", "").strip()
GROQ_API_URL = os.getenv("GROQ_API_URL", "https://api.groq.com/openai/v1/chat/completions")
GROQ_MODEL = os.getenv("GROQ_MODEL", "llama-3.1-8b-instant")
GROQ_MAX_TOKENS = _env_int("GROQ_MAX_TOKENS", 1000)
GROQ_TEMPERATURE = _env_float("GROQ_TEMPERATURE", 0.7)

# Seconds allowed to open the upstream connection. Reads are unbounded on the
# relay side; the client owns the overall deadline.
UPSTREAM_CONNECT_TIMEOUT = _env_float("UPSTREAM_CONNECT_TIMEOUT", 10.0)

# ============================================================================
# SERVER CONFIGURATION
# ============================================================================

HOST = os.getenv("NOVA_HOST", "0.0.0.0")
PORT = _env_int("NOVA_PORT", 8000)
LOG_LEVEL = os.getenv("NOVA_LOG_LEVEL", "INFO").upper()

# ============================================================================
# CLIENT (STREAM CONSUMER) CONFIGURATION
# ============================================================================
# RELAY_URL: where chat_cli.py and StreamConsumer send requests by default.
# STREAM_TIMEOUT_SECONDS: longest a single reply may stream once headers arrived.
# RESPONSE_TIMEOUT_GRACE_SECONDS: added to an agent's max_response_time to get
#   the overall request deadline.

RELAY_URL = os.getenv("NOVA_RELAY_URL", f"http://localhost:{PORT}")
STREAM_TIMEOUT_SECONDS = _env_float("NOVA_STREAM_TIMEOUT", 60.0)
RESPONSE_TIMEOUT_GRACE_SECONDS = _env_float("NOVA_TIMEOUT_GRACE", 10.0)

# ============================================================================
# AGENT PROFILES
# ============================================================================
# Each agent is a personality: a system prompt plus the response budget the
# client uses for its deadline. "aliases" are the ids older front-ends send
# (nova-general, nova-coder, ...). Lookups of unknown ids use DEFAULT_AGENT_KEY.

DEFAULT_AGENT_KEY = "nova-assistant"

AGENT_PROFILES = (
    {
        "key": "nova-assistant",
        "name": "Nova Assistant",
        "type": "assistant",
        "thinking_style": "analytical",
        "max_response_time": 30,
        "aliases": ("nova-general",),
        "capabilities": ("Language Translation", "Summarization", "Creative Writing", "Problem Solving"),
        "system_prompt": """You are Nova Assistant, a professional AI assistant with comprehensive thinking capabilities. You provide analytical, well-structured responses. You excel at:
- Language Translation: Translating text to break language barriers
- Summarization: Summarizing long texts into concise, easy-to-understand summaries
- Creative Writing: Generating creative content like stories, poems, and creative pieces
- Problem Solving: Systematic analysis and logical problem-solving approaches

Always maintain a professional, helpful tone and show your thinking process clearly.""",
    },
    {
        "key": "researcher",
        "name": "Nova Researcher",
        "type": "researcher",
        "thinking_style": "deep",
        "max_response_time": 60,
        "aliases": ("nova-researcher",),
        "capabilities": ("Research", "Data Analysis", "Report Generation", "Fact Checking"),
        "system_prompt": """You are Nova Researcher, a deep research specialist. You provide thorough, well-researched responses. You specialize in:
- Research: Comprehensive information gathering and analysis
- Data Analysis: In-depth examination of data and patterns
- Report Generation: Creating detailed, well-structured reports
- Fact Checking: Verifying information and cross-referencing sources

Your responses are thorough, detailed, and evidence-based.""",
    },
    {
        "key": "developer",
        "name": "Nova Developer",
        "type": "developer",
        "thinking_style": "fast",
        "max_response_time": 20,
        "aliases": ("nova-developer", "nova-coder"),
        "capabilities": ("Code Generation", "Debugging", "Architecture Design", "Technical Analysis"),
        "system_prompt": """You are Nova Developer, an expert coding assistant. You provide quick, efficient solutions with technical expertise. You specialize in:
- Code Generation: Writing clean, efficient code in multiple programming languages
- Debugging: Identifying and fixing code issues quickly
- Architecture Design: Planning and designing software systems
- Technical Analysis: Evaluating technical approaches and solutions

Respond with practical, implementable code and keep explanations short.""",
    },
    {
        "key": "navigator",
        "name": "Nova Navigator",
        "type": "navigator",
        "thinking_style": "fast",
        "max_response_time": 45,
        "aliases": ("nova-navigator",),
        "capabilities": ("Web Browsing", "Task Automation", "Visual Analysis"),
        "system_prompt": """You are Nova Navigator, an expert at finding and organizing information on the web. You excel at:
- Web Browsing: Explaining how to navigate and interact with websites
- Task Automation: Describing how to automate repetitive web tasks
- Visual Analysis: Analyzing web content and visual elements

Respond with structured, navigable, actionable answers.""",
    },
    {
        "key": "creator",
        "name": "Nova Creator",
        "type": "creator",
        "thinking_style": "analytical",
        "max_response_time": 30,
        "aliases": ("nova-creator",),
        "capabilities": ("Content Creation", "Design Ideas", "Storytelling", "Innovation"),
        "system_prompt": """You are Nova Creator, a creative expert focused on content creation, design, and innovation. You excel at:
- Content Creation: Creating original written content, stories, and articles
- Design Ideas: Generating creative visual and conceptual designs
- Storytelling: Crafting engaging narratives and compelling stories
- Innovation: Developing creative solutions and innovative approaches

Your responses are imaginative, original, and inspiring.""",
    },
)
