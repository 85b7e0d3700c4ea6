"""
AGENT PROFILES MODULE
=====================

Builds the agent table from config.AGENT_PROFILES once, at import, and exposes
read-only lookups. Resolution order for an agent id:

  1. exact key match ("researcher")
  2. alias match ("nova-researcher", the id the web front-end sends)
  3. the default agent (config.DEFAULT_AGENT_KEY)

The same id always resolves to the same profile; nothing here is mutable.
"""

import logging
from types import MappingProxyType
from typing import List, Mapping, Optional

from config import AGENT_PROFILES as _RAW_PROFILES, DEFAULT_AGENT_KEY
from nova_relay.models import AgentProfile

logger = logging.getLogger("NOVA")


def _build_tables():
    profiles = {}
    aliases = {}
    for raw in _RAW_PROFILES:
        profile = AgentProfile(**raw)
        profiles[profile.key] = profile
        for alias in profile.aliases:
            aliases[alias] = profile.key
    if DEFAULT_AGENT_KEY not in profiles:
        raise RuntimeError(f"Default agent {DEFAULT_AGENT_KEY!r} missing from AGENT_PROFILES")
    return MappingProxyType(profiles), MappingProxyType(aliases)


AGENTS: Mapping[str, AgentProfile]
AGENT_ALIASES: Mapping[str, str]
AGENTS, AGENT_ALIASES = _build_tables()
DEFAULT_AGENT: AgentProfile = AGENTS[DEFAULT_AGENT_KEY]


def get_agent_profile(agent_id: Optional[str]) -> AgentProfile:
    """Return the profile for agent_id, falling back to the default agent."""
    if agent_id:
        if agent_id in AGENTS:
            return AGENTS[agent_id]
        if agent_id in AGENT_ALIASES:
            return AGENTS[AGENT_ALIASES[agent_id]]
        logger.debug("Unknown agent %r, using %s", agent_id, DEFAULT_AGENT.key)
    return DEFAULT_AGENT


def resolve_system_prompt(agent_id: Optional[str]) -> str:
    return get_agent_profile(agent_id).system_prompt


def list_agent_profiles() -> List[AgentProfile]:
    """All profiles in configuration order (default agent first)."""
    return list(AGENTS.values())
