"""
Two-Tier LLM Client for VALORANT coaching.

Architecture:
  - STANDARD tier (Haiku 4.5): match narratives and agent turns
  - DEEP tier (Sonnet 4.5): web research and long-form analysis

Prompt caching: system prompts are sent with a cache_control header so
repeated calls within 5 minutes pay less on input tokens.

Cost tracking: every API call logs model, tokens, estimated cost, and cache
hit status.

Errors propagate to the caller. Pipelines that store the generated text must
not store a placeholder when the model call failed.
"""

import json
import logging
import os
from enum import StrEnum
from typing import Any

from valocoach.core.schemas import PlayerView

logger = logging.getLogger(__name__)


# =============================================================================
# Model Tier Configuration
# =============================================================================


class ModelTier(StrEnum):
    """Two-tier model selection for cost optimization."""

    STANDARD = "claude-haiku-4-5-20251001"
    DEEP = "claude-sonnet-4-5-20250929"

    @classmethod
    def from_name(cls, name: str | None) -> "ModelTier":
        """Map "standard" / "deep" (any case) to a tier; anything else is STANDARD."""
        if name and name.lower().strip() == "deep":
            return cls.DEEP
        return cls.STANDARD


def _get_default_tier() -> ModelTier:
    """Get default tier from environment or fall back to STANDARD."""
    return ModelTier.from_name(os.getenv("VALOCOACH_LLM_TIER"))


# Pricing per million tokens (USD)
_PRICING = {
    ModelTier.STANDARD: {"input": 1.0, "output": 5.0, "cache_read": 0.1},
    ModelTier.DEEP: {"input": 3.0, "output": 15.0, "cache_read": 0.3},
}

# Server-side web search, billed per search on top of tokens
WEB_SEARCH_TOOL = {"type": "web_search_20250305", "name": "web_search", "max_uses": 5}


def _log_usage(tier: ModelTier, usage: Any) -> None:
    """Log token usage and estimated cost after each API call."""
    prices = _PRICING[tier]
    input_tokens = getattr(usage, "input_tokens", 0) or 0
    output_tokens = getattr(usage, "output_tokens", 0) or 0
    cache_read = getattr(usage, "cache_read_input_tokens", 0) or 0
    cache_creation = getattr(usage, "cache_creation_input_tokens", 0) or 0

    # Non-cached input tokens = total input - cache_read - cache_creation
    regular_input = max(0, input_tokens - cache_read - cache_creation)

    input_cost = regular_input * prices["input"] / 1_000_000
    output_cost = output_tokens * prices["output"] / 1_000_000
    cache_read_cost = cache_read * prices["cache_read"] / 1_000_000
    # Cache creation costs 25% more than regular input
    cache_create_cost = cache_creation * prices["input"] * 1.25 / 1_000_000
    total_cost = input_cost + output_cost + cache_read_cost + cache_create_cost

    logger.info(
        "LLM call: model=%s in_tok=%d out_tok=%d cache_read=%d cache_create=%d cost=$%.4f",
        tier.value,
        input_tokens,
        output_tokens,
        cache_read,
        cache_creation,
        total_cost,
    )


def _build_cached_system(prompt_text: str) -> list[dict[str, Any]]:
    """Wrap a system prompt string in the Anthropic cache_control format."""
    return [
        {
            "type": "text",
            "text": prompt_text,
            "cache_control": {"type": "ephemeral"},
        }
    ]


def response_text(message: Any) -> str:
    """Concatenate the text blocks of a Messages API response."""
    return "".join(
        block.text for block in message.content if getattr(block, "type", None) == "text"
    )


# =============================================================================
# System prompts
# =============================================================================

MATCH_COACHING_SYSTEM_PROMPT = """You are an experienced VALORANT coach.
You receive one player's data from a single match as JSON: match metadata,
the player's overall stats, economy and ability usage, a round-by-round
breakdown, and every kill the player was involved in.

Write coaching advice addressed directly to the player. Cover:
1. **Overall performance**: KDA, combat score, damage dealt and received,
   economy (credits spent and loadout value).
2. **Round summaries and key events**: kills and deaths per round, spike
   plant and defuse involvement, economy state, ability usage.
3. **Duels**: which weapons won or lost fights, who killed the player,
   patterns in where and when the player died.
4. **Ability usage**: cast counts and what they suggest about timing.
5. **Concrete improvements**: specific actions for specific situations, such
   as buy decisions on bad economy rounds, ability use before entering a
   site, or positioning in duels.

Use a friendly, constructive tone. Base every judgement on the numbers in
the data and never invent stats that are not there. Cite round numbers when
discussing key moments. Format the answer in markdown."""

RESEARCH_SYSTEM_PROMPT = """You are a VALORANT research analyst.
Search the web for current, reliable information on the topic you are given
(patch notes, agent and map meta, pro play, lineups, training routines).
Write a well-structured markdown summary that a coach can store as reference
knowledge. Prefer recent sources, note the patch or date where it matters,
and finish with a "Sources" list of the URLs you used."""


# =============================================================================
# LLMClient
# =============================================================================


class LLMClient:
    """
    Client for coaching narratives, web research and raw agent turns.

    Uses two-tier model selection:
      - STANDARD (Haiku 4.5): default
      - DEEP (Sonnet 4.5): research and explicit overrides
    """

    def __init__(
        self,
        api_key: str | None = None,
        tier: ModelTier | str | None = None,
        timeout: int = 60,
    ):
        """
        Initialize LLM client.

        Args:
            api_key: Anthropic API key (defaults to ANTHROPIC_API_KEY env var)
            tier: Model tier or tier name (defaults to VALOCOACH_LLM_TIER or STANDARD)
            timeout: Request timeout in seconds
        """
        self.api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        if isinstance(tier, ModelTier):
            self.default_tier = tier
        elif tier:
            self.default_tier = ModelTier.from_name(tier)
        else:
            self.default_tier = _get_default_tier()
        self.timeout = timeout

        # Lazy import to avoid requiring anthropic if not used
        self._client = None

    def _get_client(self):
        """Lazy initialization of Anthropic client."""
        if not self.api_key:
            raise ValueError(
                "ANTHROPIC_API_KEY not configured. "
                "Set environment variable or pass api_key to constructor."
            )
        if self._client is None:
            import anthropic

            self._client = anthropic.Anthropic(api_key=self.api_key, timeout=self.timeout)
        return self._client

    def create_message(
        self,
        system: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        tier: ModelTier | None = None,
        max_tokens: int = 4096,
    ) -> Any:
        """
        One raw Messages API turn with usage logging.

        Returns:
            The provider response object (content blocks, stop_reason, usage)
        """
        use_tier = tier or self.default_tier
        kwargs: dict[str, Any] = {
            "model": use_tier.value,
            "max_tokens": max_tokens,
            "system": _build_cached_system(system),
            "messages": messages,
        }
        if tools:
            kwargs["tools"] = tools

        response = self._get_client().messages.create(**kwargs)
        _log_usage(use_tier, response.usage)
        return response

    def generate_coaching_narrative(
        self, view: PlayerView, tier: ModelTier | None = None
    ) -> str:
        """
        Generate coaching advice for one player's view of a match.

        Args:
            view: Output of extract_player_view()
            tier: Override model tier for this call

        Returns:
            Markdown coaching text

        Raises:
            ValueError: If API key not configured
            anthropic.APIError: If the call fails
        """
        summary = view["player_summary"]
        riot_id = f"{summary.get('name')}#{summary.get('tag')}"
        user_prompt = (
            f'The JSON below is the performance of player "{riot_id}" in one match.\n\n'
            f"---\nMatch data (JSON):\n{json.dumps(view, ensure_ascii=False, default=str)}\n---"
        )

        logger.info(
            "Generating coaching narrative for %s, match %s",
            riot_id,
            view["match_metadata"].get("match_id"),
        )
        message = self.create_message(
            MATCH_COACHING_SYSTEM_PROMPT,
            [{"role": "user", "content": user_prompt}],
            tier=tier,
            max_tokens=2048,
        )
        text = response_text(message)
        logger.info("Coaching narrative generated (%d chars)", len(text))
        return text

    def research(self, topic: str, tier: ModelTier | None = None) -> str:
        """
        Research a topic with the provider's web search tool.

        Returns:
            Markdown summary ending with the cited source URLs
        """
        use_tier = tier or ModelTier.DEEP
        logger.info("Researching topic: %s", topic)
        message = self.create_message(
            RESEARCH_SYSTEM_PROMPT,
            [{"role": "user", "content": f"Research this VALORANT topic: {topic}"}],
            tools=[WEB_SEARCH_TOOL],
            tier=use_tier,
            max_tokens=4096,
        )
        text = response_text(message)

        urls = _cited_urls(message)
        if urls and "Sources" not in text:
            text += "\n\n## Sources\n" + "\n".join(f"- {u}" for u in urls)
        logger.info("Research complete (%d chars, %d sources)", len(text), len(urls))
        return text


def _cited_urls(message: Any) -> list[str]:
    """Unique URLs from web search citations, in order of first appearance."""
    seen: list[str] = []
    for block in message.content:
        for citation in getattr(block, "citations", None) or []:
            url = getattr(citation, "url", None)
            if url and url not in seen:
                seen.append(url)
    return seen
