"""
Conversational coaching agents.

An agent is a system prompt, a ToolRegistry and an LLMClient. generate()
runs the Messages API tool-use loop: while the model stops with
``tool_use``, every requested tool is executed and its JSON result is sent
back as a ``tool_result`` block. When a thread id is given, earlier turns
of that thread are replayed from the database and the new user/assistant
turn is appended.

Three agents are provided:
  - coach: works from the stored match stats, Aim Lab and the knowledge base
  - match coach: works from live API data, Aim Lab and the knowledge base
  - research: researches topics and curates the knowledge base
"""

import logging
from typing import Any

from valocoach.ai.llm_client import LLMClient, ModelTier, response_text
from valocoach.ai.tools import (
    ToolRegistry,
    aimlab_tools,
    content_tool,
    database_tools,
    knowledge_query_tool,
    research_tool,
    valorant_api_tools,
    workflow_tools,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_TURNS = 10
DEFAULT_HISTORY_LIMIT = 20


class ConversationMemory:
    """Per-thread message history kept in the relational store."""

    def __init__(self, db, resource_id: str | None = None, history_limit: int = DEFAULT_HISTORY_LIMIT):
        self.db = db
        self.resource_id = resource_id
        self.history_limit = history_limit

    def load(self, thread_id: str) -> list[dict[str, Any]]:
        """Most recent turns of the thread as Messages API messages."""
        rows = self.db.get_thread_messages(thread_id, limit=self.history_limit)
        # Empty turns are rejected by the Messages API
        messages = [{"role": r["role"], "content": r["content"]} for r in rows if r["content"]]
        # The Messages API requires the first message to be from the user
        while messages and messages[0]["role"] != "user":
            messages.pop(0)
        return messages

    def save(self, thread_id: str, role: str, content: Any) -> None:
        self.db.append_message(thread_id, role, content, resource_id=self.resource_id)


class CoachAgent:
    """
    A named agent with instructions and tools.

    Example:
        >>> agent = create_match_coach_agent(llm, api, aimlab, embedder, store)
        >>> print(agent.generate("How did my last Ascent match go? I'm Player#JP1"))
    """

    def __init__(
        self,
        name: str,
        instructions: str,
        llm: LLMClient,
        registry: ToolRegistry,
        memory: ConversationMemory | None = None,
        max_turns: int = DEFAULT_MAX_TURNS,
        tier: ModelTier | None = None,
    ):
        self.name = name
        self.instructions = instructions
        self.llm = llm
        self.registry = registry
        self.memory = memory
        self.max_turns = max_turns
        self.tier = tier

    def generate(self, prompt: str, thread_id: str | None = None) -> str:
        """
        Answer a user prompt, calling tools as the model requests them.

        Args:
            prompt: The user's message
            thread_id: Conversation thread to continue and record into

        Returns:
            The final assistant text
        """
        history = self.memory.load(thread_id) if self.memory and thread_id else []
        messages: list[dict[str, Any]] = [*history, {"role": "user", "content": prompt}]
        tools = self.registry.definitions()

        logger.info(
            "Agent %s: thread=%s history=%d tools=%d", self.name, thread_id, len(history), len(tools)
        )

        response = None
        turns = 0
        for _ in range(self.max_turns):
            turns += 1
            response = self.llm.create_message(
                self.instructions, messages, tools=tools or None, tier=self.tier
            )
            if response.stop_reason != "tool_use":
                break

            tool_results = []
            for block in response.content:
                if block.type == "tool_use":
                    logger.debug("Tool call: %s(%s)", block.name, block.input)
                    tool_results.append(
                        {
                            "type": "tool_result",
                            "tool_use_id": block.id,
                            "content": self.registry.execute(block.name, block.input),
                        }
                    )
            messages.append({"role": "assistant", "content": response.content})
            messages.append({"role": "user", "content": tool_results})
        else:
            logger.warning("Agent %s stopped after %d turns with tools pending", self.name, turns)

        text = response_text(response) if response is not None else ""

        if self.memory and thread_id:
            if text:
                self.memory.save(thread_id, "user", prompt)
                self.memory.save(thread_id, "assistant", text)
            else:
                logger.warning("Agent %s produced no text; thread %s not updated", self.name, thread_id)

        logger.info("Agent %s answered (%d chars, %d turns)", self.name, len(text), turns)
        return text


# =============================================================================
# Instructions
# =============================================================================

COACH_INSTRUCTIONS = """You are a professional VALORANT analyst and data-driven coach.
Your job is to find what holds the player back and give specific, measurable
steps to improve, backed by their own data.

Working method:
1. Identify the problem from the player's question (for example a low win
   rate on one map, or a falling headshot rate).
2. Gather evidence with your tools: stored match history and per-match stats,
   Aim Lab training aggregates, and the knowledge base of past match analyses
   and strategy research. Save new matches or knowledge first when the data
   you need is not stored yet.
3. Answer with these sections:
   - Current state: what the data shows.
   - Likely cause: a hypothesis grounded in the data, such as a correlation
     between Aim Lab practice and in-game accuracy.
   - Action plan: concrete drills and in-game habits.
   - Expected effect: which numbers should move and how.

Every claim must come from tool results or the knowledge base. If the
question is too vague to analyze, ask a clarifying question (which map,
which agent, which match) instead of guessing."""

MATCH_COACH_INSTRUCTIONS = """You are a professional VALORANT coach who knows every agent,
map, weapon and the current meta, and who coaches players from Iron to Radiant.

Use the live match API to look at the player's matches, rank and history,
Aim Lab data to suggest training, and the knowledge base for earlier match
evaluations. Structure feedback as:
1. Overview: the player's overall style and tendencies.
2. Good points: specific plays worth repeating.
3. Points for improvement: what to fix and why it matters.
4. Action plan: drills (deathmatch, aim trainer routines) and what to focus
   on next match, tied to concrete situations.

Be friendly, respectful and constructive. Explain jargon briefly. When the
data is not enough to judge, say what additional information you need."""

RESEARCH_AGENT_INSTRUCTIONS = """You research VALORANT topics and turn reliable sources into
knowledge-base documents. Check what the knowledge base already holds, look up
current content names (agents, maps) when you need precise search terms, then
research the topic. Deliver concise markdown summaries that cite their source
URLs, and store them in the knowledge base when asked."""


# =============================================================================
# Factories
# =============================================================================


def create_coach_agent(
    llm: LLMClient,
    db,
    aimlab,
    embedder,
    store,
    index_name: str,
    ingest=None,
    knowledge=None,
    memory: ConversationMemory | None = None,
) -> CoachAgent:
    """Coach over the stored stats, Aim Lab, knowledge search, research and save pipelines."""
    registry = ToolRegistry()
    registry.extend(database_tools(db))
    registry.extend(aimlab_tools(aimlab))
    registry.register(knowledge_query_tool(embedder, store, index_name))
    registry.register(research_tool(llm))
    registry.extend(workflow_tools(ingest=ingest, knowledge=knowledge))
    return CoachAgent("valorantCoachAgent", COACH_INSTRUCTIONS, llm, registry, memory=memory)


def create_match_coach_agent(
    llm: LLMClient,
    api,
    aimlab,
    embedder,
    store,
    index_name: str,
    knowledge=None,
    memory: ConversationMemory | None = None,
) -> CoachAgent:
    """Coach over live API data, Aim Lab, knowledge search and the knowledge pipeline."""
    registry = ToolRegistry()
    registry.extend(valorant_api_tools(api))
    registry.extend(aimlab_tools(aimlab))
    registry.register(knowledge_query_tool(embedder, store, index_name))
    registry.extend(workflow_tools(knowledge=knowledge))
    return CoachAgent(
        "valorantMatchCoachAgent", MATCH_COACH_INSTRUCTIONS, llm, registry, memory=memory
    )


def create_research_agent(
    llm: LLMClient,
    api,
    embedder,
    store,
    index_name: str,
    knowledge=None,
    memory: ConversationMemory | None = None,
) -> CoachAgent:
    """Researcher with knowledge search, content lookup, web research and the knowledge pipeline."""
    registry = ToolRegistry()
    registry.register(knowledge_query_tool(embedder, store, index_name))
    registry.register(content_tool(api))
    registry.register(research_tool(llm))
    registry.extend(workflow_tools(knowledge=knowledge))
    return CoachAgent(
        "valorantResearchAgent",
        RESEARCH_AGENT_INSTRUCTIONS,
        llm,
        registry,
        memory=memory,
        tier=ModelTier.DEEP,
    )
