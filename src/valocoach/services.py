"""
Composition root.

Services owns every connection object of a process: the relational
database, the vector store, the HTTP clients, the LLM and the embedder.
Each one is built on first access and reused afterwards; pipelines and
agents receive them by injection.

Usage:
    services = Services.from_config(load_config())
    services.ingestion.save_match(SaveMatchRequest(name="Player", tag="JP1"))
"""

import logging
from functools import cached_property

from valocoach.ai.agents import (
    CoachAgent,
    ConversationMemory,
    create_coach_agent,
    create_match_coach_agent,
    create_research_agent,
)
from valocoach.ai.embeddings import EmbeddingClient
from valocoach.ai.llm_client import LLMClient
from valocoach.core.config import ValoCoachConfig, get_config
from valocoach.infra.database import DatabaseManager
from valocoach.infra.vector_store import VectorStore
from valocoach.integrations.aimlab import AimlabClient
from valocoach.integrations.valorant_api import ValorantAPIClient
from valocoach.pipeline.ingest import MatchIngestionPipeline
from valocoach.pipeline.knowledge import KnowledgeEmbeddingPipeline

logger = logging.getLogger(__name__)


class Services:
    """Lazily-built, process-wide collaborators."""

    def __init__(self, config: ValoCoachConfig, resource_id: str | None = None):
        self.config = config
        self.resource_id = resource_id

    @classmethod
    def from_config(
        cls, config: ValoCoachConfig | None = None, resource_id: str | None = None
    ) -> "Services":
        return cls(config or get_config(), resource_id=resource_id)

    # =========================================================================
    # Connections
    # =========================================================================

    @cached_property
    def db(self) -> DatabaseManager:
        cfg = self.config.database
        return DatabaseManager(cfg.url, auth_token=cfg.auth_token, echo=cfg.echo)

    @cached_property
    def vector_store(self) -> VectorStore:
        cfg = self.config.vector_store
        return VectorStore(cfg.url, auth_token=cfg.auth_token)

    @cached_property
    def api(self) -> ValorantAPIClient:
        cfg = self.config.valorant_api
        return ValorantAPIClient(api_key=cfg.api_key, base_url=cfg.base_url, timeout=cfg.timeout)

    @cached_property
    def aimlab(self) -> AimlabClient:
        cfg = self.config.aimlab
        return AimlabClient(endpoint=cfg.endpoint, timeout=cfg.timeout)

    @cached_property
    def llm(self) -> LLMClient:
        cfg = self.config.llm
        return LLMClient(api_key=cfg.api_key, tier=cfg.tier, timeout=cfg.timeout)

    @cached_property
    def embedder(self) -> EmbeddingClient:
        cfg = self.config.embedding
        return EmbeddingClient(api_key=cfg.api_key, model=cfg.model, timeout=cfg.timeout)

    # =========================================================================
    # Pipelines
    # =========================================================================

    @cached_property
    def ingestion(self) -> MatchIngestionPipeline:
        return MatchIngestionPipeline(
            self.api, self.db, page_delay=self.config.pipeline.page_delay_seconds
        )

    @cached_property
    def knowledge(self) -> KnowledgeEmbeddingPipeline:
        return KnowledgeEmbeddingPipeline(
            self.api,
            self.llm,
            self.embedder,
            self.vector_store,
            index_name=self.config.vector_store.index_name,
            dimension=self.config.vector_store.dimension,
            chunk_size=self.config.embedding.chunk_size,
            batch_size=self.config.embedding.batch_size,
        )

    # =========================================================================
    # Agents
    # =========================================================================

    @cached_property
    def memory(self) -> ConversationMemory:
        return ConversationMemory(self.db, resource_id=self.resource_id)

    @cached_property
    def coach_agent(self) -> CoachAgent:
        return create_coach_agent(
            self.llm,
            self.db,
            self.aimlab,
            self.embedder,
            self.vector_store,
            self.config.vector_store.index_name,
            ingest=self.ingestion,
            knowledge=self.knowledge,
            memory=self.memory,
        )

    @cached_property
    def match_coach_agent(self) -> CoachAgent:
        return create_match_coach_agent(
            self.llm,
            self.api,
            self.aimlab,
            self.embedder,
            self.vector_store,
            self.config.vector_store.index_name,
            knowledge=self.knowledge,
            memory=self.memory,
        )

    @cached_property
    def research_agent(self) -> CoachAgent:
        return create_research_agent(
            self.llm,
            self.api,
            self.embedder,
            self.vector_store,
            self.config.vector_store.index_name,
            knowledge=self.knowledge,
            memory=self.memory,
        )

    def agent(self, name: str) -> CoachAgent:
        """Agent by short name: coach, match-coach or research."""
        agents = {
            "coach": lambda: self.coach_agent,
            "match-coach": lambda: self.match_coach_agent,
            "research": lambda: self.research_agent,
        }
        if name not in agents:
            raise KeyError(f"Unknown agent '{name}'. Choose from: {', '.join(agents)}")
        return agents[name]()
