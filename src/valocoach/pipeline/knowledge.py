"""
Knowledge Embedding Pipeline - turn matches and research into vector knowledge.

Flow for "save knowledge":
  1. Resolve the Riot ID and fetch a page of matches by puuid
  2. Per match: extract the player's view, ask the LLM for a coaching narrative
  3. Build documents (summary, one per relevant kill, one per round, narrative)
  4. Chunk, embed in batches, and upsert into the knowledge index

Research knowledge runs step 4 on an LLM web-research summary or raw text.
"""

import logging
import uuid
from collections import Counter
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from valocoach.ai.documents import Chunk, Document, batched
from valocoach.ai.embeddings import EmbeddingClient
from valocoach.ai.llm_client import LLMClient
from valocoach.analysis.extract import extract_player_view
from valocoach.core.errors import MatchDataError
from valocoach.core.schemas import PlayerView
from valocoach.infra.vector_store import VectorStore
from valocoach.integrations.valorant_api import ValorantAPIClient
from valocoach.integrations.valorant_models import (
    DEFAULT_MODE,
    DEFAULT_PLATFORM,
    DEFAULT_REGION,
    MatchV4,
    Mode,
    Platform,
    Region,
)

logger = logging.getLogger(__name__)

KNOWLEDGE_INDEX_NAME = "valorant_knowledge"
KNOWLEDGE_DIMENSION = 768


class SaveKnowledgeRequest(BaseModel):
    """Input of "save knowledge"."""

    name: str = Field(min_length=1)
    tag: str = Field(min_length=1)
    region: Region = DEFAULT_REGION
    platform: Platform = DEFAULT_PLATFORM
    mode: Mode = DEFAULT_MODE
    size: int = Field(default=5, ge=1, le=10, description="Number of recent matches")


@dataclass
class KnowledgeResult:
    match_id: str | None
    chunks: int
    success: bool = True


def build_match_documents(view: PlayerView, narrative: str, player_puuid: str) -> list[Document]:
    """
    Documents for one match, each tagged with the match metadata.

    Order: player summary, relevant kills, rounds, coaching narrative.
    """
    generated_at = datetime.now(UTC).isoformat()

    def meta(doc_type: str, **extra: Any) -> dict[str, Any]:
        return {
            "type": doc_type,
            "player_puuid": player_puuid,
            **extra,
            "generated_at": generated_at,
            **view["match_metadata"],
        }

    docs = [Document.from_json(view["player_summary"], meta("player_summary"))]
    docs += [
        Document.from_json(kill, meta("player_relevant_kills", round=kill["round"]))
        for kill in view["player_relevant_kills"]
    ]
    docs += [
        Document.from_json(rnd, meta("player_rounds", round=rnd["round_number"]))
        for rnd in view["player_rounds"]
    ]
    docs.append(Document.from_text(narrative, meta("player_coaching_advice")))
    return docs


def knowledge_entry_id(metadata: dict[str, Any], occurrence: int, chunk_index: int) -> str:
    """
    Stable vector id for a chunk of a match document, or a random one otherwise.

    Match chunks are keyed by match, player, document type, round, the
    document's position among same-type documents of that round, and the
    chunk position, so re-saving a match overwrites its entries.
    """
    match_id = metadata.get("match_id")
    if not match_id:
        return str(uuid.uuid4())
    key = "/".join(
        str(part)
        for part in (
            match_id,
            metadata.get("player_puuid"),
            metadata.get("type"),
            metadata.get("round", "-"),
            occurrence,
            chunk_index,
        )
    )
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"valocoach:{key}"))


class KnowledgeEmbeddingPipeline:
    """Chunks, embeds and stores coaching knowledge."""

    def __init__(
        self,
        api: ValorantAPIClient,
        llm: LLMClient,
        embedder: EmbeddingClient,
        store: VectorStore,
        index_name: str = KNOWLEDGE_INDEX_NAME,
        dimension: int = KNOWLEDGE_DIMENSION,
        chunk_size: int = 512,
        batch_size: int = 100,
    ):
        self.api = api
        self.llm = llm
        self.embedder = embedder
        self.store = store
        self.index_name = index_name
        self.dimension = dimension
        self.chunk_size = chunk_size
        self.batch_size = batch_size

    def embed_documents(self, docs: list[Document]) -> int:
        """
        Chunk documents, embed chunk texts in batches and upsert them.

        Each stored entry's metadata is the document metadata plus the chunk
        text under "text". Match chunks get stable ids (see knowledge_entry_id).

        Returns:
            Number of chunks stored
        """
        chunks: list[Chunk] = []
        ids: list[str] = []
        seen: Counter = Counter()
        for doc in docs:
            meta = doc.metadata
            slot = (meta.get("match_id"), meta.get("player_puuid"), meta.get("type"), meta.get("round"))
            occurrence = seen[slot]
            seen[slot] += 1
            for i, chunk in enumerate(doc.chunk(self.chunk_size)):
                chunks.append(chunk)
                ids.append(knowledge_entry_id(chunk.metadata, occurrence, i))
        if not chunks:
            return 0

        vectors: list[list[float]] = []
        for batch in batched([c.text for c in chunks], self.batch_size):
            vectors.extend(self.embedder.embed_many(batch))

        self.store.create_index(self.index_name, self.dimension)
        self.store.upsert(
            self.index_name,
            vectors=vectors,
            metadata=[{**c.metadata, "text": c.text} for c in chunks],
            ids=ids,
        )
        logger.info("Stored %d chunks from %d documents in %s", len(chunks), len(docs), self.index_name)
        return len(chunks)

    def save_match_knowledge(self, match: MatchV4, puuid: str) -> KnowledgeResult:
        view = extract_player_view(match, puuid)
        if view is None:
            raise MatchDataError(f"Player {puuid} is not in match {match.match_id}")

        narrative = self.llm.generate_coaching_narrative(view)
        docs = build_match_documents(view, narrative, puuid)
        count = self.embed_documents(docs)
        return KnowledgeResult(match_id=match.match_id, chunks=count, success=True)

    def save_knowledge(self, request: SaveKnowledgeRequest) -> list[KnowledgeResult]:
        """Embed coaching knowledge for the player's most recent matches."""
        account = self.api.get_account(request.name, request.tag)
        matches = self.api.get_matches_by_puuid(
            account.puuid,
            request.region,
            request.platform,
            mode=request.mode,
            size=request.size,
        )
        logger.info(
            "Building knowledge for %s#%s from %d matches", request.name, request.tag, len(matches)
        )
        return [self.save_match_knowledge(match, account.puuid) for match in matches]

    def save_text_knowledge(self, text: str, topic: str, source: str = "manual") -> int:
        """Store free text (notes, guides) as a research document."""
        doc = Document.from_text(
            text,
            {
                "type": "research",
                "topic": topic,
                "source": source,
                "generated_at": datetime.now(UTC).isoformat(),
            },
        )
        return self.embed_documents([doc])

    def save_research_knowledge(self, topic: str) -> int:
        """Research a topic on the web and store the summary."""
        summary = self.llm.research(topic)
        return self.save_text_knowledge(summary, topic, source="web_research")
