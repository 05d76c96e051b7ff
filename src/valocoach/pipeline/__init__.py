"""
ValoCoach Pipeline - Match ingestion and knowledge embedding.

This module handles:
- Account resolution and player upsert
- Paged match fetching
- Per-match relational upserts (save match / save all matches)
- Player-view narratives chunked and embedded into the vector store
"""

from valocoach.pipeline.ingest import (
    MatchIngestionPipeline,
    SaveMatchRequest,
    SaveMatchResult,
)
from valocoach.pipeline.knowledge import (
    KnowledgeEmbeddingPipeline,
    KnowledgeResult,
    SaveKnowledgeRequest,
)

__all__ = [
    "MatchIngestionPipeline",
    "SaveMatchRequest",
    "SaveMatchResult",
    "KnowledgeEmbeddingPipeline",
    "KnowledgeResult",
    "SaveKnowledgeRequest",
]
