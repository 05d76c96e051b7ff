"""
ValoCoach Knowledge Vector Store.

Named vector indexes stored in a relational database through SQLAlchemy.
Embeddings are kept as float32 blobs next to a JSON metadata column and
ranked with numpy cosine similarity at query time, which is plenty for a
personal knowledge base of a few thousand chunks.

Default location is a local SQLite file; VALORANT_KNOWLEDGE_VECTOR_URL and
VALORANT_KNOWLEDGE_AUTH_TOKEN point it at a hosted libSQL database instead.
"""

import logging
import os
import uuid
from datetime import UTC, datetime
from typing import Any

import numpy as np
from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, LargeBinary, String
from sqlalchemy.orm import declarative_base, sessionmaker

from valocoach.core.schemas import VectorQueryResult
from valocoach.infra.database import build_engine, dialect_insert

logger = logging.getLogger(__name__)

DEFAULT_VECTOR_URL = "sqlite:///knowledge.db"
VectorBase = declarative_base()


def _utc_now() -> datetime:
    return datetime.now(UTC)


class VectorIndex(VectorBase):
    __tablename__ = "vector_indexes"

    name = Column(String(100), primary_key=True)
    dimension = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=_utc_now)


class VectorEntry(VectorBase):
    __tablename__ = "vector_entries"

    index_name = Column(String(100), ForeignKey("vector_indexes.name"), primary_key=True)
    vector_id = Column(String(100), primary_key=True)
    embedding = Column(LargeBinary, nullable=False)
    entry_metadata = Column(JSON)


def _to_blob(vector: list[float] | np.ndarray) -> bytes:
    return np.asarray(vector, dtype=np.float32).tobytes()


def _from_blob(blob: bytes) -> np.ndarray:
    return np.frombuffer(blob, dtype=np.float32)


class VectorStore:
    """Create, fill and query named vector indexes."""

    def __init__(self, url: str | None = None, auth_token: str | None = None, echo: bool = False):
        self.url = url or os.environ.get("VALORANT_KNOWLEDGE_VECTOR_URL", DEFAULT_VECTOR_URL)
        auth_token = auth_token or os.environ.get("VALORANT_KNOWLEDGE_AUTH_TOKEN")

        self.engine = build_engine(self.url, auth_token=auth_token, echo=echo)
        self.SessionLocal = sessionmaker(bind=self.engine)
        VectorBase.metadata.create_all(self.engine)

    def create_index(self, name: str, dimension: int) -> None:
        """
        Create an index if it does not exist yet.

        Raises:
            ValueError: the index exists with a different dimension
        """
        session = self.SessionLocal()
        try:
            existing = session.get(VectorIndex, name)
            if existing is not None:
                if existing.dimension != dimension:
                    raise ValueError(
                        f"Index '{name}' exists with dimension {existing.dimension}, "
                        f"requested {dimension}"
                    )
                return
            session.add(VectorIndex(name=name, dimension=dimension))
            session.commit()
            logger.info("Created vector index %s (dimension=%d)", name, dimension)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def list_indexes(self) -> list[str]:
        session = self.SessionLocal()
        try:
            return [row.name for row in session.query(VectorIndex).order_by(VectorIndex.name)]
        finally:
            session.close()

    def describe_index(self, name: str) -> dict[str, Any]:
        """Dimension and entry count of an index."""
        session = self.SessionLocal()
        try:
            index = session.get(VectorIndex, name)
            if index is None:
                raise KeyError(f"Index '{name}' does not exist")
            count = session.query(VectorEntry).filter(VectorEntry.index_name == name).count()
            return {"name": name, "dimension": index.dimension, "count": count}
        finally:
            session.close()

    def upsert(
        self,
        index_name: str,
        vectors: list[list[float]],
        metadata: list[dict[str, Any]],
        ids: list[str] | None = None,
    ) -> list[str]:
        """
        Insert vectors, overwriting entries whose id already exists.

        Args:
            index_name: Target index (must exist)
            vectors: One embedding per entry, each of the index dimension
            metadata: One JSON-serializable dict per entry
            ids: Entry ids; random UUIDs when omitted

        Returns:
            The ids written, in input order
        """
        if len(vectors) != len(metadata):
            raise ValueError(f"Got {len(vectors)} vectors but {len(metadata)} metadata entries")
        if ids is None:
            ids = [str(uuid.uuid4()) for _ in vectors]
        elif len(ids) != len(vectors):
            raise ValueError(f"Got {len(vectors)} vectors but {len(ids)} ids")

        session = self.SessionLocal()
        try:
            index = session.get(VectorIndex, index_name)
            if index is None:
                raise KeyError(f"Index '{index_name}' does not exist")
            for vector in vectors:
                if len(vector) != index.dimension:
                    raise ValueError(
                        f"Vector of length {len(vector)} does not match index dimension "
                        f"{index.dimension}"
                    )

            insert = dialect_insert(session)
            for vector_id, vector, meta in zip(ids, vectors, metadata, strict=True):
                stmt = insert(VectorEntry).values(
                    index_name=index_name,
                    vector_id=vector_id,
                    embedding=_to_blob(vector),
                    entry_metadata=meta,
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=[VectorEntry.index_name, VectorEntry.vector_id],
                    set_={
                        "embedding": stmt.excluded.embedding,
                        "entry_metadata": stmt.excluded.entry_metadata,
                    },
                )
                session.execute(stmt)
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

        logger.debug("Upserted %d vectors into %s", len(ids), index_name)
        return ids

    def query(
        self,
        index_name: str,
        query_vector: list[float],
        top_k: int = 10,
        filter: dict[str, Any] | None = None,
    ) -> list[VectorQueryResult]:
        """
        Rank entries by cosine similarity to query_vector.

        Args:
            filter: Exact-match conditions on metadata keys; all must hold
        """
        session = self.SessionLocal()
        try:
            entries = session.query(VectorEntry).filter(VectorEntry.index_name == index_name).all()
        finally:
            session.close()

        if filter:
            entries = [
                e
                for e in entries
                if all((e.entry_metadata or {}).get(k) == v for k, v in filter.items())
            ]
        if not entries:
            return []

        matrix = np.vstack([_from_blob(e.embedding) for e in entries])
        query = np.asarray(query_vector, dtype=np.float32)
        if matrix.shape[1] != query.shape[0]:
            raise ValueError(
                f"Query of length {query.shape[0]} does not match index dimension {matrix.shape[1]}"
            )

        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        scores = np.divide(matrix @ query, norms, out=np.zeros(len(entries)), where=norms > 0)
        order = np.argsort(-scores, kind="stable")[:top_k]

        return [
            {
                "id": entries[i].vector_id,
                "score": float(scores[i]),
                "metadata": entries[i].entry_metadata or {},
            }
            for i in order
        ]
