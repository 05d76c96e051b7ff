"""Tests for the knowledge embedding pipeline."""

from unittest.mock import MagicMock

import pytest
from factories import TARGET_PUUID, make_match

from valocoach.analysis.extract import extract_player_view
from valocoach.core.errors import MatchDataError
from valocoach.pipeline.knowledge import (
    KnowledgeEmbeddingPipeline,
    SaveKnowledgeRequest,
    build_match_documents,
    knowledge_entry_id,
)

DIM = 3


@pytest.fixture
def embedder():
    embedder = MagicMock()
    embedder.embed_many.side_effect = lambda texts: [[1.0, 0.0, 0.0] for _ in texts]
    return embedder


@pytest.fixture
def llm():
    llm = MagicMock()
    llm.generate_coaching_narrative.return_value = "## Overall\nTrade your entry more often."
    llm.research.return_value = "## Ascent meta\nDouble controller is common.\n\n## Sources\n- https://example.com"
    return llm


@pytest.fixture
def pipeline(mock_api, llm, embedder, vector_store):
    # Chunks large enough that every document stays whole
    return KnowledgeEmbeddingPipeline(
        mock_api, llm, embedder, vector_store, index_name="k", dimension=DIM, chunk_size=10_000
    )


def _stored(store, **filter):
    return [r["metadata"] for r in store.query("k", [1.0, 0.0, 0.0], top_k=1000, filter=filter or None)]


class TestBuildMatchDocuments:
    def test_document_order_and_types(self, match):
        view = extract_player_view(match, TARGET_PUUID)
        docs = build_match_documents(view, "narrative", TARGET_PUUID)

        assert [d.metadata["type"] for d in docs] == [
            "player_summary",
            "player_relevant_kills",
            "player_relevant_kills",
            "player_relevant_kills",
            "player_rounds",
            "player_rounds",
            "player_coaching_advice",
        ]
        assert docs[-1].text == "narrative"

    def test_metadata(self, match):
        view = extract_player_view(match, TARGET_PUUID)
        docs = build_match_documents(view, "narrative", TARGET_PUUID)

        for doc in docs:
            assert doc.metadata["player_puuid"] == TARGET_PUUID
            assert doc.metadata["match_id"] == "match-001"
            assert doc.metadata["map_name"] == "Ascent"
            assert "generated_at" in doc.metadata
        assert [d.metadata["round"] for d in docs[1:4]] == [0, 1, 2]
        assert [d.metadata["round"] for d in docs[4:6]] == [1, 3]
        assert "round" not in docs[0].metadata


class TestEmbedDocuments:
    def test_nothing_to_embed(self, pipeline, embedder, vector_store):
        assert pipeline.embed_documents([]) == 0
        embedder.embed_many.assert_not_called()
        assert vector_store.list_indexes() == []

    def test_batches_respect_batch_size(self, mock_api, llm, embedder, vector_store):
        pipeline = KnowledgeEmbeddingPipeline(
            mock_api, llm, embedder, vector_store, index_name="k", dimension=DIM, chunk_size=20, batch_size=4
        )
        count = pipeline.save_text_knowledge("word " * 40, "drills")

        assert count == 10
        assert [len(c.args[0]) for c in embedder.embed_many.call_args_list] == [4, 4, 2]
        assert vector_store.describe_index("k")["count"] == 10

    def test_stored_metadata_includes_text(self, pipeline, vector_store):
        pipeline.save_text_knowledge("Use Sova recon before retakes.", "Ascent B retake", source="notes")

        (meta,) = _stored(vector_store)
        assert meta["text"] == "Use Sova recon before retakes."
        assert meta["type"] == "research"
        assert meta["topic"] == "Ascent B retake"
        assert meta["source"] == "notes"


class TestSaveMatchKnowledge:
    def test_stores_every_document(self, pipeline, llm, vector_store, match):
        result = pipeline.save_match_knowledge(match, TARGET_PUUID)

        assert result.match_id == "match-001"
        assert result.chunks == 7
        assert result.success is True
        llm.generate_coaching_narrative.assert_called_once()
        assert len(_stored(vector_store, type="player_relevant_kills")) == 3
        (advice,) = _stored(vector_store, type="player_coaching_advice")
        assert advice["text"].startswith("## Overall")

    def test_saving_again_overwrites(self, pipeline, llm, vector_store, match):
        pipeline.save_match_knowledge(match, TARGET_PUUID)
        llm.generate_coaching_narrative.return_value = "## Overall\nUse utility before peeking."

        pipeline.save_match_knowledge(match, TARGET_PUUID)

        assert vector_store.describe_index("k")["count"] == 7
        (advice,) = _stored(vector_store, type="player_coaching_advice")
        assert advice["text"] == "## Overall\nUse utility before peeking."

    def test_other_matches_are_kept_apart(self, pipeline, vector_store):
        pipeline.save_match_knowledge(make_match("m1"), TARGET_PUUID)
        pipeline.save_match_knowledge(make_match("m2"), TARGET_PUUID)

        assert vector_store.describe_index("k")["count"] == 14

    def test_absent_player(self, pipeline, llm, match):
        with pytest.raises(MatchDataError):
            pipeline.save_match_knowledge(match, "puuid-stranger")
        llm.generate_coaching_narrative.assert_not_called()

    def test_llm_failure_stores_nothing(self, pipeline, llm, vector_store, match):
        llm.generate_coaching_narrative.side_effect = RuntimeError("overloaded")

        with pytest.raises(RuntimeError):
            pipeline.save_match_knowledge(match, TARGET_PUUID)
        assert vector_store.list_indexes() == []


class TestSaveKnowledge:
    def test_fetches_recent_matches(self, pipeline, mock_api):
        mock_api.get_matches_by_puuid.return_value = [make_match("m1"), make_match("m2")]

        results = pipeline.save_knowledge(SaveKnowledgeRequest(name="Target", tag="JP1", size=2))

        assert [r.match_id for r in results] == ["m1", "m2"]
        mock_api.get_matches_by_puuid.assert_called_once_with(
            TARGET_PUUID, "ap", "pc", mode="competitive", size=2
        )

    def test_request_defaults(self):
        request = SaveKnowledgeRequest(name="Target", tag="JP1")
        assert (request.mode, request.size) == ("competitive", 5)


class TestResearchKnowledge:
    def test_research_summary_is_stored(self, pipeline, llm, vector_store):
        count = pipeline.save_research_knowledge("Ascent meta")

        assert count == 1
        llm.research.assert_called_once_with("Ascent meta")
        (meta,) = _stored(vector_store, type="research")
        assert meta["source"] == "web_research"
        assert meta["topic"] == "Ascent meta"


class TestKnowledgeEntryId:
    def test_match_chunks_are_stable(self):
        meta = {"match_id": "m1", "player_puuid": TARGET_PUUID, "type": "player_rounds", "round": 3}

        assert knowledge_entry_id(meta, 0, 0) == knowledge_entry_id(dict(meta), 0, 0)
        assert knowledge_entry_id(meta, 0, 0) != knowledge_entry_id(meta, 0, 1)
        assert knowledge_entry_id(meta, 0, 0) != knowledge_entry_id(meta, 1, 0)
        assert knowledge_entry_id(meta, 0, 0) != knowledge_entry_id({**meta, "round": 4}, 0, 0)

    def test_research_chunks_get_fresh_ids(self):
        meta = {"type": "research", "topic": "Ascent meta"}
        assert knowledge_entry_id(meta, 0, 0) != knowledge_entry_id(meta, 0, 0)
