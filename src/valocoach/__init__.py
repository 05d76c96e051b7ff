"""
ValoCoach - AI Coaching for VALORANT

Pulls account and match data from the HenrikDev VALORANT API and Aim Lab,
stores per-player match stats in a relational database, embeds coaching
narratives into a vector knowledge store, and exposes all of it to
conversational coaching agents.

Usage:
    from valocoach import SaveMatchRequest, Services, load_config

    services = Services.from_config(load_config())
    result = services.ingestion.save_match(
        SaveMatchRequest(name="Player", tag="JP1", region="ap")
    )
    print(f"saved {result.process_size} of {result.request_size} matches")
"""

__version__ = "0.1.0"
__author__ = "ValoCoach Contributors"


def __getattr__(name):
    """Lazy import for heavy dependencies."""
    if name == "Services":
        from valocoach.services import Services
        return Services
    elif name == "load_config":
        from valocoach.core.config import load_config
        return load_config
    elif name == "ValorantAPIClient":
        from valocoach.integrations.valorant_api import ValorantAPIClient
        return ValorantAPIClient
    elif name == "AimlabClient":
        from valocoach.integrations.aimlab import AimlabClient
        return AimlabClient
    elif name == "extract_player_view":
        from valocoach.analysis.extract import extract_player_view
        return extract_player_view
    elif name == "DatabaseManager":
        from valocoach.infra.database import DatabaseManager
        return DatabaseManager
    elif name == "VectorStore":
        from valocoach.infra.vector_store import VectorStore
        return VectorStore
    elif name == "SaveMatchRequest":
        from valocoach.pipeline.ingest import SaveMatchRequest
        return SaveMatchRequest
    elif name == "SaveKnowledgeRequest":
        from valocoach.pipeline.knowledge import SaveKnowledgeRequest
        return SaveKnowledgeRequest
    raise AttributeError(f"module 'valocoach' has no attribute '{name}'")


__all__ = [
    # Version
    "__version__",
    # Composition
    "Services",
    "load_config",
    # Clients
    "ValorantAPIClient",
    "AimlabClient",
    # Data
    "extract_player_view",
    "DatabaseManager",
    "VectorStore",
    # Pipelines
    "SaveMatchRequest",
    "SaveKnowledgeRequest",
]
