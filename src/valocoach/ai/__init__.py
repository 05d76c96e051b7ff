"""
ValoCoach AI - LLM-powered coaching and knowledge generation.

Live modules:
- llm_client: Anthropic client for narratives, research and tool turns
- embeddings: text embedding client
- documents: knowledge documents and chunking
- tools: tool registry handed to agents
- agents: conversational coaching agents
"""

__all__: list[str] = [
    "llm_client",
    "embeddings",
    "documents",
    "tools",
    "agents",
]
