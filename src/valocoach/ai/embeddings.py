"""
Text embedding client.

Calls the Google Generative Language ``batchEmbedContents`` endpoint over
plain HTTP. ``text-embedding-004`` returns 768-dimensional vectors, which is
the dimension the knowledge index is created with.
"""

import logging
import os

import requests

logger = logging.getLogger(__name__)

GOOGLE_API_BASE = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_EMBEDDING_MODEL = "text-embedding-004"
EMBEDDING_DIMENSIONS = {"text-embedding-004": 768}


class EmbeddingClient:
    """
    Embeds batches of text.

    Requires GOOGLE_API_KEY (or api_key). Each embed_many() call is one HTTP
    request; callers batch their inputs (the API accepts up to 100 texts).
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_EMBEDDING_MODEL,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ):
        self.api_key = api_key or os.environ.get("GOOGLE_API_KEY")
        self.model = model
        self.timeout = timeout
        self._session = session

    @property
    def dimension(self) -> int:
        return EMBEDDING_DIMENSIONS.get(self.model, 768)

    def _get_session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
        return self._session

    def embed_many(self, texts: list[str], task_type: str = "RETRIEVAL_DOCUMENT") -> list[list[float]]:
        """
        Embed texts in one request.

        Returns:
            One vector per input text, in input order
        """
        if not texts:
            return []
        if not self.api_key:
            raise ValueError(
                "GOOGLE_API_KEY not set. Get your key at https://aistudio.google.com/app/apikey"
            )

        model_path = f"models/{self.model}"
        payload = {
            "requests": [
                {"model": model_path, "content": {"parts": [{"text": t}]}, "taskType": task_type}
                for t in texts
            ]
        }
        response = self._get_session().post(
            f"{GOOGLE_API_BASE}/{model_path}:batchEmbedContents",
            headers={"x-goog-api-key": self.api_key},
            json=payload,
            timeout=self.timeout,
        )
        response.raise_for_status()

        embeddings = [item["values"] for item in response.json().get("embeddings", [])]
        if len(embeddings) != len(texts):
            raise ValueError(
                f"Embedding response size mismatch: sent {len(texts)}, got {len(embeddings)}"
            )
        logger.debug("Embedded %d texts with %s", len(texts), self.model)
        return embeddings

    def embed_query(self, text: str) -> list[float]:
        """Embed a search query."""
        return self.embed_many([text], task_type="RETRIEVAL_QUERY")[0]
