"""
Embedding providers.

The engine only depends on the EmbeddingProvider interface:
- is_available: whether vectors can be produced at all
- generate_vector: one text -> vector, or None when no vector can be made
- generate_vectors: order-preserving batch version, one entry per input

OpenAIEmbeddingProvider is the production implementation, backed by
OpenAI's text-embedding-3-small model.
"""

import time
from abc import ABC, abstractmethod
from typing import Optional

from openai import OpenAI, OpenAIError

from logging_utils import get_class_logger

# Constants
EMBEDDING_MODEL = "text-embedding-3-small"
EMBEDDING_DIMENSIONS = 1536
MAX_RETRIES = 3
RETRY_DELAY = 1.0  # seconds
BATCH_SIZE = 100
# Approximate: 1 token ≈ 4 chars, limit is 8191 tokens
MAX_INPUT_CHARS = 8191 * 4

Vector = list[float]


class EmbeddingProvider(ABC):
    """Capability interface for anything that turns text into vectors."""

    @property
    @abstractmethod
    def is_available(self) -> bool:
        """True if the provider can currently produce vectors."""

    @property
    def dimensions(self) -> Optional[int]:
        """Output dimension, if known up front."""
        return None

    @abstractmethod
    def generate_vector(self, text: str) -> Optional[Vector]:
        """Embed a single text. Returns None if no vector can be produced."""

    def generate_vectors(self, texts: list[str]) -> list[Optional[Vector]]:
        """Embed many texts. Output is aligned with the input."""
        return [self.generate_vector(text) for text in texts]


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """
    Embedding provider using OpenAI.

    The provider is unavailable when no API key is configured. API failures
    are retried with a linear backoff; once retries are exhausted the affected
    texts get no vector instead of raising.
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str = EMBEDDING_MODEL,
        dimensions: int = EMBEDDING_DIMENSIONS,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_DELAY,
        client: Optional[OpenAI] = None,
    ):
        self._model = model
        self._dimensions = dimensions
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._client = client
        if self._client is None and api_key:
            self._client = OpenAI(api_key=api_key)
        self.logger = get_class_logger(self.__class__)

    @classmethod
    def from_config(cls, cfg) -> "OpenAIEmbeddingProvider":
        return cls(
            api_key=cfg.OPENAI_API_KEY,
            model=cfg.EMBEDDING_MODEL,
            dimensions=cfg.EMBEDDING_DIMENSIONS,
        )

    @property
    def is_available(self) -> bool:
        return self._client is not None

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def generate_vector(self, text: str) -> Optional[Vector]:
        if not self.is_available or not text or not text.strip():
            return None

        response = self._create_with_retry(text[:MAX_INPUT_CHARS])
        if response is None:
            return None
        return list(response.data[0].embedding)

    def generate_vectors(self, texts: list[str]) -> list[Optional[Vector]]:
        results: list[Optional[Vector]] = [None] * len(texts)
        if not texts or not self.is_available:
            return results

        # Skip blank texts but remember where everything goes
        valid_indices = [i for i, text in enumerate(texts) if text and text.strip()]

        for batch_start in range(0, len(valid_indices), BATCH_SIZE):
            batch_indices = valid_indices[batch_start:batch_start + BATCH_SIZE]
            batch_texts = [texts[i][:MAX_INPUT_CHARS] for i in batch_indices]

            response = self._create_with_retry(batch_texts)
            if response is None:
                continue

            for j, embedding_data in enumerate(response.data):
                results[batch_indices[j]] = list(embedding_data.embedding)

        return results

    def _create_with_retry(self, payload):
        last_error = None
        for attempt in range(self._max_retries):
            try:
                return self._client.embeddings.create(
                    input=payload,
                    model=self._model,
                    dimensions=self._dimensions,
                )
            except OpenAIError as e:
                last_error = e
                if attempt < self._max_retries - 1:
                    time.sleep(self._retry_delay * (attempt + 1))

        self.logger.warning(
            "Embedding request failed after %d attempts: %s", self._max_retries, last_error
        )
        return None
