"""
EmbeddingEngine: turns code text into VectorPoints through an injected embedding capability.
"""

from typing import List, Sequence

from codevec.core.errors import DimensionMismatchError, EmbeddingError
from codevec.util.logging import logger

from .embeddings import IEmbeddingProvider
from .types import VectorPoint


class EmbeddingEngine:
    """Embeds code text singly or in batch, checking every vector against the deployment dimension."""

    def __init__(self, provider: IEmbeddingProvider, dimension: int):
        if dimension < 1:
            raise ValueError("dimension must be >= 1")
        self.provider = provider
        self.dimension = dimension

    def embed_one(self, text: str) -> VectorPoint:
        """Embed a single text as a one-element batch."""
        return self._embed([text])[0]

    def embed_many(self, texts: Sequence[str]) -> List[VectorPoint]:
        """
        Embed an ordered batch of texts with one capability call.

        result[i] corresponds to texts[i]. The batch fails as a whole:
        either every text gets a point or EmbeddingError is raised.
        """
        texts = list(texts)
        if not texts:
            return []
        return self._embed(texts)

    def _embed(self, texts: List[str]) -> List[VectorPoint]:
        try:
            vectors = self.provider.embed_texts(texts)
        except Exception as e:
            logger.log_operation("embedding.batch", "failed", {"batch_size": len(texts), "error": str(e)})
            raise EmbeddingError(f"Embedding capability failed for batch of {len(texts)}: {e}") from e

        vectors = list(vectors)
        if len(vectors) != len(texts):
            logger.log_operation("embedding.batch", "failed", {
                "batch_size": len(texts),
                "returned": len(vectors),
            })
            raise EmbeddingError(
                f"Embedding capability returned {len(vectors)} vectors for {len(texts)} texts"
            )

        points = []
        for i, (vector, text) in enumerate(zip(vectors, texts)):
            try:
                points.append(VectorPoint.create(vector, text, dimension=self.dimension))
            except (DimensionMismatchError, ValueError, TypeError) as e:
                logger.log_operation("embedding.batch", "failed", {"position": i, "error": str(e)})
                raise EmbeddingError(f"Embedding {i} of batch is malformed: {e}") from e

        logger.log_operation("embedding.batch", "success", {"batch_size": len(texts), "dimension": self.dimension})
        return points
