"""
Vector layer: embedding capabilities, the embedding engine and exact nearest-neighbour indexes.
"""

from .types import VectorPoint, Neighbor
from .embeddings import IEmbeddingProvider, DeterministicHashEmbedding, SentenceTransformerEmbedding
from .engine import EmbeddingEngine
from .index import ISpatialIndex, KDTreeSpatialIndex, ExactScanSpatialIndex

__all__ = [
    'VectorPoint',
    'Neighbor',
    'IEmbeddingProvider',
    'DeterministicHashEmbedding',
    'SentenceTransformerEmbedding',
    'EmbeddingEngine',
    'ISpatialIndex',
    'KDTreeSpatialIndex',
    'ExactScanSpatialIndex',
]
