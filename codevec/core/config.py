"""
Runtime configuration for the code search service.
Every setting is read from the environment once, at import time.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Backing store location (":memory:" keeps everything in-process)
DB_PATH = os.getenv("DB_PATH", "./data/codevec.db")

DEBUG = os.getenv("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Embedding capability
EMBED_PROVIDER = os.getenv("EMBED_PROVIDER", "sentence_transformer")  # sentence_transformer|hash
EMBED_MODEL_NAME = os.getenv("EMBED_MODEL_NAME", "BAAI/bge-small-en-v1.5")
EMBED_DIM = int(os.getenv("EMBED_DIM", "384"))
EMBED_BATCH_SIZE = int(os.getenv("EMBED_BATCH_SIZE", "32"))

# Nearest-neighbour search
SPATIAL_INDEX_PROVIDER = os.getenv("SPATIAL_INDEX_PROVIDER", "kdtree")  # kdtree|faiss|scan
SEARCH_TOP_K = int(os.getenv("SEARCH_TOP_K", "5"))

# HTTP transport
HOST = os.getenv("HOST", "127.0.0.1")
PORT = int(os.getenv("PORT", "8080"))
CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]

# Directories the reference indexer never descends into
INDEXER_EXCLUDED_DIRS = frozenset(
    name.strip()
    for name in os.getenv(
        "INDEXER_EXCLUDED_DIRS",
        ".git,.hg,.svn,__pycache__,.venv,venv,env,node_modules,.tox,.mypy_cache,.pytest_cache,build,dist",
    ).split(",")
    if name.strip()
)

VERSION = "0.1.0"

EMBED_PROVIDERS = ("sentence_transformer", "hash")
SPATIAL_INDEX_PROVIDERS = ("kdtree", "faiss", "scan")


def get_embedding_provider(provider: str = None, dimension: int = None):
    """Get the configured embedding capability."""
    provider = provider or EMBED_PROVIDER
    dimension = dimension or EMBED_DIM

    if provider == "sentence_transformer":
        from codevec.vector.embeddings import SentenceTransformerEmbedding
        return SentenceTransformerEmbedding(EMBED_MODEL_NAME, batch_size=EMBED_BATCH_SIZE)
    elif provider == "hash":
        from codevec.vector.embeddings import DeterministicHashEmbedding
        return DeterministicHashEmbedding(dimension=dimension)
    raise ValueError(f"Unknown EMBED_PROVIDER: {provider}")


def get_spatial_index_class(provider: str = None):
    """Get the SpatialIndex implementation for the configured provider."""
    provider = provider or SPATIAL_INDEX_PROVIDER

    if provider == "kdtree":
        from codevec.vector.index import KDTreeSpatialIndex
        return KDTreeSpatialIndex
    elif provider == "faiss":
        from codevec.vector.faiss_index import FaissSpatialIndex
        return FaissSpatialIndex
    elif provider == "scan":
        from codevec.vector.index import ExactScanSpatialIndex
        return ExactScanSpatialIndex
    raise ValueError(f"Unknown SPATIAL_INDEX_PROVIDER: {provider}")


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "false").lower() == "true"


def ensure_db_directory(db_path: str = None):
    """Ensure the database directory exists."""
    db_path = db_path or DB_PATH
    if db_path == ":memory:":
        return
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)


def validate_config():
    """Validate configuration and return any issues."""
    issues = []

    if EMBED_PROVIDER not in EMBED_PROVIDERS:
        issues.append(f"Invalid EMBED_PROVIDER: {EMBED_PROVIDER}")

    if SPATIAL_INDEX_PROVIDER not in SPATIAL_INDEX_PROVIDERS:
        issues.append(f"Invalid SPATIAL_INDEX_PROVIDER: {SPATIAL_INDEX_PROVIDER}")

    if EMBED_DIM < 1:
        issues.append("EMBED_DIM must be >= 1")

    if EMBED_BATCH_SIZE < 1:
        issues.append("EMBED_BATCH_SIZE must be >= 1")

    if SEARCH_TOP_K < 1:
        issues.append("SEARCH_TOP_K must be >= 1")

    if not 0 < PORT < 65536:
        issues.append(f"PORT out of range: {PORT}")

    return issues
