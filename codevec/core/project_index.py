"""
ProjectIndex: the single entry point combining BlockStore, EmbeddingEngine and SpatialIndex.

All access to the shared storage connection goes through one lock, so a
committed ingest is visible to every search that acquires the lock after it.
Embedding runs outside the lock.
"""

import threading
import time
from typing import List, Optional, Sequence, Type

from codevec.util.logging import logger
from codevec.vector.engine import EmbeddingEngine
from codevec.vector.index import ISpatialIndex

from . import config
from .block_store import BlockStore, validate_project_name
from .db import connect, init_db
from .errors import EmptyIndexError, ProjectNotFoundError
from .schema import CodeBlock, ProjectInfo, SimilarityResult, StoredBlockRecord


class ProjectIndex:
    """Coordinates storage, embedding and nearest-neighbour search per project."""

    def __init__(
        self,
        store: BlockStore,
        engine: EmbeddingEngine,
        index_class: Type[ISpatialIndex],
        lock: Optional[threading.Lock] = None,
    ):
        if store.dimension != engine.dimension:
            raise ValueError(
                f"Store dimension {store.dimension} does not match engine dimension {engine.dimension}"
            )
        self.store = store
        self.engine = engine
        self.index_class = index_class
        self._lock = lock or threading.Lock()

    @classmethod
    def from_config(cls, db_path: str = None, embedding_provider=None) -> "ProjectIndex":
        """Build a ProjectIndex from configuration, opening the shared connection once."""
        provider = embedding_provider or config.get_embedding_provider()
        if provider.get_dimension() != config.EMBED_DIM:
            raise ValueError(
                f"Embedding provider produces {provider.get_dimension()}-dimensional vectors "
                f"but EMBED_DIM is {config.EMBED_DIM}"
            )

        conn = connect(db_path or config.DB_PATH)
        init_db(conn)
        engine = EmbeddingEngine(provider, config.EMBED_DIM)
        store = BlockStore(conn, config.EMBED_DIM)
        return cls(store, engine, config.get_spatial_index_class())

    def close(self):
        with self._lock:
            self.store.conn.close()

    # Project lifecycle

    def create(self, project_name: str) -> None:
        with self._lock:
            self.store.create_project(project_name)
        logger.log_project_operation("create", project_name)

    def delete(self, project_name: str) -> None:
        with self._lock:
            self.store.delete_project(project_name)
        logger.log_project_operation("delete", project_name)

    def exists(self, project_name: str) -> bool:
        with self._lock:
            return self.store.project_exists(project_name)

    def info(self, project_name: str) -> Optional[ProjectInfo]:
        with self._lock:
            return self.store.project_info(project_name)

    # Ingest

    def ingest(self, project_name: str, code_blocks: Sequence[CodeBlock]) -> int:
        """
        Embed every block's content in one batch and append the results to the project.

        Nothing is inserted if embedding fails. Re-ingesting appends; it never
        replaces earlier rows. Returns the number of blocks stored.
        """
        start_time = time.perf_counter()
        code_blocks = list(code_blocks)

        if not self.exists(project_name):
            raise ProjectNotFoundError(project_name)

        try:
            points = self.engine.embed_many([block.content for block in code_blocks])
        except Exception:
            logger.log_ingest(project_name, len(code_blocks), start_time, status="failed", details={"stage": "embedding"})
            raise

        records = [StoredBlockRecord(block=block, vector=point) for block, point in zip(code_blocks, points)]

        with self._lock:
            inserted = self.store.insert_blocks(project_name, records)

        logger.log_ingest(project_name, inserted, start_time)
        return inserted

    # Queries

    def find_similar(self, project_name: str, query_text: str, k: int = None) -> SimilarityResult:
        """Return the stored text nearest to ``query_text`` and the ``k`` nearest, closest first."""
        k = config.SEARCH_TOP_K if k is None else k
        if k < 1:
            raise ValueError("k must be >= 1")

        validate_project_name(project_name)
        with self._lock:
            if not self.store.project_exists(project_name):
                raise ProjectNotFoundError(project_name)
            points = self.store.all_vectors(project_name)

        if not points:
            raise EmptyIndexError(project_name)

        query = self.engine.embed_one(query_text)
        spatial_index = self.index_class.build(points)

        neighbors = spatial_index.query(query, k)

        logger.log_search(project_name, "similar", query_text, len(neighbors), {
            "index": self.index_class.__name__,
            "indexed_points": len(spatial_index),
        })

        return SimilarityResult(
            nearest=neighbors[0].source_text,
            k_nearest=[neighbor.source_text for neighbor in neighbors],
            distances=[neighbor.distance for neighbor in neighbors],
        )

    def function_blocks(self, project_name: str) -> List[CodeBlock]:
        with self._lock:
            blocks = self.store.all_function_blocks(project_name)
        logger.log_search(project_name, "function_blocks", "", len(blocks))
        return blocks

    def find_by_text(self, project_name: str, needle: str) -> List[CodeBlock]:
        with self._lock:
            blocks = self.store.search_text(project_name, needle)
        logger.log_search(project_name, "text", needle, len(blocks))
        return blocks

    def find_by_function_name(self, project_name: str, function_name: str) -> List[CodeBlock]:
        with self._lock:
            blocks = self.store.search_by_function_name(project_name, function_name)
        logger.log_search(project_name, "function_name", function_name, len(blocks))
        return blocks
