"""
BlockStore: durable, project-namespaced storage of code blocks and their embeddings.

Every public method validates the project name before touching storage.
The store does not lock; ProjectIndex serialises access to the shared connection.
"""

import json
import re
import sqlite3
from contextlib import contextmanager
from typing import Iterator, List, Optional, Sequence

from codevec.util.logging import logger
from codevec.vector.types import VectorPoint

from .db import transaction
from .errors import (
    CodeIndexError,
    DimensionMismatchError,
    InvalidProjectNameError,
    ProjectNotFoundError,
    StorageError,
)
from .schema import CodeBlock, ProjectInfo, StoredBlockRecord

PROJECT_NAME_PATTERN = re.compile(r"[A-Za-z0-9_]+")

_BLOCK_COLUMNS = "node_key, block_type, content, class_name, function_name, outgoing_calls"


def validate_project_name(name: object) -> str:
    """Return ``name`` if it is a legal project name, else raise InvalidProjectNameError."""
    if not isinstance(name, str) or not PROJECT_NAME_PATTERN.fullmatch(name):
        raise InvalidProjectNameError(name)
    return name


class BlockStore:
    """SQLite-backed storage for StoredBlockRecords, one namespace per project."""

    def __init__(self, conn: sqlite3.Connection, dimension: int):
        self.conn = conn
        self.dimension = dimension

    @contextmanager
    def _storage_errors(self, operation: str, project_name: str) -> Iterator[None]:
        try:
            yield
        except CodeIndexError:
            raise
        except sqlite3.Error as e:
            logger.log_storage_error(operation, project_name, e)
            raise StorageError(f"Storage failure during {operation} on project {project_name}: {e}") from e

    def _exists(self, project_name: str) -> bool:
        row = self.conn.execute("SELECT 1 FROM projects WHERE name = ?", (project_name,)).fetchone()
        return row is not None

    def _require_project(self, project_name: str):
        if not self._exists(project_name):
            raise ProjectNotFoundError(project_name)

    def project_exists(self, project_name: str) -> bool:
        validate_project_name(project_name)
        with self._storage_errors("exists", project_name):
            return self._exists(project_name)

    def create_project(self, project_name: str) -> None:
        """Materialise an empty namespace; a no-op if it already exists."""
        validate_project_name(project_name)
        with self._storage_errors("create", project_name):
            self.conn.execute("INSERT OR IGNORE INTO projects (name) VALUES (?)", (project_name,))

    def delete_project(self, project_name: str) -> None:
        """Remove the namespace and all its records, then compact the database file.

        Compaction is best effort: a VACUUM failure is logged and the delete still stands.
        """
        validate_project_name(project_name)
        with self._storage_errors("delete", project_name):
            with transaction(self.conn) as cursor:
                cursor.execute("DELETE FROM code_blocks WHERE project_name = ?", (project_name,))
                cursor.execute("DELETE FROM projects WHERE name = ?", (project_name,))

        # The delete is committed; a failed compaction only leaves free pages behind
        try:
            self.conn.execute("VACUUM")
        except sqlite3.Error as e:
            logger.warning(f"VACUUM after deleting project {project_name} failed: {e}")

    def project_info(self, project_name: str) -> Optional[ProjectInfo]:
        validate_project_name(project_name)
        with self._storage_errors("info", project_name):
            if not self._exists(project_name):
                return None
            (total,) = self.conn.execute(
                "SELECT COUNT(*) FROM code_blocks WHERE project_name = ?", (project_name,)
            ).fetchone()
        return ProjectInfo(name=project_name, total_blocks=total)

    def insert_blocks(self, project_name: str, records: Sequence[StoredBlockRecord]) -> int:
        """
        Append records to the project in one transaction.

        Either every record becomes visible or, on any failure, none does.
        Returns the number of rows inserted.
        """
        validate_project_name(project_name)
        records = list(records)

        rows = []
        for record in records:
            if record.vector.dimension != self.dimension:
                raise DimensionMismatchError(expected=self.dimension, actual=record.vector.dimension)
            block = record.block
            rows.append((
                project_name,
                block.node_key,
                block.block_type,
                block.content,
                block.class_name,
                block.function_name,
                json.dumps(list(block.outgoing_calls)),
                json.dumps(record.vector.to_list()),
            ))

        with self._storage_errors("insert", project_name):
            with transaction(self.conn) as cursor:
                if not self._exists(project_name):
                    raise ProjectNotFoundError(project_name)
                cursor.executemany(
                    "INSERT INTO code_blocks (project_name, node_key, block_type, content, class_name, "
                    "function_name, outgoing_calls, vectors) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                    rows,
                )

        logger.log_project_operation("insert", project_name, details={"rows": len(rows)})
        return len(rows)

    def all_function_blocks(self, project_name: str) -> List[CodeBlock]:
        """Every block whose function_name is present, in storage order."""
        validate_project_name(project_name)
        with self._storage_errors("function_blocks", project_name):
            self._require_project(project_name)
            rows = self.conn.execute(
                f"SELECT {_BLOCK_COLUMNS} FROM code_blocks "
                "WHERE project_name = ? AND function_name IS NOT NULL ORDER BY id",
                (project_name,),
            ).fetchall()
        return [self._row_to_block(project_name, row) for row in rows]

    def search_text(self, project_name: str, needle: str) -> List[CodeBlock]:
        """Function blocks whose content contains ``needle`` (case-sensitive, literal)."""
        validate_project_name(project_name)
        with self._storage_errors("search_text", project_name):
            self._require_project(project_name)
            rows = self.conn.execute(
                f"SELECT {_BLOCK_COLUMNS} FROM code_blocks "
                "WHERE project_name = ? AND function_name IS NOT NULL AND instr(content, ?) > 0 ORDER BY id",
                (project_name, needle),
            ).fetchall()
        return [self._row_to_block(project_name, row) for row in rows]

    def search_by_function_name(self, project_name: str, function_name: str) -> List[CodeBlock]:
        """Function blocks whose function_name equals ``function_name`` exactly."""
        validate_project_name(project_name)
        with self._storage_errors("search_function", project_name):
            self._require_project(project_name)
            rows = self.conn.execute(
                f"SELECT {_BLOCK_COLUMNS} FROM code_blocks "
                "WHERE project_name = ? AND function_name IS NOT NULL AND function_name = ? ORDER BY id",
                (project_name, function_name),
            ).fetchall()
        return [self._row_to_block(project_name, row) for row in rows]

    def all_vectors(self, project_name: str) -> List[VectorPoint]:
        """Every record's vector paired with its content, in storage order."""
        validate_project_name(project_name)
        with self._storage_errors("vectors", project_name):
            self._require_project(project_name)
            rows = self.conn.execute(
                "SELECT id, content, vectors FROM code_blocks WHERE project_name = ? ORDER BY id",
                (project_name,),
            ).fetchall()

        points = []
        for row_id, content, vectors in rows:
            try:
                points.append(VectorPoint.create(json.loads(vectors), content, dimension=self.dimension))
            except (ValueError, TypeError) as e:
                logger.log_storage_error("vectors", project_name, e)
                raise StorageError(f"Corrupt vector in row {row_id} of project {project_name}: {e}") from e
        return points

    def _row_to_block(self, project_name: str, row) -> CodeBlock:
        node_key, block_type, content, class_name, function_name, outgoing_calls = row
        try:
            calls = json.loads(outgoing_calls)
            if not isinstance(calls, list) or not all(isinstance(call, str) for call in calls):
                raise ValueError("outgoing_calls is not a list of strings")
        except ValueError as e:
            logger.log_storage_error("decode", project_name, e)
            raise StorageError(f"Corrupt outgoing_calls for block {node_key} in project {project_name}: {e}") from e

        return CodeBlock(
            node_key=node_key,
            block_type=block_type,
            content=content,
            class_name=class_name,
            function_name=function_name,
            outgoing_calls=tuple(calls),
        )
