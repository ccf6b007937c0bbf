"""
SQLite foundation: the shared connection and the block schema.
"""

import sqlite3
from contextlib import contextmanager
from typing import Generator

from .config import DB_PATH, ensure_db_directory

SCHEMA_VERSION = 1


def connect(db_path: str = None) -> sqlite3.Connection:
    """Open the process-wide connection.

    The connection runs in autocommit mode; multi-statement writes open their
    own transaction with ``transaction()``. It may be used from any thread as
    long as callers serialise access.
    """
    db_path = db_path or DB_PATH
    ensure_db_directory(db_path)

    conn = sqlite3.connect(db_path, check_same_thread=False, isolation_level=None)
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def transaction(conn: sqlite3.Connection) -> Generator[sqlite3.Cursor, None, None]:
    """Run the enclosed statements as one all-or-nothing unit."""
    cursor = conn.cursor()
    cursor.execute("BEGIN")
    try:
        yield cursor
        conn.execute("COMMIT")
    except BaseException:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        raise
    finally:
        cursor.close()


def init_db(conn: sqlite3.Connection):
    """Initialize the database with required tables."""
    with transaction(conn) as cursor:
        # One row per project namespace
        cursor.execute('''
            CREATE TABLE IF NOT EXISTS projects (
                name TEXT PRIMARY KEY,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        ''')

        # Code blocks, partitioned by project; NULL class/function name means absent
        cursor.execute('''
            CREATE TABLE IF NOT EXISTS code_blocks (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                project_name TEXT NOT NULL REFERENCES projects(name) ON DELETE CASCADE,
                node_key TEXT NOT NULL,
                block_type TEXT NOT NULL,
                content TEXT NOT NULL,
                class_name TEXT,
                function_name TEXT,
                outgoing_calls TEXT NOT NULL,  -- JSON array of strings
                vectors TEXT NOT NULL          -- JSON array of floats
            )
        ''')

        cursor.execute('CREATE INDEX IF NOT EXISTS idx_code_blocks_project ON code_blocks(project_name, id)')
        cursor.execute(
            'CREATE INDEX IF NOT EXISTS idx_code_blocks_function ON code_blocks(project_name, function_name)'
        )
        cursor.execute(f'PRAGMA user_version = {SCHEMA_VERSION}')


def health_check(conn: sqlite3.Connection) -> bool:
    """Check database health."""
    try:
        cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
        table_names = [row[0] for row in cursor.fetchall()]
    except sqlite3.Error:
        return False

    required_tables = ['projects', 'code_blocks']
    return all(table in table_names for table in required_tables)
