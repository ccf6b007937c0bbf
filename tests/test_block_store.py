"""
BlockStore tests: project lifecycle, transactional inserts, queries and corruption handling.
"""

import sqlite3

import pytest

from codevec.core.block_store import BlockStore, validate_project_name
from codevec.core.db import connect, health_check, init_db
from codevec.core.errors import (
    DimensionMismatchError,
    InvalidProjectNameError,
    ProjectNotFoundError,
    StorageError,
)
from codevec.core.schema import CodeBlock, StoredBlockRecord
from codevec.vector.types import VectorPoint

DIM = 4


@pytest.fixture
def conn(tmp_path):
    """Create a temporary database for testing."""
    connection = connect(str(tmp_path / "blocks.db"))
    init_db(connection)
    yield connection
    connection.close()


@pytest.fixture
def store(conn):
    return BlockStore(conn, DIM)


def make_record(node_key, content, function_name=None, class_name=None, block_type="function",
                calls=(), coordinates=None):
    block = CodeBlock(
        node_key=node_key,
        block_type=block_type,
        content=content,
        class_name=class_name,
        function_name=function_name,
        outgoing_calls=tuple(calls),
    )
    coordinates = coordinates if coordinates is not None else [0.25, 0.5, 0.125, 1.0]
    return StoredBlockRecord(block=block, vector=VectorPoint.create(coordinates, content, dimension=DIM))


def test_database_health(conn):
    assert health_check(conn) is True


def test_create_project_is_idempotent(store):
    store.create_project("demo")
    store.insert_blocks("demo", [make_record("a", "def a(): pass", function_name="a")])

    store.create_project("demo")

    assert store.project_exists("demo")
    assert store.project_info("demo").total_blocks == 1


def test_delete_project_is_idempotent(store):
    store.create_project("demo")
    store.insert_blocks("demo", [make_record("a", "def a(): pass", function_name="a")])

    store.delete_project("demo")
    store.delete_project("demo")

    assert store.project_exists("demo") is False
    assert store.project_info("demo") is None


def test_delete_removes_all_records(store, conn):
    store.create_project("demo")
    store.insert_blocks("demo", [make_record(f"k{i}", f"def f{i}(): pass", function_name=f"f{i}") for i in range(5)])

    store.delete_project("demo")
    store.create_project("demo")

    assert store.project_info("demo").total_blocks == 0
    (orphans,) = conn.execute("SELECT COUNT(*) FROM code_blocks").fetchone()
    assert orphans == 0


def test_projects_are_isolated(store):
    store.create_project("alpha")
    store.create_project("beta")
    store.insert_blocks("alpha", [make_record("a", "def shared(): pass", function_name="shared")])

    assert store.project_info("alpha").total_blocks == 1
    assert store.project_info("beta").total_blocks == 0
    assert store.search_by_function_name("beta", "shared") == []
    assert store.all_vectors("beta") == []


def test_round_trip_preserves_every_field(store):
    record = make_record(
        "pkg/mod.py::Greeter.greet",
        "def greet(self):\n    return format_name(self.name)",
        function_name="greet",
        class_name="Greeter",
        calls=["format_name", "upper"],
        coordinates=[0.1, -0.2, 0.3, 1e-7],
    )
    store.create_project("demo")
    store.insert_blocks("demo", [record])

    [by_name] = store.search_by_function_name("demo", "greet")
    [listed] = store.all_function_blocks("demo")
    [point] = store.all_vectors("demo")

    assert by_name == record.block
    assert listed == record.block
    assert point == record.vector


def test_absent_function_name_is_not_empty_string(store):
    store.create_project("demo")
    store.insert_blocks("demo", [
        make_record("stmt", "x = compute()", block_type="statement", calls=["compute"]),
        make_record("empty", "def (): pass", function_name=""),
        make_record("cls", "class Foo: pass", block_type="class", class_name="Foo"),
    ])

    blocks = store.all_function_blocks("demo")

    assert [b.node_key for b in blocks] == ["empty"]
    assert store.search_by_function_name("demo", "") == blocks


def test_search_text_is_case_sensitive_substring(store):
    store.create_project("demo")
    store.insert_blocks("demo", [
        make_record("a", "def load_Config(): pass", function_name="load_Config"),
        make_record("b", "def load_config(): pass", function_name="load_config"),
        make_record("c", "load_config()", block_type="statement"),
    ])

    assert [b.node_key for b in store.search_text("demo", "load_config")] == ["b"]
    assert [b.node_key for b in store.search_text("demo", "Config")] == ["a"]
    assert [b.node_key for b in store.search_text("demo", "load")] == ["a", "b"]


def test_search_text_treats_wildcards_literally(store):
    store.create_project("demo")
    store.insert_blocks("demo", [
        make_record("a", "def a(): return 100%", function_name="a"),
        make_record("b", "def b(): return 1000", function_name="b"),
    ])

    assert [b.node_key for b in store.search_text("demo", "0%")] == ["a"]
    assert [b.node_key for b in store.search_text("demo", "1_0")] == []


def test_search_by_function_name_is_exact(store):
    store.create_project("demo")
    store.insert_blocks("demo", [
        make_record("a", "def foo(): pass", function_name="foo"),
        make_record("b", "def foobar(): pass", function_name="foobar"),
    ])

    assert [b.node_key for b in store.search_by_function_name("demo", "foo")] == ["a"]


def test_insert_preserves_storage_order_and_appends(store):
    store.create_project("demo")
    store.insert_blocks("demo", [make_record("one", "def one(): pass", function_name="one")])
    store.insert_blocks("demo", [make_record("two", "def two(): pass", function_name="two"),
                                 make_record("one", "def one(): pass", function_name="one")])

    assert [b.node_key for b in store.all_function_blocks("demo")] == ["one", "two", "one"]
    assert store.project_info("demo").total_blocks == 3


def test_insert_is_all_or_nothing(store, conn):
    store.create_project("demo")
    conn.execute('''
        CREATE TRIGGER reject_poison BEFORE INSERT ON code_blocks
        WHEN NEW.node_key = 'poison'
        BEGIN SELECT RAISE(ABORT, 'poisoned row'); END
    ''')
    records = [
        make_record("good1", "def good1(): pass", function_name="good1"),
        make_record("poison", "def poison(): pass", function_name="poison"),
        make_record("good2", "def good2(): pass", function_name="good2"),
    ]

    with pytest.raises(StorageError, match="poisoned row"):
        store.insert_blocks("demo", records)

    assert store.project_info("demo").total_blocks == 0
    assert conn.in_transaction is False


def test_insert_into_missing_project(store):
    with pytest.raises(ProjectNotFoundError):
        store.insert_blocks("ghost", [make_record("a", "def a(): pass", function_name="a")])


def test_insert_rejects_wrong_dimension(store):
    store.create_project("demo")
    bad = StoredBlockRecord(
        block=CodeBlock(node_key="a", block_type="function", content="x", function_name="a"),
        vector=VectorPoint.create([1.0, 2.0], "x"),
    )

    with pytest.raises(DimensionMismatchError):
        store.insert_blocks("demo", [bad])
    assert store.project_info("demo").total_blocks == 0


def test_queries_on_missing_project(store):
    with pytest.raises(ProjectNotFoundError):
        store.all_function_blocks("ghost")
    with pytest.raises(ProjectNotFoundError):
        store.all_vectors("ghost")


def test_empty_project_queries_return_empty(store):
    store.create_project("demo")

    assert store.all_function_blocks("demo") == []
    assert store.search_text("demo", "x") == []
    assert store.all_vectors("demo") == []


def test_corrupt_vector_is_storage_error(store, conn):
    store.create_project("demo")
    store.insert_blocks("demo", [make_record("a", "def a(): pass", function_name="a")])
    conn.execute("UPDATE code_blocks SET vectors = 'not json'")

    with pytest.raises(StorageError):
        store.all_vectors("demo")


def test_wrong_dimension_in_storage_is_storage_error(store, conn):
    store.create_project("demo")
    store.insert_blocks("demo", [make_record("a", "def a(): pass", function_name="a")])
    conn.execute("UPDATE code_blocks SET vectors = '[1.0, 2.0]'")

    with pytest.raises(StorageError):
        store.all_vectors("demo")


def test_corrupt_outgoing_calls_is_storage_error(store, conn):
    store.create_project("demo")
    store.insert_blocks("demo", [make_record("a", "def a(): pass", function_name="a")])
    conn.execute("UPDATE code_blocks SET outgoing_calls = '{\"a\": 1}'")

    with pytest.raises(StorageError):
        store.all_function_blocks("demo")


def test_sqlite_failure_is_storage_error(store, conn):
    store.create_project("demo")
    conn.execute("DROP TABLE code_blocks")

    with pytest.raises(StorageError):
        store.project_info("demo")


@pytest.mark.parametrize("name", [
    "", "my-project", "drop table", "a;b", "x'--", "name.with.dots", "über", "tab\t", "slash/", 42, None,
])
def test_invalid_names_rejected_before_storage(store, conn, name):
    operations = [
        lambda: store.project_exists(name),
        lambda: store.create_project(name),
        lambda: store.delete_project(name),
        lambda: store.project_info(name),
        lambda: store.insert_blocks(name, [make_record("a", "def a(): pass", function_name="a")]),
        lambda: store.all_function_blocks(name),
        lambda: store.search_text(name, "a"),
        lambda: store.search_by_function_name(name, "a"),
        lambda: store.all_vectors(name),
    ]

    for operation in operations:
        with pytest.raises(InvalidProjectNameError):
            operation()

    (projects,) = conn.execute("SELECT COUNT(*) FROM projects").fetchone()
    assert projects == 0


def test_valid_names_accepted():
    for name in ["demo", "Demo_2", "_", "123", "a_B_c_9"]:
        assert validate_project_name(name) == name


class FailingVacuumConnection:
    """Delegates to a real connection but fails every VACUUM."""

    def __init__(self, conn):
        self._conn = conn

    def execute(self, sql, *args):
        if sql == "VACUUM":
            raise sqlite3.OperationalError("database or disk is full")
        return self._conn.execute(sql, *args)

    def __getattr__(self, name):
        return getattr(self._conn, name)


def test_delete_stands_when_vacuum_fails(conn):
    store = BlockStore(FailingVacuumConnection(conn), DIM)
    store.create_project("demo")
    store.insert_blocks("demo", [make_record("a", "def a(): pass", function_name="a")])

    store.delete_project("demo")

    assert store.project_exists("demo") is False
    (rows,) = conn.execute("SELECT COUNT(*) FROM code_blocks").fetchone()
    assert rows == 0
