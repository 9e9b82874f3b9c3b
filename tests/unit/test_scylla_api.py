"""Unit tests for the database API wrapper, run against a fake driver session"""

import pytest
from cassandra import ConsistencyLevel
from cassandra.cluster import NoHostAvailable
from cassandra.query import SimpleStatement

from mv_checker.config import ScyllaSettings
from mv_checker.rows import Row
from mv_checker.scylla_api import ScyllaApi
from mv_checker.session_pool import consistency_level
from tests.fakes import FakeSession


@pytest.mark.unit
def test_read_all_rows_returns_snapshot():
    session = FakeSession(rows=[(2, 2, 2), (1, 1, 1), (3, 3, 30)])
    api = ScyllaApi(session, ScyllaSettings(keyspace="ks"))

    snapshot = api.read_view_rows()

    assert snapshot == {Row(1, 1, 1), Row(2, 2, 2), Row(3, 3, 30)}
    statement, _ = session.executed[0]
    assert isinstance(statement, SimpleStatement)
    assert statement.query_string == "SELECT p, c, r FROM ks.tab_view"
    assert statement.consistency_level == ConsistencyLevel.ONE
    assert statement.fetch_size == ScyllaApi.FETCH_SIZE


@pytest.mark.unit
def test_base_read_uses_quorum():
    session = FakeSession()
    api = ScyllaApi(session, ScyllaSettings())

    assert api.read_base_rows() == set()

    statement, _ = session.executed[0]
    assert statement.query_string == "SELECT p, c, r FROM view_test.tab"
    assert statement.consistency_level == ConsistencyLevel.QUORUM


@pytest.mark.unit
def test_insert_prepares_once():
    session = FakeSession()
    api = ScyllaApi(session, ScyllaSettings())

    api.insert_row(Row(1, 1, 1), "quorum")
    api.insert_row(Row(2, 2, 2), "quorum")

    assert len(session.prepared) == 1
    prepared = session.prepared[0]
    assert prepared.query_string == "INSERT INTO view_test.tab (p, c, r) VALUES (?, ?, ?)"
    assert prepared.is_idempotent is True
    assert prepared.consistency_level == ConsistencyLevel.QUORUM
    assert [params for _, params in session.executed] == [(1, 1, 1), (2, 2, 2)]


@pytest.mark.unit
def test_setup_schema():
    session = FakeSession()
    api = ScyllaApi(session, ScyllaSettings(keyspace="mv", replication_factor=2))

    api.setup_schema()

    queries = [" ".join(str(statement).split()) for statement, _ in session.executed]
    assert queries[0] == "DROP KEYSPACE IF EXISTS mv"
    assert "'replication_factor': 2" in queries[1]
    assert queries[2] == "CREATE TABLE mv.tab (p int, c int, r int, PRIMARY KEY (p, c))"
    assert queries[3] == (
        "CREATE MATERIALIZED VIEW mv.tab_view AS SELECT p, c, r FROM mv.tab "
        "WHERE p IS NOT NULL AND c IS NOT NULL PRIMARY KEY ((p, c))"
    )


@pytest.mark.unit
def test_execute_command_with_consistency():
    session = FakeSession()
    api = ScyllaApi(session, ScyllaSettings())

    api.execute_command("SELECT now() FROM system.local", consistency="all")

    statement, _ = session.executed[0]
    assert statement.consistency_level == ConsistencyLevel.ALL


@pytest.mark.unit
@pytest.mark.parametrize("name,expected", [
    ("one", ConsistencyLevel.ONE),
    ("QUORUM", ConsistencyLevel.QUORUM),
    ("local_quorum", ConsistencyLevel.LOCAL_QUORUM),
])
def test_consistency_level_names(name, expected):
    assert consistency_level(name) == expected


@pytest.mark.unit
def test_unknown_consistency_level():
    with pytest.raises(ValueError):
        consistency_level("most")


@pytest.mark.unit
def test_session_created_on_first_use():
    session = FakeSession(rows=[(1, 1, 1)])
    attempts = []

    def session_factory():
        attempts.append(1)
        if len(attempts) == 1:
            raise NoHostAvailable("down", {})
        return session

    api = ScyllaApi(None, ScyllaSettings(), name="node #1", session_factory=session_factory)

    with pytest.raises(NoHostAvailable):
        api.read_view_rows()
    assert api.read_view_rows() == {Row(1, 1, 1)}
    assert api.read_view_rows() == {Row(1, 1, 1)}
    assert len(attempts) == 2


@pytest.mark.unit
def test_no_session_and_no_factory():
    api = ScyllaApi(None, ScyllaSettings(), name="node #0")

    with pytest.raises(RuntimeError, match="node #0"):
        api.read_view_rows()
