"""
test_queries.py - Unit tests for the allow-listed query builder and the
fetcher error path. No database is required; connections are faked.
"""

from contextlib import contextmanager

import psycopg2
import pytest

from core.db import fetchers, pool
from core.db.queries import SecureQueryBuilder
from core.models.results import RecordFetchError


@pytest.fixture
def builder():
    return SecureQueryBuilder()


class TestSelectQuery:

    def test_filters_become_parameters(self, builder):
        query, params = builder.build_select_query(
            "workers",
            columns=["id", "full_name"],
            filters=[("factory_id", "=", "f1"), ("is_active", "=", True)],
            order_by="full_name",
        )
        assert query == (
            "SELECT t.id, t.full_name FROM workers t "
            "WHERE t.factory_id = %s AND t.is_active = %s ORDER BY t.full_name ASC;"
        )
        assert params == ["f1", True]

    def test_in_filter_uses_any(self, builder):
        query, params = builder.build_select_query("projects", columns=["id"], filters=[("status", "in", ("A", "B"))])
        assert "t.status = ANY(%s)" in query
        assert params == [["A", "B"]]

    def test_empty_in_filter_matches_nothing(self, builder):
        query, params = builder.build_select_query("projects", columns=["id"], filters=[("status", "in", [])])
        assert "WHERE 1=0" in query
        assert params == []

    def test_null_checks_take_no_parameter(self, builder):
        query, params = builder.build_select_query(
            "worker_shifts", columns=["id"], filters=[("clock_out", "not null", None)]
        )
        assert "t.clock_out IS NOT NULL" in query
        assert params == []

    def test_limit_is_a_parameter(self, builder):
        query, params = builder.build_select_query("plant_config", filters=[("factory_id", "=", "f1")], limit=1)
        assert query.endswith("LIMIT %s;")
        assert params == ["f1", 1]

    def test_descending_order(self, builder):
        query, _ = builder.build_select_query("sales_quotes", columns=["id"], order_by="created_at", descending=True)
        assert "ORDER BY t.created_at DESC" in query

    def test_unknown_table_raises(self, builder):
        with pytest.raises(ValueError, match="Table not allowed"):
            builder.build_select_query("pg_shadow")

    def test_unknown_column_raises(self, builder):
        with pytest.raises(ValueError, match="Column not allowed"):
            builder.build_select_query("workers", columns=["id; DROP TABLE workers"])

    def test_unknown_operator_raises(self, builder):
        with pytest.raises(ValueError, match="Unsupported filter operator"):
            builder.build_select_query("workers", filters=[("id", "like", "%")])

    def test_comparison_with_none_raises(self, builder):
        with pytest.raises(ValueError):
            builder.build_select_query("workers", filters=[("factory_id", "=", None)])


class TestJoinedQueries:

    def test_rfi_subject_is_selected_as_title(self, builder):
        query, params = builder.build_work_items_query("rfi", ["p1", "p2"])
        assert "w.subject AS title" in query
        assert "NULL AS assignee_id" in query
        assert params == [["p1", "p2"]]

    def test_unknown_work_item_kind_raises(self, builder):
        with pytest.raises(ValueError, match="Unknown work item kind"):
            builder.build_work_items_query("memo")

    def test_defect_query_embeds_category_and_station(self, builder, now):
        query, params = builder.build_defect_records_query("f1", "s1", start=now)
        assert "m.building_category" in query
        assert "s.name AS station_name" in query
        assert params == ["f1", True, "s1", now]

    def test_modules_query_embeds_station_order(self, builder):
        query, params = builder.build_modules_with_station_query("f1", ["In Queue"])
        assert "s.order_num AS current_station_order" in query
        assert params == ["f1", ["In Queue"]]

    def test_kaizen_query_filters_approved_named(self, builder):
        _, params = builder.build_kaizen_leaderboard_query("f1")
        assert params == ["f1", "Approved", False]


class _FakeCursor:

    def __init__(self, rows, columns):
        self._rows = rows
        self.description = [(c,) for c in columns]
        self.executed = []

    def execute(self, query, params):
        self.executed.append((query, params))

    def fetchall(self):
        return self._rows

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class _FakeConnection:

    def __init__(self, cursor):
        self._cursor = cursor

    def cursor(self):
        return self._cursor


class TestFetchers:

    def test_store_error_is_raised_as_fetch_error(self, monkeypatch):
        @contextmanager
        def broken_connection():
            raise psycopg2.OperationalError("connection refused")
            yield

        monkeypatch.setattr(fetchers, "get_store_connection", broken_connection)

        with pytest.raises(RecordFetchError) as excinfo:
            fetchers.fetch_workers("f1")
        assert excinfo.value.source == "workers"
        assert "connection refused" in str(excinfo.value)

    def test_rows_become_dataframe(self, monkeypatch):
        cursor = _FakeCursor([("w1", "Alice")], ["id", "full_name"])

        @contextmanager
        def fake_connection():
            yield _FakeConnection(cursor)

        monkeypatch.setattr(fetchers, "get_store_connection", fake_connection)

        df = fetchers.fetch_workers("f1")
        assert list(df.columns) == ["id", "full_name"]
        assert df.iloc[0]["full_name"] == "Alice"
        assert cursor.executed[0][1] == ["f1", True]

    def test_plant_config_parses_json_columns(self, monkeypatch):
        cursor = _FakeCursor(
            [("f1", '{"shift_start": "07:00"}', {"target_throughput_per_day": 3})],
            ["factory_id", "time_settings", "line_sim_defaults"],
        )

        @contextmanager
        def fake_connection():
            yield _FakeConnection(cursor)

        monkeypatch.setattr(fetchers, "get_store_connection", fake_connection)

        plant = fetchers.fetch_plant_config("f1")
        assert plant["time_settings"] == {"shift_start": "07:00"}
        assert plant["line_sim_defaults"] == {"target_throughput_per_day": 3}

    def test_missing_plant_config_returns_empty_settings(self, monkeypatch):
        cursor = _FakeCursor([], ["factory_id", "time_settings", "line_sim_defaults"])

        @contextmanager
        def fake_connection():
            yield _FakeConnection(cursor)

        monkeypatch.setattr(fetchers, "get_store_connection", fake_connection)

        assert fetchers.fetch_plant_config("f1") == {"time_settings": {}, "line_sim_defaults": {}}

    def test_work_items_are_tagged_with_kind(self, monkeypatch):
        cursor = _FakeCursor([("r1", "p1")], ["id", "project_id"])

        @contextmanager
        def fake_connection():
            yield _FakeConnection(cursor)

        monkeypatch.setattr(fetchers, "get_store_connection", fake_connection)

        df = fetchers.fetch_all_work_items(["p1"])
        assert sorted(df["kind"]) == ["rfi", "submittal", "task"]


class TestPool:

    STORE = {"host": "db", "port": 5432, "database": "portal", "user": "reader", "password": "secret"}

    def test_missing_configuration_raises(self):
        with pytest.raises(ValueError, match="Missing database configuration"):
            pool.RecordStorePool(dict(self.STORE, user="", password=""))

    def test_statement_timeout_is_passed_as_option(self):
        store = pool.RecordStorePool(self.STORE, statement_timeout_ms=5000)
        assert store.db_config["options"] == "-c statement_timeout=5000"

    def test_zero_timeout_adds_no_option(self):
        assert "options" not in pool.RecordStorePool(self.STORE, statement_timeout_ms=0).db_config

    def test_unopened_pool_uses_direct_read_only_connection(self, monkeypatch):
        opened = []

        class _Conn:
            autocommit = False
            closed = False

            def set_session(self, readonly, autocommit):
                self.readonly = readonly
                self.autocommit = autocommit

            def close(self):
                self.closed = True

        def fake_connect(**kwargs):
            opened.append(_Conn())
            return opened[-1]

        monkeypatch.setattr(pool.psycopg2, "connect", fake_connect)
        store = pool.RecordStorePool(self.STORE, statement_timeout_ms=0)

        with store.connection() as conn:
            assert conn.readonly and conn.autocommit

        assert opened[0].closed
        assert store.get_stats()["direct_connections"] == 1
        assert store.get_stats()["pool_open"] is False

    def test_no_pool_means_no_stats(self, monkeypatch):
        monkeypatch.setattr(pool, "_store_pool", None)
        pool.close_all_pools()
        assert pool.get_pool_stats() == {}
