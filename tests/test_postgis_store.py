"""
CountyStats - PostGIS Store Tests

Unit tests for the pooled connection manager and county queries, with
psycopg2's pool mocked out.
"""

import threading
import time
import unittest
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from unittest.mock import MagicMock, patch

import psycopg2
from psycopg2.pool import PoolError

from countystats.store.postgis import (
    COUNTY_CATALOG_SQL,
    COUNTY_GAP_STATUS_SQL,
    COUNTY_SUMMARY_SQL,
    CountyStatsStore,
    PostgisConnection,
    normalize_row,
    normalize_value,
)
from countystats.utils.config import PostgresConfig


class TestNormalization(unittest.TestCase):
    """Test cases for NUMERIC result normalization."""

    def test_integral_decimal_becomes_int(self):
        value = normalize_value(Decimal("2310"))
        self.assertEqual(value, 2310)
        self.assertIsInstance(value, int)

    def test_fractional_decimal_becomes_float(self):
        self.assertEqual(normalize_value(Decimal("12.5")), 12.5)

    def test_other_values_unchanged(self):
        self.assertEqual(normalize_value("Albany"), "Albany")
        self.assertIsNone(normalize_value(None))

    def test_normalize_row(self):
        row = {"name": "Albany", "pa_count": 41, "pa_acres": Decimal("5120")}
        self.assertEqual(normalize_row(row), {"name": "Albany", "pa_count": 41, "pa_acres": 5120})


class TestPostgisConnection(unittest.TestCase):
    """Test cases for PostgisConnection."""

    def setUp(self):
        """Set up test fixtures."""
        patcher = patch("countystats.store.postgis.ThreadedConnectionPool")
        self.mock_pool_class = patcher.start()
        self.addCleanup(patcher.stop)

        self.pool = MagicMock()
        self.mock_pool_class.return_value = self.pool
        self.db_connection = MagicMock()
        self.pool.getconn.return_value = self.db_connection
        self.cursor = MagicMock()
        self.db_connection.cursor.return_value.__enter__.return_value = self.cursor

        self.config = PostgresConfig(dsn="postgresql://gis@db/nypad", max_connections=6)
        self.connection = PostgisConnection(self.config)

    def test_execute_requires_connect(self):
        with self.assertRaises(RuntimeError):
            self.connection.execute("SELECT 1")

    def test_connect_builds_pool_from_config(self):
        self.connection.connect()

        self.mock_pool_class.assert_called_once_with(
            1, 6, "postgresql://gis@db/nypad",
            sslmode="require",
            options="-c search_path=knex,public"
        )

    def test_connect_is_idempotent(self):
        self.connection.connect()
        self.connection.connect()

        self.assertEqual(self.mock_pool_class.call_count, 1)

    def test_execute_returns_normalized_rows_and_returns_connection(self):
        self.cursor.fetchall.return_value = [{"gap_sts": "1", "acres": Decimal("120")}]
        self.connection.connect()

        rows = self.connection.execute("SELECT ...", {"county": "NY"})

        self.assertEqual(rows, [{"gap_sts": "1", "acres": 120}])
        self.cursor.execute.assert_called_once_with("SELECT ...", {"county": "NY"})
        self.pool.putconn.assert_called_once_with(self.db_connection, close=False)

    def test_broken_connection_is_discarded(self):
        """Test that an operational error closes the pooled connection and re-raises."""
        self.cursor.execute.side_effect = psycopg2.OperationalError("server closed the connection")
        self.connection.connect()

        with self.assertRaises(psycopg2.OperationalError):
            self.connection.execute("SELECT 1")

        self.pool.putconn.assert_called_once_with(self.db_connection, close=True)

    def test_query_error_keeps_connection(self):
        self.cursor.execute.side_effect = psycopg2.ProgrammingError("syntax error")
        self.connection.connect()

        with self.assertRaises(psycopg2.ProgrammingError):
            self.connection.execute("SELEC 1")

        self.pool.putconn.assert_called_once_with(self.db_connection, close=False)

    def test_disconnect_closes_pool(self):
        self.connection.connect()
        self.connection.disconnect()

        self.pool.closeall.assert_called_once_with()
        self.assertIsNone(self.connection.pool)


class ExhaustiblePool:
    """Stand-in for ThreadedConnectionPool that raises once every connection is out."""

    def __init__(self, minconn, maxconn, *args, **kwargs):
        self.maxconn = maxconn
        self.in_use = 0
        self.peak = 0
        self._lock = threading.Lock()

    def getconn(self):
        with self._lock:
            if self.in_use >= self.maxconn:
                raise PoolError("connection pool exhausted")
            self.in_use += 1
            self.peak = max(self.peak, self.in_use)

        db_connection = MagicMock()
        cursor = db_connection.cursor.return_value.__enter__.return_value
        cursor.execute.side_effect = lambda sql, params: time.sleep(0.05)
        cursor.fetchall.return_value = [{"abbreviation": "NY"}]
        return db_connection

    def putconn(self, db_connection, close=False):
        with self._lock:
            self.in_use -= 1

    def closeall(self):
        pass


class TestPoolCheckout(unittest.TestCase):
    """Test cases for queries that outnumber the pooled connections."""

    def setUp(self):
        """Set up test fixtures."""
        patcher = patch("countystats.store.postgis.ThreadedConnectionPool", ExhaustiblePool)
        patcher.start()
        self.addCleanup(patcher.stop)

        self.config = PostgresConfig(dsn="postgresql://gis@db/nypad", max_connections=2)
        self.connection = PostgisConnection(self.config)
        self.connection.connect()

    def test_excess_queries_wait_for_a_free_connection(self):
        """Test that eight concurrent queries over a two-connection pool all succeed."""
        with ThreadPoolExecutor(max_workers=8) as executor:
            futures = [
                executor.submit(self.connection.execute, COUNTY_CATALOG_SQL)
                for _ in range(8)
            ]
            results = [future.result() for future in futures]

        self.assertEqual(results, [[{"abbreviation": "NY"}]] * 8)
        self.assertLessEqual(self.connection.pool.peak, 2)
        self.assertEqual(self.connection.pool.in_use, 0)

    def test_checkout_timeout_raises_pool_error(self):
        config = PostgresConfig(
            dsn="postgresql://gis@db/nypad", max_connections=1, checkout_timeout=0.01
        )
        connection = PostgisConnection(config)
        connection.connect()
        connection._slots.acquire()

        with self.assertRaises(PoolError):
            connection.execute("SELECT 1")

        self.assertEqual(connection.pool.in_use, 0)

    def test_slot_released_after_query_error(self):
        config = PostgresConfig(
            dsn="postgresql://gis@db/nypad", max_connections=1, checkout_timeout=0.01
        )
        connection = PostgisConnection(config)
        connection.connect()

        with patch.object(connection.pool, "getconn", side_effect=psycopg2.InterfaceError("gone")):
            with self.assertRaises(psycopg2.InterfaceError):
                connection.execute("SELECT 1")

        self.assertEqual(connection.execute(COUNTY_CATALOG_SQL), [{"abbreviation": "NY"}])


class TestCountyStatsStore(unittest.TestCase):
    """Test cases for CountyStatsStore queries."""

    def setUp(self):
        """Set up test fixtures."""
        self.connection = MagicMock()
        self.store = CountyStatsStore(self.connection)

    def test_summary_binds_county_parameter(self):
        """Test that the county key is bound, not interpolated."""
        self.connection.execute.return_value = [{"name": "Kings", "pa_count": 88}]

        result = self.store.get_county_summary("KI'NG")

        self.assertEqual(result, {"name": "Kings", "pa_count": 88})
        self.connection.execute.assert_called_once_with(COUNTY_SUMMARY_SQL, {"county": "KI'NG"})
        self.assertNotIn("KI'NG", COUNTY_SUMMARY_SQL)

    def test_summary_without_rows_is_none(self):
        self.connection.execute.return_value = []

        self.assertIsNone(self.store.get_county_summary("ZZ"))

    def test_gap_status_returns_all_rows(self):
        rows = [{"gap_sts": "1", "total": 2}, {"gap_sts": "2", "total": 5}]
        self.connection.execute.return_value = rows

        self.assertEqual(self.store.get_county_gap_status("NY"), rows)
        self.connection.execute.assert_called_once_with(COUNTY_GAP_STATUS_SQL, {"county": "NY"})

    def test_list_county_keys(self):
        self.connection.execute.return_value = [{"abbreviation": "AL"}, {"abbreviation": "NY"}]

        self.assertEqual(self.store.list_county_keys(), ["AL", "NY"])
        self.connection.execute.assert_called_once_with(COUNTY_CATALOG_SQL)


if __name__ == "__main__":
    unittest.main()
