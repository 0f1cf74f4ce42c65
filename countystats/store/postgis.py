"""
CountyStats - PostGIS Store

Runs the county aggregation queries against the NYPAD PostGIS database.
Organized into a connection manager and a query class.

County keys are always passed as bound parameters, never interpolated.
"""

import logging
import threading
from decimal import Decimal
from typing import Any, Dict, List, Optional

import psycopg2
from psycopg2.extras import RealDictCursor
from psycopg2.pool import PoolError, ThreadedConnectionPool

from countystats.utils.config import PostgresConfig


logger = logging.getLogger(__name__)

# Square metres to acres
ACRES_PER_SQ_METRE = 0.00024711

COUNTY_SUMMARY_SQL = f"""
    SELECT c.name,
        COUNT(nypad_id) pa_count,
        CEIL(AVG(ST_Area(n.wkb_geometry) * {ACRES_PER_SQ_METRE})) pa_mean,
        CEIL(ST_Area(c.wkb_geometry) * {ACRES_PER_SQ_METRE}) county_acres,
        CEIL(SUM(ST_Area(ST_Intersection(n.wkb_geometry, c.wkb_geometry)) * {ACRES_PER_SQ_METRE})) AS pa_acres
    FROM nypad_2017 n, counties_shoreline c
    WHERE ST_INTERSECTS(c.wkb_geometry, n.wkb_geometry)
        AND abbreviation = %(county)s
    GROUP BY name, county_acres
"""

COUNTY_GAP_STATUS_SQL = f"""
    SELECT gap_sts,
        COUNT(nypad_id) total,
        CEIL(SUM(ST_Area(ST_Intersection(n.wkb_geometry, c.wkb_geometry)) * {ACRES_PER_SQ_METRE})) acres,
        CEIL(AVG(ST_Area(n.wkb_geometry) * {ACRES_PER_SQ_METRE})) mean
    FROM nypad_2017 n, counties_shoreline c
    WHERE ST_INTERSECTS(c.wkb_geometry, n.wkb_geometry)
        AND abbreviation = %(county)s
    GROUP BY gap_sts
    ORDER BY gap_sts
"""

COUNTY_CATALOG_SQL = "SELECT abbreviation FROM counties_shoreline"


def normalize_value(value: Any) -> Any:
    """Convert NUMERIC results to plain int/float so they survive JSON."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    return value


def normalize_row(row: Dict[str, Any]) -> Dict[str, Any]:
    return {column: normalize_value(value) for column, value in row.items()}


class PostgisConnection:
    """
    Manages a pool of PostGIS connections.

    Handles:
    - Pool creation and teardown
    - Connection testing
    - Query execution primitives

    The pool is thread-safe so concurrent sub-fetches each check out
    their own connection. ThreadedConnectionPool raises as soon as it is
    empty, so checkouts wait on a semaphore sized to max_connections.
    """

    def __init__(self, config: PostgresConfig):
        """
        Initialize the PostGIS connection manager.

        Args:
            config: PostGIS connection configuration
        """
        self.config = config
        self.pool: Optional[ThreadedConnectionPool] = None
        self._slots = threading.BoundedSemaphore(config.max_connections)

    def connect(self) -> None:
        """Create the connection pool."""
        if self.pool is not None:
            return

        try:
            logger.info("[...] Connecting to PostGIS")
            self.pool = ThreadedConnectionPool(
                self.config.min_connections,
                self.config.max_connections,
                self.config.dsn,
                sslmode=self.config.sslmode,
                options=f"-c search_path={self.config.search_path}"
            )
            logger.info("[OK] Connected to PostGIS")
            logger.debug(
                f"Pool size: {self.config.min_connections}-{self.config.max_connections}, "
                f"search_path: {self.config.search_path}"
            )
        except psycopg2.Error as error:
            logger.error(f"[ERROR] Failed to connect to PostGIS: {error}")
            raise

    def disconnect(self) -> None:
        """Close every pooled connection."""
        if self.pool:
            self.pool.closeall()
            self.pool = None
            logger.debug("Disconnected from PostGIS")

    def execute(
        self,
        sql: str,
        params: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        """
        Execute a read query and return normalized rows.

        Args:
            sql: SQL statement
            params: Optional bound parameters

        Returns:
            List of result dictionaries
        """
        if self.pool is None:
            raise RuntimeError("Not connected to PostGIS. Call connect() first.")

        if not self._slots.acquire(timeout=self.config.checkout_timeout):
            raise PoolError(
                f"No PostGIS connection free after {self.config.checkout_timeout}s"
            )
        try:
            connection = self.pool.getconn()
            broken = False
            try:
                with connection.cursor(cursor_factory=RealDictCursor) as cursor:
                    cursor.execute(sql, params)
                    rows = cursor.fetchall()
                connection.rollback()
                return [normalize_row(dict(row)) for row in rows]
            except (psycopg2.OperationalError, psycopg2.InterfaceError):
                broken = True
                raise
            finally:
                self.pool.putconn(connection, close=broken)
        finally:
            self._slots.release()

    def test_connection(self) -> bool:
        """
        Test the PostGIS connection.

        Returns:
            True if connection is successful
        """
        try:
            self.connect()
            self.execute("SELECT PostGIS_Version()")
            logger.info("[OK] PostGIS connection test successful")
            return True
        except Exception as error:
            logger.error(f"[ERROR] PostGIS connection test failed: {error}")
            return False

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()
        return False


class CountyStatsStore:
    """
    County statistics queries.

    Each method is a blocking call and is safe to run from worker threads.
    """

    def __init__(self, connection: PostgisConnection):
        self.connection = connection

    def get_county_summary(self, county: str) -> Optional[Dict[str, Any]]:
        """
        Protected-area summary for a county.

        Returns the feature count, mean feature acreage, county acreage and
        protected acreage, or None when no feature intersects the county.
        """
        rows = self.connection.execute(COUNTY_SUMMARY_SQL, {"county": county})
        return rows[0] if rows else None

    def get_county_gap_status(self, county: str) -> List[Dict[str, Any]]:
        """Feature count and acreage per GAP status code, ordered by code."""
        return self.connection.execute(COUNTY_GAP_STATUS_SQL, {"county": county})

    def list_county_keys(self) -> List[str]:
        """Every county abbreviation known to the database."""
        rows = self.connection.execute(COUNTY_CATALOG_SQL)
        return [row["abbreviation"] for row in rows]
