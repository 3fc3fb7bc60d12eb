"""
Query Source Interface for Wigle Explorer

A query source hands the ingestor two record streams, "networks" and
"observations", as pandas DataFrames. Rows with a zero coordinate (no GPS
fix) are excluded here, never by the ingestor.

Usage:
    source = WigleDatabaseSource("backup.sqlite")
    memory = MemorySource(networks=[...], observations=[...])

    # The ingestor doesn't care about source type
    total = source.count_observations()
    df = source.fetch_observations(stride=4, limit=30000)
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, List, Dict, Any
import logging
import sqlite3

import pandas as pd

from wigle_explorer.exceptions import SourceError

logger = logging.getLogger(__name__)

NETWORK_COLUMNS = ['type', 'lat', 'lon', 'level', 'ssid', 'bssid', 'last_seen', 'frequency', 'capabilities']
OBSERVATION_COLUMNS = ['lat', 'lon', 'level', 'type', 'time']

NETWORK_QUERY = """
    SELECT type, lastlat AS lat, lastlon AS lon, bestlevel AS level, ssid, bssid,
           lasttime AS last_seen, frequency, capabilities
    FROM network WHERE lastlat != 0 AND lastlon != 0 ORDER BY lasttime DESC
"""

NETWORK_COUNT_QUERY = "SELECT COUNT(*) FROM network WHERE lastlat != 0 AND lastlon != 0"

OBSERVATION_COUNT_QUERY = "SELECT COUNT(*) FROM location WHERE lat != 0 AND lon != 0"

OBSERVATION_QUERY = """
    SELECT l.lat, l.lon, l.level, n.type, l.time
    FROM location l JOIN network n ON l.bssid = n.bssid
    WHERE l.lat != 0 AND l.lon != 0 AND l._id % ? = 0
    ORDER BY l._id
    LIMIT ?
"""


class QuerySource(ABC):
    """
    Abstract base class for all query sources.

    Any class implementing this interface can be handed to the ingestor.
    """

    @abstractmethod
    def count_networks(self) -> int:
        """Number of networks with a position fix"""
        pass

    @abstractmethod
    def fetch_networks(self) -> pd.DataFrame:
        """All networks with a position fix, newest first (NETWORK_COLUMNS)"""
        pass

    @abstractmethod
    def count_observations(self) -> int:
        """Number of observations with a position fix, before sampling"""
        pass

    @abstractmethod
    def fetch_observations(self, stride: int = 1, limit: Optional[int] = None) -> pd.DataFrame:
        """
        Observations with a position fix (OBSERVATION_COLUMNS).

        Args:
            stride: keep only rows whose stable id is a multiple of stride
            limit: maximum number of rows returned
        """
        pass

    @property
    @abstractmethod
    def source_type(self) -> str:
        """Return the type of this source (sqlite, memory, ...)"""
        pass

    @property
    def source_name(self) -> str:
        return self.source_type

    def close(self):
        """Release any resources held by the source"""
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def __repr__(self):
        return f"<{self.__class__.__name__} source={self.source_name}>"


class WigleDatabaseSource(QuerySource):
    """
    Query source over a WiGLE Android SQLite export.

    Uses the `network` table (last known position per BSSID) and the
    `location` table (one row per sighting), opened read-only.
    """

    def __init__(self, filepath: str, delete_on_close: bool = False):
        self.filepath = Path(filepath)
        self.delete_on_close = delete_on_close
        self._conn: Optional[sqlite3.Connection] = None

    @property
    def source_type(self) -> str:
        return "sqlite"

    @property
    def source_name(self) -> str:
        return str(self.filepath)

    def _connect(self) -> sqlite3.Connection:
        if self._conn is not None:
            return self._conn
        if not self.filepath.is_file():
            raise SourceError(f"Database file not found: {self.filepath}")
        try:
            self._conn = sqlite3.connect(
                f"file:{self.filepath.resolve()}?mode=ro", uri=True, check_same_thread=False
            )
        except sqlite3.Error as e:
            raise SourceError(f"Could not open database {self.filepath}: {e}") from e
        logger.info(f"Opened WiGLE database: {self.filepath}")
        return self._conn

    def _scalar(self, sql: str) -> int:
        conn = self._connect()
        try:
            row = conn.execute(sql).fetchone()
        except sqlite3.Error as e:
            raise SourceError(f"Query failed on {self.filepath}: {e}") from e
        return int(row[0] or 0) if row else 0

    def _frame(self, sql: str, params: tuple = ()) -> pd.DataFrame:
        conn = self._connect()
        try:
            return pd.read_sql_query(sql, conn, params=params)
        except (sqlite3.Error, pd.errors.DatabaseError) as e:
            raise SourceError(f"Query failed on {self.filepath}: {e}") from e

    def count_networks(self) -> int:
        return self._scalar(NETWORK_COUNT_QUERY)

    def fetch_networks(self) -> pd.DataFrame:
        df = self._frame(NETWORK_QUERY)
        logger.info(f"Fetched {len(df)} network rows from {self.filepath.name}")
        return df

    def count_observations(self) -> int:
        return self._scalar(OBSERVATION_COUNT_QUERY)

    def fetch_observations(self, stride: int = 1, limit: Optional[int] = None) -> pd.DataFrame:
        # SQLite treats a negative LIMIT as "no limit"
        df = self._frame(OBSERVATION_QUERY, (max(1, int(stride)), -1 if limit is None else int(limit)))
        logger.info(f"Fetched {len(df)} observation rows from {self.filepath.name} (stride {stride})")
        return df

    def close(self):
        if self._conn is not None:
            self._conn.close()
            self._conn = None
        if self.delete_on_close:
            # Uploaded temp copy
            self.filepath.unlink(missing_ok=True)


class MemorySource(QuerySource):
    """
    Query source over rows held in memory.

    Network rows are dicts with NETWORK_COLUMNS keys, observation rows dicts
    with OBSERVATION_COLUMNS keys and an optional stable `_id` (defaults to
    the 1-based position, like an SQLite rowid).
    """

    def __init__(self, networks: Optional[List[Dict[str, Any]]] = None,
                 observations: Optional[List[Dict[str, Any]]] = None,
                 name: str = "memory"):
        self._networks = list(networks or [])
        self._observations = list(observations or [])
        self._name = name

    @property
    def source_type(self) -> str:
        return "memory"

    @property
    def source_name(self) -> str:
        return self._name

    @staticmethod
    def _has_fix(row: Dict[str, Any]) -> bool:
        lat = row.get('lat') or 0
        lon = row.get('lon') or 0
        return lat != 0 and lon != 0

    def count_networks(self) -> int:
        return sum(1 for row in self._networks if self._has_fix(row))

    def fetch_networks(self) -> pd.DataFrame:
        rows = [row for row in self._networks if self._has_fix(row)]
        df = pd.DataFrame(rows, columns=NETWORK_COLUMNS)
        if not df.empty:
            df = df.sort_values('last_seen', ascending=False, kind='stable', na_position='last')
        return df.reset_index(drop=True)

    def count_observations(self) -> int:
        return sum(1 for row in self._observations if self._has_fix(row))

    def fetch_observations(self, stride: int = 1, limit: Optional[int] = None) -> pd.DataFrame:
        stride = max(1, int(stride))
        rows = []
        for position, row in enumerate(self._observations, start=1):
            if not self._has_fix(row):
                continue
            if int(row.get('_id', position)) % stride != 0:
                continue
            rows.append(row)
            if limit is not None and len(rows) >= limit:
                break
        return pd.DataFrame(rows, columns=OBSERVATION_COLUMNS)


def create_source(source_type: str, **kwargs) -> QuerySource:
    """
    Factory function to create query sources.

    Args:
        source_type: Type of source ("sqlite", "memory")
        **kwargs: Arguments for the specific source type

    Returns:
        QuerySource instance
    """
    sources = {
        'sqlite': WigleDatabaseSource,
        'memory': MemorySource
    }

    if source_type not in sources:
        raise ValueError(f"Unknown source type: {source_type}. Available: {list(sources.keys())}")

    return sources[source_type](**kwargs)
