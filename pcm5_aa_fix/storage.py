"""
SQLite storage adapter for the PCM5 persistence database.

All SQL lives here. The persistence database has a partition catalog
("persistence-partitions": id, name, ...) and a key/value table
("persistence-data": partition, key, value).
"""

import sqlite3
from pathlib import Path
from typing import Optional, Union

from .config import DEFAULT_SCHEMA, StorageSchema
from .errors import (
    MissingEntry, PartitionNotFound, StorageUnavailable, StorageWriteFailed,
)


def _quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


class PersistenceStore:
    """Read/write access to device list rows in the persistence database."""

    def __init__(self, db_path: Union[str, Path], schema: StorageSchema = DEFAULT_SCHEMA):
        self.db_path = Path(db_path)
        self.schema = schema
        self.conn: Optional[sqlite3.Connection] = None

    @classmethod
    def open(cls, db_path: Union[str, Path], schema: StorageSchema = DEFAULT_SCHEMA) -> "PersistenceStore":
        """Open an existing database read/write"""
        store = cls(db_path, schema)
        store.connect()
        return store

    def connect(self) -> None:
        """
        Connect to the database file.

        Uses a mode=rw URI so a missing file fails instead of being created.
        """
        if not self.db_path.is_file():
            raise StorageUnavailable(f"Database not found: {self.db_path}")

        uri = f"{self.db_path.resolve().as_uri()}?mode=rw"
        try:
            conn = sqlite3.connect(uri, uri=True)
        except sqlite3.Error as e:
            raise StorageUnavailable(f"Cannot open database {self.db_path}: {e}") from e

        # sqlite only notices a non-database file on the first query
        try:
            conn.execute("SELECT count(*) FROM sqlite_master").fetchone()
        except sqlite3.Error as e:
            conn.close()
            raise StorageUnavailable(f"Cannot open database {self.db_path}: {e}") from e

        self.conn = conn

    def close(self) -> None:
        if self.conn is not None:
            self.conn.close()
            self.conn = None

    def __enter__(self):
        if self.conn is None:
            self.connect()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def _require_conn(self) -> sqlite3.Connection:
        if self.conn is None:
            raise StorageUnavailable("Database is not open")
        return self.conn

    def resolve_partition(self, logical_name: Union[str, int]) -> int:
        """
        Look up the numeric id of a partition by its recorded name.

        The name column may hold the partition name as text or as an integer,
        so both forms are matched.

        Args:
            logical_name: Partition name, e.g. "1008" or 1008

        Returns:
            Partition id
        """
        conn = self._require_conn()
        s = self.schema
        name_text = str(logical_name)
        try:
            name_int = int(name_text)
        except ValueError:
            name_int = None

        sql = (
            f"SELECT {_quote(s.partition_id_column)} FROM {_quote(s.partitions_table)} "
            f"WHERE {_quote(s.partition_name_column)} = ? OR {_quote(s.partition_name_column)} = ?"
        )
        try:
            row = conn.execute(sql, (name_text, name_int)).fetchone()
        except sqlite3.Error as e:
            raise StorageUnavailable(f"Failed to query partitions: {e}") from e

        if row is None:
            raise PartitionNotFound(f"Partition {name_text} not found in database")

        return int(row[0])

    def load_entry(self, partition_id: int, key: int) -> bytes:
        """Return the raw value stored under (partition, key)"""
        conn = self._require_conn()
        s = self.schema
        sql = (
            f"SELECT {_quote(s.data_value_column)} FROM {_quote(s.data_table)} "
            f"WHERE {_quote(s.data_partition_column)} = ? AND {_quote(s.data_key_column)} = ?"
        )
        try:
            row = conn.execute(sql, (partition_id, key)).fetchone()
        except sqlite3.Error as e:
            raise StorageUnavailable(f"Failed to read entry: {e}") from e

        if row is None or row[0] is None:
            raise MissingEntry(f"No entry for key {key} in partition id {partition_id}")

        value = row[0]
        if isinstance(value, str):
            value = value.encode('utf-8')
        return bytes(value)

    def store_entry(self, partition_id: int, key: int, blob: bytes) -> None:
        """Overwrite the value under (partition, key) with a single UPDATE"""
        conn = self._require_conn()
        s = self.schema
        sql = (
            f"UPDATE {_quote(s.data_table)} SET {_quote(s.data_value_column)} = ? "
            f"WHERE {_quote(s.data_partition_column)} = ? AND {_quote(s.data_key_column)} = ?"
        )
        try:
            with conn:
                cursor = conn.execute(sql, (sqlite3.Binary(blob), partition_id, key))
                if cursor.rowcount != 1:
                    raise StorageWriteFailed(
                        f"Update matched {cursor.rowcount} rows for key {key} "
                        f"in partition id {partition_id}, expected 1"
                    )
        except sqlite3.Error as e:
            raise StorageWriteFailed(f"Failed to update database: {e}") from e
