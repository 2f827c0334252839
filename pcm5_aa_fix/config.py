"""Fixed locations of the device list inside the PCM5 persistence database."""

from dataclasses import dataclass

DEFAULT_DB_PATH = "/mnt/persist_new/persistence/persistence.sqlite"

# Partition holding the terminal mode device list, and the key of the list row
DEVICE_LIST_PARTITION = "1008"
DEVICE_LIST_KEY = 1

EXPECTED_SCHEMA_VERSION = 3


@dataclass(frozen=True)
class StorageSchema:
    """Table and column names of the persistence database"""
    partitions_table: str = "persistence-partitions"
    partition_id_column: str = "id"
    partition_name_column: str = "name"
    data_table: str = "persistence-data"
    data_partition_column: str = "partition"
    data_key_column: str = "key"
    data_value_column: str = "value"


DEFAULT_SCHEMA = StorageSchema()
