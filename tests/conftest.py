import sqlite3

import pytest

from pcm5_aa_fix.devicelist import (
    DISCLAIMER_ACCEPTED, NATIVE_SELECTED, DeviceRecord, encode_device_list,
)
from pcm5_aa_fix.errors import MissingEntry, PartitionNotFound


def device(name="Phone", state=DISCLAIMER_ACCEPTED, unique_id="a1b2c3d4", **kwargs):
    kwargs.setdefault("smartphone_type", "ANDROID")
    kwargs.setdefault("last_connection_type", "USB")
    return DeviceRecord(device_unique_id=unique_id, name=name, user_accept_state=state, **kwargs)


def fixed(records):
    """Same records with every NATIVE_SELECTED state replaced"""
    result = []
    for record in records:
        state = record.user_accept_state
        if state == NATIVE_SELECTED:
            state = DISCLAIMER_ACCEPTED
        result.append(DeviceRecord(
            device_unique_id=record.device_unique_id,
            smartphone_type=record.smartphone_type,
            name=record.name,
            user_accept_state=state,
            was_disclaimer_previously_accepted=record.was_disclaimer_previously_accepted,
            store_user_accept_state=record.store_user_accept_state,
            last_mode=record.last_mode,
            last_connection_type=record.last_connection_type,
        ))
    return result


@pytest.fixture
def healthy_blob():
    return encode_device_list([device()])


@pytest.fixture
def corrupted_records():
    return [device(state=NATIVE_SELECTED)]


@pytest.fixture
def mixed_records():
    return [
        device(name="Pixel", unique_id="11:22:33", state=NATIVE_SELECTED, last_mode=2),
        device(name="Galaxy", unique_id="44:55:66", state=DISCLAIMER_ACCEPTED,
               was_disclaimer_previously_accepted=True, store_user_accept_state=True),
        device(name="Fairphone", unique_id="77:88:99", state=NATIVE_SELECTED,
               last_connection_type="WIRELESS"),
    ]


class FakeStore:
    """In-memory stand-in for PersistenceStore that records calls"""

    def __init__(self, entries=None, partitions=None, events=None, on_store=None):
        self.partitions = {"1008": 7} if partitions is None else partitions
        self.entries = {} if entries is None else entries
        self.events = [] if events is None else events
        self.on_store = on_store

    def resolve_partition(self, logical_name):
        try:
            return self.partitions[str(logical_name)]
        except KeyError:
            raise PartitionNotFound(f"Partition {logical_name} not found in database")

    def load_entry(self, partition_id, key):
        self.events.append(("load", partition_id, key))
        try:
            return self.entries[(partition_id, key)]
        except KeyError:
            raise MissingEntry(f"No entry for key {key} in partition id {partition_id}")

    def store_entry(self, partition_id, key, blob):
        if self.on_store is not None:
            self.on_store()
        self.events.append(("store", partition_id, key))
        self.entries[(partition_id, key)] = blob


@pytest.fixture
def fake_store():
    def make(blob=None, **kwargs):
        entries = {} if blob is None else {(7, 1): blob}
        return FakeStore(entries=entries, **kwargs)
    return make


def create_persistence_db(path, blob=None, partition_name="1008", partition_id=7):
    """Create a database with the head unit's persistence tables"""
    conn = sqlite3.connect(str(path))
    with conn:
        conn.execute('CREATE TABLE "persistence-partitions" (id INTEGER PRIMARY KEY, name, version INTEGER)')
        conn.execute('CREATE TABLE "persistence-data" (partition INTEGER, key INTEGER, value BLOB)')
        conn.execute('INSERT INTO "persistence-partitions" (id, name, version) VALUES (?, ?, 1)',
                     (3, "1001"))
        conn.execute('INSERT INTO "persistence-partitions" (id, name, version) VALUES (?, ?, 1)',
                     (partition_id, partition_name))
        conn.execute('INSERT INTO "persistence-data" VALUES (?, ?, ?)', (3, 1, b"other partition"))
        conn.execute('INSERT INTO "persistence-data" VALUES (?, ?, ?)', (partition_id, 2, b"other key"))
        if blob is not None:
            conn.execute('INSERT INTO "persistence-data" VALUES (?, ?, ?)', (partition_id, 1, blob))
    conn.close()
    return path


def read_value(path, partition_id=7, key=1):
    conn = sqlite3.connect(str(path))
    try:
        row = conn.execute('SELECT value FROM "persistence-data" WHERE partition = ? AND key = ?',
                           (partition_id, key)).fetchone()
    finally:
        conn.close()
    return None if row is None else bytes(row[0])


@pytest.fixture
def persistence_db(tmp_path):
    def make(blob=None, **kwargs):
        return create_persistence_db(tmp_path / "persistence.sqlite", blob, **kwargs)
    return make
