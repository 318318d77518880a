import json

import pytest
from conftest import make_snapshot

from ppqsa.infrastructure.config import DatabaseConfig, StorageConfig
from ppqsa.infrastructure.kv import InMemoryKeyValueStore, create_key_value_store, load_json
from ppqsa.infrastructure.snapshot_store import SnapshotStore, migrate_legacy_snapshots

CURRENT = "ppqsa_snapshots_v1"
LEGACY = "ppqsa_results_snapshots_v1"


@pytest.fixture
def sql_kv(tmp_path):
    return create_key_value_store(DatabaseConfig(backend="sqlite", sqlite_path=str(tmp_path / "kv.db")))


def test_sql_store_set_get_delete(sql_kv):
    assert sql_kv.get("ppqsa_x") is None
    sql_kv.set("ppqsa_x", "1")
    sql_kv.set("ppqsa_x", "2")
    assert sql_kv.get("ppqsa_x") == "2"
    sql_kv.delete("ppqsa_x")
    sql_kv.delete("ppqsa_x")
    assert sql_kv.get("ppqsa_x") is None


def test_sql_store_prefix_is_literal(sql_kv):
    sql_kv.set("ppqsa_b", "1")
    sql_kv.set("ppqsa_a", "1")
    sql_kv.set("ppqsaXc", "1")
    sql_kv.set("other", "1")
    assert sql_kv.keys("ppqsa_") == ["ppqsa_a", "ppqsa_b"]
    assert len(sql_kv.keys()) == 4


def test_sql_store_persists_across_instances(tmp_path):
    config = DatabaseConfig(backend="sqlite", sqlite_path=str(tmp_path / "kv.db"))
    create_key_value_store(config).set("k", "v")
    assert create_key_value_store(config).get("k") == "v"


def test_memory_backend():
    kv = create_key_value_store(DatabaseConfig(backend="memory"))
    assert isinstance(kv, InMemoryKeyValueStore)
    kv.set("b", "1")
    kv.set("a", "2")
    assert kv.keys() == ["a", "b"]


@pytest.mark.parametrize("raw", [None, "", "   ", "{not json"])
def test_load_json_absent_or_unreadable(kv, raw):
    if raw is not None:
        kv.set("k", raw)
    assert load_json(kv, "k") is None


class TestSnapshotStore:
    """Reading and writing the whole log under one key."""

    @pytest.mark.parametrize("raw", ["not json", '{"a": 1}', '"text"', "42"])
    def test_bad_content_reads_as_empty(self, kv, raw):
        kv.set(CURRENT, raw)
        assert SnapshotStore(kv).read_all() == []

    def test_non_records_are_dropped(self, kv):
        kv.set(CURRENT, '[1, {"token": "t1"}, "x", null]')
        assert [s.token for s in SnapshotStore(kv).read_all()] == ["t1"]

    def test_append_and_clear(self, kv):
        store = SnapshotStore(kv)
        assert len(store.append(make_snapshot(token="t1"))) == 1
        log = store.append(make_snapshot(token="t2"))
        assert [s.token for s in log] == ["t1", "t2"]
        assert [s.token for s in store.read_all()] == ["t1", "t2"]
        store.clear()
        assert store.read_all() == []
        assert kv.get(CURRENT) == "[]"

    def test_written_records_are_camel_case(self, kv):
        SnapshotStore(kv).append(make_snapshot(token="t1", total=7))
        stored = json.loads(kv.get(CURRENT))
        assert stored[0]["token"] == "t1"
        assert stored[0]["totalScore24"] == 7.0
        assert "timestampISO" in stored[0]


LEGACY_RECORD = {
    "token": "t1",
    "profile": {"organisationName": "Org", "country": "Tonga"},
    "timestamp": "2023-06-01T00:00:00Z",
    "totalScoreOutOf24": 9,
    "answers": {"GOV-01": 1},
}


class TestMigration:
    """One-time copy of the pre-v1 log."""

    def test_migrates_once(self, kv):
        kv.set(LEGACY, json.dumps([LEGACY_RECORD, "junk"]))
        assert migrate_legacy_snapshots(kv) == 1
        log = SnapshotStore(kv).read_all()
        assert [(s.token, s.organisation_name, s.total_score24) for s in log] == [("t1", "Org", 9.0)]

        assert migrate_legacy_snapshots(kv) == 0
        assert len(SnapshotStore(kv).read_all()) == 1

    def test_existing_log_blocks_migration(self, kv):
        SnapshotStore(kv).append(make_snapshot(token="t9"))
        kv.set(LEGACY, json.dumps([LEGACY_RECORD]))
        assert migrate_legacy_snapshots(kv) == 0
        assert [s.token for s in SnapshotStore(kv).read_all()] == ["t9"]

    def test_blank_current_key_still_migrates(self, kv):
        kv.set(CURRENT, "  ")
        kv.set(LEGACY, json.dumps([LEGACY_RECORD]))
        assert migrate_legacy_snapshots(kv) == 1

    @pytest.mark.parametrize("raw", [None, "not json", '{"a": 1}', '["junk", 3]'])
    def test_nothing_to_migrate(self, kv, raw):
        if raw is not None:
            kv.set(LEGACY, raw)
        assert migrate_legacy_snapshots(kv) == 0
        assert kv.get(CURRENT) is None

    def test_custom_keys(self, kv):
        config = StorageConfig(snapshots_key="new_log", legacy_snapshots_key="old_log")
        kv.set("old_log", json.dumps([LEGACY_RECORD]))
        assert migrate_legacy_snapshots(kv, config=config) == 1
        assert SnapshotStore(kv, key="new_log").read_all()[0].token == "t1"
