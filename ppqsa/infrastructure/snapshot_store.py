"""
The durable snapshot log.

The whole log is one JSON array under one key. Reads never fail on bad
content: unparsable text or a non-array value reads as an empty log, and each
element passes through the SnapshotCodec.
"""

from __future__ import annotations

import json
from collections.abc import Sequence

from ppqsa.domain.codec import SnapshotCodec
from ppqsa.domain.schemas import Snapshot

from .config import StorageConfig, get_settings
from .kv import KeyValueStore, load_json
from .logging import get_logger, log_operation

logger = get_logger(__name__)


class SnapshotStore:
    def __init__(
        self,
        kv: KeyValueStore,
        codec: SnapshotCodec | None = None,
        key: str | None = None,
    ):
        self.kv = kv
        self.codec = codec or SnapshotCodec()
        self.key = key or get_settings().storage.snapshots_key

    def read_all(self) -> list[Snapshot]:
        data = load_json(self.kv, self.key)
        if not isinstance(data, list):
            if data is not None:
                logger.warning(f"Snapshot log under {self.key} is not an array; reading as empty")
            return []
        return self.codec.decode_many(data)

    @log_operation("write_snapshot_log")
    def write_all(self, log: Sequence[Snapshot]) -> None:
        self.kv.set(self.key, json.dumps(self.codec.encode(log)))

    def append(self, snapshot: Snapshot) -> list[Snapshot]:
        log = self.read_all()
        log.append(snapshot)
        self.write_all(log)
        logger.info(f"Appended snapshot for token {snapshot.token} ({len(log)} in log)")
        return log

    def clear(self) -> None:
        self.write_all([])
        logger.info("Cleared snapshot log")


@log_operation("migrate_legacy_snapshots")
def migrate_legacy_snapshots(
    kv: KeyValueStore,
    codec: SnapshotCodec | None = None,
    config: StorageConfig | None = None,
) -> int:
    """
    Copy the pre-v1 log into the current key, once.

    Runs only while the current key holds nothing; returns the number of
    records migrated (0 when skipped). Malformed legacy records are skipped
    one by one.
    """
    config = config or get_settings().storage
    codec = codec or SnapshotCodec()

    current = kv.get(config.snapshots_key)
    if current is not None and current.strip():
        return 0

    legacy = load_json(kv, config.legacy_snapshots_key)
    if not isinstance(legacy, list):
        return 0

    migrated: list[Snapshot] = []
    for item in legacy:
        snapshot = codec.from_legacy(item)
        if snapshot is None:
            logger.debug("Skipping non-record legacy entry")
            continue
        migrated.append(snapshot)

    if not migrated:
        return 0

    SnapshotStore(kv, codec, config.snapshots_key).write_all(migrated)
    logger.info(f"Migrated {len(migrated)} legacy snapshots into {config.snapshots_key}")
    return len(migrated)
