"""Durable queue and record store behind a small save/query contract."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from threading import Lock
from typing import Iterable, Mapping, Sequence

from ..domain import ASSET_SLOTS, ExtractedRecord, InvalidTransition, ItemStatus, QueueItem
from .storage import SQLiteManager

_NOW = "strftime('%Y-%m-%dT%H:%M:%fZ', 'now')"
_ASSET_COLUMNS = tuple(f"asset_{slot}" for slot in range(1, ASSET_SLOTS + 1))


def _to_item(row: sqlite3.Row) -> QueueItem:
    return QueueItem(
        id=row["id"],
        url=row["url"],
        status=ItemStatus(row["status"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _to_record(row: sqlite3.Row) -> ExtractedRecord:
    return ExtractedRecord(
        id=row["id"],
        queue_id=row["queue_id"],
        brand=row["brand"],
        name=row["name"],
        external_id=row["external_id"],
        price=row["price"],
        assets=tuple(row[column] for column in _ASSET_COLUMNS),
    )


class QueueStore:
    """Queue items, their statuses and the 1:1 extracted records.

    One connection is shared by every stage; each statement group runs under
    ``self._lock`` so worker threads never interleave inside a transaction.
    """

    def __init__(self, manager: SQLiteManager, db_path: Path) -> None:
        self.manager = manager
        self.db_path = db_path
        self._lock = Lock()
        self._conn = self.manager.connect(db_path)

    # ------------------------------------------------------------------
    # Queue items
    # ------------------------------------------------------------------
    def all_urls(self) -> list[str]:
        with self._lock:
            rows = self._conn.execute("SELECT url FROM queue_items").fetchall()
        return [row["url"] for row in rows]

    def enqueue_many(self, urls: Sequence[str]) -> int:
        """Insert ``urls`` as NEW items in one transaction; known URLs are ignored."""

        if not urls:
            return 0
        with self._lock, self._conn:
            before = self._conn.total_changes
            self._conn.executemany(
                "INSERT OR IGNORE INTO queue_items(url, status) VALUES (?, ?)",
                [(url, ItemStatus.NEW.value) for url in urls],
            )
            return self._conn.total_changes - before

    def get(self, item_id: int) -> QueueItem | None:
        with self._lock:
            row = self._conn.execute("SELECT * FROM queue_items WHERE id = ?", (item_id,)).fetchone()
        return _to_item(row) if row else None

    def select(self, status: ItemStatus, limit: int) -> list[QueueItem]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM queue_items WHERE status = ? ORDER BY id LIMIT ?",
                (status.value, limit),
            ).fetchall()
        return [_to_item(row) for row in rows]

    def claim(self, source: ItemStatus, target: ItemStatus, limit: int) -> list[QueueItem]:
        """Select up to ``limit`` items in ``source`` and flip them to ``target`` atomically."""

        if not source.can_become(target):
            raise ValueError(f"Cannot claim {source.value} items as {target.value}")
        with self._lock, self._conn:
            self._conn.execute("BEGIN IMMEDIATE")
            rows = self._conn.execute(
                "SELECT id FROM queue_items WHERE status = ? ORDER BY id LIMIT ?",
                (source.value, limit),
            ).fetchall()
            ids = [row["id"] for row in rows]
            if not ids:
                return []
            placeholders = ",".join("?" for _ in ids)
            self._conn.execute(
                f"UPDATE queue_items SET status = ?, updated_at = {_NOW} "
                f"WHERE status = ? AND id IN ({placeholders})",
                (target.value, source.value, *ids),
            )
            claimed = self._conn.execute(
                f"SELECT * FROM queue_items WHERE id IN ({placeholders}) ORDER BY id", ids
            ).fetchall()
        return [_to_item(row) for row in claimed]

    def apply(
        self,
        statuses: Mapping[int, ItemStatus],
        records: Iterable[ExtractedRecord] = (),
        expected: ItemStatus | None = None,
    ) -> list[int]:
        """Persist a batch's status changes (and record updates) in one transaction.

        With ``expected`` set, items that left that status while the batch was
        running (a concurrent reset) are skipped along with their records and
        their ids are returned. Any other illegal move still raises.
        """

        records = list(records)
        stale: list[int] = []
        if not statuses and not records:
            return stale
        with self._lock, self._conn:
            self._conn.execute("BEGIN IMMEDIATE")
            if statuses:
                placeholders = ",".join("?" for _ in statuses)
                rows = self._conn.execute(
                    f"SELECT id, status FROM queue_items WHERE id IN ({placeholders})",
                    list(statuses),
                ).fetchall()
                current = {row["id"]: ItemStatus(row["status"]) for row in rows}
                updates: list[tuple[str, int]] = []
                for item_id, target in statuses.items():
                    status = current.get(item_id)
                    if status is None:
                        raise KeyError(f"Unknown queue item {item_id}")
                    if expected is not None and status is not expected and status is not target:
                        stale.append(item_id)
                        continue
                    if status is not target and not status.can_become(target):
                        raise InvalidTransition(item_id, status, target)
                    updates.append((target.value, item_id))
                self._conn.executemany(
                    f"UPDATE queue_items SET status = ?, updated_at = {_NOW} WHERE id = ?",
                    updates,
                )
                # Records written mid-batch for reset items must not outlive the reset.
                self._conn.executemany(
                    "DELETE FROM extracted_records WHERE queue_id = ?",
                    [(item_id,) for item_id in stale],
                )
            for record in records:
                if record.queue_id not in stale:
                    self._write_record(record)
        return stale

    def count_by_status(self) -> dict[str, int]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT status, COUNT(*) AS total FROM queue_items GROUP BY status"
            ).fetchall()
        counts = {status.value: 0 for status in ItemStatus}
        for row in rows:
            counts[row["status"]] = row["total"]
        counts["TOTAL"] = sum(counts[status.value] for status in ItemStatus)
        return counts

    def reset_all(self) -> tuple[int, int]:
        """Delete every record and move every item back to NEW.

        Returns ``(items_reset, records_deleted)``.
        """

        with self._lock, self._conn:
            self._conn.execute("BEGIN IMMEDIATE")
            deleted = self._conn.execute("DELETE FROM extracted_records").rowcount
            reset = self._conn.execute(
                f"UPDATE queue_items SET status = ?, updated_at = {_NOW}",
                (ItemStatus.NEW.value,),
            ).rowcount
        return reset, deleted

    # ------------------------------------------------------------------
    # Extracted records
    # ------------------------------------------------------------------
    def find_record(self, queue_id: int) -> ExtractedRecord | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM extracted_records WHERE queue_id = ?", (queue_id,)
            ).fetchone()
        return _to_record(row) if row else None

    def upsert_record(self, record: ExtractedRecord) -> ExtractedRecord:
        """Create or overwrite the record keyed by ``record.queue_id``."""

        with self._lock, self._conn:
            self._write_record(record)
            row = self._conn.execute(
                "SELECT * FROM extracted_records WHERE queue_id = ?", (record.queue_id,)
            ).fetchone()
        return _to_record(row)

    def _write_record(self, record: ExtractedRecord) -> None:
        columns = ("queue_id", "brand", "name", "external_id", "price", *_ASSET_COLUMNS)
        values = (
            record.queue_id,
            record.brand,
            record.name,
            record.external_id,
            record.price,
            *record.assets,
        )
        updates = ", ".join(f"{column} = excluded.{column}" for column in columns[1:])
        self._conn.execute(
            f"INSERT INTO extracted_records({', '.join(columns)}) "
            f"VALUES ({', '.join('?' for _ in columns)}) "
            f"ON CONFLICT(queue_id) DO UPDATE SET {updates}",
            values,
        )


__all__ = ["QueueStore"]
