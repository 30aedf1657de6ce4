"""Summary: SQLite storage implementation for MyBrain.

Importance: Provides the local-first record tables, sync watermarks, and summary cache table.
Alternatives: Keep records in JSON files per source.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterable, Iterator

from mybrain.models import (
    ChatContainer,
    ChatMessage,
    MailMessage,
    NormalizedRecord,
    Source,
    SummaryKind,
    CacheEntry,
    SyncWatermark,
    WorkspacePage,
)
from mybrain.time_filters import TimeFilter, cutoff_for


logger = logging.getLogger(__name__)


_RECORD_TABLES = {
    Source.CHAT: ("chat_messages", "timestamp"),
    Source.MAIL: ("mail_messages", "timestamp"),
    Source.WORKSPACE: ("workspace_pages", "last_edited_time"),
}


class SqliteStore:
    """Summary: SQLite-backed storage for MyBrain.

    Importance: Single owner of normalized records, watermarks, and cached summaries.
    Alternatives: Split records, watermarks and cache into separate stores.
    """

    def __init__(self, db_path: str) -> None:
        """Summary: Point the store at db_path; initialize() creates the tables.

        Importance: Tests point this at a temporary file.
        Alternatives: Always use the configured default path.
        """

        self._db_path = Path(db_path)
        self._closed = False

    def initialize(self) -> None:
        """Summary: Create record, sync_log and summary_cache tables.

        Importance: Ensures the database is ready for sync and cache writes.
        Alternatives: Ship a versioned schema migration.
        """

        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS chat_messages (
                    id TEXT PRIMARY KEY,
                    chat_id TEXT,
                    chat_name TEXT,
                    is_group INTEGER,
                    sender TEXT,
                    body TEXT,
                    timestamp INTEGER,
                    from_me INTEGER,
                    has_media INTEGER
                )
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS chat_containers (
                    id TEXT PRIMARY KEY,
                    name TEXT,
                    is_group INTEGER,
                    participant_count INTEGER,
                    last_message_at INTEGER,
                    unread_count INTEGER
                )
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS mail_messages (
                    id TEXT PRIMARY KEY,
                    thread_id TEXT,
                    from_email TEXT,
                    from_name TEXT,
                    to_email TEXT,
                    subject TEXT,
                    snippet TEXT,
                    body_preview TEXT,
                    timestamp INTEGER,
                    is_unread INTEGER,
                    labels TEXT,
                    category TEXT
                )
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS workspace_pages (
                    id TEXT PRIMARY KEY,
                    title TEXT,
                    parent_id TEXT,
                    parent_type TEXT,
                    url TEXT,
                    created_time INTEGER,
                    last_edited_time INTEGER,
                    content_preview TEXT,
                    properties TEXT
                )
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS sync_log (
                    source TEXT PRIMARY KEY,
                    last_sync_at INTEGER NOT NULL,
                    records_synced INTEGER NOT NULL
                )
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS summary_cache (
                    cache_key TEXT PRIMARY KEY,
                    scope TEXT NOT NULL,
                    kind TEXT NOT NULL,
                    payload TEXT NOT NULL,
                    created_at_ms INTEGER NOT NULL
                )
                """
            )
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_chat_timestamp ON chat_messages(timestamp)"
            )
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_chat_chat ON chat_messages(chat_id)")
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_mail_timestamp ON mail_messages(timestamp)"
            )
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_workspace_edited ON workspace_pages(last_edited_time)"
            )
            connection.commit()

    def upsert(self, record: NormalizedRecord) -> None:
        """Upsert a single record into its source table."""

        self.bulk_upsert(_source_of(record), [record])

    def bulk_upsert(self, source: Source, records: Iterable[NormalizedRecord]) -> int:
        """Summary: Insert or replace records by id.

        Importance: Same id overwrites, so re-syncs never duplicate records.
        Alternatives: Insert and ignore duplicates, keeping the first payload.
        """

        items = list(records)
        if not items:
            return 0
        with self._connection() as connection:
            cursor = connection.cursor()
            for record in items:
                if _source_of(record) is not source:
                    raise ValueError(f"Record {record.id} does not belong to source {source.value}")
                sql, params = _upsert_statement(record)
                cursor.execute(sql, params)
            connection.commit()
        return len(items)

    def upsert_chat_container(self, container: ChatContainer) -> None:
        """Summary: Insert or replace chat container metadata.

        Importance: Keeps chat names and activity for offline views.
        Alternatives: Derive chats from stored messages only.
        """

        with self._connection() as connection:
            connection.execute(
                """
                INSERT OR REPLACE INTO chat_containers (
                    id, name, is_group, participant_count, last_message_at, unread_count
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    container.id,
                    container.name,
                    int(container.is_group),
                    container.participant_count,
                    container.last_message_at,
                    container.unread_count,
                ),
            )
            connection.commit()

    def list_chat_containers(self) -> list[ChatContainer]:
        """Return stored chat containers, most recently active first."""

        with self._connection() as connection:
            rows = connection.execute(
                """
                SELECT id, name, is_group, participant_count, last_message_at, unread_count
                FROM chat_containers
                ORDER BY last_message_at DESC
                """
            ).fetchall()
        return [
            ChatContainer(
                id=row[0],
                name=row[1],
                is_group=bool(row[2]),
                participant_count=row[3] or 0,
                last_message_at=row[4] or 0,
                unread_count=row[5] or 0,
            )
            for row in rows
        ]

    def query(
        self,
        source: Source,
        time_filter: TimeFilter | str = TimeFilter.ALL,
        now: float | None = None,
        limit: int | None = None,
    ) -> list[NormalizedRecord]:
        """Summary: Return stored records for a source within a time filter.

        Importance: Feeds offline views and record listings, newest first.
        Alternatives: Query the provider directly every time.
        """

        table, column = _RECORD_TABLES[source]
        cutoff = cutoff_for(time_filter, time.time() if now is None else now)
        sql = f"SELECT * FROM {table}"
        params: list[Any] = []
        if cutoff is not None:
            sql += f" WHERE {column} >= ?"
            params.append(cutoff)
        sql += f" ORDER BY {column} DESC"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        with self._connection() as connection:
            connection.row_factory = sqlite3.Row
            rows = connection.execute(sql, params).fetchall()
        return [_row_to_record(source, row) for row in rows]

    def count_records(self, source: Source) -> int:
        """Return how many records are stored for a source."""

        table, _ = _RECORD_TABLES[source]
        with self._connection() as connection:
            row = connection.execute(f"SELECT COUNT(*) FROM {table}").fetchone()
        return int(row[0]) if row else 0

    def stats(self) -> dict[str, int]:
        """Summary: Return record counts per source.

        Importance: Provides a simple metrics view for dashboards and the CLI.
        Alternatives: Count rows from the caller.
        """

        return {source.value: self.count_records(source) for source in Source}

    def get_watermark(self, source: Source) -> SyncWatermark | None:
        """Summary: Read the sync watermark for a source.

        Importance: Bounds the next incremental sync window.
        Alternatives: Store the watermark in a key-value file.
        """

        with self._connection() as connection:
            row = connection.execute(
                "SELECT last_sync_at, records_synced FROM sync_log WHERE source = ?",
                (source.value,),
            ).fetchone()
        if not row:
            return None
        return SyncWatermark(source=source, last_sync_at=int(row[0]), records_synced=int(row[1]))

    def get_last_sync_time(self, source: Source) -> int | None:
        watermark = self.get_watermark(source)
        return watermark.last_sync_at if watermark else None

    def set_watermark(
        self, source: Source, records_synced: int, synced_at: int | None = None
    ) -> SyncWatermark:
        """Summary: Advance the sync watermark for a source.

        Importance: last_sync_at never moves backwards, even if an older sync finishes last.
        Alternatives: Overwrite unconditionally with the caller's timestamp.
        """

        synced_at = int(time.time()) if synced_at is None else int(synced_at)
        with self._connection() as connection:
            connection.execute(
                """
                INSERT INTO sync_log (source, last_sync_at, records_synced)
                VALUES (?, ?, ?)
                ON CONFLICT(source) DO UPDATE SET
                    last_sync_at = MAX(sync_log.last_sync_at, excluded.last_sync_at),
                    records_synced = excluded.records_synced
                """,
                (source.value, synced_at, records_synced),
            )
            connection.commit()
        watermark = self.get_watermark(source)
        if watermark is None:
            raise RuntimeError(f"Watermark for {source.value} was not written")
        return watermark

    def reset_watermark(self, source: Source) -> bool:
        """Summary: Delete the sync watermark for a source.

        Importance: Used on disconnect so the next connection does a full window sync.
        Alternatives: Keep stale watermarks after a disconnect.
        """

        with self._connection() as connection:
            cursor = connection.execute("DELETE FROM sync_log WHERE source = ?", (source.value,))
            connection.commit()
            deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Reset sync watermark for %s.", source.value)
        return deleted

    def get_cache_entry(self, scope: str, kind: SummaryKind) -> CacheEntry | None:
        """Read a cached summary entry, if one exists."""

        with self._connection() as connection:
            row = connection.execute(
                "SELECT payload, created_at_ms FROM summary_cache WHERE cache_key = ?",
                (cache_key(scope, kind),),
            ).fetchone()
        if not row:
            return None
        return CacheEntry(
            scope=scope, kind=kind, payload=json.loads(row[0]), created_at_ms=int(row[1])
        )

    def put_cache_entry(self, entry: CacheEntry) -> None:
        """Summary: Create or replace a cached summary entry.

        Importance: At most one entry per key; the last write wins.
        Alternatives: Keep a history of summaries per key.
        """

        with self._connection() as connection:
            connection.execute(
                """
                INSERT OR REPLACE INTO summary_cache (cache_key, scope, kind, payload, created_at_ms)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    cache_key(entry.scope, entry.kind),
                    entry.scope,
                    entry.kind.value,
                    json.dumps(entry.payload),
                    entry.created_at_ms,
                ),
            )
            connection.commit()

    def close(self) -> None:
        """Summary: Mark the store closed.

        Importance: Writes after shutdown fail loudly instead of touching the file.
        Alternatives: Leave the store usable until garbage collection.
        """

        if not self._closed:
            self._closed = True
            logger.info("Closed store at %s.", self._db_path)

    @property
    def closed(self) -> bool:
        return self._closed

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Summary: Yield a fresh SQLite connection, closed on exit.

        Importance: Each call gets its own connection, which is closed afterwards.
        Alternatives: Share one connection across threads.
        """

        if self._closed:
            raise RuntimeError(f"Store at {self._db_path} is closed")
        connection = sqlite3.connect(self._db_path)
        try:
            yield connection
        finally:
            connection.close()


def cache_key(scope: str, kind: SummaryKind) -> str:
    return f"cache.{scope}.{kind.value}"


def _source_of(record: NormalizedRecord) -> Source:
    if isinstance(record, ChatMessage):
        return Source.CHAT
    if isinstance(record, MailMessage):
        return Source.MAIL
    if isinstance(record, WorkspacePage):
        return Source.WORKSPACE
    raise TypeError(f"Unsupported record type: {type(record).__name__}")


def _upsert_statement(record: NormalizedRecord) -> tuple[str, tuple[Any, ...]]:
    if isinstance(record, ChatMessage):
        return (
            """
            INSERT OR REPLACE INTO chat_messages (
                id, chat_id, chat_name, is_group, sender, body, timestamp, from_me, has_media
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.id,
                record.chat_id,
                record.chat_name,
                int(record.is_group),
                record.sender,
                record.body,
                record.timestamp,
                int(record.from_me),
                int(record.has_media),
            ),
        )
    if isinstance(record, MailMessage):
        return (
            """
            INSERT OR REPLACE INTO mail_messages (
                id, thread_id, from_email, from_name, to_email, subject, snippet,
                body_preview, timestamp, is_unread, labels, category
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.id,
                record.thread_id,
                record.from_email,
                record.from_name,
                record.to_email,
                record.subject,
                record.snippet,
                record.body_preview,
                record.timestamp,
                int(record.is_unread),
                json.dumps(list(record.labels)),
                record.category,
            ),
        )
    return (
        """
        INSERT OR REPLACE INTO workspace_pages (
            id, title, parent_id, parent_type, url, created_time, last_edited_time,
            content_preview, properties
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            record.id,
            record.title,
            record.parent_id,
            record.parent_type,
            record.url,
            record.created_time,
            record.last_edited_time,
            record.content_preview,
            json.dumps(record.properties),
        ),
    )


def _row_to_record(source: Source, row: sqlite3.Row) -> NormalizedRecord:
    if source is Source.CHAT:
        return ChatMessage(
            id=row["id"],
            chat_id=row["chat_id"],
            chat_name=row["chat_name"],
            is_group=bool(row["is_group"]),
            sender=row["sender"],
            body=row["body"],
            timestamp=int(row["timestamp"]),
            from_me=bool(row["from_me"]),
            has_media=bool(row["has_media"]),
        )
    if source is Source.MAIL:
        return MailMessage(
            id=row["id"],
            thread_id=row["thread_id"],
            from_email=row["from_email"],
            from_name=row["from_name"],
            to_email=row["to_email"],
            subject=row["subject"],
            snippet=row["snippet"],
            body_preview=row["body_preview"],
            timestamp=int(row["timestamp"]),
            is_unread=bool(row["is_unread"]),
            labels=tuple(json.loads(row["labels"] or "[]")),
            category=row["category"],
        )
    return WorkspacePage(
        id=row["id"],
        title=row["title"],
        parent_id=row["parent_id"],
        parent_type=row["parent_type"],
        url=row["url"],
        created_time=int(row["created_time"]),
        last_edited_time=int(row["last_edited_time"]),
        content_preview=row["content_preview"] or "",
        properties=json.loads(row["properties"] or "{}"),
    )
