"""
SQLite-backed content store and link index.

Both backends can share one database file. The store keeps every write in an
append-only `writes` table; deletes are recorded as tombstone rows pointing at
the write they remove, so entry bytes are never rewritten.

Invariants:
    - Entry bytes are inserted once per address and never updated
    - All multi-statement writes run in a single transaction
    - Links are returned in creation order (seq)

How to change safely:
    - Schema migrations must be backward compatible
    - Bump SCHEMA_VERSION when adding tables or columns

Table schema:
    entries:
        - address TEXT PRIMARY KEY (hex SHA-256 of data)
        - data BLOB

    writes:
        - seq INTEGER PRIMARY KEY
        - receipt_id TEXT UNIQUE
        - action TEXT ('create' | 'delete')
        - address TEXT
        - target_receipt TEXT (receipt removed by a 'delete')
        - timestamp_ms INTEGER

    links:
        - seq INTEGER PRIMARY KEY
        - handle TEXT UNIQUE
        - base TEXT
        - target TEXT
        - tag TEXT
        - timestamp_ms INTEGER
        - INDEX on (base, tag, seq)
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from ..clock import Clock, SystemClock
from .base import (
    BackendError,
    ContentHash,
    Link,
    LinkNotFoundError,
    ReceiptNotFoundError,
    StoredEntry,
    WriteAction,
    WriteReceipt,
    hash_bytes,
    make_receipt_id,
)

logger = logging.getLogger(__name__)


class SqliteBackendError(BackendError):
    """SQLite raised an error while serving a store or link request."""

    pass


class _SqliteBackend:
    """Connection handling shared by the SQLite store and link index.

    Thread safety:
        Each operation opens its own connection.
        SQLite handles concurrent access via WAL mode.
    """

    SCHEMA_VERSION = 1

    def __init__(
        self,
        db_path: str,
        clock: Clock | None = None,
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
    ) -> None:
        """Initialize the backend and create the schema if needed.

        Args:
            db_path: SQLite database file
            clock: Source of write timestamps (wall clock by default)
            wal_mode: Enable SQLite WAL mode
            busy_timeout_ms: SQLite busy timeout
        """
        self.db_path = Path(db_path)
        self.clock = clock or SystemClock()
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms

        with self._get_connection() as conn:
            self._create_schema(conn)

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """Open a configured connection.

        Yields:
            SQLite connection

        Raises:
            SqliteBackendError: If SQLite fails
        """
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            conn = sqlite3.connect(
                str(self.db_path),
                timeout=self.busy_timeout_ms / 1000.0,
                isolation_level=None,  # Autocommit by default, explicit transactions
            )
        except sqlite3.Error as e:
            raise SqliteBackendError(f"Failed to open {self.db_path}: {e}") from e

        conn.row_factory = sqlite3.Row

        try:
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            if self.wal_mode:
                conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")

            yield conn
        except sqlite3.Error as e:
            raise SqliteBackendError(f"SQLite error on {self.db_path}: {e}") from e
        finally:
            conn.close()

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        """Create database schema."""
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at INTEGER NOT NULL
            );

            CREATE TABLE IF NOT EXISTS entries (
                address TEXT PRIMARY KEY,
                data BLOB NOT NULL
            );

            CREATE TABLE IF NOT EXISTS writes (
                seq INTEGER PRIMARY KEY,
                receipt_id TEXT NOT NULL UNIQUE,
                action TEXT NOT NULL,
                address TEXT NOT NULL,
                target_receipt TEXT,
                timestamp_ms INTEGER NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_writes_address ON writes(address, action);
            CREATE INDEX IF NOT EXISTS idx_writes_target ON writes(target_receipt);

            CREATE TABLE IF NOT EXISTS links (
                seq INTEGER PRIMARY KEY,
                handle TEXT NOT NULL UNIQUE,
                base TEXT NOT NULL,
                target TEXT NOT NULL,
                tag TEXT NOT NULL,
                timestamp_ms INTEGER NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_links_base_tag ON links(base, tag, seq);

            INSERT OR IGNORE INTO schema_version (version, applied_at)
            VALUES (1, strftime('%s', 'now') * 1000);
        """)

    @staticmethod
    def _next_seq(conn: sqlite3.Connection, table: str) -> int:
        cursor = conn.execute(f"SELECT COALESCE(MAX(seq), 0) + 1 FROM {table}")
        return cursor.fetchone()[0]

    @staticmethod
    def _row_to_receipt(row: sqlite3.Row) -> WriteReceipt:
        return WriteReceipt(
            id=row["receipt_id"],
            action=WriteAction(row["action"]),
            address=row["address"],
            seq=row["seq"],
            timestamp_ms=row["timestamp_ms"],
        )


class SqliteContentStore(_SqliteBackend):
    """SQLite implementation of ContentStore.

    Example:
        >>> store = SqliteContentStore("/var/lib/entcrud/entries.db")
        >>> address, receipt = store.put(b'{"title":"x"}')
    """

    def _record_write(
        self,
        conn: sqlite3.Connection,
        action: WriteAction,
        address: ContentHash,
        target_receipt: str | None = None,
    ) -> WriteReceipt:
        seq = self._next_seq(conn, "writes")
        timestamp = self.clock.now()
        receipt = WriteReceipt(
            id=make_receipt_id(action, address, seq, timestamp),
            action=action,
            address=address,
            seq=seq,
            timestamp_ms=timestamp,
        )
        conn.execute(
            """
            INSERT INTO writes (seq, receipt_id, action, address, target_receipt, timestamp_ms)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (seq, receipt.id, action.value, address, target_receipt, timestamp),
        )
        return receipt

    def put(self, data: bytes) -> tuple[ContentHash, WriteReceipt]:
        address = hash_bytes(data)

        with self._get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                conn.execute(
                    "INSERT OR IGNORE INTO entries (address, data) VALUES (?, ?)",
                    (address, sqlite3.Binary(data)),
                )
                receipt = self._record_write(conn, WriteAction.CREATE, address)
                conn.execute("COMMIT")

            except Exception:
                conn.execute("ROLLBACK")
                raise

        logger.debug(
            "Entry written",
            extra={"address": address, "receipt": receipt.id, "seq": receipt.seq},
        )
        return address, receipt

    def get(self, address: ContentHash) -> StoredEntry | None:
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                SELECT w.* FROM writes w
                WHERE w.address = ? AND w.action = ?
                AND NOT EXISTS (
                    SELECT 1 FROM writes d
                    WHERE d.action = ? AND d.target_receipt = w.receipt_id
                )
                ORDER BY w.seq DESC
                LIMIT 1
                """,
                (address, WriteAction.CREATE.value, WriteAction.DELETE.value),
            )
            write = cursor.fetchone()
            if not write:
                return None

            cursor = conn.execute("SELECT data FROM entries WHERE address = ?", (address,))
            entry = cursor.fetchone()
            if not entry:
                return None

            return StoredEntry(
                address=address,
                data=bytes(entry["data"]),
                receipt=self._row_to_receipt(write),
            )

    def remove(self, receipt: WriteReceipt) -> WriteReceipt:
        with self._get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                cursor = conn.execute(
                    "SELECT address FROM writes WHERE receipt_id = ? AND action = ?",
                    (receipt.id, WriteAction.CREATE.value),
                )
                row = cursor.fetchone()
                if not row:
                    raise ReceiptNotFoundError(f"Unknown write receipt: {receipt.id}")

                tombstone = self._record_write(
                    conn, WriteAction.DELETE, row["address"], target_receipt=receipt.id
                )
                conn.execute("COMMIT")

            except Exception:
                conn.execute("ROLLBACK")
                raise

        logger.debug(
            "Write removed",
            extra={"address": receipt.address, "receipt": receipt.id},
        )
        return tombstone

    def get_stats(self) -> dict[str, int]:
        """Get entry and write counts.

        Returns:
            Dictionary with counts
        """
        with self._get_connection() as conn:
            stats = {}

            cursor = conn.execute("SELECT COUNT(*) FROM entries")
            stats["entries"] = cursor.fetchone()[0]

            cursor = conn.execute("SELECT COUNT(*) FROM writes")
            stats["writes"] = cursor.fetchone()[0]

            return stats


class SqliteLinkIndex(_SqliteBackend):
    """SQLite implementation of LinkIndex.

    Example:
        >>> links = SqliteLinkIndex("/var/lib/entcrud/entries.db")
        >>> receipt = links.create(post_id, comment_id, "comment")
    """

    def create(self, base: ContentHash, target: ContentHash, tag: str) -> WriteReceipt:
        with self._get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                seq = self._next_seq(conn, "links")
                timestamp = self.clock.now()
                receipt = WriteReceipt(
                    id=make_receipt_id(WriteAction.CREATE_LINK, base, seq, timestamp),
                    action=WriteAction.CREATE_LINK,
                    address=base,
                    seq=seq,
                    timestamp_ms=timestamp,
                )
                conn.execute(
                    """
                    INSERT INTO links (seq, handle, base, target, tag, timestamp_ms)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (seq, receipt.id, base, target, tag, timestamp),
                )
                conn.execute("COMMIT")

            except Exception:
                conn.execute("ROLLBACK")
                raise

        logger.debug(
            "Created link",
            extra={"base": base, "target": target, "tag": tag, "timestamp_ms": timestamp},
        )
        return receipt

    def query(self, base: ContentHash, tag: str) -> list[Link]:
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                SELECT * FROM links
                WHERE base = ? AND tag = ?
                ORDER BY seq
                """,
                (base, tag),
            )

            return [
                Link(
                    base=row["base"],
                    target=row["target"],
                    tag=row["tag"],
                    timestamp_ms=row["timestamp_ms"],
                    handle=row["handle"],
                )
                for row in cursor.fetchall()
            ]

    def delete(self, handle: str) -> None:
        with self._get_connection() as conn:
            cursor = conn.execute("DELETE FROM links WHERE handle = ?", (handle,))
            if cursor.rowcount == 0:
                raise LinkNotFoundError(f"Unknown link handle: {handle}")

        logger.debug("Deleted link", extra={"handle": handle})
