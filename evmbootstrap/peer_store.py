"""Persistent tagged peer registry.

Keeps every bootstrap peer the discoverer has tagged, with its known
multiaddrs and the tags written for it, in ``<data_dir>/peer_store.db``:

* **On discovery**: ``merge(peer_id, tags=..., multiaddrs=...)`` upserts the
  peer, adds any new addresses and (re)writes each tag with a fresh expiry.
* **On read**: ``get_tags`` / ``tagged_peers`` only report live tags.
* **Periodically**: ``prune_expired()`` deletes expired tags.

Usage::

    store = TaggedPeerStore(Path("~/.evmbootstrap"))
    await store.merge(peer_id, tags={"evmbootstrap": PeerTag(50, 120.0)},
                      multiaddrs=addrs)
    store.get_tags(peer_id)   # {"evmbootstrap": 50}
    store.close()
"""

from __future__ import annotations

import math
import time
from collections.abc import Callable, Sequence
from pathlib import Path

import structlog

from evmbootstrap.db import SQLiteStore
from evmbootstrap.types import PeerTag

logger = structlog.get_logger()

# ── Constants ───────────────────────────────────────────────────────────

DEFAULT_TAG_TTL = 120.0  # seconds, applied when a tag has no ttl of its own


class TaggedPeerStore(SQLiteStore):
    """SQLite-backed peer registry with expiring tags.

    Pass ``data_dir=None`` for an in-memory store.
    """

    _SCHEMA = """
        CREATE TABLE IF NOT EXISTS peers (
            peer_id    TEXT PRIMARY KEY,
            last_seen  REAL NOT NULL
        );
        CREATE TABLE IF NOT EXISTS peer_addrs (
            peer_id    TEXT NOT NULL REFERENCES peers (peer_id) ON DELETE CASCADE,
            multiaddr  TEXT NOT NULL,
            PRIMARY KEY (peer_id, multiaddr)
        );
        CREATE TABLE IF NOT EXISTS peer_tags (
            peer_id    TEXT NOT NULL REFERENCES peers (peer_id) ON DELETE CASCADE,
            name       TEXT NOT NULL,
            value      INTEGER NOT NULL,
            expires_at REAL,
            PRIMARY KEY (peer_id, name)
        );
        CREATE INDEX IF NOT EXISTS idx_peer_tags_name ON peer_tags (name);
    """

    def __init__(
        self,
        data_dir: Path | str | None = None,
        *,
        default_ttl: float = DEFAULT_TAG_TTL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        db_path: Path | None = None
        if data_dir is not None:
            db_path = Path(data_dir) / "peer_store.db"
            db_path.parent.mkdir(parents=True, exist_ok=True)
        super().__init__(db_path)
        self._default_ttl = default_ttl
        self._clock = clock

    def _expires_at(self, ttl: float | None, now: float) -> float | None:
        if ttl is None:
            ttl = self._default_ttl
        if math.isinf(ttl):
            return None
        return now + ttl

    # ── Write operations ───────────────────────────────────────

    async def merge(
        self,
        peer_id: object,
        *,
        tags: dict[str, PeerTag],
        multiaddrs: Sequence[object],
    ) -> None:
        """Upsert a peer with its tags and addresses.

        Existing addresses are kept; tags with the same name are replaced.
        """
        pid = str(peer_id)
        now = self._clock()
        self._conn.execute(
            """
            INSERT INTO peers (peer_id, last_seen) VALUES (?, ?)
            ON CONFLICT(peer_id) DO UPDATE SET last_seen = excluded.last_seen
            """,
            (pid, now),
        )
        self._conn.executemany(
            "INSERT OR IGNORE INTO peer_addrs (peer_id, multiaddr) VALUES (?, ?)",
            [(pid, str(addr)) for addr in multiaddrs],
        )
        self._conn.executemany(
            """
            INSERT INTO peer_tags (peer_id, name, value, expires_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(peer_id, name) DO UPDATE SET
                value = excluded.value,
                expires_at = excluded.expires_at
            """,
            [
                (pid, name, tag.value, self._expires_at(tag.ttl, now))
                for name, tag in tags.items()
            ],
        )
        self._conn.commit()

    def remove(self, peer_id: object) -> None:
        """Remove a peer with all its addresses and tags."""
        self._conn.execute("DELETE FROM peers WHERE peer_id = ?", (str(peer_id),))
        self._conn.commit()

    # ── Read operations ────────────────────────────────────────

    def get_addrs(self, peer_id: object) -> list[str]:
        rows = self._conn.execute(
            "SELECT multiaddr FROM peer_addrs WHERE peer_id = ? ORDER BY multiaddr",
            (str(peer_id),),
        ).fetchall()
        return [r[0] for r in rows]

    def get_tags(self, peer_id: object) -> dict[str, int]:
        """Live (unexpired) tags for a peer, as ``{name: value}``."""
        rows = self._conn.execute(
            """
            SELECT name, value FROM peer_tags
            WHERE peer_id = ? AND (expires_at IS NULL OR expires_at > ?)
            """,
            (str(peer_id), self._clock()),
        ).fetchall()
        return {r[0]: r[1] for r in rows}

    def tagged_peers(self, tag_name: str) -> list[str]:
        """Peer ids currently carrying a live *tag_name* tag."""
        rows = self._conn.execute(
            """
            SELECT t.peer_id FROM peer_tags t
            JOIN peers p ON p.peer_id = t.peer_id
            WHERE t.name = ? AND (t.expires_at IS NULL OR t.expires_at > ?)
            ORDER BY p.last_seen DESC
            """,
            (tag_name, self._clock()),
        ).fetchall()
        return [r[0] for r in rows]

    def count(self) -> int:
        """Total number of known peers."""
        row = self._conn.execute("SELECT COUNT(*) FROM peers").fetchone()
        return int(row[0]) if row else 0

    # ── Maintenance ────────────────────────────────────────────

    def prune_expired(self) -> int:
        """Delete expired tags.

        Returns:
            Number of tags removed.
        """
        cursor = self._conn.execute(
            "DELETE FROM peer_tags WHERE expires_at IS NOT NULL AND expires_at <= ?",
            (self._clock(),),
        )
        removed = cursor.rowcount
        if removed > 0:
            self._conn.commit()
            logger.info("peer_store_pruned", removed=removed)
        return removed
