"""SQLite-backed store for chat sessions and their ordered turns."""

from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager
from pathlib import Path

import aiosqlite
import structlog

from perplexity_mcp.errors import StorageError
from perplexity_mcp.events.bus import EventBus, ServerEvent
from perplexity_mcp.models.config import StoreConfig
from perplexity_mcp.models.conversation import ROLES, Turn


def _now_ms() -> int:
    return int(time.time() * 1000)


class Session:
    """Thin data class for chat rows (not Pydantic, reads stay cheap)."""

    __slots__ = ("created_at", "id")

    def __init__(self, id: str, created_at: int) -> None:
        self.id = id
        self.created_at = created_at

    def __repr__(self) -> str:
        return f"Session(id={self.id!r}, created_at={self.created_at})"


class SessionStore:
    """
    Durable owner of chat sessions and their turns.

    Sessions are created idempotently; turns are append-only and receive a
    store-assigned ``id`` and ``created_at``. Within one session a turn's
    ``created_at`` is never lower than that of any earlier turn, and ties are
    broken by ``id``, so ``list_turns()`` always replays in append order.

    The store owns one connection. Writes from concurrent tasks are serialised
    by a single lock and each runs as one transaction, so they never interleave
    or fail with ``database is locked``. Any ``aiosqlite.Error`` surfaces as
    :class:`StorageError`.

    Usage::

        async with SessionStore(StoreConfig(db_path="/tmp/chats.db")) as store:
            await store.append_turn("s1", "user", "hello")
            turns = await store.list_turns("s1")
    """

    def __init__(self, config: StoreConfig, event_bus: EventBus | None = None) -> None:
        self._config = config
        self._db_path = Path(config.db_path).expanduser()
        self._event_bus = event_bus
        self._conn: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()
        self._logger = structlog.get_logger("perplexity_mcp.store")

    @property
    def db_path(self) -> Path:
        return self._db_path

    async def initialize(self) -> None:
        """
        Open the database and apply the schema. A no-op when already open.

        Raises:
            StorageError: If the database cannot be opened or the schema fails.
        """
        if self._conn is not None:
            return
        with self._translate_errors("initialize"):
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = await aiosqlite.connect(
                str(self._db_path), timeout=self._config.connection_timeout
            )
            try:
                conn.row_factory = aiosqlite.Row
                if self._config.wal_mode:
                    await conn.execute("PRAGMA journal_mode=WAL")
                await conn.execute("PRAGMA foreign_keys=ON")
                await conn.execute("PRAGMA synchronous=NORMAL")
                schema = (Path(__file__).parent / "schema.sql").read_text()
                await conn.executescript(schema)
                await conn.commit()
            except aiosqlite.Error:
                await conn.close()
                raise

        self._conn = conn
        self._logger.info("store_initialized", db_path=str(self._db_path))

    async def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        if self._conn is None:
            return
        conn, self._conn = self._conn, None
        await conn.close()
        self._logger.debug("store_closed", db_path=str(self._db_path))

    async def __aenter__(self) -> SessionStore:
        await self.initialize()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    # ── Sessions ───────────────────────────────────────────────────────────────

    async def create_session(self, session_id: str) -> Session:
        """
        Insert a session row unless one with this id already exists.

        Creating an existing session is a no-op; the original row (and its
        ``created_at``) is returned unchanged.
        """
        _require_id(session_id)
        async with self._transaction("create_session") as conn:
            cursor = await conn.execute(
                "INSERT OR IGNORE INTO chats (id, created_at) VALUES (?, ?)",
                (session_id, _now_ms()),
            )
            inserted = cursor.rowcount == 1
            session = await self._fetch_session(conn, session_id)
            if session is None:
                raise StorageError(f"create_session failed: chat {session_id!r} not readable")

        if inserted:
            self._logger.debug("session_created", session_id=session_id)
        return session

    async def get_session(self, session_id: str) -> Session | None:
        """Fetch a session by id, or ``None`` if it does not exist."""
        conn = self._conn_or_raise()
        with self._translate_errors("get_session"):
            return await self._fetch_session(conn, session_id)

    # ── Turns ──────────────────────────────────────────────────────────────────

    async def append_turn(self, session_id: str, role: str, content: str) -> Turn:
        """
        Persist one turn and return it with its assigned id and timestamp.

        Creates the session first when it does not exist yet. That path is
        reported with a ``session_implicitly_created`` warning and a
        ``SESSION_IMPLICITLY_CREATED`` event, since normal callers create the
        session explicitly.

        Raises:
            ValueError: If *role* is not ``user``/``assistant`` or *content* is empty.
            StorageError: If the write fails.
        """
        _require_id(session_id)
        if role not in ROLES:
            raise ValueError(f"role must be one of {sorted(ROLES)}, got {role!r}")
        if not content:
            raise ValueError("turn content must be non-empty")

        async with self._transaction("append_turn") as conn:
            now = _now_ms()
            cursor = await conn.execute(
                "INSERT OR IGNORE INTO chats (id, created_at) VALUES (?, ?)",
                (session_id, now),
            )
            implicit = cursor.rowcount == 1

            async with conn.execute(
                "SELECT COALESCE(MAX(created_at), 0) FROM messages WHERE chat_id = ?",
                (session_id,),
            ) as cur:
                row = await cur.fetchone()
            created_at = max(now, row[0] if row else 0)

            cursor = await conn.execute(
                "INSERT INTO messages (chat_id, role, content, created_at) VALUES (?, ?, ?, ?)",
                (session_id, role, content, created_at),
            )
            turn_id = cursor.lastrowid
            if turn_id is None:
                raise StorageError("append_turn failed: no row id assigned")

        if implicit:
            self._logger.warning("session_implicitly_created", session_id=session_id)
            if self._event_bus is not None:
                self._event_bus.publish(
                    ServerEvent.SESSION_IMPLICITLY_CREATED, {"session_id": session_id}
                )

        turn = Turn(
            id=turn_id,
            session_id=session_id,
            role=role,  # type: ignore[arg-type]
            content=content,
            created_at=created_at,
        )
        self._logger.debug("turn_appended", session_id=session_id, turn_id=turn_id, role=role)
        return turn

    async def list_turns(self, session_id: str) -> list[Turn]:
        """
        Return every turn of a session in replay order.

        Unknown sessions yield an empty list.
        """
        conn = self._conn_or_raise()
        with self._translate_errors("list_turns"):
            async with conn.execute(
                """
                SELECT id, chat_id, role, content, created_at
                FROM messages
                WHERE chat_id = ?
                ORDER BY created_at ASC, id ASC
                """,
                (session_id,),
            ) as cursor:
                rows = await cursor.fetchall()
        return [
            Turn(
                id=r["id"],
                session_id=r["chat_id"],
                role=r["role"],
                content=r["content"],
                created_at=r["created_at"],
            )
            for r in rows
        ]

    async def count_turns(self, session_id: str) -> int:
        """Number of turns stored for a session (0 for unknown sessions)."""
        conn = self._conn_or_raise()
        with self._translate_errors("count_turns"):
            async with conn.execute(
                "SELECT COUNT(*) FROM messages WHERE chat_id = ?", (session_id,)
            ) as cursor:
                row = await cursor.fetchone()
        return int(row[0]) if row else 0

    # ── Internals ──────────────────────────────────────────────────────────────

    def _conn_or_raise(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise StorageError("Store is not initialized. Call initialize() first.")
        return self._conn

    @staticmethod
    async def _fetch_session(conn: aiosqlite.Connection, session_id: str) -> Session | None:
        async with conn.execute(
            "SELECT id, created_at FROM chats WHERE id = ?", (session_id,)
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None
        return Session(id=row["id"], created_at=row["created_at"])

    @contextmanager
    def _translate_errors(self, operation: str) -> Iterator[None]:
        try:
            yield
        except aiosqlite.Error as exc:
            self._logger.error("storage_error", operation=operation, error=str(exc))
            raise StorageError(f"{operation} failed: {exc}") from exc

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[aiosqlite.Connection]:
        """Serialise a write under the write lock; commit on success, roll back otherwise."""
        conn = self._conn_or_raise()
        async with self._write_lock:
            try:
                yield conn
                await conn.commit()
            except aiosqlite.Error as exc:
                await self._rollback(conn)
                self._logger.error("storage_error", operation=operation, error=str(exc))
                raise StorageError(f"{operation} failed: {exc}") from exc
            except BaseException:
                await self._rollback(conn)
                raise

    async def _rollback(self, conn: aiosqlite.Connection) -> None:
        try:
            await conn.rollback()
        except aiosqlite.Error as exc:
            self._logger.warning("rollback_failed", error=str(exc))


def _require_id(session_id: str) -> None:
    if not isinstance(session_id, str) or not session_id:
        raise ValueError("session id must be a non-empty string")
