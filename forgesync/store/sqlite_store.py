"""PersistenceStore and LanguageRegistry backed by a local SQLite database."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import threading
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, closing
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from forgesync.config.models import StoreConfig
from forgesync.errors import IntegrityViolation, StoreError
from forgesync.store.models import (
    BranchRecord,
    CommitBranchRecord,
    CommitRecord,
    ContributorRecord,
    FileRecord,
    LanguageRecord,
    ModificationRecord,
    RepositoryRecord,
)

logger = logging.getLogger(__name__)

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS languages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE
);
CREATE TABLE IF NOT EXISTS language_extensions (
    extension TEXT PRIMARY KEY,
    language_id INTEGER NOT NULL REFERENCES languages(id) ON DELETE CASCADE
);
CREATE TABLE IF NOT EXISTS repositories (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    owner TEXT NOT NULL,
    created_at TEXT NOT NULL,
    UNIQUE (name, owner)
);
CREATE TABLE IF NOT EXISTS repository_languages (
    repo_id INTEGER NOT NULL REFERENCES repositories(id) ON DELETE CASCADE,
    language_id INTEGER NOT NULL REFERENCES languages(id),
    PRIMARY KEY (repo_id, language_id)
);
CREATE TABLE IF NOT EXISTS contributors (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    repo_id INTEGER NOT NULL REFERENCES repositories(id) ON DELETE CASCADE,
    UNIQUE (repo_id, name)
);
CREATE TABLE IF NOT EXISTS branches (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    type TEXT NOT NULL,
    repo_id INTEGER NOT NULL REFERENCES repositories(id) ON DELETE CASCADE,
    UNIQUE (repo_id, name, type)
);
CREATE TABLE IF NOT EXISTS commits (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    content TEXT NOT NULL DEFAULT '',
    hash TEXT NOT NULL,
    author_id INTEGER NOT NULL REFERENCES contributors(id) ON DELETE CASCADE,
    created_at TEXT NOT NULL,
    repo_id INTEGER NOT NULL REFERENCES repositories(id) ON DELETE CASCADE,
    UNIQUE (repo_id, hash)
);
CREATE TABLE IF NOT EXISTS commit_branches (
    commit_id INTEGER NOT NULL REFERENCES commits(id) ON DELETE CASCADE,
    branch_id INTEGER NOT NULL REFERENCES branches(id) ON DELETE CASCADE,
    PRIMARY KEY (commit_id, branch_id)
);
CREATE TABLE IF NOT EXISTS files (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    size INTEGER,
    path TEXT NOT NULL,
    repo_id INTEGER NOT NULL REFERENCES repositories(id) ON DELETE CASCADE,
    language_id INTEGER REFERENCES languages(id),
    UNIQUE (repo_id, path)
);
CREATE TABLE IF NOT EXISTS modifications (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    type TEXT NOT NULL,
    commit_id INTEGER NOT NULL REFERENCES commits(id) ON DELETE CASCADE,
    file_id INTEGER NOT NULL REFERENCES files(id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_repositories_owner ON repositories(owner);
CREATE INDEX IF NOT EXISTS idx_modifications_commit ON modifications(commit_id);
CREATE INDEX IF NOT EXISTS idx_modifications_file ON modifications(file_id);
"""

DEFAULT_LANGUAGES: dict[str, list[str]] = {
    "python": ["py", "pyi"],
    "javascript": ["js", "jsx", "mjs", "cjs"],
    "typescript": ["ts", "tsx"],
    "java": ["java"],
    "go": ["go"],
    "rust": ["rs"],
    "c": ["c", "h"],
    "cpp": ["cpp", "cc", "cxx", "hpp"],
    "csharp": ["cs"],
    "ruby": ["rb"],
    "php": ["php"],
    "swift": ["swift"],
    "kotlin": ["kt"],
    "scala": ["scala"],
    "html": ["html", "htm"],
    "css": ["css", "scss"],
    "shell": ["sh", "bash"],
    "markdown": ["md"],
}


_BEGIN_RETRY_DELAY = 0.05


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def _is_busy(error: sqlite3.OperationalError) -> bool:
    code = getattr(error, "sqlite_errorcode", None)
    if code is not None:
        return (code & 0xFF) in (sqlite3.SQLITE_BUSY, sqlite3.SQLITE_LOCKED)
    return "locked" in str(error)


class SQLiteSession:
    """One write transaction on a dedicated connection.

    Calls may arrive from several worker threads at once; the lock keeps
    statements on the connection serialized. After commit or rollback the
    session refuses further writes, so a straggling task cannot write
    outside the transaction.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._lock = threading.Lock()
        self._closed = False

    # -- helpers ---------------------------------------------------------------

    def _execute(self, operation: str, entity: str, sql: str, params: tuple) -> int:
        with self._lock:
            if self._closed:
                raise StoreError(operation, RuntimeError("session is closed"))
            try:
                cursor = self._conn.execute(sql, params)
            except sqlite3.IntegrityError as e:
                raise IntegrityViolation(entity, operation, e) from e
            except sqlite3.Error as e:
                raise StoreError(operation, e) from e
            return cursor.lastrowid

    async def _run(self, operation: str, entity: str, sql: str, params: tuple) -> int:
        return await asyncio.to_thread(self._execute, operation, entity, sql, params)

    def _begin(self) -> bool:
        """Open the write transaction. False while another writer holds the database."""
        with self._lock:
            try:
                self._conn.execute("BEGIN IMMEDIATE")
            except sqlite3.OperationalError as e:
                if _is_busy(e):
                    return False
                raise StoreError("begin", e) from e
            except sqlite3.Error as e:
                raise StoreError("begin", e) from e
        return True

    def _finish(self, commit: bool) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            try:
                self._conn.execute("COMMIT" if commit else "ROLLBACK")
            except sqlite3.Error as e:
                raise StoreError("commit" if commit else "rollback", e) from e

    # -- StoreSession protocol -------------------------------------------------

    async def create_repository(
        self, name: str, description: str, owner: str
    ) -> RepositoryRecord:
        created_at = _now_iso()
        row_id = await self._run(
            "create_repository",
            "repository",
            "INSERT INTO repositories (name, description, owner, created_at) VALUES (?, ?, ?, ?)",
            (name, description, owner, created_at),
        )
        return RepositoryRecord(
            id=row_id,
            name=name,
            description=description,
            owner=owner,
            created_at=datetime.fromisoformat(created_at),
        )

    async def add_repository_language(self, repo_id: int, language_id: int) -> None:
        await self._run(
            "add_repository_language",
            "repository_language",
            "INSERT INTO repository_languages (repo_id, language_id) VALUES (?, ?)",
            (repo_id, language_id),
        )

    async def create_contributor(self, name: str, repo_id: int) -> ContributorRecord:
        row_id = await self._run(
            "create_contributor",
            "contributor",
            "INSERT INTO contributors (name, repo_id) VALUES (?, ?)",
            (name, repo_id),
        )
        return ContributorRecord(id=row_id, name=name, repo=repo_id)

    async def create_branch(self, name: str, type: str, repo_id: int) -> BranchRecord:
        row_id = await self._run(
            "create_branch",
            "branch",
            "INSERT INTO branches (name, type, repo_id) VALUES (?, ?, ?)",
            (name, type, repo_id),
        )
        return BranchRecord(id=row_id, name=name, type=type, repo=repo_id)

    async def create_commit(
        self,
        *,
        title: str,
        content: str,
        hash: str,
        author_id: int,
        created_at: datetime,
        repo_id: int,
    ) -> CommitRecord:
        row_id = await self._run(
            "create_commit",
            "commit",
            "INSERT INTO commits (title, content, hash, author_id, created_at, repo_id) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (title, content, hash, author_id, created_at.isoformat(), repo_id),
        )
        return CommitRecord(
            id=row_id,
            title=title,
            content=content,
            hash=hash,
            author=author_id,
            created_at=created_at,
            repo=repo_id,
        )

    async def link_commit_branch(self, commit_id: int, branch_id: int) -> None:
        await self._run(
            "link_commit_branch",
            "commit_branch",
            "INSERT INTO commit_branches (commit_id, branch_id) VALUES (?, ?)",
            (commit_id, branch_id),
        )

    async def create_file(
        self,
        *,
        name: str,
        size: int | None,
        path: str,
        repo_id: int,
        language_id: int | None,
    ) -> FileRecord:
        row_id = await self._run(
            "create_file",
            "file",
            "INSERT INTO files (name, size, path, repo_id, language_id) VALUES (?, ?, ?, ?, ?)",
            (name, size, path, repo_id, language_id),
        )
        return FileRecord(
            id=row_id, name=name, size=size, path=path, repo=repo_id, language=language_id
        )

    async def create_modification(
        self, *, type: str, commit_id: int, file_id: int
    ) -> ModificationRecord:
        row_id = await self._run(
            "create_modification",
            "modification",
            "INSERT INTO modifications (type, commit_id, file_id) VALUES (?, ?, ?)",
            (type, commit_id, file_id),
        )
        return ModificationRecord(id=row_id, type=type, commit=commit_id, file=file_id)


class SQLiteStore:
    """SQLite implementation of PersistenceStore and LanguageRegistry.

    Every write session gets its own connection and runs inside
    ``BEGIN IMMEDIATE``, so two ingestions never interleave their writes and
    the (name, owner) unique constraint decides which of two concurrent
    attempts wins. Write sessions from this store queue on an asyncio lock;
    a writer from another process is waited out by retrying ``BEGIN``, so
    ``busy_timeout`` only bounds each attempt, never the whole wait.
    """

    def __init__(self, db_path: str = ".forgesync/forgesync.db", busy_timeout: float = 5.0) -> None:
        path = Path(db_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        self.db_path = str(path)
        self.busy_timeout = busy_timeout
        self._write_lock = asyncio.Lock()
        with closing(self._connect()) as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript(_SCHEMA)

    @classmethod
    def from_config(cls, config: StoreConfig) -> SQLiteStore:
        return cls(db_path=config.db_path, busy_timeout=config.busy_timeout)

    # -- helpers ---------------------------------------------------------------

    def _connect(self) -> sqlite3.Connection:
        # isolation_level=None => autocommit mode, giving us manual
        # transaction control for the ingestion scope.
        conn = sqlite3.connect(
            self.db_path,
            isolation_level=None,
            timeout=self.busy_timeout,
            check_same_thread=False,
        )
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    def _fetch(self, sql: str, params: tuple = ()) -> list[tuple]:
        with closing(self._connect()) as conn:
            try:
                return conn.execute(sql, params).fetchall()
            except sqlite3.Error as e:
                raise StoreError("query", e) from e

    async def _query(self, sql: str, params: tuple = ()) -> list[tuple]:
        return await asyncio.to_thread(self._fetch, sql, params)

    @staticmethod
    def _row_to_repository(row: tuple) -> RepositoryRecord:
        id_, name, description, owner, created_at = row
        return RepositoryRecord(
            id=id_,
            name=name,
            description=description,
            owner=owner,
            created_at=datetime.fromisoformat(created_at),
        )

    # -- transactions ----------------------------------------------------------

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[SQLiteSession]:
        """Yield a write session; commit on normal exit, roll back on any exception.

        Waits for as long as other writers hold the database.
        """
        async with self._write_lock:
            conn = await asyncio.to_thread(self._connect)
            session = SQLiteSession(conn)
            try:
                while not await asyncio.to_thread(session._begin):
                    logger.debug("%s is locked by another writer, retrying", self.db_path)
                    await asyncio.sleep(_BEGIN_RETRY_DELAY)
                try:
                    yield session
                except BaseException:
                    try:
                        await asyncio.to_thread(session._finish, False)
                    except StoreError:
                        logger.exception("Rollback failed on %s", self.db_path)
                    else:
                        logger.debug("Rolled back transaction on %s", self.db_path)
                    raise
                await asyncio.to_thread(session._finish, True)
            finally:
                conn.close()

    # -- LanguageRegistry protocol ---------------------------------------------

    def seed_languages(self, mapping: dict[str, list[str]] | None = None) -> int:
        """Insert languages and their extensions. Existing entries are kept."""
        mapping = DEFAULT_LANGUAGES if mapping is None else mapping
        with closing(self._connect()) as conn:
            cursor = conn.cursor()
            try:
                cursor.execute("BEGIN IMMEDIATE")
                for name, extensions in mapping.items():
                    cursor.execute("INSERT OR IGNORE INTO languages (name) VALUES (?)", (name,))
                    (language_id,) = cursor.execute(
                        "SELECT id FROM languages WHERE name = ?", (name,)
                    ).fetchone()
                    for ext in extensions:
                        cursor.execute(
                            "INSERT OR IGNORE INTO language_extensions (extension, language_id) "
                            "VALUES (?, ?)",
                            (ext.lstrip(".").lower(), language_id),
                        )
                cursor.execute("COMMIT")
            except sqlite3.Error as e:
                conn.rollback()
                raise StoreError("seed_languages", e) from e
        return len(mapping)

    async def get_language(self, name: str) -> LanguageRecord | None:
        rows = await self._query(
            "SELECT l.id, l.name, e.extension FROM languages l "
            "LEFT JOIN language_extensions e ON e.language_id = l.id "
            "WHERE l.name = ? ORDER BY e.extension",
            (name,),
        )
        if not rows:
            return None
        extensions = [ext for _, _, ext in rows if ext is not None]
        return LanguageRecord(id=rows[0][0], name=rows[0][1], extensions=extensions)

    async def resolve_extension(self, extension: str) -> int | None:
        if not extension:
            return None
        rows = await self._query(
            "SELECT language_id FROM language_extensions WHERE extension = ?",
            (extension.lower(),),
        )
        return rows[0][0] if rows else None

    async def list_languages(self) -> list[LanguageRecord]:
        rows = await self._query(
            "SELECT l.id, l.name, e.extension FROM languages l "
            "LEFT JOIN language_extensions e ON e.language_id = l.id "
            "ORDER BY l.name, e.extension"
        )
        by_id: dict[int, dict[str, Any]] = {}
        for id_, name, ext in rows:
            entry = by_id.setdefault(id_, {"id": id_, "name": name, "extensions": []})
            if ext is not None:
                entry["extensions"].append(ext)
        return [LanguageRecord(**entry) for entry in by_id.values()]

    # -- RepositoryReader protocol ---------------------------------------------

    async def find_repository(self, name: str, owner: str) -> RepositoryRecord | None:
        rows = await self._query(
            "SELECT id, name, description, owner, created_at FROM repositories "
            "WHERE name = ? AND owner = ?",
            (name, owner),
        )
        return self._row_to_repository(rows[0]) if rows else None

    async def search_repositories(self, term: str) -> list[RepositoryRecord]:
        escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        rows = await self._query(
            "SELECT id, name, description, owner, created_at FROM repositories "
            "WHERE name LIKE ? ESCAPE '\\' ORDER BY name, owner",
            (f"%{escaped}%",),
        )
        return [self._row_to_repository(r) for r in rows]

    async def list_repositories_for_owner(self, owner: str) -> list[RepositoryRecord]:
        rows = await self._query(
            "SELECT id, name, description, owner, created_at FROM repositories "
            "WHERE owner = ? ORDER BY created_at ASC, id ASC",
            (owner,),
        )
        return [self._row_to_repository(r) for r in rows]

    async def list_repository_languages(self, repo_id: int) -> list[LanguageRecord]:
        rows = await self._query(
            "SELECT l.id, l.name FROM repository_languages rl "
            "JOIN languages l ON l.id = rl.language_id WHERE rl.repo_id = ? ORDER BY l.name",
            (repo_id,),
        )
        return [LanguageRecord(id=id_, name=name) for id_, name in rows]

    async def list_contributors(self, repo_id: int) -> list[ContributorRecord]:
        rows = await self._query(
            "SELECT id, name, repo_id FROM contributors WHERE repo_id = ? ORDER BY id",
            (repo_id,),
        )
        return [ContributorRecord(id=i, name=n, repo=r) for i, n, r in rows]

    async def list_branches(self, repo_id: int) -> list[BranchRecord]:
        rows = await self._query(
            "SELECT id, name, type, repo_id FROM branches WHERE repo_id = ? ORDER BY id",
            (repo_id,),
        )
        return [BranchRecord(id=i, name=n, type=t, repo=r) for i, n, t, r in rows]

    async def list_commits(self, repo_id: int) -> list[CommitRecord]:
        rows = await self._query(
            "SELECT id, title, content, hash, author_id, created_at, repo_id "
            "FROM commits WHERE repo_id = ? ORDER BY id",
            (repo_id,),
        )
        return [
            CommitRecord(
                id=id_,
                title=title,
                content=content,
                hash=hash_,
                author=author,
                created_at=datetime.fromisoformat(created_at),
                repo=repo,
            )
            for id_, title, content, hash_, author, created_at, repo in rows
        ]

    async def list_commit_branches(self, repo_id: int) -> list[CommitBranchRecord]:
        rows = await self._query(
            "SELECT cb.commit_id, cb.branch_id FROM commit_branches cb "
            "JOIN commits c ON c.id = cb.commit_id WHERE c.repo_id = ? "
            "ORDER BY cb.commit_id, cb.branch_id",
            (repo_id,),
        )
        return [CommitBranchRecord(commit=c, branch=b) for c, b in rows]

    async def list_files(self, repo_id: int) -> list[FileRecord]:
        rows = await self._query(
            "SELECT id, name, size, path, repo_id, language_id FROM files "
            "WHERE repo_id = ? ORDER BY path",
            (repo_id,),
        )
        return [
            FileRecord(id=i, name=n, size=s, path=p, repo=r, language=lang)
            for i, n, s, p, r, lang in rows
        ]

    async def list_modifications(self, repo_id: int) -> list[ModificationRecord]:
        rows = await self._query(
            "SELECT m.id, m.type, m.commit_id, m.file_id FROM modifications m "
            "JOIN commits c ON c.id = m.commit_id WHERE c.repo_id = ? ORDER BY m.id",
            (repo_id,),
        )
        return [ModificationRecord(id=i, type=t, commit=c, file=f) for i, t, c, f in rows]

    # -- extras ----------------------------------------------------------------

    def stats(self) -> dict[str, int]:
        """Row counts per table."""
        tables = (
            "repositories",
            "repository_languages",
            "contributors",
            "branches",
            "commits",
            "commit_branches",
            "files",
            "modifications",
        )
        counts: dict[str, int] = {}
        with closing(self._connect()) as conn:
            for table in tables:
                (counts[table],) = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()
        return counts
