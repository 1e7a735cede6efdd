"""Tests for SQLiteStore: transactions, constraints, registry, and readers."""

from __future__ import annotations

import asyncio
import sqlite3
from datetime import UTC, datetime

import pytest

from forgesync.config.models import StoreConfig
from forgesync.errors import IntegrityViolation, StoreError
from forgesync.interfaces import LanguageRegistry, PersistenceStore, RepositoryReader
from forgesync.store import DEFAULT_LANGUAGES, SQLiteStore


async def _create_repo(store: SQLiteStore, name="demo", owner="alice-id"):
    async with store.transaction() as session:
        return await session.create_repository(name, "a demo", owner)


# ---------------------------------------------------------------------------
# Protocol conformance
# ---------------------------------------------------------------------------


class TestProtocol:
    def test_satisfies_persistence_store(self, store):
        assert isinstance(store, PersistenceStore)
        assert isinstance(store, RepositoryReader)

    def test_satisfies_language_registry(self, store):
        assert isinstance(store, LanguageRegistry)


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestInit:
    def test_creates_parent_directory(self, tmp_path):
        db = tmp_path / "nested" / "dir" / "forgesync.db"
        SQLiteStore(db_path=str(db))
        assert db.exists()

    def test_from_config(self, tmp_path):
        cfg = StoreConfig(db_path=str(tmp_path / "x.db"), busy_timeout=1.5)
        s = SQLiteStore.from_config(cfg)
        assert s.busy_timeout == 1.5
        assert s.db_path.endswith("x.db")

    def test_reopen_existing_database(self, tmp_path):
        db = str(tmp_path / "f.db")
        SQLiteStore(db_path=db).seed_languages({"python": ["py"]})
        assert SQLiteStore(db_path=db).stats()["repositories"] == 0


# ---------------------------------------------------------------------------
# Language registry
# ---------------------------------------------------------------------------


class TestLanguages:
    async def test_seed_defaults(self, store):
        languages = await store.list_languages()
        assert {lang.name for lang in languages} == set(DEFAULT_LANGUAGES)

    async def test_seed_is_idempotent(self, store):
        store.seed_languages()
        assert len(await store.list_languages()) == len(DEFAULT_LANGUAGES)

    async def test_get_language_with_extensions(self, store):
        py = await store.get_language("python")
        assert py is not None
        assert py.extensions == ["py", "pyi"]

    async def test_get_unknown_language(self, store):
        assert await store.get_language("cobol") is None

    async def test_resolve_extension(self, store):
        py = await store.get_language("python")
        assert await store.resolve_extension("py") == py.id
        assert await store.resolve_extension("PY") == py.id

    async def test_resolve_unknown_extension(self, store):
        assert await store.resolve_extension("xyz") is None
        assert await store.resolve_extension("") is None

    async def test_seed_custom_mapping_strips_dots(self, tmp_path):
        s = SQLiteStore(db_path=str(tmp_path / "c.db"))
        s.seed_languages({"zig": [".ZIG"]})
        zig = await s.get_language("zig")
        assert zig.extensions == ["zig"]


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


class TestTransaction:
    async def test_commit_on_exit(self, store):
        repo = await _create_repo(store)
        found = await store.find_repository("demo", "alice-id")
        assert found == repo

    async def test_rollback_on_exception(self, store):
        with pytest.raises(RuntimeError):
            async with store.transaction() as session:
                await session.create_repository("demo", "", "alice-id")
                raise RuntimeError("abort")
        assert await store.find_repository("demo", "alice-id") is None

    async def test_session_rejects_writes_after_close(self, store):
        async with store.transaction() as session:
            pass
        with pytest.raises(StoreError, match="closed"):
            await session.create_repository("late", "", "alice-id")

    async def test_duplicate_repository_is_integrity_violation(self, store):
        await _create_repo(store)
        with pytest.raises(IntegrityViolation) as exc_info:
            await _create_repo(store)
        assert exc_info.value.entity == "repository"

    async def test_foreign_keys_enforced(self, store):
        with pytest.raises(IntegrityViolation) as exc_info:
            async with store.transaction() as session:
                await session.create_contributor("alice", 9999)
        assert exc_info.value.entity == "contributor"

    async def test_placeholder_file_has_null_size(self, store):
        async with store.transaction() as session:
            repo = await session.create_repository("demo", "", "alice-id")
            file = await session.create_file(
                name="util.py", size=None, path="old/util.py", repo_id=repo.id, language_id=None
            )
        assert file.is_placeholder
        (stored,) = await store.list_files(repo.id)
        assert stored.size is None
        assert stored.is_placeholder

    async def test_waits_for_writer_from_another_connection(self, tmp_path):
        s = SQLiteStore(db_path=str(tmp_path / "locked.db"), busy_timeout=0.1)
        blocker = sqlite3.connect(s.db_path, isolation_level=None)
        blocker.execute("BEGIN IMMEDIATE")

        async def release():
            await asyncio.sleep(0.4)
            blocker.execute("COMMIT")

        try:
            await asyncio.gather(release(), _create_repo(s))
        finally:
            blocker.close()
        assert await s.find_repository("demo", "alice-id") is not None

    async def test_sessions_outlasting_busy_timeout_queue(self, tmp_path):
        s = SQLiteStore(db_path=str(tmp_path / "slow.db"), busy_timeout=0.1)

        async def slow(owner):
            async with s.transaction() as session:
                await session.create_repository("demo", "", owner)
                await asyncio.sleep(0.3)

        await asyncio.gather(slow("alice-id"), slow("bob-id"))
        assert s.stats()["repositories"] == 2


# ---------------------------------------------------------------------------
# Readers
# ---------------------------------------------------------------------------


class TestReaders:
    async def test_full_graph_round_trip(self, store):
        py = await store.get_language("python")
        when = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
        async with store.transaction() as session:
            repo = await session.create_repository("demo", "", "alice-id")
            await session.add_repository_language(repo.id, py.id)
            alice = await session.create_contributor("alice", repo.id)
            main = await session.create_branch("main", "local", repo.id)
            commit = await session.create_commit(
                title="init",
                content="",
                hash="abc",
                author_id=alice.id,
                created_at=when,
                repo_id=repo.id,
            )
            await session.link_commit_branch(commit.id, main.id)
            file = await session.create_file(
                name="a.py", size=3, path="a.py", repo_id=repo.id, language_id=py.id
            )
            await session.create_modification(type="add", commit_id=commit.id, file_id=file.id)

        assert [lang.name for lang in await store.list_repository_languages(repo.id)] == ["python"]
        assert await store.list_contributors(repo.id) == [alice]
        assert await store.list_branches(repo.id) == [main]
        (stored_commit,) = await store.list_commits(repo.id)
        assert stored_commit.created_at == when
        (link,) = await store.list_commit_branches(repo.id)
        assert (link.commit, link.branch) == (commit.id, main.id)
        assert await store.list_files(repo.id) == [file]
        (mod,) = await store.list_modifications(repo.id)
        assert mod.file == file.id

    async def test_search_is_substring(self, store):
        await _create_repo(store, name="widget-api")
        await _create_repo(store, name="widget-ui", owner="bob-id")
        await _create_repo(store, name="other")
        names = [r.name for r in await store.search_repositories("widget")]
        assert names == ["widget-api", "widget-ui"]

    async def test_search_escapes_wildcards(self, store):
        await _create_repo(store, name="a_b")
        await _create_repo(store, name="axb")
        assert [r.name for r in await store.search_repositories("a_b")] == ["a_b"]

    async def test_list_for_owner(self, store):
        await _create_repo(store, name="one")
        await _create_repo(store, name="two")
        await _create_repo(store, name="three", owner="bob-id")
        names = [r.name for r in await store.list_repositories_for_owner("alice-id")]
        assert names == ["one", "two"]

    async def test_stats(self, store):
        await _create_repo(store)
        assert store.stats()["repositories"] == 1
        assert store.stats()["files"] == 0
