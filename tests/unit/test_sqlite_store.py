"""Unit tests for SQLiteStructuredStore: filters, JSON columns, cascades."""

from __future__ import annotations

import pytest
import pytest_asyncio

from docingest.interfaces.structured_store import Filter, OrderBy, like_escape
from docingest.providers.store.sqlite_store import SQLiteStructuredStore
from docingest.utils.errors import StorageError


def _doc(doc_id: str, **overrides) -> dict:
    row = {
        "id": doc_id,
        "title": f"Doc {doc_id}",
        "content": "body",
        "user_id": "u1",
        "team_id": "t1",
        "department": "sales",
        "is_private": False,
        "metadata": {"source": "upload", "tags": ["a"]},
        "created_at": f"2024-01-0{doc_id[-1]}T00:00:00+00:00",
        "updated_at": f"2024-01-0{doc_id[-1]}T00:00:00+00:00",
    }
    row.update(overrides)
    return row


def _chunk(chunk_id: str, doc_id: str, index: int, content: str = "text") -> dict:
    return {
        "id": chunk_id,
        "document_id": doc_id,
        "chunk_index": index,
        "content": content,
        "embedding": [0.1, 0.2],
        "metadata": {"chunk_index": index},
        "user_id": "u1",
        "is_private": False,
    }


@pytest_asyncio.fixture
async def seeded(sqlite_store: SQLiteStructuredStore) -> SQLiteStructuredStore:
    await sqlite_store.insert(
        "documents",
        [
            _doc("d1"),
            _doc("d2", user_id="u2", is_private=True, metadata={"source": "email"}),
            _doc("d3", user_id="u3", team_id=None, department="ops"),
        ],
    )
    return sqlite_store


class TestInsertSelect:
    @pytest.mark.asyncio
    async def test_round_trips_json_and_bool(self, sqlite_store: SQLiteStructuredStore) -> None:
        await sqlite_store.insert("documents", [_doc("d1")])
        await sqlite_store.insert("document_chunks", [_chunk("c1", "d1", 0)])

        doc = (await sqlite_store.select("documents"))[0]
        assert doc["metadata"] == {"source": "upload", "tags": ["a"]}
        assert doc["is_private"] is False
        chunk = (await sqlite_store.select("document_chunks"))[0]
        assert chunk["embedding"] == [0.1, 0.2]

    @pytest.mark.asyncio
    async def test_empty_insert_is_noop(self, sqlite_store: SQLiteStructuredStore) -> None:
        assert await sqlite_store.insert("documents", []) == []

    @pytest.mark.asyncio
    async def test_unknown_column_rejected(self, sqlite_store: SQLiteStructuredStore) -> None:
        with pytest.raises(StorageError, match="Unknown column"):
            await sqlite_store.insert("documents", [{**_doc("d1"), "evil; DROP": 1}])

    @pytest.mark.asyncio
    async def test_unknown_table_rejected(self, sqlite_store: SQLiteStructuredStore) -> None:
        with pytest.raises(StorageError, match="Unknown table"):
            await sqlite_store.select("users")

    @pytest.mark.asyncio
    async def test_orphan_chunk_violates_foreign_key(
        self, sqlite_store: SQLiteStructuredStore
    ) -> None:
        with pytest.raises(StorageError) as exc_info:
            await sqlite_store.insert("document_chunks", [_chunk("c1", "missing", 0)])
        assert exc_info.value.__cause__ is not None

    @pytest.mark.asyncio
    async def test_duplicate_chunk_index_rejected(
        self, sqlite_store: SQLiteStructuredStore
    ) -> None:
        await sqlite_store.insert("documents", [_doc("d1")])
        with pytest.raises(StorageError):
            await sqlite_store.insert(
                "document_chunks", [_chunk("c1", "d1", 0), _chunk("c2", "d1", 0)]
            )
        assert await sqlite_store.select("document_chunks") == []


class TestFilters:
    @pytest.mark.asyncio
    async def test_eq_neq(self, seeded: SQLiteStructuredStore) -> None:
        rows = await seeded.select("documents", [Filter(column="user_id", value="u1")])
        assert [r["id"] for r in rows] == ["d1"]
        rows = await seeded.select("documents", [Filter(column="team_id", op="neq", value="t1")])
        assert [r["id"] for r in rows] == ["d3"]

    @pytest.mark.asyncio
    async def test_eq_none_matches_null(self, seeded: SQLiteStructuredStore) -> None:
        rows = await seeded.select("documents", [Filter(column="team_id", value=None)])
        assert [r["id"] for r in rows] == ["d3"]

    @pytest.mark.asyncio
    async def test_bool_filter(self, seeded: SQLiteStructuredStore) -> None:
        rows = await seeded.select("documents", [Filter(column="is_private", value=True)])
        assert [r["id"] for r in rows] == ["d2"]

    @pytest.mark.asyncio
    async def test_ilike_escaped_wildcards_match_literally(
        self, sqlite_store: SQLiteStructuredStore
    ) -> None:
        await sqlite_store.insert(
            "documents",
            [
                _doc("p1", title="50% off"),
                _doc("p2", title="50 dollars off"),
                _doc("u1", title="a_b plan"),
                _doc("u2", title="axb plan"),
            ],
        )
        percent = f"%{like_escape('50%')}%"
        underscore = f"%{like_escape('A_B')}%"
        rows = await sqlite_store.select(
            "documents", [Filter(column="title", op="ilike", value=percent)]
        )
        assert [r["id"] for r in rows] == ["p1"]
        rows = await sqlite_store.select(
            "documents", [Filter(column="title", op="ilike", value=underscore)]
        )
        assert [r["id"] for r in rows] == ["u1"]
        assert like_escape("c:\\tmp") == "c:\\\\tmp"

    @pytest.mark.asyncio
    async def test_comparison_and_order(self, seeded: SQLiteStructuredStore) -> None:
        rows = await seeded.select(
            "documents",
            [Filter(column="created_at", op="gte", value="2024-01-02")],
            order_by=[OrderBy(column="created_at", descending=True)],
        )
        assert [r["id"] for r in rows] == ["d3", "d2"]

    @pytest.mark.asyncio
    async def test_in_and_empty_in(self, seeded: SQLiteStructuredStore) -> None:
        rows = await seeded.select("documents", [Filter(column="id", op="in", value=["d1", "d3"])])
        assert sorted(r["id"] for r in rows) == ["d1", "d3"]
        assert await seeded.select("documents", [Filter(column="id", op="in", value=[])]) == []

    @pytest.mark.asyncio
    async def test_ilike_case_insensitive(self, seeded: SQLiteStructuredStore) -> None:
        rows = await seeded.select("documents", [Filter(column="title", op="ilike", value="%doc D2%")])
        assert [r["id"] for r in rows] == ["d2"]

    @pytest.mark.asyncio
    async def test_contains_on_metadata(self, seeded: SQLiteStructuredStore) -> None:
        rows = await seeded.select(
            "documents", [Filter(column="metadata", op="contains", value={"source": "email"})]
        )
        assert [r["id"] for r in rows] == ["d2"]
        rows = await seeded.select(
            "documents", [Filter(column="metadata", op="contains", value={"tags": ["a"]})]
        )
        assert sorted(r["id"] for r in rows) == ["d1", "d3"]

    @pytest.mark.asyncio
    async def test_contains_needs_json_column(self, seeded: SQLiteStructuredStore) -> None:
        with pytest.raises(StorageError):
            await seeded.select("documents", [Filter(column="title", op="contains", value={"a": 1})])

    @pytest.mark.asyncio
    async def test_any_of_groups(self, seeded: SQLiteStructuredStore) -> None:
        rows = await seeded.select(
            "documents",
            any_of=[
                [Filter(column="user_id", value="u1")],
                [Filter(column="department", value="ops"), Filter(column="is_private", value=False)],
            ],
            order_by=[OrderBy(column="id")],
        )
        assert [r["id"] for r in rows] == ["d1", "d3"]

    @pytest.mark.asyncio
    async def test_limit(self, seeded: SQLiteStructuredStore) -> None:
        rows = await seeded.select("documents", order_by=[OrderBy(column="id")], limit=2)
        assert [r["id"] for r in rows] == ["d1", "d2"]


class TestUpdateDelete:
    @pytest.mark.asyncio
    async def test_update_counts_rows(self, seeded: SQLiteStructuredStore) -> None:
        count = await seeded.update(
            "documents",
            {"title": "Renamed", "metadata": {"source": "api"}},
            [Filter(column="id", value="d1")],
        )
        assert count == 1
        row = (await seeded.select("documents", [Filter(column="id", value="d1")]))[0]
        assert row["title"] == "Renamed"
        assert row["metadata"] == {"source": "api"}

    @pytest.mark.asyncio
    async def test_delete_cascades_to_chunks(self, seeded: SQLiteStructuredStore) -> None:
        await seeded.insert(
            "document_chunks", [_chunk("c1", "d1", 0), _chunk("c2", "d1", 1)]
        )
        deleted = await seeded.delete("documents", [Filter(column="id", value="d1")])
        assert deleted == 1
        assert await seeded.select("document_chunks") == []
