"""Unit tests for the docingest CLI: argument parsing and command handlers."""

from __future__ import annotations

from pathlib import Path

import pytest

from docingest.cli.ingest import _build_parser, _handle_delete, _handle_ingest, _handle_search
from docingest.models.document import Scope
from docingest.services.ingestion.document_processor import DocumentProcessor


class TestParser:
    def test_ingest_arguments(self) -> None:
        args = _build_parser().parse_args(
            ["ingest", "a.pdf", "b.md", "--user-id", "u1", "--team-id", "t1", "--private"]
        )
        assert args.command == "ingest"
        assert args.paths == ["a.pdf", "b.md"]
        assert args.user_id == "u1"
        assert args.team_id == "t1"
        assert args.private is True
        assert args.department is None

    def test_search_arguments(self) -> None:
        args = _build_parser().parse_args(
            ["search", "renewal date", "--user-id", "u1", "--threshold", "0.5", "--limit", "3"]
        )
        assert args.query == "renewal date"
        assert args.threshold == 0.5
        assert args.limit == 3
        assert args.text is False

    def test_user_id_required(self) -> None:
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["search", "q"])

    def test_no_command(self) -> None:
        assert _build_parser().parse_args([]).command is None


class TestHandlers:
    @pytest.mark.asyncio
    async def test_ingest_search_delete(
        self,
        processor: DocumentProcessor,
        tmp_path: Path,
        sample_text: str,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        source = tmp_path / "contract.txt"
        source.write_text(sample_text, encoding="utf-8")
        parser = _build_parser()

        code = await _handle_ingest(
            parser.parse_args(["ingest", str(source), "--user-id", "user-1"]), processor
        )
        assert code == 0
        assert "1/1 file(s) ingested" in capsys.readouterr().out

        code = await _handle_search(
            parser.parse_args(["search", "invoices monthly", "--user-id", "user-1", "--text"]),
            processor,
        )
        out = capsys.readouterr().out
        assert code == 0
        assert "contract" in out

        scope = Scope(user_id="user-1")
        documents = await processor.list_documents(scope)
        assert len(documents) == 1
        code = await _handle_delete(parser.parse_args(["delete", documents[0].id]), processor)
        assert code == 0
        assert await processor.list_documents(scope) == []

    @pytest.mark.asyncio
    async def test_ingest_reports_failures(
        self,
        processor: DocumentProcessor,
        tmp_path: Path,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        empty = tmp_path / "blank.txt"
        empty.write_text("   ", encoding="utf-8")
        args = _build_parser().parse_args(
            ["ingest", str(empty), str(tmp_path / "missing.txt"), "--user-id", "user-1"]
        )

        assert await _handle_ingest(args, processor) == 1
        err = capsys.readouterr().err
        assert "Failed blank.txt" in err
        assert "not a file" in err
        assert processor.file_store is not None
        assert list((tmp_path / "files").rglob("blank.txt")) == []

    @pytest.mark.asyncio
    async def test_delete_unknown(
        self, processor: DocumentProcessor, capsys: pytest.CaptureFixture[str]
    ) -> None:
        args = _build_parser().parse_args(["delete", "nope"])
        assert await _handle_delete(args, processor) == 1
        assert "not found" in capsys.readouterr().err
