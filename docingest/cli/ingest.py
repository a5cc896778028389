# =============================================================================
# docingest/cli/ingest.py: CLI for the document ingestion pipeline
# =============================================================================
#
# Each subcommand builds the full DocumentProcessor through
# build_document_processor() and calls one of its public operations.
#
# Ingestion of a local file:
#   1. Upload the bytes to the file store under <user_id>/<uuid>/<filename>
#   2. process_file(): validate, extract text, chunk, embed, persist
#   3. On failure the uploaded copy is removed again
#
# Usage examples:
#   python -m docingest ingest report.pdf notes.md --user-id u1 --team-id t1
#   python -m docingest search "quarterly revenue" --user-id u1 --limit 3
#   python -m docingest search "invoice" --user-id u1 --text
#   python -m docingest list --user-id u1
#   python -m docingest delete 3f0c9c8e-...
# =============================================================================

"""Command-line interface for ingesting, searching and deleting documents.

Usage::

    python -m docingest ingest /path/to/report.pdf --user-id u1 --private

    python -m docingest search "pricing policy" --user-id u1 --threshold 0.6

    python -m docingest delete <document-id>

Provider API keys and paths come from the environment / ``.env`` file.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import uuid
from pathlib import Path

from docingest.config.settings import Settings
from docingest.models.document import Scope
from docingest.services.ingestion.document_processor import DocumentProcessor
from docingest.utils.errors import DocIngestError
from docingest.utils.logging import configure_logging


def _scope_from_args(args: argparse.Namespace) -> Scope:
    return Scope(user_id=args.user_id, team_id=args.team_id, department=args.department)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


async def _handle_ingest(args: argparse.Namespace, processor: DocumentProcessor) -> int:
    """Upload and ingest every path; return 1 if any file failed."""
    scope = _scope_from_args(args)
    file_store = processor.file_store
    if file_store is None:
        print("Error: no file store configured", file=sys.stderr)
        return 1

    paths = [Path(p) for p in args.paths]
    failures = 0
    for path in paths:
        if not path.is_file():
            print(f"Skipping {path}: not a file", file=sys.stderr)
            failures += 1
            continue

        stored_path = f"{scope.user_id}/{uuid.uuid4().hex}/{path.name}"
        reference = await file_store.upload(
            stored_path, path.read_bytes(), {"filename": path.name}
        )
        try:
            document = await processor.process_file(
                reference,
                None,
                scope,
                is_private=args.private,
                title=args.title if len(paths) == 1 else None,
            )
        except DocIngestError as exc:
            await file_store.remove(stored_path)
            print(f"Failed {path.name}: {exc}", file=sys.stderr)
            failures += 1
            continue

        print(
            f"Ingested {path.name} -> {document.id} "
            f"({document.metadata.get('chunk_count', 0)} chunks)"
        )

    print(f"\n{len(paths) - failures}/{len(paths)} file(s) ingested")
    return 1 if failures else 0


async def _handle_search(args: argparse.Namespace, processor: DocumentProcessor) -> int:
    """Print matching chunks, best first."""
    scope = _scope_from_args(args)
    if args.text:
        matches = await processor.search_text(
            args.query, scope, threshold=args.threshold or 0.0, limit=args.limit
        )
    else:
        matches = await processor.search_documents(
            args.query, scope, threshold=args.threshold, limit=args.limit
        )

    if not matches:
        print("No matches.")
        return 0

    for rank, match in enumerate(matches, start=1):
        preview = match.chunk.content[:160].replace("\n", " ")
        print(
            f"{rank:>2}. [{match.method} {match.score:.3f}] "
            f"{match.document_title} (chunk {match.chunk.chunk_index})"
        )
        print(f"    {preview}")
    return 0


async def _handle_list(args: argparse.Namespace, processor: DocumentProcessor) -> int:
    documents = await processor.list_documents(_scope_from_args(args), owned_only=args.mine)
    if not documents:
        print("No documents.")
        return 0

    for doc in documents:
        flag = "private" if doc.is_private else "shared"
        print(
            f"{doc.id}  {doc.title:<40} {flag:<8} "
            f"{doc.metadata.get('chunk_count', 0):>4} chunks  {doc.created_at:%Y-%m-%d}"
        )
    return 0


async def _handle_delete(args: argparse.Namespace, processor: DocumentProcessor) -> int:
    if await processor.delete_document(args.document_id):
        print(f"Deleted {args.document_id}")
        return 0
    print(f"Document not found: {args.document_id}", file=sys.stderr)
    return 1


_HANDLERS = {
    "ingest": _handle_ingest,
    "search": _handle_search,
    "list": _handle_list,
    "delete": _handle_delete,
}


async def _run(args: argparse.Namespace, app_settings: Settings) -> int:
    from docingest.main import build_document_processor

    try:
        processor = await build_document_processor(app_settings)
    except DocIngestError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return await _HANDLERS[args.command](args, processor)


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _add_scope_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--user-id", required=True, dest="user_id", help="Acting user id")
    parser.add_argument("--team-id", dest="team_id", help="Team of the acting user")
    parser.add_argument("--department", help="Department of the acting user")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the docingest CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m docingest",
        description="Ingest, search and delete documents.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # -- ingest --
    ingest_parser = subparsers.add_parser("ingest", help="Ingest one or more local files")
    ingest_parser.add_argument("paths", nargs="+", help="Files to ingest")
    ingest_parser.add_argument("--title", help="Document title (single file only)")
    _add_scope_arguments(ingest_parser)
    ingest_parser.add_argument(
        "--private", action="store_true", help="Visible to the owner only"
    )

    # -- search --
    search_parser = subparsers.add_parser("search", help="Search document chunks")
    search_parser.add_argument("query", help="Search query")
    _add_scope_arguments(search_parser)
    search_parser.add_argument(
        "--threshold", type=float, help="Minimum score (default from settings)"
    )
    search_parser.add_argument("--limit", type=int, help="Maximum number of results")
    search_parser.add_argument(
        "--text", action="store_true", help="Text search only (no embeddings)"
    )

    # -- list --
    list_parser = subparsers.add_parser("list", help="List visible documents")
    _add_scope_arguments(list_parser)
    list_parser.add_argument(
        "--mine", action="store_true", help="Only documents owned by the user"
    )

    # -- delete --
    delete_parser = subparsers.add_parser("delete", help="Delete a document")
    delete_parser.add_argument("document_id", help="Id of the document to delete")

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """CLI entry point.

    Parses the subcommand, loads Settings from the environment / ``.env``
    file, configures logging and dispatches to the handler.
    """
    parser = _build_parser()
    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    app_settings = Settings()
    configure_logging(app_settings.log_level, app_env=app_settings.app_env)

    exit_code = asyncio.run(_run(args, app_settings))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
