# =============================================================================
# indexrag/cli/manage.py - Index Management CLI
# =============================================================================
#
# Standalone CLI for operating the document index without the HTTP API.
# It builds the same components the API does (see main._build_all), so the
# SQLite database, embedding model and vector store are shared with a
# running server configured from the same .env.
#
# Supported subcommands:
#
#   add       - Add a text/markdown file as a document and index it
#   process   - Index one document, or sweep every pending/failed one
#   ask       - Ask a question and stream the answer with its sources
#   transform - Apply a transformation preset to a document
#   status    - Show documents, their processing status and store readiness
#   migrate   - Run the one-time legacy vector store migration
#
# Usage examples:
#   python -m indexrag.cli add --file notes/meeting.md --title "Standup"
#   python -m indexrag.cli process --all
#   python -m indexrag.cli ask "What did we decide about the release?"
#   python -m indexrag.cli transform <document-id> --preset executive_summary
#   python -m indexrag.cli status
# =============================================================================

"""Standalone CLI for managing the indexrag document index.

Usage::

    python -m indexrag.cli add --file notes.md --title "Notes"
    python -m indexrag.cli process --all
    python -m indexrag.cli ask "What is in my notes?"
    python -m indexrag.cli status
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import uuid
from pathlib import Path
from typing import Any

from indexrag.utils.errors import IndexRAGError
from indexrag.utils.logging import configure_logging


async def _open(components: dict[str, Any], require_store: bool = True) -> bool:
    """Create tables, recover interrupted runs and open the vector store.

    Unlike the server bootstrap this makes a single attempt at opening the
    store; a CLI run has no reason to poll.
    """
    await components["repository"].initialize()
    await components["settings_store"].initialize()
    await components["pipeline"].recover_interrupted()
    await components["migration_service"].reindex_if_model_changed(
        components["embedding_provider"].get_model_name()
    )
    ready = await components["pipeline"].initialize_store()
    if require_store and not ready:
        print("Error: vector store could not be initialized.", file=sys.stderr)
    return ready


def _quiet_logging(verbose: bool) -> None:
    """Send structlog and stdlib logging to stderr so stdout carries only results.

    Must run after ``indexrag.main`` is imported, since that import
    configures logging for the server.  Loggers are cached on first use, so
    nothing may log in between.
    """
    configure_logging(
        log_level="INFO" if verbose else "WARNING",
        stream=sys.stderr,
        colors=False,
    )


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


async def _handle_add(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Add a file as a document and (optionally) index it."""
    from indexrag.models.document import Document

    path = Path(args.file)
    if not path.is_file():
        print(f"Error: file not found: {path}", file=sys.stderr)
        return 1

    content = path.read_text(encoding="utf-8")
    title = args.title or path.stem
    ready = await _open(components, require_store=not args.no_process)

    document = await components["repository"].add(
        Document(id=str(uuid.uuid4()), title=title, content=content)
    )
    print(f"Added document {document.id} ({title!r}, {len(content)} chars)")

    if args.no_process:
        return 0
    if not ready:
        print("Document left pending; run 'process --all' once the store is available.")
        return 1

    await components["pipeline"].process_document(document.id)
    return await _print_outcome(components, document.id)


async def _handle_process(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Index a single document or sweep all pending and failed documents."""
    if not await _open(components):
        return 1

    pipeline = components["pipeline"]
    if args.all:
        scheduled = await pipeline.process_all_pending()
        print(f"Scheduled {scheduled} document(s)")
        await pipeline.drain()
        documents = await components["repository"].list_documents()
        failed = [d for d in documents if d.processing_status.value == "failed"]
        for document in failed:
            print(f"  FAILED  {document.id}  {document.title}")
        return 1 if failed else 0

    if not args.document_id:
        print("Error: pass a document id or --all", file=sys.stderr)
        return 1

    await pipeline.process_document(args.document_id)
    return await _print_outcome(components, args.document_id)


async def _print_outcome(components: dict[str, Any], document_id: str) -> int:
    document = await components["repository"].get(document_id)
    if document is None:
        print(f"Error: document not found: {document_id}", file=sys.stderr)
        return 1
    chunks = await components["repository"].get_chunks(document_id)
    print(
        f"{document.title}: {document.processing_status.value} "
        f"({len(chunks)} chunk(s))"
    )
    return 0 if document.processing_status.value == "completed" else 1


async def _handle_ask(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Stream an answer to stdout, then list the cited sources."""
    if not await _open(components):
        return 1

    printed = 0
    final = None
    async for response in components["rag_engine"].query(args.question):
        # Snapshots are cumulative; print only the new suffix.
        sys.stdout.write(response.partial_answer[printed:])
        sys.stdout.flush()
        printed = len(response.partial_answer)
        final = response
    print()

    if final is not None and final.sources:
        print("\nSources:")
        for index, source in enumerate(final.sources, 1):
            excerpt = " ".join(source.excerpt.split())[:100]
            print(f"  [{index}] {source.relevance_score:.2f}  {excerpt}")
    return 0


async def _handle_transform(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Apply a preset to a stored document and print the result."""
    from indexrag.models.transformation import get_preset

    preset = get_preset(args.preset)
    if preset is None:
        print(f"Error: unknown preset '{args.preset}'", file=sys.stderr)
        return 1

    await _open(components, require_store=False)
    document = await components["repository"].get(args.document_id)
    if document is None:
        print(f"Error: document not found: {args.document_id}", file=sys.stderr)
        return 1

    result = await components["transformation_service"].transform(document, preset)
    print(result.content)
    if result.parts > 1:
        print(f"\n({result.parts} parts)", file=sys.stderr)
    return 0


async def _handle_status(components: dict[str, Any]) -> int:
    """Print every document with its processing status."""
    ready = await _open(components, require_store=False)
    documents = await components["repository"].list_documents()
    store = components["vector_store"]

    print("Index Status")
    print("=" * 40)
    print(f"  Vector store:     {store.get_provider_name()} ({'ready' if ready else 'unavailable'})")
    if ready:
        print(f"  Stored entries:   {await store.count()}")
    print(f"  Embedding model:  {components['embedding_provider'].get_model_name()}")
    print(f"  Language model:   {components['llm'].get_provider_name()}")
    print(f"  Documents:        {len(documents)}")

    if documents:
        print()
        for document in documents:
            print(
                f"  {document.processing_status.value:<11} {document.id}  {document.title}"
            )
    return 0


async def _handle_migrate(components: dict[str, Any]) -> int:
    """Run the legacy store migration and wait for re-indexing to finish."""
    if not await _open(components):
        return 1

    migration = components["migration_service"]
    if not await migration.needs_migration():
        print("No migration needed.")
        return 0

    migrated = await migration.run()
    await components["pipeline"].drain()
    progress = migration.progress
    print(f"Migrated: {migrated} ({progress.processed}/{progress.total} document(s) re-queued)")
    return 0


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the management CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m indexrag.cli",
        description="Manage the indexrag document index.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show INFO log lines on stderr",
    )
    subparsers = parser.add_subparsers(dest="command", help="Index commands")

    add_parser = subparsers.add_parser("add", help="Add a text file as a document")
    add_parser.add_argument("--file", required=True, help="Path to a text or markdown file")
    add_parser.add_argument("--title", default="", help="Document title (default: file name)")
    add_parser.add_argument(
        "--no-process",
        action="store_true",
        dest="no_process",
        help="Store the document without indexing it",
    )

    process_parser = subparsers.add_parser("process", help="Index documents")
    process_parser.add_argument("document_id", nargs="?", help="Document id to index")
    process_parser.add_argument(
        "--all", action="store_true", help="Index every pending or failed document"
    )

    ask_parser = subparsers.add_parser("ask", help="Ask a question against the index")
    ask_parser.add_argument("question", help="Question text")

    transform_parser = subparsers.add_parser(
        "transform", help="Apply a transformation preset to a document"
    )
    transform_parser.add_argument("document_id", help="Document id")
    transform_parser.add_argument("--preset", required=True, help="Preset id (e.g. executive_summary)")

    subparsers.add_parser("status", help="Show index status")
    subparsers.add_parser("migrate", help="Run the legacy vector store migration")

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.

    Parses the subcommand, builds the application components from
    environment settings and ``config/config.yaml``, and dispatches to the
    matching handler.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    from indexrag.config.loader import load_config
    from indexrag.config.settings import Settings
    from indexrag.main import _build_all

    _quiet_logging(args.verbose)

    app_settings = Settings()
    try:
        components = _build_all(app_settings, load_config(settings=app_settings))
    except IndexRAGError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    handlers = {
        "add": lambda: _handle_add(args, components),
        "process": lambda: _handle_process(args, components),
        "ask": lambda: _handle_ask(args, components),
        "transform": lambda: _handle_transform(args, components),
        "status": lambda: _handle_status(components),
        "migrate": lambda: _handle_migrate(components),
    }

    try:
        exit_code = asyncio.run(handlers[args.command]())
    except IndexRAGError as exc:
        print(f"\nError: {exc}", file=sys.stderr)
        exit_code = 1
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        exit_code = 130

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
