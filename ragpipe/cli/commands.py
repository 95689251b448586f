"""argparse front end over :class:`~ragpipe.main.RagContainer`."""

from __future__ import annotations

import argparse
import asyncio
import sys

from ragpipe.config.loader import DEFAULT_CONFIG_PATH, load_settings
from ragpipe.config.rag_config import ChunkingOptions
from ragpipe.main import RagContainer
from ragpipe.models.document import IngestionProgress, IngestionResult, IngestionStatus
from ragpipe.models.rag import ChunkingStrategy, QueryTransformKind
from ragpipe.services.ingestion.ingestion_service import IngestionOptions
from ragpipe.services.retrieval.context_assembler import format_chunk_for_display
from ragpipe.services.retrieval.query_service import QueryOptions
from ragpipe.utils.errors import RagPipeError
from ragpipe.utils.logging import configure_logging


def _chunking_override(args: argparse.Namespace, container: RagContainer) -> ChunkingOptions | None:
    """Apply --strategy / --chunk-size / --chunk-overlap on top of the configured options."""
    updates = {
        "strategy": args.strategy and ChunkingStrategy(args.strategy),
        "chunk_size": args.chunk_size,
        "chunk_overlap": args.chunk_overlap,
    }
    updates = {k: v for k, v in updates.items() if v is not None}
    if not updates:
        return None
    base = container.chunker.options.model_dump()
    base.update(updates)
    return ChunkingOptions(**base)


def _print_result(result: IngestionResult) -> int:
    print(f"  Document ID:  {result.document_id or '-'}")
    print(f"  Status:       {result.status.value}")
    print(f"  Chunks:       {result.chunks_count}")
    print(f"  Time:         {result.elapsed_seconds:.2f}s")
    for error in result.errors:
        print(f"  Error:        {error}", file=sys.stderr)
    return 1 if result.status is IngestionStatus.FAILED else 0


def _print_progress(progress: IngestionProgress) -> None:
    if progress.total_chunks:
        print(
            f"  [{progress.progress:5.1f}%] {progress.message} "
            f"({progress.chunks_processed}/{progress.total_chunks})"
        )


# ------------------------------------------------------------------
# Command handlers
# ------------------------------------------------------------------


async def _handle_ingest(args: argparse.Namespace, container: RagContainer) -> int:
    print(f"Ingesting: {args.file}")
    container.progress.register_listener(_print_progress)
    result = await container.ingestion.ingest_document(
        args.file,
        user_id=args.user,
        options=IngestionOptions(chunking=_chunking_override(args, container)),
    )
    print("\nIngestion finished:")
    return _print_result(result)


async def _handle_reprocess(args: argparse.Namespace, container: RagContainer) -> int:
    print(f"Reprocessing: {args.document_id}")
    container.progress.register_listener(_print_progress, args.document_id)
    result = await container.ingestion.reprocess_document(
        args.document_id, _chunking_override(args, container)
    )
    print("\nReprocess finished:")
    return _print_result(result)


async def _handle_delete(args: argparse.Namespace, container: RagContainer) -> int:
    existed = await container.ingestion.delete_document(args.document_id)
    if not existed:
        print(f"Document {args.document_id} not found.", file=sys.stderr)
        return 1
    print(f"Deleted {args.document_id}.")
    return 0


async def _handle_query(args: argparse.Namespace, container: RagContainer) -> int:
    result = await container.query.query(
        QueryOptions(
            query=args.query,
            user_id=args.user,
            document_ids=args.document or None,
            top_k=args.top_k,
            similarity_threshold=args.threshold,
            transform_query=QueryTransformKind(args.transform),
        )
    )
    if result.transform.fallback:
        print(
            f"Note: '{result.transform.requested.value}' needs a text generator; "
            "used the original query.",
            file=sys.stderr,
        )
    if result.degraded:
        print(f"Warning: retrieval failed ({result.error}); no context used.", file=sys.stderr)

    if args.show_prompt:
        print(result.rag_context.prompt)
        return 0

    print(f"Query: {result.transformed_query}")
    print(
        f"Retrieved {len(result.retrieval.chunks)} of {result.retrieval.total_candidates} "
        f"candidates in {result.retrieval.latency_ms:.1f} ms\n"
    )
    for chunk in result.retrieval.chunks:
        print(f"  {chunk.score:.3f}  {format_chunk_for_display(chunk)}")
    if result.rag_context.citations:
        print("\nCitations:")
        print(container.assembler.format_citations(result.rag_context.citations))
    return 0


async def _handle_stats(args: argparse.Namespace, container: RagContainer) -> int:
    stats = await container.vector_store.get_stats()
    documents = await container.document_store.list_documents(args.user)

    print("Index Statistics")
    print("=" * 40)
    print(f"  Vector store:     {container.vector_store.get_provider_name()}")
    print(f"  Embedding model:  {container.embedding_provider.get_model_name()}")
    print(f"  Dimension:        {stats.dimension}")
    print(f"  Total vectors:    {stats.total_vectors}")
    print(f"  Documents:        {len(documents)}")
    by_status: dict[str, int] = {}
    for doc in documents:
        by_status[doc.status.value] = by_status.get(doc.status.value, 0) + 1
    for status, count in sorted(by_status.items()):
        print(f"    {status:<12} {count}")
    return 0


_HANDLERS = {
    "ingest": _handle_ingest,
    "reprocess": _handle_reprocess,
    "delete": _handle_delete,
    "query": _handle_query,
    "stats": _handle_stats,
}


# ------------------------------------------------------------------
# Parser
# ------------------------------------------------------------------


def _add_chunking_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--strategy", choices=[s.value for s in ChunkingStrategy], help="Chunking strategy"
    )
    parser.add_argument("--chunk-size", type=int, dest="chunk_size", help="Chunk size")
    parser.add_argument("--chunk-overlap", type=int, dest="chunk_overlap", help="Chunk overlap")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m ragpipe.cli",
        description="Ingest documents and build retrieval-augmented prompts.",
    )
    parser.add_argument(
        "--config", default=DEFAULT_CONFIG_PATH, help="YAML config file (default: %(default)s)"
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    ingest = subparsers.add_parser("ingest", help="Ingest a document")
    ingest.add_argument("file", help="Path to the document")
    ingest.add_argument("--user", required=True, help="Owning user id")
    _add_chunking_args(ingest)

    reprocess = subparsers.add_parser("reprocess", help="Re-chunk and re-embed a document")
    reprocess.add_argument("document_id", help="Document id")
    _add_chunking_args(reprocess)

    delete = subparsers.add_parser("delete", help="Delete a document and its vectors")
    delete.add_argument("document_id", help="Document id")

    query = subparsers.add_parser("query", help="Retrieve context for a question")
    query.add_argument("query", help="Question text")
    query.add_argument("--user", required=True, help="User id to search for")
    query.add_argument(
        "--document", action="append", help="Restrict to this document id (repeatable)"
    )
    query.add_argument("--top-k", type=int, dest="top_k", help="Results to return")
    query.add_argument("--threshold", type=float, help="Minimum similarity score")
    query.add_argument(
        "--transform",
        choices=[k.value for k in QueryTransformKind],
        default=QueryTransformKind.ORIGINAL.value,
        help="Query transform (default: %(default)s)",
    )
    query.add_argument(
        "--show-prompt", action="store_true", dest="show_prompt", help="Print the full prompt"
    )

    stats = subparsers.add_parser("stats", help="Show index statistics")
    stats.add_argument("--user", help="Only count this user's documents")

    return parser


async def _run(args: argparse.Namespace) -> int:
    settings = load_settings(args.config)
    configure_logging(
        log_level=settings.log_level,
        json_output=(settings.app_env == "production"),
    )
    async with RagContainer.from_settings(settings) as container:
        return await _HANDLERS[args.command](args, container)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        sys.exit(1)

    try:
        exit_code = asyncio.run(_run(args))
    except RagPipeError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = 1
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
