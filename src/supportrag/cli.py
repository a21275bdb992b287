"""Command line entry points: index a document, ask a question, or chat."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Callable, Sequence, TextIO

from supportrag.config import ConfigurationError, Settings, get_settings
from supportrag.dependencies import build_indexer, build_pipeline
from supportrag.services.query import NOT_FOUND_SENTENCE, ConversationSession, QueryPipeline

EXIT_COMMANDS = {"exit", "quit"}


def _render(result_dict: dict[str, str]) -> str:
    kind = result_dict["type"]
    if kind == "empty":
        return NOT_FOUND_SENTENCE
    if kind == "error":
        return f"Error: {result_dict['error']}"
    return result_dict["answer"]


def run_ingest(settings: Settings, path: Path | None, *, reset: bool, out: TextIO) -> int:
    indexer = build_indexer(settings)
    report = indexer.index(
        [path or settings.pdf_path],
        progress=lambda msg: print(msg, file=out),
        reset=reset,
    )
    print(f"Documents ingested successfully ({report.chunk_count} chunks).", file=out)
    return 0


def run_ask(pipeline: QueryPipeline, question: str, *, as_json: bool, out: TextIO) -> int:
    result = pipeline.resolve(question)
    payload = result.to_dict()
    print(json.dumps(payload, indent=2) if as_json else _render(payload), file=out)
    return 1 if result.type == "error" else 0


def run_chat(
    pipeline: QueryPipeline,
    *,
    read: Callable[[str], str] = input,
    out: TextIO = sys.stdout,
) -> int:
    session = ConversationSession()
    while True:
        try:
            question = read("\nAsk me anything --> ").strip()
        except EOFError:
            break
        if not question:
            continue
        if question.lower() in EXIT_COMMANDS:
            break
        result = pipeline.resolve(question, session)
        print(f"\nAnswer:\n{_render(result.to_dict())}", file=out)
    return 0


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="supportrag", description="Customer support assistant.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest = subparsers.add_parser("ingest", help="Load, chunk and index a document.")
    ingest.add_argument("--pdf", type=Path, default=None, help="Document to ingest (defaults to the configured PDF)")
    ingest.add_argument("--reset", action="store_true", help="Clear the index before ingesting")

    ask = subparsers.add_parser("ask", help="Answer a single question.")
    ask.add_argument("question", help="Question or order enquiry")
    ask.add_argument("--json", action="store_true", help="Print the structured result as JSON")

    subparsers.add_parser("chat", help="Interactive conversation with history.")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    settings = get_settings()
    if args.command == "ingest":
        try:
            return run_ingest(settings, args.pdf, reset=args.reset, out=sys.stdout)
        except Exception as exc:
            print(f"Fatal error: {exc}", file=sys.stderr)
            return 1
    try:
        pipeline = build_pipeline(settings)
    except ConfigurationError as exc:
        print(f"Fatal error: {exc}", file=sys.stderr)
        return 1
    if args.command == "ask":
        return run_ask(pipeline, args.question, as_json=args.json, out=sys.stdout)
    return run_chat(pipeline)


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    sys.exit(main())
