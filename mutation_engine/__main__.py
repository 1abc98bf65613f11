"""
Mutation Engine CLI
===================

Ingest a file of texts (one per line) into a fresh in-memory engine and
inspect the resulting families. Family ids are derived from content, so
ids printed by one run are valid in the next run over the same file.

USAGE:
    python -m mutation_engine ingest FILE [--family ID] [--predict ID] [--stats]
"""
import argparse
import json
import sys
from typing import List, Optional

from .engine import EngineConfig, MutationGenealogyEngine
from .observability import setup_logging


def _emit(payload: dict) -> None:
    print(json.dumps(payload, default=str))


def cmd_ingest(args, engine: MutationGenealogyEngine) -> int:
    try:
        with open(args.file, 'r', encoding='utf-8') as f:
            lines = [line.rstrip('\n') for line in f]
    except OSError as exc:
        print(f"Cannot read {args.file}: {exc}", file=sys.stderr)
        return 1

    for line in lines:
        if not line.strip():
            continue
        _emit(engine.ingest(line).to_dict())

    if args.family:
        _emit(engine.get_family(args.family).to_dict())
    if args.predict:
        _emit(engine.predict_mutations(args.predict).to_dict())
    if args.stats:
        _emit(engine.get_statistics().to_dict())
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mutation_engine", description="Mutation genealogy engine")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument("--json-logs", action="store_true", help="Emit logs as JSON lines")

    subparsers = parser.add_subparsers(dest="command")

    ingest_parser = subparsers.add_parser("ingest", help="Ingest one text per line")
    ingest_parser.add_argument("file", help="Path to a UTF-8 text file")
    ingest_parser.add_argument("--family", metavar="ID", help="Print the family view for ID")
    ingest_parser.add_argument("--predict", metavar="ID", help="Print predictions for ID")
    ingest_parser.add_argument("--stats", action="store_true", help="Print registry statistics")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = EngineConfig.from_env()
    setup_logging(args.log_level or config.log_level, json_format=args.json_logs)

    if args.command == "ingest":
        return cmd_ingest(args, MutationGenealogyEngine(config))

    parser.print_help()
    return 2


if __name__ == "__main__":
    sys.exit(main())
