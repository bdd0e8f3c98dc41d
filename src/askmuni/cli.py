"""Command line tools for auditing temporal ranking and tidying the PDF archive."""

from __future__ import annotations

import argparse
import json
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence

from askmuni.config import get_settings
from askmuni.models import Chunk
from askmuni.retrieval.temporal import TemporalConfigError, TemporalSearchConfig, extract_year, hybrid_search

_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class RenamedFile:
    source: Path
    target: Path


def normalize_pdf_name(name: str) -> str:
    """Lowercase, dash-separated file name with ``é``/``è`` folded to ``e``."""

    normalized = _WHITESPACE.sub("-", name)
    normalized = normalized.replace("é", "e").replace("è", "e").replace("É", "e").replace("È", "e")
    return normalized.lower()


def rename_pdfs(root: Path, *, dry_run: bool = False) -> List[RenamedFile]:
    renamed: List[RenamedFile] = []
    for path in sorted(root.rglob("*.pdf")):
        if not path.is_file():
            continue
        target = path.with_name(normalize_pdf_name(path.name))
        if target == path:
            continue
        if target.exists() and not path.samefile(target):
            print(f"Skipped {path}: {target.name} already exists", file=sys.stderr)
            continue
        if not dry_run:
            path.rename(target)
        renamed.append(RenamedFile(source=path, target=target))
    return renamed


def load_chunks(path: Path) -> list[Chunk]:
    data = json.loads(path.read_text(encoding="utf-8"))
    items = data.get("chunks", []) if isinstance(data, dict) else data
    return [Chunk.from_dict(item) for item in items if item.get("text")]


def _temporal_config(args: argparse.Namespace) -> TemporalSearchConfig:
    settings = get_settings()
    return TemporalSearchConfig(
        temporal_weight=args.temporal_weight if args.temporal_weight is not None else settings.temporal_weight,
        year_tolerance=args.year_tolerance if args.year_tolerance is not None else settings.year_tolerance,
        enable_filtering=not args.no_filter,
        enable_weighting=not args.no_weighting,
        fallback_to_unfiltered=args.fallback,
    )


def _cmd_year(args: argparse.Namespace) -> int:
    print(json.dumps({"query": args.query, "queryYear": extract_year(args.query)}, ensure_ascii=False))
    return 0


def _cmd_rank(args: argparse.Namespace) -> int:
    try:
        config = _temporal_config(args)
    except TemporalConfigError as exc:
        print(f"Invalid temporal configuration: {exc}", file=sys.stderr)
        return 2
    result = hybrid_search(load_chunks(args.chunks), args.query, config)
    ranked = result.chunks[: args.limit] if args.limit is not None else result.chunks
    report = {
        "searchMetadata": result.metadata.to_dict(),
        "chunks": [chunk.to_dict() for chunk in ranked],
    }
    print(json.dumps(report, indent=2, ensure_ascii=False))
    return 0


def _cmd_rename(args: argparse.Namespace) -> int:
    if not args.directory.is_dir():
        print(f"Not a directory: {args.directory}", file=sys.stderr)
        return 2
    renamed = rename_pdfs(args.directory, dry_run=args.dry_run)
    verb = "Would rename" if args.dry_run else "Renamed"
    for item in renamed:
        print(f"{verb}: {item.source} -> {item.target}")
    return 0


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="askmuni", description="Municipal minutes search tools.")
    sub = parser.add_subparsers(dest="command", required=True)

    year = sub.add_parser("year", help="Show the year detected in a question")
    year.add_argument("query", help="Question text")
    year.set_defaults(handler=_cmd_year)

    rank = sub.add_parser("rank", help="Rank a JSON list of scored chunks for a question")
    rank.add_argument("--chunks", type=Path, required=True, help="JSON file: list of chunks or {'chunks': [...]}")
    rank.add_argument("--query", required=True, help="Question text")
    rank.add_argument("--temporal-weight", type=float, default=None, help="Blend weight of temporal proximity (0-1)")
    rank.add_argument("--year-tolerance", type=int, default=None, help="Inclusive +/- window in years")
    rank.add_argument("--no-filter", action="store_true", help="Disable temporal filtering")
    rank.add_argument("--no-weighting", action="store_true", help="Disable temporal weighting")
    rank.add_argument("--fallback", action="store_true", help="Keep all chunks when filtering removes every one")
    rank.add_argument("--limit", type=int, default=None, help="Only print the top N chunks")
    rank.set_defaults(handler=_cmd_rank)

    rename = sub.add_parser("rename-pdfs", help="Normalize PDF file names under a directory")
    rename.add_argument("directory", type=Path, help="Root of the PDF archive")
    rename.add_argument("--dry-run", action="store_true", help="Only print the planned renames")
    rename.set_defaults(handler=_cmd_rename)
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    return args.handler(args)


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    sys.exit(main())
