"""Search CLI: natural-language queries over the annotated gallery."""

import argparse


def main() -> None:
    """CLI entry point for gallery search."""
    parser = argparse.ArgumentParser(description="Offline gallery search")
    parser.add_argument("query", nargs="+", help="Free-text query")
    parser.add_argument("--limit", type=int, default=20, help="Max results (default: 20)")
    parser.add_argument(
        "--explain", action="store_true", help="Print how the query was parsed"
    )
    parser.add_argument("--log-level", default="WARNING", help="Log level (default: WARNING)")
    args = parser.parse_args()

    from offline_gallery.config import EngineConfig
    from offline_gallery.db import get_connection
    from offline_gallery.logging_config import setup_logging
    from offline_gallery.search.engine import RetrievalEngine
    from offline_gallery.search.parser import extract_keywords, parse_query

    setup_logging(args.log_level)
    text = " ".join(args.query)

    if args.explain:
        predicate = parse_query(text)
        print(f"People: {predicate.people} (all: {predicate.require_all})")
        print(f"Excluded: {predicate.excluded_people}")
        print(f"Tags: {predicate.tags}")
        if predicate.is_empty:
            print(f"Keywords: {extract_keywords(text)}")

    conn = get_connection()
    engine = RetrievalEngine(conn, EngineConfig.from_env())
    results = engine.search(text, limit=args.limit)
    conn.close()

    if not results:
        print("No matching images.")
        return
    for result in results:
        print(f"{result.relevance:.3f}  [{result.image.id}] {result.image.file_path}")
