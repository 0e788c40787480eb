#!/usr/bin/env python3
"""Build or query the documentation knowledge base from the command line.

This script indexes the markdown files of the configured GitHub repository
(or a local directory) and can answer questions against the built index.

Usage:
    python scripts/build_knowledge_index.py init [--force] [--repo owner/repo]
    python scripts/build_knowledge_index.py ask "How do I configure X?"

Environment variables (also read from .env):
    GITHUB_REPO_URL: Repository to index (default: facebook/react)
    GITHUB_TOKEN: Optional token; unauthenticated access is rate limited
    DOCS_LOCAL_PATH: Index a local directory instead of GitHub
    EMBEDDING_PROVIDER: "openai" (default) or "google"
    EMBEDDING_API_KEY: Required for vector indexing
    AGENT_API_KEY: Required for answering questions
"""

import argparse
import asyncio
import sys
from pathlib import Path

from dotenv import load_dotenv

from docsrag.core.config import Settings
from docsrag.knowledge.models import Failure
from docsrag.observability import configure_logging
from docsrag.services.factory import build_knowledge_stack


async def run_init(settings: Settings, force: bool) -> int:
    stack = build_knowledge_stack(settings)
    try:
        print(f"Indexing markdown files from: {stack.repository.identifier}")
        result = await stack.knowledge_base.init(force_reload=force)
    finally:
        await stack.close()

    if isinstance(result, Failure):
        print(f"Error: {result.error}")
        return 1

    print(result.message)
    if result.cached:
        print("Existing index reused (pass --force to rebuild)")
    else:
        print(f"Documents processed: {result.documents_count}")
        print(f"Chunks stored: {result.chunks_count}")
    return 0


async def run_ask(settings: Settings, query: str, max_results: int | None) -> int:
    stack = build_knowledge_stack(settings)
    try:
        result = await stack.pipeline.answer(query, max_results=max_results)
    finally:
        await stack.close()

    if isinstance(result, Failure):
        print(f"Error: {result.error}")
        return 1

    if result.initialized:
        print(
            f"Built index: {result.processed_files} files, {result.stored_chunks} chunks\n"
        )
    print(result.answer)
    if result.sources:
        print("\nSources:")
        for source in result.sources:
            print(f"  {source}")
    return 0


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--repo", help="Repository to index as owner/repo")
    parser.add_argument("--local-path", help="Index a local directory instead of GitHub")
    parser.add_argument(
        "--backend", choices=["vector", "lexical"], help="Knowledge base implementation"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser("init", help="Build the knowledge base index")
    init_parser.add_argument(
        "--force", action="store_true", help="Rebuild even if an index exists"
    )

    ask_parser = subparsers.add_parser("ask", help="Answer a question from the index")
    ask_parser.add_argument("query", help="Question to answer")
    ask_parser.add_argument("--max-results", type=int, default=None)

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    env_path = Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(env_path)
        print(f"Loaded environment from: {env_path}")

    args = parse_args(argv)

    overrides = {}
    if args.repo:
        overrides["github_repo_url"] = args.repo
    if args.local_path:
        overrides["docs_local_path"] = args.local_path
    if args.backend:
        overrides["knowledge_backend"] = args.backend
    settings = Settings(**overrides)
    configure_logging(settings)

    if args.command == "init":
        return asyncio.run(run_init(settings, args.force))
    return asyncio.run(run_ask(settings, args.query, args.max_results))


if __name__ == "__main__":
    sys.exit(main())
