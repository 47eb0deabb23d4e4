#!/usr/bin/env python3
"""
doctree.py — CLI entry point.

Usage:
    # Create the cache directory and add it to .gitignore
    doctree init /path/to/project

    # Summarize the project and check README.md against the code
    doctree run /path/to/project

    # Ignore cached summaries and regenerate everything
    doctree run /path/to/project --force

    # Print the summary tree without touching README.md
    doctree run /path/to/project --dry-run

    # Also rewrite README.md from the fresh project summary
    doctree run /path/to/project --write

    # Drop cached summaries (line mappings are kept unless --mappings/--all)
    doctree clean /path/to/project
    doctree clean /path/to/project --older-than-days 30

    # Show configuration, cache and README details / check the API connection
    doctree info /path/to/project
    doctree test

Environment:
    ANTHROPIC_API_KEY       — required for run/test (or pass --api-key)
    DOCTREE_MODEL           — model name (default: claude-haiku-4-5)
    DOCTREE_CACHE_DIR       — cache directory name inside the project (default: .doctree_cache)
    DOCTREE_DOCUMENT        — document to validate (default: README.md)
    DOCTREE_MAX_CONCURRENT  — concurrent service calls (default: 8)
    DOCTREE_MAX_RETRIES     — retries per service call (default: 3)
    DOCTREE_RETRY_DELAY     — base retry delay in seconds, grows linearly (default: 2)
"""

from __future__ import annotations
import argparse
import asyncio
import json
import sys
import time
from pathlib import Path

from agents import Summarizer
from cache import DocumentMappingStore, SummaryStore, ensure_gitignore
from config import Config
from errors import DocTreeError
from orchestrator import TreeSummarizer, render_tree
from readme import DocumentWriter, document_info
from validator import DocumentStalenessMapper, format_corrections


RULE = "━" * 70


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="doctree",
        description="Keep a project's README in step with its code using hierarchical, cached summaries.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Print progress for each node")
    parser.add_argument("--api-key", default=None,
                        help="Anthropic API key (default: ANTHROPIC_API_KEY env var)")
    parser.add_argument("--model", default=None,
                        help="Model name (default: DOCTREE_MODEL or claude-haiku-4-5)")
    parser.add_argument("--cache-dir-name", default=None,
                        help="Cache directory name inside the project (default: .doctree_cache)")
    parser.add_argument("--document", default=None,
                        help="Document to validate, relative to the project (default: README.md)")
    sub = parser.add_subparsers(dest="command", required=True)

    p_init = sub.add_parser("init", help="Initialize the cache and update .gitignore")
    p_init.add_argument("path", nargs="?", type=Path, default=Path("."))

    p_run = sub.add_parser("run", help="Summarize the project and validate the document")
    p_run.add_argument("path", nargs="?", type=Path, default=Path("."))
    p_run.add_argument("--force", action="store_true",
                       help="Ignore cached summaries and regenerate every node")
    p_run.add_argument("--dry-run", action="store_true",
                       help="Show the summary tree without validating or writing the document")
    p_run.add_argument("--write", action="store_true",
                       help="Create or merge the document from the project summary")
    p_run.add_argument("--json-output", type=Path, default=None,
                       help="Also write summaries, stats and corrections as JSON")
    p_run.add_argument("--exclude-dir", action="append", dest="exclude_dirs",
                       default=[], metavar="DIR",
                       help="Additional directory names to exclude (repeatable)")
    p_run.add_argument("--max-concurrent", type=int, default=None,
                       help="Max concurrent service calls (default: 8)")
    p_run.add_argument("--max-retries", type=int, default=None,
                       help="Retries per service call (default: 3)")

    p_clean = sub.add_parser("clean", help="Remove cached summaries")
    p_clean.add_argument("path", nargs="?", type=Path, default=Path("."))
    p_clean.add_argument("--mappings", action="store_true",
                         help="Remove the document line mappings instead of the summaries")
    p_clean.add_argument("--all", action="store_true",
                         help="Remove both summaries and line mappings")
    p_clean.add_argument("--older-than-days", type=float, default=None,
                         help="Only remove summaries older than this many days")

    p_info = sub.add_parser("info", help="Show configuration, cache and document details")
    p_info.add_argument("path", nargs="?", type=Path, default=Path("."))

    sub.add_parser("test", help="Test the connection to the configured model")
    return parser


def load_config(args: argparse.Namespace) -> Config:
    config = Config.from_env().with_overrides(
        api_key=args.api_key,
        model=args.model,
        cache_dir_name=args.cache_dir_name,
        document_name=args.document,
        max_concurrent=getattr(args, "max_concurrent", None),
        max_retries=getattr(args, "max_retries", None),
    )
    return config


def _project_root(path: Path) -> Path:
    root = path.resolve()
    if not root.is_dir():
        raise ValueError(f"Path does not exist or is not a directory: {root}")
    return root


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

async def init_command(args: argparse.Namespace, config: Config) -> None:
    config.validate(require_api_key=False)
    root = _project_root(args.path)
    print(f"🚀 Initializing doctree in: {root}")
    store = SummaryStore(config.cache_dir(root), verbose=args.verbose)
    store.ensure_initialized()
    print("✅ Cache directory initialized")
    if ensure_gitignore(root, store.cache_dir):
        print(f"✅ Added {config.cache_dir_name}/ to .gitignore")
    print("\n🎯 Ready to run! Use 'doctree run' to check your documentation.")


async def run_command(args: argparse.Namespace, config: Config) -> None:
    config.validate()
    root = _project_root(args.path)
    print(f"\n🔍 doctree — analyzing `{root.name}`", flush=True)
    if args.force:
        print("⚡ Force mode enabled - regenerating all summaries")
    start = time.time()

    service = Summarizer(
        api_key=config.api_key,
        model=config.model,
        max_concurrent=config.max_concurrent,
        verbose=args.verbose,
    )
    store = SummaryStore(config.cache_dir(root), verbose=args.verbose)
    store.ensure_initialized(root)
    retry = config.retry_policy()

    summarizer = TreeSummarizer(
        service=service,
        store=store,
        retry=retry,
        force=args.force,
        max_concurrent=config.max_concurrent,
        verbose=args.verbose,
    )
    print("📊 Generating hierarchical project summary...", flush=True)
    project = await summarizer.run(root, extra_excludes=set(args.exclude_dirs) or None)
    stats = project.stats
    print(f"📊 Cache stats: {stats['cache_entries']} entries, {stats['cache_bytes']} bytes")

    corrections = []
    document = config.document_path(root)
    if args.dry_run:
        print("\n📋 Summary tree:")
        print(RULE)
        print(render_tree(project.root, root))
        print(RULE)
        print("\n📋 Generated Project Summary:")
        print(RULE)
        print(project.root_summary)
        print(RULE)
        print(f"🔍 Dry run complete - {document.name} was not checked or modified")
    else:
        print(f"📝 Validating {document.name} against current codebase...", flush=True)
        mapper = DocumentStalenessMapper(
            service=service,
            store=store,
            mappings=DocumentMappingStore(store.cache_dir),
            retry=retry,
            verbose=args.verbose,
        )
        corrections = await mapper.validate(document, root, project.root_summary)
        print(format_corrections(corrections, document.name))

        if args.write:
            writer = DocumentWriter(service, retry=retry, verbose=args.verbose)
            await writer.apply(document, project.root_summary, root.name)
            print(f"📄 {document.name} written")

    elapsed = time.time() - start
    print(f"\n✅ Complete in {elapsed:.1f}s")

    if args.json_output:
        json_data = {
            "project": root.name,
            "root_summary": project.root_summary,
            "summaries": project.summaries(),
            "stats": stats,
            "corrections": [vars(c) for c in corrections],
        }
        args.json_output.write_text(json.dumps(json_data, indent=2))
        print(f"📊 JSON report written to: {args.json_output}")

    print(f"\n💰 {service.tracker.report()}")


async def clean_command(args: argparse.Namespace, config: Config) -> None:
    root = _project_root(args.path)
    cache_dir = config.cache_dir(root)
    print(f"🧹 Cleaning doctree cache in: {root}")
    store = SummaryStore(cache_dir, verbose=args.verbose)
    mappings = DocumentMappingStore(cache_dir)

    if args.older_than_days is not None:
        removed = store.cleanup_older_than(args.older_than_days * 24 * 60 * 60)
        print(f"✅ Removed {removed} summaries older than {args.older_than_days:g} days")
        return

    if args.mappings or args.all:
        mappings.clear()
        print("✅ Document line mappings removed")
    if not args.mappings or args.all:
        store.clear()
        print("✅ Cached summaries removed")


async def info_command(args: argparse.Namespace, config: Config) -> None:
    config.validate(require_api_key=False)
    root = _project_root(args.path)
    print(f"ℹ️  doctree information for: {root}")
    print(RULE)
    print("📋 Configuration:")
    print(f"  Model: {config.model}")
    print(f"  Cache Dir: {config.cache_dir_name}")
    print(f"  Document: {config.document_name}")
    print(f"  API key set: {'yes' if config.api_key else 'no'}")
    print()

    store = SummaryStore(config.cache_dir(root))
    stats = store.stats()
    index = DocumentMappingStore(store.cache_dir).load()
    print("💾 Cache Information:")
    print(f"  Entries: {stats.entry_count}")
    print(f"  Size: {stats.total_bytes} bytes")
    print(f"  Mapped document lines: {len(index.mappings)}")
    print()

    print(f"📄 {config.document_name} Information:")
    print(document_info(config.document_path(root)).describe())


async def test_command(args: argparse.Namespace, config: Config) -> None:
    print("🧪 Testing doctree configuration...")
    config.validate()
    print("✅ Configuration validation passed")
    service = Summarizer(api_key=config.api_key, model=config.model, verbose=args.verbose)
    print("🧠 Testing model connection...")
    response = await service.test_connection()
    print(f"✅ Connection test passed: {response}")


COMMANDS = {
    "init": init_command,
    "run": run_command,
    "clean": clean_command,
    "info": info_command,
    "test": test_command,
}


async def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        config = load_config(args)
        await COMMANDS[args.command](args, config)
    except (DocTreeError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


def run_cli() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run_cli()
