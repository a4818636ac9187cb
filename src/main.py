# src/main.py - v2
"""CLI entry point: serve, run, seed commands.

Usage:
    paygent serve [--host HOST] [--port PORT]
    paygent run "<goal>"
    paygent seed
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from paygent.config.settings import Settings, load_settings
from paygent.logging.logger import setup_logging
from paygent.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        settings = load_settings()
        _setup_logging(settings, args.verbose)
        return args.func(args, settings)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="paygent",
        description=f"paygent v{__version__} - pay-to-unlock agent runs",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- serve ---
    p_serve = subparsers.add_parser("serve", help="Run the HTTP API")
    p_serve.add_argument("--host", default=None, help="Bind address (default: API_HOST)")
    p_serve.add_argument("--port", type=int, default=None, help="Port (default: API_PORT)")
    p_serve.set_defaults(func=_cmd_serve)

    # --- run ---
    p_run = subparsers.add_parser("run", help="Execute one goal and print its events")
    p_run.add_argument("goal", help="Natural-language goal")
    p_run.set_defaults(func=_cmd_run)

    # --- seed ---
    p_seed = subparsers.add_parser("seed", help="Embed and store the demo memories")
    p_seed.set_defaults(func=_cmd_seed)

    return parser


def _cmd_serve(args: argparse.Namespace, settings: Settings) -> int:
    import uvicorn

    from paygent.api.server import create_app

    app = create_app(settings=settings)
    uvicorn.run(
        app,
        host=args.host or settings.api_host,
        port=args.port or settings.api_port,
        log_config=None,
    )
    return 0


def _cmd_run(args: argparse.Namespace, settings: Settings) -> int:
    return asyncio.run(_run_goal(args.goal, settings))


async def _run_goal(goal: str, settings: Settings) -> int:
    from paygent.api.container import build_services
    from paygent.core.models import RunStatus

    services = build_services(settings)
    try:
        run = await services.runs.start_run(goal)
        stream = await services.runs.open_stream(run.id)
        async for event in stream:
            print(event.to_json(), flush=True)
        final = await services.runs.wait(run.id)
    finally:
        await services.aclose()

    print(
        f"\nRun {final.id}: {final.status.value}"
        f" (cost {final.total_cost:.2f} {settings.payment_currency})",
        file=sys.stderr,
    )
    return 0 if final.status == RunStatus.COMPLETED else 1


def _cmd_seed(args: argparse.Namespace, settings: Settings) -> int:
    return asyncio.run(_seed(settings))


async def _seed(settings: Settings) -> int:
    from paygent.rag.embeddings.embedder_factory import create_embedder
    from paygent.rag.retriever import MemoryRetriever
    from paygent.storage.seed import seed_memories
    from paygent.storage.store_factory import create_record_store

    store = create_record_store(settings)
    try:
        retriever = MemoryRetriever(create_embedder(settings), store)
        before = await store.count_memories()
        stored, failed = await seed_memories(retriever)
        total = await store.count_memories()
    finally:
        await store.close()

    print("\nSeeding complete:")
    print(f"  Existing:  {before}")
    print(f"  Stored:    {stored}")
    print(f"  Failed:    {failed}")
    print(f"  Total:     {total}")
    if settings.store_backend == "memory":
        print("  Note: STORE_BACKEND=memory does not persist after exit.")
    return 0 if failed == 0 else 1


def _setup_logging(settings: Settings, verbose: bool) -> None:
    """Configure logging from settings; --verbose forces DEBUG."""
    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )


if __name__ == "__main__":
    sys.exit(main())
