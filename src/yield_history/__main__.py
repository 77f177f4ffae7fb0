"""
Entry point for running yield_history as a module.

Usage:
    python -m yield_history [command] [options]

Commands:
    fetch ID [ID ...]   Fetch and store pool history (rate limited, Ctrl+C cancels)
    metrics [ID ...]    Show derived metrics for stored pools
    stats               Show cache statistics
    clear               Drop every stored series

Options:
    --env ENV           Environment (development/production)
"""

from __future__ import annotations

import argparse
import asyncio
import sys


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="yield-history",
        description="Historical yield cache and metrics",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--env",
        default="development",
        help="Environment (development/production)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    fetch_parser = subparsers.add_parser("fetch", help="Fetch pool history")
    fetch_parser.add_argument("pool_ids", nargs="+", metavar="ID", help="Pool identifiers")
    fetch_parser.add_argument(
        "--force",
        action="store_true",
        help="Refetch even if a fresh series is stored",
    )
    fetch_parser.add_argument(
        "--delay",
        type=float,
        default=None,
        help="Seconds between requests (default: history.batch_delay_seconds)",
    )

    metrics_parser = subparsers.add_parser("metrics", help="Show derived metrics")
    metrics_parser.add_argument("pool_ids", nargs="*", metavar="ID", help="Pool identifiers (default: all stored)")

    subparsers.add_parser("stats", help="Show cache statistics")
    subparsers.add_parser("clear", help="Drop every stored series")

    args = parser.parse_args(argv)

    # Import here to avoid slow startup for --help
    from yield_history.app.run import run_clear, run_fetch, run_metrics, run_stats

    try:
        if args.command == "fetch":
            return asyncio.run(
                run_fetch(
                    args.pool_ids,
                    env=args.env,
                    force_refresh=args.force,
                    delay_seconds=args.delay,
                )
            )
        elif args.command == "metrics":
            return asyncio.run(run_metrics(args.pool_ids, env=args.env))
        elif args.command == "stats":
            return asyncio.run(run_stats(env=args.env))
        elif args.command == "clear":
            return asyncio.run(run_clear(env=args.env))
        else:
            parser.print_help()
            return 1
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 130
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
