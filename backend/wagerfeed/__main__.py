"""Wagerfeed CLI entry point."""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

env_file = Path(__file__).parent.parent / ".env"
load_dotenv(env_file)

from wagerfeed import __version__
from wagerfeed.config import ConfigurationError, get_settings

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger(__name__)


def cmd_serve(args: argparse.Namespace) -> int:
    """Run the HTTP/WebSocket API with the change detector scheduled in-process."""
    import uvicorn

    from wagerfeed.api import create_app

    try:
        settings = get_settings()
        settings.validate_for_server()
    except (ConfigurationError, ValidationError) as e:
        print(f"\n❌ Configuration Error: {e}\n")
        return 1

    if args.no_detector:
        settings.detector.enabled = False

    logging.getLogger().setLevel(settings.log_level.upper())
    uvicorn.run(
        create_app(settings),
        host=args.host or settings.server.host,
        port=args.port or settings.server.port,
        log_level=settings.log_level.lower(),
    )
    return 0


async def _detect_once() -> list[str]:
    from wagerfeed.repositories import SupabaseBetRepository
    from wagerfeed.services.change_detector import ChangeDetector
    from wagerfeed.services.notifications import NotificationHub
    from wagerfeed.services.supabase import SupabaseClient

    settings = get_settings()
    settings.validate_for_server()
    async with SupabaseClient(
        settings.supabase_url,
        settings.supabase_service_role_key,
        config=settings.supabase,
    ) as client:
        detector = ChangeDetector(
            SupabaseBetRepository(client),
            NotificationHub(),
            interval_seconds=settings.detector.interval_seconds,
            overlap_seconds=settings.detector.overlap_seconds,
        )
        result = await detector.tick()
    if result is None:
        raise RuntimeError("placement scan failed, see log for details")
    return result.bet_ids


def cmd_detect(args: argparse.Namespace) -> int:
    """Run one change detector scan and print the affected bets."""
    try:
        print("\n=== Change Detector ===\n")

        bet_ids = asyncio.run(_detect_once())

        print(f"Bets with new wagers: {len(bet_ids)}")
        for bet_id in bet_ids:
            print(f"  • {bet_id}")
        print()
        return 0

    except Exception as e:
        logger.error(f"Change detection failed: {e}", exc_info=True)
        print(f"\n❌ Change detection failed: {e}\n")
        return 1


def cmd_config(args: argparse.Namespace) -> int:
    """Display merged configuration."""
    try:
        settings = get_settings()

        if args.json:
            print(json.dumps(settings.public_dump(), indent=2))
            return 0

        print("\n=== Wagerfeed Configuration ===\n")
        print(f"Environment: {settings.environment}")
        print(f"Data Directory: {settings.data_dir}\n")

        print("Server:")
        print(f"  Address: {settings.server.host}:{settings.server.port}")
        print(f"  Allowed Origins: {', '.join(settings.server.allowed_origins)}\n")

        print("Feed:")
        print(f"  Page Size: {settings.feed.page_size} (max {settings.feed.max_page_size})\n")

        print("Signed URLs:")
        print(f"  Bucket: {settings.signed_urls.bucket}")
        print(f"  Validity: {settings.signed_urls.validity_seconds}s\n")

        print("Change Detector:")
        print(f"  Enabled: {settings.detector.enabled}")
        print(f"  Interval: {settings.detector.interval_seconds}s")
        print(f"  Overlap: {settings.detector.overlap_seconds}s\n")

        print("API Keys:")
        print(f"  Supabase URL: {settings.supabase_url or '✗ Not set'}")
        print(f"  Service Role Key: {'✓ Set' if settings.supabase_service_role_key else '✗ Not set'}")
        print(f"  Logfire: {'✓ Set' if settings.logfire_token else '✗ Not set'}\n")

        return 0

    except ValidationError as e:
        print("\n❌ Configuration Error:\n")
        for error in e.errors():
            print(f"  • {'.'.join(str(x) for x in error['loc'])}: {error['msg']}")
        print()
        return 1
    except yaml.YAMLError as e:
        print(f"\n❌ Failed to parse config.yaml: {e}\n")
        return 1


def main() -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Wagerfeed: social betting feed and bet lifecycle service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"Wagerfeed {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    parser_serve = subparsers.add_parser(
        "serve",
        help="Start the API server",
    )
    parser_serve.add_argument("--host", help="Bind address (overrides config)")
    parser_serve.add_argument("--port", type=int, help="Port (overrides config)")
    parser_serve.add_argument(
        "--no-detector",
        action="store_true",
        help="Do not schedule the change detector in this process",
    )
    parser_serve.set_defaults(func=cmd_serve)

    parser_detect = subparsers.add_parser(
        "detect",
        help="Run one change detector scan and exit",
    )
    parser_detect.set_defaults(func=cmd_detect)

    parser_config = subparsers.add_parser(
        "config",
        help="Display merged configuration",
    )
    parser_config.add_argument(
        "--json",
        action="store_true",
        help="Print the effective configuration as JSON (secrets omitted)",
    )
    parser_config.set_defaults(func=cmd_config)

    args = parser.parse_args()

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
