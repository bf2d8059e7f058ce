import asyncio
import argparse
import logging
import sys

from dotenv import load_dotenv

from spit.logging_config import (
    setup_logging,
    get_logger,
    DEFAULT_LEVEL,
)
from spit.server import build_handler, serve
from spit.settings import ConfigError, Settings, load_config
from spit.spec_utils import SpecLoadError, load_document

# Load environment variables from .env file
load_dotenv()


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="spit",
        description="Serve mock responses generated from an OpenAPI specification.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v for INFO level, -vv for DEBUG level)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    scan = subparsers.add_parser("scan", help="Load the specification from a URL")
    scan.add_argument("--url", "-u", required=True, help="URL of the OpenAPI specification")

    file = subparsers.add_parser("file", help="Load the specification from a local file")
    file.add_argument(
        "--path", "-P", required=True, help="Path to the OpenAPI specification (JSON or YAML)"
    )

    for subparser in (scan, file):
        subparser.add_argument(
            "--port",
            "-p",
            type=int,
            default=settings.port,
            help=f"Port to listen on (default: {settings.port})",
        )
        subparser.add_argument(
            "--host",
            "-H",
            default=settings.host,
            help=f"Host to bind to (default: {settings.host})",
        )
        subparser.add_argument(
            "--delay",
            "-d",
            type=int,
            default=None,
            help="Response delay in milliseconds (used when the config file sets none)",
        )
        subparser.add_argument(
            "--config",
            "-C",
            default=None,
            help="Path to a YAML or JSON mock configuration file",
        )
    return parser


async def run(argv: list[str] | None = None) -> int:
    settings = Settings()
    args = build_parser(settings).parse_args(argv)

    # Configure logging based on verbosity flags
    match args.verbose:
        case 0:
            log_level = DEFAULT_LEVEL  # UPDATE_LEVEL - show SECTION and UPDATE
        case 1:
            log_level = logging.INFO  # Show INFO and above
        case _:
            log_level = logging.DEBUG  # Show DEBUG and above

    setup_logging(level=log_level, log_file=settings.log_file)
    logger = get_logger(__name__)

    source = args.url if args.command == "scan" else args.path

    logger.section("Loading specification")
    try:
        document = await load_document(source)
        config = load_config(args.config).with_default_delay(args.delay)
    except (SpecLoadError, ConfigError) as e:
        logger.error(str(e))
        return 1

    info = document.get("info") or {}
    logger.update(f"{info.get('title', source)} {info.get('version', '')}".strip())
    logger.debugf(config)

    handler = build_handler(document, config, settings)
    if config.delay:
        logger.update(f"Responses are delayed by {config.delay} ms")

    logger.section("Serving")
    await serve(handler, args.host, args.port)
    return 0


def main() -> None:
    try:
        sys.exit(asyncio.run(run()))
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    main()
