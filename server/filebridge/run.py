import argparse
import logging
import sys
from pathlib import Path

import uvicorn

from filebridge.config import ConfigError, Settings, load_settings
from filebridge.main import SERVICE_NAME, create_app

logger = logging.getLogger("filebridge")

# Never a wildcard address: the bridge is for processes on this machine only.
BIND_HOST = "127.0.0.1"

LOG_FORMAT = "[%(asctime)s] %(levelname)s: %(message)s"


def _configure_logging(level: str) -> None:
    logging.basicConfig(format=LOG_FORMAT, stream=sys.stdout, level=level.upper())


def _log_fatal(exc_type, exc, tb) -> None:
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc, tb)
        return
    logger.critical("FATAL: Uncaught exception: %s", exc, exc_info=(exc_type, exc, tb))


def log_banner(settings: Settings) -> None:
    logger.info("%s starting...", SERVICE_NAME)
    logger.info("Binding to: %s:%d", BIND_HOST, settings.port)
    logger.info("Allowed roots:")
    if not settings.allowed_roots:
        logger.info("  (None specified, all file access will be blocked unless configured)")
    for root in settings.allowed_roots:
        logger.info("  - %s", root)
    logger.info("Max file size: %dMB", settings.max_file_size_mb)


def main(argv: list[str] | None = None) -> None:
    """
    Entry point for the CLI.

    - Loads settings from the config file, then the environment, then flags.
    - Starts the FastAPI server on the loopback interface.
    """
    parser = argparse.ArgumentParser(
        prog="filebridge",
        description=(
            "Serve local files base64-encoded over HTTP to test tooling. "
            "Only files under the configured allowed roots can be read."
        ),
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to the JSON config file (default: ./config.json).",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to listen on; overrides the config file and PORT.",
    )
    parser.add_argument(
        "--log-level",
        default="info",
        choices=["debug", "info", "warning", "error"],
        help="Logging verbosity (default: info).",
    )

    args = parser.parse_args(argv)

    _configure_logging(args.log_level)
    sys.excepthook = _log_fatal

    try:
        settings = load_settings(args.config, port=args.port)
    except ConfigError as e:
        raise SystemExit(str(e))

    log_banner(settings)

    uvicorn.run(
        create_app(settings),
        host=BIND_HOST,
        port=settings.port,
        log_level=args.log_level,
    )


if __name__ == "__main__":
    main()
