"""Command-line interface for the campus directory service."""

from __future__ import annotations
import argparse
import logging
from pathlib import Path
from typing import Sequence

from campus.config import Settings, load_settings
from campus.database import Database

logger = logging.getLogger("campus.main")


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Campus directory utilities")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to the YAML configuration file (default: CAMPUS_CONFIG or config/campus.yaml)",
    )
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve", host="0.0.0.0", port=8000)

    subparsers.add_parser("init-db", help="Initialise the directory database")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP API")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address for the API")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port for the HTTP API (default: 8000)",
    )

    return parser.parse_args(argv)


def _initialise_database(settings: Settings) -> Database:
    database = Database(settings.database_path)
    database.initialize()
    logger.info("Database initialised at %s", settings.database_path)
    return database


def _serve(*, settings: Settings, database: Database, host: str, port: int) -> None:
    from campus.api import create_app
    import uvicorn

    logger.info("Starting directory API on http://%s:%s", host, port)

    app = create_app(database=database, settings=settings)
    uvicorn.run(app, host=host, port=port, log_level="info")


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    args = _parse_args(argv)
    config_path = Path(args.config).expanduser() if args.config else None
    settings = load_settings(config_path)
    database = _initialise_database(settings)

    if args.command == "serve":
        _serve(settings=settings, database=database, host=args.host, port=args.port)
    elif args.command == "init-db":
        print("Database initialisation complete.")


if __name__ == "__main__":
    main()
