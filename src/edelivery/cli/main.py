"""edelivery command-line entry point.

Usage::

    edelivery -c /etc/edelivery/config.yaml
    edelivery -c config.yaml --dev
    edelivery -c config.yaml --validate-only
    edelivery -c config.yaml serve --dev
    edelivery -c config.yaml db status
    edelivery -c config.yaml inspect order <order-id>
    edelivery -c config.yaml token issue --user-id u1 --email u1@example.com
    python -m edelivery -c config.yaml
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

log = logging.getLogger(__name__)


def _get_version() -> str:
    from edelivery import __version__  # noqa: PLC0415

    return __version__


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="edelivery",
        description="edelivery: order ledger and entitlement-gated file delivery",
    )
    parser.add_argument(
        "-c",
        "--config",
        required=True,
        metavar="PATH",
        help="Path to the configuration file (YAML or JSON).",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Enable debug output (full tracebacks, verbose logging).",
    )
    parser.add_argument(
        "--validate-only",
        action="store_true",
        default=False,
        help="Validate the configuration file and exit.",
    )
    parser.add_argument(
        "--dev",
        action="store_true",
        default=False,
        help="Use Flask's development server instead of gunicorn.",
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )

    subparsers = parser.add_subparsers(dest="command")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Start the HTTP server")
    serve_parser.add_argument("--dev", action="store_true", default=False, dest="dev")

    # db
    db_parser = subparsers.add_parser("db", help="Database management")
    db_sub = db_parser.add_subparsers(dest="db_command")
    db_sub.add_parser("status", help="Check database connectivity and tables")

    # inspect
    inspect_parser = subparsers.add_parser("inspect", help="Inspect stored resources")
    inspect_sub = inspect_parser.add_subparsers(dest="inspect_command")
    order_parser = inspect_sub.add_parser("order", help="Inspect an order by id")
    order_parser.add_argument("resource_id", help="The order id to inspect")

    # token
    token_parser = subparsers.add_parser(
        "token",
        help="Bearer tokens for the signed identity backend",
    )
    token_sub = token_parser.add_subparsers(dest="token_command")
    issue = token_sub.add_parser("issue", help="Issue a signed bearer token")
    issue.add_argument("--user-id", required=True, dest="user_id", help="Principal id")
    issue.add_argument("--email", default=None, help="Email claim")
    issue.add_argument("--role", default="user", help="Role claim (default: user)")

    return parser


def _print_error(message: str) -> None:
    """Print a user-facing error to stderr."""
    sys.stderr.write(f"edelivery: error: {message}\n")


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.  Parses arguments, loads config, dispatches."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    config_path = Path(args.config)
    if not config_path.is_file():
        _print_error(f"configuration file not found: {config_path}")
        sys.exit(1)

    # -- bootstrap logging early (basic stderr until config is loaded) ---
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    # -- load & validate config ---
    from edelivery.config import ConfigValidationError, EdeliveryConfig  # noqa: PLC0415

    try:
        config = EdeliveryConfig(
            config_file=str(config_path),
            schema_file="bundled",
        )
    except ConfigValidationError as exc:
        _print_error(str(exc))
        sys.exit(1)
    except Exception as exc:
        if args.debug:
            raise
        _print_error(f"failed to load configuration: {exc}")
        sys.exit(1)

    from edelivery.logging import configure_logging  # noqa: PLC0415

    configure_logging(config.settings.logging)

    if args.validate_only:
        _print_settings_summary(config)
        sys.exit(0)

    command = args.command

    if command == "db":
        from edelivery.cli.commands.db import run_db  # noqa: PLC0415

        run_db(config, args)
    elif command == "inspect":
        from edelivery.cli.commands.inspect import run_inspect  # noqa: PLC0415

        run_inspect(config, args)
    elif command == "token":
        from edelivery.cli.commands.token import run_token  # noqa: PLC0415

        run_token(config, args)
    else:
        # no subcommand = serve
        _print_settings_summary(config)
        from edelivery.cli.commands.serve import run_serve  # noqa: PLC0415

        try:
            run_serve(config, args)
        except RuntimeError as exc:
            if args.debug:
                raise
            _print_error(str(exc))
            sys.exit(1)


def _print_settings_summary(config) -> None:
    """Print a short summary of the loaded configuration."""
    s = config.settings
    lines = [
        f"listen:      {s.server.bind}:{s.server.port} ({s.server.workers} workers)",
        f"api base:    {s.api.base_path or '/'}",
        f"database:    {s.database.user}@{s.database.host}:{s.database.port}/{s.database.database}",
        f"identity:    {s.identity.backend}",
        f"gateway:     {s.gateway.backend}",
        f"storage:     {s.storage.backend} ({s.storage.bucket or '-'})",
        f"catalog:     {s.catalog.backend}",
        f"entitlement: {s.entitlement.window_days} days",
        f"url expiry:  {s.downloads.url_expiry_seconds}s",
    ]
    sys.stdout.write("\n".join(lines) + "\n")
