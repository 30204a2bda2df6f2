"""Token subcommand: issue bearer tokens for the ``signed`` identity backend."""

from __future__ import annotations

import sys


def run_token(config, args) -> None:
    """Handle token subcommands."""
    if args.token_command != "issue":
        sys.stderr.write("usage: edelivery -c CONFIG token issue --user-id ID\n")
        sys.exit(1)

    identity = config.settings.identity
    if identity.backend != "signed":
        sys.stderr.write(
            f"token issue requires identity.backend 'signed' (configured: {identity.backend})\n",
        )
        sys.exit(1)

    from edelivery.integrations.identity import create_token  # noqa: PLC0415

    token = create_token(
        args.user_id,
        identity.token_secret,
        email=args.email,
        role=args.role,
    )
    sys.stdout.write(token + "\n")
