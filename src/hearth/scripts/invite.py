# src/hearth/scripts/invite.py
"""Create and verify community invites from the command line.

Typical usage:
  hearth-invite create --community "Book Club" --group <meta-group> --identity <me>
  hearth-invite verify hearth://invite/eyJ...
"""

from __future__ import annotations

import argparse
import json
import sys
from collections.abc import Sequence
from datetime import timedelta

from hearth.core.security import generate_private_key
from hearth.core.settings import settings
from hearth.errors import ValidationError
from hearth.services.invites import (
    InviteVerdict,
    check_invite,
    create_invite,
    invite_link,
    parse_invite_link,
)


def _create(args: argparse.Namespace) -> int:
    private_key = args.private_key or settings.inviter_private_key
    if not private_key:
        print("[hearth-invite] no private key: pass --private-key or set INVITER_PRIVATE_KEY",
              file=sys.stderr)
        return 2
    try:
        token = create_invite(
            community_name=args.community,
            group_reference=args.group,
            inviter_identity=args.identity,
            private_key=private_key,
            role=args.role,
            ttl=timedelta(hours=args.ttl_hours) if args.ttl_hours is not None else None,
        )
    except ValueError as err:
        print(f"[hearth-invite] {err}", file=sys.stderr)
        return 2
    print(invite_link(token))
    return 0


def _verify(args: argparse.Namespace) -> int:
    try:
        token = parse_invite_link(args.token)
    except ValidationError as err:
        print(f"[hearth-invite] malformed invite: {err}", file=sys.stderr)
        return 1
    verdict = check_invite(token)
    print(json.dumps({
        "verdict": verdict.value,
        "communityName": token.community_name,
        "groupReference": token.group_reference,
        "role": token.role,
        "expiry": token.expiry,
    }))
    return 0 if verdict is InviteVerdict.VALID else 1


def _keygen(args: argparse.Namespace) -> int:
    print(generate_private_key())
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="hearth-invite", description=__doc__.splitlines()[0])
    commands = parser.add_subparsers(dest="command", required=True)

    create = commands.add_parser("create", help="sign a new invite")
    create.add_argument("--community", required=True, help="community display name")
    create.add_argument("--group", required=True, help="meta-channel group reference")
    create.add_argument("--identity", required=True, help="inviter's public identity")
    create.add_argument("--role", choices=("member", "moderator"), default="member")
    create.add_argument("--ttl-hours", type=int, default=None)
    create.add_argument("--private-key", default=None, help="hex Ed25519 seed")
    create.set_defaults(handler=_create)

    verify = commands.add_parser("verify", help="check an invite token or link")
    verify.add_argument("token")
    verify.set_defaults(handler=_verify)

    keygen = commands.add_parser("keygen", help="print a fresh hex private key")
    keygen.set_defaults(handler=_keygen)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    return args.handler(args)


if __name__ == "__main__":
    sys.exit(main())
