"""Command-line helper for inspecting and disabling/enabling directory accounts.

This module serves as a CLI wrapper around directory_accounts.core.
"""
from __future__ import annotations
import argparse
import json
import os
import sys
from pathlib import Path

SCRIPT_DIR = Path(__file__).parent
PROJECT_ROOT = SCRIPT_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from directory_accounts.config import load_settings
from directory_accounts.core.aggregator import aggregate_account
from directory_accounts.core.directory import LdapDirectoryClient
from directory_accounts.core.lifecycle import LifecycleController, Transition, TransitionError
from directory_accounts.core.options import DirectoryCredential, DirectoryOptions
from scripts import audit


def build_client(cfg):
    """Directory client for the CLI (replaced with a fake in tests)."""
    return LdapDirectoryClient.from_config(cfg)


def _print_record(record) -> None:
    print(json.dumps(record.to_dict(), indent=2, ensure_ascii=False))


def _run_transition(target: Transition, args, client, options: DirectoryOptions) -> int:
    record = aggregate_account(client, args.identity, options)
    controller = LifecycleController(client, options)
    try:
        result = controller.transition(target, record if record.exists else args.identity, options, pass_thru=True)
    except TransitionError as e:
        print(f"[{target.value}] Error: {e}", file=sys.stderr)
        audit.safe_log_lifecycle_event(audit.LifecycleEvent.from_error(e, operator=args.operator, server=options.server))
        return 1

    changed = result is not record
    if changed:
        print(f"[{target.value}] '{result.account_name}' is now {target.terminal_state}", file=sys.stderr)
    else:
        print(f"[{target.value}] '{result.account_name}' already {target.terminal_state}; nothing to do", file=sys.stderr)

    audit.safe_log_lifecycle_event(
        audit.LifecycleEvent.from_result(target, result, changed=changed, operator=args.operator, server=options.server)
    )

    if args.pass_thru:
        _print_record(result)
    return 0


def main(argv: list[str] | None = None) -> None:
    """Command-line entry point."""
    parser = argparse.ArgumentParser(description="Directory account lifecycle helper")
    parser.add_argument("--server", default=None, help="Domain controller to target (overrides LDAP_SERVER)")
    parser.add_argument("--bind-user", default=None, help="Alternate bind identity (DOMAIN\\user, UPN or DN)")
    parser.add_argument("--bind-password", default=os.environ.get("LDAP_ALT_BIND_PASSWORD"))
    parser.add_argument("--operator", default="cli",
                        help="Operator identifier for audit logs (default: cli)")

    sub = parser.add_subparsers(dest="cmd")

    ss = sub.add_parser("show", help="Print the composite account record as JSON")
    ss.add_argument("identity")

    for name in ("disable", "enable"):
        sp = sub.add_parser(name, help=f"{name.capitalize()} an account and verify the result")
        sp.add_argument("identity")
        sp.add_argument("--pass-thru", action="store_true", help="Print the verified record")

    args = parser.parse_args(argv)

    if not args.cmd:
        parser.print_help()
        return

    if args.bind_user and not args.bind_password:
        parser.error("--bind-user requires --bind-password (or LDAP_ALT_BIND_PASSWORD)")

    cfg = load_settings()
    client = build_client(cfg)

    credential = DirectoryCredential(args.bind_user, args.bind_password) if args.bind_user else None
    options = DirectoryOptions.from_config(cfg).merged_with(server=args.server, credential=credential)

    if args.cmd == "show":
        record = aggregate_account(client, args.identity, options)
        for failure in record.failures:
            print(f"[show] Warning: {failure}", file=sys.stderr)
        if not record.exists:
            print(f"[show] Error: '{args.identity}' not found", file=sys.stderr)
            sys.exit(1)
        _print_record(record)
    elif args.cmd in ("disable", "enable"):
        code = _run_transition(Transition(args.cmd), args, client, options)
        if code:
            sys.exit(code)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
