"""Main entry point for the relsync CLI."""
from __future__ import annotations

import json
import os
import sys

import httpx

from relsync_cli import __version__
from relsync_cli.client import ApiClient

DEFAULT_API_URL = "http://localhost:8000"
COMMANDS = ("validate", "repair", "stats", "relations")


def print_help():
    """Print help message."""
    print(f"""
relsync CLI v{__version__}

Usage:
  relsync [options] <command> [relation]

Commands:
  relations             List registered relations
  validate <relation>   Report orphaned references (exit 1 if any)
  repair <relation>     Remove orphans, finish pending renames (exit 1 if incomplete)
  stats <relation>      Show relation statistics

Options:
  --api-url URL     Override API endpoint (default: {DEFAULT_API_URL})
  --token TOKEN     Bearer token for the couple's planner
  -h, --help        Show this help
  -v, --version     Show version

Environment:
  RELSYNC_API_URL   Override API endpoint (same as --api-url)
  RELSYNC_TOKEN     Bearer token (same as --token)

Examples:
  relsync validate event_guests
  relsync repair table_guests --api-url http://localhost:8000
""")


def parse_args(args: list[str]) -> dict:
    """
    Parse command line arguments.

    Returns dict with:
        command: str | None
        relation: str | None
        api_url: str | None
        token: str | None
        show_help: bool
        show_version: bool
    """
    result = {
        "command": None,
        "relation": None,
        "api_url": None,
        "token": None,
        "show_help": False,
        "show_version": False,
    }

    i = 0
    while i < len(args):
        arg = args[i]

        if arg in ("--api-url", "--token"):
            if i + 1 < len(args):
                result[arg[2:].replace("-", "_")] = args[i + 1]
                i += 1
            else:
                print(f"Error: {arg} requires a value")
                sys.exit(1)
        elif arg in ("--help", "-h"):
            result["show_help"] = True
        elif arg in ("--version", "-v"):
            result["show_version"] = True
        elif arg.startswith("-"):
            print(f"Unknown option: {arg}")
            print("Run 'relsync --help' for usage.")
            sys.exit(1)
        elif result["command"] is None:
            if arg not in COMMANDS:
                print(f"Unknown command: {arg}")
                print("Run 'relsync --help' for usage.")
                sys.exit(1)
            result["command"] = arg
        elif result["relation"] is None:
            result["relation"] = arg
        else:
            print(f"Unexpected argument: {arg}")
            sys.exit(1)

        i += 1

    return result


def run(args: dict, client: ApiClient) -> int:
    """Execute one command and print its JSON result. Returns the exit code."""
    command = args["command"]
    if command == "relations":
        print(json.dumps(client.relations(), indent=2))
        return 0

    relation = args["relation"]
    if command == "validate":
        report = client.validate(relation)
        print(json.dumps(report, indent=2))
        return 0 if report["sound"] else 1
    if command == "repair":
        report = client.repair(relation)
        print(json.dumps(report, indent=2))
        return 0 if report["complete"] else 1
    print(json.dumps(client.stats(relation), indent=2))
    return 0


def main():
    """Main entry point."""
    args = parse_args(sys.argv[1:])

    # Handle help and version first
    if args["show_version"]:
        print(f"relsync-cli {__version__}")
        return

    if args["show_help"] or args["command"] is None:
        print_help()
        return

    if args["command"] != "relations" and not args["relation"]:
        print(f"Error: {args['command']} requires a relation name")
        sys.exit(1)

    api_url = os.environ.get("RELSYNC_API_URL") or args["api_url"] or DEFAULT_API_URL
    token = args["token"] or os.environ.get("RELSYNC_TOKEN")
    if not token:
        print("Not authenticated. Pass --token or set RELSYNC_TOKEN.")
        sys.exit(1)

    client = ApiClient(api_url, token)
    try:
        code = run(args, client)
    except httpx.HTTPStatusError as e:
        print(f"Error: {e.response.status_code} {e.response.text}")
        code = 1
    except httpx.HTTPError as e:
        print(f"Error: could not reach {api_url} ({e})")
        code = 1
    finally:
        client.close()
    sys.exit(code)


if __name__ == "__main__":
    main()
