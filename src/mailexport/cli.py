import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from .auth import authorize, list_accounts
from .config import default_output_dir, normalize_alias
from .exporter import DEFAULT_MAX_RESULTS, search_emails
from .models import ExportResult

_SEARCH_USAGE = (
    'Usage: mailexport-search "query" [account] [max-results] [--output-dir DIR]\n'
    "\n"
    "Examples:\n"
    '  mailexport-search "from:bank@example.com"\n'
    '  mailexport-search "has:attachment" work 100\n'
)


def setup_logging(verbose: bool = False) -> None:
    level = os.environ.get("MAILEXPORT_LOG_LEVEL", "INFO").upper()
    if verbose:
        level = "DEBUG"
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(levelname)-5s  %(message)s",
    )


def _parse_max_results(raw: Optional[str]) -> int:
    # Anything that isn't a positive integer means "use the default".
    try:
        n = int((raw or "").strip())
    except ValueError:
        return DEFAULT_MAX_RESULTS
    return n if n > 0 else DEFAULT_MAX_RESULTS


def _print_progress(done: int, total: int) -> None:
    sys.stdout.write(f"\rProcessing {done}/{total}...")
    sys.stdout.flush()
    if done == total:
        sys.stdout.write("\n")


def _print_export(res: ExportResult, output_dir: Path) -> None:
    if not res.emails:
        print("\nNo emails match your search.\n")
        return

    print("\n=== Export Complete ===")
    print(f"Emails: {res.summary.total}")
    print(f"Attachments: {res.summary.attachments}")
    print(f"Output: {output_dir}")
    print("")


def auth_main(argv: Optional[list[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    parser = argparse.ArgumentParser(
        prog="mailexport-auth",
        description="Authorize a Gmail account, or list the accounts already authorized.",
    )
    parser.add_argument(
        "alias",
        nargs="?",
        default=None,
        help='Account alias to authorize (default: default), or "list" to show saved accounts',
    )
    args = parser.parse_args(argv)

    setup_logging()

    if args.alias == "list":
        try:
            accounts = list_accounts()
        except Exception as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

        print("\n=== Authorized Accounts ===\n")
        if not accounts:
            print("  (none)")
        for acct in accounts:
            print(f"  {acct.alias}: {acct.email if acct.valid else '(token expired or invalid)'}")
        print("")
        return 0

    try:
        authorize(args.alias)
    except Exception as e:
        print(f"Authorization failed: {e}", file=sys.stderr)
        return 1

    print("\nAuthorization complete!")
    return 0


def _search_parser() -> argparse.ArgumentParser:
    # The query is taken from argv before parsing so Gmail operators such as
    # "-in:spam" are never read as options.
    parser = argparse.ArgumentParser(prog="mailexport-search", usage=_SEARCH_USAGE)
    parser.add_argument("account", nargs="?", default=None, help="Account alias (default: default)")
    parser.add_argument("max_results", nargs="?", default=None, help=f"Result cap (default: {DEFAULT_MAX_RESULTS})")
    parser.add_argument("--output-dir", "-o", type=Path, help="Export directory (default: exports/<query>)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return parser


def search_main(argv: Optional[list[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        print(_SEARCH_USAGE)
        return 1

    parser = _search_parser()
    if argv[0] in ("-h", "--help"):
        parser.print_help()
        return 0

    query = argv[0]
    args = parser.parse_args(argv[1:])

    setup_logging(args.verbose)

    account = normalize_alias(args.account)
    max_results = _parse_max_results(args.max_results)
    output_dir = args.output_dir or default_output_dir(query)

    print(f'\nSearching: "{query}"')
    print(f"Account: {account}")
    print(f"Max results: {max_results}\n")

    try:
        res = search_emails(
            query,
            account=account,
            max_results=max_results,
            output_dir=output_dir,
            progress=_print_progress,
        )
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    _print_export(res, output_dir)
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    if not argv or argv[0] in ("-h", "--help", "help"):
        print(
            "Usage:\n"
            "  mailexport auth [alias]\n"
            "  mailexport auth list\n"
            '  mailexport search "query" [alias] [max-results] [--output-dir DIR]\n'
        )
        return 0 if argv else 1

    cmd = argv[0]
    rest = argv[1:]

    if cmd == "auth":
        return auth_main(rest)
    if cmd == "search":
        return search_main(rest)

    print(f"Unknown command: {cmd}", file=sys.stderr)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
