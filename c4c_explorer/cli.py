"""
c4c-export

Purpose:
  Resolve a C4C ticket and write its internal memos or e-mail notes to a
  JSON or CSV file (or stdout), the same payloads the API returns.

Credential precedence:
  1) --username / --password (CLI)
  2) env C4C_USERNAME / C4C_PASSWORD (or .env)

Examples:
  c4c-export 12345
  c4c-export 12345 --mode memos --format csv -o memos.csv
  C4C_TENANT_URL=https://my123456.crm.ondemand.com c4c-export 12345 --limit 20

Exit codes:
  0 = success
  1 = invalid input or ticket not found
  2 = upstream/network error
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from .core.errors import InvalidInput, NotFound, UpstreamError, UpstreamMalformedResponse
from .core.logging import setup_logging
from .services.c4c import C4CService
from .services.export import encode_csv, encode_json, export_filename, notes_from_result
from .services.upstream import Credentials
from .settings import get_settings

logger = logging.getLogger(__name__)

MODE_KINDS = {
    "emails": "email-notes-collection",
    "memos": "internal-memos",
}


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Export C4C internal memos or e-mail notes for a ticket.")
    p.add_argument("ticket_id", help="External ticket (service request) ID.")
    p.add_argument("--mode", choices=sorted(MODE_KINDS), default="emails",
                   help="emails = all e-mail notes (default), memos = internal memo activities.")
    p.add_argument("--format", dest="output_format", choices=["json", "csv"], default="json",
                   help="Output format (default: json).")
    p.add_argument("-o", "--output", default=None,
                   help="Output file. Use '-' for stdout; defaults to <kind>-<ticket>.<format>.")
    p.add_argument("--tenant-url", default=None,
                   help="Tenant URL; only the origin is used. Defaults to C4C_TENANT_URL.")
    p.add_argument("--username", default=None, help="Basic Auth user. Overrides C4C_USERNAME.")
    p.add_argument("--password", default=None, help="Basic Auth password. Overrides C4C_PASSWORD.")
    p.add_argument("--limit", type=int, default=None,
                   help="Expand at most this many reference ids (default: all).")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging to stderr.")
    return p.parse_args(argv)


async def fetch_result(service: C4CService, args: argparse.Namespace) -> Dict[str, Any]:
    credentials = None
    if args.username or args.password:
        credentials = Credentials(args.username or "", args.password or "")
    if args.mode == "memos":
        return await service.resolve_internal_memos(
            args.tenant_url, args.ticket_id, credentials, limit=args.limit
        )
    return await service.resolve_email_notes_collection(
        args.tenant_url, args.ticket_id, credentials, limit=args.limit
    )


def render(result: Dict[str, Any], output_format: str) -> str:
    if output_format == "csv":
        return encode_csv(notes_from_result(result))
    return encode_json(result)


def main(argv: Optional[Sequence[str]] = None, service: Optional[C4CService] = None) -> int:
    args = parse_args(argv)
    setup_logging("DEBUG" if args.verbose else "WARNING")
    if args.limit is not None and args.limit < 1:
        print("ERROR: --limit must be at least 1", file=sys.stderr)
        return 1

    service = service or C4CService(get_settings())
    try:
        result = asyncio.run(fetch_result(service, args))
    except (InvalidInput, NotFound) as exc:
        print(f"ERROR: {exc.message}", file=sys.stderr)
        return 1
    except (UpstreamError, UpstreamMalformedResponse) as exc:
        print(f"ERROR: {exc.message}", file=sys.stderr)
        return 2

    content = render(result, args.output_format)
    if args.output == "-":
        sys.stdout.write(content + "\n")
        return 0

    target = Path(args.output or export_filename(MODE_KINDS[args.mode], args.ticket_id, args.output_format))
    target.write_text(content, encoding="utf-8")
    logger.info("export.written", extra={"extra_data": {"path": str(target), "notes": len(result.get("notes", []))}})
    print(str(target))
    return 0


if __name__ == "__main__":
    sys.exit(main())
