#!/usr/bin/env python3
"""
NY Tax Credit Utilization: serve the API or export a report.

Usage:
    python main.py serve                        # http://localhost:8000
    python main.py serve --port 9000 --reload
    python main.py export --year-from 2018 --year-to 2022
    python main.py export --program "Film, TV & Theatrical" --format csv -o credits.csv
    python main.py columns                      # print the resolved column map
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from pipeline.columns import ColumnResolver
from pipeline.credits import build_report, fetch_rows
from pipeline.serialize import to_csv, to_payload
from utils.config import AppConfig
from utils.errors import CreditsError
from utils.http import SocrataClient
from utils.query import parse_filter_params


def _serve(args: argparse.Namespace) -> int:
    try:
        import uvicorn
    except ImportError:
        print("Error: uvicorn is not installed.")
        print("  pip install uvicorn[standard]")
        return 1

    print(f"Starting NY credits API at http://{args.host}:{args.port}")
    uvicorn.run(
        "api.app:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="info",
    )
    return 0


def _export(args: argparse.Namespace, client: SocrataClient,
            resolver: ColumnResolver, config: AppConfig) -> int:
    filters = parse_filter_params(
        year_from=args.year_from,
        year_to=args.year_to,
        program=args.program,
        taxpayer_type=args.taxpayer_type,
        view="raw" if args.raw else "agg",
        format=args.format,
    )
    if filters.format == "csv":
        text = to_csv(fetch_rows(filters, client, resolver, max_rows=config.max_rows))
    else:
        result = build_report(filters, client, resolver, max_rows=config.max_rows)
        text = json.dumps(to_payload(result), indent=2) + "\n"

    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(text, encoding="utf-8")
        print(f"Wrote {args.output}")
    else:
        sys.stdout.write(text)
    return 0


def _columns(resolver: ColumnResolver) -> int:
    print(json.dumps(resolver.resolve().to_dict(), indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="NY tax credit utilization API and report exporter.",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Log upstream requests and column discovery",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument(
        "--host", default=os.getenv("APP_HOST", "127.0.0.1"),
        help="Bind address (default: 127.0.0.1 or APP_HOST env var)",
    )
    serve.add_argument(
        "--port", type=int, default=int(os.getenv("APP_PORT", "8000")),
        help="Port to listen on (default: 8000 or APP_PORT env var)",
    )
    serve.add_argument(
        "--reload", action="store_true",
        help="Enable auto-reload on file changes (development mode)",
    )

    export = sub.add_parser("export", help="Fetch, aggregate and write a report")
    export.add_argument("--year-from", type=int, default=None,
                        help="Inclusive lower year bound")
    export.add_argument("--year-to", type=int, default=None,
                        help="Inclusive upper year bound")
    export.add_argument("--program", default=None,
                        help="Comma-separated program names")
    export.add_argument("--taxpayer-type", default=None,
                        help="Taxpayer type")
    export.add_argument("--format", choices=("json", "csv"), default="json",
                        help="Output format (default: json)")
    export.add_argument("--raw", action="store_true",
                        help="Include normalized rows in JSON output")
    export.add_argument("-o", "--output", type=Path, default=None,
                        help="Write to this file instead of stdout")

    sub.add_parser("columns", help="Print the resolved dataset column map")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    if args.command == "serve":
        return _serve(args)

    config = AppConfig.from_env()
    client = SocrataClient(config)
    resolver = ColumnResolver(client)
    try:
        if args.command == "export":
            return _export(args, client, resolver, config)
        return _columns(resolver)
    except CreditsError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        client.close()


if __name__ == "__main__":
    sys.exit(main())
