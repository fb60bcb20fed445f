#!/usr/bin/env python3
"""
ESCC Report API -- HTTP facade over the ESCC SQL Server stored procedures.

Usage:
  python main.py
  python main.py --port 8080
  python main.py --host 127.0.0.1 --reload

Environment variables (see core/config.py for the full list):
  ACCESS_TOKEN_SECRET   Signing secret for access tokens (>= 32 chars).
  REFRESH_TOKEN_SECRET  Signing secret for refresh tokens (>= 32 chars, different).
  DATABASE_URL          SQLAlchemy URL, e.g. mssql+pyodbc://user:pw@host:1433/db?driver=...
  DEBUG                 true to auto-generate secrets for local development.
"""

import argparse

import uvicorn

from core.config import get_settings


def main() -> None:
    settings = get_settings()

    parser = argparse.ArgumentParser(
        prog="escc-report-api",
        description="Serve the ESCC Report API.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py
  python main.py --port 8080
  DEBUG=true python main.py --reload
        """,
    )
    parser.add_argument(
        "--host",
        default=settings.host,
        help=f"Bind address (default: {settings.host})",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=settings.port,
        help=f"Bind port (default: {settings.port})",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Restart the server when source files change (development only)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Number of worker processes (default: 1; ignored with --reload)",
    )
    args = parser.parse_args()

    uvicorn.run(
        "api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        workers=None if args.reload else args.workers,
    )


if __name__ == "__main__":
    main()
