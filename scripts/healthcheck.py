#!/usr/bin/env python3
"""HRMS health check — verify the API and its database are reachable.

Checks:
  1. /api/v1/health responds 200 with status "healthy"
  2. /api/v1/public/health responds 200 with status "UP"
  3. The database accepts a trivial query (skipped with --skip-db)

Usage:
    python scripts/healthcheck.py --url http://localhost:8000
    python scripts/healthcheck.py --json --skip-db

Exit codes:
    0 = all checks passed
    1 = one or more checks failed
    2 = target unreachable
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

import httpx


class CheckResult:
    """Single health check result."""

    def __init__(self, name: str, passed: bool, message: str, detail: str = ""):
        self.name = name
        self.passed = passed
        self.message = message
        self.detail = detail

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "passed": self.passed,
            "message": self.message,
            "detail": self.detail,
        }

    def __str__(self) -> str:
        s = f"[{'OK' if self.passed else 'FAIL'}] {self.name}: {self.message}"
        if self.detail:
            s += f"\n     {self.detail}"
        return s


def check_endpoint(client: httpx.Client, name: str, path: str, expected: str) -> CheckResult:
    resp = client.get(path)
    if resp.status_code != 200:
        return CheckResult(name, False, f"HTTP {resp.status_code} (expected 200)", f"URL: {resp.url}")
    status = resp.json().get("status")
    if status != expected:
        return CheckResult(name, False, f"Status: {status} (expected {expected!r})", resp.text)
    return CheckResult(name, True, "Healthy", f"URL: {resp.url}")


async def _ping_database() -> None:
    from sqlalchemy import text

    from hrms.database import engine

    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    await engine.dispose()


def check_database() -> CheckResult:
    try:
        asyncio.run(_ping_database())
    except Exception as exc:
        return CheckResult("Database", False, "Query failed", str(exc))
    return CheckResult("Database", True, "Reachable")


def main() -> int:
    parser = argparse.ArgumentParser(description="HRMS health check")
    parser.add_argument("--url", default="http://localhost:8000", help="API base URL")
    parser.add_argument("--timeout", type=float, default=10.0)
    parser.add_argument("--skip-db", action="store_true", help="skip the database check")
    parser.add_argument("--json", action="store_true", help="machine-readable output")
    args = parser.parse_args()

    try:
        with httpx.Client(base_url=args.url.rstrip("/"), timeout=args.timeout) as client:
            results = [
                check_endpoint(client, "Backend API", "/api/v1/health", "healthy"),
                check_endpoint(client, "Public health", "/api/v1/public/health", "UP"),
            ]
    except httpx.TransportError as exc:
        print(f"Cannot reach {args.url}: {exc}", file=sys.stderr)
        return 2

    if not args.skip_db:
        results.append(check_database())

    if args.json:
        print(json.dumps([r.to_dict() for r in results], indent=2))
    else:
        for r in results:
            print(r)
    return 0 if all(r.passed for r in results) else 1


if __name__ == "__main__":
    sys.exit(main())
