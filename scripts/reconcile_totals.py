#!/usr/bin/env python3
"""Category total reconciliation script.

Compares each category's ``current_amount`` column against the sum of its
``donations`` rows and reports any discrepancies.  A webhook whose total
update failed after the donation was recorded leaves the category
under-counted; ``--fix`` rewrites those totals from the donation log.
Run ``--fix`` while no webhooks are in flight: a donation committed but not
yet added to its total would otherwise be counted twice.

Usage:
    DATABASE_URL=postgresql://... python scripts/reconcile_totals.py [--fix]

Exit codes:
    0 -- all totals match (or were fixed)
    1 -- one or more discrepancies found and left in place
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from datetime import datetime, timezone
from decimal import Decimal

import asyncpg  # type: ignore[import-untyped]

from fundraiser.database import to_asyncpg_dsn

DEFAULT_DATABASE_URL = "postgresql://app:devpassword@db:5432/fundraiser"

DISCREPANCY_QUERY = """
SELECT
    c.id AS category_id,
    c.current_amount AS stored_total,
    COALESCE(SUM(d.amount), 0)::numeric(12, 2) AS computed_total
FROM categories c
LEFT JOIN donations d ON d.category_id = c.id
GROUP BY c.id, c.current_amount
HAVING c.current_amount <> COALESCE(SUM(d.amount), 0)
ORDER BY c.id
"""

FIX_QUERY = """
UPDATE categories c
   SET current_amount = (
           SELECT COALESCE(SUM(d.amount), 0)
             FROM donations d
            WHERE d.category_id = c.id
       ),
       updated_at = now()
 WHERE c.id = $1
"""


def _get_dsn() -> str:
    """Return a raw ``postgresql://`` DSN (strip any SQLAlchemy dialect prefix)."""
    return to_asyncpg_dsn(os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL))


def _to_discrepancy(row) -> dict:
    stored = Decimal(row["stored_total"])
    computed = Decimal(row["computed_total"])
    return {
        "category_id": row["category_id"],
        "stored_total": str(stored),
        "computed_total": str(computed),
        "difference": str(stored - computed),
    }


async def reconcile(dsn: str, fix: bool = False) -> list[dict]:
    """Run the reconciliation and return a list of discrepancy dicts.

    With *fix*, the stored totals are overwritten in one transaction.
    """
    conn: asyncpg.Connection = await asyncpg.connect(dsn)
    try:
        async with conn.transaction():
            rows = await conn.fetch(DISCREPANCY_QUERY)
            discrepancies = [_to_discrepancy(row) for row in rows]
            if fix:
                for row in rows:
                    await conn.execute(FIX_QUERY, row["category_id"])
        return discrepancies
    finally:
        await conn.close()


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument(
        "--fix",
        action="store_true",
        help="rewrite mismatched totals from the donation log",
    )
    return parser.parse_args(argv)


async def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    dsn = _get_dsn()
    discrepancies = await reconcile(dsn, fix=args.fix)

    report = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "total_discrepancies": len(discrepancies),
        "fixed": args.fix,
        "discrepancies": discrepancies,
    }

    json.dump(report, sys.stdout, indent=2)
    sys.stdout.write("\n")

    return 1 if discrepancies and not args.fix else 0


if __name__ == "__main__":
    exit_code = asyncio.run(main())
    sys.exit(exit_code)
