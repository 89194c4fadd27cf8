"""
Order Ledger Verification Script

Reads every order and order item from the database and checks:
    - no order without items
    - order numbers are unique
    - subtotal equals the sum of snapshot unit price x quantity
    - platform fee is 20% of subtotal (half-up, cents)
    - total equals subtotal + platform fee

Run from project root: python scripts/verify.py [--database-url URL]
"""

import argparse
import os
import sys
from datetime import datetime
from decimal import Decimal

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pandas as pd  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402

from preplate.core.config import get_settings  # noqa: E402
from preplate.services.pricing import calculate_platform_fee, to_money  # noqa: E402

ORDERS_SQL = "SELECT id, order_number, status, payment_status, subtotal, platform_fee, total FROM orders"
ITEMS_SQL = "SELECT order_id, quantity, unit_price FROM order_items"


def sync_url(database_url: str) -> str:
    """The async driver URL, rewritten for a blocking engine."""
    return database_url.replace("sqlite+aiosqlite", "sqlite", 1)


def load_ledger(database_url: str) -> tuple[pd.DataFrame, pd.DataFrame]:
    engine = create_engine(sync_url(database_url))
    try:
        with engine.connect() as conn:
            orders = pd.read_sql(ORDERS_SQL, conn)
            items = pd.read_sql(ITEMS_SQL, conn)
    finally:
        engine.dispose()
    return orders, items


def find_problems(orders: pd.DataFrame, items: pd.DataFrame) -> list[str]:
    problems = []

    duplicates = orders["order_number"].duplicated().sum()
    if duplicates:
        problems.append(f"{duplicates} duplicate order numbers")

    orphans = set(orders["id"]) - set(items["order_id"])
    if orphans:
        problems.append(f"{len(orphans)} orders without items: {sorted(orphans)[:10]}")

    items = items.assign(
        line_total=[to_money(Decimal(str(p)) * int(q)) for p, q in zip(items["unit_price"], items["quantity"])]
    )
    expected_subtotals = items.groupby("order_id")["line_total"].agg(lambda s: sum(s, Decimal("0")))

    for row in orders.itertuples(index=False):
        subtotal = to_money(Decimal(str(row.subtotal)))
        platform_fee = to_money(Decimal(str(row.platform_fee)))
        total = to_money(Decimal(str(row.total)))

        expected = expected_subtotals.get(row.id)
        if expected is not None and to_money(expected) != subtotal:
            problems.append(f"{row.order_number}: subtotal {subtotal} != items {to_money(expected)}")
        if calculate_platform_fee(subtotal) != platform_fee:
            problems.append(f"{row.order_number}: platform fee {platform_fee} != {calculate_platform_fee(subtotal)}")
        if subtotal + platform_fee != total:
            problems.append(f"{row.order_number}: total {total} != {subtotal + platform_fee}")

    return problems


def verify_ledger(database_url: str) -> bool:
    """Print a ledger integrity report; True if nothing is wrong."""
    print("=" * 60)
    print("🔍 ORDER LEDGER VERIFICATION REPORT")
    print("=" * 60)
    print(f"⏰ Timestamp: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("=" * 60)

    try:
        orders, items = load_ledger(database_url)
    except Exception as e:
        print(f"\n❌ Could not read the database: {e}")
        return False

    print("\n📊 STATISTICS:")
    print(f"   Total Orders: {len(orders)}")
    print(f"   Total Items: {len(items)}")
    if len(orders):
        print("\n   By status:")
        print(orders["status"].value_counts().to_string())

    problems = find_problems(orders, items)
    if problems:
        print(f"\n⚠️ {len(problems)} problems found (showing first 20):")
        for problem in problems[:20]:
            print(f"   - {problem}")
    else:
        print("\n✅ No integrity problems")

    if len(orders):
        billed = sum((to_money(Decimal(str(t))) for t in orders["total"]), Decimal("0"))
        fees = sum((to_money(Decimal(str(f))) for f in orders["platform_fee"]), Decimal("0"))
        print("\n💰 REVENUE:")
        print(f"   Billed: ${billed}")
        print(f"   Platform fees: ${fees}")

        print("\n📋 RECENT ORDERS:")
        print("-" * 60)
        print(orders[["order_number", "status", "payment_status", "total"]].tail(5).to_string(index=False))

    print("\n" + "=" * 60)
    print("✅ VERIFICATION COMPLETE" if not problems else "❌ VERIFICATION FAILED")
    print("=" * 60)

    return not problems


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Order ledger verification")
    parser.add_argument("--database-url", default=None, help="Defaults to DATABASE_URL")
    args = parser.parse_args()

    ok = verify_ledger(args.database_url or get_settings().database_url)
    sys.exit(0 if ok else 1)
