"""
Booking Rush Simulation Script

Fires many concurrent bookings at a running PrePlate API to check that
orders, order numbers and totals hold up under load.
Run from project root: python scripts/simulate.py

Needs at least one open restaurant with available menu items.
"""

import argparse
import asyncio
import random
import sys
import time
import uuid
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Optional

import httpx

# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Configuration
API_BASE_URL = "http://localhost:8001"
TOTAL_ORDERS = 50
PASSWORD = "simulate1"

FIRST_NAMES = ["John", "Jane", "Mike", "Sarah", "Tom", "Emma", "David", "Lisa", "Chris", "Amy"]
LAST_NAMES = ["Smith", "Johnson", "Williams", "Brown", "Jones", "Garcia", "Miller", "Davis", "Wilson", "Taylor"]
SPECIAL_REQUESTS = [None, "Window seat", "Birthday dinner", "High chair please", "Quiet table"]


def generate_random_diner(run_id: str, n: int) -> dict[str, str]:
    """Generate a unique diner account payload."""
    first = random.choice(FIRST_NAMES)
    last = random.choice(LAST_NAMES)
    return {
        "type": "user",
        "email": f"sim-{run_id}-{n}@preplate.test",
        "password": PASSWORD,
        "name": f"{first} {last}",
        "phone": f"+1555{random.randint(1000000, 9999999)}",
    }


def generate_random_items(menu: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Pick 1-4 distinct dishes with quantities."""
    picks = random.sample(menu, k=min(len(menu), random.randint(1, 4)))
    return [{"menu_item_id": item["id"], "quantity": random.randint(1, 3)} for item in picks]


def generate_booking_payload(restaurant_id: int, menu: list[dict[str, Any]]) -> dict[str, Any]:
    when = datetime.now() + timedelta(days=random.randint(1, 14), hours=random.randint(0, 6))
    return {
        "restaurant_id": restaurant_id,
        "items": generate_random_items(menu),
        "booking_date_time": when.replace(minute=0, second=0, microsecond=0).isoformat(),
        "guests": random.randint(1, 6),
        "special_requests": random.choice(SPECIAL_REQUESTS),
    }


# =============================================================================
# RESTAURANT DISCOVERY
# =============================================================================

async def find_bookable_restaurant(client: httpx.AsyncClient) -> Optional[tuple[dict, list[dict]]]:
    """First open restaurant that has something on the menu."""
    response = await client.get(f"{API_BASE_URL}/api/restaurants", params={"is_open": "true", "limit": 100})
    response.raise_for_status()

    for summary in response.json()["restaurants"]:
        detail = await client.get(f"{API_BASE_URL}/api/restaurants/{summary['id']}")
        detail.raise_for_status()
        menu = [item for category in detail.json()["categories"] for item in category["menu_items"]]
        if menu:
            return summary, menu
    return None


# =============================================================================
# SINGLE BOOKING FLOW
# =============================================================================

async def send_booking(
    client: httpx.AsyncClient,
    order_num: int,
    run_id: str,
    restaurant_id: int,
    menu: list[dict[str, Any]],
) -> dict[str, Any]:
    """Register a diner, then book. Only the booking request is timed."""
    try:
        registered = await client.post(
            f"{API_BASE_URL}/api/auth/register",
            json=generate_random_diner(run_id, order_num),
            timeout=30.0,
        )
        if registered.status_code != 201:
            return {"order_num": order_num, "success": False, "error": registered.text[:100], "time": 0.0}
        token = registered.json()["token"]

        start_time = time.time()
        response = await client.post(
            f"{API_BASE_URL}/api/orders",
            json=generate_booking_payload(restaurant_id, menu),
            headers={"Authorization": f"Bearer {token}"},
            timeout=30.0,
        )
        elapsed = round(time.time() - start_time, 3)

        if response.status_code == 201:
            order = response.json()["order"]
            return {
                "order_num": order_num,
                "success": True,
                "order_number": order["order_number"],
                "total": Decimal(order["total"]),
                "time": elapsed,
            }
        return {"order_num": order_num, "success": False, "error": response.text[:100], "time": elapsed}
    except httpx.HTTPError as e:
        return {"order_num": order_num, "success": False, "error": str(e)[:100], "time": 0.0}


# =============================================================================
# MAIN SIMULATION RUNNER
# =============================================================================

async def run_simulation(num_orders: int = TOTAL_ORDERS) -> dict[str, Any]:
    """
    Run the booking rush.

    Args:
        num_orders: Number of concurrent bookings
    """
    print("=" * 70)
    print("🔥 BOOKING RUSH - HIGH CONCURRENCY TEST")
    print("=" * 70)
    print(f"📋 Total Bookings: {num_orders}")
    print(f"🎯 Target: {API_BASE_URL}")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    run_id = uuid.uuid4().hex[:8]

    async with httpx.AsyncClient() as client:
        found = await find_bookable_restaurant(client)
        if found is None:
            print("\n❌ No open restaurant with available menu items. Seed one first.")
            return {"total": num_orders, "successful": 0, "failed": num_orders, "results": []}

        restaurant, menu = found
        print(f"\n🍽️  Restaurant: {restaurant['name']} (#{restaurant['id']}), {len(menu)} dishes")
        print("\n🚀 Firing bookings...\n")

        start_time = time.time()
        tasks = [send_booking(client, i + 1, run_id, restaurant["id"], menu) for i in range(num_orders)]
        results = await asyncio.gather(*tasks)
        total_time = round(time.time() - start_time, 2)

    successful = [r for r in results if r["success"]]
    failed = [r for r in results if not r["success"]]
    order_numbers = [r["order_number"] for r in successful]

    print("\n" + "=" * 70)
    print("📊 SIMULATION RESULTS")
    print("=" * 70)

    print(f"\n✅ Successful Bookings: {len(successful)}/{num_orders}")
    print(f"❌ Failed Bookings: {len(failed)}/{num_orders}")
    print(f"⏱️  Total Time: {total_time}s")

    if len(set(order_numbers)) != len(order_numbers):
        print("\n⚠️  Duplicate order numbers returned!")

    if successful:
        avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
        min_time = min(r["time"] for r in successful)
        max_time = max(r["time"] for r in successful)
        total_billed = sum((r["total"] for r in successful), Decimal("0"))

        print("\n📈 Performance Metrics:")
        print(f"   Average Response: {avg_time}s")
        print(f"   Fastest: {min_time}s")
        print(f"   Slowest: {max_time}s")
        print(f"   💰 Total Billed (incl. platform fee): ${total_billed}")

    if failed:
        print("\n⚠️  Failed Booking Details (showing first 5):")
        for f in failed[:5]:
            print(f"   Booking #{f['order_num']}: {f.get('error', 'Unknown error')}")

    print("\n" + "=" * 70)
    print("🔍 VERIFICATION STEPS")
    print("=" * 70)
    print("1. Run: python scripts/verify.py")
    print("2. Every order should have items and consistent totals")
    print("=" * 70)

    return {
        "total": num_orders,
        "successful": len(successful),
        "failed": len(failed),
        "total_time": total_time,
        "results": results,
    }


async def test_single_flows() -> bool:
    """Pre-flight checks before the rush."""
    print("\n" + "=" * 70)
    print("🧪 TESTING INDIVIDUAL FLOWS")
    print("=" * 70)

    async with httpx.AsyncClient() as client:
        print("\n1️⃣ Health Check...")
        response = await client.get(f"{API_BASE_URL}/health")
        if response.status_code != 200:
            print(f"   ❌ Failed: {response.text}")
            return False
        data = response.json()
        print(f"   ✅ Status: {data.get('status')}")
        print(f"   Database: {data.get('database')}")

        print("\n2️⃣ Restaurant Listing...")
        found = await find_bookable_restaurant(client)
        if found is None:
            print("   ❌ No bookable restaurant")
            return False
        print(f"   ✅ {found[0]['name']}")

        print("\n3️⃣ Single Booking...")
        result = await send_booking(client, 0, uuid.uuid4().hex[:8], found[0]["id"], found[1])
        if not result["success"]:
            print(f"   ❌ {result['error']}")
            return False
        print(f"   ✅ Order {result['order_number']} created, total ${result['total']}")

    print("\n" + "=" * 70)
    return True


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Booking Rush Simulation")
    parser.add_argument("--orders", type=int, default=TOTAL_ORDERS, help="Number of bookings")
    parser.add_argument("--skip-tests", action="store_true", help="Skip pre-flight checks")
    args = parser.parse_args()

    if not args.skip_tests:
        if not asyncio.run(test_single_flows()):
            print("\n❌ Pre-flight tests failed. Fix issues before running simulation.")
            sys.exit(1)
        print("\n✅ Pre-flight tests passed!")

    asyncio.run(run_simulation(num_orders=args.orders))
