"""
QR Token Lifecycle Simulation

Drives a running server through the table-token lifecycle, then fires
concurrent generate requests for a single table to surface the accepted
generate race (two simultaneously active tokens for one table).

Run from project root: python scripts/simulate.py --base-url http://localhost:8001
"""

import argparse
import asyncio
import random
import string
import sys
import time
from datetime import datetime
from typing import Any

import httpx

# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

API_BASE_URL = "http://localhost:8001"
CONCURRENT_GENERATES = 20


def random_handle(prefix: str = "sim") -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=8))
    return f"{prefix}{suffix}"


async def create_restaurant(client: httpx.AsyncClient) -> str:
    """Register a throwaway restaurant and return its id."""
    handle = random_handle()
    response = await client.post(
        f"{API_BASE_URL}/api/restaurants",
        json={"name": f"Simulation {handle}", "username": handle},
    )
    response.raise_for_status()
    return response.json()["id"]


# =============================================================================
# SINGLE FLOWS
# =============================================================================

async def run_single_flows(client: httpx.AsyncClient) -> str | None:
    """Walk one table through generate, verify, refresh, list and deactivate."""
    print("\n" + "=" * 70)
    print("🧪 TESTING INDIVIDUAL FLOWS")
    print("=" * 70)

    print("\n1️⃣ Health Check...")
    response = await client.get(f"{API_BASE_URL}/health")
    if response.status_code != 200:
        print(f"   ❌ Failed: {response.text}")
        return None
    print(f"   ✅ Status: {response.json().get('status')}")

    print("\n2️⃣ Register Restaurant...")
    restaurant_id = await create_restaurant(client)
    print(f"   ✅ Restaurant {restaurant_id}")

    print("\n3️⃣ Generate Token for Table 5...")
    response = await client.post(
        f"{API_BASE_URL}/api/qr/generate",
        json={"restaurantId": restaurant_id, "tableNumber": "5", "duration": 2},
    )
    if response.status_code != 201:
        print(f"   ❌ Failed: {response.text}")
        return None
    token = response.json()["data"]["token"]
    print(f"   ✅ {response.json()['data']['qrUrl']}")

    print("\n4️⃣ Verify Token...")
    response = await client.get(f"{API_BASE_URL}/api/qr/verify/{token}")
    data = response.json()
    print(f"   {'✅' if data.get('success') else '❌'} {data.get('data') or data.get('message')}")

    print("\n5️⃣ Refresh Token...")
    response = await client.post(f"{API_BASE_URL}/api/qr/refresh/{token}", json={"duration": 3})
    print(f"   ✅ {response.json().get('data', {}).get('message')}")

    print("\n6️⃣ List Active Tables...")
    response = await client.get(f"{API_BASE_URL}/api/qr/restaurant/{restaurant_id}/tables")
    print(f"   ✅ {len(response.json()['data'])} active token(s)")

    print("\n7️⃣ Deactivate, then Verify Again...")
    await client.delete(f"{API_BASE_URL}/api/qr/deactivate/{token}")
    response = await client.get(f"{API_BASE_URL}/api/qr/verify/{token}")
    print(f"   ✅ {response.status_code} {response.json().get('error')}")

    print("\n8️⃣ Cleanup Sweep...")
    response = await client.post(f"{API_BASE_URL}/api/qr/cleanup")
    print(f"   ✅ {response.json().get('message')}")

    return restaurant_id


# =============================================================================
# CONCURRENT GENERATE SIMULATION
# =============================================================================

async def send_generate(
    client: httpx.AsyncClient,
    restaurant_id: str,
    attempt: int,
) -> dict[str, Any]:
    """Request a token for the shared table."""
    start_time = time.time()
    try:
        response = await client.post(
            f"{API_BASE_URL}/api/qr/generate",
            json={"restaurantId": restaurant_id, "tableNumber": "1", "createdBy": "simulation"},
            timeout=30.0,
        )
        return {
            "attempt": attempt,
            "success": response.status_code == 201,
            "error": None if response.status_code == 201 else response.text[:100],
            "time": round(time.time() - start_time, 3),
        }
    except httpx.HTTPError as e:
        return {
            "attempt": attempt,
            "success": False,
            "error": str(e)[:100],
            "time": round(time.time() - start_time, 3),
        }


async def run_simulation(num_requests: int = CONCURRENT_GENERATES) -> dict[str, Any]:
    """Fire concurrent generates for one table and count surviving active tokens."""
    print("=" * 70)
    print("🔥 CONCURRENT GENERATE SIMULATION")
    print("=" * 70)
    print(f"📋 Requests: {num_requests}")
    print(f"🎯 Target: {API_BASE_URL}")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    start_time = time.time()
    async with httpx.AsyncClient() as client:
        restaurant_id = await create_restaurant(client)
        results = await asyncio.gather(
            *(send_generate(client, restaurant_id, i + 1) for i in range(num_requests))
        )
        response = await client.get(f"{API_BASE_URL}/api/qr/restaurant/{restaurant_id}/tables")
        active = [t for t in response.json()["data"] if t["tableNumber"] == "1"]

    total_time = round(time.time() - start_time, 2)
    successful = [r for r in results if r["success"]]
    failed = [r for r in results if not r["success"]]

    print(f"\n✅ Successful: {len(successful)}/{num_requests}")
    print(f"❌ Failed: {len(failed)}/{num_requests}")
    print(f"⏱️  Total Time: {total_time}s")
    print(f"🔑 Active tokens for table 1: {len(active)}")
    if len(active) > 1:
        print("   ⚠️ Generate race observed: more than one active token for the table")

    for f in failed[:5]:
        print(f"   Attempt #{f['attempt']}: {f['error']}")

    return {
        "total": num_requests,
        "successful": len(successful),
        "failed": len(failed),
        "active_tokens": len(active),
        "total_time": total_time,
    }


async def main(args: argparse.Namespace) -> int:
    if not args.skip_flows:
        async with httpx.AsyncClient() as client:
            if await run_single_flows(client) is None:
                print("\n❌ Pre-flight flows failed.")
                return 1
        print("\n✅ Pre-flight flows passed!")

    await run_simulation(args.requests)
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="QR token lifecycle simulation")
    parser.add_argument("--base-url", default=API_BASE_URL, help="Server base URL")
    parser.add_argument("--requests", type=int, default=CONCURRENT_GENERATES,
                        help="Concurrent generate requests for one table")
    parser.add_argument("--skip-flows", action="store_true", help="Skip individual flows")
    args = parser.parse_args()

    API_BASE_URL = args.base_url.rstrip("/")
    sys.exit(asyncio.run(main(args)))
