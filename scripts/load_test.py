"""Load test: drive synthetic users through discovery, swiping and chat.

Tokens are minted locally, so JWT_SECRET (and the other required settings)
must match the target server's environment.
Usage: python -m scripts.load_test [--count 100] [--base-url http://localhost:8000]
"""
import argparse
import asyncio
import random
import statistics
import sys
import time
import uuid
from typing import Any

import httpx

sys.path.insert(0, ".")

from app.utils.auth import encode_access_token


DEFAULT_BASE_URL = "http://localhost:8000"
DEFAULT_COUNT = 100

INTERESTS = ["hiking", "music", "cooking", "travel", "art", "yoga", "gaming", "reading"]
OPENERS = [
    "Hey! How's your week going?",
    "Okay, important question: pineapple on pizza?",
    "Your hiking photos are great, where was that?",
    "Hi there, what are you up to this weekend?",
]


def _headers(user_id: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {encode_access_token(user_id)}"}


async def create_user(client: httpx.AsyncClient, base_url: str, index: int) -> dict[str, Any] | None:
    """Register a single user via the API."""
    suffix = uuid.uuid4().hex[:8]
    payload = {
        "username": f"load_{index}_{suffix}",
        "email": f"loadtest_{index}_{suffix}@test.com",
        "full_name": f"Load Test User {index}",
        "birth_date": f"{random.randint(1980, 2003)}-0{random.randint(1, 9)}-15",
        "gender": random.choice(["Man", "Woman"]),
        "interests": random.sample(INTERESTS, 3),
        "latitude": 51.5 + random.uniform(-0.2, 0.2),
        "longitude": -0.12 + random.uniform(-0.2, 0.2),
    }
    try:
        resp = await client.post(f"{base_url}/api/users/", json=payload)
        if resp.status_code in (200, 201):
            return resp.json()
        print(f"  [WARN] User {index}: status {resp.status_code}")
        return None
    except httpx.HTTPError as e:
        print(f"  [ERROR] User {index}: {e}")
        return None


async def swipe(client: httpx.AsyncClient, base_url: str, actor: str, target: str) -> dict[str, Any] | None:
    action = random.choice(["like", "like", "superlike", "dislike"])
    resp = await client.post(
        f"{base_url}/api/match/swipe",
        json={"target_user_id": target, "action": action},
        headers=_headers(actor),
    )
    return resp.json() if resp.status_code == 200 else None


async def run_load_test(base_url: str, count: int) -> dict[str, Any]:
    """Run the full load test pipeline."""
    print(f"\n{'='*60}")
    print(f"Kindred Load Test: {count} users")
    print(f"Target: {base_url}")
    print(f"{'='*60}\n")

    results = {
        "total": count,
        "users_created": 0,
        "discovery_ok": 0,
        "swipes": 0,
        "matches": 0,
        "messages_sent": 0,
        "errors": [],
        "timings": {"user_creation": [], "discovery": [], "swipe": [], "chat": []},
    }
    matched_pairs: list[tuple[str, str]] = []

    async with httpx.AsyncClient(timeout=30.0) as client:
        # Phase 1: Create users
        print(f"[1/4] Creating {count} users...")
        user_ids = []
        for i in range(count):
            t0 = time.monotonic()
            user = await create_user(client, base_url, i)
            results["timings"]["user_creation"].append(time.monotonic() - t0)
            if user and "id" in user:
                user_ids.append(user["id"])
                results["users_created"] += 1
            if (i + 1) % 20 == 0:
                print(f"  Created {i + 1}/{count} users")
        print(f"  -> {results['users_created']} users created\n")

        # Phase 2: Discovery for every user
        print(f"[2/4] Loading discovery for {len(user_ids)} users...")
        for uid in user_ids:
            t0 = time.monotonic()
            try:
                resp = await client.get(f"{base_url}/api/match/discovery", headers=_headers(uid))
                if resp.status_code == 200:
                    results["discovery_ok"] += 1
            except httpx.HTTPError as e:
                results["errors"].append(f"Discovery {uid[:8]}: {e}")
            results["timings"]["discovery"].append(time.monotonic() - t0)
        print(f"  -> {results['discovery_ok']} discovery pages served\n")

        # Phase 3: Random pairs swipe on each other in both directions
        n_pairs = min(50, len(user_ids) * (len(user_ids) - 1) // 2)
        pairs = set()
        while len(pairs) < n_pairs and len(user_ids) >= 2:
            a, b = random.sample(user_ids, 2)
            pairs.add(tuple(sorted([a, b])))

        print(f"[3/4] Swiping across {len(pairs)} pairs...")
        for a, b in pairs:
            for actor, target in ((a, b), (b, a)):
                t0 = time.monotonic()
                try:
                    outcome = await swipe(client, base_url, actor, target)
                except httpx.HTTPError as e:
                    results["errors"].append(f"Swipe {actor[:8]}x{target[:8]}: {e}")
                    outcome = None
                results["timings"]["swipe"].append(time.monotonic() - t0)
                if outcome is None:
                    continue
                results["swipes"] += 1
                if outcome["match"]:
                    results["matches"] += 1
                    matched_pairs.append((actor, target))
        print(f"  -> {results['swipes']} swipes, {results['matches']} matches\n")

        # Phase 4: Matched pairs exchange an opener
        print(f"[4/4] Sending openers for {len(matched_pairs)} matches...")
        for sender, receiver in matched_pairs:
            t0 = time.monotonic()
            try:
                resp = await client.post(
                    f"{base_url}/api/chat/send",
                    json={"receiver_id": receiver, "message": random.choice(OPENERS)},
                    headers=_headers(sender),
                )
                if resp.status_code == 201:
                    results["messages_sent"] += 1
            except httpx.HTTPError as e:
                results["errors"].append(f"Chat {sender[:8]}x{receiver[:8]}: {e}")
            results["timings"]["chat"].append(time.monotonic() - t0)
        print(f"  -> {results['messages_sent']} messages sent\n")

    # Summary
    print(f"{'='*60}")
    print("LOAD TEST RESULTS")
    print(f"{'='*60}")
    print(f"Users created:    {results['users_created']}/{count}")
    print(f"Discovery pages:  {results['discovery_ok']}/{results['users_created']}")
    print(f"Swipes recorded:  {results['swipes']}")
    print(f"Matches:          {results['matches']}")
    print(f"Messages sent:    {results['messages_sent']}/{len(matched_pairs)}")

    for phase, timings in results["timings"].items():
        if timings:
            print(f"\n{phase} latency:")
            print(f"  mean:   {statistics.mean(timings):.2f}s")
            print(f"  median: {statistics.median(timings):.2f}s")
            print(f"  p95:    {sorted(timings)[int(len(timings)*0.95)]:.2f}s")
            print(f"  max:    {max(timings):.2f}s")

    if results["errors"]:
        print(f"\nErrors ({len(results['errors'])}):")
        for e in results["errors"][:10]:
            print(f"  - {e}")

    print(f"\n{'='*60}\n")
    return results


def main():
    parser = argparse.ArgumentParser(description="Kindred Load Test")
    parser.add_argument("--count", type=int, default=DEFAULT_COUNT, help="Number of users to create")
    parser.add_argument("--base-url", type=str, default=DEFAULT_BASE_URL, help="API base URL")
    args = parser.parse_args()

    results = asyncio.run(run_load_test(args.base_url, args.count))

    # Exit with error if too many failures
    success_rate = results["discovery_ok"] / max(results["total"], 1)
    if success_rate < 0.8:
        print(f"FAIL: Only {success_rate:.0%} success rate (target: 80%)")
        sys.exit(1)
    print(f"PASS: {success_rate:.0%} success rate")


if __name__ == "__main__":
    main()
