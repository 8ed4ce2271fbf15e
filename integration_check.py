#!/usr/bin/env python3
"""
Smoke check for a deployed gridsync server.
Run after deployment to verify the sync protocol end to end.

Usage:
    python integration_check.py [base_url]

    base_url: Optional, defaults to http://127.0.0.1:3000

The check writes to the shared puzzle (one cell, one clue) and clears
them again; do not point it at a grid people are working on.
"""

import sys
import time
import uuid
from datetime import datetime

import requests


DEFAULT_BASE_URL = "http://127.0.0.1:3000"
TIMEOUT_SECONDS = 10


def check_endpoint(session: requests.Session, name: str, url: str, expected_status: int = 200) -> bool:
    """Check a single GET endpoint."""
    try:
        start = time.time()
        response = session.get(url, timeout=TIMEOUT_SECONDS)
        elapsed = (time.time() - start) * 1000

        if response.status_code == expected_status:
            print(f"  OK   {name}: {response.status_code} ({elapsed:.0f}ms)")
            return True
        print(f"  FAIL {name}: Expected {expected_status}, got {response.status_code}")
        return False
    except requests.exceptions.ConnectionError:
        print(f"  FAIL {name}: Connection refused")
        return False
    except requests.exceptions.Timeout:
        print(f"  FAIL {name}: Timeout after {TIMEOUT_SECONDS}s")
        return False


def check_round_trip(session: requests.Session, base_url: str) -> list[bool]:
    """One client writes, a second client polls from its cursor and sees it."""
    writer = {"X-Client-ID": f"smoke-writer-{uuid.uuid4().hex[:8]}"}
    reader = {"X-Client-ID": f"smoke-reader-{uuid.uuid4().hex[:8]}"}
    results = []

    start_cursor = session.get(
        f"{base_url}/api/updates", params={"since": 0}, headers=reader, timeout=TIMEOUT_SECONDS
    ).json()["updates"]
    cursor = max((u["id"] for u in start_cursor), default=0)

    payload = {"type": "grid-update", "key": "14-14", "value": {"value": "Z", "isBlack": False}}
    response = session.post(f"{base_url}/api/update", json=payload, headers=writer, timeout=TIMEOUT_SECONDS)
    ok = response.status_code == 200 and response.json().get("success") is True
    print(f"  {'OK  ' if ok else 'FAIL'} Push grid-update: {response.status_code}")
    results.append(ok)

    body = session.get(
        f"{base_url}/api/updates", params={"since": cursor}, headers=reader, timeout=TIMEOUT_SECONDS
    ).json()
    seen = [u for u in body["updates"] if u["payload"].get("key") == "14-14"]
    ok = bool(seen) and seen[-1]["payload"]["value"]["value"] == "Z"
    print(f"  {'OK  ' if ok else 'FAIL'} Poll sees update (live clients: {body['liveClientCount']})")
    results.append(ok)

    response = session.post(f"{base_url}/api/update", json={"type": "clear-all"}, headers=writer, timeout=TIMEOUT_SECONDS)
    results.append(response.status_code == 200)

    response = session.post(f"{base_url}/api/update", data="not json", headers=writer, timeout=TIMEOUT_SECONDS)
    ok = response.status_code == 400
    print(f"  {'OK  ' if ok else 'FAIL'} Malformed body rejected: {response.status_code}")
    results.append(ok)

    response = session.post(f"{base_url}/api/presence", json={"position": None}, timeout=TIMEOUT_SECONDS)
    ok = response.status_code == 400
    print(f"  {'OK  ' if ok else 'FAIL'} Presence without X-Client-ID rejected: {response.status_code}")
    results.append(ok)

    for headers in (writer, reader):
        session.post(f"{base_url}/api/disconnect", json={"clientId": headers["X-Client-ID"]},
                     headers=headers, timeout=TIMEOUT_SECONDS)
    return results


def run_checks(base_url: str) -> bool:
    print(f"\n{'='*60}")
    print("gridsync smoke check")
    print(f"Base URL: {base_url}")
    print(f"Time: {datetime.now().isoformat()}")
    print(f"{'='*60}\n")

    session = requests.Session()
    results = []

    print("Health Endpoints:")
    results.append(check_endpoint(session, "Liveness", f"{base_url}/health/live"))
    results.append(check_endpoint(session, "Readiness", f"{base_url}/health/ready"))
    results.append(check_endpoint(session, "Full Health", f"{base_url}/health"))
    results.append(check_endpoint(session, "Prometheus", f"{base_url}/metrics"))
    print()

    print("Sync API:")
    results.append(check_endpoint(session, "State Snapshot", f"{base_url}/api/state"))
    try:
        results.extend(check_round_trip(session, base_url))
    except (requests.RequestException, ValueError, KeyError) as e:
        print(f"  FAIL Round trip: {type(e).__name__}: {e}")
        results.append(False)
    print()

    print("Static Assets:")
    results.append(check_endpoint(session, "Root Page", f"{base_url}/"))
    results.append(check_endpoint(session, "Missing File", f"{base_url}/no-such-file.js", expected_status=404))
    print()

    passed = sum(results)
    total = len(results)

    print(f"{'='*60}")
    print(f"Results: {passed}/{total} passed")
    return passed == total


def main():
    base_url = sys.argv[1] if len(sys.argv) > 1 else DEFAULT_BASE_URL
    success = run_checks(base_url.rstrip("/"))
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
