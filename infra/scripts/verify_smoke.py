from __future__ import annotations

import asyncio
import os
import time
from datetime import UTC, datetime, timedelta
from uuid import uuid4

import httpx


def _assert_status(response: httpx.Response, expected: int | tuple[int, ...]) -> None:
    expected_codes = (expected,) if isinstance(expected, int) else expected
    if response.status_code not in expected_codes:
        raise RuntimeError(
            f"{response.request.method} {response.request.url} expected {expected_codes}, "
            f"got {response.status_code}: {response.text}"
        )


def _auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


async def _wait_ok(client: httpx.AsyncClient, path: str, timeout_seconds: float = 60.0) -> None:
    deadline = time.monotonic() + timeout_seconds
    last_status = "n/a"
    while time.monotonic() < deadline:
        try:
            response = await client.get(path)
            if response.status_code == 200:
                return
            last_status = str(response.status_code)
        except httpx.HTTPError as exc:
            last_status = f"http_error: {exc}"
        await asyncio.sleep(1.0)
    raise RuntimeError(f"timeout waiting for {path}, last_status={last_status}")


async def _run() -> None:
    base_url = os.getenv("APP_BASE_URL", "http://app:8000").rstrip("/")
    run_id = uuid4().hex[:8]

    async with httpx.AsyncClient(base_url=base_url, timeout=httpx.Timeout(20.0)) as client:
        await _wait_ok(client, "/healthz")
        await _wait_ok(client, "/readyz")

        user_resp = await client.post(
            "/api/identity/users",
            json={"username": f"smoke-{run_id}", "full_name": "Smoke Runner", "role": "staff"},
        )
        _assert_status(user_resp, 201)
        token_resp = await client.post("/api/identity/dev-token", json={"user_id": user_resp.json()["id"]})
        _assert_status(token_resp, 200)
        headers = _auth_headers(token_resp.json()["access_token"])

        asset_resp = await client.post(
            "/api/assets",
            json={"asset_code": f"SMOKE-{run_id}", "name": "smoke projector"},
            headers=headers,
        )
        _assert_status(asset_resp, 201)
        asset_id = asset_resp.json()["id"]

        start = datetime.now(UTC) + timedelta(days=1)
        loan_resp = await client.post(
            "/api/loans",
            json={
                "asset_id": asset_id,
                "purpose": "smoke check",
                "borrow_date": start.isoformat(),
                "return_date": (start + timedelta(days=2)).isoformat(),
            },
            headers=headers,
        )
        _assert_status(loan_resp, 201)
        loan_id = loan_resp.json()["id"]

        overlap_resp = await client.post(
            "/api/loans",
            json={
                "asset_id": asset_id,
                "purpose": "overlap",
                "borrow_date": (start + timedelta(days=1)).isoformat(),
                "return_date": (start + timedelta(days=3)).isoformat(),
            },
            headers=headers,
        )
        _assert_status(overlap_resp, 409)

        approve_resp = await client.patch(f"/api/loans/{loan_id}", json={"status": "approved"}, headers=headers)
        _assert_status(approve_resp, 200)
        return_resp = await client.patch(
            f"/api/loans/{loan_id}",
            json={"actual_return_date": datetime.now(UTC).isoformat()},
            headers=headers,
        )
        _assert_status(return_resp, 200)

        asset_after = await client.get(f"/api/assets/{asset_id}", headers=headers)
        _assert_status(asset_after, 200)
        if asset_after.json()["status"] != "available":
            raise RuntimeError(f"asset not released after return: {asset_after.json()}")

    print(f"smoke ok: asset={asset_id} loan={loan_id}")


def main() -> None:
    asyncio.run(_run())


if __name__ == "__main__":
    main()
