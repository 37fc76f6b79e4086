#!/usr/bin/env python3
"""
Smoke test for a deployed Synian skill service.

Posts a few Alexa envelopes that never reach the authentication path, so it
is safe to run against production.
"""

import asyncio
import sys
import uuid
from typing import Any, Dict, Optional

import httpx


def alexa_envelope(request_type: str, intent: Optional[str] = None, locale: str = "es-MX") -> Dict[str, Any]:
    """Minimal Alexa request envelope."""
    request: Dict[str, Any] = {
        "type": request_type,
        "requestId": f"smoke.request.{uuid.uuid4()}",
        "locale": locale,
    }
    if intent:
        request["intent"] = {"name": intent, "slots": {}}

    return {
        "version": "1.0",
        "session": {
            "new": True,
            "sessionId": f"smoke.session.{uuid.uuid4()}",
            "application": {"applicationId": "smoke-test"},
            "user": {"userId": "smoke-user"},
            "attributes": {},
        },
        "context": {"System": {"device": {"deviceId": "smoke-device"}}},
        "request": request,
    }


async def check_endpoint(
    client: httpx.AsyncClient,
    url: str,
    method: str = "GET",
    data: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Call one endpoint and summarize the outcome."""
    try:
        if method == "GET":
            response = await client.get(url)
        elif method == "POST":
            response = await client.post(url, json=data)
        else:
            raise ValueError(f"Unsupported method: {method}")

        body = response.json() if response.headers.get("content-type", "").startswith("application/json") else None
        success = response.status_code < 400
        if success and data is not None:
            # Alexa endpoints must always answer with speech
            success = bool(body and body.get("response", {}).get("outputSpeech", {}).get("ssml"))

        return {"status_code": response.status_code, "success": success, "error": None}
    except httpx.HTTPError as e:
        return {"status_code": None, "success": False, "error": type(e).__name__}


async def run_smoke_test(base_url: str) -> bool:
    """Exercise the deployed service."""
    print(f"Testing deployment at: {base_url}")
    print("=" * 60)

    checks = [
        {"name": "Health Check", "url": f"{base_url}/healthz", "method": "GET"},
        {"name": "Metrics", "url": f"{base_url}/metrics", "method": "GET"},
        {
            "name": "Launch",
            "url": f"{base_url}/api/v1/alexa",
            "method": "POST",
            "data": alexa_envelope("LaunchRequest"),
        },
        {
            "name": "Help",
            "url": f"{base_url}/api/v1/alexa",
            "method": "POST",
            "data": alexa_envelope("IntentRequest", "AMAZON.HelpIntent"),
        },
        {
            "name": "Synian Core Status",
            "url": f"{base_url}/api/v1/alexa",
            "method": "POST",
            "data": alexa_envelope("IntentRequest", "GetStatusIntent"),
        },
    ]

    results = []
    async with httpx.AsyncClient(timeout=30.0) as client:
        for check in checks:
            print(f"Testing: {check['name']}")
            result = await check_endpoint(client, check["url"], check["method"], check.get("data"))
            results.append({**check, **result})

            if result["success"]:
                print(f"  OK - Status: {result['status_code']}")
            else:
                print(f"  FAILED - Status: {result['status_code']}, Error: {result['error']}")

    passed = sum(1 for r in results if r["success"])
    print("=" * 60)
    print(f"Checks Passed: {passed}/{len(results)}")

    for failed in (r for r in results if not r["success"]):
        print(f"  - {failed['name']}: {failed['error'] or 'HTTP ' + str(failed['status_code'])}")

    return passed == len(results)


async def main():
    if len(sys.argv) != 2:
        print("Usage: python smoke_skill.py <base_url>")
        sys.exit(1)

    success = await run_smoke_test(sys.argv[1].rstrip("/"))
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    asyncio.run(main())
