#!/usr/bin/env python3
from __future__ import annotations

import os
import sys

import httpx


def main() -> int:
    base_url = os.getenv("SUPPORTRAG_API_URL", "http://localhost:8000").rstrip("/")
    question = os.getenv("SUPPORTRAG_SMOKE_QUESTION")
    try:
        with httpx.Client(base_url=base_url, timeout=30.0) as client:
            health = client.get("/healthz")
            health.raise_for_status()
            print("/healthz:", health.text)
            stats = client.get("/index/stats")
            stats.raise_for_status()
            print("/index/stats:", stats.text)
            if question:
                # Only an error variant fails the smoke run; empty answers are fine on a fresh index
                answer = client.post("/api/chat", json={"message": question})
                print("/api/chat:", answer.text)
                if answer.json().get("type") == "error":
                    print("Smoke question returned an error", file=sys.stderr)
                    return 1
    except httpx.HTTPError as exc:
        print(f"Smoke check failed: {exc}", file=sys.stderr)
        return 1
    print("Smoke check passed.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
