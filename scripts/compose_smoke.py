#!/usr/bin/env python3
from __future__ import annotations

import json
import os
import sys

from urllib.request import Request, urlopen
from urllib.error import URLError


def main() -> int:
    base_url = os.getenv("ASKMUNI_API_URL", "http://localhost:8000").rstrip("/")
    question = os.getenv("ASKMUNI_SMOKE_QUESTION", "Quels sont les projets pour 2025 ?")
    try:
        with urlopen(f"{base_url}/healthz", timeout=5) as r:
            print("/healthz:", r.read().decode("utf-8"))
        body = json.dumps({"message": question}).encode("utf-8")
        request = Request(
            f"{base_url}/api/chat",
            data=body,
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        with urlopen(request, timeout=60) as r2:
            payload = json.loads(r2.read().decode("utf-8"))
        print("searchMetadata:", json.dumps(payload["searchMetadata"], ensure_ascii=False))
        print("chunksFound:", payload["chunksFound"])
    except (URLError, KeyError, ValueError) as exc:
        print(f"Smoke test failed: {exc}", file=sys.stderr)
        return 1
    print("Smoke test passed.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
