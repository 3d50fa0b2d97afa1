"""Container healthcheck: verify the HTTP /health endpoint of postgres-mcp.

Uses stdlib only. Exit code 0 indicates healthy. The port follows the
POSTGRES_MCP_LISTEN setting (default :8080).
"""

from __future__ import annotations

import json
import os
import sys
from typing import Final
from urllib.request import Request, urlopen

DEFAULT_PORT: Final[str] = "8080"


def health_url() -> str:
    listen = os.getenv("POSTGRES_MCP_LISTEN", f":{DEFAULT_PORT}")
    port = listen.rpartition(":")[2] or DEFAULT_PORT
    return f"http://127.0.0.1:{port}/health"


def main() -> int:
    try:
        req = Request(health_url(), headers={"User-Agent": "postgres-mcp/healthcheck"})  # noqa: S310
        with urlopen(req, timeout=4) as resp:  # noqa: S310 - fixed host/http
            if resp.status != 200:
                print(f"unexpected status: {resp.status}", file=sys.stderr)
                return 1
            data = json.loads(resp.read().decode("utf-8"))
            if data.get("status") != "healthy":
                print(f"payload not healthy: {data}", file=sys.stderr)
                return 1
            return 0
    except Exception as exc:
        print(f"healthcheck error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover - used by Docker
    raise SystemExit(main())
