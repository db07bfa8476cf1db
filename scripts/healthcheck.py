"""Container healthcheck for ``db-ai serve --transport http``.

Requests GET /health on the address ``serve`` binds (``DB_AI_HEALTH_HOST`` and
``DB_AI_HEALTH_PORT``, or a full ``DB_AI_HEALTH_URL``). Uses stdlib only. Exit
code 0 indicates healthy.
"""

from __future__ import annotations

import json
import os
import sys
from typing import Final
from urllib.request import Request, urlopen

HOST: Final[str] = os.getenv("DB_AI_HEALTH_HOST", "127.0.0.1")
PORT: Final[str] = os.getenv("DB_AI_HEALTH_PORT", "8000")
URL: Final[str] = os.getenv("DB_AI_HEALTH_URL", f"http://{HOST}:{PORT}/health")


def main() -> int:
    try:
        req = Request(URL, headers={"User-Agent": "db-ai-mcp/healthcheck"})  # noqa: S310
        with urlopen(req, timeout=4) as resp:  # noqa: S310 - operator-supplied URL
            if resp.status != 200:
                print(f"unexpected status: {resp.status}", file=sys.stderr)
                return 1
            data = json.loads(resp.read().decode("utf-8"))
            if data.get("status") != "healthy" or data.get("service") != "db-ai-mcp":
                print(f"payload not healthy: {data}", file=sys.stderr)
                return 1
            return 0
    except Exception as exc:  # noqa: BLE001
        print(f"healthcheck error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover - used by Docker
    raise SystemExit(main())
