#!/usr/bin/env python3
from __future__ import annotations

import os

import uvicorn


def main() -> None:
    host = os.environ.get("PROJECTHUB_HOST") or "0.0.0.0"
    port = int(os.environ.get("PROJECTHUB_PORT") or "8000")
    uvicorn.run("webapp.server:create_app", factory=True, host=host, port=port)


if __name__ == "__main__":
    main()
