"""Vercel serverless entrypoint for the handoff server."""

import sys
from pathlib import Path

_SRC_DIR = str(Path(__file__).resolve().parent.parent / "src")
if _SRC_DIR not in sys.path:
    sys.path.insert(0, _SRC_DIR)

from expiry_tracker.api.asgi import app  # noqa: E402

__all__ = ["app"]
