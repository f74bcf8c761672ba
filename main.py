"""
ASGI entrypoint for deployments.

The FastAPI app lives in `backend/moderation/main.py` and uses imports like
`from moderation.db ...`, which requires `backend/` to be on `PYTHONPATH`
(already the case after `pip install -e .`).

From the repo root:
  uvicorn main:app --host 0.0.0.0 --port $PORT
"""

from __future__ import annotations

import sys
from pathlib import Path


_BACKEND_DIR = Path(__file__).resolve().parent / "backend"

# Ensure `import moderation...` resolves to `backend/moderation/...` in a plain checkout.
if str(_BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(_BACKEND_DIR))

from moderation.main import app  # noqa: E402,F401
