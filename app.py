from __future__ import annotations

import os

from backend.app.main import app

__all__ = ["app"]


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "backend.app.main:app",
        host=os.getenv("TELEHEALTH_API_HOST", "0.0.0.0"),
        port=int(os.getenv("TELEHEALTH_API_PORT", "8000")),
        reload=os.getenv("TELEHEALTH_API_RELOAD", "false").strip().lower() in {"1", "true", "yes"},
    )
