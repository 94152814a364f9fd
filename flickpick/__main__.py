"""Module executed when running ``python -m flickpick``."""

from __future__ import annotations

import uvicorn

from flickpick.config import settings


def main() -> None:
    """Serve the local FlickPick views with uvicorn."""

    uvicorn.run(
        "flickpick.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
    )


if __name__ == "__main__":  # pragma: no cover - runtime entrypoint
    main()
