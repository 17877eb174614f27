"""
Entry point: run the API with uvicorn.

    python -m useradmin.main
    useradmin            # console script
"""

from __future__ import annotations

import uvicorn

from useradmin.api.app import create_app
from useradmin.config import get_settings

app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run(
        "useradmin.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug and not settings.is_production,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
