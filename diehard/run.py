"""Application entry point for the Diehard raffle API."""

from __future__ import annotations

import uvicorn

from diehard.app import create_app
from diehard.app.core.config_core import get_settings


def main() -> None:
    """Run the FastAPI server with host/port from settings."""

    settings = get_settings()
    uvicorn.run(
        create_app(),
        host=settings.APP_HOST,
        port=settings.APP_PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
