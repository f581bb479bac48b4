#!/usr/bin/env python3
"""
Entry point for the Barn Booking service.

The reminder scanner and the housekeeper run inside the app process, so
the API is served by a single uvicorn worker.  Auto-reload follows
API_RELOAD, defaulting to on in development.
"""

import os

import uvicorn

from app.config import ENVIRONMENT, LOG_LEVEL


def main() -> None:
    reload_default = "true" if ENVIRONMENT == "development" else "false"
    uvicorn.run(
        "app.main:app",
        host=os.getenv("API_HOST", "0.0.0.0"),
        port=int(os.getenv("API_PORT", "8000")),
        reload=os.getenv("API_RELOAD", reload_default).lower() == "true",
        workers=1,
        log_level=LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
