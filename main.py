"""
Ride-Hailing Backend
====================
Entry point.  ``python main.py`` serves the API on ``API_HOST:API_PORT``;
in development prefer ``uvicorn main:app --reload``.
"""

import uvicorn

from ridehail.api.app import create_app
from ridehail.config import settings

app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )
