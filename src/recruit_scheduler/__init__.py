import logging

import uvicorn

from recruit_scheduler.app import create_app
from recruit_scheduler.config import Settings

settings = Settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

# ASGI entry point: uvicorn recruit_scheduler:app
app = create_app(settings)


def main() -> None:
    """Serve the scheduler API (console script ``recruit-scheduler``)."""
    uvicorn.run("recruit_scheduler:app", host=settings.host, port=settings.port)
