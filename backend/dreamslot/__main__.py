"""Run the Dream Slot server: python -m dreamslot."""
import logging

import uvicorn

from dreamslot.config import settings


logger = logging.getLogger(__name__)


def main() -> None:
    logger.info("Dream Slot on http://%s:%d", settings.host, settings.port)
    uvicorn.run(
        "dreamslot.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
