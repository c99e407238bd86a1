# clipshare/main.py

import uvicorn

from clipshare.config import get_settings
from clipshare.observability.logger import log_info


def main():
    """ Main entry point: serve the FastAPI app with uvicorn. """
    settings = get_settings()
    log_info(f"Server starting at http://{settings.HOST}:{settings.PORT}")
    # uvicorn installs SIGINT/SIGTERM handlers and drives the lifespan,
    # which closes the store connection and drops room state on exit.
    uvicorn.run(
        "clipshare.main_fastapi:get_app",
        factory=True,
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
