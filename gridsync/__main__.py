# gridsync/__main__.py

import uvicorn

from gridsync.config import get_settings
from gridsync.utils.logger import log_info


def main() -> None:
    """Run the server on HOST:PORT from settings."""
    settings = get_settings()
    log_info(f"Server starting at http://{settings.HOST}:{settings.PORT}")
    print(f"Server running at http://{settings.HOST}:{settings.PORT}/")
    print("API endpoints available at /api/state, /api/update, /api/updates, /api/presence, /api/disconnect")
    # uvicorn installs SIGINT/SIGTERM handlers and runs the app lifespan on shutdown
    uvicorn.run(
        "gridsync.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
