"""Entry point for running the compile authority: python -m backend"""

import uvicorn

from backend.config import settings


def main() -> None:
    """Run the compile authority server."""
    debug = settings.ENVIRONMENT == "development"
    uvicorn.run(
        "backend.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=debug,
        log_level="debug" if debug else "info",
    )


if __name__ == "__main__":
    main()
