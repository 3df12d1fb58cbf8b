"""
Main entry point for the warm transfer service.
"""

import uvicorn

from warm_transfer.config import get_settings


def main() -> None:
    """Run the warm transfer API."""
    settings = get_settings()

    uvicorn.run(
        "warm_transfer.api.app:app",
        host=settings.api.host,
        port=settings.api.port,
        workers=settings.api.workers if not settings.api.debug else 1,
        reload=settings.api.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
