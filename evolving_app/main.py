"""
Main entry point for the evolving app server.
"""

from .api import app  # noqa: F401

if __name__ == "__main__":
    import uvicorn

    from .config import get_settings

    settings = get_settings()
    # One worker: the task queue and the coordinator are per-process.
    uvicorn.run(
        "evolving_app.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        workers=1,
    )
