"""
HTTP status endpoint for a running driver.

Routes:
- GET /health: driver name, state and the error that stopped it, if any
- GET /stats: frame counters and event bus statistics
"""

from typing import Any, Callable, Dict, Optional

from fastapi import FastAPI

from .driver import DriverState, LeapMotionDriver


def create_app(
    driver: LeapMotionDriver,
    extra_stats: Optional[Callable[[], Dict[str, Any]]] = None,
) -> FastAPI:
    """
    Create FastAPI application reporting on a driver.

    Args:
        driver: The driver to report on
        extra_stats: Optional callable whose dict is merged into /stats

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(title="Leap Motion Driver")

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        error = driver.last_error
        return {
            "status": "ok" if driver.state is DriverState.RUNNING else "down",
            "name": driver.name,
            "state": driver.state.value,
            "last_error": str(error) if error else None,
        }

    @app.get("/stats")
    async def stats():
        """Statistics endpoint."""
        result = {"driver": driver.get_stats()}
        if extra_stats:
            result.update(extra_stats())
        return result

    return app
