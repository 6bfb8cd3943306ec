"""Health check endpoint."""

import time

from starlette.requests import Request
from starlette.responses import JSONResponse

_STARTED_AT = time.monotonic()


def uptime() -> float:
    """Seconds since the process started serving."""
    return time.monotonic() - _STARTED_AT


async def health_check(request: Request) -> JSONResponse:
    """Report that the service is up."""
    return JSONResponse({"status": "healthy", "uptime": uptime()})
