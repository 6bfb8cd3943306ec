"""Web server entrypoint.

Runs the health endpoint and the warehouse monitor under uvicorn.

Usage: python -m warehouse.server
"""
import uvicorn

from warehouse.lib.config import get_settings


def main() -> None:
    """Run the web server."""
    server = get_settings().server
    uvicorn.run(
        "warehouse.server.entrypoint:create_app",
        factory=True,
        host=server.host,
        port=server.port,
    )


if __name__ == "__main__":
    main()
