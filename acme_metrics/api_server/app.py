"""
ASGI application entrypoint.

Run with: uvicorn acme_metrics.api_server.app:app --host 0.0.0.0 --port 8080
"""

from acme_metrics.api_server.server import app

__all__ = ["app"]
