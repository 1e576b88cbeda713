"""
HTTP surface of the verification registry (FastAPI).

create_app() builds the application; api_server.app exposes the module-level
ASGI app for uvicorn.
"""

from verification_registry.api_server.server import create_app

__all__ = ["create_app"]
