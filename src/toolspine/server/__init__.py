"""HTTP surface of a tool (Starlette app, served by uvicorn)."""

from .http import ENDPOINTS, create_app

__all__ = ["create_app", "ENDPOINTS"]
