# src/jewelrate/adapters/http/__init__.py
"""
HTTP Adapters - REST API

This package contains the FastAPI surface:
- routes (APIRouter mounted under /api)
- request schemas
- caller identity and service dependencies
- the error envelope
"""

from jewelrate.adapters.http.deps import Services, get_principal
from jewelrate.adapters.http.errors import error_response, install_error_handlers
from jewelrate.adapters.http.routes import router

__all__ = [
    "Services",
    "error_response",
    "get_principal",
    "install_error_handlers",
    "router",
]
