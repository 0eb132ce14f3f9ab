"""
API Middleware

Exception handlers for the FastAPI application.

Usage:
======
    from socialvault.api.middleware import setup_exception_handlers

    app = FastAPI()
    setup_exception_handlers(app)
"""

from socialvault.api.middleware.error_handler import setup_exception_handlers

__all__ = [
    "setup_exception_handlers",
]
