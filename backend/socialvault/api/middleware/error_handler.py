"""
Error Handler Middleware

Global exception handling for the API.

Every failure leaves the API in the same envelope:

    {
        "success": false,
        "error": "Backup not found",
        "code": "NOT_FOUND",
        "details": {}
    }

Exception Handling:
===================
1. SocialVaultException subclasses → their status_code and to_dict()
2. Request validation errors → 400 with field errors
3. Other exceptions → 500 with a generic message (details logged only)
"""

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from socialvault.shared.core.exceptions import SocialVaultException
from socialvault.shared.core.logging import logger


def setup_exception_handlers(app: FastAPI) -> None:
    """
    Register global exception handlers.

    Args:
        app: FastAPI application instance
    """

    @app.exception_handler(SocialVaultException)
    async def socialvault_exception_handler(
        request: Request,
        exc: SocialVaultException,
    ) -> JSONResponse:
        """Handle application exceptions raised by services."""
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            "Application error",
            error_code=exc.error_code,
            message=exc.message,
            status_code=exc.status_code,
            path=request.url.path,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        """
        Handle request validation errors.

        These occur when the body or query doesn't match the expected schema.
        """
        errors = jsonable_encoder(exc.errors())
        logger.warning(
            "Validation error",
            errors=errors,
            path=request.url.path,
        )
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "error": "Request validation failed",
                "code": "VALIDATION_ERROR",
                "details": {"errors": errors},
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """
        Handle unexpected exceptions.

        Full error details are logged but not exposed to clients.
        """
        logger.error(
            "Unexpected error",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )
