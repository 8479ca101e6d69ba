"""
Access-key middleware for the relay endpoints.
"""
from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from config import Config
from utils.constants import CORS_HEADERS
from utils.logger import app_logger


class APIKeyMiddleware(BaseHTTPMiddleware):
    """
    Checks the apikey / X-API-Key header against RELAY_API_KEY.
    When no relay key is configured every request passes through.
    """

    EXCLUDED_PATHS = {"/", "/docs", "/openapi.json", "/redoc"}
    API_KEY: str = Config.RELAY_API_KEY

    async def dispatch(self, request: Request, call_next):
        """
        Process each request and verify the access key.

        Args:
            request: Incoming HTTP request
            call_next: Next middleware/handler in chain

        Returns:
            Response from next handler or error response
        """
        if not self.API_KEY or request.method == "OPTIONS" or request.url.path in self.EXCLUDED_PATHS:
            return await call_next(request)

        api_key = request.headers.get("apikey") or request.headers.get("x-api-key")
        client_host = request.client.host if request.client else "unknown"

        if not api_key:
            app_logger.warning(f"Unauthorized request from {client_host} - Missing API key")
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={
                    "error": "unauthorized",
                    "details": "Missing API key. Include an 'apikey' or 'X-API-Key' header in your request."
                },
                headers={**CORS_HEADERS, "WWW-Authenticate": "ApiKey"},
            )

        if api_key != self.API_KEY:
            app_logger.warning(f"Forbidden request from {client_host} - Invalid API key")
            return JSONResponse(
                status_code=status.HTTP_403_FORBIDDEN,
                content={
                    "error": "forbidden",
                    "details": "Invalid API key"
                },
                headers=CORS_HEADERS,
            )

        return await call_next(request)
