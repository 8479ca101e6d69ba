"""
Study Assistant Chat Relay - FastAPI application relaying study-assistant
conversations to an upstream chat-completion API with model fallback.
"""
from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.datastructures import Headers
from contextlib import asynccontextmanager
from config import Config
from routes import chat, models_route
from auth import APIKeyMiddleware
from utils.constants import CORS_ALLOWED_HEADERS, CORS_HEADERS, MODEL_USED_HEADER
from utils.errors import RelayError
from utils.http_client import HTTPClientManager
from utils.logger import app_logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    yield
    await HTTPClientManager.close_all()


class RelayCORSMiddleware(CORSMiddleware):
    """CORSMiddleware whose preflight answer is always an empty 200 with the fixed relay headers."""

    def preflight_response(self, request_headers: Headers) -> Response:
        return Response(status_code=status.HTTP_200_OK, headers=CORS_HEADERS)


app = FastAPI(title=Config.APP_TITLE, lifespan=lifespan)

app.add_middleware(APIKeyMiddleware)

# Added last so it wraps auth failures too
app.add_middleware(
    RelayCORSMiddleware,
    allow_origins=["*"],
    allow_methods=["POST", "OPTIONS", "GET"],
    allow_headers=CORS_ALLOWED_HEADERS,
    expose_headers=[MODEL_USED_HEADER],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Reject malformed conversations with a 400 in the relay's error shape."""
    errors = exc.errors()
    app_logger.warning(f"Validation error for {request.url}: {errors}")

    details = None
    if errors:
        first_error = errors[0]
        loc = [str(part) for part in first_error.get('loc', []) if part != 'body']
        field = ".".join(loc) if loc else "body"
        details = f"{field}: {first_error.get('msg', 'Validation error')}"

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid messages format", "details": details},
        headers=CORS_HEADERS,
    )


@app.exception_handler(RelayError)
async def relay_exception_handler(request: Request, exc: RelayError):
    """Render relay failures as {"error", "details"?} bodies."""
    app_logger.error(f"{request.url.path} failed with HTTP {exc.status_code}: {exc.error}")
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_content(),
        headers=CORS_HEADERS,
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    app_logger.exception(f"Unhandled error on {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": str(exc) or "Unknown error"},
        headers=CORS_HEADERS,
    )


#root endpoint
@app.get("/")
async def root():
    """Root endpoint - health check."""
    return {"message": "Study Assistant Chat Relay is running"}

app.include_router(models_route.router, tags=["models"])
app.include_router(chat.router, tags=["chat"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
