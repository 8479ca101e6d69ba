"""
Route handlers for chat relaying.
Handles the /ai-chat (buffered by default) and /chatbot (streamed by default) endpoints.
"""
import httpx
from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.background import BackgroundTask

from config import Config
from models.api_models import ChatRequest, ChatReply, ErrorResponse
from models.chat_models import RelayProfile, AI_CHAT_PROFILE, CHATBOT_PROFILE
from services.relay_service import RelayService
from utils.constants import CORS_HEADERS, MODEL_USED_HEADER
from utils.errors import ConfigurationError
from utils.http_client import HTTPClientManager
from utils.logger import app_logger

router = APIRouter()

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid messages format"},
    500: {"model": ErrorResponse, "description": "Server not configured"},
    502: {"model": ErrorResponse, "description": "Upstream request failed"},
}


def get_upstream_api_key() -> str:
    """Upstream credential; missing credential fails before any upstream work."""
    if not Config.OPENAI_API_KEY:
        app_logger.error("Missing upstream API key: set OPENAI_API_KEY (or OPEN_AI_KEY)")
        raise ConfigurationError("Server not configured")
    return Config.OPENAI_API_KEY


def get_upstream_client() -> httpx.AsyncClient:
    return HTTPClientManager.get_upstream_client()


def get_relay_service(
    api_key: str = Depends(get_upstream_api_key),
    client: httpx.AsyncClient = Depends(get_upstream_client),
) -> RelayService:
    """Dependency injection for RelayService."""
    return RelayService(client=client, api_key=api_key)


async def relay_chat(profile: RelayProfile, request: ChatRequest, relay: RelayService) -> Response:
    """Relay a conversation and deliver the reply in the requested mode."""
    # Only an omitted flag takes the endpoint default; an explicit null is falsy
    if "stream" in request.model_fields_set:
        stream = bool(request.stream)
    else:
        stream = profile.default_stream
    turns = [turn.model_dump() for turn in request.messages]
    app_logger.info(f"/{profile.name}: relaying {len(turns)} turns (stream={stream})")

    attempt = await relay.open_completion(profile, turns, stream)

    if stream:
        return StreamingResponse(
            relay.relay_stream(attempt),
            media_type="text/plain; charset=utf-8",
            headers={
                **CORS_HEADERS,
                "Transfer-Encoding": "chunked",
                "Cache-Control": "no-cache",
                "X-Accel-Buffering": "no",
                MODEL_USED_HEADER: attempt.model_id,
            },
            background=BackgroundTask(attempt.response.aclose),
        )

    reply = await relay.read_reply(attempt)
    return JSONResponse(
        content=ChatReply(reply=reply, model=attempt.model_id).model_dump(),
        headers=CORS_HEADERS,
    )


@router.post("/ai-chat", response_model=ChatReply, responses=ERROR_RESPONSES)
async def ai_chat(request: ChatRequest, relay: RelayService = Depends(get_relay_service)):
    """
    Study assistant chat. Returns {"reply", "model"} unless "stream": true is sent.
    """
    return await relay_chat(AI_CHAT_PROFILE, request, relay)


@router.post("/chatbot", responses=ERROR_RESPONSES)
async def chatbot(request: ChatRequest, relay: RelayService = Depends(get_relay_service)):
    """
    Citing study assistant chat. Streams plain text unless "stream": false is sent.
    """
    return await relay_chat(CHATBOT_PROFILE, request, relay)


@router.options("/ai-chat", status_code=status.HTTP_200_OK)
@router.options("/chatbot", status_code=status.HTTP_200_OK)
async def preflight():
    """Answer CORS preflight requests with an empty body."""
    return Response(status_code=status.HTTP_200_OK, headers=CORS_HEADERS)
