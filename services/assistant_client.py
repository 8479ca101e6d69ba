"""
Caller-side client for the relay.
Streams replies under a fixed wall-clock timeout and falls back to a single
buffered request when the stream fails for any reason.
"""
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Optional

import anyio
import httpx

from config import Config
from utils.constants import MODEL_USED_HEADER
from utils.logger import app_logger


class AssistantClientError(Exception):
    """The relay answered with an error body."""

    def __init__(self, status_code: int, error: str, details: Optional[str] = None):
        super().__init__(f"HTTP {status_code}: {error}")
        self.status_code = status_code
        self.error = error
        self.details = details


@dataclass
class AssistantAnswer:
    """A complete assistant reply and how it was obtained."""
    text: str
    model: Optional[str]
    streamed: bool


class StudyAssistantClient:
    """Talks to one relay endpoint on behalf of a chat UI or script."""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        endpoint: str = "/chatbot",
        stream_timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
        logger: logging.Logger = app_logger,
    ):
        self.endpoint = endpoint
        self.stream_timeout = Config.CLIENT_STREAM_TIMEOUT if stream_timeout is None else stream_timeout
        self.logger = logger

        self.url = base_url.rstrip("/") + endpoint
        self.headers = {"apikey": api_key} if api_key else {}

        # Injected clients are shared, so URL and headers go on each request
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=Config.UPSTREAM_TIMEOUT)

    async def __aenter__(self) -> "StudyAssistantClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def stream_reply(self, messages: list) -> AsyncIterator[str]:
        """
        Stream the reply fragments as the relay forwards them.

        Raises:
            AssistantClientError: if the relay rejects the request
        """
        async with self.client.stream(
            "POST", self.url, json={"messages": messages, "stream": True}, headers=self.headers
        ) as response:
            await self._raise_for_error(response)
            async for chunk in response.aiter_text():
                if chunk:
                    yield chunk

    async def ask(self, messages: list) -> AssistantAnswer:
        """
        Get a complete reply, preferring the streamed path.

        The stream is abandoned after stream_timeout seconds; on timeout,
        transport failure or an error status the question is asked again
        without streaming.
        """
        try:
            with anyio.fail_after(self.stream_timeout):
                return await self._collect_stream(messages)
        except TimeoutError:
            self.logger.warning(f"Streamed reply exceeded {self.stream_timeout}s, retrying without streaming")
        except (httpx.HTTPError, AssistantClientError) as e:
            self.logger.warning(f"Streamed reply failed ({e}), retrying without streaming")

        return await self._ask_buffered(messages)

    async def _collect_stream(self, messages: list) -> AssistantAnswer:
        fragments = []
        async with self.client.stream(
            "POST", self.url, json={"messages": messages, "stream": True}, headers=self.headers
        ) as response:
            await self._raise_for_error(response)
            model = response.headers.get(MODEL_USED_HEADER)
            async for chunk in response.aiter_text():
                fragments.append(chunk)

        return AssistantAnswer(text="".join(fragments), model=model, streamed=True)

    async def _ask_buffered(self, messages: list) -> AssistantAnswer:
        response = await self.client.post(
            self.url, json={"messages": messages, "stream": False}, headers=self.headers
        )
        await self._raise_for_error(response)

        data = response.json()
        return AssistantAnswer(text=data["reply"], model=data.get("model"), streamed=False)

    @staticmethod
    async def _raise_for_error(response: httpx.Response) -> None:
        if not response.is_error:
            return

        await response.aread()
        try:
            body = response.json()
        except ValueError:
            body = {}

        if not isinstance(body, dict):
            body = {}

        raise AssistantClientError(
            response.status_code,
            body.get("error") or response.reason_phrase,
            body.get("details"),
        )
