"""
Relay service containing the core chat relaying logic.
Handles candidate model iteration, request dialects, upstream error
classification and plain-text relaying of the upstream SSE stream.
"""
import json
import logging
import re
from enum import Enum
from typing import AsyncIterator, Callable, Optional, Sequence

import anyio
import httpx
from fastapi import status

from config import Config
from models.chat_models import CandidateAttempt, Dialect, ModelCandidate, RelayProfile
from utils.constants import FALLBACK_REPLY, SSE, Patterns, UpstreamErrorCodes
from utils.errors import UpstreamError
from utils.logger import app_logger


class FailureKind(Enum):
    """How an upstream failure affects candidate iteration."""
    MODEL = "model"
    HARD = "hard"


def resolve_dialect(model_id: str) -> Dialect:
    """Map a model identifier to the request dialect it expects."""
    if Config.uses_completion_tokens(model_id):
        return Dialect.COMPLETION_TOKENS
    return Dialect.MAX_TOKENS


class RelayService:
    """Relays one conversation to the upstream completion API."""

    # Never model-related, whatever the message says
    HARD_STATUS_CODES = {
        status.HTTP_401_UNAUTHORIZED,
        status.HTTP_403_FORBIDDEN,
        status.HTTP_429_TOO_MANY_REQUESTS,
    }

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        candidates: Optional[Sequence[str]] = None,
        dialect_resolver: Callable[[str], Dialect] = resolve_dialect,
        upstream_url: Optional[str] = None,
        max_output_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        logger: logging.Logger = app_logger,
    ):
        model_ids = Config.candidate_models() if candidates is None else list(candidates)
        if not model_ids:
            raise ValueError("At least one candidate model is required")

        self.client = client
        self.api_key = api_key
        self.candidates = [ModelCandidate(model_id, dialect_resolver(model_id)) for model_id in model_ids]
        self.upstream_url = upstream_url or Config.UPSTREAM_URL
        self.max_output_tokens = max_output_tokens or Config.MAX_OUTPUT_TOKENS
        self.temperature = Config.TEMPERATURE if temperature is None else temperature
        self.logger = logger

    @staticmethod
    def compose_messages(profile: RelayProfile, turns: list) -> list:
        """Prefix the caller's turns with the profile's fixed system turns."""
        return [dict(turn) for turn in profile.system_turns] + list(turns)

    def build_request_body(self, candidate: ModelCandidate, messages: list, stream: bool) -> dict:
        """Build the upstream payload in the candidate's dialect."""
        body = {
            "model": candidate.model_id,
            "messages": messages,
            "stream": stream,
            candidate.dialect.value: self.max_output_tokens,
        }

        if self.temperature is not None and candidate.dialect.allows_temperature:
            body["temperature"] = self.temperature

        return body

    def classify_failure(self, status_code: int, error_text: str) -> FailureKind:
        """
        Decide whether an upstream failure means "try the next model".

        Structured fields are trusted first; the textual mention of "model" in
        the error message is only a fallback. Ambiguous bodies are logged.
        """
        if status_code in self.HARD_STATUS_CODES:
            return FailureKind.HARD

        try:
            parsed = json.loads(error_text)
        except ValueError:
            self.logger.warning(
                f"Unparseable upstream error body (HTTP {status_code}), treating as model-related"
            )
            return FailureKind.MODEL

        error = parsed.get("error") if isinstance(parsed, dict) else None
        if not isinstance(error, dict):
            self.logger.warning(
                f"Upstream error body (HTTP {status_code}) has no error object, treating as non-model failure"
            )
            return FailureKind.HARD

        code = error.get("code") or ""
        if code in UpstreamErrorCodes.MODEL_NOT_FOUND or error.get("param") == UpstreamErrorCodes.MODEL_PARAM:
            return FailureKind.MODEL

        message = str(error.get("message") or "")
        if re.search(Patterns.MODEL_MENTION, message, flags=re.IGNORECASE):
            self.logger.warning(f"Upstream error classified as model-related from message text only: {message!r}")
            return FailureKind.MODEL

        return FailureKind.HARD

    async def open_completion(self, profile: RelayProfile, turns: list, stream: bool) -> CandidateAttempt:
        """
        Try each candidate in order until the upstream accepts one.

        Returns:
            The successful attempt with its response still open

        Raises:
            UpstreamError: on a non-model failure, a transport failure, or
                when every candidate was rejected for model reasons
        """
        messages = self.compose_messages(profile, turns)
        last_error_text = ""

        for candidate in self.candidates:
            body = self.build_request_body(candidate, messages, stream)
            response = await self._send(body)

            if response.is_success:
                self.logger.info(f"Upstream accepted model {candidate.model_id} (stream={stream})")
                return CandidateAttempt(candidate=candidate, response=response)

            error_text = await self._read_error_text(response)
            last_error_text = error_text
            self.logger.error(
                f"Upstream error with model {candidate.model_id} (HTTP {response.status_code}): "
                f"{self._excerpt(error_text)}"
            )

            if self.classify_failure(response.status_code, error_text) is FailureKind.HARD:
                status_code = response.status_code if response.status_code >= 400 else status.HTTP_502_BAD_GATEWAY
                raise UpstreamError(
                    "Upstream request failed",
                    details=self._excerpt(error_text),
                    status_code=status_code,
                )

            self.logger.info(f"Model {candidate.model_id} unavailable, trying next candidate")

        self.logger.error(f"All {len(self.candidates)} candidate models failed")
        raise UpstreamError("Upstream request failed", details=self._excerpt(last_error_text))

    async def read_reply(self, attempt: CandidateAttempt) -> str:
        """Read a buffered completion and extract the first choice's content."""
        response = attempt.response
        try:
            await response.aread()
        finally:
            await response.aclose()

        try:
            data = response.json()
        except ValueError:
            self.logger.error(f"Non-JSON completion from model {attempt.model_id}")
            raise UpstreamError("Invalid upstream response", details=self._excerpt(response.text))

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            content = None

        if content is None:
            self.logger.warning(f"Completion from model {attempt.model_id} had no content, using fallback reply")
            return FALLBACK_REPLY

        return content

    async def relay_stream(self, attempt: CandidateAttempt) -> AsyncIterator[str]:
        """
        Relay the upstream SSE stream as plain text fragments.

        Yields:
            Content deltas exactly as received, without any framing
        """
        response = attempt.response
        fragment_count = 0
        try:
            async for line in response.aiter_lines():
                data = self.parse_sse_data(line)
                if data is None:
                    continue

                if data == SSE.DONE:
                    break

                fragment = self.extract_delta(data)
                if fragment:
                    fragment_count += 1
                    yield fragment

            self.logger.info(f"Stream from model {attempt.model_id} finished ({fragment_count} fragments)")

        except httpx.HTTPError as e:
            self.logger.error(f"Streaming error from model {attempt.model_id}: {e}")
            raise
        finally:
            with anyio.CancelScope(shield=True):
                await response.aclose()

    @staticmethod
    def parse_sse_data(line: str) -> Optional[str]:
        """Return the payload of an SSE data line, or None for any other line."""
        line = line.rstrip("\r\n")
        if not line.startswith(SSE.DATA_FIELD):
            return None

        data = line[len(SSE.DATA_FIELD):]
        return data[1:] if data.startswith(" ") else data

    @staticmethod
    def extract_delta(data: str) -> Optional[str]:
        """Extract the incremental content from one SSE payload; keep-alives yield None."""
        try:
            payload = json.loads(data)
        except ValueError:
            return None

        try:
            return payload["choices"][0]["delta"].get("content")
        except (KeyError, IndexError, TypeError, AttributeError):
            return None

    async def _send(self, body: dict) -> httpx.Response:
        request = self.client.build_request(
            "POST",
            self.upstream_url,
            headers={"Authorization": f"Bearer {self.api_key}"},
            json=body,
        )

        try:
            return await self.client.send(request, stream=True)
        except httpx.TimeoutException as e:
            self.logger.error(f"Upstream timed out for model {body['model']}: {e}")
            raise UpstreamError("Upstream request timed out", status_code=status.HTTP_504_GATEWAY_TIMEOUT)
        except httpx.RequestError as e:
            self.logger.error(f"Upstream unreachable for model {body['model']}: {e}")
            raise UpstreamError("Upstream unreachable", details=self._excerpt(str(e)))

    @staticmethod
    async def _read_error_text(response: httpx.Response) -> str:
        try:
            await response.aread()
            return response.text
        finally:
            await response.aclose()

    @staticmethod
    def _excerpt(text: str) -> str:
        return (text or "")[:Config.ERROR_DETAILS_LIMIT]
