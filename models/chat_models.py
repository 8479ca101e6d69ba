"""
Data models for chat relaying.
Contains candidate descriptions, entry-point profiles, and attempt results.
"""
from dataclasses import dataclass, field
from enum import Enum

import httpx

from utils.constants import (
    STUDY_ASSISTANT_PROMPT,
    CITING_ASSISTANT_PROMPT,
    REFERENCE_LINKS,
    REFERENCE_LINKS_PROMPT,
)


class Dialect(Enum):
    """Request-parameter dialects accepted by the upstream models."""
    MAX_TOKENS = "max_tokens"
    COMPLETION_TOKENS = "max_completion_tokens"

    @property
    def allows_temperature(self) -> bool:
        return self is Dialect.MAX_TOKENS


@dataclass(frozen=True)
class ModelCandidate:
    """An upstream model identifier the relay may attempt."""
    model_id: str
    dialect: Dialect


@dataclass(frozen=True)
class RelayProfile:
    """
    Per-endpoint relay behaviour: the fixed system turns prepended to every
    conversation and whether replies stream when the caller does not say.
    """
    name: str
    system_turns: list = field(default_factory=list)
    default_stream: bool = False


@dataclass
class CandidateAttempt:
    """The candidate that succeeded and its open upstream response."""
    candidate: ModelCandidate
    response: httpx.Response

    @property
    def model_id(self) -> str:
        return self.candidate.model_id


def _reference_turn() -> dict:
    reference_list = "\n".join(f"{i}. {url}" for i, url in enumerate(REFERENCE_LINKS, start=1))
    return {"role": "system", "content": REFERENCE_LINKS_PROMPT.format(reference_list=reference_list)}


AI_CHAT_PROFILE = RelayProfile(
    name="ai-chat",
    system_turns=[{"role": "system", "content": STUDY_ASSISTANT_PROMPT}],
    default_stream=False,
)

CHATBOT_PROFILE = RelayProfile(
    name="chatbot",
    system_turns=[
        {"role": "system", "content": CITING_ASSISTANT_PROMPT},
        _reference_turn(),
    ],
    default_stream=True,
)
