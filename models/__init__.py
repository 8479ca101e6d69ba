"""
Models package exports.
"""
from models.api_models import ChatTurn, ChatRequest, ChatReply, ErrorResponse
from models.chat_models import (
    Dialect,
    ModelCandidate,
    RelayProfile,
    CandidateAttempt,
    AI_CHAT_PROFILE,
    CHATBOT_PROFILE,
)

__all__ = [
    'ChatTurn',
    'ChatRequest',
    'ChatReply',
    'ErrorResponse',
    'Dialect',
    'ModelCandidate',
    'RelayProfile',
    'CandidateAttempt',
    'AI_CHAT_PROFILE',
    'CHATBOT_PROFILE',
]
