"""
Constants and system prompts for the Study Assistant chat relay.
"""

STUDY_ASSISTANT_PROMPT = """You are a helpful study assistant for past papers and subjects. You help students with their academic questions, provide explanations, and guide them through learning materials."""

CITING_ASSISTANT_PROMPT = """You are a helpful study assistant for past papers and subjects. Provide clear, step-by-step answers. When applicable, cite relevant sources from the provided reference list using their URLs as citations. If you don't know, say you don't know. Keep answers concise and useful."""

# Reference links the citing assistant may point students to
REFERENCE_LINKS = [
    "https://platform.openai.com/docs/api-reference/chat",
    "https://help.openai.com/en/articles/6643167-how-to-use-the-openai-api-for-q-a-or-to-build-a-chatbot",
    "https://www.leanware.co/insights/integrate-chatgpt-to-web-app",
    "https://www.brihaspatitech.com/blog/build-a-chatbot-using-openai-rag-2025-guide/",
    "https://blog.hubspot.com/website/chatgpt-integration",
    "https://community.openai.com/t/creating-a-chatbot-with-openai-api/721246",
    "https://community.openai.com/t/integrating-data-from-chatgpt-to-a-website-app-via-predefined-prompts/840215",
]

REFERENCE_LINKS_PROMPT = """Reference links you may cite when relevant (do not invent links):
{reference_list}"""

FALLBACK_REPLY = "I couldn't generate a response."

# Headers the browser client is allowed to send
CORS_ALLOWED_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": ", ".join(CORS_ALLOWED_HEADERS),
}

MODEL_USED_HEADER = "X-Model-Used"


class SSE:
    """Server-sent event framing used by the upstream completion API."""
    DATA_FIELD = "data:"
    DONE = "[DONE]"


class UpstreamErrorCodes:
    """Structured error codes that mean the requested model is unavailable."""
    MODEL_NOT_FOUND = {"model_not_found"}
    MODEL_PARAM = "model"


# Regular expression patterns
class Patterns:
    """Regular expression patterns for upstream error inspection."""
    MODEL_MENTION = r'model'
