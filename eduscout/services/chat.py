"""AI chat assistant — validated input, LLM answer, sanitized output."""

import logging
import re

from eduscout.exceptions import InvalidRequestError
from eduscout.services.llm_client import call_llm, load_prompt

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 1000
MAX_CONTEXT_LENGTH = 200

CHAT_TEMPERATURE = 0.7
CHAT_MAX_TOKENS = 500

SUSPICIOUS_PATTERNS = [
    re.compile(r"<script", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"on\w+\s*=", re.IGNORECASE),
    re.compile(r"data:text/html", re.IGNORECASE),
]

_SCRIPT_BLOCK = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_JS_SCHEME = re.compile(r"javascript:", re.IGNORECASE)
_EVENT_HANDLER = re.compile(r"on\w+\s*=", re.IGNORECASE)


def validate_message(message: str) -> str:
    """Return the trimmed message or raise InvalidRequestError."""
    if not isinstance(message, str) or not message.strip():
        raise InvalidRequestError("Message is required")
    if len(message) > MAX_MESSAGE_LENGTH:
        raise InvalidRequestError(f"Message must be at most {MAX_MESSAGE_LENGTH} characters")
    if any(p.search(message) for p in SUSPICIOUS_PATTERNS):
        raise InvalidRequestError("Message contains disallowed content")
    return message.strip()


def sanitize_response(text: str) -> str:
    text = _SCRIPT_BLOCK.sub("", text)
    text = _JS_SCHEME.sub("", text)
    return _EVENT_HANDLER.sub("", text)


class ChatAssistant:
    """Thin proxy to the LLM for questions about the topic being studied."""

    def __init__(self):
        self._system_prompt: str | None = None

    def system_prompt(self, context: str = "") -> str:
        if self._system_prompt is None:
            self._system_prompt = load_prompt("chat_assistant")
        context = context.strip()[:MAX_CONTEXT_LENGTH]
        if context:
            return f"{self._system_prompt}\nThe user is currently learning about: {context}"
        return self._system_prompt

    async def reply(self, message: str, context: str = "") -> str:
        message = validate_message(message)
        text = await call_llm(
            self.system_prompt(context),
            f"User question: {message}",
            max_tokens=CHAT_MAX_TOKENS,
            temperature=CHAT_TEMPERATURE,
        )
        if not text.strip():
            raise RuntimeError("Empty chat response from LLM")
        logger.info("Chat reply | chars=%d", len(text))
        return sanitize_response(text)
