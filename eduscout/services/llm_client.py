"""Async Anthropic API wrapper with retry, logging, and JSON extraction."""

import asyncio
import json
import logging
import time
from pathlib import Path

import anthropic
import httpx

from eduscout.config import settings
from eduscout.exceptions import UpstreamUnavailableError

logger = logging.getLogger(__name__)

PROMPTS_DIR = Path(__file__).parent.parent / "prompts"

RETRYABLE_STATUS = (429, 500, 502, 503, 529)

# Singleton client — initialized lazily
_client: anthropic.AsyncAnthropic | None = None


def _get_client() -> anthropic.AsyncAnthropic:
    global _client
    if _client is None:
        _client = anthropic.AsyncAnthropic(
            api_key=settings.anthropic_api_key,
            timeout=httpx.Timeout(settings.llm_timeout_seconds, connect=10.0),
        )
    return _client


def load_prompt(name: str) -> str:
    """Load a prompt template from eduscout/prompts/{name}.txt."""
    return (PROMPTS_DIR / f"{name}.txt").read_text(encoding="utf-8")


async def call_llm(
    system: str,
    user_message: str,
    max_tokens: int = 500,
    temperature: float = 0.3,
) -> str:
    """Call the configured Claude model and return the raw text response.

    Raises UpstreamUnavailableError when no key is configured, on timeout,
    and once retries are exhausted.
    """
    if not settings.has_llm_key:
        raise UpstreamUnavailableError("LLM API key not configured")

    client = _get_client()
    model = settings.llm_model
    max_attempts = settings.llm_max_retries + 1
    hard_timeout = settings.llm_timeout_seconds

    for attempt in range(1, max_attempts + 1):
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                client.messages.create(
                    model=model,
                    max_tokens=max_tokens,
                    temperature=temperature,
                    system=system,
                    messages=[{"role": "user", "content": user_message}],
                ),
                timeout=hard_timeout,
            )
        except asyncio.TimeoutError:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            logger.warning(
                "LLM timeout | model=%s | %dms (hard limit %ds) — no retry",
                model, elapsed_ms, hard_timeout,
            )
            raise UpstreamUnavailableError(f"LLM timeout after {elapsed_ms}ms")

        except anthropic.APIStatusError as e:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            logger.warning(
                "LLM error | model=%s | status=%d | attempt=%d/%d | %dms | %s",
                model, e.status_code, attempt, max_attempts, elapsed_ms, str(e)[:200],
            )
            if e.status_code in RETRYABLE_STATUS and attempt < max_attempts:
                continue
            raise UpstreamUnavailableError(f"LLM status {e.status_code}") from e

        except (anthropic.APITimeoutError, anthropic.APIConnectionError) as e:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            logger.warning(
                "LLM connection error | model=%s | attempt=%d/%d | %dms",
                model, attempt, max_attempts, elapsed_ms,
            )
            if attempt < max_attempts:
                continue
            raise UpstreamUnavailableError("LLM connection failed") from e

        elapsed_ms = int((time.monotonic() - start) * 1000)
        text = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )
        usage = response.usage
        logger.info(
            "LLM OK | model=%s | tokens_in=%d tokens_out=%d | %dms",
            model, usage.input_tokens, usage.output_tokens, elapsed_ms,
        )
        return text

    raise UpstreamUnavailableError("LLM call failed after all retries")


def extract_json(text: str) -> dict | None:
    """Return the first JSON object embedded in potentially messy LLM output.

    The whole text is tried first; otherwise the text is scanned for balanced
    `{...}` blocks (string-aware), which also covers code fences and prose
    around the object. Arrays and scalars are ignored.
    """
    if not text:
        return None

    trimmed = text.strip()
    if trimmed.startswith("{"):
        result = _try_parse(trimmed)
        if result is not None:
            return result

    for block in _balanced_blocks(text):
        result = _try_parse(block)
        if result is not None:
            return result
    return None


def _try_parse(s: str) -> dict | None:
    try:
        obj = json.loads(s)
    except (json.JSONDecodeError, ValueError):
        return None
    return obj if isinstance(obj, dict) else None


def _balanced_blocks(text: str):
    """Yield each top-level balanced {...} substring, left to right."""
    depth = 0
    start = -1
    in_string = False
    escape = False
    for i, ch in enumerate(text):
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"' and depth > 0:
            in_string = True
        elif ch == "{":
            if depth == 0:
                start = i
            depth += 1
        elif ch == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                yield text[start:i + 1]
