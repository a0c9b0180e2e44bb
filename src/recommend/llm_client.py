"""
Chat-completion client for JSON-only prompts.

Talks to any OpenAI-compatible endpoint (a local Ollama server's /v1 by
default). The model is treated as unreliable: its text is supposed to be a
single JSON object but may be fenced, wrapped, prefixed with prose, or
broken. This module owns all of the parsing and repair:

1. Ask once, cut the text between the first "{" and the last "}", parse.
2. If that fails, ask the model to re-emit the same content as valid JSON.
3. Callers unwrap result/data/output wrappers with decode_llm_object().
"""

import json
import re
import threading
import time
from typing import Any, Dict, List, Optional

import openai
from openai import OpenAI

from config.settings import Settings, get_settings
from core.logging import get_logger

logger = get_logger(__name__)


Message = Dict[str, str]


class LLMError(Exception):
    """Base class for chat-completion failures."""
    pass


class LLMUnavailableError(LLMError):
    """Transport error, timeout, or non-2xx status from the endpoint."""
    pass


class LLMResponseError(LLMError):
    """The model's output could not be parsed as a JSON object, even after repair."""
    pass


_REPAIR_SYSTEM_PROMPT = (
    "너는 JSON 리페어 도구야. 반드시 JSON 오브젝트만 출력해. 설명/문장/코드블록 금지."
)
_REPAIR_USER_PREFIX = (
    "아래 출력은 JSON이 아니거나 깨졌어. 같은 의미로 VALID JSON 오브젝트만 다시 출력해.\n\n"
)

_CODE_FENCE = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.DOTALL)


# =============================================================================
# Parsing
# =============================================================================

def extract_first_json_object(text: str) -> str:
    """
    Slice from the first "{" to the last "}".

    Raises:
        ValueError: If the text holds no brace pair
    """
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end <= start:
        raise ValueError("No JSON object found")
    return text[start:end + 1]


def parse_json_object(text: str) -> Any:
    """Parse model text, tolerating code fences and surrounding prose."""
    fenced = _CODE_FENCE.search(text)
    if fenced:
        try:
            return json.loads(extract_first_json_object(fenced.group(1)))
        except ValueError:
            pass
    return json.loads(extract_first_json_object(text))


def decode_llm_object(raw: Any) -> Any:
    """
    Unwrap a model payload to the object callers validate.

    Tried in order:
        str                          -> parsed JSON object (None if unparseable)
        non-dict                     -> returned as-is
        dict with dict result/data/output (in that order) -> that dict
        dict with JSON-string text/content/message       -> parsed object
        otherwise                    -> the dict itself
    """
    if isinstance(raw, str):
        try:
            return parse_json_object(raw)
        except ValueError:
            return None

    if not isinstance(raw, dict):
        return raw

    for key in ("result", "data", "output"):
        inner = raw.get(key)
        if isinstance(inner, dict):
            return inner

    for key in ("text", "content", "message"):
        inner = raw.get(key)
        if isinstance(inner, str):
            try:
                return parse_json_object(inner)
            except ValueError:
                continue

    return raw


# =============================================================================
# Client
# =============================================================================

class LLMClient:
    """OpenAI-compatible chat client returning parsed JSON objects."""

    def __init__(self, settings: Optional[Settings] = None, client: Optional[OpenAI] = None):
        settings = settings or get_settings()
        self._client = client
        self._client_lock = threading.Lock()
        self._base_url = settings.llm_base_url
        self._api_key = settings.llm_api_key
        self._model = settings.llm_model
        self._temperature = settings.llm_temperature
        self._timeout = settings.llm_timeout_seconds

    @property
    def model(self) -> str:
        return self._model

    @property
    def client(self) -> OpenAI:
        """Lazy-load the OpenAI client. Retries are ours, so the SDK's are off."""
        if self._client is None:
            with self._client_lock:
                if self._client is None:
                    self._client = OpenAI(
                        base_url=self._base_url,
                        api_key=self._api_key,
                        timeout=self._timeout,
                        max_retries=0,
                    )
        return self._client

    def complete(self, messages: List[Message]) -> str:
        """
        One chat completion, returning the raw assistant text.

        Raises:
            LLMUnavailableError: On transport errors, timeouts, or error statuses
        """
        t_start = time.time()
        try:
            response = self.client.chat.completions.create(
                model=self._model,
                messages=messages,
                temperature=self._temperature,
                response_format={"type": "json_object"},
            )
        except openai.APIError as e:
            logger.warning(
                "Chat completion failed",
                model=self._model,
                error=str(e),
                error_type=type(e).__name__,
                latency_ms=int((time.time() - t_start) * 1000),
            )
            raise LLMUnavailableError(str(e)) from e

        content = response.choices[0].message.content if response.choices else None
        logger.debug(
            "Chat completion received",
            model=self._model,
            latency_ms=int((time.time() - t_start) * 1000),
            chars=len(content or ""),
        )
        return content or ""

    def chat_json(self, messages: List[Message]) -> Any:
        """
        Ask for a JSON object; on unparseable output, ask once for a repair.

        Raises:
            LLMUnavailableError: If either round trip fails
            LLMResponseError: If the repaired output still does not parse
        """
        first = self.complete(messages)
        try:
            return parse_json_object(first)
        except ValueError as e:
            logger.warning("Model returned non-JSON output, requesting repair", error=str(e), output=first)

        repaired = self.complete([
            {"role": "system", "content": _REPAIR_SYSTEM_PROMPT},
            {"role": "user", "content": _REPAIR_USER_PREFIX + first},
        ])
        try:
            return parse_json_object(repaired)
        except ValueError as e:
            raise LLMResponseError(f"Unparseable model output after repair: {e}") from e


# =============================================================================
# Singleton
# =============================================================================

_llm_client: Optional[LLMClient] = None
_llm_client_lock = threading.Lock()


def get_llm_client() -> LLMClient:
    """Get or create the LLMClient singleton (thread-safe)."""
    global _llm_client
    if _llm_client is None:
        with _llm_client_lock:
            if _llm_client is None:
                _llm_client = LLMClient()
    return _llm_client
