"""
services/llm_service.py

Unified generative-model client used by the grammar and chat adapters.
Supports any OpenAI-compatible endpoint:
  - Gemini      (OpenAI-compatible endpoint, default)
  - OpenRouter  (any model via API key)
  - Self-hosted (vLLM / Ollama / LM Studio)

Upstream failures are classified here, once, from the client's typed
exceptions:
  RateLimitError              → UPSTREAM_QUOTA_EXCEEDED (429)
  BadRequestError / filtered  → UPSTREAM_INPUT_REJECTED (400)
  anything else               → INTERNAL_FAILURE        (500)
"""

import json
import re
import time
from typing import Any, Optional

import openai
from openai import AsyncOpenAI

from bhasha.core.config import settings
from bhasha.core.errors import ErrorKind, ServiceError
from bhasha.core.logger import get_logger

logger = get_logger(__name__)


class LLMService:
    def __init__(self):
        self._client: Optional[AsyncOpenAI] = None

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            kwargs = {
                "api_key": settings.llm_api_key or "none",
                "base_url": settings.llm_base_url,
                "timeout": settings.LLM_TIMEOUT,
            }
            if settings.LLM_PROVIDER == "openrouter":
                kwargs["default_headers"] = {
                    "HTTP-Referer": "https://github.com/bhasha-edtech",
                    "X-Title": "Bhasha EdTech Backend",
                }
            self._client = AsyncOpenAI(**kwargs)
        return self._client

    async def complete(
        self,
        system: str,
        user: str,
        *,
        max_tokens: int,
        temperature: float,
        history: Optional[list[dict]] = None,
        service: str = "AI service",
        rejected_message: str = "The request could not be processed by the AI service",
    ) -> str:
        """
        One chat completion → trimmed text.
        `history` holds earlier user/assistant turns, oldest first.
        `service` names the feature in quota messages ("Grammar check", ...).
        """
        t0 = time.perf_counter()
        messages = [{"role": "system", "content": system}]
        messages.extend(history or [])
        messages.append({"role": "user", "content": user})
        try:
            response = await self.client.chat.completions.create(
                model=settings.llm_model,
                messages=messages,
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except openai.RateLimitError as e:
            logger.error(f"LLM quota exceeded: {e}")
            raise ServiceError(
                ErrorKind.UPSTREAM_QUOTA_EXCEEDED,
                f"{service} quota exceeded. Please try again later.",
                detail=str(e),
            ) from e
        except openai.BadRequestError as e:
            logger.error(f"LLM rejected input: {e}")
            raise ServiceError(ErrorKind.UPSTREAM_INPUT_REJECTED, rejected_message, detail=str(e)) from e
        except (openai.APIConnectionError, openai.APIError) as e:
            logger.error(f"LLM exception: {type(e).__name__}: {e}", exc_info=True)
            raise ServiceError(
                ErrorKind.INTERNAL_FAILURE,
                f"{service} failed",
                detail=f"{type(e).__name__}: {e}",
            ) from e

        latency_ms = int((time.perf_counter() - t0) * 1000)
        if not response.choices:
            raise ServiceError(ErrorKind.INTERNAL_FAILURE, f"{service} failed", detail="AI returned no choices")

        choice = response.choices[0]
        if getattr(choice, "finish_reason", None) == "content_filter":
            logger.warning(f"LLM content filter triggered [{latency_ms}ms]")
            raise ServiceError(ErrorKind.UPSTREAM_INPUT_REJECTED, rejected_message, detail="content_filter")

        raw = (choice.message.content or "").strip()
        logger.info(f"LLM raw [{latency_ms}ms] model={settings.llm_model}: {repr(raw[:300])}")

        if not raw:
            logger.error(
                "LLM returned EMPTY content. "
                "Check: 1) API key in .env  2) Model name  3) Provider quota"
            )
            raise ServiceError(ErrorKind.INTERNAL_FAILURE, f"{service} failed", detail="empty_llm_response")
        return raw

    # ─────────────────────────────────────────────────────────────────────
    # JSON extraction from free-text model output
    # ─────────────────────────────────────────────────────────────────────

    def _repair_truncated_json(self, raw: str) -> str:
        """
        Repair JSON cut off by max_tokens limit.
        e.g. {"intent":"greeting","reply":"Hello how can I
          ->  {"intent":"greeting","reply":"Hello how can I"}
        """
        s = raw.strip()
        if s and s[-1] not in ('"', '}'):
            s = s + '"'
        opens = s.count("{") - s.count("}")
        if opens > 0:
            s = s + "}" * opens
        return s

    def parse_json_object(self, raw: str) -> Optional[dict[str, Any]]:
        """
        Best-effort JSON object from model output, or None.
        Handles 4 cases:
          1. Clean JSON
          2. Markdown-fenced JSON  ```json {...} ```
          3. Truncated JSON cut off by max_tokens
          4. JSON buried in prose text
        """
        cleaned = strip_fences(raw)

        try:
            data = json.loads(cleaned)
            if isinstance(data, dict):
                return data
        except json.JSONDecodeError:
            pass

        try:
            data = json.loads(self._repair_truncated_json(cleaned))
            if isinstance(data, dict):
                logger.warning(f"Repaired truncated JSON OK: {cleaned[:150]}")
                return data
        except json.JSONDecodeError:
            pass

        match = re.search(r"\{[^{}]*\}", cleaned, re.DOTALL)
        if match:
            try:
                data = json.loads(match.group())
                logger.warning(f"Extracted JSON from prose: {match.group()[:100]}")
                return data
            except json.JSONDecodeError:
                pass

        logger.warning(f"All JSON parsing failed. Raw: {cleaned[:150]}")
        return None


def strip_fences(raw: str) -> str:
    cleaned = (raw or "").strip()
    if "```" in cleaned:
        cleaned = re.sub(r"```(?:json)?\s*", "", cleaned)
        cleaned = re.sub(r"```", "", cleaned)
        cleaned = cleaned.strip()
    return cleaned


# Singleton
llm_service = LLMService()
