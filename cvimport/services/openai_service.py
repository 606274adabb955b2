"""
OpenAI-based extraction service.

Sends the extracted CV text to a chat-completions model and forces it to
answer through a single function call whose parameters are the CV entity
schema, so the reply is a JSON object rather than free text.

Rate limiting (429), exhausted credits (402) and transport failures are
mapped to typed error codes and returned immediately; there is no retry
loop here, the caller decides what to offer the user.
"""

from __future__ import annotations

import asyncio
import json
import os
from typing import Any, Dict, Optional

import openai
from openai import OpenAI

from ..logging_utils import LOG
from ..shared import format_prompt, load_prompt
from .base import ExtractionRequest, ExtractionResponse, ExtractionService, ServiceErrorCode

TOOL_NAME = "extract_cv_data"


def strip_markdown_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```json"):
        text = text[len("```json") :]
    elif text.startswith("```"):
        text = text[len("```") :]
    if text.endswith("```"):
        text = text[: -len("```")]
    return text.strip()


def extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    """
    Robustly extract a JSON object from model output.

    Handles:
    - pure JSON
    - fenced code blocks
    - extra commentary around JSON
    """
    if not isinstance(text, str):
        return None

    cleaned = strip_markdown_fences(text)

    try:
        obj = json.loads(cleaned)
        return obj if isinstance(obj, dict) else None
    except json.JSONDecodeError:
        pass

    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end == -1 or end <= start:
        return None

    try:
        obj = json.loads(cleaned[start : end + 1])
        return obj if isinstance(obj, dict) else None
    except json.JSONDecodeError:
        return None


def _get_status_code(exc: Exception) -> Optional[int]:
    """
    Best-effort extraction of HTTP status from OpenAI SDK exceptions.
    """
    for attr in ("status_code", "status", "http_status"):
        val = getattr(exc, attr, None)
        if isinstance(val, int):
            return val
    resp = getattr(exc, "response", None)
    if resp is not None:
        sc = getattr(resp, "status_code", None)
        if isinstance(sc, int):
            return sc
    return None


def error_code_for_status(status: Optional[int]) -> ServiceErrorCode:
    if status == 429:
        return ServiceErrorCode.RateLimited
    if status == 402:
        return ServiceErrorCode.PaymentRequired
    return ServiceErrorCode.ServiceUnavailable


def _tool_parameters(schema: Dict[str, Any]) -> Dict[str, Any]:
    # Function parameters are a bare schema object; meta keys are not accepted.
    return {k: v for k, v in schema.items() if k not in ("$schema", "$id", "title")}


class OpenAIExtractionService(ExtractionService):
    """
    Extraction service using the OpenAI chat completions API with a forced tool call.
    """

    default_model = "gpt-4o-mini"

    def __init__(
        self,
        model: Optional[str] = None,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_s: float = 120.0,
        **kwargs,
    ):
        """
        Initialize the OpenAI service.

        Args:
            model: Chat model to use (default: gpt-4o-mini)
            api_key: API key; falls back to OPENAI_API_KEY
            base_url: Alternative OpenAI-compatible endpoint
            timeout_s: Per-request timeout
            **kwargs: Additional arguments (reserved for future use)
        """
        self.model = model or self.default_model
        self._api_key = api_key
        self._base_url = base_url
        self._timeout_s = float(timeout_s)
        self._client: Optional[OpenAI] = None

    def name(self) -> str:
        return "openai"

    def _resolve_api_key(self) -> Optional[str]:
        return self._api_key or os.environ.get("OPENAI_API_KEY")

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            api_key = self._resolve_api_key()
            if not api_key:
                raise RuntimeError(
                    "OPENAI_API_KEY must be set to use OpenAIExtractionService"
                )
            self._client = OpenAI(
                api_key=api_key,
                base_url=self._base_url,
                timeout=self._timeout_s,
                max_retries=0,
            )
        return self._client

    def _build_messages(self, text: str) -> list[Dict[str, str]]:
        system_prompt = load_prompt("cv_extraction_system")
        if not system_prompt:
            raise RuntimeError("Failed to load system prompt")
        user_prompt = format_prompt("cv_extraction_user", cv_text=text)
        if not user_prompt:
            raise RuntimeError("Failed to format user prompt")
        return [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]

    def _create_completion(self, request: ExtractionRequest) -> Any:
        return self.client.chat.completions.create(
            model=self.model,
            messages=self._build_messages(request.text),
            tools=[
                {
                    "type": "function",
                    "function": {
                        "name": TOOL_NAME,
                        "description": "Extract the structured information of a CV as JSON",
                        "parameters": _tool_parameters(request.schema),
                    },
                }
            ],
            tool_choice={"type": "function", "function": {"name": TOOL_NAME}},
            temperature=0,
        )

    async def extract(self, request: ExtractionRequest) -> ExtractionResponse:
        LOG.info("Calling %s (%s) with %d chars of CV text", self.name(), self.model, len(request.text))
        try:
            completion = await asyncio.to_thread(self._create_completion, request)
        except RuntimeError as e:
            # Missing credentials or prompt resources.
            LOG.error("%s service not usable: %s", self.name(), e)
            return ExtractionResponse.failure(ServiceErrorCode.ServiceUnavailable, str(e))
        except openai.APIStatusError as e:
            status = _get_status_code(e)
            code = error_code_for_status(status)
            LOG.warning("%s returned HTTP %s (%s)", self.name(), status, code.value)
            return ExtractionResponse.failure(code, f"HTTP {status}: {e}")
        except openai.OpenAIError as e:
            # Connection errors, timeouts and other SDK failures.
            LOG.warning("%s request failed: %s", self.name(), e)
            return ExtractionResponse.failure(ServiceErrorCode.ServiceUnavailable, str(e))

        entities = self._entities_from_completion(completion)
        if entities is None:
            return ExtractionResponse.failure(
                ServiceErrorCode.InvalidResponse,
                "model did not return the extract_cv_data function call",
            )
        return ExtractionResponse.success(entities)

    def _entities_from_completion(self, completion: Any) -> Optional[Dict[str, Any]]:
        """
        Pull the function-call arguments out of a completion.

        Falls back to a JSON object in the message content for
        OpenAI-compatible servers that ignore tool_choice.
        """
        choices = getattr(completion, "choices", None)
        if not choices:
            return None
        message = getattr(choices[0], "message", None)
        if message is None:
            return None

        for call in getattr(message, "tool_calls", None) or []:
            function = getattr(call, "function", None)
            if function is None or getattr(function, "name", None) != TOOL_NAME:
                continue
            arguments = getattr(function, "arguments", None)
            if isinstance(arguments, str):
                return extract_json_object(arguments)
            if isinstance(arguments, dict):
                return arguments
            return None

        content = getattr(message, "content", None)
        if isinstance(content, str) and content.strip():
            LOG.debug("No tool call in completion; parsing message content instead")
            return extract_json_object(content)
        return None


class LocalModelExtractionService(OpenAIExtractionService):
    """
    Extraction service for a locally hosted model behind an OpenAI-compatible API.
    """

    default_model = "llama3.1"
    default_base_url = "http://localhost:11434/v1"

    def __init__(self, model: Optional[str] = None, *, base_url: Optional[str] = None, **kwargs):
        super().__init__(
            model,
            base_url=base_url or os.environ.get("OPENAI_BASE_URL") or self.default_base_url,
            **kwargs,
        )

    def name(self) -> str:
        return "local"

    def _resolve_api_key(self) -> Optional[str]:
        # Local servers accept any key.
        return super()._resolve_api_key() or "local"


__all__ = [
    "OpenAIExtractionService",
    "LocalModelExtractionService",
    "extract_json_object",
    "strip_markdown_fences",
    "error_code_for_status",
    "TOOL_NAME",
]
