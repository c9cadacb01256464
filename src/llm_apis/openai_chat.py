from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence

import openai
from openai import OpenAI

from llm_apis.llm_api import LLMGateway, LLMGatewayError, LLMTimeoutError
from prompts.agent_prompts import ESTIMATE_AGENT_SYSTEM

logger = logging.getLogger(__name__)

__all__ = ["OpenAIChatGateway", "RequestShape", "REQUEST_SHAPES"]

RETRY_FLOOR_S = 5.0


def _serialize_for_log(payload: Mapping[str, Any]) -> str:
    try:
        return json.dumps(payload, ensure_ascii=False, default=str)
    except TypeError:
        return repr(payload)


def _log_function_call(name: str, payload: Mapping[str, Any]) -> None:
    logger.info("OpenAIChat.%s input=%s", name, _serialize_for_log(payload))


@dataclass(frozen=True)
class RequestShape:
    """One accepted request layout; providers differ on these fields."""

    token_field: str
    send_temperature: bool = True
    json_mode: bool = True


# Tried in order whenever the provider rejects a request parameter (HTTP 400).
REQUEST_SHAPES: Sequence[RequestShape] = (
    RequestShape("max_completion_tokens"),
    RequestShape("max_tokens"),
    RequestShape("max_completion_tokens", send_temperature=False),
    RequestShape("max_completion_tokens", send_temperature=False, json_mode=False),
)


class OpenAIChatGateway(LLMGateway):
    """LLMGateway backed by the OpenAI chat-completions endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        model: str = "gpt-5-mini",
        base_url: Optional[str] = None,
        temperature: float = 1.0,
        max_tokens: int = 400,
        json_mode: bool = True,
        client: Optional[Any] = None,
        shapes: Sequence[RequestShape] = REQUEST_SHAPES,
    ) -> None:
        if client is None:
            if not api_key:
                raise ValueError("api_key is required when no client is given")
            # Retries are handled here, not by the SDK.
            client = OpenAI(api_key=api_key, base_url=base_url, max_retries=0)
        self.client = client
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.json_mode = json_mode
        if not json_mode:
            shapes = [RequestShape(s.token_field, s.send_temperature, json_mode=False) for s in shapes]
        self.shapes = tuple(dict.fromkeys(shapes))
        super().__init__("openai")

    def send(self, prompt: str, timeout_s: float, *, max_tokens: Optional[int] = None) -> str:
        _log_function_call(
            "send",
            {"model": self.model, "prompt_chars": len(prompt), "timeout_s": timeout_s, "max_tokens": max_tokens},
        )
        deadline = time.monotonic() + timeout_s
        retried = False
        index = 0
        while index < len(self.shapes):
            shape = self.shapes[index]
            budget = deadline - time.monotonic()
            if budget <= 0:
                raise LLMTimeoutError(f"OpenAI call exceeded its {timeout_s:g}s budget")
            try:
                response = self.client.chat.completions.create(
                    **self._build_request(shape, prompt, max_tokens or self.max_tokens),
                    timeout=budget,
                )
            except openai.APITimeoutError as exc:
                if retried:
                    raise LLMTimeoutError(f"OpenAI call timed out after retry: {exc}") from exc
                logger.warning("OpenAI call timed out, retrying once (model=%s)", self.model)
                retried = True
                # The retry gets whatever is left, but never less than the floor.
                deadline = max(deadline, time.monotonic() + RETRY_FLOOR_S)
                continue
            except openai.BadRequestError as exc:
                logger.warning(
                    "OpenAI rejected request shape %s: %s", shape, getattr(exc, "message", exc)
                )
                index += 1
                continue
            except openai.APIStatusError as exc:
                raise LLMGatewayError(f"OpenAI returned HTTP {exc.status_code}: {exc.message}") from exc
            except openai.OpenAIError as exc:
                raise LLMGatewayError(f"OpenAI call failed: {exc}") from exc
            return self._extract_text(response)
        raise LLMGatewayError("OpenAI rejected every request shape")

    # --------------------------------------------------------------------- #
    # Internal helpers
    # --------------------------------------------------------------------- #

    def _build_request(self, shape: RequestShape, prompt: str, max_tokens: int) -> Dict[str, Any]:
        messages: List[Dict[str, str]] = [
            {"role": "system", "content": ESTIMATE_AGENT_SYSTEM},
            {"role": "user", "content": prompt},
        ]
        request: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            shape.token_field: int(max_tokens),
        }
        if shape.send_temperature:
            request["temperature"] = self.temperature
        if shape.json_mode:
            request["response_format"] = {"type": "json_object"}
        return request

    def _extract_text(self, response: Any) -> str:
        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError, TypeError) as exc:
            raise LLMGatewayError(f"Unexpected completion payload: {exc}") from exc
        return content or ""
