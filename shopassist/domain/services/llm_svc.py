# shopassist/domain/services/llm_svc.py

from __future__ import annotations
from typing import Any, Dict, Optional, Protocol
import asyncio
import json
import logging
import re
from time import monotonic as _now

from openai import AsyncOpenAI, OpenAIError

from shopassist.core.config import Settings
from shopassist.core.errors import GenerationError, UpstreamFormatError

logger = logging.getLogger(__name__)


class Generator(Protocol):
    """Anything that turns a prompt into raw JSON text."""

    async def generate(self, prompt: str, *, system: Optional[str] = None, max_tokens: Optional[int] = None) -> str:
        ...


class OpenAIGenerator:
    """
    Chat-completion backed generator in JSON mode.

    No retries: the answer is non-deterministic and costly, so a failure is
    reported once as GenerationError and retry policy stays with the caller.
    The whole call is bounded by `timeout_s`.
    """

    def __init__(self, client: AsyncOpenAI, *, model: str, timeout_s: float = 60):
        self.client = client
        self.model = model
        self.timeout_s = timeout_s

    @classmethod
    def from_settings(cls, settings: Settings, *, model: str) -> "OpenAIGenerator":
        client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY, max_retries=0)
        return cls(client, model=model, timeout_s=settings.GENERATION_TIMEOUT_S)

    async def generate(self, prompt: str, *, system: Optional[str] = None, max_tokens: Optional[int] = None) -> str:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        kwargs: Dict[str, Any] = {}
        if max_tokens:
            kwargs["max_tokens"] = max_tokens

        t0 = _now()
        try:
            resp = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    response_format={"type": "json_object"},
                    **kwargs,
                ),
                timeout=self.timeout_s,
            )
        except asyncio.TimeoutError as e:
            raise GenerationError(f"LLM call timed out after {self.timeout_s}s (model={self.model})") from e
        except OpenAIError as e:
            raise GenerationError(f"LLM call failed (model={self.model}): {e}") from e
        dt = _now() - t0

        u = getattr(resp, "usage", None)
        logger.info(
            "LLM call model=%s duration=%.3fs tokens(prompt=%s, completion=%s, total=%s)",
            getattr(resp, "model", self.model), dt,
            getattr(u, "prompt_tokens", None), getattr(u, "completion_tokens", None), getattr(u, "total_tokens", None),
        )
        if not resp.choices:
            raise GenerationError(f"LLM returned no choices (model={self.model})")
        return resp.choices[0].message.content or ""


# Regex to strip code fences (``` or ```json) from LLM output
_CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.MULTILINE)

def _strip_fences(s: str) -> str:
    """Remove ``` or ```json fences the LLM might add."""
    return _CODE_FENCE_RE.sub("", s).strip()

def parse_json_object(raw: str) -> Dict[str, Any]:
    """
    Parse generator output into a JSON object.
    Raises UpstreamFormatError on empty text, invalid JSON or a non-object root.
    """
    text = _strip_fences(raw or "")
    if not text:
        raise UpstreamFormatError("LLM returned an empty response", raw=raw)
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise UpstreamFormatError(f"LLM returned invalid JSON: {e}", raw=raw) from e
    if not isinstance(parsed, dict):
        raise UpstreamFormatError(f"LLM returned a JSON {type(parsed).__name__}, expected an object", raw=raw)
    return parsed
