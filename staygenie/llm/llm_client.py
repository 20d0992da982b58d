# llm/llm_client.py
"""
JSON completions from OpenAI (when a key is configured) or a local Ollama.
Callers get a parsed dict or an LLMError; nothing else escapes.
"""

import json
import re
from typing import Any, Dict, Optional

import httpx
from loguru import logger
from openai import AsyncOpenAI

from ..config import settings


class LLMError(Exception):
    """LLM unavailable, timed out, or returned something that is not JSON"""


_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.MULTILINE)


def parse_json_reply(text: str) -> Dict[str, Any]:
    """Parse a model reply that should be a JSON object"""
    if not text:
        raise LLMError("Empty LLM reply")
    cleaned = _FENCE.sub("", text.strip())
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        # Some models wrap the object in prose
        start, end = cleaned.find("{"), cleaned.rfind("}")
        if start == -1 or end <= start:
            raise LLMError(f"LLM reply is not JSON: {cleaned[:80]!r}")
        try:
            data = json.loads(cleaned[start:end + 1])
        except json.JSONDecodeError as e:
            raise LLMError(f"LLM reply is not JSON: {e}") from e
    if not isinstance(data, dict):
        raise LLMError("LLM reply is not a JSON object")
    return data


class LLMClient:
    """Thin async wrapper over OpenAI chat completions / Ollama generate"""

    def __init__(
        self,
        openai_api_key: Optional[str] = None,
        openai_model: Optional[str] = None,
        ollama_base_url: Optional[str] = None,
        ollama_model: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        api_key = settings.OPENAI_API_KEY if openai_api_key is None else openai_api_key
        self.openai_model = openai_model or settings.OPENAI_MODEL
        self.ollama_base_url = ollama_base_url or settings.OLLAMA_BASE_URL
        self.ollama_model = ollama_model or settings.OLLAMA_MODEL
        self.timeout = timeout or settings.LLM_TIMEOUT_SECONDS

        self.openai_client: Optional[AsyncOpenAI] = None
        if api_key and not api_key.startswith("sk-your"):
            self.openai_client = AsyncOpenAI(api_key=api_key, timeout=self.timeout)
            logger.info(f"✓ LLM Provider: OpenAI ({self.openai_model})")
        else:
            logger.info(f"✓ LLM Provider: Ollama ({self.ollama_model})")

    @property
    def provider(self) -> str:
        return "openai" if self.openai_client else "ollama"

    async def complete_json(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int = 600,
        temperature: float = 0.4,
    ) -> Dict[str, Any]:
        if self.openai_client:
            text = await self._call_openai(system_prompt, user_prompt, max_tokens, temperature)
        else:
            text = await self._call_ollama(system_prompt, user_prompt, max_tokens, temperature)
        return parse_json_reply(text)

    async def _call_openai(self, system_prompt: str, user_prompt: str, max_tokens: int, temperature: float) -> str:
        try:
            response = await self.openai_client.chat.completions.create(
                model=self.openai_model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                max_tokens=max_tokens,
                temperature=temperature,
                response_format={"type": "json_object"},
            )
        except Exception as e:
            raise LLMError(f"OpenAI API error: {e}") from e
        return response.choices[0].message.content or ""

    async def _call_ollama(self, system_prompt: str, user_prompt: str, max_tokens: int, temperature: float) -> str:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.ollama_base_url}/api/generate",
                    json={
                        "model": self.ollama_model,
                        "prompt": f"{system_prompt}\n\n{user_prompt}",
                        "stream": False,
                        "format": "json",
                        "options": {
                            "temperature": temperature,
                            "num_predict": max_tokens
                        }
                    }
                )
        except httpx.ConnectError as e:
            raise LLMError("Cannot connect to Ollama. Make sure Ollama is running.") from e
        except httpx.HTTPError as e:
            raise LLMError(f"Ollama API error: {e}") from e

        if response.status_code != 200:
            raise LLMError(f"Ollama error: {response.status_code}")
        return response.json().get("response", "")
