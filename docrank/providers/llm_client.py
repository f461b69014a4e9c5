"""
LLM Client - Text and JSON completions for re-ranking and query expansion.

Uses the OpenAI chat completions API (OpenAI or Nebius OpenAI-compatible).
"""

import json
import logging
import os
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Optional

import openai
from openai import AsyncOpenAI

from ..errors import LLMError

logger = logging.getLogger(__name__)


@dataclass
class LLMConfig:
    """Configuration for the LLM provider."""
    provider: str = "openai"  # "openai" or "nebius"
    model: str = "gpt-4o-mini"
    temperature: float = 0.0
    max_tokens: int = 1000
    timeout: float = 30.0
    api_key: Optional[str] = None
    base_url: Optional[str] = None


class LLMClient(ABC):
    """Interface every LLM provider implements."""

    @abstractmethod
    async def generate_text(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: Optional[int] = None,
    ) -> str:
        ...

    @abstractmethod
    async def generate_json(
        self,
        system_prompt: str,
        user_prompt: str,
        schema: Optional[dict] = None,
        max_tokens: Optional[int] = None,
    ) -> dict:
        ...


def parse_json_response(text: str) -> dict:
    """Extract the first JSON object from a model response."""
    json_match = re.search(r"\{[\s\S]*\}", text or "")
    if not json_match:
        raise LLMError("No JSON found in response")
    try:
        data = json.loads(json_match.group())
    except json.JSONDecodeError as e:
        raise LLMError(f"Malformed JSON in response: {e}") from e
    if not isinstance(data, dict):
        raise LLMError("JSON response is not an object")
    return data


class OpenAILLMClient(LLMClient):
    """
    Chat-completions client.

    Usage:
        llm = OpenAILLMClient(LLMConfig(api_key="sk-..."))
        text = await llm.generate_text("You are...", "Question...")
    """

    def __init__(self, config: LLMConfig, client: Optional[AsyncOpenAI] = None):
        self.config = config
        if client is not None:
            self._client = client
        else:
            self._client = AsyncOpenAI(
                api_key=config.api_key,
                base_url=config.base_url,
                timeout=config.timeout,
            )
        logger.info(f"LLM client initialized: {config.provider}/{config.model}")

    async def _complete(self, messages: list[dict], max_tokens: Optional[int], **kwargs) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=self.config.model,
                messages=messages,
                temperature=self.config.temperature,
                max_tokens=max_tokens or self.config.max_tokens,
                **kwargs,
            )
        except openai.OpenAIError as e:
            raise LLMError(f"LLM request failed: {e}") from e

        if not response.choices:
            raise LLMError("LLM returned no choices")
        return response.choices[0].message.content or ""

    async def generate_text(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: Optional[int] = None,
    ) -> str:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": user_prompt})
        return await self._complete(messages, max_tokens)

    async def generate_json(
        self,
        system_prompt: str,
        user_prompt: str,
        schema: Optional[dict] = None,
        max_tokens: Optional[int] = None,
    ) -> dict:
        system = system_prompt
        if schema:
            system += f"\n\nRespond with JSON matching this schema:\n{json.dumps(schema)}"
        messages = [
            {"role": "system", "content": system},
            {"role": "user", "content": user_prompt},
        ]
        content = await self._complete(
            messages,
            max_tokens,
            response_format={"type": "json_object"},
        )
        return parse_json_response(content)


def create_llm_client(config: LLMConfig) -> Optional[LLMClient]:
    """Build the configured LLM client, or None when no API key is set."""
    if config.provider == "nebius":
        api_key = config.api_key or os.getenv("LLM_API_KEY")
        base_url = config.base_url or os.getenv("LLM_BASE_URL", "https://api.studio.nebius.ai/v1")
    elif config.provider == "openai":
        api_key = config.api_key or os.getenv("OPENAI_API_KEY")
        base_url = config.base_url
    else:
        raise ValueError(f"Unknown LLM provider: {config.provider}")

    if not api_key:
        logger.warning(f"No API key for LLM provider '{config.provider}' - re-ranking and LLM query expansion disabled")
        return None

    return OpenAILLMClient(replace(config, api_key=api_key, base_url=base_url))
