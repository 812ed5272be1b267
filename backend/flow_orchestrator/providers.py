# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
LLM Providers

Provider clients used by `llm` nodes. The engine only depends on the
LLMProvider protocol; AnthropicProvider is the default implementation.
"""

from typing import Any, Dict, Optional, Protocol

from flow_orchestrator.core.logging import get_service_logger
from flow_orchestrator.flow.exceptions import ContentPolicyViolation

logger = get_service_logger("providers")


class LLMProvider(Protocol):
    """Anything that can turn a prompt into text"""

    async def generate(
        self,
        *,
        model: str,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: int = 1024,
    ) -> Dict[str, Any]:
        """
        Returns {"text": str, "model": str, "usage": {...}}.

        Raises ContentPolicyViolation when the provider refuses the request;
        any other exception is treated as a retryable failure.
        """
        ...


class AnthropicProvider:
    """LLMProvider backed by the Anthropic Messages API"""

    def __init__(self, client=None, api_key: Optional[str] = None):
        if client is None:
            from anthropic import AsyncAnthropic
            client = AsyncAnthropic(api_key=api_key)
        self.client = client

    async def generate(
        self,
        *,
        model: str,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: int = 1024,
    ) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_prompt:
            kwargs["system"] = system_prompt
        if temperature is not None:
            kwargs["temperature"] = temperature

        response = await self.client.messages.create(**kwargs)

        if response.stop_reason == "refusal":
            logger.warning(f"Model {model} refused prompt")
            raise ContentPolicyViolation(f"Model {model} refused the request")

        text = "".join(
            block.text for block in response.content
            if getattr(block, "type", None) == "text"
        )

        return {
            "text": text,
            "model": response.model,
            "usage": {
                "input_tokens": response.usage.input_tokens,
                "output_tokens": response.usage.output_tokens,
            },
        }
