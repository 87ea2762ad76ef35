"""
Generation Gateway
-------------------
The text-generation model is an opaque call: prompt in, text out.

OpenAIGateway routes each request to one of two OpenAI-compatible
endpoints:

  - the user's own endpoint, when the request's ModelConfig carries both
    an api_key and a base_url (model defaults to `user_default_model`)
  - the built-in default model otherwise (OPENAI_API_KEY / OPENAI_BASE_URL
    from the environment)

No timeout or retry policy is added here; any failure is raised as a
GatewayError with the upstream status attached when there is one.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Optional

import openai
from langsmith import traceable
from loguru import logger
from openai import AsyncOpenAI

from novel_rag.exceptions import GatewayError
from novel_rag.schemas import ModelConfig


class GenerationGateway(ABC):
    """Text completion interface consumed by ChapterGenerator."""

    @abstractmethod
    async def complete(self, prompt: str, model_config: Optional[ModelConfig] = None) -> str:
        ...


def _normalise_base_url(base_url: str) -> str:
    """Accept both 'https://host' and 'https://host/v1' for user endpoints."""
    url = base_url.rstrip("/")
    if not url.endswith("/v1"):
        url = f"{url}/v1"
    return url


class OpenAIGateway(GenerationGateway):
    """
    Chat-completions gateway for the built-in model and user endpoints.

    Args:
        model:              Built-in default model.
        user_default_model: Model used for a user endpoint that names none.
        temperature:        Sampling temperature for every request.
        client_factory:     Callable building an AsyncOpenAI-compatible client
                            from (api_key=..., base_url=...) keyword args.
    """

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        user_default_model: str = "gpt-4",
        temperature: float = 0.7,
        client_factory: Callable[..., AsyncOpenAI] = AsyncOpenAI,
    ) -> None:
        self.model = model
        self.user_default_model = user_default_model
        self.temperature = temperature
        self._client_factory = client_factory
        self._default_client: Optional[AsyncOpenAI] = None

    def _resolve(self, model_config: Optional[ModelConfig]) -> tuple[AsyncOpenAI, str]:
        if model_config is not None and model_config.uses_user_endpoint:
            client = self._client_factory(
                api_key=model_config.api_key,
                base_url=_normalise_base_url(model_config.base_url),
            )
            return client, model_config.model or self.user_default_model

        if self._default_client is None:
            self._default_client = self._client_factory()
        return self._default_client, self.model

    @traceable(name="complete", run_type="llm")
    async def complete(self, prompt: str, model_config: Optional[ModelConfig] = None) -> str:
        client, model = self._resolve(model_config)
        endpoint = "user" if model_config is not None and model_config.uses_user_endpoint else "built-in"
        logger.debug(f"[Gateway] {endpoint} | model={model} | prompt={len(prompt)} chars")

        try:
            response = await client.chat.completions.create(
                model=model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.temperature,
            )
        except openai.APIStatusError as exc:
            logger.error(f"[Gateway] {endpoint} call failed: {exc.status_code} {exc.message}")
            raise GatewayError(
                f"API call failed: {exc.message}",
                status_code=exc.status_code,
                details={"model": model, "endpoint": endpoint},
            ) from exc
        except openai.APIError as exc:
            logger.error(f"[Gateway] {endpoint} call failed: {exc}")
            raise GatewayError(
                f"API call failed: {exc}",
                details={"model": model, "endpoint": endpoint},
            ) from exc

        if not response.choices:
            raise GatewayError("API returned no choices", details={"model": model})

        content = response.choices[0].message.content or ""
        usage = getattr(response, "usage", None)
        if usage is not None:
            logger.info(
                f"[Gateway] Done | model={model} | prompt={usage.prompt_tokens} "
                f"completion={usage.completion_tokens}"
            )
        return content
