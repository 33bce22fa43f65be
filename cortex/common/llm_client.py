"""
Provider-agnostic LLM client for Cortex.

Supports Anthropic, OpenAI, and Google Gemini with a shared text-generation
interface. Used by the agent matcher and the chat agents; a missing package
or API key leaves the client unavailable instead of failing.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from typing import Optional

from .config import LLMConfig

logger = logging.getLogger("cortex.common.llm_client")

SUPPORTED_PROVIDERS = ("anthropic", "openai", "google")


class LLMClient:
    """Unified text generation client across LLM providers."""

    def __init__(
        self,
        provider: str = "anthropic",
        model: str = "",
        api_key: Optional[str] = None,
    ) -> None:
        self.provider = (provider or "anthropic").lower()
        self.model = model
        self._client = None
        self._google_models = {}

        if self.provider not in SUPPORTED_PROVIDERS:
            logger.warning("Unsupported LLM provider: %s", self.provider)
            return

        if not api_key:
            logger.info("%s API key not provided, LLM client unavailable", self.provider)
            return

        try:
            getattr(self, f"_init_{self.provider}")(api_key)
        except ImportError as e:
            logger.warning("%s package not installed: %s", self.provider, e)
        except Exception as e:
            logger.warning("Failed to initialize %s client: %s", self.provider, e)

    @classmethod
    def from_config(cls, config: LLMConfig) -> "LLMClient":
        keys = {
            "anthropic": config.anthropic_api_key,
            "openai": config.openai_api_key,
            "google": config.google_api_key,
        }
        return cls(
            provider=config.provider,
            model=config.model,
            api_key=keys.get((config.provider or "").lower()),
        )

    def _init_anthropic(self, api_key: str) -> None:
        import anthropic

        self._client = anthropic.Anthropic(api_key=api_key)

    def _init_openai(self, api_key: str) -> None:
        from openai import OpenAI

        self._client = OpenAI(api_key=api_key)

    def _init_google(self, api_key: str) -> None:
        import google.generativeai as genai

        genai.configure(api_key=api_key)
        self._client = genai  # module, models are built per system prompt

    @property
    def is_available(self) -> bool:
        return self._client is not None

    def generate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        max_tokens: int = 512,
        timeout: float = 30.0,
    ) -> str:
        if not self.is_available:
            raise RuntimeError("LLM client is not available")

        if self.provider == "anthropic":
            kwargs = {}
            if system:
                kwargs["system"] = system
            response = self._client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                messages=[{"role": "user", "content": prompt}],
                timeout=timeout,
                **kwargs,
            )
            return response.content[0].text.strip()

        if self.provider == "openai":
            messages = []
            if system:
                messages.append({"role": "system", "content": system})
            messages.append({"role": "user", "content": prompt})
            response = self._client.chat.completions.create(
                model=self.model,
                max_tokens=max_tokens,
                messages=messages,
                timeout=timeout,
            )
            return (response.choices[0].message.content or "").strip()

        # google
        cache_key = hashlib.md5((system or "").encode()).hexdigest()
        if cache_key not in self._google_models:
            model_kwargs = {"model_name": self.model}
            if system:
                model_kwargs["system_instruction"] = system
            self._google_models[cache_key] = self._client.GenerativeModel(**model_kwargs)
        response = self._google_models[cache_key].generate_content(
            prompt,
            generation_config={"max_output_tokens": max_tokens},
            request_options={"timeout": timeout},
        )
        return response.text.strip()

    async def agenerate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        max_tokens: int = 512,
        timeout: float = 30.0,
    ) -> str:
        """Run ``generate`` in a worker thread, bounded by ``timeout``."""
        return await asyncio.wait_for(
            asyncio.to_thread(
                self.generate,
                prompt,
                system=system,
                max_tokens=max_tokens,
                timeout=timeout,
            ),
            timeout=timeout,
        )
