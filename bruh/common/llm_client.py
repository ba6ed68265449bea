"""
Provider-agnostic LLM client for Bruh.

Supports Google Gemini, Anthropic and OpenAI behind a single text-generation
call. Every prompt the assistant sends (sufficiency checks, query
refinement, answer synthesis) goes through ``LLMClient.generate``.
"""

from __future__ import annotations

import logging
from typing import Optional

logger = logging.getLogger("bruh.common.llm_client")


class LLMClient:
    """Unified text generation client across LLM providers."""

    def __init__(
        self,
        provider: str = "google",
        model: str = "",
        google_api_key: Optional[str] = None,
        anthropic_api_key: Optional[str] = None,
        openai_api_key: Optional[str] = None,
        timeout: float = 30.0,
    ) -> None:
        self.provider = (provider or "google").lower()
        self.model = model
        self.timeout = timeout
        self._client = None

        if self.provider == "google":
            if not google_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                import google.generativeai as genai

                genai.configure(api_key=google_api_key)
                self._client = genai.GenerativeModel(model_name=self.model)
            except ImportError:
                logger.warning("google-generativeai package not installed")
            except Exception as e:
                logger.warning("Failed to initialize Gemini client: %s", e)
            return

        if self.provider == "anthropic":
            if not anthropic_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                import anthropic

                self._client = anthropic.Anthropic(api_key=anthropic_api_key)
            except ImportError:
                logger.warning("anthropic package not installed")
            except Exception as e:
                logger.warning("Failed to initialize Anthropic client: %s", e)
            return

        if self.provider == "openai":
            if not openai_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                from openai import OpenAI

                self._client = OpenAI(api_key=openai_api_key)
            except ImportError:
                logger.warning("openai package not installed")
            except Exception as e:
                logger.warning("Failed to initialize OpenAI client: %s", e)
            return

        logger.warning("Unsupported LLM provider: %s", self.provider)

    @classmethod
    def from_config(cls, config) -> "LLMClient":
        """Build a client for the provider selected in a BruhConfig."""
        return cls(
            provider=config.llm.provider,
            model=config.model_for_provider,
            google_api_key=config.llm.google_api_key or None,
            anthropic_api_key=config.llm.anthropic_api_key or None,
            openai_api_key=config.llm.openai_api_key or None,
            timeout=config.llm.timeout,
        )

    @property
    def is_available(self) -> bool:
        return self._client is not None

    def generate(
        self,
        prompt: str,
        *,
        max_tokens: int = 1024,
    ) -> str:
        if not self.is_available:
            raise RuntimeError("LLM client is not available")

        if self.provider == "google":
            response = self._client.generate_content(
                prompt,
                generation_config={"max_output_tokens": max_tokens},
                request_options={"timeout": self.timeout},
            )
            return response.text.strip()

        if self.provider == "anthropic":
            response = self._client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                messages=[{"role": "user", "content": prompt}],
                timeout=self.timeout,
            )
            return response.content[0].text.strip()

        if self.provider == "openai":
            response = self._client.chat.completions.create(
                model=self.model,
                max_tokens=max_tokens,
                messages=[{"role": "user", "content": prompt}],
                timeout=self.timeout,
            )
            return (response.choices[0].message.content or "").strip()

        raise RuntimeError(f"Unsupported LLM provider: {self.provider}")
