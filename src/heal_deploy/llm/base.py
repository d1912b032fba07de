"""Base class and factory for LLM providers."""

from __future__ import annotations

import logging
import os
import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple

import requests

if TYPE_CHECKING:
    from ..config import LLMConfig

logger = logging.getLogger(__name__)

RATE_LIMIT_BACKOFF_SECONDS = 30


class BaseLLMProvider(ABC):
    """Abstract base class for HTTP-backed LLM providers.

    Subclasses describe one API: how to build the request and how to pull
    the generated text out of the JSON answer. Session, proxy and
    rate-limit handling live here.
    """

    name = "llm"
    default_model: Optional[str] = None

    def __init__(self, config: "LLMConfig") -> None:
        self.config = config
        self.session = requests.Session()

        # Set up proxy if configured
        proxy = config.proxy or os.environ.get("HTTPS_PROXY") or os.environ.get("HTTP_PROXY")
        if proxy:
            self.session.proxies = {"http": proxy, "https": proxy}
            logger.info("%s provider using proxy: %s", self.name, proxy)

        self.api_key = config.api_key
        self.model = config.model or self.default_model
        self.temperature = config.temperature

    @abstractmethod
    def build_request(
        self,
        prompt: str,
        system_prompt: Optional[str],
        response_format: str,
    ) -> Tuple[str, Dict[str, str], Dict[str, Any]]:
        """Return ``(url, headers, body)`` for a completion request."""

    @abstractmethod
    def extract_text(self, data: Dict[str, Any]) -> Optional[str]:
        """Return the generated text from a decoded response, or None."""

    def generate_response(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        response_format: str = "json",
        timeout: int = 60,
        max_retries: int = 3,
    ) -> Optional[str]:
        """
        Generate a response from the LLM.

        Args:
            prompt: User prompt
            system_prompt: Optional system prompt
            response_format: "json" or "text"
            timeout: Request timeout in seconds
            max_retries: Maximum number of retries on rate limit

        Returns:
            Generated text or None on failure
        """
        url, headers, body = self.build_request(prompt, system_prompt, response_format)

        # Retry loop for rate limiting
        for attempt in range(max_retries):
            try:
                response = self.session.post(url, json=body, headers=headers, timeout=timeout)
            except requests.exceptions.RequestException as exc:
                logger.error("%s API call failed: %s", self.name, exc)
                return None

            if response.status_code == 429:
                if attempt < max_retries - 1:
                    wait_time = RATE_LIMIT_BACKOFF_SECONDS * (attempt + 1)
                    logger.warning("Rate limited by %s. Waiting %ss before retry...", self.name, wait_time)
                    time.sleep(wait_time)
                continue

            try:
                response.raise_for_status()
            except requests.exceptions.HTTPError as exc:
                logger.error("%s API call failed: %s", self.name, exc)
                logger.error("Response text: %s", response.text[:500])
                return None

            try:
                data = response.json()
            except ValueError:
                logger.error("%s returned a non-JSON body", self.name)
                return None

            text = self.extract_text(data)
            if not text:
                logger.error("No content in %s response", self.name)
                return None
            return text

        logger.error("Rate limited after max retries")
        return None


def create_llm_provider(config: "LLMConfig") -> BaseLLMProvider:
    """
    Factory function to create the appropriate LLM provider based on config.

    Args:
        config: LLM configuration

    Returns:
        An instance of the appropriate LLM provider

    Raises:
        ValueError: If provider is not supported or misconfigured
    """
    provider = config.provider.lower()

    if provider == "gemini":
        from .gemini import GeminiProvider
        return GeminiProvider(config)
    elif provider == "openai":
        from .openai import OpenAIProvider
        return OpenAIProvider(config)
    elif provider == "anthropic" or provider == "claude":
        from .anthropic import AnthropicProvider
        return AnthropicProvider(config)
    elif provider == "openai-compatible" or provider == "custom":
        from .openai_compatible import OpenAICompatibleProvider
        return OpenAICompatibleProvider(config)
    else:
        raise ValueError(
            f"Unsupported LLM provider: {provider}. "
            f"Supported providers: gemini, openai, anthropic, openai-compatible"
        )
