"""Repair oracle capability: text in, text out, sometimes unavailable."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

from ..errors import OracleError
from .base import BaseLLMProvider, create_llm_provider

if TYPE_CHECKING:
    from ..config import LLMConfig

logger = logging.getLogger(__name__)

DISABLED_PROVIDERS = {"none", "disabled", "dummy"}


class RepairOracle(ABC):
    """Interface the repair adapter consumes."""

    @abstractmethod
    async def generate(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        """Return the completion for ``prompt``; raise OracleError on failure."""

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the oracle is configured well enough to be called."""


class LLMRepairOracle(RepairOracle):
    """Adapts a blocking LLM provider to the async oracle interface."""

    def __init__(
        self,
        provider: Optional[BaseLLMProvider],
        timeout: int = 120,
        max_retries: int = 3,
    ) -> None:
        self.provider = provider
        self.timeout = timeout
        self.max_retries = max_retries

    def is_available(self) -> bool:
        return self.provider is not None

    async def generate(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        if self.provider is None:
            raise OracleError("LLM provider is not configured")
        # requests 是阻塞的，放到线程池；取消时线程内请求会自然超时结束
        text = await asyncio.to_thread(
            self.provider.generate_response,
            prompt,
            system_prompt,
            "json",
            self.timeout,
            self.max_retries,
        )
        if not text:
            raise OracleError(f"empty response from {self.provider.name}")
        return text


def create_repair_oracle(config: "LLMConfig", timeout: int = 120) -> LLMRepairOracle:
    """Build the oracle for ``config``; an unusable config yields an unavailable oracle."""
    if config.provider.lower() in DISABLED_PROVIDERS:
        logger.info("AI repair disabled (provider=%s)", config.provider)
        return LLMRepairOracle(None, timeout=timeout)
    try:
        provider = create_llm_provider(config)
    except ValueError as exc:
        logger.warning("🔑 AI repair unavailable: %s", exc)
        logger.info("Set HEAL_DEPLOY_LLM_API_KEY (or a provider-specific key) to enable AI repair.")
        return LLMRepairOracle(None, timeout=timeout)
    return LLMRepairOracle(provider, timeout=timeout)
