"""LLM provider package."""

from .base import BaseLLMProvider, create_llm_provider
from .gemini import GeminiProvider
from .openai import OpenAIProvider
from .anthropic import AnthropicProvider
from .openai_compatible import OpenAICompatibleProvider
from .oracle import LLMRepairOracle, RepairOracle, create_repair_oracle

__all__ = [
    # Provider factory
    "create_llm_provider",
    # Provider base class
    "BaseLLMProvider",
    # Individual providers
    "GeminiProvider",
    "OpenAIProvider",
    "AnthropicProvider",
    "OpenAICompatibleProvider",
    # Repair oracle
    "RepairOracle",
    "LLMRepairOracle",
    "create_repair_oracle",
]
