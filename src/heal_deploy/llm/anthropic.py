"""Anthropic Claude LLM provider implementation."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple

from .base import BaseLLMProvider

if TYPE_CHECKING:
    from ..config import LLMConfig

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicProvider(BaseLLMProvider):
    """Anthropic provider using the Messages API."""

    name = "Anthropic"
    default_model = "claude-3-5-sonnet-20241022"

    def __init__(self, config: "LLMConfig"):
        if not config.api_key:
            raise ValueError("Anthropic API key is required")
        super().__init__(config)
        self.base_url = (config.endpoint or "https://api.anthropic.com/v1").rstrip("/")

    def build_request(
        self,
        prompt: str,
        system_prompt: Optional[str],
        response_format: str,
    ) -> Tuple[str, Dict[str, str], Dict[str, Any]]:
        # Claude 没有严格的 JSON 模式，response_format 仅靠提示词约束
        body: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": 8192,
            "temperature": self.temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_prompt:
            body["system"] = system_prompt
        headers = {
            "x-api-key": self.api_key or "",
            "anthropic-version": ANTHROPIC_VERSION,
            "Content-Type": "application/json",
        }
        return f"{self.base_url}/messages", headers, body

    def extract_text(self, data: Dict[str, Any]) -> Optional[str]:
        for block in data.get("content") or []:
            if block.get("type") == "text" and block.get("text"):
                return block["text"]
        return None
