"""Generic OpenAI-compatible LLM provider for custom endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple

from .base import BaseLLMProvider
from .openai import chat_messages, first_choice_content

if TYPE_CHECKING:
    from ..config import LLMConfig


class OpenAICompatibleProvider(BaseLLMProvider):
    """
    Generic OpenAI-compatible LLM provider.

    Works with any service that implements OpenAI's Chat Completions API,
    e.g. Ollama (http://localhost:11434/v1), LM Studio, vLLM or Groq.
    """

    name = "OpenAI-compatible"
    default_model = "default"

    def __init__(self, config: "LLMConfig"):
        if not config.endpoint:
            raise ValueError("Endpoint is required for OpenAI-compatible provider")
        super().__init__(config)
        self.base_url = config.endpoint.rstrip("/")

    def build_request(
        self,
        prompt: str,
        system_prompt: Optional[str],
        response_format: str,
    ) -> Tuple[str, Dict[str, str], Dict[str, Any]]:
        # 本地服务通常不支持 response_format，依赖提示词约束输出
        body: Dict[str, Any] = {
            "model": self.model,
            "messages": chat_messages(prompt, system_prompt),
            "temperature": self.temperature,
        }
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return f"{self.base_url}/chat/completions", headers, body

    def extract_text(self, data: Dict[str, Any]) -> Optional[str]:
        return first_choice_content(data)
