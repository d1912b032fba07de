"""OpenAI LLM provider implementation."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

from .base import BaseLLMProvider

if TYPE_CHECKING:
    from ..config import LLMConfig


def chat_messages(prompt: str, system_prompt: Optional[str]) -> List[Dict[str, str]]:
    messages = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({"role": "user", "content": prompt})
    return messages


def first_choice_content(data: Dict[str, Any]) -> Optional[str]:
    choices = data.get("choices") or []
    if not choices:
        return None
    return choices[0].get("message", {}).get("content")


class OpenAIProvider(BaseLLMProvider):
    """OpenAI provider using the Chat Completions API."""

    name = "OpenAI"
    default_model = "gpt-4o"

    def __init__(self, config: "LLMConfig"):
        if not config.api_key:
            raise ValueError("OpenAI API key is required")
        super().__init__(config)
        self.base_url = (config.endpoint or "https://api.openai.com/v1").rstrip("/")

    def build_request(
        self,
        prompt: str,
        system_prompt: Optional[str],
        response_format: str,
    ) -> Tuple[str, Dict[str, str], Dict[str, Any]]:
        body: Dict[str, Any] = {
            "model": self.model,
            "messages": chat_messages(prompt, system_prompt),
            "temperature": self.temperature,
        }
        if response_format == "json":
            body["response_format"] = {"type": "json_object"}
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        return f"{self.base_url}/chat/completions", headers, body

    def extract_text(self, data: Dict[str, Any]) -> Optional[str]:
        return first_choice_content(data)
