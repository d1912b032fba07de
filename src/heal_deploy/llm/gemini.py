"""Google Gemini LLM provider implementation."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple

from .base import BaseLLMProvider

if TYPE_CHECKING:
    from ..config import LLMConfig


class GeminiProvider(BaseLLMProvider):
    """Google Gemini provider using the generateContent REST API."""

    name = "Gemini"
    default_model = "gemini-2.0-flash-001"

    def __init__(self, config: "LLMConfig"):
        if not config.api_key:
            raise ValueError("Gemini API key is required")
        super().__init__(config)

        if config.endpoint:
            self.base_endpoint = config.endpoint
        else:
            self.base_endpoint = (
                f"https://generativelanguage.googleapis.com/v1beta/models/{self.model}:generateContent"
            )

    def build_request(
        self,
        prompt: str,
        system_prompt: Optional[str],
        response_format: str,
    ) -> Tuple[str, Dict[str, str], Dict[str, Any]]:
        # Gemini 没有独立的 system prompt，拼接到用户提示前
        combined_prompt = prompt
        if system_prompt:
            combined_prompt = f"{system_prompt}\n\n---\n\n{prompt}"

        body: Dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": combined_prompt}]}],
            "generationConfig": {"temperature": self.temperature},
        }
        if response_format == "json":
            body["generationConfig"]["responseMimeType"] = "application/json"

        headers = {"Content-Type": "application/json", "x-goog-api-key": self.api_key or ""}
        return self.base_endpoint, headers, body

    def extract_text(self, data: Dict[str, Any]) -> Optional[str]:
        for candidate in data.get("candidates") or []:
            for part in candidate.get("content", {}).get("parts", []):
                text = part.get("text")
                if text:
                    return text
        return None
