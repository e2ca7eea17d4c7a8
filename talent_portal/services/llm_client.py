"""
LLM API Client

Gemini exposes an OpenAI-compatible endpoint, so we use the openai library
for both text and vision (file bytes sent as a base64 data URL).

COST OPTIMIZATION:
- Flash model for structured extraction, Pro only for free-text writing
- Keep prompts short and structured
- Low temperature for JSON output
"""

import base64
import json
import logging
import re
from typing import Optional, List

from openai import OpenAI, OpenAIError

from talent_portal.core.config import get_settings
from talent_portal.core.exceptions import ExternalServiceException

settings = get_settings()
logger = logging.getLogger(__name__)

_JSON_SPAN = re.compile(r"\{[\s\S]*\}")


class LLMClient:
    """
    Wrapper for the LLM API.

    Usage:
        client = get_llm_client()
        data = client._extract_json(client._call_api(system, user))
    """

    def __init__(self, api_key: str = None, base_url: str = None):
        self.client = OpenAI(
            api_key=api_key or settings.llm_api_key,
            base_url=base_url or settings.llm_base_url
        )
        self.model = settings.llm_model
        self.text_model = settings.llm_text_model
        self.vision_models: List[str] = list(settings.llm_vision_models)

    def _call_api(self, system_prompt: str, user_content: str, max_tokens: int = 2048,
                  temperature: float = 0.1, model: str = None) -> str:
        """
        Internal method to call the chat completions API.
        Returns raw text response.
        """
        try:
            response = self.client.chat.completions.create(
                model=model or self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_content}
                ],
                max_tokens=max_tokens,
                temperature=temperature
            )
        except OpenAIError as e:
            logger.error(f"LLM call failed: {e}")
            raise ExternalServiceException("AI provider request failed")
        return response.choices[0].message.content or ""

    def _call_vision(self, prompt: str, file_bytes: bytes, mime_type: str,
                     max_tokens: int = 4096) -> dict:
        """
        Send a prompt plus one document/image and parse the JSON reply.
        Tries each configured vision model in order until one answers with JSON.
        """
        data_url = f"data:{mime_type};base64,{base64.b64encode(file_bytes).decode()}"

        for model in self.vision_models:
            try:
                response = self.client.chat.completions.create(
                    model=model,
                    messages=[{
                        "role": "user",
                        "content": [
                            {"type": "text", "text": prompt},
                            {"type": "image_url", "image_url": {"url": data_url}}
                        ]
                    }],
                    max_tokens=max_tokens,
                    temperature=0.1
                )
                return self._extract_json(response.choices[0].message.content or "")
            except (OpenAIError, ValueError) as e:
                logger.warning(f"Vision model {model} failed: {e}")
                continue

        raise ExternalServiceException("All vision models failed to analyze the document")

    def _extract_json(self, text: str) -> dict:
        """
        Extract JSON from API response.
        Handles markdown code fences and prose around the object.
        """
        text = (text or "").strip()
        if text.startswith("```json"):
            text = text[7:]
        if text.startswith("```"):
            text = text[3:]
        if text.endswith("```"):
            text = text[:-3]
        text = text.strip()

        try:
            return json.loads(text)
        except json.JSONDecodeError:
            match = _JSON_SPAN.search(text)
            if not match:
                raise ValueError("No JSON object in model response")
            return json.loads(match.group(0))

    def test_connection(self) -> bool:
        """Test if the LLM API is reachable"""
        try:
            response = self._call_api(
                "You are a test assistant.",
                "Reply with exactly: OK",
                max_tokens=10
            )
            return "OK" in response.upper()
        except ExternalServiceException as e:
            logger.error(f"LLM connection failed: {e}")
            return False


# Singleton instance
_llm_client: Optional[LLMClient] = None


def get_llm_client() -> LLMClient:
    """Get or create LLM client (singleton pattern)"""
    global _llm_client
    if _llm_client is None:
        _llm_client = LLMClient()
    return _llm_client
