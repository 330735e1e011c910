"""
Claude API service wrapper
"""
import json
import logging
from dataclasses import dataclass
from typing import Optional, Dict, Any

import anthropic
from anthropic import AsyncAnthropic

from menu_planner.config import Settings
from menu_planner.errors import AIServiceError, AITimeoutError, AIRateLimitError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AIConfig:
    """Everything the AI boundary needs, passed in rather than read globally"""
    api_key: str = ""
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 4096
    timeout_seconds: float = 60.0
    use_mock: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "AIConfig":
        return cls(
            api_key=settings.ANTHROPIC_API_KEY,
            model=settings.CLAUDE_MODEL,
            max_tokens=settings.CLAUDE_MAX_TOKENS,
            timeout_seconds=settings.AI_TIMEOUT_SECONDS,
            use_mock=settings.USE_MOCK_AI,
        )


class ClaudeService:
    def __init__(self, config: AIConfig, client: Optional[AsyncAnthropic] = None):
        self.model = config.model
        self.max_tokens = config.max_tokens
        self._available = bool(config.api_key) or client is not None
        if client is not None:
            self.client = client
        elif self._available:
            # Retries are the caller's decision, never the service's
            self.client = AsyncAnthropic(
                api_key=config.api_key,
                timeout=config.timeout_seconds,
                max_retries=0,
            )
        else:
            self.client = None

    @property
    def is_available(self) -> bool:
        return self._available

    async def generate_response(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 1.0,
        max_tokens: Optional[int] = None
    ) -> str:
        """
        Generate a response from Claude.
        Timeouts and rate limits are raised as their own error types so the
        UI can offer a retry; every other API failure is a generic AIServiceError.
        """
        if not self._available or self.client is None:
            raise AIServiceError("AI service not configured: ANTHROPIC_API_KEY is not set")

        messages = [{"role": "user", "content": prompt}]

        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=max_tokens or self.max_tokens,
                temperature=temperature,
                system=system_prompt if system_prompt else "",
                messages=messages
            )
        except anthropic.APITimeoutError as e:
            logger.warning(f"Claude request timed out: {e}")
            raise AITimeoutError("AI service timed out - please try again") from e
        except anthropic.RateLimitError as e:
            logger.warning(f"Claude rate limit hit: {e}")
            raise AIRateLimitError("AI rate limit exceeded - please wait a moment") from e
        except anthropic.APIError as e:
            logger.error(f"Claude API error: {e}")
            raise AIServiceError("AI generation failed") from e

        if not response.content:
            raise AIServiceError("Empty response from AI service")
        return response.content[0].text

    async def generate_structured_response(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        response_format: Optional[Dict[str, Any]] = None,
        temperature: float = 1.0,
    ) -> Dict[str, Any]:
        """
        Generate a structured JSON response from Claude
        """
        structured_prompt = f"""{prompt}

IMPORTANT: Respond with ONLY a valid JSON object matching this schema:
{json.dumps(response_format, indent=2)}

Do not include any markdown formatting, code blocks, or explanatory text.
Just return the raw JSON."""

        response_text = await self.generate_response(
            prompt=structured_prompt,
            system_prompt=system_prompt,
            temperature=temperature,
        )

        # Clean up response (remove markdown if present)
        response_text = response_text.strip()
        if response_text.startswith("```json"):
            response_text = response_text[7:]
        elif response_text.startswith("```"):
            response_text = response_text[3:]
        if response_text.endswith("```"):
            response_text = response_text[:-3]
        response_text = response_text.strip()

        try:
            parsed = json.loads(response_text)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse Claude response as JSON: {e}")
            raise AIServiceError("Failed to parse AI response") from e

        if not isinstance(parsed, dict):
            raise AIServiceError("AI response was not a JSON object")
        return parsed
