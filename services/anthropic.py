"""
Anthropic Claude content provider.
"""
import json
import re
from typing import Any, Optional

from anthropic import AsyncAnthropic, APIError
import structlog

from schemas.errors import ProviderUnavailable
from services.providers import ContentProvider

logger = structlog.get_logger()

# Pricing per million tokens (as of late 2024)
PRICING = {
    "claude-3-5-sonnet-20241022": {"input": 3.0, "output": 15.0},
    "claude-3-5-haiku-20241022": {"input": 1.0, "output": 5.0},
    "claude-3-opus-20240229": {"input": 15.0, "output": 75.0},
}

SYSTEM_PROMPT = """You are a senior web designer and conversion copywriter.
You produce website building blocks for small and medium businesses.
When asked for JSON, respond with a single JSON object and nothing else."""


def extract_json(text: str) -> Any:
    """
    Parse a JSON object out of a model response.

    Accepts bare JSON or JSON wrapped in a ```json fenced block.

    Raises:
        ValueError: if no JSON object can be parsed.
    """
    candidate = text.strip()
    if "```json" in candidate:
        candidate = candidate.split("```json")[1].split("```")[0]
    elif "```" in candidate:
        candidate = candidate.split("```")[1].split("```")[0]

    try:
        return json.loads(candidate.strip())
    except json.JSONDecodeError:
        match = re.search(r"\{.*\}", text, re.DOTALL)
        if not match:
            raise ValueError("No JSON object found in response")
        return json.loads(match.group(0))


class AnthropicContentProvider(ContentProvider):
    """ContentProvider backed by the Anthropic Messages API."""

    name = "anthropic"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "claude-3-5-sonnet-20241022",
        max_tokens: int = 4096,
        client: Optional[AsyncAnthropic] = None,
    ):
        self.client = client or AsyncAnthropic(api_key=api_key)
        self.model = model
        self.max_tokens = max_tokens
        self.input_tokens = 0
        self.output_tokens = 0

    @property
    def total_cost_usd(self) -> float:
        return self.calculate_cost(self.model, self.input_tokens, self.output_tokens)

    def calculate_cost(self, model: str, input_tokens: int, output_tokens: int) -> float:
        """Calculate cost in USD for token usage."""
        pricing = PRICING.get(model, PRICING["claude-3-5-sonnet-20241022"])
        input_cost = (input_tokens / 1_000_000) * pricing["input"]
        output_cost = (output_tokens / 1_000_000) * pricing["output"]
        return round(input_cost + output_cost, 6)

    async def generate_text(self, prompt: str, context: Optional[dict] = None) -> str:
        """Generate text. Context, when given, is appended as a JSON block."""
        content = prompt
        if context:
            content = f"{prompt}\n\n## Context\n```json\n{json.dumps(context, indent=2, default=str)}\n```"

        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": content}],
            )
        except APIError as e:
            logger.warning("Anthropic request failed", model=self.model, error=str(e))
            raise ProviderUnavailable(f"Anthropic request failed: {e}") from e

        usage = getattr(response, "usage", None)
        if usage is not None:
            self.input_tokens += usage.input_tokens
            self.output_tokens += usage.output_tokens

        if not response.content:
            raise ProviderUnavailable("Anthropic returned an empty response")

        text = response.content[0].text
        logger.debug(
            "Anthropic response received",
            model=self.model,
            input_tokens=getattr(usage, "input_tokens", None),
            output_tokens=getattr(usage, "output_tokens", None),
        )
        return text
