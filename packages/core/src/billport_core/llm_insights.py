"""
Anthropic-backed insight generator.

Asks Claude to phrase a biller insight and parses the JSON object out of
the response text. Every failure is raised as InsightUnavailableError so
that InsightService can fall back to the deterministic analyzer.
"""

import json
import os
import re
from typing import Any, Optional, Sequence

import anthropic
import structlog
from pydantic import ValidationError as PydanticValidationError

from billport_core.exceptions import InsightUnavailableError
from billport_core.models.insight import BillerHistoryEntry, Insight, InsightSource

logger = structlog.get_logger()

DEFAULT_MODEL = "claude-sonnet-4-20250514"
DEFAULT_MAX_TOKENS = 500
DEFAULT_TEMPERATURE = 0.0

INSIGHT_PROMPT = """You are a Canadian personal finance assistant for a bill management app called MyBillPort. Analyze these bills from "{biller_name}" and provide insights.

Bill History (oldest to newest):
{bill_summary}

Average amount: ${average:.2f} CAD
Category: {category}
Recurring: {recurring}

Respond in JSON format with these exact fields:
{{
  "summary": "A 1-2 sentence overview of spending with this biller",
  "trend": "Description of the trend (increasing, decreasing, stable, volatile)",
  "tips": ["Array of 2-3 actionable tips specific to this biller/category"],
  "percentChange": <number or null>,
  "avgAmount": <number>,
  "minAmount": <number>,
  "maxAmount": <number>
}}

Keep tips practical and specific to Canadian consumers. Be concise."""


class AnthropicInsightGenerator:
    """
    Generate biller insights with Claude.

    Satisfies the InsightGenerator protocol from insight_analyzer.
    """

    provider = "anthropic"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        timeout: float = 30.0,
        temperature: float = DEFAULT_TEMPERATURE,
        client: Optional[Any] = None,
    ):
        """
        Initialize the generator.

        Args:
            api_key: Anthropic API key. If not provided, uses ANTHROPIC_API_KEY env var.
            model: Claude model to use.
            max_tokens: Maximum tokens in the response.
            timeout: Request timeout in seconds.
            temperature: Sampling temperature.
            client: Pre-built client exposing ``messages.create``. Skips key lookup.

        Raises:
            ValueError: If no client is given and no API key is available.
        """
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

        if client is not None:
            self.client = client
            return

        self.api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        if not self.api_key:
            raise ValueError(
                "No Anthropic API key provided. Set ANTHROPIC_API_KEY environment variable "
                "or pass api_key parameter."
            )
        self.client = anthropic.Anthropic(api_key=self.api_key, timeout=timeout, max_retries=1)

    def generate(self, history: Sequence[BillerHistoryEntry], biller_name: str) -> Insight:
        """
        Ask the model for an insight on ``history`` (sorted oldest first).

        Raises:
            InsightUnavailableError: On any API, parsing or validation failure.
        """
        if not history:
            raise InsightUnavailableError(
                "No bill history to analyze",
                provider=self.provider,
                operation="generate_insight",
            )

        prompt = self._build_prompt(history, biller_name)
        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIError as e:
            raise InsightUnavailableError(
                "Insight request failed",
                provider=self.provider,
                operation="messages.create",
                api_error=str(e),
            ) from e
        except Exception as e:
            raise InsightUnavailableError(
                f"Insight request failed: {e}",
                provider=self.provider,
                operation="messages.create",
            ) from e

        text = self._response_text(response)
        parsed = self._parse_json_response(text)
        if parsed is None:
            raise InsightUnavailableError(
                "Model response did not contain a JSON object",
                provider=self.provider,
                operation="parse_response",
                details={"response_preview": text[:200]},
            )

        parsed.pop("source", None)
        try:
            insight = Insight.model_validate(parsed)
        except PydanticValidationError as e:
            raise InsightUnavailableError(
                "Model response is missing expected insight fields",
                provider=self.provider,
                operation="validate_response",
                details={"errors": e.error_count()},
            ) from e

        logger.info(
            "insight_generated",
            biller=biller_name,
            bills=len(history),
            model=self.model,
        )
        return insight.model_copy(update={"source": InsightSource.AI})

    def _build_prompt(self, history: Sequence[BillerHistoryEntry], biller_name: str) -> str:
        """Build the insight prompt for Claude."""
        bill_summary = "\n".join(
            f"- {entry.due_date.isoformat()}: ${entry.amount:.2f} ({entry.status})"
            for entry in history
        )
        average = sum(float(e.amount) for e in history) / len(history)
        first = history[0]
        return INSIGHT_PROMPT.format(
            biller_name=biller_name,
            bill_summary=bill_summary,
            average=average,
            category=first.category or "Unknown",
            recurring="Yes" if first.is_recurring else "Not confirmed",
        )

    @staticmethod
    def _response_text(response: Any) -> str:
        for block in getattr(response, "content", None) or []:
            if getattr(block, "type", None) == "text":
                return block.text
        return ""

    @staticmethod
    def _parse_json_response(text: str) -> Optional[dict[str, Any]]:
        """Parse the outermost JSON object embedded in the response text."""
        match = re.search(r"\{[\s\S]*\}", text)
        if not match:
            return None
        try:
            value = json.loads(match.group(0))
        except json.JSONDecodeError:
            return None
        return value if isinstance(value, dict) else None


def create_insight_generator(
    api_key: Optional[str] = None,
    model: str = DEFAULT_MODEL,
    max_tokens: int = DEFAULT_MAX_TOKENS,
    timeout: float = 30.0,
    temperature: float = DEFAULT_TEMPERATURE,
) -> Optional[AnthropicInsightGenerator]:
    """
    Factory function to create the generator if an API key is available.

    Returns None when no key is configured, so callers degrade to the
    deterministic analyzer.
    """
    try:
        return AnthropicInsightGenerator(
            api_key=api_key,
            model=model,
            max_tokens=max_tokens,
            timeout=timeout,
            temperature=temperature,
        )
    except ValueError:
        logger.info("insight_generator_disabled", reason="no_api_key")
        return None
