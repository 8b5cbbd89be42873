"""AI generated ticket summaries."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

from openai import AsyncOpenAI

from helpdesk.core.config import Settings
from helpdesk.metrics import metrics_registry

from .constants import MAX_DESCRIPTION_LENGTH

logger = logging.getLogger(__name__)

SUMMARY_SYSTEM_PROMPT = (
    "You analyze support tickets and write short, actionable summaries. "
    "Identify the main problem, include key technical details and context, note any urgency, "
    "and keep it to 2-3 short sentences of at most 10 words each. Use clear, simple, professional "
    "language and focus only on information support staff can act on. "
    "Write a direct factual summary with no preamble."
)


def summary_user_prompt(description: str) -> str:
    return f"Analyze and summarize this support ticket:\n\n{description}"


class TicketSummarizer(Protocol):
    async def generate_summary(self, description: str) -> str | None:
        ...


@dataclass(slots=True)
class SummarySettings:
    api_key: str | None
    enabled: bool = True
    model_name: str = "gpt-4o-mini"
    api_endpoint: str | None = None
    max_tokens: int = 150
    temperature: float = 0.7
    timeout_seconds: float = 30.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "SummarySettings":
        return cls(
            api_key=settings.ai_api_key,
            enabled=settings.ai_enabled,
            model_name=settings.ai_model_name,
            api_endpoint=settings.ai_api_endpoint,
            max_tokens=settings.ai_max_tokens,
            temperature=settings.ai_temperature,
            timeout_seconds=settings.ai_timeout_seconds,
        )

    @property
    def active(self) -> bool:
        return self.enabled and bool(self.api_key and self.api_key.strip())


class SummaryGenerator:
    """Best-effort summary of a ticket description via the OpenAI chat API.

    Returns ``None`` whenever no summary can be produced: disabled generator,
    blank input, empty completion or any API error. Task cancellation is the
    one outcome that is not absorbed; it propagates to the caller.
    """

    def __init__(self, settings: SummarySettings, *, client: AsyncOpenAI | None = None) -> None:
        self._settings = settings
        self._client = client
        if not settings.active:
            logger.warning("AI summary generation is disabled")

    @property
    def enabled(self) -> bool:
        return self._settings.active

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self._settings.api_key,
                base_url=self._settings.api_endpoint or None,
                timeout=self._settings.timeout_seconds,
            )
        return self._client

    async def generate_summary(self, description: str) -> str | None:
        if not description or not description.strip():
            logger.warning("Cannot generate summary for empty description")
            return None
        if not self.enabled:
            return None

        if len(description) > MAX_DESCRIPTION_LENGTH:
            description = description[:MAX_DESCRIPTION_LENGTH]

        try:
            completion = await self._get_client().chat.completions.create(
                model=self._settings.model_name,
                messages=[
                    {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
                    {"role": "user", "content": summary_user_prompt(description)},
                ],
                temperature=self._settings.temperature,
                max_tokens=self._settings.max_tokens,
            )
        except asyncio.CancelledError:
            logger.warning("Summary generation was cancelled")
            raise
        except Exception:
            logger.exception("Failed to generate AI summary")
            metrics_registry.counter("ticket_summary_failures_total").inc()
            return None

        if not completion.choices:
            return None
        content = completion.choices[0].message.content
        summary = content.strip() if content else ""
        return summary or None
