"""Answer generation with an OpenAI-compatible chat completion API."""

import logging
import time

from docsrag.core.config import Settings
from docsrag.observability import MetricsCollector, get_metrics_backend

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a documentation assistant for a GitHub repository.

Guidelines:
- Answer only from the documentation excerpts you are given
- Cite the source file of every fact you use
- If the excerpts do not contain the answer, say so plainly instead of guessing
- Keep answers precise and include code examples from the excerpts when relevant"""


def build_answer_prompt(query: str, context: str) -> str:
    """Build the user message asking for an answer grounded in the context."""
    return f"""Answer the user's question in detail based on the search results below: "{query}"

Search results:
{context}

Give an accurate, detailed answer and state clearly which sources the information comes from. If the information is insufficient, say so honestly."""


class AnswerGenerator:
    """Chat-completion client that turns retrieved context into an answer."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str = "deepseek-chat",
        temperature: float = 0.3,
        max_tokens: int = 2000,
        client=None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        if client is None:
            from openai import AsyncOpenAI

            client = AsyncOpenAI(api_key=api_key, base_url=base_url)
        self.client = client
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.metrics = metrics or get_metrics_backend()

    @classmethod
    def from_settings(
        cls, settings: Settings, metrics: MetricsCollector | None = None
    ) -> "AnswerGenerator":
        return cls(
            api_key=settings.agent_api_key,
            base_url=settings.agent_base_url,
            model=settings.agent_model,
            temperature=settings.agent_temperature,
            max_tokens=settings.agent_max_tokens,
            metrics=metrics,
        )

    async def generate(self, prompt: str) -> str:
        """Send one prompt and return the generated text.

        Raises:
            openai.OpenAIError: Provider errors propagate to the caller.
        """
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]

        start_time = time.perf_counter()
        status_code = 500
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
            status_code = 200
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000
            self.metrics.observe_external_api(
                "openai", "chat.completions", status_code, duration_ms
            )
            logger.info(
                "Chat API chat.completions status=%s duration_ms=%.2f",
                status_code,
                duration_ms,
            )

        return response.choices[0].message.content or ""
