"""
LLM Service — pydantic-ai backed free-text generation.

The story pipeline treats text generation as optional: callers go through
TextGenerationQueue, which turns provider errors into None plus a cooldown
and hands None to the template fallback. This service itself only returns
None for an empty reply; provider errors are logged and re-raised.
"""

import logging
from typing import Optional, Protocol

from pydantic import BaseModel, Field
from pydantic_ai import Agent
from pydantic_ai.settings import ModelSettings

from ..config import get_settings

logger = logging.getLogger(__name__)


class GenerationOptions(BaseModel):
    """Sampling options for one generation call.

    ``top_k`` is carried for providers that honour it; pydantic-ai's portable
    ModelSettings has no top-k knob, so LLMService does not forward it.
    """
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=1024, gt=0)
    top_k: int = Field(default=40, gt=0)
    top_p: float = Field(default=0.95, gt=0.0, le=1.0)


class TextGenerator(Protocol):
    """Anything that can turn a prompt into text (or None)."""

    async def generate(self, prompt: str, options: GenerationOptions) -> Optional[str]:
        ...


class LLMService:
    """Text generation via a pydantic-ai Agent.

    The Agent is built on first use so a missing API key or provider package
    only disables generation instead of breaking import.
    """

    def __init__(self, model_name: Optional[str] = None, api_key: Optional[str] = None, system_prompt: str = ""):
        settings = get_settings()
        self.model_name = model_name or settings.llm_model
        self.api_key = api_key if api_key is not None else settings.gemini_api_key
        self.system_prompt = system_prompt or (
            "You are a news editor writing concise, factual copy. "
            "Return only the requested text with no preamble."
        )
        self._agent: Optional[Agent] = None

    def _build_model(self):
        """Gemini via Google AI Studio when a key is configured, else the model string as-is."""
        if self.api_key:
            from pydantic_ai.models.google import GoogleModel
            from pydantic_ai.providers.google import GoogleProvider
            name = self.model_name.split(":", 1)[-1]
            return GoogleModel(name, provider=GoogleProvider(api_key=self.api_key))
        return self.model_name

    @property
    def agent(self) -> Agent:
        if self._agent is None:
            self._agent = Agent(
                self._build_model(),
                output_type=str,
                system_prompt=self.system_prompt,
                retries=1,
            )
        return self._agent

    async def generate(self, prompt: str, options: Optional[GenerationOptions] = None) -> Optional[str]:
        """Generate free text, or None on an empty reply."""
        options = options or GenerationOptions()
        try:
            result = await self.agent.run(
                prompt,
                model_settings=ModelSettings(
                    temperature=options.temperature,
                    max_tokens=options.max_tokens,
                    top_p=options.top_p,
                ),
            )
        except Exception as e:
            logger.warning(f"Text generation failed ({self.model_name}): {e}")
            raise

        response = (result.output or "").strip()
        if not response:
            logger.debug("Text generation returned an empty response")
            return None
        return response
