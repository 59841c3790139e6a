"""
Purpose:
- OpenAI chat-completions backend for both stages.
- Stage 1 sends the photo as an image_url data URI (vision input); stage 2 is text-only.

Design:
- One AsyncOpenAI client shared by writer and improver.
- No retries here (max_retries=0): a failed call is reported, the pipeline decides what the user sees.
"""

from __future__ import annotations
from typing import Optional

from openai import AsyncOpenAI

from ..core.settings import settings
from .capabilities import (
    GenerateStoryInput,
    GenerateStoryOutput,
    ImproveStoryInput,
    ImproveStoryOutput,
)
from .prompts import STORY_SYSTEM_HINT, STORY_PROMPT, IMPROVE_SYSTEM_HINT, improve_prompt

def make_client(api_key: Optional[str] = None) -> AsyncOpenAI:
    # falls back to OPENAI_API_KEY in the process env when settings has none
    return AsyncOpenAI(
        api_key=api_key or settings.openai_api_key,
        timeout=settings.openai_timeout_s,
        max_retries=0,
    )

def _first_text(resp) -> str:
    if not resp.choices:
        return ""
    return (resp.choices[0].message.content or "").strip()

class OpenAIStoryWriter:
    def __init__(self, client: AsyncOpenAI, model: str | None = None, max_tokens: int | None = None):
        self.client = client
        self.model = model or settings.openai_model
        self.max_tokens = max_tokens or settings.openai_story_max_tokens

    async def generate(self, request: GenerateStoryInput) -> GenerateStoryOutput:
        resp = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": STORY_SYSTEM_HINT},
                {"role": "user", "content": [
                    {"type": "text", "text": STORY_PROMPT},
                    {"type": "image_url", "image_url": {"url": request.photo_data_uri}},
                ]},
            ],
            max_tokens=self.max_tokens,
            temperature=settings.openai_temperature,
        )
        return GenerateStoryOutput(story=_first_text(resp))

class OpenAIStoryImprover:
    def __init__(self, client: AsyncOpenAI, model: str | None = None, max_tokens: int | None = None):
        self.client = client
        self.model = model or settings.openai_model
        self.max_tokens = max_tokens or settings.openai_improve_max_tokens

    async def improve(self, request: ImproveStoryInput) -> ImproveStoryOutput:
        resp = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": IMPROVE_SYSTEM_HINT},
                {"role": "user", "content": improve_prompt(request.story)},
            ],
            max_tokens=self.max_tokens,
            temperature=0.4,
        )
        return ImproveStoryOutput(improved_story=_first_text(resp))
