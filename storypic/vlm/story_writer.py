"""
Purpose:
- Stub story writer/improver pair used for local dev, tests, and as the load-failure fallback.
- Same async surface as the real backends, so swapping needs no code change.
"""

from __future__ import annotations
import asyncio
from io import BytesIO
from PIL import Image

from ..services.capabilities import (
    GenerateStoryInput,
    GenerateStoryOutput,
    ImproveStoryInput,
    ImproveStoryOutput,
)
from .payload import ImagePayload

def story_from_image_stub(img: Image.Image) -> str:
    """
    Very simple placeholder story. Replace with a real VLM backend.
    """
    w, h = img.size
    shape = "wide" if w > h else "tall" if h > w else "square"
    return (
        f"Once upon a time there was a {shape} photo, {w} pixels across and {h} high. "
        "It waited patiently for a storyteller, because no story model was wired up yet."
    )

def _write(photo_data_uri: str) -> str:
    payload = ImagePayload.from_data_uri(photo_data_uri)
    with Image.open(BytesIO(payload.to_bytes())) as img:
        return story_from_image_stub(img)

class StubStoryWriter:
    reason: str | None = None

    def __init__(self, reason: str | None = None):
        self.reason = reason

    async def generate(self, request: GenerateStoryInput) -> GenerateStoryOutput:
        # base64 + Pillow decode stays off the event loop
        story = await asyncio.to_thread(_write, request.photo_data_uri)
        return GenerateStoryOutput(story=story)

class StubStoryImprover:
    reason: str | None = None

    def __init__(self, reason: str | None = None):
        self.reason = reason

    async def improve(self, request: ImproveStoryInput) -> ImproveStoryOutput:
        # collapse stray whitespace; nothing else to polish without a model
        paragraphs = [" ".join(p.split()) for p in request.story.split("\n\n")]
        return ImproveStoryOutput(improved_story="\n\n".join(p for p in paragraphs if p))
