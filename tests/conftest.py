import asyncio
from io import BytesIO

import pytest
from PIL import Image

from storypic.services.capabilities import (
    GenerateStoryInput,
    GenerateStoryOutput,
    ImproveStoryInput,
    ImproveStoryOutput,
)
from storypic.vlm.payload import ImagePayload, UploadedFile


class FakeGenerator:
    """Counts calls; returns `story`, raises `error`, or waits on `gate` first."""

    def __init__(self, story="A cat sat.", error=None, gate=None):
        self.story = story
        self.error = error
        self.gate = gate
        self.calls = []

    async def generate(self, request: GenerateStoryInput) -> GenerateStoryOutput:
        self.calls.append(request)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return GenerateStoryOutput(story=self.story)


class FakeImprover:
    def __init__(self, improved="A cat sat by the window.", error=None):
        self.improved = improved
        self.error = error
        self.calls = []

    async def improve(self, request: ImproveStoryInput) -> ImproveStoryOutput:
        self.calls.append(request)
        if self.error is not None:
            raise self.error
        return ImproveStoryOutput(improved_story=self.improved)


def image_bytes(fmt="PNG", size=(8, 6)) -> bytes:
    buf = BytesIO()
    Image.new("RGB", size, "orange").save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def png_bytes():
    return image_bytes("PNG")


@pytest.fixture
def png_payload(png_bytes):
    return ImagePayload.from_bytes(png_bytes, "image/png")


@pytest.fixture
def png_upload(png_bytes):
    return UploadedFile(filename="cat.png", content_type="image/png", data=png_bytes)


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def improver():
    return FakeImprover()


@pytest.fixture
def gate():
    return asyncio.Event()
