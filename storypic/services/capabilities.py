"""
Purpose:
- Narrow contracts for the two AI stages so any backend can be swapped in.
- Stage 1 (TextFromImageGenerator): photo data URI -> draft story.
- Stage 2 (TextQualityImprover): story -> improved story.

Notes:
- Implementations may raise anything on transport/model failure; callers map that.
"""

from __future__ import annotations
from typing import Protocol, runtime_checkable
from pydantic import BaseModel, ConfigDict, Field

class GenerateStoryInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    photo_data_uri: str = Field(
        ...,
        alias="photoDataUri",
        description="Photo as 'data:<mimetype>;base64,<encoded_data>'",
    )

class GenerateStoryOutput(BaseModel):
    story: str = Field("", description="A short story generated based on the image.")

class ImproveStoryInput(BaseModel):
    story: str

class ImproveStoryOutput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    improved_story: str = Field("", alias="improvedStory")

@runtime_checkable
class TextFromImageGenerator(Protocol):
    async def generate(self, request: GenerateStoryInput) -> GenerateStoryOutput: ...

@runtime_checkable
class TextQualityImprover(Protocol):
    async def improve(self, request: ImproveStoryInput) -> ImproveStoryOutput: ...
