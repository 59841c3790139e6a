"""
Purpose:
- Pydantic models for one pipeline run's outcome so the API is self-documenting and stable.
- PipelineResult is a tagged union: Success(story) | Failure(reason, message).
- ActionResult is the wire form returned by /api/v1/story/generate.
"""

from __future__ import annotations
from enum import Enum
from typing import Annotated, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field

class FailureReason(str, Enum):
    NO_INPUT = "NoInput"
    EMPTY_GENERATION = "EmptyGeneration"
    UNEXPECTED_ERROR = "UnexpectedError"

class Success(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["success"] = "success"
    story: str = Field(..., min_length=1)

class Failure(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["failure"] = "failure"
    reason: FailureReason
    message: str

PipelineResult = Annotated[Union[Success, Failure], Field(discriminator="kind")]

class GenerateStoryRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    photo_data_uri: Optional[str] = Field(None, alias="photoDataUri")

class ActionResult(BaseModel):
    success: bool
    story: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def from_result(cls, result: Union[Success, Failure]) -> "ActionResult":
        if isinstance(result, Success):
            return cls(success=True, story=result.story)
        return cls(success=False, error=result.message)
