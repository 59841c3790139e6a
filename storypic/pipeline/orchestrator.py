"""
Purpose:
- Run one photo through both stages: validate -> write draft -> improve -> result.
- Every failure mode comes back as a Failure value; nothing raises past run().

Design:
- Strictly sequential: the improver starts only after the draft is in hand.
- No retries. Stage-1 and stage-2 errors share one user-facing reason;
  logs carry the stage for telemetry.
"""

from __future__ import annotations
from typing import Optional
import logging

from ..core.errors import ImageRejectedError
from ..services.capabilities import (
    GenerateStoryInput,
    ImproveStoryInput,
    TextFromImageGenerator,
    TextQualityImprover,
)
from ..vlm.payload import ImagePayload
from .schema import ActionResult, Failure, FailureReason, PipelineResult, Success

logger = logging.getLogger(__name__)

NO_INPUT_MESSAGE = "No image data provided."
EMPTY_GENERATION_MESSAGE = "The AI could not generate a story from this image. Please try a different one."
UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred while creating the story. Please try again later."

def unexpected_failure() -> Failure:
    return Failure(reason=FailureReason.UNEXPECTED_ERROR, message=UNEXPECTED_ERROR_MESSAGE)

class PipelineOrchestrator:
    def __init__(self, generator: TextFromImageGenerator, improver: TextQualityImprover):
        self.generator = generator
        self.improver = improver

    async def run(self, image: Optional[ImagePayload]) -> PipelineResult:
        if image is None or image.is_empty:
            logger.info("story run skipped: no image data")
            return Failure(reason=FailureReason.NO_INPUT, message=NO_INPUT_MESSAGE)

        # 1. Draft
        try:
            draft = await self.generator.generate(GenerateStoryInput(photo_data_uri=image.to_data_uri()))
        except Exception:
            logger.exception("story run failed at stage=generate (mime=%s, bytes=%d)", image.mime_type, image.byte_size)
            return unexpected_failure()

        story = (draft.story if draft is not None else "") or ""
        if not story.strip():
            logger.info("story run produced an empty draft")
            return Failure(reason=FailureReason.EMPTY_GENERATION, message=EMPTY_GENERATION_MESSAGE)

        # 2. Improve
        try:
            improved = await self.improver.improve(ImproveStoryInput(story=story))
        except Exception:
            logger.exception("story run failed at stage=improve (draft_chars=%d)", len(story))
            return unexpected_failure()

        text = (improved.improved_story if improved is not None else "") or ""
        if not text.strip():
            logger.error("story run failed at stage=improve: improver returned empty text")
            return unexpected_failure()

        return Success(story=text)

    async def generate_story(self, photo_data_uri: Optional[str]) -> ActionResult:
        """
        Action surface: data URI in, {success, story?, error?} out.
        """
        if not photo_data_uri:
            return ActionResult.from_result(await self.run(None))
        try:
            image = ImagePayload.from_data_uri(photo_data_uri)
        except ImageRejectedError as e:
            logger.info("story request rejected: %s", e.message)
            return ActionResult(success=False, error=e.message)
        return ActionResult.from_result(await self.run(image))
