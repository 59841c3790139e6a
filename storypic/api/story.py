"""
Purpose:
- /generate is the story action surface: data URI in, {success, story?, error?} out.
- Always 200; failures are reported in the body, never as exceptions.
"""

from fastapi import APIRouter, Depends
from ..pipeline.orchestrator import PipelineOrchestrator
from ..pipeline.schema import ActionResult, GenerateStoryRequest
from .deps import get_orchestrator

router = APIRouter(prefix="/api/v1/story", tags=["story"])

@router.post("/generate", response_model=ActionResult, response_model_exclude_none=True)
async def generate(payload: GenerateStoryRequest, orchestrator: PipelineOrchestrator = Depends(get_orchestrator)):
    return await orchestrator.generate_story(payload.photo_data_uri)
