"""
Purpose:
- Upload / view / download / reset workflow over the single interaction session.
- Mirrors the browser controls: upload and reset are refused (409) while a story is generating.

Notes:
- upload?wait=true holds the response until the run resolves (scripts, tests);
  otherwise poll GET /api/v1/session.
"""

from __future__ import annotations
from typing import Optional
from fastapi import APIRouter, Depends, File, HTTPException, Query, Response, UploadFile
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ..core.errors import SessionBusyError
from ..session.controller import InteractionController
from ..session.state import InteractionState, Phase
from ..vlm.payload import UploadedFile
from .deps import get_controller

router = APIRouter(prefix="/api/v1/session", tags=["session"])

class SessionView(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    phase: Phase
    image_data_uri: Optional[str] = None
    story: Optional[str] = None
    error: Optional[str] = None
    can_select: bool = True
    can_reset: bool = True
    can_download: bool = False

    @classmethod
    def from_state(cls, state: InteractionState) -> "SessionView":
        return cls(
            phase=state.phase,
            image_data_uri=state.image.to_data_uri() if state.image is not None else None,
            story=state.story,
            error=state.error,
            can_select=state.can_select,
            can_reset=state.can_reset,
            can_download=state.can_download,
        )

async def read_limited(image, limit: int) -> bytes:
    """
    Read at most limit + 1 bytes: enough for the controller to see the file is too big
    without holding an arbitrarily large upload in memory.
    """
    return await image.read(limit + 1)

@router.get("", response_model=SessionView)
async def view(controller: InteractionController = Depends(get_controller)):
    return SessionView.from_state(controller.state)

@router.post("/upload", response_model=SessionView)
async def upload(
    image: UploadFile = File(...),
    wait: bool = Query(default=False, description="Respond only after the story run resolves"),
    controller: InteractionController = Depends(get_controller),
):
    raw = await read_limited(image, controller.max_bytes)
    selected = UploadedFile(filename=image.filename or "upload", content_type=image.content_type, data=raw)
    try:
        await controller.select_file(selected)
    except SessionBusyError as e:
        raise HTTPException(status_code=409, detail=e.message)
    if wait:
        await controller.wait()
    return SessionView.from_state(controller.state)

@router.post("/reset", response_model=SessionView)
async def reset(controller: InteractionController = Depends(get_controller)):
    if not controller.state.can_reset:
        raise HTTPException(status_code=409, detail=SessionBusyError().message)
    return SessionView.from_state(controller.reset())

@router.get("/download")
async def download(controller: InteractionController = Depends(get_controller)):
    artifact = controller.download()
    if artifact is None:
        raise HTTPException(status_code=404, detail="No story to download yet.")
    return Response(
        content=artifact.content,
        media_type=artifact.media_type,
        headers={"Content-Disposition": f'attachment; filename="{artifact.filename}"'},
    )
