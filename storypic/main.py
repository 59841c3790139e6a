"""
Purpose:
- FastAPI application factory and router mounts.
- Adds CORS for the local web client.
- Builds the one interaction session at startup, on the event loop.
- Uvicorn will serve this on 0.0.0.0:8000 by default (uvicorn storypic.main:app).
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from .core.settings import settings
from .api.deps import get_orchestrator
from .api.health import router as health_router
from .api.story import router as story_router
from .api.session import router as session_router
from .pipeline.orchestrator import PipelineOrchestrator
from .session.controller import InteractionController

def create_app(orchestrator: Optional[PipelineOrchestrator] = None) -> FastAPI:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # backend is resolved here, not at import, so the qwen model loads once per server start
        app.state.controller = InteractionController(orchestrator or get_orchestrator())
        yield

    app = FastAPI(title="StoryPic API", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],
    )
    app.include_router(health_router)
    app.include_router(story_router)
    app.include_router(session_router)
    return app


app = create_app()
