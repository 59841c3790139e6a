"""
Purpose:
- FastAPI dependencies shared by routers; tests swap them via app.dependency_overrides.
- The single InteractionController is built once at startup (see main.lifespan);
  get_controller only hands it out. Async so session state is only touched on the event loop.
"""

from fastapi import Request
from ..pipeline.orchestrator import PipelineOrchestrator
from ..services.backends import get_backend
from ..session.controller import InteractionController

def get_orchestrator() -> PipelineOrchestrator:
    backend = get_backend()
    return PipelineOrchestrator(backend.generator, backend.improver)

async def get_controller(request: Request) -> InteractionController:
    return request.app.state.controller
