# Common language: Environment/ops check that surfaces version pins, backend status, and upload limits.
# Use this before/after upgrades to confirm no silent drift.

from fastapi import APIRouter
from ..core.settings import settings
from ..services.backends import get_backend
import sys, importlib

router = APIRouter(tags=["health"])

def _ver(modname: str) -> str:
    try:
        m = importlib.import_module(modname)
        return getattr(m, "__version__", "unknown")
    except ImportError:
        return "not-installed"

@router.get("/healthz")
def healthz():
    backend = get_backend()
    return {
        "status": "ok",
        "python": sys.version.split()[0],
        "versions": {
            "fastapi": _ver("fastapi"),
            "uvicorn": _ver("uvicorn"),
            "pydantic": _ver("pydantic"),
            "pydantic_settings": _ver("pydantic_settings"),
            "PIL": _ver("PIL"),
            "openai": _ver("openai"),
        },
        "backend": {
            "configured": settings.story_backend,
            "active": backend.name,
            "using_stub": backend.using_stub,
            "load_warning": backend.load_warning,
            "openai_key_present": bool(settings.openai_api_key),
            "qwen_model_id": settings.qwen_model_id,
        },
        "limits": {
            "max_image_bytes": settings.max_image_bytes,
            "allowed_mime_types": settings.allowed_mime_types,
        },
    }
