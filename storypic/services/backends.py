"""
Purpose:
- Pick the (writer, improver) pair named by settings.story_backend and cache it.
- If the configured backend cannot be built (missing key, no torch, OOM on load),
  fall back to the stub pair and keep the reason for /healthz.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional
import logging

from ..core.settings import settings
from ..vlm.story_writer import StubStoryWriter, StubStoryImprover
from .capabilities import TextFromImageGenerator, TextQualityImprover

logger = logging.getLogger(__name__)

BACKENDS = ("stub", "openai", "qwen")

@dataclass
class StoryBackend:
    name: str
    generator: TextFromImageGenerator
    improver: TextQualityImprover
    load_warning: Optional[str] = None

    @property
    def using_stub(self) -> bool:
        return isinstance(self.generator, StubStoryWriter)

_BACKEND_SINGLETON: Optional[StoryBackend] = None

def _build(name: str) -> StoryBackend:
    if name == "stub":
        return StoryBackend(name, StubStoryWriter(), StubStoryImprover())
    if name == "openai":
        from .openai_backend import make_client, OpenAIStoryWriter, OpenAIStoryImprover
        client = make_client()
        return StoryBackend(name, OpenAIStoryWriter(client), OpenAIStoryImprover(client))
    if name == "qwen":
        # lazy: torch/transformers only needed for this backend
        from ..vlm.qwen_writer import get_qwen_model, QwenStoryWriter, QwenStoryImprover
        model = get_qwen_model()
        return StoryBackend(name, QwenStoryWriter(model), QwenStoryImprover(model))
    raise ValueError(f"unknown story backend {name!r}; expected one of {', '.join(BACKENDS)}")

def get_backend() -> StoryBackend:
    """
    Return the cached backend pair, building it on first use.
    """
    global _BACKEND_SINGLETON
    if _BACKEND_SINGLETON is not None:
        return _BACKEND_SINGLETON

    name = (settings.story_backend or "stub").strip().lower()
    try:
        _BACKEND_SINGLETON = _build(name)
        logger.info("story backend ready: %s", name)
    except Exception as e:
        logger.warning("story backend %r unavailable, using stub: %r", name, e)
        reason = f"{name}: {e!r}"
        _BACKEND_SINGLETON = StoryBackend(
            name="stub",
            generator=StubStoryWriter(reason),
            improver=StubStoryImprover(reason),
            load_warning=reason,
        )
    return _BACKEND_SINGLETON

def reset_backend() -> None:
    global _BACKEND_SINGLETON
    _BACKEND_SINGLETON = None
