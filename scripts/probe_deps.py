"""
Purpose:
- Sanity-check critical library versions after upgrades.
- Import the exact modules we use, print versions, and push one tiny PNG through the stub pipeline.
"""

import asyncio
import sys
from io import BytesIO

import fastapi
import uvicorn
import openai
import PIL
from PIL import Image
from pydantic_settings import BaseSettings

from storypic.pipeline.orchestrator import PipelineOrchestrator
from storypic.vlm.payload import ImagePayload
from storypic.vlm.story_writer import StubStoryWriter, StubStoryImprover

print("python", sys.version)
print("fastapi", fastapi.__version__)
print("uvicorn", uvicorn.__version__)
print("openai", openai.__version__)
print("pillow", PIL.__version__)
print("pydantic-settings", BaseSettings.__module__.split(".")[0])  # presence check

buf = BytesIO()
Image.new("RGB", (32, 24), "teal").save(buf, format="PNG")
image = ImagePayload.from_bytes(buf.getvalue(), "image/png")
result = asyncio.run(PipelineOrchestrator(StubStoryWriter(), StubStoryImprover()).run(image))
print("stub_pipeline", result.kind)
print("OK")
