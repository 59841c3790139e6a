"""
VRAM-conserving Qwen2.5-VL story writer + improver (one loaded model serves both stages):
- bf16 precision
- 32k tokenizer context
- Accelerate device_map="auto" with explicit max_memory (GPU cap + CPU offload)
- Attention implementation set via model config (sdpa / flash_attention_2 / eager)
- OOM / load guards with clean CPU fallback
- Blocking generate() runs in a worker thread so the event loop stays free
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional
from io import BytesIO
from PIL import Image, ImageOps
import asyncio
import logging
import os

# allocator hint before torch import
os.environ.setdefault("PYTORCH_CUDA_ALLOC_CONF", "expandable_segments:True")

import torch
from ..core.settings import settings
from ..services.capabilities import (
    GenerateStoryInput,
    GenerateStoryOutput,
    ImproveStoryInput,
    ImproveStoryOutput,
)
from ..services.prompts import STORY_SYSTEM_HINT, STORY_PROMPT, IMPROVE_SYSTEM_HINT, improve_prompt
from .payload import ImagePayload

logger = logging.getLogger(__name__)

_QWEN_SINGLETON = None  # cached instance

@dataclass
class QwenConfig:
    model_id: str
    device: str          # "auto" | "cpu" | "cuda"
    max_new_tokens: int
    temperature: float
    top_p: float
    # memory / offload
    offload_folder: str
    gpu_max_gb: float
    cpu_max_gb: float
    attn_impl: str       # "sdpa", "flash_attention_2", "eager"
    context_tokens: int

def _normalize_model_id(mid: str) -> str:
    mid = (mid or "").strip()
    if not mid:
        return "Qwen/Qwen2.5-VL-3B-Instruct"
    if "/" not in mid:
        return "Qwen/" + mid
    return mid

def _max_memory_map(gpu_gb: float, cpu_gb: float) -> dict:
    mm = {"cpu": f"{int(cpu_gb)}GiB"}
    if torch.cuda.is_available() and torch.cuda.device_count() > 0:
        mm[0] = f"{int(gpu_gb)}GiB"   # integer GPU key
    return mm

class QwenStoryModel:
    def __init__(self, cfg: QwenConfig):
        """
        Load Qwen with offload and stable attention config.
        """
        from transformers import AutoProcessor, AutoModelForImageTextToText, AutoConfig

        self.cfg = cfg
        model_id = _normalize_model_id(cfg.model_id)
        dtype = torch.bfloat16

        self.processor = AutoProcessor.from_pretrained(
            model_id, trust_remote_code=True, use_fast=True
        )
        tok = getattr(self.processor, "tokenizer", None)
        if tok is not None:
            tok.model_max_length = int(cfg.context_tokens)

        config = AutoConfig.from_pretrained(model_id, trust_remote_code=True)
        # not all models expose this; harmless when absent
        setattr(config, "attn_implementation", cfg.attn_impl)

        offload_dir = str(cfg.offload_folder)
        os.makedirs(offload_dir, exist_ok=True)

        force_cpu = (cfg.device == "cpu") or (not torch.cuda.is_available())
        if force_cpu:
            self.model = self._load(AutoModelForImageTextToText, model_id, config, dtype, {"": "cpu"}, offload_dir)
            self._device = torch.device("cpu")
        else:
            try:
                max_mem = _max_memory_map(cfg.gpu_max_gb, cfg.cpu_max_gb)
                self.model = self._load(AutoModelForImageTextToText, model_id, config, dtype, "auto", offload_dir, max_mem)
                self._device = next(self.model.parameters()).device
            except RuntimeError:
                # OOM -> fallback to CPU
                logger.warning("Qwen GPU load failed; falling back to CPU", exc_info=True)
                self.model = self._load(AutoModelForImageTextToText, model_id, config, dtype, {"": "cpu"}, offload_dir)
                self._device = torch.device("cpu")

    @staticmethod
    def _load(auto_cls, model_id, config, dtype, device_map, offload_dir, max_memory=None):
        kwargs = dict(
            config=config,
            torch_dtype=dtype,
            device_map=device_map,
            offload_folder=offload_dir,
            trust_remote_code=True,
        )
        if max_memory is not None:
            kwargs["max_memory"] = max_memory
        return auto_cls.from_pretrained(model_id, **kwargs).eval()

    def _generate(self, system: str, prompt: str, img: Optional[Image.Image] = None) -> str:
        content = [{"type": "image"}] if img is not None else []
        content.append({"type": "text", "text": prompt})
        messages = [
            {"role": "system", "content": [{"type": "text", "text": system}]},
            {"role": "user", "content": content},
        ]

        chat_text = self.processor.apply_chat_template(messages, add_generation_prompt=True)
        inputs = self.processor(
            images=[img] if img is not None else None,
            text=chat_text,
            return_tensors="pt",
            padding=True
        )

        # Move inputs to the model device
        dev = self._device
        for k, v in inputs.items():
            if hasattr(v, "to"):
                inputs[k] = v.to(dev)

        with torch.inference_mode():
            gen = self.model.generate(
                **inputs,
                max_new_tokens=self.cfg.max_new_tokens,
                do_sample=True,
                temperature=self.cfg.temperature,
                top_p=self.cfg.top_p,
            )

        # Decode only continuation
        in_ids = inputs.get("input_ids")
        gen_ids = gen[:, in_ids.shape[1]:] if in_ids is not None else gen
        out = self.processor.batch_decode(gen_ids, skip_special_tokens=True)
        return (out[0] if out else "").strip()

    def write_story(self, img: Image.Image) -> str:
        img = ImageOps.exif_transpose(img).convert("RGB")
        return self._generate(STORY_SYSTEM_HINT, STORY_PROMPT, img)

    def improve_story(self, story: str) -> str:
        return self._generate(IMPROVE_SYSTEM_HINT, improve_prompt(story))

def _decode(photo_data_uri: str) -> Image.Image:
    payload = ImagePayload.from_data_uri(photo_data_uri)
    img = Image.open(BytesIO(payload.to_bytes()))
    img.load()
    return img

class QwenStoryWriter:
    def __init__(self, model: QwenStoryModel):
        self.model = model
        self.cfg = model.cfg

    async def generate(self, request: GenerateStoryInput) -> GenerateStoryOutput:
        # decode and inference both run in the worker thread
        story = await asyncio.to_thread(lambda: self.model.write_story(_decode(request.photo_data_uri)))
        return GenerateStoryOutput(story=story)

class QwenStoryImprover:
    def __init__(self, model: QwenStoryModel):
        self.model = model
        self.cfg = model.cfg

    async def improve(self, request: ImproveStoryInput) -> ImproveStoryOutput:
        text = await asyncio.to_thread(self.model.improve_story, request.story)
        return ImproveStoryOutput(improved_story=text)

def get_qwen_model() -> QwenStoryModel:
    """
    Return a cached model configured for bf16 + long context + offload.
    """
    global _QWEN_SINGLETON
    if _QWEN_SINGLETON is not None:
        return _QWEN_SINGLETON

    cfg = QwenConfig(
        model_id=settings.qwen_model_id,
        device=settings.qwen_device,
        max_new_tokens=settings.qwen_max_new_tokens,
        temperature=settings.qwen_temperature,
        top_p=settings.qwen_top_p,
        offload_folder=str(settings.qwen_offload_folder),
        gpu_max_gb=float(settings.qwen_gpu_max_gb),
        cpu_max_gb=float(settings.qwen_cpu_max_gb),
        attn_impl=settings.qwen_attn_impl,
        context_tokens=int(settings.qwen_context_tokens),
    )
    _QWEN_SINGLETON = QwenStoryModel(cfg)
    return _QWEN_SINGLETON
