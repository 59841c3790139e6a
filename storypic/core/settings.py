"""
Purpose:
- Centralized configuration using pydantic-settings.
- Reads from environment variables and optional .env file.
- Keeps backend choice, limits and model knobs tunable without code changes.
"""

# --- Purpose: robust settings with env-file support and safe handling of extra keys.
from typing import List, Optional
from pathlib import Path
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # Pydantic v2 config (env file + ignore unexpected env vars)
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",          # <-- prevents crashes if extra env vars exist
    )

    # API host/port
    host: str = Field(default="0.0.0.0", description="Bind address for FastAPI/Uvicorn")
    port: int = Field(default=8000, description="Port for FastAPI/Uvicorn")
    log_level: str = Field(default="INFO", description="Root log level")

    # CORS
    cors_allow_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:9002"],
        description="Allowed origins for browser apps"
    )

    # ---- Upload limits ----
    max_image_bytes: int = Field(default=4 * 1024 * 1024, description="Upload ceiling (4 MiB)")
    allowed_mime_types: List[str] = Field(
        default=["image/png", "image/jpeg", "image/webp"],
        description="Image types accepted for story generation"
    )
    download_filename: str = Field(default="story.txt")

    # "stub" | "openai" | "qwen"
    story_backend: str = Field(default="openai", description="Which backend writes and improves stories")

    # ---- OpenAI config ----
    # OPENAI_API_KEY from env (.env or shell)
    openai_api_key: Optional[str] = None
    openai_model: str = Field(default="gpt-4o-mini")
    openai_timeout_s: float = Field(default=60.0)
    openai_story_max_tokens: int = Field(default=600)
    openai_improve_max_tokens: int = Field(default=900)
    openai_temperature: float = Field(default=0.8)

    # ---- Qwen story writer config ----
    qwen_model_id: str = Field(default="Qwen/Qwen2.5-VL-3B-Instruct")
    qwen_device: str = Field(default="auto")       # "auto" | "cuda" | "cpu"
    qwen_max_new_tokens: int = Field(default=512)
    qwen_temperature: float = Field(default=0.8)
    qwen_top_p: float = Field(default=0.9)

    # ---- Qwen memory/offload controls ----
    qwen_offload_folder: Path = Field(default=Path("./data/qwen_offload"))
    qwen_gpu_max_gb: float = Field(default=15.0)   # cap GPU usage; leave headroom
    qwen_cpu_max_gb: float = Field(default=80.0)   # how much RAM you're ok to use
    qwen_attn_impl: str = Field(default="sdpa")    # "sdpa" (mem-efficient) | "flash_attention_2" (if installed) | "eager"
    qwen_context_tokens: int = Field(default=32768)

settings = Settings()
