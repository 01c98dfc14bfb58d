"""Configuration management for the VoidWeaver backend.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the VOIDWEAVER_ prefix,
allowing providers, model versions, and timeouts to be changed without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (VOIDWEAVER_* prefix)
2. .env file in the project root
3. Default values defined in VoidWeaverConfig

Example .env file:
    VOIDWEAVER_GEMINI_IMAGE_MODEL=gemini-2.5-flash-image
    VOIDWEAVER_NOVELAI_MODEL=nai-diffusion-3
    VOIDWEAVER_IMAGE_TIMEOUT=120
    VOIDWEAVER_STREAM_DEADLINE=300

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time.
This ensures a single source of truth for all configuration values across
the application.

Usage Example
-------------
    from voidweaver.core.config import config

    print(config.gemini_edit_model)
    print(config.stream_deadline)

Provider Credentials
--------------------
Credentials are NOT part of the configuration. Every request carries the
caller's own provider key (bring-your-own-key), so nothing secret is ever
read from the environment or written to disk.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class VoidWeaverConfig(BaseSettings):
    """Main configuration for the VoidWeaver backend.

    Attributes
    ----------
    Inline-image provider (Google Gemini):
        gemini_api_base : str
            Base URL of the ``models/{model}:generateContent`` REST surface
        gemini_image_model : str
            Model used for text-to-image generation
        gemini_edit_model : str
            Edit-capable model selected whenever an input image is supplied
        gemini_text_model : str
            Text/vision model used for critique, style suggestion, analysis
            and module refinement

    Archive-response provider (NovelAI):
        novelai_url : str
            Image generation endpoint (returns a ZIP archive)
        novelai_model : str
            Diffusion model identifier sent in the request body
        novelai_sampler : str
            Sampler name used when the caller does not choose one

    Generation defaults:
        default_steps, default_scale, default_strength, default_resolution

    Timeouts (seconds):
        connect_timeout : float
            TCP/TLS connect timeout shared by every provider call
        image_timeout : float
            Read timeout for a single image generation call
        text_timeout : float
            Read timeout for a single text/vision call
        stream_deadline : float
            Wall-clock budget of one ``/api/generate/stream`` connection

    Server:
        server_host, server_port, cors_allow_origins, log_level
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="VOIDWEAVER_",
        case_sensitive=False,
    )

    # Inline-image provider
    gemini_api_base: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta/models",
        description="Base URL for Gemini generateContent calls",
    )
    gemini_image_model: str = Field(
        default="gemini-2.5-flash-image",
        description="Gemini model used for text-to-image",
    )
    gemini_edit_model: str = Field(
        default="gemini-3-pro-image-preview",
        description="Gemini model used for image-to-image (multiturn editing)",
    )
    gemini_text_model: str = Field(
        default="gemini-2.0-flash-exp",
        description="Gemini model used for critique, suggestions, analysis and refinement",
    )

    # Archive-response provider
    novelai_url: str = Field(
        default="https://image.novelai.net/ai/generate-image",
        description="NovelAI image generation endpoint",
    )
    novelai_model: str = Field(
        default="nai-diffusion-3",
        description="NovelAI diffusion model identifier",
    )
    novelai_sampler: str = Field(
        default="k_euler",
        description="Default NovelAI sampler",
    )

    # Generation defaults (used when a request leaves the field unset)
    default_steps: int = Field(default=28, ge=1, le=50)
    default_scale: float = Field(default=6.0, ge=1.0, le=20.0)
    default_strength: float = Field(default=0.7, ge=0.0, le=0.99)
    default_resolution: str = Field(
        default="1024x1024",
        description="Resolution used when a request omits one (WIDTHxHEIGHT)",
    )

    # Timeouts
    connect_timeout: float = Field(default=30.0, gt=0)
    image_timeout: float = Field(
        default=120.0,
        gt=0,
        description="Read timeout for image generation calls (generation is slow)",
    )
    text_timeout: float = Field(default=60.0, gt=0)
    stream_deadline: float = Field(
        default=300.0,
        gt=0,
        description="Hard deadline for a streaming generation, measured from acceptance",
    )

    # Server settings
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address",
    )
    server_port: int = Field(
        default=8080,
        description="Server port",
        ge=1024,
        le=65535,
    )
    cors_allow_origins: list[str] = Field(default_factory=lambda: ["*"])
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")


# Global configuration instance
config = VoidWeaverConfig()
