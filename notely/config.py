"""Pydantic settings loaded from .env."""
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    jwt_secret: str = "change-me-to-a-random-32-char-secret"
    jwt_expiry_s: int = Field(86400, gt=0)
    database_url: str = "./notely.db"
    # CAPTCHA
    captcha_ttl_s: float = Field(300, gt=0)
    captcha_sweep_interval_s: float = Field(300, gt=0)
    captcha_length: int = Field(5, ge=1, le=12)
    captcha_image_format: Literal["svg", "png"] = "svg"
    # Rate limiting
    rate_limit_requests: int = 100
    rate_limit_window_s: int = 900
    trust_proxy: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
