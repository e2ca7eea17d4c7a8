"""
Configuration module - loads all env vars using pydantic-settings.
This is the SINGLE SOURCE OF TRUTH for all config values.
"""

from functools import lru_cache
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # MongoDB
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_db: str = "talent_portal"

    # LLM (OpenAI-compatible)
    llm_api_key: str = ""
    llm_base_url: str = "https://generativelanguage.googleapis.com/v1beta/openai/"
    llm_model: str = "gemini-2.5-flash"
    llm_text_model: str = "gemini-2.5-pro"
    llm_vision_models: List[str] = [
        "gemini-2.5-flash",
        "gemini-2.5-pro",
        "gemini-2.0-flash",
        "gemini-2.5-flash-lite",
    ]

    # JWT Auth
    jwt_secret_key: str = "change-this-secret"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 1440

    # Candidate portal tokens
    portal_session_hours: int = 24
    magic_link_hours: int = 24

    # Email (Resend)
    resend_api_key: str = ""
    email_api_url: str = "https://api.resend.com/emails"
    email_from: str = "LIAH <noreply@getliah.com>"
    email_portal_from: str = "LIAH Portal <noreply@getliah.com>"

    # Calendar OAuth
    google_client_id: str = ""
    google_client_secret: str = ""
    google_redirect_uri: str = ""
    microsoft_client_id: str = ""
    microsoft_client_secret: str = ""
    microsoft_redirect_uri: str = ""
    calendar_time_zone: str = "America/Lima"

    # App
    brand_name: str = "LIAH"
    public_base_url: str = "http://localhost:8000"
    cors_origins: List[str] = ["*"]
    debug: bool = True
    log_level: str = "INFO"

    # Pydantic v2 config
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8"
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
