# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Configuration management for Assent.

This module handles application configuration from environment variables.
"""
from typing import Any, Dict

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.
    
    Assumptions:
    - Environment variables override defaults
    - Only the web/CLI layer reads settings; strategies and the identity
      context receive explicit arguments
    - PROVIDERS is a JSON object keyed by provider name, e.g.
      {"github": {"client_id": "...", "client_secret": "..."}}
    """
    
    # Database
    database_url: str = "sqlite:///./assent.db"
    
    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_version: str = "v1"
    base_url: str = "http://localhost:8000"
    
    # OAuth providers
    providers: Dict[str, Dict[str, Any]] = {}
    
    # Logging
    log_level: str = "INFO"
    log_json: bool = True
    
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False
    )


settings = Settings()
