"""
Configuration module for the flavor recommender.

This module provides centralized configuration management using pydantic-settings.
All environment variables and configuration values should be accessed through this module.

Usage:
    from config import get_settings, settings

    settings = get_settings()
    model = settings.llm_model
"""

from config.settings import Settings, get_settings

# Allow import even if env vars are not set (tests build their own settings)
try:
    settings = get_settings()
except Exception:
    settings = None

__all__ = ["Settings", "get_settings", "settings"]
