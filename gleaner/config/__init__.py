"""
Configuration Module

Centralized configuration management for Gleaner.
"""

from gleaner.config.settings import (
    AdapterSettings,
    CacheSettings,
    EmbeddingSettings,
    LLMSettings,
    ObservabilitySettings,
    RegistrySettings,
    RetrievalSettings,
    SchedulerSettings,
    Settings,
    VectorStoreSettings,
    get_settings,
)

__all__ = [
    "AdapterSettings",
    "CacheSettings",
    "EmbeddingSettings",
    "LLMSettings",
    "ObservabilitySettings",
    "RegistrySettings",
    "RetrievalSettings",
    "SchedulerSettings",
    "Settings",
    "VectorStoreSettings",
    "get_settings",
]
