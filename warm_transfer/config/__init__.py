"""Configuration module."""

from warm_transfer.config.settings import (
    APISettings,
    AWSSettings,
    GroqSettings,
    LiveKitSettings,
    Settings,
    TransferSettings,
    TTSSettings,
    get_settings,
)

__all__ = [
    "APISettings",
    "AWSSettings",
    "GroqSettings",
    "LiveKitSettings",
    "Settings",
    "TransferSettings",
    "TTSSettings",
    "get_settings",
]
