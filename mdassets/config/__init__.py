"""Configuration module for mdassets."""

from mdassets.config.settings import (
    CompressionSettings,
    DeployConfig,
    DownloadConfig,
    GitConfig,
    MdAssetsSettings,
    OutputConfig,
    SiteConfig,
    get_settings,
    reload_settings,
)

__all__ = [
    "MdAssetsSettings",
    "DownloadConfig",
    "CompressionSettings",
    "SiteConfig",
    "GitConfig",
    "DeployConfig",
    "OutputConfig",
    "get_settings",
    "reload_settings",
]
