"""Configuration settings using pydantic-settings."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict, YamlConfigSettingsSource

from mdassets.config.constants import (
    DEFAULT_CONCURRENCY,
    DEFAULT_CONFIG_FILE,
    DEFAULT_IMAGE_WORKERS,
    DEFAULT_IMAGES_DIR,
    DEFAULT_LINK_PREFIX,
    DEFAULT_LOG_DIR,
    DEFAULT_LOSSLESS_THRESHOLD,
    DEFAULT_MAX_HEIGHT,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MAX_WIDTH,
    DEFAULT_MIN_PAYLOAD_BYTES,
    DEFAULT_MIN_SAVINGS_RATIO,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_POSTS_DIR,
    DEFAULT_RETRY_BASE_DELAY,
    DEFAULT_TARGET_FORMAT,
    DEFAULT_TARGET_QUALITY,
    DEFAULT_TIMEOUT_MS,
)


class DownloadConfig(BaseModel):
    """Image download configuration."""

    concurrency: int = Field(default=DEFAULT_CONCURRENCY, ge=1)
    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=1)
    timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS, ge=1)
    retry_base_delay: float = Field(default=DEFAULT_RETRY_BASE_DELAY, ge=0)
    min_payload_bytes: int = Field(default=DEFAULT_MIN_PAYLOAD_BYTES, ge=0)
    deadline_seconds: float | None = Field(default=None, gt=0)  # None = no run deadline
    compress_images: bool = True


class CompressionSettings(BaseModel):
    """Transcode policy configuration."""

    max_width: int = Field(default=DEFAULT_MAX_WIDTH, ge=1)
    max_height: int = Field(default=DEFAULT_MAX_HEIGHT, ge=1)
    preserve_aspect_ratio: bool = True
    convert_to_target_format: bool = True
    target_format: Literal["webp", "png", "jpeg"] = DEFAULT_TARGET_FORMAT
    target_quality: int = Field(default=DEFAULT_TARGET_QUALITY, ge=1, le=100)
    allow_lossless: bool = True
    lossless_threshold_bytes: int = Field(default=DEFAULT_LOSSLESS_THRESHOLD, ge=0)
    min_savings_ratio: float = Field(default=DEFAULT_MIN_SAVINGS_RATIO, ge=0, lt=1)
    reoptimize_same_format: bool = True
    image_workers: int = Field(default=DEFAULT_IMAGE_WORKERS, ge=1)


class SiteConfig(BaseModel):
    """Static site layout configuration."""

    images_dir: str = DEFAULT_IMAGES_DIR
    link_prefix: str = DEFAULT_LINK_PREFIX
    posts_dir: str = DEFAULT_POSTS_DIR
    git_repo: str = "."
    base_url: str | None = None


class GitConfig(BaseModel):
    """Source control automation configuration."""

    auto_commit: bool = False
    auto_push: bool = False
    remote: str = "origin"
    branch: str = "main"
    commit_prefix: str = "docs: publish"


class DeployConfig(BaseModel):
    """Static site generator configuration."""

    auto_deploy: bool = False
    clean_before_generate: bool = True
    generator: str = "hexo"


class OutputConfig(BaseModel):
    """Output configuration for the localize command."""

    default_dir: str = DEFAULT_OUTPUT_DIR
    on_conflict: Literal["skip", "overwrite", "rename"] = "overwrite"


class MdAssetsSettings(BaseSettings):
    """Main configuration class for mdassets."""

    model_config = SettingsConfigDict(
        env_prefix="MDASSETS_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls, settings_cls, init_settings, env_settings, dotenv_settings, file_secret_settings
    ):
        """Customize settings sources to include YAML file."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=DEFAULT_CONFIG_FILE),
            file_secret_settings,
        )

    # Sub-configurations
    download: DownloadConfig = Field(default_factory=DownloadConfig)
    compression: CompressionSettings = Field(default_factory=CompressionSettings)
    site: SiteConfig = Field(default_factory=SiteConfig)
    git: GitConfig = Field(default_factory=GitConfig)
    deploy: DeployConfig = Field(default_factory=DeployConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)

    # Global settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_dir: str = DEFAULT_LOG_DIR

    def get_images_root(self, base_path: Path | None = None) -> Path:
        """Get the directory localized images are written under."""
        images_dir = Path(self.site.images_dir)
        if base_path and not images_dir.is_absolute():
            return base_path / images_dir
        return images_dir


@lru_cache
def get_settings() -> MdAssetsSettings:
    """Get cached settings instance."""
    return MdAssetsSettings()


def reload_settings() -> MdAssetsSettings:
    """Force reload settings (clear cache)."""
    get_settings.cache_clear()
    return get_settings()
