"""Configuration management for the Signing Package Builder."""

import os
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Settings:
    """Application settings loaded from environment variables."""

    # Local template store
    template_dir: str = field(
        default_factory=lambda: os.environ.get("TEMPLATE_DIR", "data/templates")
    )
    config_dir: str = field(default_factory=lambda: os.environ.get("CONFIG_DIR", "config"))

    # S3 template store (takes precedence when a bucket is configured)
    template_bucket: str = field(default_factory=lambda: os.environ.get("TEMPLATE_BUCKET", ""))
    template_prefix: str = field(
        default_factory=lambda: os.environ.get("TEMPLATE_PREFIX", "templates/")
    )
    config_prefix: str = field(default_factory=lambda: os.environ.get("CONFIG_PREFIX", "config/"))

    # Lambda output storage
    output_bucket: str = field(default_factory=lambda: os.environ.get("OUTPUT_BUCKET", ""))

    # Configuration object names
    manifest_name: str = field(
        default_factory=lambda: os.environ.get("MANIFEST_NAME", "standard_pkg.json")
    )
    field_map_name: str = field(default_factory=lambda: os.environ.get("FIELD_MAP_NAME", "map.json"))

    # Processing Configuration
    fetch_workers: int = field(
        default_factory=lambda: int(os.environ.get("FETCH_WORKERS", "8"))
    )
    default_lender: str = field(default_factory=lambda: os.environ.get("DEFAULT_LENDER", "TD"))

    @classmethod
    def from_env(cls) -> "Settings":
        """Create Settings instance from environment variables."""
        return cls()

    @property
    def uses_s3(self) -> bool:
        return bool(self.template_bucket)

    def validate(self) -> None:
        """Validate settings are usable."""
        if self.fetch_workers < 1:
            raise ValueError("FETCH_WORKERS must be at least 1")
        if not self.manifest_name:
            raise ValueError("MANIFEST_NAME environment variable is required")


# Global settings instance (lazy loaded, entry points only)
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the process-wide settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings
