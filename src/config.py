"""
Configuration module for the buildpack reconciler.

Loads configuration from environment variables.
"""

import os
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class CloudFoundryConfig:
    """Cloud Controller connection configuration."""

    api_endpoint: str = ""
    username: str = ""
    password: str = field(default="", repr=False)  # Never log password
    access_token: str = field(default="", repr=False)
    skip_ssl_validation: bool = False
    request_timeout: int = 60  # seconds

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        api_endpoint = os.getenv("CF_API_ENDPOINT", "")
        if not api_endpoint:
            raise ValueError(
                "CF_API_ENDPOINT environment variable must be set. "
                "Cloud Controller endpoint cannot be empty."
            )

        return cls(
            api_endpoint=api_endpoint,
            username=os.getenv("CF_USERNAME", ""),
            password=os.getenv("CF_PASSWORD", ""),
            access_token=os.getenv("CF_ACCESS_TOKEN", ""),
            skip_ssl_validation=os.getenv("CF_SKIP_SSL_VALIDATION", "false").lower()
            == "true",
            request_timeout=int(os.getenv("CF_REQUEST_TIMEOUT", "60")),
        )


@dataclass
class CacheConfig:
    """Buildpack collection cache configuration."""

    ttl: Optional[float] = None  # seconds; None keeps entries until invalidated

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        ttl = os.getenv("BUILDPACK_CACHE_TTL")
        return cls(ttl=float(ttl) if ttl else None)


@dataclass
class CLIConfig:
    """
    bpctl command line configuration.

    Loaded separately from Config, so commands that only read the state file
    work without Cloud Controller settings.
    """

    state_file: str = "bpctl.state.json"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            state_file=os.getenv("BPCTL_STATE_FILE", "bpctl.state.json"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )


@dataclass
class Config:
    """Main configuration object."""

    cloudfoundry: CloudFoundryConfig
    cache: CacheConfig

    @classmethod
    def from_env(cls):
        """Load all configuration from environment variables."""
        return cls(
            cloudfoundry=CloudFoundryConfig.from_env(),
            cache=CacheConfig.from_env(),
        )

    @classmethod
    def default(cls):
        """Return default configuration."""
        return cls(
            cloudfoundry=CloudFoundryConfig(),
            cache=CacheConfig(),
        )


# Global config instance
config: Optional[Config] = None


def load_config() -> Config:
    """Load configuration (singleton pattern)."""
    global config
    if config is None:
        config = Config.from_env()
    return config


def get_config() -> Config:
    """Get the current configuration."""
    if config is None:
        return load_config()
    return config


def reset_config() -> None:
    """Reset configuration (mainly for testing)."""
    global config
    config = None
