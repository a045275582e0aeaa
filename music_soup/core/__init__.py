"""
Core module for music-soup.

This module provides the foundational components used throughout the application:
    - exceptions: Custom exception classes for error handling
    - config: Configuration loading and validation
    - logger: Logging system with console, log files and report files
    - tokens: Token cache injected into the API wrappers
    - http: Async JSON requests with retry

Usage:
    from music_soup.core import (
        Config, load_config,
        setup_logging, get_logger,
        MusicSoupError, ConfigError, SourceError, SinkError
    )
"""

from music_soup.core.config import (
    AppleMusicConfig,
    CleanupConfig,
    Config,
    LoggingConfig,
    NotionConfig,
    SpotifyConfig,
    SyncConfig,
    load_config,
)
from music_soup.core.exceptions import (
    ConfigError,
    MusicSoupError,
    NormalizationError,
    SinkError,
    SourceError,
    SourceUnavailableError,
)
from music_soup.core.logger import (
    get_logger,
    log_metadata_gap,
    log_sync_failure,
    log_sync_summary,
    setup_logging,
    shutdown_logging,
)
from music_soup.core.tokens import TokenCache

__all__ = [
    # Config
    "Config",
    "NotionConfig",
    "SpotifyConfig",
    "AppleMusicConfig",
    "SyncConfig",
    "CleanupConfig",
    "LoggingConfig",
    "load_config",
    # Exceptions
    "MusicSoupError",
    "ConfigError",
    "SourceError",
    "SourceUnavailableError",
    "NormalizationError",
    "SinkError",
    # Logger
    "setup_logging",
    "get_logger",
    "log_metadata_gap",
    "log_sync_failure",
    "log_sync_summary",
    "shutdown_logging",
    # Tokens
    "TokenCache",
]
