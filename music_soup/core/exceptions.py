"""
Exception classes for music-soup.

This module defines all custom exceptions used throughout the application.
Each exception carries a human-readable message plus an optional details
dictionary, so failures can be logged with context and still be shown to
the user in a single line.

Exception Hierarchy:
    MusicSoupError (base)
        ConfigError - Configuration file / environment issues
        SourceError - Spotify or Apple Music API issues
            SourceUnavailableError - Health check failed for a source
        NormalizationError - A raw source record cannot become a Track
        SinkError - Notion API issues

Severity:
    Nothing raised from the sync engine is process-fatal. ConfigError is the
    only exception that stops the command line before a run starts; every
    other error is caught at playlist or track level and counted in the
    run statistics.
"""


class MusicSoupError(Exception):
    """
    Base exception for all music-soup errors.

    All custom exceptions in this project inherit from this class,
    allowing callers to catch all music-soup errors with a single
    except clause if desired.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context (e.g., playlist id, page id).

    Example:
        try:
            await sink.create(fields)
        except MusicSoupError as e:
            logger.error(f"Operation failed: {e.message}")
            if e.details:
                logger.debug(f"Details: {e.details}")
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        """
        Initialize the base exception.

        Args:
            message: Human-readable error description that will be shown to the user.
            details: Optional dictionary containing additional context about the error.
                     Common keys include:
                     - 'playlist_id': Playlist involved in the error
                     - 'page_id': Notion page involved in the error
                     - 'original_error': The underlying exception if wrapping another error
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the error message for display."""
        return self.message


class ConfigError(MusicSoupError):
    """
    Raised when there's an issue with the configuration.

    This is a CRITICAL error that should stop program execution.

    Common causes:
        - config.yaml not found or has invalid YAML syntax
        - NOTION_KEY / NOTION_DB_ID not set
        - A playlist entry with an unknown source or type
        - Invalid sync mode or pacing delay

    Example:
        raise ConfigError(
            "Required environment variable NOTION_KEY is not set",
            details={'variable': 'NOTION_KEY'}
        )
    """
    pass


class SourceError(MusicSoupError):
    """
    Raised when there's an issue with a streaming catalog API.

    Can be fatal for one playlist (auth failure, playlist not found) or
    simply logged (metadata lookup that has a fallback).

    Attributes:
        source: Display name of the source ("Spotify", "Apple Music"), if known.
        is_auth_error: True if this is an authentication error.
        is_rate_limit: True if retries were exhausted on rate limiting.

    Example:
        raise SourceError(
            "Failed to fetch playlist: playlist is private",
            details={'playlist_id': playlist_id, 'status_code': 403},
            source="Spotify"
        )
    """

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        source: str | None = None,
        is_auth_error: bool = False,
        is_rate_limit: bool = False
    ) -> None:
        """
        Initialize source error with additional flags.

        Args:
            message: Human-readable error description.
            details: Optional dictionary with additional context.
            source: Display name of the failing source.
            is_auth_error: Set to True if this is an authentication failure.
            is_rate_limit: Set to True if the request kept being rate limited.
        """
        super().__init__(message, details)
        self.source = source
        self.is_auth_error = is_auth_error
        self.is_rate_limit = is_rate_limit


class SourceUnavailableError(SourceError):
    """
    Raised when a source fails its health check before a playlist sync.

    Aborts the sync of that one playlist; other playlists still run.
    """
    pass


class NormalizationError(MusicSoupError):
    """
    Raised when a raw source record cannot be turned into a Track.

    Only a missing title or missing source id triggers this. Any other
    missing field is a metadata gap and is logged, not raised.

    Example:
        raise NormalizationError(
            "Spotify track has no name",
            details={'source_id': '4cOdK2wGLETKBW3PvgPWqT'}
        )
    """
    pass


class SinkError(MusicSoupError):
    """
    Raised when there's an issue with the Notion database API.

    Query failures during identity resolution are swallowed by the resolver;
    write failures propagate to the driver or reconciler, which count them
    as a single-item error.

    Attributes:
        status_code: HTTP status returned by Notion, if any.

    Example:
        raise SinkError(
            "Notion API error: validation_error",
            details={'page_id': page_id, 'body': body},
            status_code=400
        )
    """

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        status_code: int | None = None
    ) -> None:
        super().__init__(message, details)
        self.status_code = status_code
