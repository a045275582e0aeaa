"""
Configuration management for music-soup.

This module handles loading, validating, and providing access to the
application configuration. Settings come from two places:

    - config.yaml: non-secret settings (playlists, sync mode, logging)
    - Environment variables (optionally from a .env file): credentials

Environment variables always win over values in config.yaml, so secrets
never have to be written to the YAML file.

Configuration File Location:
    config.yaml is looked up in the current working directory unless an
    explicit path is given. Without an explicit path the file is optional
    and everything may come from the environment.

Example config.yaml:
    notion:
      database_id: "0123456789abcdef0123456789abcdef"

    spotify:
      client_id: "your_client_id_here"

    apple_music:
      storefront: "us"

    playlists:
      - source: spotify
        playlist: "https://open.spotify.com/playlist/37i9dQZF1DXcBWIGoYBM5M"
        type: Source
      - source: apple_music
        playlist: "pl.u-76oNlkVsvDMW1L"
        type: Score

    sync:
      mode: update          # update | preserve
      dry_run: false
      pacing_delay: 0.1     # seconds between tracks
      match_strategy: substring   # substring | exact

    cleanup:
      enabled: true
      externally_managed_sources: ["Manual", "Other"]

    logging:
      directory: "./logs"
      level: INFO

Environment Variables:
    NOTION_KEY, NOTION_DB_ID
    SPOTIFY_CLIENT_ID, SPOTIFY_CLIENT_SECRET, SPOTIFY_REFRESH_TOKEN
    SPOTIFY_SOURCE_PLAYLIST_ID, SPOTIFY_TEMP_PLAYLIST_ID
    APPLE_MUSIC_TEAM_ID, APPLE_MUSIC_KEY_ID, APPLE_MUSIC_PRIVATE_KEY,
    APPLE_MUSIC_USER_TOKEN, APPLE_MUSIC_STOREFRONT
    APPLE_MUSIC_SOURCE_PLAYLIST_ID, APPLE_MUSIC_TEMP_PLAYLIST_ID
    DRY_RUN, LOG_LEVEL
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from music_soup.core.exceptions import ConfigError
from music_soup.core.logger import get_logger
from music_soup.sources.models import PlaylistRef, PlaylistType, Source
from music_soup.sync.models import UpsertMode
from music_soup.utils import extract_playlist_id


# Default configuration file name (looked up in the current working directory)
CONFIG_FILENAME = "config.yaml"

DEFAULT_NOTION_VERSION = "2022-06-28"
DEFAULT_STOREFRONT = "us"
DEFAULT_PACING_DELAY = 0.1
DEFAULT_EXTERNALLY_MANAGED_SOURCES = ("Manual", "Other")
MATCH_STRATEGIES = ("substring", "exact")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# (environment variable, source, playlist type) for the fixed playlist slots
ENV_PLAYLISTS = (
    ("SPOTIFY_SOURCE_PLAYLIST_ID", Source.SPOTIFY, PlaylistType.SOURCE),
    ("SPOTIFY_TEMP_PLAYLIST_ID", Source.SPOTIFY, PlaylistType.SCORE),
    ("APPLE_MUSIC_SOURCE_PLAYLIST_ID", Source.APPLE_MUSIC, PlaylistType.SOURCE),
    ("APPLE_MUSIC_TEMP_PLAYLIST_ID", Source.APPLE_MUSIC, PlaylistType.SCORE),
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class NotionConfig:
    """
    Notion integration settings.

    Attributes:
        api_key: Internal integration secret ("secret_..." / "ntn_...").
        database_id: Id of the database holding one page per track.
        api_version: Value of the Notion-Version header.
    """
    api_key: str
    database_id: str
    api_version: str = DEFAULT_NOTION_VERSION


@dataclass(frozen=True)
class SpotifyConfig:
    """
    Spotify API credentials.

    The refresh token is obtained once, outside this tool, and is exchanged
    for short-lived access tokens on every run.
    """
    client_id: str
    client_secret: str
    refresh_token: str


@dataclass(frozen=True)
class AppleMusicConfig:
    """
    Apple Music API credentials.

    Attributes:
        team_id: Apple developer team id (JWT issuer).
        key_id: MusicKit private key id (JWT "kid" header).
        private_key: PEM-encoded ES256 private key.
        user_token: Music-User-Token, needed for library playlists.
        storefront: Catalog storefront, e.g. "us".
    """
    team_id: str
    key_id: str
    private_key: str
    user_token: str
    storefront: str = DEFAULT_STOREFRONT


@dataclass(frozen=True)
class SyncConfig:
    """
    Sync behavior.

    Attributes:
        mode: What happens to tracks that already have a Record.
        dry_run: Compute every decision but write nothing to Notion.
        pacing_delay: Seconds to wait after each track upsert.
        match_strategy: "substring" (default) or "exact" ISRC matching.
    """
    mode: UpsertMode = UpsertMode.UPDATE
    dry_run: bool = False
    pacing_delay: float = DEFAULT_PACING_DELAY
    match_strategy: str = "substring"


@dataclass(frozen=True)
class CleanupConfig:
    """
    Cleanup behavior.

    Attributes:
        enabled: Run the cleanup pass after a full sync.
        externally_managed_sources: Values of the Record "Source" property
            that this tool never marks as removed.
    """
    enabled: bool = True
    externally_managed_sources: tuple[str, ...] = DEFAULT_EXTERNALLY_MANAGED_SOURCES


@dataclass(frozen=True)
class LoggingConfig:
    """Log file directory and console level."""
    directory: Path
    level: str = "INFO"


@dataclass(frozen=True)
class Config:
    """
    Complete application configuration.

    Created by load_config() and treated as immutable.

    Attributes:
        notion: Notion credentials.
        spotify: Spotify credentials, or None when not configured.
        apple_music: Apple Music credentials, or None when incomplete.
        playlists: Every playlist to sync, in configuration order.
        sync: Sync behavior.
        cleanup: Cleanup behavior.
        logging: Logging settings.

    Example:
        config = load_config()
        for playlist in config.playlists:
            print(playlist.source.value, playlist.playlist_id)
    """
    notion: NotionConfig
    spotify: SpotifyConfig | None
    apple_music: AppleMusicConfig | None
    playlists: tuple[PlaylistRef, ...]
    sync: SyncConfig
    cleanup: CleanupConfig
    logging: LoggingConfig

    def playlists_for(self, source: Source) -> tuple[PlaylistRef, ...]:
        """Return the configured playlists of one source."""
        return tuple(p for p in self.playlists if p.source is source)


def load_config(
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None
) -> Config:
    """
    Load and validate configuration from config.yaml and the environment.

    Args:
        config_path: Optional explicit path to config file.
                     If None, config.yaml in the current working directory
                     is used when it exists.
        environ: Environment mapping to read credentials from.
                 If None, os.environ is used after loading a .env file.

    Returns:
        Config: A frozen dataclass containing all configuration values.

    Raises:
        ConfigError: If an explicit config file is missing, the YAML is
                     invalid, a required credential is missing, or a value
                     is out of range.

    Behavior:
        1. Load .env into the process environment (when environ is None)
        2. Read and parse config.yaml if present
        3. Merge credentials, environment first
        4. Parse playlists from YAML and from the fixed env variables
        5. Drop Apple Music playlists if Apple Music is not configured
        6. Validate sync, cleanup and logging sections with defaults

    Example:
        try:
            config = load_config()
        except ConfigError as e:
            print(f"Configuration error: {e.message}")
            sys.exit(1)
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    raw_config = _read_config_file(config_path)

    notion_config = _parse_notion_config(_section(raw_config, "notion"), environ)
    spotify_config = _parse_spotify_config(_section(raw_config, "spotify"), environ)
    apple_config = _parse_apple_music_config(_section(raw_config, "apple_music"), environ)

    playlists = _parse_playlists(raw_config.get("playlists"), environ)
    playlists = _filter_playlists(playlists, spotify_config, apple_config)

    return Config(
        notion=notion_config,
        spotify=spotify_config,
        apple_music=apple_config,
        playlists=playlists,
        sync=_parse_sync_config(_section(raw_config, "sync"), environ),
        cleanup=_parse_cleanup_config(_section(raw_config, "cleanup")),
        logging=_parse_logging_config(_section(raw_config, "logging"), environ),
    )


# =============================================================================
# File handling
# =============================================================================

def _read_config_file(config_path: Path | None) -> dict[str, Any]:
    """
    Read config.yaml into a dictionary.

    A missing implicit config.yaml yields an empty dictionary; a missing
    explicit path is an error.
    """
    explicit = config_path is not None
    if config_path is None:
        config_path = Path.cwd() / CONFIG_FILENAME

    if not config_path.exists():
        if explicit:
            raise ConfigError(
                f"Configuration file not found: {config_path}",
                details={"file_path": str(config_path)}
            )
        return {}

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            content = f.read()
    except OSError as e:
        raise ConfigError(
            f"Failed to read configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    try:
        raw_config = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML syntax in configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    if raw_config is None:
        return {}

    if not isinstance(raw_config, dict):
        raise ConfigError(
            "Configuration file must contain a YAML dictionary",
            details={"file_path": str(config_path)}
        )

    return raw_config


def _section(raw_config: dict[str, Any], name: str) -> dict[str, Any]:
    """Return a section of the raw config, validating that it is a dictionary."""
    section = raw_config.get(name)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ConfigError(
            f"Section '{name}' must be a dictionary",
            details={"section": name}
        )
    return section


def _get_value(
    section: dict[str, Any],
    key: str,
    environ: Mapping[str, str],
    env_var: str,
    field_name: str
) -> str:
    """
    Return a string setting, preferring the environment over config.yaml.

    Returns an empty string when the setting is absent in both places.
    """
    env_value = environ.get(env_var, "")
    if env_value.strip():
        return env_value.strip()

    value = section.get(key)
    if value is None:
        return ""
    if not isinstance(value, (str, int)):
        raise ConfigError(
            f"'{field_name}' must be a string",
            details={"field": field_name}
        )
    return str(value).strip()


def _parse_bool(value: Any, field_name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "1", "yes"):
        return True
    if isinstance(value, str) and value.strip().lower() in ("false", "0", "no", ""):
        return False
    raise ConfigError(
        f"'{field_name}' must be true or false",
        details={"field": field_name, "value": value}
    )


# =============================================================================
# Credentials
# =============================================================================

def _parse_notion_config(
    section: dict[str, Any],
    environ: Mapping[str, str]
) -> NotionConfig:
    """
    Parse Notion credentials.

    Raises:
        ConfigError: If the api key or database id is missing.
    """
    api_key = _get_value(section, "api_key", environ, "NOTION_KEY", "notion.api_key")
    database_id = _get_value(section, "database_id", environ, "NOTION_DB_ID", "notion.database_id")

    if not api_key:
        raise ConfigError(
            "Required environment variable NOTION_KEY is not set",
            details={"variable": "NOTION_KEY"}
        )
    if not database_id:
        raise ConfigError(
            "Required environment variable NOTION_DB_ID is not set",
            details={"variable": "NOTION_DB_ID"}
        )

    api_version = section.get("api_version") or DEFAULT_NOTION_VERSION
    return NotionConfig(
        api_key=api_key,
        database_id=database_id,
        api_version=str(api_version)
    )


def _parse_spotify_config(
    section: dict[str, Any],
    environ: Mapping[str, str]
) -> SpotifyConfig | None:
    """
    Parse Spotify credentials.

    Returns None when none of the three values is set. A partial set is an
    error, since it can only be a typo.
    """
    values = {
        "client_id": _get_value(section, "client_id", environ, "SPOTIFY_CLIENT_ID", "spotify.client_id"),
        "client_secret": _get_value(section, "client_secret", environ, "SPOTIFY_CLIENT_SECRET", "spotify.client_secret"),
        "refresh_token": _get_value(section, "refresh_token", environ, "SPOTIFY_REFRESH_TOKEN", "spotify.refresh_token"),
    }

    if not any(values.values()):
        return None

    missing = [name for name, value in values.items() if not value]
    if missing:
        raise ConfigError(
            f"Incomplete Spotify credentials, missing: {', '.join(missing)}",
            details={"missing_fields": [f"spotify.{name}" for name in missing]}
        )

    return SpotifyConfig(**values)


def _parse_apple_music_config(
    section: dict[str, Any],
    environ: Mapping[str, str]
) -> AppleMusicConfig | None:
    """
    Parse Apple Music credentials.

    Returns None (with a warning when some but not all values are set)
    if any of team id, key id, private key or user token is missing.
    Playlists cannot be read without the user token.
    """
    values = {
        "team_id": _get_value(section, "team_id", environ, "APPLE_MUSIC_TEAM_ID", "apple_music.team_id"),
        "key_id": _get_value(section, "key_id", environ, "APPLE_MUSIC_KEY_ID", "apple_music.key_id"),
        "private_key": _get_value(section, "private_key", environ, "APPLE_MUSIC_PRIVATE_KEY", "apple_music.private_key"),
        "user_token": _get_value(section, "user_token", environ, "APPLE_MUSIC_USER_TOKEN", "apple_music.user_token"),
    }
    storefront = _get_value(
        section, "storefront", environ, "APPLE_MUSIC_STOREFRONT", "apple_music.storefront"
    ) or DEFAULT_STOREFRONT

    missing = [name for name, value in values.items() if not value]
    if missing:
        if len(missing) < len(values):
            logger.warning(
                f"Apple Music is not fully configured (missing: {', '.join(missing)}); "
                "Apple Music playlists will be skipped"
            )
        return None

    values["private_key"] = normalize_private_key(values["private_key"])
    return AppleMusicConfig(storefront=storefront, **values)


def normalize_private_key(key: str) -> str:
    """
    Turn escaped newlines into real ones.

    Keys pasted into a single-line environment variable carry literal
    "\\n" sequences. Keys that already contain real newlines are returned
    unchanged.
    """
    if "\n" in key:
        return key
    return key.replace("\\n", "\n")


# =============================================================================
# Playlists
# =============================================================================

def _parse_playlists(
    raw_playlists: Any,
    environ: Mapping[str, str]
) -> tuple[PlaylistRef, ...]:
    """
    Parse the playlists list from config.yaml plus the fixed env slots.

    Duplicates (same source and id) are kept only once, first wins.

    Raises:
        ConfigError: If an entry has an unknown source or type, or an
                     unparseable playlist URL.
    """
    playlists: list[PlaylistRef] = []

    if raw_playlists is not None:
        if not isinstance(raw_playlists, list):
            raise ConfigError(
                "'playlists' must be a list",
                details={"field": "playlists"}
            )
        for index, entry in enumerate(raw_playlists):
            playlists.append(_parse_playlist_entry(entry, index))

    for env_var, source, playlist_type in ENV_PLAYLISTS:
        value = environ.get(env_var, "").strip()
        if not value:
            continue
        try:
            playlist_id = extract_playlist_id(source, value)
        except ValueError as e:
            raise ConfigError(
                str(e),
                details={"variable": env_var}
            ) from e
        playlists.append(PlaylistRef(source, playlist_id, playlist_type))

    unique: list[PlaylistRef] = []
    seen: set[tuple[Source, str]] = set()
    for playlist in playlists:
        key = (playlist.source, playlist.playlist_id)
        if key in seen:
            continue
        seen.add(key)
        unique.append(playlist)

    return tuple(unique)


def _parse_playlist_entry(entry: Any, index: int) -> PlaylistRef:
    """Parse one item of the playlists list."""
    field_name = f"playlists[{index}]"

    if not isinstance(entry, dict):
        raise ConfigError(
            f"'{field_name}' must be a dictionary with 'source' and 'playlist'",
            details={"field": field_name}
        )

    try:
        source = Source.parse(str(entry.get("source", "")))
    except ValueError as e:
        raise ConfigError(
            f"'{field_name}.source' is invalid: {e}",
            details={"field": f"{field_name}.source", "value": entry.get("source")}
        ) from e

    raw_id = entry.get("playlist") or entry.get("id")
    if not isinstance(raw_id, str) or not raw_id.strip():
        raise ConfigError(
            f"'{field_name}.playlist' must be a non-empty playlist id or URL",
            details={"field": f"{field_name}.playlist"}
        )

    try:
        playlist_id = extract_playlist_id(source, raw_id)
    except ValueError as e:
        raise ConfigError(
            f"'{field_name}.playlist' is invalid: {e}",
            details={"field": f"{field_name}.playlist", "value": raw_id}
        ) from e

    try:
        playlist_type = PlaylistType.parse(str(entry.get("type", PlaylistType.SOURCE.value)))
    except ValueError as e:
        raise ConfigError(
            f"'{field_name}.type' is invalid: {e}",
            details={"field": f"{field_name}.type", "value": entry.get("type")}
        ) from e

    return PlaylistRef(source=source, playlist_id=playlist_id, playlist_type=playlist_type)


def _filter_playlists(
    playlists: tuple[PlaylistRef, ...],
    spotify_config: SpotifyConfig | None,
    apple_config: AppleMusicConfig | None
) -> tuple[PlaylistRef, ...]:
    """
    Drop playlists whose source cannot be used.

    Raises:
        ConfigError: If a Spotify playlist is configured without Spotify
                     credentials.
    """
    result = []
    for playlist in playlists:
        if playlist.source is Source.SPOTIFY and spotify_config is None:
            raise ConfigError(
                "Spotify playlists are configured but Spotify credentials are not set",
                details={"playlist_id": playlist.playlist_id, "variable": "SPOTIFY_CLIENT_ID"}
            )
        if playlist.source is Source.APPLE_MUSIC and apple_config is None:
            logger.warning(f"Skipping Apple Music playlist {playlist.playlist_id}: not configured")
            continue
        result.append(playlist)
    return tuple(result)


# =============================================================================
# Behavior sections
# =============================================================================

def _parse_sync_config(
    section: dict[str, Any],
    environ: Mapping[str, str]
) -> SyncConfig:
    """
    Parse and validate the sync section, applying defaults.

    DRY_RUN in the environment overrides sync.dry_run.
    """
    raw_mode = section.get("mode", UpsertMode.UPDATE.value)
    try:
        mode = UpsertMode(str(raw_mode).strip().lower())
    except ValueError as e:
        raise ConfigError(
            f"'sync.mode' must be one of: {', '.join(m.value for m in UpsertMode)}",
            details={"field": "sync.mode", "value": raw_mode}
        ) from e

    raw_dry_run = environ.get("DRY_RUN") or section.get("dry_run", False)
    dry_run = _parse_bool(raw_dry_run, "sync.dry_run")

    pacing_delay = section.get("pacing_delay", DEFAULT_PACING_DELAY)
    if isinstance(pacing_delay, bool) or not isinstance(pacing_delay, (int, float)) or pacing_delay < 0:
        raise ConfigError(
            "'sync.pacing_delay' must be a non-negative number",
            details={"field": "sync.pacing_delay", "value": pacing_delay}
        )

    match_strategy = str(section.get("match_strategy", "substring")).strip().lower()
    if match_strategy not in MATCH_STRATEGIES:
        raise ConfigError(
            f"'sync.match_strategy' must be one of: {', '.join(MATCH_STRATEGIES)}",
            details={"field": "sync.match_strategy", "value": match_strategy}
        )

    return SyncConfig(
        mode=mode,
        dry_run=dry_run,
        pacing_delay=float(pacing_delay),
        match_strategy=match_strategy
    )


def _parse_cleanup_config(section: dict[str, Any]) -> CleanupConfig:
    """Parse and validate the cleanup section, applying defaults."""
    enabled = _parse_bool(section.get("enabled", True), "cleanup.enabled")

    raw_sources = section.get("externally_managed_sources")
    if raw_sources is None:
        return CleanupConfig(enabled=enabled)

    if not isinstance(raw_sources, list) or not all(isinstance(s, str) for s in raw_sources):
        raise ConfigError(
            "'cleanup.externally_managed_sources' must be a list of strings",
            details={"field": "cleanup.externally_managed_sources"}
        )

    return CleanupConfig(
        enabled=enabled,
        externally_managed_sources=tuple(s.strip() for s in raw_sources if s.strip())
    )


def _parse_logging_config(
    section: dict[str, Any],
    environ: Mapping[str, str]
) -> LoggingConfig:
    """
    Parse the logging section.

    Expands ~ in the directory. Does NOT create the directory (that
    happens in setup_logging()).
    """
    directory = section.get("directory", "logs")
    if not isinstance(directory, str) or not directory.strip():
        raise ConfigError(
            "'logging.directory' must be a non-empty string",
            details={"field": "logging.directory"}
        )

    level = (environ.get("LOG_LEVEL") or section.get("level") or "INFO")
    level = str(level).strip().upper()
    if level not in LOG_LEVELS:
        raise ConfigError(
            f"'logging.level' must be one of: {', '.join(LOG_LEVELS)}",
            details={"field": "logging.level", "value": level}
        )

    return LoggingConfig(
        directory=Path(directory.strip()).expanduser().resolve(),
        level=level
    )
