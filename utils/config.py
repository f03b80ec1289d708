from __future__ import annotations

import os
import sys
from dataclasses import dataclass

from dotenv import load_dotenv
from loguru import logger


class ConfigError(Exception):
    pass


# Transport ceiling for a single multicast call
MAX_BATCH_SIZE = 500


def env_get(key: str, *aliases: str, default: str | None = None) -> str | None:
    """Return the first non-empty value from env among `key` and `aliases`."""

    for k in (key, *aliases):
        v = os.getenv(k)
        if v is not None and str(v).strip() != "":
            return v
    return default


def env_get_bool(key: str, *aliases: str, default: bool | None = None) -> bool | None:
    """Parse a boolean value from env for `key`/`aliases` if present."""

    v = env_get(key, *aliases)
    if v is None:
        return default
    return str(v).strip().lower() in {"1", "true", "yes", "y", "on"}


def env_get_int(key: str, *aliases: str, default: int) -> int:
    v = env_get(key, *aliases)
    if v is None:
        return default
    try:
        return int(str(v).strip())
    except ValueError:
        logger.warning("Invalid integer for {}: {!r}; using {}", key, v, default)
        return default


@dataclass
class AppConfig:
    # Service-account JSON; Application Default Credentials when unset
    firebase_credentials: str | None = None
    firebase_project_id: str | None = None
    push_timeout: int = 25
    batch_size: int = MAX_BATCH_SIZE
    dry_run: bool = False
    # Storage: SQLAlchemy when set, JSON file otherwise
    database_url: str | None = None
    data_path: str = "var/timetable.json"
    token_field: str = "tokenId"
    # Canonical section form is "<prefix><label>"; empty keeps the bare label
    section_prefix: str = ""
    trigger_event_path: str = "var/event.json"
    log_level: str = "INFO"
    log_file: str | None = None
    log_color: bool | None = None


def load_env_config(env_path: str) -> AppConfig:
    """Load configuration from .env-style file and environment.

    A configured credentials file must exist unless DRY_RUN is on.
    """

    env_file_env = os.getenv("ENV_FILE")
    candidates = [p for p in (env_file_env, env_path) if p]
    loaded = False
    for p in candidates:
        if os.path.isfile(p) and load_dotenv(p):
            logger.debug("Loaded config file: {}", p)
            loaded = True
            break
    if not loaded:
        load_dotenv(env_path)

    dry_run = bool(env_get_bool("DRY_RUN", default=False))
    firebase_credentials = env_get("FIREBASE_CREDENTIALS", "GOOGLE_APPLICATION_CREDENTIALS")
    if firebase_credentials and not dry_run and not os.path.isfile(firebase_credentials):
        msg = f"Firebase credentials file not found: {firebase_credentials}"
        logger.error(msg)
        raise ConfigError(msg)

    batch_size = env_get_int("PUSH_BATCH_SIZE", default=MAX_BATCH_SIZE)
    if batch_size < 1 or batch_size > MAX_BATCH_SIZE:
        logger.warning(
            "PUSH_BATCH_SIZE={} outside 1..{}; clamping", batch_size, MAX_BATCH_SIZE
        )
        batch_size = min(max(batch_size, 1), MAX_BATCH_SIZE)

    push_timeout = env_get_int("PUSH_TIMEOUT", default=25)
    if push_timeout < 1:
        raise ConfigError("PUSH_TIMEOUT must be at least 1 second")

    return AppConfig(
        firebase_credentials=firebase_credentials,
        firebase_project_id=env_get("FIREBASE_PROJECT_ID", "GOOGLE_CLOUD_PROJECT"),
        push_timeout=push_timeout,
        batch_size=batch_size,
        dry_run=dry_run,
        database_url=env_get("DATABASE_URL"),
        data_path=env_get("DATA_PATH", default="var/timetable.json") or "var/timetable.json",
        token_field=env_get("TOKEN_FIELD", default="tokenId") or "tokenId",
        # Prefix may legitimately end in a space, so read it raw
        section_prefix=os.getenv("SECTION_PREFIX", ""),
        trigger_event_path=env_get("TRIGGER_EVENT_PATH", default="var/event.json")
        or "var/event.json",
        log_level=(env_get("LOG_LEVEL", default="INFO") or "INFO").upper(),
        log_file=env_get("LOG_FILE"),
        log_color=env_get_bool("LOG_COLOR", default=None),
    )


def setup_logging(
    level: str = "INFO", log_file: str | None = None, color: bool | None = None
) -> None:
    """Configure loguru sinks for console and optional file."""

    logger.remove()
    fmt_color = (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>"
    )
    fmt_plain = (
        "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}"
    )
    logger.add(
        sys.stderr,
        level=level,
        colorize=(True if color is None else bool(color)),
        backtrace=True,
        diagnose=False,
        format=fmt_color if (color is None or color) else fmt_plain,
    )
    if log_file:
        rotation = env_get("LOG_ROTATION", default="10 MB") or "10 MB"
        retention = env_get("LOG_RETENTION", default="1 day") or "1 day"
        compression = env_get("LOG_COMPRESSION", default="zip") or "zip"
        try:
            d = os.path.dirname(log_file)
            if d and not os.path.exists(d):
                os.makedirs(d, exist_ok=True)
        except OSError as e:
            logger.warning("Could not create log directory for '{}': {}", log_file, e)
        logger.add(
            log_file,
            level=level,
            rotation=rotation,
            retention=retention,
            compression=compression,
            enqueue=True,
            backtrace=True,
            diagnose=False,
            format=fmt_plain,
        )
