"""Zero-CLI entrypoint for the timetable update handler.

Reads configuration from `.env.config` and environment variables, then runs
one trigger event (logging setup → stores → dispatcher → handler).
"""

from __future__ import annotations

import json
import sys
from collections.abc import Mapping
from typing import Any

from loguru import logger

from notify import (
    DispatchOutcome,
    DryRunDispatcher,
    FirebaseDispatcher,
    OutcomeStatus,
    TimetableUpdateHandler,
    get_store,
    init_firebase_app,
)
from notify.core import BasePushDispatcher
from utils.config import AppConfig, ConfigError, load_env_config, setup_logging


def build_dispatcher(cfg: AppConfig) -> BasePushDispatcher:
    if cfg.dry_run:
        logger.info("Dry-run: push notifications will only be logged")
        return DryRunDispatcher()
    app = init_firebase_app(
        cfg.firebase_credentials, project_id=cfg.firebase_project_id, timeout=cfg.push_timeout
    )
    return FirebaseDispatcher(app)


def build_handler(cfg: AppConfig) -> TimetableUpdateHandler:
    store = get_store(cfg.database_url, cfg.data_path, token_field=cfg.token_field)
    return TimetableUpdateHandler(
        store,
        store,
        build_dispatcher(cfg),
        batch_size=cfg.batch_size,
        token_field=cfg.token_field,
        section_prefix=cfg.section_prefix,
    )


def on_timetable_update(event: Mapping[str, Any], cfg: AppConfig | None = None) -> DispatchOutcome:
    """Host-facing handler: one call per day-document write.

    Setup failures (config, store, push client) end as a FAILED outcome too.
    """

    try:
        if cfg is None:
            cfg = load_env_config(".env.config")
        handler = build_handler(cfg)
    except Exception as e:
        logger.exception("Cannot set up timetable update handler: {}", e)
        outcome = DispatchOutcome(status=OutcomeStatus.FAILED, error=str(e) or type(e).__name__)
    else:
        outcome = handler.handle(event)
    logger.info(
        "Timetable update finished: {}{}",
        outcome.status.value,
        f" ({outcome.reason.value})" if outcome.reason else "",
    )
    return outcome


def run(env_path: str = ".env.config") -> None:
    try:
        cfg: AppConfig = load_env_config(env_path)
    except ConfigError as ce:
        logger.error("Configuration error: {}", ce)
        sys.exit(2)

    setup_logging(level=cfg.log_level, log_file=cfg.log_file, color=cfg.log_color)
    logger.debug(
        "Startup: dry_run={}, store={}, batch_size={}",
        cfg.dry_run,
        "sqlalchemy" if cfg.database_url else cfg.data_path,
        cfg.batch_size,
    )

    try:
        with open(cfg.trigger_event_path, encoding="utf-8") as f:
            event = json.load(f)
    except (OSError, ValueError) as e:
        logger.error("Cannot read trigger event '{}': {}", cfg.trigger_event_path, e)
        sys.exit(1)
    if not isinstance(event, dict):
        logger.error("Trigger event must be a JSON object: {}", cfg.trigger_event_path)
        sys.exit(1)

    on_timetable_update(event, cfg)


if __name__ == "__main__":
    run(".env.config")
