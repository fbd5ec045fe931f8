from __future__ import annotations

import atexit
import importlib
import logging
from pathlib import Path

from dotenv import load_dotenv
from flask import Flask

from config import get_settings_module

from .biometric.controller import register as register_biometric
from .container import build_container
from .core.constants import (
    DEFAULT_GATEWAY_TIMEOUT_SECONDS,
    DEFAULT_PROCESS_CRON,
    DEFAULT_SYNC_CRON,
    DEFAULT_SYNC_DAYS_BACK,
    DEFAULT_TIMEZONE,
)
from .database.bootstrap import apply_schema, list_tables
from .gateway.client import GatewaySettings
from .scheduler.service import SchedulerSettings

logger = logging.getLogger(__name__)


def gateway_settings_from(settings) -> GatewaySettings:
    essl = dict(getattr(settings, "ESSL_ADMS", {}) or {})
    return GatewaySettings(
        base_url=str(essl.get("api_url") or ""),
        token=str(essl.get("token") or ""),
        api_key=str(essl.get("api_key") or ""),
        timeout=float(essl.get("timeout", DEFAULT_GATEWAY_TIMEOUT_SECONDS)),
        timezone=str(getattr(settings, "BIOMETRIC_TIMEZONE", DEFAULT_TIMEZONE)),
    )


def scheduler_settings_from(settings) -> SchedulerSettings:
    return SchedulerSettings(
        enabled=bool(getattr(settings, "BIOMETRIC_SCHEDULER_ENABLED", True)),
        sync_cron=str(getattr(settings, "BIOMETRIC_SYNC_CRON", DEFAULT_SYNC_CRON)),
        process_cron=str(getattr(settings, "BIOMETRIC_PROCESS_CRON", DEFAULT_PROCESS_CRON)),
        timezone=str(getattr(settings, "BIOMETRIC_TIMEZONE", DEFAULT_TIMEZONE)),
        sync_days_back=int(getattr(settings, "BIOMETRIC_SYNC_DAYS_BACK", DEFAULT_SYNC_DAYS_BACK)),
    )


def create_app() -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    db_config = getattr(settings, "DB_CONFIG")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))

    logging.basicConfig(
        level=getattr(settings, "LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logger.info(
        "settings=%s db=%s@%s:%s/%s",
        settings_module,
        db_config.get("user"),
        db_config.get("host"),
        db_config.get("port", 3306),
        db_config.get("database"),
    )

    schema_path = Path(__file__).resolve().parents[3] / "database" / "schema.sql"
    if bool(getattr(settings, "AUTO_INIT_DB", False)):
        apply_schema(db_config, schema_path=schema_path)
        logger.info("schema ready (tables=%d)", len(list_tables(db_config)))

    container = build_container(
        db_config=db_config,
        gateway_settings=gateway_settings_from(settings),
        scheduler_settings=scheduler_settings_from(settings),
        schema_path=schema_path,
    )
    app.extensions["biometric_container"] = container

    register_biometric(app, container)

    if not container.gateway.credentials_configured():
        logger.warning("eSSL ADMS credentials are not configured; device sync is disabled until they are set")

    if bool(getattr(settings, "SCHEDULER_AUTOSTART", True)):
        container.scheduler.start()
        atexit.register(container.scheduler.shutdown)

    return app
