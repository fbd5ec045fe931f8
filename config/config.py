"""Settings shared by every environment.

Each environment module does ``from config.config import *`` and overrides
what differs.
"""
import os


def env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "hrms"),
}

# eSSL ADMS cloud API
ESSL_ADMS = {
    "api_url": os.getenv("ESSL_ADMS_API_URL", "https://api.essl.cloud/v1"),
    "token": os.getenv("ESSL_ADMS_TOKEN", ""),
    "api_key": os.getenv("ESSL_ADMS_API_KEY", ""),
    "timeout": float(os.getenv("ESSL_ADMS_TIMEOUT", "30")),
}

BIOMETRIC_SCHEDULER_ENABLED = env_flag("BIOMETRIC_SCHEDULER_ENABLED", True)
BIOMETRIC_SYNC_CRON = os.getenv("BIOMETRIC_SYNC_CRON", "30 0 * * *")
BIOMETRIC_PROCESS_CRON = os.getenv("BIOMETRIC_PROCESS_CRON", "0 1 * * *")
BIOMETRIC_SYNC_DAYS_BACK = int(os.getenv("BIOMETRIC_SYNC_DAYS_BACK", "7"))
BIOMETRIC_TIMEZONE = os.getenv("BIOMETRIC_TIMEZONE", "Asia/Kolkata")

SCHEDULER_AUTOSTART = env_flag("SCHEDULER_AUTOSTART", True)

# If enabled, the app applies database/schema.sql on startup (CREATE IF NOT EXISTS)
AUTO_INIT_DB = env_flag("AUTO_INIT_DB", False)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DEBUG = False
TESTING = False
