"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

DEFAULT_SYNC_DAYS_BACK = 7
DEFAULT_RECONCILE_DAYS = 7
DEFAULT_GATEWAY_TIMEOUT_SECONDS = 30
DEFAULT_GATEWAY_URL = "https://api.essl.cloud/v1"

DEFAULT_SYNC_CRON = "30 0 * * *"
DEFAULT_PROCESS_CRON = "0 1 * * *"
DEFAULT_TIMEZONE = "Asia/Kolkata"

VENDOR_DATE_FORMAT = "%Y-%m-%d"
CREDENTIAL_PLACEHOLDER = "your_"
