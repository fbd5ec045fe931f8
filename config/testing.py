from config.config import *  # noqa: F401,F403

SECRET_KEY = "test-secret"

DEBUG = False
TESTING = True

# No background jobs and no schema bootstrap under test
BIOMETRIC_SCHEDULER_ENABLED = False
SCHEDULER_AUTOSTART = False
AUTO_INIT_DB = False

# Placeholders keep the gateway from reaching a real account
ESSL_ADMS = {
    "api_url": "https://adms.example.test/v1",
    "token": "your_token_here",
    "api_key": "",
    "timeout": 5.0,
}
