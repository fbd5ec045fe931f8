import os

from config.config import *  # noqa: F401,F403
from config.config import env_flag

DEBUG = True

AUTO_INIT_DB = env_flag("AUTO_INIT_DB", True)

LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG").upper()
