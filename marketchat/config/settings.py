"""Application configuration settings"""

import os

from dotenv import load_dotenv

load_dotenv()


class Config:
    # Environment
    APP_ENV = os.getenv("APP_ENV", "development")
    IS_PRODUCTION = APP_ENV.lower() == "production"

    # Database
    MONGODB_URL = os.getenv("MONGODB_URL", "mongodb://localhost:27017")
    MONGODB_DB = os.getenv("MONGODB_DB", "marketchat")

    # Realtime
    REDIS_URL = os.getenv("REDIS_URL", "")

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE = os.getenv("LOG_FILE") or None
    LOG_FORMAT = os.getenv(
        "LOG_FORMAT", "%(asctime)s %(levelname)s [%(name)s] %(message)s"
    )
