import os
from pathlib import Path


BASE_DIR = Path(__file__).resolve().parent.parent


class ConfigError(RuntimeError):
    pass


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY")
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", f"sqlite:///{BASE_DIR / 'smartmarks.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SCHEDULER_ENABLED = os.environ.get("SCHEDULER_ENABLED", "1") == "1"
    CHANGE_RETENTION_HOURS = int(os.environ.get("CHANGE_RETENTION_HOURS", "72"))
    CHANGE_PRUNE_INTERVAL_MINUTES = int(
        os.environ.get("CHANGE_PRUNE_INTERVAL_MINUTES", "60")
    )
    CHANGE_FEED_MAX_WAIT_SECONDS = float(
        os.environ.get("CHANGE_FEED_MAX_WAIT_SECONDS", "25")
    )
    CHANGE_FEED_POLL_INTERVAL = float(os.environ.get("CHANGE_FEED_POLL_INTERVAL", "0.5"))
    CHANGE_FEED_PAGE_SIZE = int(os.environ.get("CHANGE_FEED_PAGE_SIZE", "200"))
    AUTH_CALLBACK_MAX_AGE_SECONDS = int(
        os.environ.get("AUTH_CALLBACK_MAX_AGE_SECONDS", "120")
    )


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret-key"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SCHEDULER_ENABLED = False
    CHANGE_FEED_POLL_INTERVAL = 0.01


REQUIRED_SETTINGS = ("SECRET_KEY", "SQLALCHEMY_DATABASE_URI")


def validate_config(config) -> None:
    """Fail fast on missing settings instead of running with placeholders."""
    missing = [name for name in REQUIRED_SETTINGS if not config.get(name)]
    if missing:
        raise ConfigError(
            "missing required configuration: " + ", ".join(sorted(missing))
        )
    if config["CHANGE_FEED_PAGE_SIZE"] <= 0:
        raise ConfigError("CHANGE_FEED_PAGE_SIZE must be positive")
    if config["CHANGE_FEED_MAX_WAIT_SECONDS"] < 0:
        raise ConfigError("CHANGE_FEED_MAX_WAIT_SECONDS must not be negative")
