"""Root logger setup shared by the API and the command-line scripts."""
import json
import logging
from typing import Any

from pydantic_settings import BaseSettings


class LoggingSettings(BaseSettings):
    """Logging configuration. Kept apart from Settings so client scripts need no server env."""

    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "text"  # "text" or "json"
    ENV: str = "dev"  # dev | staging | prod

    class Config:
        env_prefix = "APP_"
        extra = "ignore"


logging_settings = LoggingSettings()

SENSITIVE_KEYS = {"password", "token", "authorization", "recaptcha_token"}


class CustomFormatter(logging.Formatter):
    """Text or JSON formatter that appends `extra` fields and masks secrets."""

    def __init__(self, use_json: bool = False, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.use_json = use_json
        self.default_attrs = set(vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()) | {"message", "asctime"}

    def format(self, record: logging.LogRecord) -> str:
        extra = {
            k: ("***" if k.lower() in SENSITIVE_KEYS else v)
            for k, v in record.__dict__.items()
            if k not in self.default_attrs
        }

        if self.use_json:
            payload = {
                "timestamp": self.formatTime(record),
                "level": record.levelname,
                "logger": record.name,
                "message": record.getMessage(),
                **extra,
            }
            if record.exc_info:
                payload["exception"] = self.formatException(record.exc_info)
            return json.dumps(payload, default=str)

        base = super().format(record)
        if extra:
            extra_info = " ".join(f"{k}={v}" for k, v in extra.items())
            return f"{base} | {extra_info}"
        return base


def setup_logging() -> None:
    """Configure the root logger once per process."""
    root = logging.getLogger()

    if getattr(root, "_configured", False):
        return

    root._configured = True
    root.setLevel(logging_settings.LOG_LEVEL)

    handler = logging.StreamHandler()
    formatter = CustomFormatter(
        use_json=logging_settings.LOG_FORMAT == "json",
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    handler.setFormatter(formatter)
    handler.setLevel(logging.NOTSET)

    root.handlers.clear()
    root.addHandler(handler)
