"""
Process-wide logging for the API. Messages are "event.name key=value ..." lines so
scan outcomes and LLM timings can be grepped out of stdout.
"""

import logging
import sys
from typing import Optional

from allerguard.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# litellm and the HTTP client log every completion request and response body,
# which would put ingredient lists and API errors on stdout at INFO.
NOISY_LOGGERS = ("LiteLLM", "LiteLLM Router", "LiteLLM Proxy", "httpx", "httpcore", "dspy")


def configure_logging(level: Optional[str] = None) -> None:
    level_name = (level or settings.log_level).upper()
    # Third-party chatter stays at WARNING unless we are debugging.
    quiet_level = logging.DEBUG if level_name == "DEBUG" else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)

    root = logging.getLogger()
    if root.handlers:
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(level_name)
    get_logger().info("logging.configured app=%s env=%s level=%s", settings.app_name, settings.env, level_name)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(name or "allerguard")
