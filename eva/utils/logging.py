"""Logging configuration with per-request tenant context."""

import logging
import sys
from contextvars import ContextVar

from pydantic import BaseModel

_log_context: ContextVar[dict[str, str]] = ContextVar("eva_log_context", default={})


class LogConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - [%(tenant)s/%(user)s] %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"


class TenantContextFilter(logging.Filter):
    """Stamps the tenant and user bound to the current request onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = _log_context.get()
        record.tenant = context.get("tenant", "-")
        record.user = context.get("user", "-")
        return True


def bind_log_context(tenant_id: str | None, user_id: str | None) -> None:
    """Attach the caller's firm and user to log records of the current task."""
    _log_context.set({"tenant": tenant_id or "-", "user": user_id or "-"})


def setup_logging(config: LogConfig | None = None) -> None:
    """Set up logging configuration for the service."""
    if config is None:
        from eva.config import get_settings

        config = LogConfig(level=get_settings().log_level)

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(TenantContextFilter())
    logging.basicConfig(
        level=getattr(logging, config.level.upper(), logging.INFO),
        format=config.format,
        datefmt=config.date_format,
        handlers=[handler],
        force=True,
    )

    # Provider SDK and HTTP client logs are noisy at INFO
    for noisy in ("anthropic", "httpx", "uvicorn.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str, level: str | None = None) -> logging.Logger:
    """Get a logger for a specific module.

    Args:
        name: Module name (typically __name__)
        level: Optional level override; the root level applies otherwise

    Returns:
        Logger instance
    """
    logger = logging.getLogger(name)
    if level:
        logger.setLevel(level.upper())
    return logger
