"""Logging configuration setup.

Provides logging configuration using dictConfig with a console handler on
the root logger; library loggers (``reftree.*``, ``repository.*``)
propagate up. The package itself never configures logging on import;
hosts call ``setup_logging()`` (or their own configuration) once.
"""

from __future__ import annotations

import logging
import logging.config
from typing import TYPE_CHECKING, Any

logger = logging.getLogger(__name__)
_LOGGING_INITIALIZED = False

if TYPE_CHECKING:
    from reftree.core.settings.logs import LoggingSettings

TEXT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def setup_logging(
    log_settings: LoggingSettings | None = None,
    *,
    force: bool = False,
    **configure_kwargs: Any,
) -> None:
    """Ensure logging is configured once across entrypoints.

    Args:
        log_settings: Optional logging settings instance. If omitted, settings
            are loaded via get_logging_settings().
        force: Reconfigure logging even if it was already initialized.
        **configure_kwargs: Explicit overrides for configure_logging().
    """
    global _LOGGING_INITIALIZED

    if _LOGGING_INITIALIZED and not force:
        return

    settings_obj = log_settings
    if settings_obj is None:
        from reftree.core.settings import get_logging_settings

        settings_obj = get_logging_settings()

    log_config = settings_obj.to_logging_kwargs()
    if configure_kwargs:
        log_config = {**log_config, **configure_kwargs}

    configure_logging(**log_config)
    _LOGGING_INITIALIZED = True


def configure_logging(
    log_level: str = "INFO",
    *,
    json_logs: bool = True,
    console_enabled: bool = True,
    capture_warnings: bool = True,
    service_name: str = "reftree",
    **kwargs: Any,
) -> dict[str, Any]:
    """Configure logging with dictConfig.

    Args:
        log_level: Root logger level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_logs: Enable JSONL (JSON Lines) structured logging.
        console_enabled: Enable console/stderr logging.
        capture_warnings: Forward Python warnings to logging system.
        service_name: Static ``service`` field added to JSON records.
        **kwargs: Ignored extra settings (logged at DEBUG).

    Returns:
        The dictConfig dictionary that was applied.

    Example:
        from reftree.core.settings import get_logging_settings
        configure_logging(**get_logging_settings().to_logging_kwargs())
    """
    if kwargs:
        logger.debug("Unused logging kwargs supplied: %s", ", ".join(sorted(kwargs.keys())))

    if capture_warnings:
        logging.captureWarnings(True)

    formatter: dict[str, Any]
    if json_logs:
        formatter = {
            "()": "reftree.infra.logging.formatters.JSONFormatter",
            "static": {"service": service_name},
        }
    else:
        formatter = {"format": TEXT_FORMAT}

    handlers: dict[str, Any] = {}
    if console_enabled:
        handlers["console"] = {
            "class": "logging.StreamHandler",
            "formatter": "default",
            "stream": "ext://sys.stderr",
        }

    config: dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": formatter},
        "handlers": handlers,
        "root": {"level": log_level.upper(), "handlers": list(handlers)},
    }
    logging.config.dictConfig(config)
    return config


__all__ = [
    "configure_logging",
    "setup_logging",
]
