"""Centralized logging configuration."""

import logging

_NOISY_LOGGER_NAMES = (
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "httpx",
    "httpcore",
    "uvicorn.access",
)


def setup_logging(log_level: str = "INFO") -> None:
    """Configure root logging for the service.

    Sets the root logger level and suppresses noisy third-party loggers to
    WARNING.

    Args:
        log_level: Logging level name such as `INFO` or `DEBUG`.

    Returns:
        None: Logging is configured as side effect.

    Raises:
        ValueError: Raised when the level name is unknown.
    """

    level = logging.getLevelName(log_level.strip().upper())
    if not isinstance(level, int):
        raise ValueError(f"unknown log level={log_level}")

    logging.basicConfig(
        format="%(asctime)s %(levelname)-8s %(name)s  %(message)s",
        datefmt="%H:%M:%S",
        level=level,
        force=True,
    )

    for name in _NOISY_LOGGER_NAMES:
        logging.getLogger(name).setLevel(logging.WARNING)
