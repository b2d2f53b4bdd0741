import logging

from quotedesk.config.settings import Settings


def configure_logging(settings: Settings) -> logging.Logger:
    """Logging setup for a process embedding the quote core.

    The package never configures logging on import.
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format=settings.log_format)
    package_logger = logging.getLogger("quotedesk")
    package_logger.setLevel(level)
    return package_logger
