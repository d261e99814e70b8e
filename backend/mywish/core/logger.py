import logging
from pathlib import Path

from mywish.core.config import settings


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

# Outbound calls to Google and the content feed log every request at INFO.
CHATTY_LOGGERS = ("httpx", "httpcore")


def _file_handler(log_file: str, root: logging.Logger) -> logging.Handler | None:
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    for handler in root.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == str(log_path.resolve()):
            return None
    return logging.FileHandler(log_path, encoding="utf-8")


def configure_logging() -> logging.Logger:
    """Attach the registry's handlers to the root logger and return ``mywish``."""
    level = getattr(logging, (settings.log_level or "INFO").upper(), logging.INFO)
    root = logging.getLogger()

    handlers: list[logging.Handler] = []
    if not root.handlers:
        handlers.append(logging.StreamHandler())
    if settings.log_file:
        file_handler = _file_handler(settings.log_file, root)
        if file_handler is not None:
            handlers.append(file_handler)

    formatter = logging.Formatter(LOG_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(level)

    for name in CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    logger = logging.getLogger("mywish")
    logger.setLevel(level)
    return logger
