import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from marketchat.config.settings import Config


def setup_logging(level: str = "INFO", log_file: str | None = None):
    root = logging.getLogger()
    # Keep third-party libraries quiet; our own package logs at `level`.
    root.setLevel(logging.WARNING)
    formatter = logging.Formatter(Config.LOG_FORMAT)

    if not any(getattr(h, "_marketchat", False) for h in root.handlers):
        stream_handler = logging.StreamHandler(sys.stdout)
        stream_handler.setFormatter(formatter)
        stream_handler._marketchat = True  # type: ignore[attr-defined]
        root.addHandler(stream_handler)

        if log_file:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                log_file, maxBytes=10 * 1024 * 1024, backupCount=5
            )
            file_handler.setFormatter(formatter)
            file_handler._marketchat = True  # type: ignore[attr-defined]
            root.addHandler(file_handler)

    logging.getLogger("marketchat").setLevel(getattr(logging, level.upper(), logging.INFO))
    return root
