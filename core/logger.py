# core/logger.py
import datetime
import logging
import os
import re
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

_configured = False


def setup_logging():
    global _configured
    if _configured:
        return

    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    log_to_file = os.getenv("LOG_TO_FILE", "false").lower() == "true"
    log_file = os.getenv("LOG_FILE", "/data/list_import.log")
    log_max_bytes = int(os.getenv("LOG_MAX_BYTES", str(2 * 1024 * 1024)))
    log_backups = int(os.getenv("LOG_BACKUPS", "3"))
    log_to_stdout = os.getenv("LOG_TO_STDOUT", "true").lower() == "true"

    level = getattr(logging, log_level, logging.INFO)
    root = logging.getLogger()
    root.setLevel(level)

    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s [%(name)s] %(message)s"
    )

    # Avoid duplicate handlers (gunicorn/pytest may have installed their own)
    if not root.handlers:
        if log_to_stdout:
            ch = logging.StreamHandler(sys.stdout)
            ch.setLevel(level)
            ch.setFormatter(formatter)
            root.addHandler(ch)

        if log_to_file:
            try:
                os.makedirs(os.path.dirname(log_file), exist_ok=True)
                fh = RotatingFileHandler(
                    log_file,
                    maxBytes=log_max_bytes,
                    backupCount=log_backups,
                )
                fh.setLevel(level)
                fh.setFormatter(formatter)
                root.addHandler(fh)
            except OSError as e:
                root.warning("Failed to initialize file logging: %s", e)

    # urllib3 logs every connection at DEBUG, which buries the fetch trail.
    logging.getLogger("urllib3").setLevel(max(level, logging.WARNING))

    _configured = True


def get_logger(name: str | None = None) -> logging.Logger:
    setup_logging()
    return logging.getLogger(name)


def _sanitize(name: str) -> str:
    return re.sub(r"[^A-Za-z0-9_.-]+", "_", name)[:120]


def dump_debug_html(label: str, html: str, debug_dir: str, force: bool = False) -> Path | None:
    """Write a fetched body to a timestamped file when DEBUG logging (or force) is on."""
    logger = get_logger(__name__)
    if not (force or logger.isEnabledFor(logging.DEBUG)):
        return None

    timestamp = datetime.datetime.now(datetime.timezone.utc).strftime("%Y%m%d_%H%M%S")
    path = Path(debug_dir) / f"{_sanitize(label)}_{timestamp}.html"
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(html, encoding="utf-8")
        logger.debug("Dumped %d chars of HTML to %s", len(html), path)
        return path
    except OSError as exc:
        logger.warning("Failed to dump HTML to %s: %s", path, exc)
        return None


def html_title(html: str) -> str:
    m = re.search(r"<title[^>]*>([^<]+)</title>", html or "", re.IGNORECASE)
    return m.group(1).strip() if m else ""
