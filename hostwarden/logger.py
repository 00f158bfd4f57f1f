# hostwarden/logger.py
import datetime
import os
from . import config

_log_file = config.LOG_FILE
_max_bytes = config.LOG_MAX_BYTES


def configure(log_file=None, max_bytes=None):
    global _log_file, _max_bytes
    _log_file = log_file or config.LOG_FILE
    _max_bytes = max_bytes or config.LOG_MAX_BYTES


def log_path():
    return _log_file


def _ensure_log_dir():
    d = os.path.dirname(_log_file)
    if d and not os.path.exists(d):
        os.makedirs(d, exist_ok=True)


def _rotate_if_needed():
    """Move an oversized log to <log>.bak; only one backup is kept."""
    try:
        if os.path.getsize(_log_file) > _max_bytes:
            os.replace(_log_file, _log_file + ".bak")
    except FileNotFoundError:
        pass


def format_fields(phase, **fields):
    parts = [phase]
    for key, value in fields.items():
        if isinstance(value, float):
            value = f"{value:.2f}"
        elif value is None:
            value = "n/a"
        parts.append(f"{key}={value}")
    return " | ".join(parts)


def log(msg):
    ts = datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    line = f"{ts} | {msg}"
    print(line)
    try:
        _ensure_log_dir()
        _rotate_if_needed()
        with open(_log_file, "a", encoding="utf-8") as f:
            f.write(line + "\n")
    except OSError:
        pass


def log_fields(phase, **fields):
    log(format_fields(phase, **fields))
