import logging
import logging.handlers
import os
import json
from typing import Any, Dict, Optional

# Log file path (project root unless SSP_LOG_FILE says otherwise)
LOG_FILE = os.environ.get(
    "SSP_LOG_FILE",
    os.path.join(os.path.dirname(os.path.abspath(__file__)), 'ssp.log'),
)
LOG_LEVEL = os.environ.get("SSP_LOG_LEVEL", "INFO")
LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'

MAX_BYTES = 10 * 1024 * 1024  # 10 MB
BACKUP_COUNT = 3

# Logger that emits the TX/RX hex dump of every frame at DEBUG.
FRAME_LOGGER = "SSP.ssp_channel"


def setup_logging(log_file: Optional[str] = None,
                  level: Optional[str] = None,
                  trace_frames: bool = False) -> str:
    """
    Configure the root logger: rotating file plus console.

    The SSP core only creates module loggers; applications call this once.
    Returns the log file path in use.
    """
    global LOG_FILE
    LOG_FILE = log_file or LOG_FILE

    logging.basicConfig(
        level=getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=[
            logging.handlers.RotatingFileHandler(
                LOG_FILE, maxBytes=MAX_BYTES, backupCount=BACKUP_COUNT, encoding='utf-8'
            ),
            logging.StreamHandler()
        ],
        force=True,
    )
    if trace_frames:
        logging.getLogger(FRAME_LOGGER).setLevel(logging.DEBUG)
    return LOG_FILE


def purge_log() -> None:
    """Truncate the log file."""
    with open(LOG_FILE, "w", encoding="utf-8"):
        pass


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_json(logger: logging.Logger, level: int, payload: Dict[str, Any]) -> None:
    """
    Helper to emit one *single-line* JSON object at the chosen log level.
    """
    logger.log(level, json.dumps(payload, separators=(",", ":")))


def log_event(logger: logging.Logger, ev, level: int = logging.INFO) -> None:
    """One JSON line per PollEvent; None fields are left out."""
    payload = {
        "event": ev.label(),
        "channel": ev.channel,
        "value": ev.value,
        "country": ev.country,
        "reason": ev.reason,
    }
    if ev.values:
        payload["values"] = [[v, cc] for v, cc in ev.values]
    log_json(logger, level, {k: v for k, v in payload.items() if v is not None})
