# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Centralised logging configuration.

All log settings (levels, rotation, format …) live in  etc/logging.conf.
``configure_logging`` resolves the log-file path, patches it into the config
text, and applies it via the standard-library fileConfig loader.  It runs
once per process from the entry point; until then records go wherever the
host's logging is configured (pytest's capture, uvicorn's handlers).

Import the ready-made logger anywhere:
    from core.logger import logger
"""

import configparser as _cp
import logging
import logging.config
import sys
from pathlib import Path
from typing import Optional

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------
# project root: backend/core/logger.py  →  ../../  →  citylog/
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_LOG_DIR      = _PROJECT_ROOT / "log"
_LOG_FILE     = _LOG_DIR / "app.log"

# ---------------------------------------------------------------------------
# Module-level handle
# ---------------------------------------------------------------------------
logger = logging.getLogger("citylog")


def configure_logging(logging_conf: Optional[Path], log_file: Path = _LOG_FILE) -> None:
    """
    Apply *logging_conf* (fileConfig format).  ``None`` or a missing file is
    a no-op.

    logging.conf uses %(log_file)s as a placeholder.  We read the raw text,
    replace it with the real absolute path, then feed the result to
    fileConfig via a ConfigParser-compatible object.
    """
    if logging_conf is None or not Path(logging_conf).is_file():
        return

    # Ensure the log/ directory exists before the handler tries to open the file
    log_file.parent.mkdir(parents=True, exist_ok=True)

    raw = Path(logging_conf).read_text(encoding="utf-8")
    raw = raw.replace("%(log_file)s", str(log_file))

    # RawConfigParser is required: the logging format strings contain
    # %(asctime)s etc. which ConfigParser would try to interpolate.
    parser = _cp.RawConfigParser()
    parser.read_string(raw)

    logging.config.fileConfig(parser, disable_existing_loggers=False)


def install_excepthook() -> None:
    """
    Log uncaught process-level exceptions, then exit with status 1.
    The process is expected to run under a supervisor that restarts it.
    """

    def _hook(exc_type, exc, tb):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc, tb)
            return
        logger.critical("UNCAUGHT EXCEPTION! Shutting down", exc_info=(exc_type, exc, tb))
        sys.exit(1)

    sys.excepthook = _hook
