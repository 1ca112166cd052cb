import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from sysmetrics.session import get_session_id
from sysmetrics.config import config

# marks the handlers added by setup_error_logger; foreign handlers are ignored
_OWN_HANDLER = "_sysmetrics_handler"


def setup_error_logger() -> logging.Logger:
    """
    Configure the package-wide error logger for SysMetrics.
    Writes WARN+ to stderr, and ERROR+ to a rotating file when
    `config.enable_logging` is set.
    """
    logger = logging.getLogger("sysmetrics")
    if any(getattr(h, _OWN_HANDLER, False) for h in logger.handlers):
        return logger

    logger.setLevel(logging.WARNING)

    sh = logging.StreamHandler(sys.stderr)
    sh.setLevel(logging.WARNING)
    sh.setFormatter(
        logging.Formatter(
            "[%(asctime)s] %(levelname)s %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    setattr(sh, _OWN_HANDLER, True)
    logger.addHandler(sh)

    if config.enable_logging:
        session_id = get_session_id()
        errors_dir = Path(config.logs_dir) / session_id
        errors_dir.mkdir(parents=True, exist_ok=True)

        fh = RotatingFileHandler(
            errors_dir / "sysmetrics_errors.log",
            maxBytes=5_000_000,
            backupCount=3,
            encoding="utf-8",
        )
        fh.setLevel(logging.ERROR)
        fh.setFormatter(
            logging.Formatter(
                "%(asctime)s\t%(levelname)s\t%(name)s\t%(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        setattr(fh, _OWN_HANDLER, True)
        logger.addHandler(fh)

    logger.propagate = False
    return logger


def get_error_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"sysmetrics.{name}")
