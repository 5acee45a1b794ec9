import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from racepicks.config import Config

def _configured_level() -> int:
    if Config.DEBUG:
        return logging.DEBUG
    return getattr(logging, Config.LOG_LEVEL, logging.INFO)

def setup_logger(name: str, log_dir: Optional[str] = None) -> logging.Logger:
    """
    Setup a logger with the engine's console and file handlers

    Args:
        name: Logger name, normally the module's __name__
        log_dir: Directory for the daily log file, defaults to Config.LOG_DIR;
            an empty value logs to the console only
    """

    logger = logging.getLogger(name)

    if logger.handlers:
        return logger

    log_level = _configured_level()
    logger.setLevel(log_level)

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    log_dir = Config.LOG_DIR if log_dir is None else log_dir
    if not log_dir:
        return logger

    # One file per day, shared by every racepicks logger
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    file_handler = logging.FileHandler(
        log_path / f'racepicks_{datetime.now().strftime("%Y%m%d")}.log',
        encoding='utf-8'
    )
    file_handler.setLevel(log_level)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    return logger
