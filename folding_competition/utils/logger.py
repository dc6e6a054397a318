import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from folding_competition.config import Config

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

def setup_logger(name: str, log_dir: Optional[str] = None) -> logging.Logger:
    """
    Logger writing to stdout and to a daily competition log file.
    
    The file always records DEBUG detail (per-user deltas, skipped users);
    the console follows Config.DEBUG.
    """
    logger = logging.getLogger(name)
    
    if logger.handlers:
        return logger
    
    console_level = logging.DEBUG if Config.DEBUG else logging.INFO
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    
    formatter = logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')
    
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)
    
    log_path = Path(log_dir or Config.LOG_DIR)
    log_path.mkdir(parents=True, exist_ok=True)
    
    file_handler = logging.FileHandler(
        log_path / f'team_competition_{datetime.now().strftime("%Y%m%d")}.log',
        encoding='utf-8'
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)
    
    return logger
