import logging
import colorlog


LOG_COLORS = {
    'DEBUG': 'cyan',
    'INFO': 'green',
    'WARNING': 'yellow',
    'ERROR': 'red',
    'CRITICAL': 'bold_red',
}

formatter = colorlog.ColoredFormatter(
    "%(log_color)s%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    log_colors=LOG_COLORS
)

handler = logging.StreamHandler()
handler.setFormatter(formatter)


def get_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(level)
    if handler not in logger.handlers:
        logger.addHandler(handler)
    logger.propagate = False
    return logger


def set_log_level(level: int, prefix: str = 'bidcurves'):
    """Set the level of all loggers created below the given package prefix."""
    for name, logger in logging.Logger.manager.loggerDict.items():
        if isinstance(logger, logging.Logger) and name.startswith(prefix):
            logger.setLevel(level)
